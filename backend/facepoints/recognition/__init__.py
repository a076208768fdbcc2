"""Face recognition oracle and enrollment photo storage.

The engine never compares faces itself. It hands image bytes to an oracle
that keeps its own face collection and answers with face ids and similarity
scores on a 0-100 scale.
"""

from dataclasses import dataclass
from typing import List, Optional

from facepoints.errors import ServiceUnavailable


@dataclass(frozen=True)
class FaceRecord:
    face_id: str
    confidence: Optional[float] = None


@dataclass(frozen=True)
class FaceMatch:
    face_id: str
    similarity: float


class RecognitionOracle:
    """Contract every oracle adapter implements.

    Errors are raised as ``facepoints.errors`` types. ``search_face`` returns
    ``None`` only for "no match"; an unreachable provider must raise
    ``OracleUnavailable`` instead.
    """

    available = True

    def enroll_face(self, image: bytes, external_id: str) -> List[FaceRecord]:
        """Index every face found in ``image``; zero, one or many records."""
        raise NotImplementedError

    def search_face(self, image: bytes, threshold: float) -> Optional[FaceMatch]:
        raise NotImplementedError

    def delete_faces(self, face_ids: List[str]) -> None:
        raise NotImplementedError

    def list_face_ids(self) -> List[str]:
        raise NotImplementedError

    def ensure_collection(self) -> bool:
        """Create the face collection if missing; True when it was created."""
        raise NotImplementedError


class DisabledOracle(RecognitionOracle):
    """Stands in when no provider is configured; every call answers 503."""

    available = False

    def _unavailable(self, *args, **kwargs):
        raise ServiceUnavailable()

    enroll_face = _unavailable
    search_face = _unavailable
    delete_faces = _unavailable
    list_face_ids = _unavailable
    ensure_collection = _unavailable


def build_oracle(config) -> RecognitionOracle:
    backend = (config.get('RECOGNITION_BACKEND') or 'disabled').lower()
    if backend == 'rekognition':
        from facepoints.recognition.rekognition import RekognitionOracle
        return RekognitionOracle(
            config['REKOGNITION_COLLECTION_ID'],
            region_name=config.get('AWS_REGION'),
            timeout=config.get('ORACLE_TIMEOUT_SEC', 10),
        )
    if backend != 'disabled':
        raise ValueError(f"Unknown RECOGNITION_BACKEND: {backend}")
    return DisabledOracle()


def build_photo_store(config):
    from facepoints.recognition.storage import LocalPhotoStore, S3PhotoStore
    kind = (config.get('PHOTO_STORE') or 'local').lower()
    if kind == 's3':
        return S3PhotoStore(config['PHOTO_BUCKET'], region_name=config.get('AWS_REGION'))
    if kind != 'local':
        raise ValueError(f"Unknown PHOTO_STORE: {kind}")
    return LocalPhotoStore(config.get('UPLOAD_DIR', 'uploads'))
