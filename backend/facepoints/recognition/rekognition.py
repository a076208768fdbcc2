from typing import List, Optional

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from facepoints.errors import (
    ImageTooLarge,
    InvalidImageFormat,
    NoFaceDetected,
    OracleUnavailable,
)
from facepoints.recognition import FaceMatch, FaceRecord, RecognitionOracle

_INPUT_ERRORS = {
    'InvalidImageFormatException': InvalidImageFormat,
    'ImageTooLargeException': ImageTooLarge,
    # Rekognition reports "no face in the search image" this way
    'InvalidParameterException': NoFaceDetected,
}


class RekognitionOracle(RecognitionOracle):
    """AWS Rekognition face collection adapter."""

    def __init__(self, collection_id, client=None, region_name=None, timeout=10,
                 max_faces=10, quality_filter='AUTO'):
        self.collection_id = collection_id
        self.max_faces = max_faces
        self.quality_filter = quality_filter
        self.client = client or boto3.client(
            'rekognition',
            region_name=region_name,
            config=BotoConfig(connect_timeout=timeout, read_timeout=timeout, retries={'max_attempts': 2}),
        )

    def _call(self, operation, **params):
        try:
            return getattr(self.client, operation)(**params)
        except ClientError as exc:
            error_code = exc.response.get('Error', {}).get('Code', '')
            mapped = _INPUT_ERRORS.get(error_code)
            if mapped is not None:
                raise mapped() from exc
            raise OracleUnavailable(provider_error=error_code) from exc
        except BotoCoreError as exc:
            # Connection failures and timeouts are never "no match"
            raise OracleUnavailable() from exc

    def enroll_face(self, image: bytes, external_id: str) -> List[FaceRecord]:
        response = self._call(
            'index_faces',
            CollectionId=self.collection_id,
            Image={'Bytes': image},
            ExternalImageId=external_id,
            MaxFaces=self.max_faces,
            QualityFilter=self.quality_filter,
            DetectionAttributes=['DEFAULT'],
        )
        return [
            FaceRecord(record['Face']['FaceId'], record['Face'].get('Confidence'))
            for record in response.get('FaceRecords', [])
        ]

    def search_face(self, image: bytes, threshold: float) -> Optional[FaceMatch]:
        response = self._call(
            'search_faces_by_image',
            CollectionId=self.collection_id,
            Image={'Bytes': image},
            FaceMatchThreshold=float(threshold),
            MaxFaces=1,
            QualityFilter=self.quality_filter,
        )
        matches = response.get('FaceMatches') or []
        if not matches:
            return None
        best = matches[0]
        return FaceMatch(best['Face']['FaceId'], best['Similarity'])

    def delete_faces(self, face_ids: List[str]) -> None:
        if not face_ids:
            return
        self._call('delete_faces', CollectionId=self.collection_id, FaceIds=list(face_ids))

    def list_face_ids(self) -> List[str]:
        face_ids = []
        params = {'CollectionId': self.collection_id}
        while True:
            response = self._call('list_faces', **params)
            face_ids.extend(face['FaceId'] for face in response.get('Faces', []))
            token = response.get('NextToken')
            if not token:
                return face_ids
            params['NextToken'] = token

    def ensure_collection(self) -> bool:
        try:
            self.client.describe_collection(CollectionId=self.collection_id)
            return False
        except ClientError as exc:
            if exc.response.get('Error', {}).get('Code') != 'ResourceNotFoundException':
                raise OracleUnavailable() from exc
        except BotoCoreError as exc:
            raise OracleUnavailable() from exc
        self._call('create_collection', CollectionId=self.collection_id)
        return True
