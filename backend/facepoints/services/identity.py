import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from flask import current_app
from sqlalchemy.exc import IntegrityError

from facepoints import db
from facepoints.clock import now
from facepoints.errors import (
    EmailAlreadyRegistered,
    EmployeeCodeAlreadyUsed,
    EmployeeCodeNotEligible,
    EnrollmentConflict,
    InvalidRequest,
    MultipleFacesDetected,
    NoFaceDetected,
    OracleUnavailable,
    StorageUnavailable,
)
from facepoints.models import EmployeeCode, Identity


@dataclass
class EnrollmentProfile:
    display_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    employee_code: Optional[str] = None

    @classmethod
    def from_payload(cls, data):
        def clean(key):
            value = (data or {}).get(key)
            if value is None:
                return None
            value = str(value).strip()
            return value or None

        profile = cls(
            display_name=clean('name') or clean('display_name') or '',
            email=clean('email'),
            phone=clean('phone'),
            employee_code=clean('employee_code'),
        )
        if profile.email:
            profile.email = profile.email.lower()
        if profile.employee_code:
            profile.employee_code = profile.employee_code.upper()
        return profile


@dataclass
class IdentityMatch:
    identity: Identity
    similarity: float


class IdentityDirectory:
    """Maps faces known to the recognition oracle onto Identity rows.

    The oracle keeps the face collection; this directory owns the rule that
    an enrollment photo must carry exactly one face, and cleans up anything
    the oracle indexed when an enrollment is rejected.
    """

    def __init__(self, oracle, photo_store, threshold=90):
        self.oracle = oracle
        self.photo_store = photo_store
        self.threshold = threshold

    @property
    def available(self):
        return self.oracle.available

    def _check_profile(self, profile: EnrollmentProfile, is_companion: bool) -> None:
        if not profile.display_name:
            raise InvalidRequest('A name is required')
        if profile.email and Identity.query.filter_by(email=profile.email).first():
            raise EmailAlreadyRegistered()
        if profile.employee_code:
            roster = EmployeeCode.query.filter_by(code=profile.employee_code, active=True).first()
            if not roster:
                raise EmployeeCodeNotEligible()
            if Identity.query.filter_by(employee_code=profile.employee_code).first():
                raise EmployeeCodeAlreadyUsed()
        elif not is_companion and current_app.config.get('EMPLOYEE_CODE_REQUIRED'):
            raise EmployeeCodeNotEligible('An employee code is required to register')

    def _discard_faces(self, face_ids, reason):
        current_app.logger.warning(f"[enroll-rollback] reason={reason} faces={len(face_ids)}")
        self.oracle.delete_faces(list(face_ids))

    def _release(self, face_id, photo_ref, reason):
        """Undo a failed enrollment without hiding the error that caused it.

        A face the oracle could not delete stays behind for
        ``flask purge-orphan-faces``.
        """
        try:
            self._discard_faces([face_id], reason)
        except OracleUnavailable:
            current_app.logger.error(f"[enroll-rollback-failed] face={face_id}")
        finally:
            try:
                self.photo_store.delete(photo_ref)
            except StorageUnavailable:
                current_app.logger.error(f"[enroll-rollback-failed] photo={photo_ref}")

    def enroll(self, photo: bytes, profile: EnrollmentProfile, is_companion: bool = False,
               before_commit: Optional[Callable[[Identity], None]] = None) -> Identity:
        """Register the single face in ``photo`` and create its Identity.

        ``before_commit`` runs inside the insert transaction with the flushed
        Identity, so related rows (a companion link) commit or fail with it.
        """
        self._check_profile(profile, is_companion)

        external_id = uuid.uuid4().hex
        records = self.oracle.enroll_face(photo, external_id)
        if not records:
            raise NoFaceDetected()
        if len(records) > 1:
            self._discard_faces([r.face_id for r in records], 'multiple_faces')
            raise MultipleFacesDetected(faces=len(records))
        record = records[0]

        try:
            photo_ref = self.photo_store.save(photo, external_id)
        except Exception:
            self._discard_faces([record.face_id], 'photo_store')
            raise

        identity = Identity(
            biometric_ref=record.face_id,
            display_name=profile.display_name,
            email=profile.email,
            phone=profile.phone,
            employee_code=profile.employee_code,
            photo_ref=photo_ref,
            point_balance=0,
            is_companion=is_companion,
            enrolled_at=now(),
        )
        try:
            db.session.add(identity)
            db.session.flush()
            if before_commit is not None:
                before_commit(identity)
            db.session.commit()
        except IntegrityError as exc:
            db.session.rollback()
            self._release(record.face_id, photo_ref, 'integrity')
            raise self._conflict_error(profile) from exc
        except Exception:
            db.session.rollback()
            self._release(record.face_id, photo_ref, 'error')
            raise

        current_app.logger.info(
            f"[enroll] identity={identity.id} companion={is_companion} confidence={record.confidence}"
        )
        return identity

    def _conflict_error(self, profile: EnrollmentProfile):
        if profile.email and Identity.query.filter_by(email=profile.email).first():
            return EmailAlreadyRegistered()
        if profile.employee_code and Identity.query.filter_by(employee_code=profile.employee_code).first():
            return EmployeeCodeAlreadyUsed()
        return EnrollmentConflict()

    def identify(self, photo: bytes) -> Optional[IdentityMatch]:
        """Find the enrolled identity in ``photo``; ``None`` means no match."""
        match = self.oracle.search_face(photo, self.threshold)
        if match is None or match.similarity < self.threshold:
            return None
        identity = Identity.query.filter_by(biometric_ref=match.face_id, active=True).first()
        if identity is None:
            # The collection knows a face the directory never stored
            current_app.logger.warning(f"[identify-orphan] face={match.face_id}")
            return None
        return IdentityMatch(identity, match.similarity)


def get_directory() -> IdentityDirectory:
    return current_app.extensions['identity_directory']


def get_identity(identity_id) -> Optional[Identity]:
    if identity_id is None:
        return None
    return db.session.get(Identity, int(identity_id))


def validate_employee_code(code: str) -> dict:
    """Report whether ``code`` may register and who holds it if registered."""
    code = (code or '').strip().upper()
    roster = EmployeeCode.query.filter_by(code=code, active=True).first() if code else None
    holder = Identity.query.filter_by(employee_code=code).first() if code else None
    return {
        'code': code,
        'eligible': roster is not None and holder is None,
        'registered': holder is not None,
        'identity': holder.to_dict() if holder else None,
    }
