"""Error taxonomy surfaced to callers.

Input errors are raised before anything touches the ledger, not-found errors
name a missing record, and transient errors mean a collaborator (recognition
oracle, photo store) could not be reached. Domain outcomes such as "already
participated" are not errors; see ``facepoints.services.outcomes``.
"""


class FacepointsError(Exception):
    code = 'error'
    status_code = 500
    default_message = 'Unexpected error'

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self):
        payload = {'error': self.code, 'message': self.message}
        payload.update(self.details)
        return payload


class InputError(FacepointsError):
    status_code = 400


class InvalidRequest(InputError):
    code = 'invalid_request'
    default_message = 'Malformed request'


class NoFaceDetected(InputError):
    code = 'no_face_detected'
    default_message = 'No face was detected in the photo'


class MultipleFacesDetected(InputError):
    code = 'multiple_faces_detected'
    default_message = 'More than one face was detected; take a photo with only your face'


class ImageTooLarge(InputError):
    code = 'image_too_large'
    status_code = 413
    default_message = 'The photo is too large'


class InvalidImageFormat(InputError):
    code = 'invalid_image_format'
    default_message = 'Invalid image format; use JPEG or PNG'


class EmailAlreadyRegistered(InputError):
    code = 'email_already_registered'
    status_code = 409
    default_message = 'That email is already registered'


class EmployeeCodeNotEligible(InputError):
    code = 'employee_code_not_eligible'
    status_code = 403
    default_message = 'That employee code is not eligible to register'


class EmployeeCodeAlreadyUsed(InputError):
    code = 'employee_code_already_used'
    status_code = 409
    default_message = 'That employee code is already registered'


class AlreadyHasCompanion(InputError):
    code = 'already_has_companion'
    status_code = 409
    default_message = 'This participant already has a companion'


class EnrollmentConflict(InputError):
    code = 'enrollment_conflict'
    status_code = 409
    default_message = 'The enrollment conflicts with an existing record'


class SessionError(FacepointsError):
    status_code = 401


class SessionInvalid(SessionError):
    code = 'session_invalid'
    default_message = 'Unknown session; verify your face again'


class SessionExpired(SessionError):
    code = 'session_expired'
    default_message = 'Your session expired; verify your face again'


class SessionForbidden(SessionError):
    code = 'session_forbidden'
    status_code = 403
    default_message = 'This session belongs to another participant'


class NotFoundError(FacepointsError):
    status_code = 404


class IdentityNotFound(NotFoundError):
    code = 'identity_not_found'
    default_message = 'Participant not found'


class ContestNotFound(NotFoundError):
    code = 'contest_not_found'
    default_message = 'Contest not found or inactive'


class TriviaNotFound(NotFoundError):
    code = 'trivia_not_found'
    default_message = 'Trivia not found'


class TransientError(FacepointsError):
    status_code = 503


class OracleUnavailable(TransientError):
    code = 'oracle_unavailable'
    default_message = 'Face recognition is temporarily unavailable'


class ServiceUnavailable(OracleUnavailable):
    code = 'service_unavailable'
    default_message = 'Face recognition is not configured'


class StorageUnavailable(TransientError):
    code = 'storage_unavailable'
    default_message = 'Photo storage is temporarily unavailable'


class LedgerConflict(TransientError):
    code = 'ledger_conflict'
    default_message = 'The award could not be recorded; try again'
