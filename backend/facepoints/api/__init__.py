from flask import current_app, request

from facepoints.errors import InvalidRequest, SessionExpired, SessionInvalid
from facepoints.recognition.images import decode_photo
from facepoints.services import sessions

SESSION_HEADER = 'X-Session-Token'


def json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidRequest('Expected a JSON object')
    return data


def text_field(data, key):
    """Stripped string value of ``key``; ``None`` when absent or blank."""
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidRequest(f"{key} must be a string")
    return value.strip() or None


def photo_from(data, key='photo'):
    return decode_photo(data.get(key), current_app.config.get('MAX_IMAGE_BYTES', 5 * 1024 * 1024))


def session_token():
    return request.headers.get(SESSION_HEADER) or None


def require_session_identity() -> int:
    """Identity id behind the request's session token.

    An expired session is discarded so the client falls back to a photo.
    """
    token = session_token()
    check = sessions.validate(token)
    if check.status == sessions.EXPIRED:
        sessions.discard(token)
        raise SessionExpired()
    if not check.ok:
        raise SessionInvalid()
    return check.identity_id


def int_arg(name, default, minimum=1, maximum=None):
    raw = request.args.get(name)
    if raw is None:
        return default
    try:
        value = int(raw)
    except ValueError:
        raise InvalidRequest(f"{name} must be an integer")
    value = max(minimum, value)
    if maximum is not None:
        value = min(maximum, value)
    return value
