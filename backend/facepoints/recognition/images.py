import base64
import binascii
import re

from facepoints.errors import ImageTooLarge, InvalidImageFormat, InvalidRequest

_DATA_URL_PREFIX = re.compile(r'^data:image/[\w.+-]+;base64,')

_SIGNATURES = (
    b'\xff\xd8\xff',  # JPEG
    b'\x89PNG\r\n\x1a\n',
)


def decode_photo(value, max_bytes):
    """Turn a base64 photo (optionally a data URL) into validated bytes.

    Runs before any oracle call so malformed uploads never reach the provider.
    """
    if not value or not isinstance(value, str):
        raise InvalidRequest('A photo is required')
    payload = _DATA_URL_PREFIX.sub('', value.strip(), count=1)
    # base64 inflates by 4/3; reject obviously oversized payloads before decoding
    if len(payload) * 3 // 4 > max_bytes + 3:
        raise ImageTooLarge(max_bytes=max_bytes)
    try:
        image = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        raise InvalidImageFormat('The photo is not valid base64') from exc
    if len(image) > max_bytes:
        raise ImageTooLarge(max_bytes=max_bytes)
    if not image.startswith(_SIGNATURES):
        raise InvalidImageFormat()
    return image
