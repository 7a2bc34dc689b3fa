"""QR payload parsing for library check-in codes.

The library displays one QR code containing a JSON document such as::

    {"libraryId": 7, "libraryCode": "LIB007", "type": "attendance",
     "timestamp": "2026-10-19T08:00:00Z"}

Students scan it from the portal; the scanner hands us the decoded text (or,
from kiosks that upload a photo, the image bytes).
"""

from __future__ import annotations

import io
import json
from dataclasses import dataclass
from typing import Mapping, Optional, Union

from PIL import Image, UnidentifiedImageError

from ..core.constants import QR_PAYLOAD_TYPE
from ..core.exceptions import InvalidPayloadError


@dataclass(frozen=True)
class QrPayload:
    library_id: int
    type: str
    library_code: Optional[str] = None
    library_name: Optional[str] = None
    timestamp: Optional[str] = None
    raw: str = ""


def parse_qr_payload(raw: Union[str, bytes, Mapping], *, expected_type: str = QR_PAYLOAD_TYPE) -> QrPayload:
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            raise InvalidPayloadError("Invalid QR code format")

    if isinstance(raw, Mapping):
        data = dict(raw)
        text = json.dumps(data, default=str)
    else:
        text = (raw or "").strip()
        if not text:
            raise InvalidPayloadError("QR code is empty")
        try:
            data = json.loads(text)
        except ValueError:
            raise InvalidPayloadError("Invalid QR code format")

    if not isinstance(data, dict):
        raise InvalidPayloadError("Invalid QR code format")

    if data.get("type") != expected_type:
        raise InvalidPayloadError("This QR code is not an attendance code")

    library_id = data.get("libraryId")
    if isinstance(library_id, bool):
        raise InvalidPayloadError("QR code does not identify a library")
    try:
        library_id = int(library_id)
    except (TypeError, ValueError):
        raise InvalidPayloadError("QR code does not identify a library")

    return QrPayload(
        library_id=library_id,
        type=data["type"],
        library_code=data.get("libraryCode"),
        library_name=data.get("libraryName"),
        timestamp=data.get("timestamp"),
        raw=text,
    )


def decode_qr_image(image_bytes: bytes) -> str:
    """Return the text of the first QR symbol found in an uploaded image."""
    # pyzbar loads the native libzbar on import; only image uploads need it.
    from pyzbar.pyzbar import decode as pyzbar_decode

    try:
        img = Image.open(io.BytesIO(image_bytes))
        img.load()
    except (UnidentifiedImageError, OSError):
        raise InvalidPayloadError("Uploaded file is not a readable image")

    symbols = pyzbar_decode(img.convert("L"))
    if not symbols:
        raise InvalidPayloadError("No QR code found in the image")
    return symbols[0].data.decode("utf-8", errors="replace")
