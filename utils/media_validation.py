"""Validation helpers for inbound image frames.

Frames are treated as opaque base64 text. Clients may send either raw
base64 or a ``data:image/...;base64,`` URL; both normalize to the same text
so duplicate detection does not depend on how the frame was wrapped.
"""

import base64
import hashlib
import re
from typing import Any, Union

_DATA_URL_PREFIX = re.compile(r"^data:image/[\w.+-]+;base64,", re.IGNORECASE)


def ensure_base64_image(raw: bytes) -> bytes:
    """Return base64-encoded image bytes, encoding binary input when necessary."""
    try:
        raw.decode("ascii")
        return raw
    except UnicodeDecodeError:
        return base64.b64encode(raw)


def normalize_frame(frame: Union[str, bytes, None]) -> str:
    """Return the base64 body of a frame, or raise ValueError when it is empty."""
    if frame is None:
        raise ValueError("Image payload is required.")
    if isinstance(frame, (bytes, bytearray)):
        frame = ensure_base64_image(bytes(frame)).decode("ascii")
    if not isinstance(frame, str):
        raise ValueError("Image payload must be a base64 string.")
    body = _DATA_URL_PREFIX.sub("", frame.strip())
    if not body:
        raise ValueError("Image payload is required.")
    return body


def frame_fingerprint(frame_b64: str) -> str:
    """Deterministic content hash (SHA-1 hex) of a normalized frame."""
    return hashlib.sha1(frame_b64.encode("utf-8")).hexdigest()


def to_image_data_url(frame_b64: str) -> str:
    """Convert a normalized frame into a data URL suitable for vision input."""
    return f"data:image/jpeg;base64,{frame_b64}"


def frame_from_payload(payload: Any) -> str:
    """Pull the frame out of an inbound message (``image`` or ``imageFrame``)."""
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object.")
    return normalize_frame(payload.get("image") or payload.get("imageFrame"))
