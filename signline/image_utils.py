# ============================================================
# image_utils.py — Camera Snapshot Processing Utilities
# ============================================================
# Handles Base64 decode/encode and downscaling of the webcam
# snapshots sent to the recognition agent.
# ============================================================

import base64
import io
from PIL import Image

# Longest side sent to Gemini; larger frames only cost more tokens
MAX_SNAPSHOT_SIDE = 768


def decode_b64_to_pil(b64_string: str) -> Image.Image:
    """Decode a base64 string (with or without data URI prefix) to a PIL Image."""
    # Strip data URI prefix if present (e.g., "data:image/jpeg;base64,...")
    if "," in b64_string:
        b64_string = b64_string.split(",", 1)[1]

    image_bytes = base64.b64decode(b64_string)
    return Image.open(io.BytesIO(image_bytes)).convert("RGB")


def pil_to_bytes(image: Image.Image, format: str = "JPEG", quality: int = 85) -> bytes:
    """Convert a PIL Image to raw bytes."""
    buffer = io.BytesIO()
    image.save(buffer, format=format, quality=quality)
    return buffer.getvalue()


def prepare_snapshot(b64_string: str, max_side: int = MAX_SNAPSHOT_SIDE) -> Image.Image:
    """
    Decode a webcam snapshot and shrink it so its longest side is at
    most max_side pixels. Aspect ratio is preserved.

    Raises:
        binascii.Error / PIL.UnidentifiedImageError for payloads that
        are not a base64-encoded image.
    """
    image = decode_b64_to_pil(b64_string)
    if max(image.size) > max_side:
        image.thumbnail((max_side, max_side))
    return image
