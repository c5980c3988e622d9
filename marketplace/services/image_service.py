import base64
import binascii
import io
import re
from PIL import Image as PILImage


ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/webp"}
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB

DATA_URI_RE = re.compile(r"^data:(image/[a-zA-Z+.-]+);base64,(.*)$", re.DOTALL)


def is_data_uri(value):
    return isinstance(value, str) and value.startswith("data:")


def decode_data_uri(data_uri):
    """Split a ``data:image/...;base64,`` URI into (content_type, bytes).

    Raises:
        ValueError on malformed URIs or unsupported content types
    """
    match = DATA_URI_RE.match(data_uri or "")
    if not match:
        raise ValueError("Invalid base64 image format")

    content_type = match.group(1).lower()
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValueError(f"Unsupported image type: {content_type}")

    try:
        data = base64.b64decode(match.group(2), validate=True)
    except (binascii.Error, ValueError):
        raise ValueError("Invalid base64 image data")
    return content_type, data


def validate_image(image_bytes):
    """Validate and sanitize uploaded image.

    - Checks file size
    - Verifies it's a real image via Pillow
    - Strips EXIF data by re-encoding
    - Converts to JPEG

    Returns:
        Sanitized JPEG bytes

    Raises:
        ValueError on invalid input
    """
    if len(image_bytes) > MAX_FILE_SIZE:
        raise ValueError(f"Image too large: {len(image_bytes)} bytes (max {MAX_FILE_SIZE})")

    try:
        img = PILImage.open(io.BytesIO(image_bytes))
        img.verify()  # verify it's a real image
    except Exception:
        raise ValueError("Invalid image file")

    # Re-open (verify() closes the file) and re-encode to strip EXIF
    img = PILImage.open(io.BytesIO(image_bytes))
    if img.mode not in ("RGB", "L"):
        img = img.convert("RGB")

    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=90)
    return buffer.getvalue()
