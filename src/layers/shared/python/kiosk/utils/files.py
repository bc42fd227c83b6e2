"""File helpers for visitor photo and signature uploads."""

import base64
import binascii
import io
import re
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from urllib.parse import unquote_to_bytes

import structlog
from PIL import Image, UnidentifiedImageError

from kiosk.utils.exceptions import FileValidationError

logger = structlog.get_logger()

SUPPORTED_IMAGE_TYPES = ["image/jpeg", "image/jpg", "image/png", "image/webp"]
SUPPORTED_PDF_TYPES = ["application/pdf"]
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10MB
MAX_IMAGE_SIZE = 5 * 1024 * 1024  # 5MB

_PIL_FORMATS = {
    "image/jpeg": "JPEG",
    "image/jpg": "JPEG",
    "image/png": "PNG",
    "image/webp": "WEBP",
}

_DATA_URL_RE = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(;[^,;]+)*),(?P<data>.*)$", re.DOTALL)


@dataclass(frozen=True)
class VisitorFile:
    """An in-memory file destined for a record store file column."""

    content: bytes
    filename: str
    content_type: str
    column_id: str

    @property
    def size(self) -> int:
        return len(self.content)


def validate_image_file(file: VisitorFile) -> None:
    """Check an image's type and size.

    Raises:
        FileValidationError: If the type is unsupported or the file is too large.
    """
    if file.content_type not in SUPPORTED_IMAGE_TYPES:
        raise FileValidationError(
            "Unsupported image format. Please use JPEG, PNG, or WebP.",
            filename=file.filename,
        )

    if file.size > MAX_IMAGE_SIZE:
        raise FileValidationError(
            "Image file is too large. Maximum size is 5MB.",
            filename=file.filename,
        )


def validate_pdf_file(file: VisitorFile) -> None:
    """Check a PDF's type and size.

    Raises:
        FileValidationError: If the file is not a PDF or is too large.
    """
    if file.content_type not in SUPPORTED_PDF_TYPES:
        raise FileValidationError("File must be a PDF document.", filename=file.filename)

    if file.size > MAX_FILE_SIZE:
        raise FileValidationError(
            "PDF file is too large. Maximum size is 10MB.",
            filename=file.filename,
        )


def compress_image(file: VisitorFile, max_width: int = 800, quality: float = 0.85) -> VisitorFile:
    """Downscale an image to fit max_width and re-encode it.

    The aspect ratio is kept and images already within bounds are not
    upscaled. Quality is given on the 0-1 scale and applies to lossy formats.

    Args:
        file: Image to compress.
        max_width: Maximum width and height in pixels.
        quality: Encoder quality between 0 and 1.

    Returns:
        A new VisitorFile with the compressed content.

    Raises:
        FileValidationError: If the content cannot be decoded as an image.
    """
    image_format = _PIL_FORMATS.get(file.content_type, "JPEG")

    try:
        with Image.open(io.BytesIO(file.content)) as img:
            img.load()
            original_size = img.size
            img.thumbnail((max_width, max_width), Image.Resampling.LANCZOS)

            if image_format == "JPEG" and img.mode not in ("RGB", "L"):
                img = img.convert("RGB")

            output = io.BytesIO()
            save_kwargs = {"format": image_format}
            if image_format in ("JPEG", "WEBP"):
                save_kwargs["quality"] = int(round(quality * 100))
            else:
                save_kwargs["optimize"] = True
            img.save(output, **save_kwargs)
    except (UnidentifiedImageError, OSError) as e:
        raise FileValidationError(f"Failed to compress image: {e}", filename=file.filename) from e

    compressed = output.getvalue()

    logger.debug(
        "Image compressed",
        filename=file.filename,
        original_size=original_size,
        new_size=img.size,
        original_bytes=file.size,
        compressed_bytes=len(compressed),
    )

    return replace(file, content=compressed)


def data_url_to_bytes(data_url: str) -> tuple[bytes, str]:
    """Decode a data URL.

    Args:
        data_url: A ``data:<mime>;base64,<payload>`` string.

    Returns:
        Tuple of (decoded bytes, mime type).

    Raises:
        ValueError: If the string is not a valid data URL.
    """
    match = _DATA_URL_RE.match(data_url.strip())
    if not match:
        raise ValueError("Invalid data URL")

    mime = match.group("mime") or "text/plain"
    payload = match.group("data")

    if ";base64" in (match.group("params") or ""):
        try:
            return base64.b64decode(payload, validate=True), mime
        except binascii.Error as e:
            raise ValueError(f"Invalid base64 payload in data URL: {e}") from e

    return unquote_to_bytes(payload), mime


def generate_file_name(prefix: str, extension: str) -> str:
    """Build a timestamped file name such as ``photo_2024-01-15T10-30-00-000Z.jpg``."""
    now = datetime.now(timezone.utc)
    timestamp = now.strftime("%Y-%m-%dT%H-%M-%S-") + f"{now.microsecond // 1000:03d}Z"
    return f"{prefix}_{timestamp}.{extension}"
