"""Tests for file validation and image compression helpers."""

import base64
import io
import re

import pytest
from PIL import Image

from kiosk.utils.exceptions import FileValidationError
from kiosk.utils.files import (
    MAX_IMAGE_SIZE,
    VisitorFile,
    compress_image,
    data_url_to_bytes,
    generate_file_name,
    validate_image_file,
    validate_pdf_file,
)


def _file(content: bytes, content_type: str = "image/jpeg", filename: str = "photo.jpg") -> VisitorFile:
    return VisitorFile(content=content, filename=filename, content_type=content_type, column_id="files")


class TestValidation:
    """Tests for image and PDF validation."""

    def test_accepts_supported_image(self, photo_bytes):
        validate_image_file(_file(photo_bytes))

    def test_rejects_unsupported_type(self):
        """GIFs are not accepted."""
        with pytest.raises(FileValidationError, match="Unsupported image format"):
            validate_image_file(_file(b"GIF89a", "image/gif", "photo.gif"))

    def test_rejects_oversized_image(self):
        """Images over 5MB are rejected."""
        with pytest.raises(FileValidationError, match="Maximum size is 5MB"):
            validate_image_file(_file(b"\0" * (MAX_IMAGE_SIZE + 1)))

    def test_pdf_validation(self):
        validate_pdf_file(_file(b"%PDF-1.4", "application/pdf", "nda.pdf"))

        with pytest.raises(FileValidationError, match="must be a PDF"):
            validate_pdf_file(_file(b"text", "text/plain", "nda.txt"))


class TestCompressImage:
    """Tests for compress_image."""

    def test_downscales_to_max_width(self, photo_bytes):
        """A 1600x1200 photo is reduced to 800x600."""
        compressed = compress_image(_file(photo_bytes), max_width=800, quality=0.85)

        with Image.open(io.BytesIO(compressed.content)) as img:
            assert img.size == (800, 600)
            assert img.format == "JPEG"
        assert compressed.filename == "photo.jpg"

    def test_does_not_upscale(self, image_factory):
        """Images already within bounds keep their size."""
        small = image_factory("JPEG", (200, 100))
        compressed = compress_image(_file(small), max_width=800)

        with Image.open(io.BytesIO(compressed.content)) as img:
            assert img.size == (200, 100)

    def test_keeps_png_format(self, signature_bytes):
        compressed = compress_image(_file(signature_bytes, "image/png", "signature.png"))

        with Image.open(io.BytesIO(compressed.content)) as img:
            assert img.format == "PNG"

    def test_undecodable_content_raises(self):
        """Bytes that are not an image fail validation."""
        with pytest.raises(FileValidationError, match="Failed to compress image"):
            compress_image(_file(b"definitely not a jpeg"))


class TestDataUrls:
    """Tests for data_url_to_bytes and generate_file_name."""

    def test_decodes_base64_data_url(self, signature_bytes):
        url = "data:image/png;base64," + base64.b64encode(signature_bytes).decode("ascii")

        content, mime = data_url_to_bytes(url)

        assert content == signature_bytes
        assert mime == "image/png"

    def test_rejects_non_data_url(self):
        with pytest.raises(ValueError, match="Invalid data URL"):
            data_url_to_bytes("https://example.com/signature.png")

    def test_rejects_bad_base64(self):
        with pytest.raises(ValueError, match="Invalid base64"):
            data_url_to_bytes("data:image/png;base64,@@@")

    def test_generate_file_name(self):
        """File names carry a millisecond UTC timestamp."""
        name = generate_file_name("Jane_Doe_photo", "jpg")

        assert re.fullmatch(r"Jane_Doe_photo_\d{4}-\d{2}-\d{2}T\d{2}-\d{2}-\d{2}-\d{3}Z\.jpg", name)
