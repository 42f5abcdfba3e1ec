"""
Format conversion for images sent to the vision model.

The model accepts PNG, JPEG, WEBP and GIF. PDFs are rendered to PNG (first
page only); any other image format Pillow can read is re-encoded as PNG.
No other preprocessing is done.
"""

import base64
import io
import logging

import fitz
from PIL import Image, ImageOps, UnidentifiedImageError

from greendocs.domain.errors import ValidationError

logger = logging.getLogger(__name__)

MODEL_IMAGE_TYPES = frozenset({"image/png", "image/jpeg", "image/webp", "image/gif"})

# Render PDFs at 2x the default 72 dpi so small print stays legible.
PDF_RENDER_ZOOM = 2.0


def _render_pdf_first_page(content: bytes) -> bytes:
    # FileDataError (a RuntimeError) on unparseable input, RuntimeError on
    # damaged page content.
    try:
        with fitz.open(stream=content, filetype="pdf") as doc:
            if doc.page_count == 0:
                raise ValidationError("PDF document has no pages")
            if doc.page_count > 1:
                logger.info(f"PDF has {doc.page_count} pages, sending the first page only")
            pixmap = doc[0].get_pixmap(matrix=fitz.Matrix(PDF_RENDER_ZOOM, PDF_RENDER_ZOOM))
            return pixmap.tobytes("png")
    except (fitz.FileDataError, RuntimeError) as e:
        raise ValidationError(f"Unreadable PDF document: {e}") from e


def _reencode_png(content: bytes) -> bytes:
    try:
        image = Image.open(io.BytesIO(content))
        image.load()
    except UnidentifiedImageError as e:
        raise ValidationError(f"Unsupported image content: {e}") from e
    except OSError as e:
        raise ValidationError(f"Corrupt image content: {e}") from e

    image = ImageOps.exif_transpose(image).convert("RGB")
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return buffer.getvalue()


def to_model_image(content: bytes, content_type: str) -> tuple[bytes, str]:
    """
    Convert document bytes into an image format the model accepts.

    Returns:
        (image bytes, MIME type)

    Raises:
        ValidationError: If the content is neither a PDF nor a readable image.
    """
    content_type = (content_type or "").lower()
    if content_type in MODEL_IMAGE_TYPES:
        return content, content_type
    if content_type == "application/pdf" or content.startswith(b"%PDF"):
        return _render_pdf_first_page(content), "image/png"
    return _reencode_png(content), "image/png"


def to_data_url(content: bytes, content_type: str) -> str:
    """Encode bytes as a base64 ``data:`` URL."""
    return f"data:{content_type};base64,{base64.b64encode(content).decode('ascii')}"
