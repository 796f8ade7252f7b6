"""Document rasterization for claim OCR.

Turns an uploaded PDF or image into a single image buffer. PDFs are
rendered from their first page only; JPEG and PNG uploads pass through
untouched.
"""

import io

from pdf2image import convert_from_bytes
from pdf2image.pdf2image import pdfinfo_from_bytes
from PIL import Image

from claim_ocr.errors import UnrenderableDocumentError, UnsupportedMediaTypeError
from claim_ocr.models import (
    IMAGE_MEDIA_TYPES,
    PDF_MEDIA_TYPE,
    ImageBuffer,
    normalize_media_type,
)
from claim_ocr.utils.config import RasterizerConfig
from claim_ocr.utils.logger import get_logger

logger = get_logger(__name__)

RENDERED_MEDIA_TYPE = "image/png"


class Rasterizer:
    """Converts claim documents into OCR-ready image buffers.

    Args:
        config: Rasterizer settings. ``pdf_scale`` controls the upscaling
            applied when rendering PDF pages.
    """

    def __init__(self, config: RasterizerConfig | None = None) -> None:
        self.config = config or RasterizerConfig()

    @staticmethod
    def check_media_type(media_type: str) -> str:
        """Validate a declared media type.

        Args:
            media_type: Content type reported by the caller.

        Returns:
            The normalized media type.

        Raises:
            UnsupportedMediaTypeError: If the type is not a PDF, JPEG or PNG.
        """
        normalized = normalize_media_type(media_type)
        if normalized != PDF_MEDIA_TYPE and normalized not in IMAGE_MEDIA_TYPES:
            raise UnsupportedMediaTypeError(
                f"Unsupported media type: {media_type or '<none>'}"
            )
        return normalized

    def rasterize(self, data: bytes, media_type: str) -> ImageBuffer:
        """Produce the image buffer for the first page of a document.

        Args:
            data: Raw document bytes.
            media_type: Declared media type of ``data``.

        Returns:
            Image buffer for text recognition.

        Raises:
            UnsupportedMediaTypeError: If the media type is not supported.
            UnrenderableDocumentError: If the document is empty, cannot be
                parsed, or has no pages.
        """
        normalized = self.check_media_type(media_type)
        if not data:
            raise UnrenderableDocumentError("Document is empty")

        if normalized == PDF_MEDIA_TYPE:
            return self._render_first_page(data)

        logger.debug("Passing through %s image (%d bytes)", normalized, len(data))
        return ImageBuffer(data=data, media_type=normalized)

    def _render_first_page(self, data: bytes) -> ImageBuffer:
        """Render page 1 of a PDF to PNG bytes.

        Args:
            data: Raw PDF bytes.

        Returns:
            PNG image buffer with the document's page count attached.
        """
        dpi = self.config.pdf_dpi
        try:
            page_count = int(pdfinfo_from_bytes(data).get("Pages", 0))
            if page_count < 1:
                raise UnrenderableDocumentError("PDF has no pages")
            pages = convert_from_bytes(data, dpi=dpi, first_page=1, last_page=1)
        except UnrenderableDocumentError:
            raise
        except Exception as exc:
            raise UnrenderableDocumentError(f"PDF rendering failed: {exc}") from exc

        if not pages:
            raise UnrenderableDocumentError("PDF has no pages")

        try:
            png = _encode_png(pages[0])
        finally:
            for page in pages:
                page.close()

        logger.info(
            "Rendered page 1 of %d at %d DPI (%d bytes)", page_count, dpi, len(png)
        )
        return ImageBuffer(
            data=png, media_type=RENDERED_MEDIA_TYPE, page_count=page_count
        )


def _encode_png(image: Image.Image) -> bytes:
    buf = io.BytesIO()
    image.save(buf, format="PNG")
    return buf.getvalue()
