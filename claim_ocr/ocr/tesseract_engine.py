"""Tesseract OCR engine wrapper.

The engine is a scoped resource: it is opened before recognition and
closed afterwards, whatever the outcome. Anything exposing the same
``open``/``close``/``recognize`` surface can stand in for it.
"""

import io
from typing import Protocol, Self

import pytesseract
from PIL import Image, UnidentifiedImageError

from claim_ocr.errors import RecognitionFailedError
from claim_ocr.models import ImageBuffer
from claim_ocr.utils.config import OCRConfig
from claim_ocr.utils.logger import get_logger

logger = get_logger(__name__)


class TextRecognizer(Protocol):
    """Recognizer contract used by the claim pipeline."""

    def open(self) -> None: ...

    def close(self) -> None: ...

    def recognize(self, buffer: ImageBuffer) -> str: ...

    def __enter__(self) -> Self: ...

    def __exit__(self, *exc_info: object) -> None: ...


class TesseractEngine:
    """Wrapper around Tesseract OCR for claim document text extraction.

    Args:
        config: OCR settings (binary path, language, page segmentation
            mode, per-call timeout).
    """

    def __init__(self, config: OCRConfig | None = None) -> None:
        self.config = config or OCRConfig()
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def open(self) -> None:
        """Acquire the engine, checking the Tesseract binary is reachable.

        Raises:
            RecognitionFailedError: If Tesseract is not installed or fails
                to report its version.
        """
        if self.config.tesseract_cmd:
            pytesseract.pytesseract.tesseract_cmd = self.config.tesseract_cmd
        try:
            version = pytesseract.get_tesseract_version()
        except pytesseract.TesseractNotFoundError as exc:
            raise RecognitionFailedError("Tesseract is not installed") from exc
        except (OSError, pytesseract.TesseractError) as exc:
            raise RecognitionFailedError(f"Tesseract unavailable: {exc}") from exc
        self._open = True
        logger.debug("Tesseract %s ready (lang=%s)", version, self.config.default_lang)

    def close(self) -> None:
        """Release the engine. Safe to call more than once."""
        if self._open:
            logger.debug("Tesseract engine released")
        self._open = False

    def __enter__(self) -> Self:
        self.open()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def recognize(self, buffer: ImageBuffer) -> str:
        """Run OCR over an image buffer.

        Args:
            buffer: Image bytes produced by the rasterizer.

        Returns:
            The full recognized text.

        Raises:
            RecognitionFailedError: If the engine is closed, the image cannot
                be decoded, or Tesseract errors or times out.
        """
        if not self._open:
            raise RecognitionFailedError("Tesseract engine is not open")

        try:
            with Image.open(io.BytesIO(buffer.data)) as image:
                text = pytesseract.image_to_string(
                    image,
                    lang=self.config.default_lang,
                    config=f"--psm {self.config.psm}",
                    timeout=self.config.timeout_seconds,
                )
        except UnidentifiedImageError as exc:
            raise RecognitionFailedError(f"Cannot decode image: {exc}") from exc
        except pytesseract.TesseractError as exc:
            raise RecognitionFailedError(f"Tesseract failed: {exc}") from exc
        except RuntimeError as exc:
            # pytesseract signals an expired ``timeout`` with a bare RuntimeError
            raise RecognitionFailedError(f"Tesseract timed out: {exc}") from exc

        logger.info("OCR recognized %d characters", len(text))
        return text
