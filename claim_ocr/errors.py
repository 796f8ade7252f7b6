"""Error kinds raised by the claim extraction pipeline."""

from enum import StrEnum


class ErrorKind(StrEnum):
    """Terminal failure categories reported to callers."""

    UNSUPPORTED_MEDIA_TYPE = "UnsupportedMediaType"
    UNRENDERABLE_DOCUMENT = "UnrenderableDocument"
    RECOGNITION_FAILED = "RecognitionFailed"
    EXTRACTION_FAILED = "ExtractionFailed"


class ClaimOCRError(Exception):
    """Base exception for a failed pipeline stage."""

    kind: ErrorKind = ErrorKind.EXTRACTION_FAILED

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, str]:
        """Return the ``{errorKind, message}`` body handed to callers."""
        return {"errorKind": self.kind.value, "message": self.message}


class UnsupportedMediaTypeError(ClaimOCRError):
    """The declared media type is neither a PDF nor a supported image."""

    kind = ErrorKind.UNSUPPORTED_MEDIA_TYPE


class UnrenderableDocumentError(ClaimOCRError):
    """The document could not be parsed or has no page to render."""

    kind = ErrorKind.UNRENDERABLE_DOCUMENT


class RecognitionFailedError(ClaimOCRError):
    """The OCR engine errored, was unavailable, or timed out."""

    kind = ErrorKind.RECOGNITION_FAILED


class ExtractionFailedError(ClaimOCRError):
    """Unexpected fault while mapping text onto the claim schema."""

    kind = ErrorKind.EXTRACTION_FAILED


class PipelineBusyError(RuntimeError):
    """A run was requested while another run is still in flight."""
