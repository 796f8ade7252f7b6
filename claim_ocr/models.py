"""Core data types shared by the rasterizer, extractor, and pipeline."""

from dataclasses import dataclass, field
from enum import StrEnum

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

PDF_MEDIA_TYPE = "application/pdf"
IMAGE_MEDIA_TYPES: frozenset[str] = frozenset({"image/jpeg", "image/jpg", "image/png"})
SUPPORTED_MEDIA_TYPES: frozenset[str] = IMAGE_MEDIA_TYPES | {PDF_MEDIA_TYPE}


def normalize_media_type(media_type: str | None) -> str:
    """Lower-case a media type and drop any ``;``-separated parameters."""
    if not media_type:
        return ""
    return media_type.split(";", 1)[0].strip().lower()


class ClaimRecord(BaseModel):
    """Structured claim fields extracted from one document.

    Every field is always present; a field nothing matched is ``""``.
    Instances are frozen, use ``model_copy(update=...)`` for edits.
    Serialized keys are camelCase (``providerName``, ``invoiceNumber``).
    """

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    provider_name: str = ""
    country: str = ""
    city: str = ""
    service_date: str = ""
    currency: str = ""
    amount: str = ""
    description: str = ""
    number_of_treatments: str = ""
    invoice_number: str = ""

    def to_dict(self) -> dict[str, str]:
        return self.model_dump(by_alias=True)

    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


CLAIM_FIELDS: tuple[str, ...] = tuple(ClaimRecord.model_fields)


@dataclass(frozen=True)
class ImageBuffer:
    """Image bytes ready for text recognition."""

    data: bytes
    media_type: str
    page_count: int | None = None

    def __len__(self) -> int:
        return len(self.data)


class PipelineState(StrEnum):
    """Stages of a single extraction run."""

    IDLE = "idle"
    RASTERIZING = "rasterizing"
    RECOGNIZING = "recognizing"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass(frozen=True)
class ProgressEvent:
    """Progress notification emitted at stage boundaries."""

    percent: int
    step_label: str
    state: PipelineState


@dataclass
class PipelineResult:
    """Successful run output: the OCR text and the extracted record."""

    raw_text: str
    record: ClaimRecord = field(default_factory=ClaimRecord)

    def to_dict(self) -> dict[str, object]:
        return {"rawText": self.raw_text, "record": self.record.to_dict()}
