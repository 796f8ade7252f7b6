"""Pydantic request/response schemas for the FastAPI endpoints."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from claim_ocr.models import ClaimRecord


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ExtractionResponse(_CamelModel):
    """Response schema for a successful claim extraction."""

    raw_text: str
    record: ClaimRecord
    media_type: str
    processing_time_ms: float


class FieldInfo(_CamelModel):
    """A claim field and how many patterns can fill it."""

    name: str
    alias: str
    pattern_count: int


class FieldsResponse(_CamelModel):
    """Response schema listing the claim schema fields."""

    fields: list[FieldInfo]


class HealthResponse(_CamelModel):
    """Response schema for the health check endpoint."""

    status: str
    version: str
    tesseract_available: bool
    pdf_renderer_available: bool
