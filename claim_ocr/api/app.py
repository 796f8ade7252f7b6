"""FastAPI application for the claim OCR service.

Provides REST endpoints for claim extraction, schema listing, and
health checks.
"""

import shutil
import time
from functools import lru_cache
from typing import Annotated

from fastapi import FastAPI, File, HTTPException, UploadFile
from fastapi.middleware.cors import CORSMiddleware

from claim_ocr import __version__
from claim_ocr.errors import ClaimOCRError, ErrorKind, PipelineBusyError
from claim_ocr.models import CLAIM_FIELDS, ClaimRecord, normalize_media_type
from claim_ocr.pipeline import ClaimPipeline
from claim_ocr.utils.config import load_config
from claim_ocr.utils.logger import get_logger

from .schemas import ExtractionResponse, FieldInfo, FieldsResponse, HealthResponse

logger = get_logger(__name__)

app = FastAPI(
    title="Claim OCR API",
    description="Extract insurance claim fields from invoices and receipts",
    version=__version__,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_STATUS_BY_KIND: dict[ErrorKind, int] = {
    ErrorKind.UNSUPPORTED_MEDIA_TYPE: 415,
    ErrorKind.UNRENDERABLE_DOCUMENT: 422,
    ErrorKind.RECOGNITION_FAILED: 502,
    ErrorKind.EXTRACTION_FAILED: 500,
}


@lru_cache(maxsize=1)
def _get_pipeline() -> ClaimPipeline:
    """Return the pipeline shared by every request to this server.

    Only one extraction runs at a time; an upload arriving while another
    is in flight is answered with 409.
    """
    return ClaimPipeline(load_config())


@app.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Return system health status."""
    return HealthResponse(
        status="healthy",
        version=__version__,
        tesseract_available=shutil.which("tesseract") is not None,
        pdf_renderer_available=shutil.which("pdftoppm") is not None,
    )


@app.get("/fields", response_model=FieldsResponse)
async def list_fields() -> FieldsResponse:
    """List the claim fields and how many patterns back each one."""
    counts = _get_pipeline().extractor.rules.pattern_counts()
    return FieldsResponse(
        fields=[
            FieldInfo(
                name=name,
                alias=ClaimRecord.model_fields[name].alias or name,
                pattern_count=counts[name],
            )
            for name in CLAIM_FIELDS
        ]
    )


@app.post("/extract", response_model=ExtractionResponse)
async def extract_claim(
    file: Annotated[UploadFile, File(...)],
) -> ExtractionResponse:
    """Extract claim fields from an uploaded PDF, JPEG or PNG.

    Args:
        file: Uploaded claim document.

    Returns:
        Recognized text and the extracted claim record.
    """
    start_time = time.time()
    media_type = normalize_media_type(file.content_type)
    pipeline = _get_pipeline()

    try:
        content = await file.read()
        result = await pipeline.run(content, media_type)
    except ClaimOCRError as exc:
        logger.error("Extraction of %s failed: %s", file.filename, exc.message)
        raise HTTPException(
            status_code=_STATUS_BY_KIND[exc.kind], detail=exc.to_payload()
        ) from exc
    except PipelineBusyError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc

    return ExtractionResponse(
        raw_text=result.raw_text,
        record=result.record,
        media_type=media_type,
        processing_time_ms=(time.time() - start_time) * 1000,
    )
