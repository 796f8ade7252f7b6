"""Tests for the FastAPI REST endpoints."""

import asyncio
import threading
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from fastapi.testclient import TestClient

from claim_ocr.api.app import _get_pipeline, app
from claim_ocr.errors import (
    PipelineBusyError,
    RecognitionFailedError,
    UnrenderableDocumentError,
)
from claim_ocr.extraction.rules import DEFAULT_RULES
from claim_ocr.models import ClaimRecord, ImageBuffer, PipelineResult
from claim_ocr.pipeline import ClaimPipeline


@pytest.fixture
def client() -> TestClient:
    """Create a FastAPI test client."""
    return TestClient(app)


def _mock_pipeline(result=None, error: Exception | None = None) -> MagicMock:
    pipeline = MagicMock()
    pipeline.run = AsyncMock(return_value=result, side_effect=error)
    pipeline.extractor.rules = DEFAULT_RULES
    return pipeline


def _result() -> PipelineResult:
    return PipelineResult(
        raw_text="Provider: City Dental Clinic\nInvoice #12345",
        record=ClaimRecord(provider_name="city dental clinic", invoice_number="12345"),
    )


class TestHealthEndpoint:
    """Tests for the /health endpoint."""

    def test_health_returns_ok(self, client: TestClient) -> None:
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["version"] == "1.0.0"
        assert isinstance(data["tesseractAvailable"], bool)
        assert isinstance(data["pdfRendererAvailable"], bool)


class TestFieldsEndpoint:
    """Tests for the /fields endpoint."""

    def test_lists_all_fields(self, client: TestClient) -> None:
        response = client.get("/fields")
        assert response.status_code == 200
        fields = response.json()["fields"]
        assert len(fields) == 9
        assert fields[0] == {
            "name": "provider_name",
            "alias": "providerName",
            "patternCount": 4,
        }

    def test_aliases_are_camel_case(self, client: TestClient) -> None:
        aliases = {f["alias"] for f in client.get("/fields").json()["fields"]}
        assert "numberOfTreatments" in aliases
        assert "invoiceNumber" in aliases


class TestExtractEndpoint:
    """Tests for the /extract endpoint."""

    @patch("claim_ocr.api.app._get_pipeline")
    def test_extract_success(
        self, mock_get: MagicMock, client: TestClient, png_bytes: bytes
    ) -> None:
        pipeline = _mock_pipeline(result=_result())
        mock_get.return_value = pipeline

        response = client.post(
            "/extract", files={"file": ("claim.png", png_bytes, "image/png")}
        )

        assert response.status_code == 200
        data = response.json()
        assert data["rawText"].startswith("Provider:")
        assert data["record"]["providerName"] == "city dental clinic"
        assert data["record"]["invoiceNumber"] == "12345"
        assert data["record"]["country"] == ""
        assert data["mediaType"] == "image/png"
        assert "processingTimeMs" in data
        pipeline.run.assert_awaited_once_with(png_bytes, "image/png")

    def test_extract_unsupported_file_type(self, client: TestClient) -> None:
        response = client.post(
            "/extract",
            files={"file": ("claim.txt", b"plain text", "text/plain")},
        )
        assert response.status_code == 415
        detail = response.json()["detail"]
        assert detail["errorKind"] == "UnsupportedMediaType"
        assert "text/plain" in detail["message"]

    @patch("claim_ocr.api.app._get_pipeline")
    def test_extract_unrenderable(
        self, mock_get: MagicMock, client: TestClient
    ) -> None:
        mock_get.return_value = _mock_pipeline(
            error=UnrenderableDocumentError("PDF has no pages")
        )

        response = client.post(
            "/extract", files={"file": ("claim.pdf", b"%PDF-1.4", "application/pdf")}
        )

        assert response.status_code == 422
        assert response.json()["detail"] == {
            "errorKind": "UnrenderableDocument",
            "message": "PDF has no pages",
        }

    @patch("claim_ocr.api.app._get_pipeline")
    def test_extract_recognition_failed(
        self, mock_get: MagicMock, client: TestClient, png_bytes: bytes
    ) -> None:
        mock_get.return_value = _mock_pipeline(
            error=RecognitionFailedError("Tesseract is not installed")
        )

        response = client.post(
            "/extract", files={"file": ("claim.png", png_bytes, "image/png")}
        )

        assert response.status_code == 502
        assert response.json()["detail"]["errorKind"] == "RecognitionFailed"

    @patch("claim_ocr.api.app._get_pipeline")
    def test_extract_busy(
        self, mock_get: MagicMock, client: TestClient, png_bytes: bytes
    ) -> None:
        mock_get.return_value = _mock_pipeline(error=PipelineBusyError("busy"))

        response = client.post(
            "/extract", files={"file": ("claim.png", png_bytes, "image/png")}
        )

        assert response.status_code == 409


class GatedRecognizer:
    """Recognizer that blocks until the test releases it."""

    started = threading.Event()
    gate = threading.Event()

    def open(self) -> None:
        pass

    def close(self) -> None:
        pass

    def recognize(self, buffer: ImageBuffer) -> str:
        self.started.set()
        self.gate.wait(timeout=5)
        return "Invoice #7"


class TestSharedPipeline:
    """Tests for the single pipeline shared across requests."""

    def test_same_pipeline_for_every_request(self) -> None:
        assert _get_pipeline() is _get_pipeline()

    @pytest.mark.asyncio
    async def test_concurrent_upload_gets_409(self, png_bytes: bytes) -> None:
        GatedRecognizer.started.clear()
        GatedRecognizer.gate.clear()
        pipeline = ClaimPipeline(recognizer_factory=GatedRecognizer)
        files = {"file": ("claim.png", png_bytes, "image/png")}

        with patch("claim_ocr.api.app._get_pipeline", return_value=pipeline):
            transport = httpx.ASGITransport(app=app)
            async with httpx.AsyncClient(
                transport=transport, base_url="http://test"
            ) as client:
                first = asyncio.create_task(client.post("/extract", files=files))
                try:
                    for _ in range(200):
                        if GatedRecognizer.started.is_set():
                            break
                        await asyncio.sleep(0.01)
                    second = await client.post("/extract", files=files)
                finally:
                    GatedRecognizer.gate.set()
                first_response = await first

        assert second.status_code == 409
        assert first_response.status_code == 200
        assert first_response.json()["record"]["invoiceNumber"] == "7"
