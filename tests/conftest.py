"""Shared test fixtures for the claim OCR test suite."""

import io
from pathlib import Path

import pytest
from PIL import Image

DENTAL_INVOICE_TEXT = (
    "Provider: City Dental Clinic\nInvoice #12345\nAmount: 150.00\nDate: 03/15/2024"
)


def _encode(fmt: str) -> bytes:
    image = Image.new("RGB", (300, 200), "white")
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    """A small white PNG image."""
    return _encode("PNG")


@pytest.fixture
def jpeg_bytes() -> bytes:
    """A small white JPEG image."""
    return _encode("JPEG")


@pytest.fixture
def claim_text() -> str:
    """OCR text of a typical dental invoice."""
    return DENTAL_INVOICE_TEXT


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def config_dir(project_root: Path) -> Path:
    """Return the configs directory path."""
    return project_root / "configs"
