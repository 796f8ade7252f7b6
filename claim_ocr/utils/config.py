"""Configuration management for the claim OCR system.

Loads and validates YAML configuration with sensible defaults
for rasterization, OCR, and field extraction settings.
"""

import logging
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("configs/config.yaml")


class RasterizerConfig(BaseModel):
    """Configuration for turning uploaded documents into images."""

    pdf_scale: float = Field(default=2.0, ge=2.0)
    base_dpi: int = Field(default=72, gt=0)

    @property
    def pdf_dpi(self) -> int:
        """Render resolution for the first PDF page."""
        return int(self.base_dpi * self.pdf_scale)


class OCRConfig(BaseModel):
    """Configuration for Tesseract OCR engine."""

    tesseract_cmd: str | None = None
    default_lang: str = "eng"
    psm: int = 3
    timeout_seconds: float = Field(default=120.0, gt=0)


class ExtractionConfig(BaseModel):
    """Configuration for claim field extraction."""

    patterns_path: str | None = None


class ServerConfig(BaseModel):
    """Bind address for the HTTP API server."""

    host: str = "0.0.0.0"
    port: int = Field(default=8000, gt=0, lt=65536)


class AppConfig(BaseModel):
    """Top-level application configuration."""

    rasterizer: RasterizerConfig = Field(default_factory=RasterizerConfig)
    ocr: OCRConfig = Field(default_factory=OCRConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    log_level: str = "INFO"


def load_config(path: Path | None = None) -> AppConfig:
    """Load configuration from a YAML file.

    Args:
        path: Path to the YAML configuration file.
            Defaults to configs/config.yaml.

    Returns:
        Validated application configuration.
    """
    if path is None:
        path = DEFAULT_CONFIG_PATH

    if path.exists():
        logger.info("Loading configuration from %s", path)
        with open(path) as f:
            raw = yaml.safe_load(f) or {}
        return AppConfig(**raw)

    logger.info("No config file found at %s, using defaults", path)
    return AppConfig()
