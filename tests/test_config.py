"""Tests for configuration loading and validation."""

from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from claim_ocr.utils.config import (
    AppConfig,
    ExtractionConfig,
    OCRConfig,
    RasterizerConfig,
    ServerConfig,
    load_config,
)


class TestRasterizerConfig:
    """Tests for RasterizerConfig defaults and bounds."""

    def test_defaults(self) -> None:
        cfg = RasterizerConfig()
        assert cfg.pdf_scale == 2.0
        assert cfg.base_dpi == 72
        assert cfg.pdf_dpi == 144

    def test_larger_scale(self) -> None:
        assert RasterizerConfig(pdf_scale=2.5).pdf_dpi == 180

    @pytest.mark.parametrize("scale", [0.5, 1.0, 1.99])
    def test_scale_floor(self, scale: float) -> None:
        with pytest.raises(ValidationError):
            RasterizerConfig(pdf_scale=scale)


class TestOCRConfig:
    """Tests for OCRConfig defaults and overrides."""

    def test_defaults(self) -> None:
        cfg = OCRConfig()
        assert cfg.default_lang == "eng"
        assert cfg.psm == 3
        assert cfg.timeout_seconds == 120.0
        assert cfg.tesseract_cmd is None

    def test_custom_lang(self) -> None:
        cfg = OCRConfig(default_lang="fra", psm=6)
        assert cfg.default_lang == "fra"
        assert cfg.psm == 6

    def test_timeout_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            OCRConfig(timeout_seconds=0)


class TestServerConfig:
    """Tests for ServerConfig defaults and bounds."""

    def test_defaults(self) -> None:
        cfg = ServerConfig()
        assert cfg.host == "0.0.0.0"
        assert cfg.port == 8000

    def test_port_range(self) -> None:
        with pytest.raises(ValidationError):
            ServerConfig(port=70000)


class TestAppConfig:
    """Tests for the top-level AppConfig."""

    def test_defaults(self) -> None:
        cfg = AppConfig()
        assert isinstance(cfg.rasterizer, RasterizerConfig)
        assert isinstance(cfg.ocr, OCRConfig)
        assert isinstance(cfg.extraction, ExtractionConfig)
        assert cfg.extraction.patterns_path is None
        assert cfg.log_level == "INFO"

    def test_nested_override(self) -> None:
        cfg = AppConfig(ocr=OCRConfig(psm=11), log_level="DEBUG")
        assert cfg.ocr.psm == 11
        assert cfg.log_level == "DEBUG"


class TestLoadConfig:
    """Tests for the load_config function."""

    def test_load_default_config(self, config_dir: Path) -> None:
        cfg = load_config(config_dir / "config.yaml")
        assert isinstance(cfg, AppConfig)
        assert cfg.ocr.default_lang == "eng"
        assert cfg.rasterizer.pdf_scale == 2.0

    def test_load_missing_file_returns_defaults(self) -> None:
        cfg = load_config(Path("/nonexistent/path/config.yaml"))
        assert cfg == AppConfig()

    def test_load_custom_yaml(self, tmp_path: Path) -> None:
        config_data = {
            "rasterizer": {"pdf_scale": 3.0},
            "ocr": {"default_lang": "deu", "psm": 6, "timeout_seconds": 30},
            "extraction": {"patterns_path": "configs/patterns.yaml"},
            "log_level": "DEBUG",
        }
        config_file = tmp_path / "config.yaml"
        with open(config_file, "w") as f:
            yaml.dump(config_data, f)

        cfg = load_config(config_file)
        assert cfg.rasterizer.pdf_dpi == 216
        assert cfg.ocr.default_lang == "deu"
        assert cfg.ocr.timeout_seconds == 30
        assert cfg.extraction.patterns_path == "configs/patterns.yaml"
        assert cfg.log_level == "DEBUG"

    def test_load_invalid_scale(self, tmp_path: Path) -> None:
        config_file = tmp_path / "config.yaml"
        config_file.write_text("rasterizer:\n  pdf_scale: 1.0\n")
        with pytest.raises(ValidationError):
            load_config(config_file)

    def test_load_empty_yaml(self, tmp_path: Path) -> None:
        config_file = tmp_path / "empty.yaml"
        config_file.write_text("")
        assert isinstance(load_config(config_file), AppConfig)

    def test_load_none_defaults_to_standard_path(self) -> None:
        assert isinstance(load_config(), AppConfig)
