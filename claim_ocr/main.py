"""Entry point for the claim OCR API server."""

import uvicorn

from claim_ocr.api.app import app
from claim_ocr.utils.config import load_config
from claim_ocr.utils.logger import get_logger, setup_logging

logger = get_logger(__name__)


def main() -> None:
    """Serve the API on the configured host and port."""
    config = load_config()
    setup_logging(config.log_level)
    logger.info("Serving claim OCR API on %s:%d", config.server.host, config.server.port)
    uvicorn.run(app, host=config.server.host, port=config.server.port)


if __name__ == "__main__":
    main()
