"""Main entry point - runs the quoting API."""

import logging

import uvicorn

from crosspay.api.app import create_app
from crosspay.config import get_settings

logger = logging.getLogger(__name__)


def main():
    """Main entry point."""
    settings = get_settings()

    # Configure logging
    log_level = logging.DEBUG if settings.debug else logging.INFO
    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    logger.info("Starting crosspay...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Providers: {', '.join(settings.provider_ids) or 'none'}")

    app = create_app()
    logger.info(f"Starting API server on {settings.api_host}:{settings.api_port}")
    uvicorn.run(
        app,
        host=settings.api_host,
        port=settings.api_port,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()
