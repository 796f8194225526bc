"""Gateway entry point."""

import logging

from aiohttp import web

from src.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


def main() -> None:
    """Start the HTTP server."""
    from src.server.app import create_app

    if settings.memory_enabled:
        logger.info("Memory enabled (Mem0 at %s)", settings.mem0_api_url)
    else:
        logger.info("Memory disabled: MEM0_API_KEY not set")

    logger.info(
        "Starting gateway on %s:%d with model %s...",
        settings.host,
        settings.port,
        settings.chat_model,
    )
    web.run_app(create_app(settings), host=settings.host, port=settings.port, print=None)


if __name__ == "__main__":
    main()
