"""Entry point for Zakat Chat server."""

import asyncio
import logging

from dotenv import load_dotenv

from .config.settings import Settings
from .oracle import OpenAIIntentOracle
from .record_store import RecordStore
from .repository import create_repositories
from .server import ZakatChatServer

logger = logging.getLogger(__name__)


async def run(settings: Settings) -> None:
    """Build the store, oracle and server, then serve forever."""
    zakat_repo, operator_repo = await create_repositories(settings)
    record_store = RecordStore(zakat_repo, operator_repo)
    oracle = OpenAIIntentOracle(settings.oracle)

    server = ZakatChatServer(
        settings=settings,
        record_store=record_store,
        oracle=oracle,
    )
    await server.start()


def main() -> None:
    """Start the Zakat Chat server."""
    # Load environment variables
    load_dotenv()

    settings = Settings()

    logging.basicConfig(
        format=settings.logging.format,
        level=getattr(logging, settings.logging.level.upper(), logging.INFO),
    )
    # Request URLs and headers are noisy at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    if not settings.oracle.is_configured:
        raise ValueError("OPENAI_API_KEY must be set in environment")

    try:
        asyncio.run(run(settings))
    except KeyboardInterrupt:
        logger.info("Server shutdown.")


if __name__ == "__main__":
    main()
