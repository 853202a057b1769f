"""Repository factory."""

from typing import Tuple

from ..config.settings import Settings
from .base import OperatorRepository, ZakatRepository
from .memory import InMemoryOperatorRepository, InMemoryZakatRepository
from .seed import load_seed


async def create_repositories(settings: Settings) -> Tuple[ZakatRepository, OperatorRepository]:
    """Create in-memory repositories filled with the configured seed.

    Args:
        settings: Application settings

    Returns:
        Tuple of (zakat_repo, operator_repo)
    """
    seed = await load_seed(settings.storage.seed_path)
    return (
        InMemoryZakatRepository(seed.reports),
        InMemoryOperatorRepository(seed.operators),
    )
