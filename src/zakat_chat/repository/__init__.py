"""Repository layer for data access."""

from .base import OperatorRepository, ZakatRepository
from .factory import create_repositories
from .memory import InMemoryOperatorRepository, InMemoryZakatRepository

__all__ = [
    "ZakatRepository",
    "OperatorRepository",
    "InMemoryZakatRepository",
    "InMemoryOperatorRepository",
    "create_repositories",
]
