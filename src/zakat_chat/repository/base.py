"""Abstract repository interfaces."""

from abc import ABC, abstractmethod
from typing import Optional

from ..models import Operator, ZakatReport


class ZakatRepository(ABC):
    """Abstract interface for zakat report storage."""

    @abstractmethod
    def get_all(self) -> list[ZakatReport]:
        """Get all reports in insertion order."""
        pass

    @abstractmethod
    def get_by_id(self, id: int) -> Optional[ZakatReport]:
        """Get a report by ID."""
        pass

    @abstractmethod
    def get_by_volunteer(self, volunteer_code: str) -> list[ZakatReport]:
        """Get all reports recorded by one operator."""
        pass

    @abstractmethod
    def next_id(self) -> int:
        """Reserve the next report ID."""
        pass

    @abstractmethod
    def add(self, report: ZakatReport) -> None:
        """Store a new report."""
        pass

    @abstractmethod
    def replace(self, report: ZakatReport) -> None:
        """Overwrite the report with the same ID."""
        pass

    @abstractmethod
    def delete(self, id: int) -> bool:
        """Remove a report. Returns False if it did not exist."""
        pass

    @abstractmethod
    def count(self) -> int:
        """Number of stored reports."""
        pass


class OperatorRepository(ABC):
    """Abstract interface for operator storage."""

    @abstractmethod
    def get_all(self) -> list[Operator]:
        """Get all operators."""
        pass

    @abstractmethod
    def get_by_code(self, volunteer_code: str) -> Optional[Operator]:
        """Get an operator by volunteer code."""
        pass

    @abstractmethod
    def create(self, operator: Operator) -> None:
        """Store a new operator."""
        pass
