"""Volatile in-memory repository implementation."""

import itertools
import logging
from typing import Iterable, Optional

from ..models import Operator, ZakatReport
from .base import OperatorRepository, ZakatRepository

logger = logging.getLogger(__name__)


class InMemoryZakatRepository(ZakatRepository):
    """List-backed zakat report repository.

    IDs are handed out from a counter that starts after the highest seeded
    ID and never goes back, so deleted IDs are not reused.
    """

    def __init__(self, reports: Iterable[ZakatReport] = (), next_id: Optional[int] = None):
        self._reports: list[ZakatReport] = list(reports)
        if next_id is None:
            next_id = max((r.id for r in self._reports), default=0) + 1
        self._ids = itertools.count(next_id)

    def get_all(self) -> list[ZakatReport]:
        return list(self._reports)

    def get_by_id(self, id: int) -> Optional[ZakatReport]:
        for report in self._reports:
            if report.id == id:
                return report
        return None

    def get_by_volunteer(self, volunteer_code: str) -> list[ZakatReport]:
        return [r for r in self._reports if r.volunteer_code == volunteer_code]

    def next_id(self) -> int:
        return next(self._ids)

    def add(self, report: ZakatReport) -> None:
        self._reports.append(report)

    def replace(self, report: ZakatReport) -> None:
        for index, existing in enumerate(self._reports):
            if existing.id == report.id:
                self._reports[index] = report
                return
        raise KeyError(report.id)

    def delete(self, id: int) -> bool:
        before = len(self._reports)
        self._reports = [r for r in self._reports if r.id != id]
        return len(self._reports) != before

    def count(self) -> int:
        return len(self._reports)


class InMemoryOperatorRepository(OperatorRepository):
    """Dict-backed operator repository keyed by volunteer code."""

    def __init__(self, operators: Iterable[Operator] = ()):
        self._operators: dict[str, Operator] = {}
        for operator in operators:
            if operator.volunteer_code in self._operators:
                logger.warning(f"Duplicate seeded operator {operator.volunteer_code} ignored")
                continue
            self._operators[operator.volunteer_code] = operator

    def get_all(self) -> list[Operator]:
        return list(self._operators.values())

    def get_by_code(self, volunteer_code: str) -> Optional[Operator]:
        return self._operators.get(volunteer_code)

    def create(self, operator: Operator) -> None:
        self._operators[operator.volunteer_code] = operator
