"""Startup seed data, optionally read from a JSON file."""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import aiofiles

from ..models import Operator, Role, ZakatReport, ZakatType

logger = logging.getLogger(__name__)


@dataclass
class SeedData:
    """Operators and reports to load into a fresh store."""
    operators: list[Operator] = field(default_factory=list)
    reports: list[ZakatReport] = field(default_factory=list)


def default_operators() -> list[Operator]:
    """Built-in operators used when no seed file is configured."""
    return [
        Operator(
            volunteer_code="ADM-111-AAA",
            password="admin123",
            name="Admin Pusat",
            laz_name="LAZ Pusat",
            description="Administrator pelaporan zakat",
            role=Role.ADMIN,
        ),
        Operator(
            volunteer_code="R001",
            password="relawan001",
            name="Relawan Satu",
            laz_name="LAZ Pusat",
            description="Relawan wilayah utara",
        ),
        Operator(
            volunteer_code="R002",
            password="relawan002",
            name="Relawan Dua",
            laz_name="LAZ Pusat",
            description="Relawan wilayah selatan",
        ),
    ]


def default_reports() -> list[ZakatReport]:
    """Built-in reports used when no seed file is configured."""
    return [
        ZakatReport(
            id=1,
            volunteer_code="R001",
            muzakki_name="Ahmad Subagja",
            zakat_type=ZakatType.FITRAH,
            amount=45000,
            proof_of_transfer="bukti-ahmad.png",
            created_at=datetime(2024, 4, 8, 10, 0, tzinfo=timezone.utc),
        ),
        ZakatReport(
            id=2,
            volunteer_code="R002",
            muzakki_name="Siti Aminah",
            zakat_type=ZakatType.MAL,
            amount=2500000,
            proof_of_transfer="tf-siti.jpg",
            created_at=datetime(2024, 4, 9, 14, 30, tzinfo=timezone.utc),
        ),
    ]


def _to_operator(data: dict) -> Operator:
    """Convert dict to Operator model."""
    return Operator(
        volunteer_code=data["volunteer_code"],
        password=data["password"],
        name=data["name"],
        laz_name=data.get("laz_name", ""),
        description=data.get("description", ""),
        role=Role(data.get("role", Role.USER.value)),
    )


def _to_report(data: dict) -> ZakatReport:
    """Convert dict to ZakatReport model."""
    created_at = data["created_at"]
    if isinstance(created_at, str):
        created_at = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    return ZakatReport(
        id=int(data["id"]),
        volunteer_code=data["volunteer_code"],
        muzakki_name=data["muzakki_name"],
        zakat_type=ZakatType(data["zakat_type"]),
        amount=int(data["amount"]),
        proof_of_transfer=data["proof_of_transfer"],
        created_at=created_at,
    )


async def load_seed(path: Optional[str]) -> SeedData:
    """Read seed data from ``path``, or fall back to the built-in defaults.

    The file holds an object with ``operators`` and ``reports`` arrays.
    Malformed files raise, so a broken seed never starts an empty store.
    """
    if not path:
        return SeedData(operators=default_operators(), reports=default_reports())

    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Seed file {file_path} not found, using built-in seed data")
        return SeedData(operators=default_operators(), reports=default_reports())

    async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
        content = await f.read()
    data = json.loads(content) if content else {}

    seed = SeedData(
        operators=[_to_operator(item) for item in data.get("operators", [])],
        reports=[_to_report(item) for item in data.get("reports", [])],
    )
    logger.info(
        f"Loaded seed from {file_path}: {len(seed.operators)} operators, {len(seed.reports)} reports"
    )
    return seed
