"""Authorization-aware CRUD over zakat reports and operators."""

import dataclasses
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from .errors import Conflict, Forbidden, NotFound, Unauthorized, ValidationError
from .models import Identity, Operation, Operator, ReportField, Role, ZakatReport
from .repository.base import OperatorRepository, ZakatRepository
from .validation import coerce_amount, coerce_report_id, coerce_zakat_type

logger = logging.getLogger(__name__)

UNSUPPORTED_ACTION = "Maaf, saya tidak tahu cara melakukan tindakan: {name}."

REQUIRED_REPORT_FIELDS = tuple(f.value for f in ReportField)
UPDATABLE_REPORT_FIELDS = frozenset(REQUIRED_REPORT_FIELDS)
REQUIRED_OPERATOR_FIELDS = ("volunteer_code", "password", "name")


class RecordStore:
    """Process-wide store shared by all sessions. Not thread-safe; callers
    serialize access."""

    def __init__(self, zakat_repository: ZakatRepository, operator_repository: OperatorRepository):
        self.zakat_repository = zakat_repository
        self.operator_repository = operator_repository
        self._operations: dict[str, Callable[[dict, Optional[Identity]], Any]] = {
            Operation.GET_ALL_ZAKAT.value: self.list_reports,
            Operation.ADD_ZAKAT.value: self.create_report,
            Operation.UPDATE_ZAKAT.value: self.update_report,
            Operation.DELETE_ZAKAT.value: self.delete_report,
            Operation.ADD_USER.value: self.create_operator,
            Operation.GET_ALL_USERS.value: self.list_operators,
        }

    def execute(self, name: str, args: Optional[dict] = None, identity: Optional[Identity] = None) -> Any:
        """Dispatch an operation by name.

        Unknown names return a message instead of raising. Known operations
        raise StoreError subclasses on failure.
        """
        operation = self._operations.get(name)
        if operation is None:
            logger.warning(f"Unsupported operation requested: {name}")
            return UNSUPPORTED_ACTION.format(name=name)
        return operation(dict(args or {}), identity)

    def authenticate(self, volunteer_code: str, password: str) -> Optional[Identity]:
        operator = self.operator_repository.get_by_code(volunteer_code)
        if operator is None or operator.password != password:
            logger.info(f"Failed login for {volunteer_code}")
            return None
        logger.info(f"Operator {volunteer_code} authenticated as {operator.role.value}")
        return operator.identity()

    # ------------------------------------------------------------------
    # Guards
    # ------------------------------------------------------------------

    @staticmethod
    def _require_identity(identity: Optional[Identity]) -> Identity:
        if identity is None:
            raise Unauthorized("Anda harus login terlebih dahulu.")
        return identity

    @staticmethod
    def _require_admin(identity: Optional[Identity], action: str) -> Identity:
        if identity is None or not identity.is_admin:
            raise Forbidden(f"Hanya admin yang dapat {action}.")
        return identity

    @staticmethod
    def _require_owner(report: ZakatReport, identity: Identity) -> None:
        if identity.role is Role.USER and report.volunteer_code != identity.volunteer_code:
            raise Forbidden(f"Anda tidak memiliki akses ke laporan zakat dengan ID {report.id}.")

    def _get_report(self, args: dict) -> ZakatReport:
        report_id = coerce_report_id(args.get("id"))
        report = self.zakat_repository.get_by_id(report_id)
        if report is None:
            raise NotFound(f"Laporan zakat dengan ID {report_id} tidak ditemukan.")
        return report

    # ------------------------------------------------------------------
    # Zakat reports
    # ------------------------------------------------------------------

    def list_reports(self, args: dict, identity: Optional[Identity]) -> list[ZakatReport]:
        identity = self._require_identity(identity)
        if identity.is_admin:
            return self.zakat_repository.get_all()
        return self.zakat_repository.get_by_volunteer(identity.volunteer_code)

    def create_report(self, args: dict, identity: Optional[Identity]) -> ZakatReport:
        identity = self._require_identity(identity)
        data = {name: args.get(name) for name in REQUIRED_REPORT_FIELDS}

        if identity.role is Role.USER:
            data["volunteer_code"] = identity.volunteer_code
        elif not data["volunteer_code"]:
            raise ValidationError("Admin harus menyertakan kode relawan.")

        missing = [name for name, value in data.items() if value is None or value == ""]
        if missing:
            raise ValidationError(
                "Semua field (kode relawan, nama muzakki, jenis zakat, jumlah, bukti transfer) harus diisi.",
                details={"missing": missing},
            )

        report = ZakatReport(
            id=self.zakat_repository.next_id(),
            volunteer_code=str(data["volunteer_code"]),
            muzakki_name=str(data["muzakki_name"]),
            zakat_type=coerce_zakat_type(data["zakat_type"]),
            amount=coerce_amount(data["amount"]),
            proof_of_transfer=str(data["proof_of_transfer"]),
            created_at=datetime.now(timezone.utc),
        )
        self.zakat_repository.add(report)
        logger.info(f"Report {report.id} created by {identity.volunteer_code} for {report.volunteer_code}")
        return report

    def update_report(self, args: dict, identity: Optional[Identity]) -> ZakatReport:
        identity = self._require_identity(identity)
        report = self._get_report(args)
        self._require_owner(report, identity)

        updates = {
            name: value
            for name, value in args.items()
            if name in UPDATABLE_REPORT_FIELDS and value is not None
        }
        if identity.role is Role.USER:
            updates.pop("volunteer_code", None)
        for name in ("volunteer_code", "muzakki_name", "proof_of_transfer"):
            if name in updates:
                updates[name] = str(updates[name])
        if "zakat_type" in updates:
            updates["zakat_type"] = coerce_zakat_type(updates["zakat_type"])
        if "amount" in updates:
            updates["amount"] = coerce_amount(updates["amount"])

        updated = dataclasses.replace(report, **updates)
        self.zakat_repository.replace(updated)
        logger.info(f"Report {report.id} updated by {identity.volunteer_code}: {sorted(updates)}")
        return updated

    def delete_report(self, args: dict, identity: Optional[Identity]) -> str:
        identity = self._require_identity(identity)
        report = self._get_report(args)
        self._require_owner(report, identity)
        self.zakat_repository.delete(report.id)
        logger.info(f"Report {report.id} deleted by {identity.volunteer_code}")
        return f"Berhasil menghapus laporan zakat dengan ID {report.id}."

    # ------------------------------------------------------------------
    # Operators
    # ------------------------------------------------------------------

    def create_operator(self, args: dict, identity: Optional[Identity]) -> dict[str, str]:
        identity = self._require_admin(identity, "menambahkan relawan")

        missing = [name for name in REQUIRED_OPERATOR_FIELDS if not args.get(name)]
        if missing:
            raise ValidationError(
                "Kode relawan, password, dan nama harus diisi.",
                details={"missing": missing},
            )

        volunteer_code = str(args["volunteer_code"])
        if self.operator_repository.get_by_code(volunteer_code) is not None:
            raise Conflict(f"Kode relawan {volunteer_code} sudah terdaftar.")

        operator = Operator(
            volunteer_code=volunteer_code,
            password=str(args["password"]),
            name=str(args["name"]),
            laz_name=str(args.get("laz_name") or ""),
            description=str(args.get("description") or ""),
            role=Role.USER,
        )
        self.operator_repository.create(operator)
        logger.info(f"Operator {volunteer_code} registered by {identity.volunteer_code}")
        return operator.to_dict()

    def list_operators(self, args: dict, identity: Optional[Identity]) -> list[dict[str, str]]:
        self._require_admin(identity, "melihat daftar relawan")
        return [operator.to_dict() for operator in self.operator_repository.get_all()]
