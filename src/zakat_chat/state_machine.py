"""Conversation state machine for zakat report and operator flows."""

import json
import logging
from typing import Any, Optional

from .errors import Forbidden, StoreError, Unauthorized, ValidationError
from .models import (
    OPERATOR_FIELD_ORDER,
    REPORT_FIELD_ORDER,
    Attachment,
    ChatSession,
    ConversationState,
    FormField,
    FunctionCall,
    Identity,
    Operation,
    OperatorField,
    ReportField,
    ZakatType,
)
from .record_store import RecordStore
from .validation import coerce_amount, parse_amount, parse_zakat_type

logger = logging.getLogger(__name__)

STORE_FAILURE_PREFIX = "Operasi database gagal"
MEBIBYTE = 1024 * 1024


class ConversationStateMachine:
    """Manages conversation flow through defined states.

    Each call advances the session by exactly one step, appends one or more
    system messages to the transcript and makes at most one record store
    call. IDLE input is not handled here; the turn router decides which
    flow, if any, to start.
    """

    OPERATOR_QUESTIONS = {
        OperatorField.VOLUNTEER_CODE: "Masukkan kode relawan untuk pengguna baru.",
        OperatorField.PASSWORD: "Masukkan password untuk pengguna baru.",
        OperatorField.NAME: "Siapa nama lengkap relawan tersebut?",
        OperatorField.LAZ_NAME: "Apa nama LAZ (Lembaga Amil Zakat) relawan tersebut?",
        OperatorField.DESCRIPTION: "Terakhir, tuliskan deskripsi singkat tentang relawan tersebut.",
    }

    def __init__(
        self,
        session: ChatSession,
        record_store: RecordStore,
        max_attachment_bytes: int = 3 * MEBIBYTE,
        affirmative_token: str = "ya",
    ):
        self.session = session
        self.record_store = record_store
        self.max_attachment_bytes = max_attachment_bytes
        self.affirmative_token = affirmative_token

    @property
    def context(self):
        return self.session.context

    @property
    def transcript(self):
        return self.session.transcript

    @property
    def identity(self) -> Optional[Identity]:
        return self.session.identity

    @property
    def is_admin(self) -> bool:
        return self.identity is not None and self.identity.is_admin

    def get_welcome_message(self) -> str:
        """Greet the operator and list example commands."""
        name = self.identity.name if self.identity else "Relawan"
        text = f"""\
Assalamualaikum, {name}! Saya Bot Laporan Zakat. Saya bisa membantu Anda
mencatat dan mengelola data zakat, dan menjawab pertanyaan seputar Fikih Zakat.

Contoh perintah:
- 'Tampilkan semua laporan zakat'
- 'Tambah laporan zakat'
- 'Siapa saja yang berhak menerima zakat?'"""
        if self.is_admin:
            text += "\n- 'Tambah relawan baru'"
        self.transcript.add_system(text)
        return text

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def process_input(self, message: str) -> None:
        """Handle an utterance while a flow is active."""
        match self.context.active_intent:
            case ConversationState.COLLECTING_ZAKAT | ConversationState.COLLECTING_USER:
                self._handle_collecting(message)
            case ConversationState.CONFIRMING_ADD:
                self._handle_confirm_add(message)
            case ConversationState.CONFIRMING_ADD_USER:
                self._handle_confirm_add_user(message)
            case ConversationState.CONFIRMING_DELETE:
                self._handle_confirm_delete(message)
            case _:
                logger.error(f"[SESSION {self.session.session_id[:8]}] process_input called while idle")
                self.transcript.add_system("Terjadi kesalahan sesi. Silakan ulangi permintaan Anda.")
                self.context.reset()

    def submit_attachment(self, attachment: Attachment) -> None:
        """Handle a file submitted while the proof of transfer is being asked."""
        if not self.context.awaiting_attachment:
            logger.warning(f"[SESSION {self.session.session_id[:8]}] Unexpected attachment ignored")
            return

        if attachment.size > self.max_attachment_bytes:
            limit = self.max_attachment_bytes / MEBIBYTE
            self.transcript.add_system(
                f"Maaf, ukuran file {attachment.name} melebihi batas {limit:g} MB. "
                "Silakan unggah file bukti transfer yang lebih kecil."
            )
            return

        self.context.collect(ReportField.PROOF_OF_TRANSFER, attachment.name)
        self._ask_next_question()

    def start_zakat_collection(self, initial_args: Optional[dict[str, Any]] = None) -> None:
        """IDLE -> COLLECTING_ZAKAT, seeded with whatever is already known."""
        if self.identity is None:
            self._report_failure(Unauthorized("Anda harus login terlebih dahulu."))
            return

        self.context.start_flow(ConversationState.COLLECTING_ZAKAT, self._seed_report_fields(initial_args or {}))
        logger.info(
            f"[SESSION {self.session.session_id[:8]}] Report flow started "
            f"with {sorted(self.context.collected_fields)}"
        )
        self.transcript.add_system("Tentu, saya akan bantu mencatat laporan zakat baru.")
        self._ask_next_question()

    def start_operator_collection(self, initial_args: Optional[dict[str, Any]] = None) -> None:
        """IDLE -> COLLECTING_USER. Admins only."""
        if not self.is_admin:
            self._report_failure(Forbidden("Hanya admin yang dapat menambahkan relawan."))
            return

        fields = {
            f.value: str(initial_args[f.value]).strip()
            for f in OPERATOR_FIELD_ORDER
            if initial_args and initial_args.get(f.value) not in (None, "")
        }
        self.context.start_flow(ConversationState.COLLECTING_USER, fields)
        logger.info(f"[SESSION {self.session.session_id[:8]}] Operator flow started")
        self.transcript.add_system("Baik, saya akan bantu mendaftarkan relawan baru.")
        self._ask_next_question()

    def request_delete_confirmation(self, call: FunctionCall) -> None:
        """IDLE -> CONFIRMING_DELETE, holding the call until the operator agrees."""
        report_id = call.args.get("id")
        if report_id is None:
            self.transcript.add_system("Mohon sebutkan ID laporan zakat yang ingin dihapus.")
            return

        self.context.start_delete(call)
        self.transcript.add_system(
            f"Apakah Anda yakin ingin menghapus laporan zakat dengan ID {_format_id(report_id)}? (ya/tidak)"
        )

    def execute(self, call: FunctionCall) -> bool:
        """Run one record store operation and report the result.

        Returns False if the store rejected it; the context is then reset.
        """
        try:
            result = self.record_store.execute(call.name, call.args, self.identity)
        except StoreError as e:
            self._report_failure(e)
            return False
        self._emit_result(call.name, result)
        return True

    # ------------------------------------------------------------------
    # State handlers
    # ------------------------------------------------------------------

    def _handle_collecting(self, text: str) -> None:
        key = self.context.next_question_key
        if key is None:
            self._ask_next_question()
            return
        if key is ReportField.PROOF_OF_TRANSFER:
            # Free text cannot answer the attachment question.
            self.transcript.add_system(self._question(key))
            return

        try:
            value = self._validate(key, text)
        except ValidationError as e:
            self.transcript.add_system(str(e))
            return

        self.context.collect(key, value)
        self._ask_next_question()

    def _handle_confirm_add(self, text: str) -> None:
        if self._is_affirmative(text):
            self.transcript.add_system("Data sudah dikonfirmasi. Saya sedang memproses...")
            call = FunctionCall(name=Operation.ADD_ZAKAT.value, args=dict(self.context.collected_fields))
            if self.execute(call):
                self.transcript.add_system(
                    "Terima kasih telah berpartisipasi dalam pengumpulan zakat. Jazakumullah Khairan Katsiran."
                )
        else:
            self.transcript.add_system("Baik, penambahan laporan dibatalkan.")
        self.context.reset()

    def _handle_confirm_add_user(self, text: str) -> None:
        if self._is_affirmative(text):
            self.transcript.add_system("Data relawan dikonfirmasi. Saya sedang memproses...")
            call = FunctionCall(name=Operation.ADD_USER.value, args=dict(self.context.collected_fields))
            if self.execute(call):
                self.transcript.add_system("Relawan baru berhasil didaftarkan.")
        else:
            self.transcript.add_system("Baik, pendaftaran relawan dibatalkan.")
        self.context.reset()

    def _handle_confirm_delete(self, text: str) -> None:
        call = self.context.pending_operation
        if call is None:
            self.transcript.add_system("Terjadi kesalahan internal: tidak ada operasi hapus yang tertunda.")
        elif self._is_affirmative(text):
            self.transcript.add_system("Baik, sedang memproses penghapusan...")
            self.execute(call)
        else:
            self.transcript.add_system("Baik, operasi penghapusan dibatalkan.")
        self.context.reset()

    # ------------------------------------------------------------------
    # Slot filling
    # ------------------------------------------------------------------

    def _field_order(self) -> tuple:
        if self.context.active_intent is ConversationState.COLLECTING_USER:
            return OPERATOR_FIELD_ORDER
        if self.is_admin:
            return REPORT_FIELD_ORDER
        return tuple(f for f in REPORT_FIELD_ORDER if f is not ReportField.VOLUNTEER_CODE)

    def _ask_next_question(self) -> None:
        missing = self.context.missing_fields(self._field_order())
        if missing:
            next_field = missing[0]
            self.context.ask(next_field)
            self.transcript.add_system(self._question(next_field))
            return

        if self.context.active_intent is ConversationState.COLLECTING_ZAKAT:
            summary = self._report_summary()
        else:
            summary = self._operator_summary()
        self.context.await_confirmation()
        self.transcript.add_system(summary)

    def _question(self, form_field: FormField) -> str:
        match form_field:
            case ReportField.VOLUNTEER_CODE:
                return "Silakan masukkan kode relawan yang mencatat laporan ini."
            case ReportField.MUZAKKI_NAME:
                return "Baik, siapa nama muzakki (pemberi zakat)?"
            case ReportField.ZAKAT_TYPE:
                return f"Apa jenis zakatnya? (Pilihan: {ZakatType.choices()})"
            case ReportField.AMOUNT:
                return "Berapa jumlah totalnya (dalam Rupiah)? Cukup ketik angkanya."
            case ReportField.PROOF_OF_TRANSFER:
                limit = self.max_attachment_bytes / MEBIBYTE
                return f"Terakhir, silakan unggah file bukti transfer (maksimal {limit:g} MB)."
            case _:
                return self.OPERATOR_QUESTIONS[form_field]

    @staticmethod
    def _validate(form_field: FormField, text: str) -> Any:
        if form_field is ReportField.AMOUNT:
            return parse_amount(text)
        if form_field is ReportField.ZAKAT_TYPE:
            return parse_zakat_type(text).value
        return text

    def _seed_report_fields(self, args: dict[str, Any]) -> dict[str, Any]:
        """Keep only usable report values from oracle arguments.

        The proof of transfer always comes from an uploaded file, and a
        standard operator always records under their own code.
        """
        fields: dict[str, Any] = {}
        for name in (ReportField.VOLUNTEER_CODE.value, ReportField.MUZAKKI_NAME.value):
            value = args.get(name)
            if value not in (None, ""):
                fields[name] = str(value).strip()

        zakat_type = args.get(ReportField.ZAKAT_TYPE.value)
        if isinstance(zakat_type, str) and ZakatType.match(zakat_type):
            fields[ReportField.ZAKAT_TYPE.value] = ZakatType.match(zakat_type).value

        amount = args.get(ReportField.AMOUNT.value)
        if amount is not None:
            try:
                fields[ReportField.AMOUNT.value] = coerce_amount(amount)
            except ValidationError:
                logger.debug("Discarding unusable amount from oracle arguments")

        if not self.is_admin:
            fields[ReportField.VOLUNTEER_CODE.value] = self.identity.volunteer_code
        return fields

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _report_summary(self) -> str:
        data = self.context.collected_fields
        lines = ["Berikut adalah ringkasan data yang akan disimpan:"]
        if self.is_admin:
            lines.append(f"- Kode Relawan: {data['volunteer_code']}")
        lines.extend([
            f"- Nama Muzakki: {data['muzakki_name']}",
            f"- Jenis Zakat: {data['zakat_type']}",
            f"- Jumlah: {_format_rupiah(data['amount'])}",
            f"- Bukti Transfer: {data['proof_of_transfer']}",
        ])
        if not self.is_admin:
            lines.append(f"Dicatat oleh: {data['volunteer_code']} (otomatis)")
        lines.extend(["", "Apakah data sudah benar dan ingin dilanjutkan? (ya/tidak)"])
        return "\n".join(lines)

    def _operator_summary(self) -> str:
        data = self.context.collected_fields
        return "\n".join([
            "Berikut adalah data relawan yang akan didaftarkan:",
            f"- Kode Relawan: {data['volunteer_code']}",
            "- Password: ********",
            f"- Nama: {data['name']}",
            f"- Nama LAZ: {data['laz_name']}",
            f"- Deskripsi: {data['description']}",
            "",
            "Apakah data sudah benar dan ingin dilanjutkan? (ya/tidak)",
        ])

    def _emit_result(self, operation: str, result: Any) -> None:
        if isinstance(result, str):
            self.transcript.add_system(result)
            return
        if isinstance(result, list) and not result:
            if operation == Operation.GET_ALL_USERS.value:
                self.transcript.add_system("Tidak ada data relawan yang ditemukan.")
            else:
                self.transcript.add_system("Tidak ada data zakat yang ditemukan.")
            return
        self.transcript.add_system(
            json.dumps(_serialize(result), indent=2, ensure_ascii=False),
            is_structured=True,
        )

    def _report_failure(self, error: StoreError) -> None:
        logger.warning(f"[SESSION {self.session.session_id[:8]}] Store operation failed: {error.to_dict()}")
        self.transcript.add_system(f"{STORE_FAILURE_PREFIX}: {error}")
        self.context.reset()

    def _is_affirmative(self, text: str) -> bool:
        return text.strip().lower() == self.affirmative_token.lower()


def _serialize(result: Any) -> Any:
    if isinstance(result, list):
        return [_serialize(item) for item in result]
    if hasattr(result, "to_dict"):
        return result.to_dict()
    return result


def _format_rupiah(amount: int) -> str:
    return "Rp " + f"{amount:,}".replace(",", ".")


def _format_id(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)
