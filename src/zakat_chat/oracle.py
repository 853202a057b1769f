"""Intent oracle: turns free text into an answer or a function call."""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from openai import AsyncOpenAI, OpenAIError

from .config.settings import OracleSettings
from .errors import OracleFailure
from .models import FunctionCall, Operation, OracleResponse, ZakatType

logger = logging.getLogger(__name__)

_ZAKAT_TYPES = [zakat_type.value for zakat_type in ZakatType]

_REPORT_PROPERTIES: dict[str, Any] = {
    "volunteer_code": {"type": "string", "description": "Kode unik relawan yang mencatat."},
    "muzakki_name": {"type": "string", "description": "Nama lengkap pemberi zakat (muzakki)."},
    "zakat_type": {"type": "string", "enum": _ZAKAT_TYPES, "description": "Jenis zakat."},
    "amount": {"type": "number", "description": "Jumlah donasi dalam Rupiah."},
}

TOOLS: list[dict[str, Any]] = [
    {
        "type": "function",
        "function": {
            "name": Operation.GET_ALL_ZAKAT.value,
            "description": "Menampilkan daftar laporan zakat.",
            "parameters": {"type": "object", "properties": {}},
        },
    },
    {
        "type": "function",
        "function": {
            "name": Operation.ADD_ZAKAT.value,
            "description": "Memulai pencatatan laporan zakat baru. Isi hanya data yang disebutkan pengguna.",
            "parameters": {"type": "object", "properties": _REPORT_PROPERTIES},
        },
    },
    {
        "type": "function",
        "function": {
            "name": Operation.UPDATE_ZAKAT.value,
            "description": "Memperbarui laporan zakat berdasarkan ID-nya.",
            "parameters": {
                "type": "object",
                "properties": {
                    "id": {"type": "number", "description": "ID laporan yang akan diperbarui."},
                    **_REPORT_PROPERTIES,
                    "proof_of_transfer": {"type": "string", "description": "Nama file bukti transfer yang baru."},
                },
                "required": ["id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": Operation.DELETE_ZAKAT.value,
            "description": "Menghapus laporan zakat berdasarkan ID-nya.",
            "parameters": {
                "type": "object",
                "properties": {"id": {"type": "number", "description": "ID laporan yang akan dihapus."}},
                "required": ["id"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": Operation.GET_ALL_USERS.value,
            "description": "Menampilkan daftar relawan terdaftar (khusus admin).",
            "parameters": {"type": "object", "properties": {}},
        },
    },
]

SYSTEM_INSTRUCTION = f"""\
Anda adalah asisten pelaporan zakat. Bantu pengguna mengelola laporan zakat
dengan fungsi yang tersedia (lihat, tambah, ubah, hapus). Jenis zakat yang sah:
{", ".join(_ZAKAT_TYPES)}.

Jika pengguna bertanya tentang fikih zakat, jawab berdasarkan pandangan empat
mazhab dengan penekanan pada mazhab Syafi'i, lalu akhiri dengan kalimat:
"Untuk lebih memastikan, silakan bertanya kembali kepada para ustadz yg lebih paham disekitar anda".
Jika Anda tidak mengetahui jawabannya, katakan dengan sopan. Jangan menjawab
pertanyaan di luar topik zakat."""


@dataclass
class OracleResult:
    """Outcome of one oracle call: exactly one of response or error is set."""
    response: Optional[OracleResponse] = None
    error: Optional[OracleFailure] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class IntentOracle(ABC):
    """Abstract interface for the intent extraction service."""

    @abstractmethod
    async def query(self, text: str) -> OracleResponse:
        """Interpret ``text``. Raises OracleFailure if the call fails."""
        pass

    async def resolve(self, text: str) -> OracleResult:
        """Run ``query`` and fold failures into the result."""
        try:
            response = await self.query(text)
        except OracleFailure as e:
            logger.warning(f"Oracle call failed: {e.to_dict()}")
            return OracleResult(error=e)
        return OracleResult(response=response)


class OpenAIIntentOracle(IntentOracle):
    """Intent oracle backed by OpenAI chat completions with tool calling."""

    def __init__(self, settings: OracleSettings, client: Optional[AsyncOpenAI] = None):
        self.settings = settings
        self._client = client

    def get_client(self) -> AsyncOpenAI:
        """Get or create the OpenAI client."""
        if self._client is None:
            self._client = AsyncOpenAI(api_key=self.settings.api_key, timeout=self.settings.timeout)
        return self._client

    async def query(self, text: str) -> OracleResponse:
        try:
            completion = await self.get_client().chat.completions.create(
                model=self.settings.model,
                messages=[
                    {"role": "system", "content": SYSTEM_INSTRUCTION},
                    {"role": "user", "content": text},
                ],
                tools=TOOLS,
            )
        except OpenAIError as e:
            raise OracleFailure(
                "Gagal mendapatkan respon dari model AI.",
                details={"model": self.settings.model},
                original_exception=e,
            ) from e
        return self._to_response(completion)

    def _to_response(self, completion: Any) -> OracleResponse:
        """Convert a chat completion into an OracleResponse."""
        if not completion.choices:
            raise OracleFailure("Model AI tidak memberikan jawaban.")
        message = completion.choices[0].message

        calls: list[FunctionCall] = []
        for tool_call in message.tool_calls or []:
            if tool_call.type != "function":
                continue
            raw_args = tool_call.function.arguments or "{}"
            try:
                args = json.loads(raw_args)
            except json.JSONDecodeError as e:
                raise OracleFailure(
                    "Model AI mengirim argumen fungsi yang tidak valid.",
                    details={"function": tool_call.function.name},
                    original_exception=e,
                ) from e
            if not isinstance(args, dict):
                raise OracleFailure(
                    "Model AI mengirim argumen fungsi yang tidak valid.",
                    details={"function": tool_call.function.name},
                )
            calls.append(FunctionCall(name=tool_call.function.name, args=args))

        if calls:
            logger.info(f"Oracle requested {calls[0].name} ({len(calls)} call(s))")
        return OracleResponse(answer_text=message.content, function_calls=calls)
