"""WebSocket server for Zakat Chat."""

import asyncio
import base64
import binascii
import json
import logging
import uuid
from typing import Any, Iterable, Optional

from websockets.asyncio.server import serve, ServerConnection

from .config.settings import Settings
from .models import Attachment, ChatSession
from .oracle import IntentOracle
from .record_store import RecordStore
from .router import TurnRouter
from .state_machine import ConversationStateMachine
from .transcript import Message

logger = logging.getLogger(__name__)


def parse_frame(raw: Any) -> Optional[dict[str, Any]]:
    """Decode a client frame, None if it is not a JSON object with a type."""
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError:
            return None
    try:
        frame = json.loads(raw)
    except json.JSONDecodeError:
        return None
    if not isinstance(frame, dict) or not isinstance(frame.get("type"), str):
        return None
    return frame


def decode_attachment(frame: dict[str, Any]) -> Optional[Attachment]:
    """Build an Attachment from a base64 attachment frame."""
    name = frame.get("name")
    data = frame.get("data")
    if not isinstance(name, str) or not name.strip() or not isinstance(data, str):
        return None
    try:
        content = base64.b64decode(data, validate=True)
    except (binascii.Error, ValueError):
        return None
    return Attachment(name=name.strip(), size=len(content))


class ZakatChatServer:
    """WebSocket server hosting one chat session per connection."""

    def __init__(self, settings: Settings, record_store: RecordStore, oracle: IntentOracle):
        self.settings = settings
        self.record_store = record_store
        self.oracle = oracle
        self.active_sessions: dict[str, ChatSession] = {}

    async def _send(self, websocket: ServerConnection, payload: dict[str, Any]) -> None:
        await websocket.send(json.dumps(payload, ensure_ascii=False))

    async def _send_messages(self, websocket: ServerConnection, messages: Iterable[Message]) -> None:
        for message in messages:
            await self._send(websocket, {"type": "message", **message.to_dict()})

    async def _send_error(self, websocket: ServerConnection, text: str) -> None:
        await self._send(websocket, {"type": "error", "text": text})

    async def _handle_login(
        self,
        websocket: ServerConnection,
        session: ChatSession,
        state_machine: ConversationStateMachine,
        frame: dict[str, Any],
    ) -> None:
        volunteer_code = frame.get("volunteer_code")
        password = frame.get("password")
        if not volunteer_code or not password:
            await self._send_error(websocket, "Kode Relawan dan Password tidak boleh kosong.")
            return

        identity = self.record_store.authenticate(str(volunteer_code), str(password))
        if identity is None:
            await self._send_error(websocket, "Kode Relawan atau Password salah.")
            return

        session.identity = identity
        logger.info(f"[SESSION {session.session_id[:8]}] Logged in as {identity.volunteer_code}")
        await self._send(websocket, {"type": "login_ok", "identity": identity.to_dict()})
        mark = len(session.transcript)
        state_machine.get_welcome_message()
        await self._send_messages(websocket, session.transcript.since(mark))

    async def handle_connection(self, websocket: ServerConnection) -> None:
        """Handle a single WebSocket connection."""
        session_id = str(uuid.uuid4())
        session = ChatSession(session_id=session_id)
        self.active_sessions[session_id] = session

        state_machine = ConversationStateMachine(
            session=session,
            record_store=self.record_store,
            max_attachment_bytes=self.settings.chat.max_attachment_bytes,
            affirmative_token=self.settings.chat.affirmative_token,
        )
        router = TurnRouter(state_machine, self.oracle)

        logger.info(f"[SESSION {session_id[:8]}] Client connected")

        try:
            await self._send(websocket, {
                "type": "login_required",
                "text": "Masukkan kode relawan dan password untuk melanjutkan.",
            })

            async for raw in websocket:
                frame = parse_frame(raw)
                if frame is None:
                    await self._send_error(websocket, "Format pesan tidak valid.")
                    continue

                if session.identity is None:
                    if frame["type"] != "login":
                        await self._send_error(websocket, "Silakan login terlebih dahulu.")
                        continue
                    await self._handle_login(websocket, session, state_machine, frame)
                    continue

                match frame["type"]:
                    case "message":
                        if not router.accepts_text:
                            await self._send_error(websocket, "Silakan unggah file bukti transfer.")
                            continue
                        messages = await router.handle_utterance(str(frame.get("text", "")))
                    case "attachment":
                        attachment = decode_attachment(frame)
                        if attachment is None:
                            await self._send_error(websocket, "Lampiran tidak valid.")
                            continue
                        messages = router.submit_attachment(attachment)
                    case _:
                        await self._send_error(websocket, f"Jenis pesan tidak dikenal: {frame['type']}.")
                        continue

                await self._send_messages(websocket, messages)

        except Exception as e:
            logger.error(f"[SESSION {session_id[:8]}] Error: {e}")
        finally:
            del self.active_sessions[session_id]
            logger.info(f"[SESSION {session_id[:8]}] Disconnected")

    async def _handle_health_check(
        self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter
    ) -> None:
        """Handle HTTP health check requests."""
        try:
            request = await reader.read(1024)
            if b"GET /health" in request or b"GET / " in request:
                body = json.dumps({"status": "ok", "sessions": len(self.active_sessions)}).encode()
                response = (
                    b"HTTP/1.1 200 OK\r\n"
                    b"Content-Type: application/json\r\n"
                    b"Content-Length: " + str(len(body)).encode() + b"\r\n"
                    b"\r\n" + body
                )
            else:
                response = (
                    b"HTTP/1.1 404 Not Found\r\n"
                    b"Content-Length: 0\r\n"
                    b"\r\n"
                )
            writer.write(response)
            await writer.drain()
        finally:
            writer.close()
            await writer.wait_closed()

    async def _start_health_server(self) -> asyncio.Server:
        """Start the HTTP health check server."""
        host = self.settings.server.host
        health_port = self.settings.server.health_port
        server = await asyncio.start_server(
            self._handle_health_check, host, health_port
        )
        logger.info(f"Health check running on http://{host}:{health_port}/health")
        return server

    async def start(self) -> None:
        """Start the WebSocket server and health check endpoint."""
        host = self.settings.server.host
        port = self.settings.server.port

        logger.info(f"Zakat Chat WebSocket server on ws://{host}:{port}")

        health_server = await self._start_health_server()

        async with health_server, serve(
            self.handle_connection, host, port, max_size=self.settings.server.max_frame_bytes
        ) as ws_server:
            await ws_server.serve_forever()
