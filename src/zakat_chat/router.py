"""Turn router: the single entry point for one inbound utterance."""

import logging
import re

from .models import Attachment, ConversationState, Operation
from .oracle import IntentOracle
from .state_machine import ConversationStateMachine
from .transcript import Message

logger = logging.getLogger(__name__)

FALLBACK_ANSWER = "Maaf, saya tidak dapat memproses permintaan tersebut."
UNEXPECTED_ERROR = "Error: Terjadi kesalahan yang tidak diketahui."


class TurnRouter:
    """Routes utterances to the dialogue engine, keywords or the oracle.

    One turn runs at a time. While a turn is in flight (including while it
    waits on the oracle) further input is dropped.
    """

    REPORT_VERB_REGEX = re.compile(r"\b(tambah|buat|catat|add|create|record)\b", re.IGNORECASE)
    REPORT_NOUN_REGEX = re.compile(r"\b(laporan|zakat|report)\b", re.IGNORECASE)
    OPERATOR_VERB_REGEX = re.compile(r"\b(tambah|buat|add|create)\b", re.IGNORECASE)
    OPERATOR_NOUN_REGEX = re.compile(r"\b(relawan|pengguna|user|operator|akun)\b", re.IGNORECASE)

    def __init__(self, state_machine: ConversationStateMachine, oracle: IntentOracle):
        self.state_machine = state_machine
        self.oracle = oracle
        self.busy = False

    @property
    def context(self):
        return self.state_machine.context

    @property
    def transcript(self):
        return self.state_machine.transcript

    @property
    def _tag(self) -> str:
        return f"[SESSION {self.state_machine.session.session_id[:8]}]"

    @property
    def accepts_text(self) -> bool:
        return not self.busy and not self.context.awaiting_attachment

    async def handle_utterance(self, text: str) -> list[Message]:
        """Process one utterance and return the messages it produced."""
        text = text.strip()
        if not text:
            return []
        if self.busy:
            logger.info(f"{self._tag} Dropped input while busy")
            return []
        if self.context.awaiting_attachment:
            logger.info(f"{self._tag} Dropped text while waiting for an attachment")
            return []

        mark = len(self.transcript)
        self.transcript.add_user(text)
        self.busy = True
        logger.info(f"{self._tag} Received input ({len(text)} chars) in {self.context.active_intent.name}")
        try:
            if self.context.active_intent is ConversationState.IDLE:
                await self._handle_idle(text)
            else:
                self.state_machine.process_input(text)
        except Exception:
            logger.exception(f"{self._tag} Turn failed")
            self.transcript.add_system(UNEXPECTED_ERROR)
            self.context.reset()
        finally:
            self.busy = False
        return self.transcript.since(mark)

    def submit_attachment(self, attachment: Attachment) -> list[Message]:
        """Process a file submission; only accepted while one is awaited."""
        if self.busy or not self.context.awaiting_attachment:
            logger.info(f"{self._tag} Dropped attachment {attachment.name!r}")
            return []

        mark = len(self.transcript)
        self.transcript.add_user(f"[Lampiran: {attachment.name}]")
        self.busy = True
        logger.info(f"{self._tag} Received attachment ({attachment.size} bytes)")
        try:
            self.state_machine.submit_attachment(attachment)
        except Exception:
            logger.exception(f"{self._tag} Attachment handling failed")
            self.transcript.add_system(UNEXPECTED_ERROR)
            self.context.reset()
        finally:
            self.busy = False
        return self.transcript.since(mark)

    async def _handle_idle(self, text: str) -> None:
        if (
            self.state_machine.is_admin
            and self.OPERATOR_VERB_REGEX.search(text)
            and self.OPERATOR_NOUN_REGEX.search(text)
        ):
            self.state_machine.start_operator_collection()
            return
        if self.REPORT_VERB_REGEX.search(text) and self.REPORT_NOUN_REGEX.search(text):
            self.state_machine.start_zakat_collection()
            return

        result = await self.oracle.resolve(text)
        if not result.ok:
            self.transcript.add_system(f"Error: {result.error}")
            self.context.reset()
            return

        call = result.response.first_call
        if call is None:
            self.transcript.add_system(result.response.answer_text or FALLBACK_ANSWER)
            return

        match call.name:
            case Operation.ADD_ZAKAT:
                self.state_machine.start_zakat_collection(call.args)
            case Operation.DELETE_ZAKAT:
                self.state_machine.request_delete_confirmation(call)
            case Operation.ADD_USER:
                self.state_machine.start_operator_collection(call.args)
            case _:
                self.state_machine.execute(call)
