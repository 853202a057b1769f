"""Shared fixtures: a seeded store, identities and a scripted oracle."""

import pytest

from zakat_chat.models import ChatSession, OracleResponse
from zakat_chat.oracle import IntentOracle
from zakat_chat.record_store import RecordStore
from zakat_chat.repository.memory import InMemoryOperatorRepository, InMemoryZakatRepository
from zakat_chat.repository.seed import default_operators, default_reports
from zakat_chat.router import TurnRouter
from zakat_chat.state_machine import ConversationStateMachine


class ScriptedOracle(IntentOracle):
    """Returns queued responses in order; queued exceptions are raised."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.queries: list[str] = []

    def push(self, response) -> None:
        self.responses.append(response)

    async def query(self, text: str) -> OracleResponse:
        self.queries.append(text)
        if not self.responses:
            return OracleResponse()
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


@pytest.fixture
def store() -> RecordStore:
    return RecordStore(
        InMemoryZakatRepository(default_reports()),
        InMemoryOperatorRepository(default_operators()),
    )


@pytest.fixture
def admin(store):
    return store.authenticate("ADM-111-AAA", "admin123")


@pytest.fixture
def volunteer(store):
    return store.authenticate("R001", "relawan001")


@pytest.fixture
def oracle() -> ScriptedOracle:
    return ScriptedOracle()


@pytest.fixture
def make_machine(store):
    def _make(identity) -> ConversationStateMachine:
        session = ChatSession(session_id="test-session", identity=identity)
        return ConversationStateMachine(session, store)
    return _make


@pytest.fixture
def make_router(make_machine, oracle):
    def _make(identity) -> TurnRouter:
        return TurnRouter(make_machine(identity), oracle)
    return _make
