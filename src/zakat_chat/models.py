"""Domain models for Zakat Chat."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, auto
from typing import Any, Optional, Union

from .transcript import Transcript


class ConversationState(Enum):
    """States in the conversation flow."""
    IDLE = auto()
    COLLECTING_ZAKAT = auto()
    CONFIRMING_ADD = auto()
    COLLECTING_USER = auto()
    CONFIRMING_ADD_USER = auto()
    CONFIRMING_DELETE = auto()


class Role(str, Enum):
    """Operator roles."""
    ADMIN = "admin"
    USER = "user"


class ZakatType(str, Enum):
    """The fixed zakat categories."""
    FITRAH = "Fitrah"
    FIDYAH = "Fidyah"
    MAL = "Mal"
    INFAK = "Infak"
    WAKAF = "Wakaf"
    KEMANUSIAAN = "Kemanusiaan"

    @classmethod
    def match(cls, text: str) -> Optional["ZakatType"]:
        """Case-insensitive lookup, None when nothing matches."""
        wanted = text.strip().lower()
        for zakat_type in cls:
            if zakat_type.value.lower() == wanted:
                return zakat_type
        return None

    @classmethod
    def choices(cls) -> str:
        return ", ".join(zakat_type.value for zakat_type in cls)


class Operation(str, Enum):
    """Record store operation names, shared with the intent oracle tools."""
    GET_ALL_ZAKAT = "get_all_zakat"
    ADD_ZAKAT = "add_zakat"
    UPDATE_ZAKAT = "update_zakat"
    DELETE_ZAKAT = "delete_zakat"
    ADD_USER = "add_user"
    GET_ALL_USERS = "get_all_users"


class ReportField(Enum):
    """Slots of the zakat report flow."""
    VOLUNTEER_CODE = "volunteer_code"
    MUZAKKI_NAME = "muzakki_name"
    ZAKAT_TYPE = "zakat_type"
    AMOUNT = "amount"
    PROOF_OF_TRANSFER = "proof_of_transfer"


class OperatorField(Enum):
    """Slots of the operator registration flow."""
    VOLUNTEER_CODE = "volunteer_code"
    PASSWORD = "password"
    NAME = "name"
    LAZ_NAME = "laz_name"
    DESCRIPTION = "description"


FormField = Union[ReportField, OperatorField]

REPORT_FIELD_ORDER: tuple[ReportField, ...] = (
    ReportField.VOLUNTEER_CODE,
    ReportField.MUZAKKI_NAME,
    ReportField.ZAKAT_TYPE,
    ReportField.AMOUNT,
    ReportField.PROOF_OF_TRANSFER,
)

OPERATOR_FIELD_ORDER: tuple[OperatorField, ...] = (
    OperatorField.VOLUNTEER_CODE,
    OperatorField.PASSWORD,
    OperatorField.NAME,
    OperatorField.LAZ_NAME,
    OperatorField.DESCRIPTION,
)

# Flows that solicit fields, keyed to the fields they may ask for.
FLOW_FIELDS: dict[ConversationState, tuple] = {
    ConversationState.COLLECTING_ZAKAT: REPORT_FIELD_ORDER,
    ConversationState.COLLECTING_USER: OPERATOR_FIELD_ORDER,
}


@dataclass
class ZakatReport:
    """A recorded zakat donation."""
    id: int
    volunteer_code: str
    muzakki_name: str
    zakat_type: ZakatType
    amount: int
    proof_of_transfer: str
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "volunteer_code": self.volunteer_code,
            "muzakki_name": self.muzakki_name,
            "zakat_type": self.zakat_type.value,
            "amount": self.amount,
            "proof_of_transfer": self.proof_of_transfer,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class Identity:
    """The authenticated operator. Never carries the password."""
    volunteer_code: str
    name: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role is Role.ADMIN

    def to_dict(self) -> dict[str, str]:
        return {
            "volunteer_code": self.volunteer_code,
            "name": self.name,
            "role": self.role.value,
        }


@dataclass
class Operator:
    """A registered volunteer or admin."""
    volunteer_code: str
    password: str
    name: str
    laz_name: str = ""
    description: str = ""
    role: Role = Role.USER

    def identity(self) -> Identity:
        return Identity(volunteer_code=self.volunteer_code, name=self.name, role=self.role)

    def to_dict(self) -> dict[str, str]:
        """Public view, password omitted."""
        return {
            "volunteer_code": self.volunteer_code,
            "name": self.name,
            "laz_name": self.laz_name,
            "description": self.description,
            "role": self.role.value,
        }


@dataclass
class FunctionCall:
    """A structured operation request."""
    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class OracleResponse:
    """What the intent oracle made of an utterance."""
    answer_text: Optional[str] = None
    function_calls: list[FunctionCall] = field(default_factory=list)

    @property
    def first_call(self) -> Optional[FunctionCall]:
        """Only the first function call is honored."""
        return self.function_calls[0] if self.function_calls else None


@dataclass
class Attachment:
    """A submitted file. Only the name is kept once accepted."""
    name: str
    size: int


@dataclass
class ConversationContext:
    """Conversation state of one session (not persisted)."""
    active_intent: ConversationState = ConversationState.IDLE
    collected_fields: dict[str, Any] = field(default_factory=dict)
    next_question_key: Optional[FormField] = None
    pending_operation: Optional[FunctionCall] = None

    @property
    def awaiting_attachment(self) -> bool:
        return self.next_question_key is ReportField.PROOF_OF_TRANSFER

    @property
    def is_idle(self) -> bool:
        return self.active_intent is ConversationState.IDLE

    def reset(self) -> None:
        """Return to IDLE, dropping everything collected so far."""
        self.active_intent = ConversationState.IDLE
        self.collected_fields = {}
        self.next_question_key = None
        self.pending_operation = None

    def start_flow(self, state: ConversationState, fields: Optional[dict[str, Any]] = None) -> None:
        if state not in FLOW_FIELDS:
            raise ValueError(f"{state.name} is not a collection flow")
        self.reset()
        self.active_intent = state
        self.collected_fields = dict(fields or {})

    def start_delete(self, call: FunctionCall) -> None:
        self.reset()
        self.active_intent = ConversationState.CONFIRMING_DELETE
        self.pending_operation = call

    def await_confirmation(self) -> None:
        """Move a completed collection flow to its confirmation state."""
        match self.active_intent:
            case ConversationState.COLLECTING_ZAKAT:
                self.active_intent = ConversationState.CONFIRMING_ADD
            case ConversationState.COLLECTING_USER:
                self.active_intent = ConversationState.CONFIRMING_ADD_USER
            case _:
                raise ValueError(f"Cannot confirm from {self.active_intent.name}")
        self.next_question_key = None

    def missing_fields(self, order: tuple) -> list[FormField]:
        return [f for f in order if f.value not in self.collected_fields]

    def ask(self, form_field: FormField) -> None:
        """Set the field being solicited, keeping it inside the active flow."""
        if form_field not in FLOW_FIELDS.get(self.active_intent, ()):
            raise ValueError(f"{form_field} does not belong to {self.active_intent.name}")
        if form_field.value in self.collected_fields:
            raise ValueError(f"{form_field} was already collected")
        self.next_question_key = form_field

    def collect(self, form_field: FormField, value: Any) -> None:
        if form_field is not self.next_question_key:
            raise ValueError(f"{form_field} is not the field being asked")
        self.collected_fields[form_field.value] = value
        self.next_question_key = None


@dataclass
class ChatSession:
    """Runtime chat session for one connected operator (not persisted)."""
    session_id: str
    identity: Optional[Identity] = None
    context: ConversationContext = field(default_factory=ConversationContext)
    transcript: Transcript = field(default_factory=Transcript)
    created_at: datetime = field(default_factory=datetime.now)
