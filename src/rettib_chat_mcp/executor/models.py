"""Data models for executor module."""

import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, ClassVar, Optional, Union

from ..errors import InvalidPermissionModeError


class PermissionMode(str, Enum):
    """Permission modes accepted by ``claude --permission-mode``."""

    ACCEPT_EDITS = "acceptEdits"
    BYPASS_PERMISSIONS = "bypassPermissions"
    DEFAULT = "default"
    DELEGATE = "delegate"
    DONT_ASK = "dontAsk"
    PLAN = "plan"

    @classmethod
    def parse(cls, value: Union["PermissionMode", str, None]) -> Optional["PermissionMode"]:
        """Parse a user-supplied mode. Blank means unset."""
        if value is None or isinstance(value, cls):
            return value
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return None
            try:
                return cls(stripped)
            except ValueError:
                pass
        raise InvalidPermissionModeError(value)


class CommandMode(str, Enum):
    """How the interactive terminal launches claude."""

    CLAUDE = "claude"
    # Skips interactive permission prompts
    CC = "cc"


def _blank_to_none(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


@dataclass(frozen=True)
class StreamRequest:
    """A single outbound ask for a one-shot exchange."""

    message: str
    cwd: str
    resume_session_id: Optional[str] = None
    model: Optional[str] = None
    permission_mode: Optional[PermissionMode] = None
    skip_permissions: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "resume_session_id", _blank_to_none(self.resume_session_id))
        object.__setattr__(self, "model", _blank_to_none(self.model))
        object.__setattr__(self, "permission_mode", PermissionMode.parse(self.permission_mode))


_last_ms = 0


def now_ms() -> int:
    """Wall-clock milliseconds, never lower than a value already handed out."""
    global _last_ms
    _last_ms = max(_last_ms, int(time.time() * 1000))
    return _last_ms


@dataclass
class StreamEvent:
    """One unit of the live feed published during a one-shot exchange."""

    TYPES: ClassVar[tuple[str, ...]] = (
        "init", "token", "assistant", "tool_use", "tool_result",
        "question", "permission", "result", "error", "done",
    )

    stream_id: str
    event_type: str
    timestamp: int = field(default_factory=now_ms)
    session_id: Optional[str] = None
    text: Optional[str] = None
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "stream_id": self.stream_id,
            "type": self.event_type,
            "timestamp": self.timestamp,
            "session_id": self.session_id,
        }
        if self.text is not None:
            payload["text"] = self.text
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload


@dataclass(frozen=True)
class SendResult:
    """Terminal outcome of a one-shot exchange."""

    stream_id: str
    session_id: Optional[str]
    assistant_text: str
    result_text: Optional[str]
    is_error: bool
    exit_code: Optional[int]

    def to_dict(self) -> dict:
        return asdict(self)


# Decoder facts. The union below is closed: every line decodes to zero or
# more of these and nothing else.


@dataclass(frozen=True)
class InitFact:
    kind: ClassVar[str] = "init"
    data: dict


@dataclass(frozen=True)
class TokenFact:
    kind: ClassVar[str] = "token"
    text: str


@dataclass(frozen=True)
class AssistantTextFact:
    kind: ClassVar[str] = "assistant"
    text: str


@dataclass(frozen=True)
class ToolUseFact:
    kind: ClassVar[str] = "tool_use"
    id: Optional[str]
    name: Optional[str]
    input: Any = None

    def to_dict(self) -> dict:
        return {"id": self.id, "name": self.name, "input": self.input}


@dataclass(frozen=True)
class QuestionOption:
    label: str
    description: Optional[str] = None


@dataclass(frozen=True)
class QuestionFact:
    """A question the agent wants the user to answer (AskUserQuestion)."""

    kind: ClassVar[str] = "question"
    tool_use_id: Optional[str]
    question: Optional[str]
    header: Optional[str] = None
    multi_select: bool = False
    options: tuple[QuestionOption, ...] = ()
    input: Any = None

    def to_dict(self) -> dict:
        return {
            "tool_use_id": self.tool_use_id,
            "question": self.question,
            "header": self.header,
            "multi_select": self.multi_select,
            "options": [asdict(option) for option in self.options],
            "input": self.input,
        }


@dataclass(frozen=True)
class ToolResultFact:
    kind: ClassVar[str] = "tool_result"
    tool_use_id: Optional[str]
    is_error: bool = False
    text: Optional[str] = None
    stdout: Optional[str] = None
    stderr: Optional[str] = None
    interrupted: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PermissionDenialFact:
    tool_name: Optional[str]
    tool_use_id: Optional[str]
    tool_input: Any = None

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PermissionFact:
    kind: ClassVar[str] = "permission"
    denials: tuple[PermissionDenialFact, ...]

    def to_dict(self) -> dict:
        return {"denials": [denial.to_dict() for denial in self.denials]}


@dataclass(frozen=True)
class ResultFact:
    kind: ClassVar[str] = "result"
    data: dict
    result: Optional[str] = None
    is_error: Optional[bool] = None


Fact = Union[
    InitFact,
    TokenFact,
    AssistantTextFact,
    ToolUseFact,
    QuestionFact,
    ToolResultFact,
    PermissionFact,
    ResultFact,
]


@dataclass(frozen=True)
class DecodedLine:
    """Everything extracted from one line of agent output."""

    session_id: Optional[str] = None
    facts: tuple[Fact, ...] = ()

    def __bool__(self) -> bool:
        return self.session_id is not None or bool(self.facts)


class TerminalPhase(str, Enum):
    IDLE = "idle"
    STARTING = "starting"
    ACTIVE = "active"
    STOPPING = "stopping"
    CRASHED = "crashed"


@dataclass(frozen=True)
class TerminalSessionState:
    """Snapshot of the interactive terminal slot."""

    phase: TerminalPhase = TerminalPhase.IDLE
    conversation_uuid: Optional[str] = None
    workstream_id: Optional[int] = None
    cwd: Optional[str] = None
    command_mode: Optional[CommandMode] = None
    started_at: Optional[int] = None

    @property
    def is_active(self) -> bool:
        return self.phase in (TerminalPhase.STARTING, TerminalPhase.ACTIVE, TerminalPhase.STOPPING)

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "is_active": self.is_active,
            "conversation_uuid": self.conversation_uuid,
            "workstream_id": self.workstream_id,
            "cwd": self.cwd,
            "command_mode": self.command_mode.value if self.command_mode else None,
            "started_at": self.started_at,
        }


@dataclass
class TerminalEvent:
    """Lifecycle or output event from the interactive terminal."""

    event_type: str
    conversation_uuid: Optional[str] = None
    workstream_id: Optional[int] = None
    timestamp: int = field(default_factory=now_ms)
    output: Optional[str] = None
    exit_code: Optional[int] = None
    signal: Optional[int] = None
    state: Optional[TerminalSessionState] = None
    message: Optional[str] = None

    def to_dict(self) -> dict:
        payload: dict[str, Any] = {
            "type": self.event_type,
            "timestamp": self.timestamp,
            "conversation_uuid": self.conversation_uuid,
            "workstream_id": self.workstream_id,
        }
        if self.output is not None:
            payload["output"] = self.output
        if self.event_type in ("stopped", "exit"):
            payload["exit_code"] = self.exit_code
            payload["signal"] = self.signal
        if self.state is not None:
            payload["state"] = self.state.to_dict()
        if self.message is not None:
            payload["message"] = self.message
        return payload
