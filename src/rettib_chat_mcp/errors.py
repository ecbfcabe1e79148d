"""Exception types raised by the chat engine.

Configuration problems are raised before any process is spawned and are
never worth retrying. Process problems wrap the underlying ``OSError``.
Failures reported by the agent itself are not exceptions at all; they come
back through ``SendResult.is_error``.
"""


class RettibChatError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(RettibChatError):
    """The request or environment is unusable as configured."""


class ClaudeNotFoundError(ConfigurationError):
    """No usable claude executable could be located."""

    def __init__(self) -> None:
        super().__init__(
            "Claude CLI was not found. Install it and ensure it is in PATH, "
            "or set RETTIB_CLAUDE_BIN to the full binary path."
        )


class InvalidPermissionModeError(ConfigurationError):
    """A permission mode outside the supported set was requested."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid permission mode: {value!r}")


class ProcessSpawnError(RettibChatError):
    """The agent process could not be started."""


class SessionConflictError(RettibChatError):
    """Another interactive terminal session already owns the slot."""

    def __init__(self, active_conversation_uuid: str) -> None:
        self.active_conversation_uuid = active_conversation_uuid
        super().__init__(
            f"Another terminal session is already active for {active_conversation_uuid}. "
            "Stop it before starting a new one."
        )


class NoActiveSessionError(RettibChatError):
    """Input was sent while no interactive session is running."""

    def __init__(self) -> None:
        super().__init__("No active terminal session")
