"""Executor package for running the claude CLI."""

from .cli import ClaudeExecutableResolver, build_child_path_env, check_claude_available
from .events import BufferedEventSink, EventSink, QueueEventSink
from .models import (
    CommandMode,
    PermissionMode,
    SendResult,
    StreamEvent,
    StreamRequest,
    TerminalEvent,
    TerminalSessionState,
)
from .protocol import decode_line
from .registry import StreamRegistry
from .runner import StreamHandle, new_stream_id, run_claude_stream, start_claude_stream
from .terminal import TerminalSessionManager

__all__ = [
    "run_claude_stream",
    "start_claude_stream",
    "StreamHandle",
    "new_stream_id",
    "decode_line",
    "check_claude_available",
    "build_child_path_env",
    "ClaudeExecutableResolver",
    "StreamRegistry",
    "TerminalSessionManager",
    "EventSink",
    "QueueEventSink",
    "BufferedEventSink",
    "CommandMode",
    "PermissionMode",
    "StreamRequest",
    "StreamEvent",
    "SendResult",
    "TerminalEvent",
    "TerminalSessionState",
]
