"""Tools package for rettib-chat-mcp."""

from .chat import cancel_stream, send_message
from .status import check_status
from .terminal import (
    get_terminal_state,
    read_terminal_events,
    resize_terminal,
    send_terminal_input,
    start_terminal_session,
    stop_terminal_session,
)

__all__ = [
    "send_message",
    "cancel_stream",
    "start_terminal_session",
    "stop_terminal_session",
    "send_terminal_input",
    "resize_terminal",
    "get_terminal_state",
    "read_terminal_events",
    "check_status",
]
