"""Interactive terminal session tools."""

from typing import Optional

from ..errors import RettibChatError
from ..runtime import AgentRuntime, get_runtime


async def start_terminal_session(
    workstream_id: int,
    cwd: Optional[str] = None,
    conversation_uuid: Optional[str] = None,
    command_mode: str = "claude",
    runtime: Optional[AgentRuntime] = None,
) -> dict:
    """Start or resume the interactive claude session."""
    runtime = runtime or get_runtime()
    working_dir = cwd or runtime.settings.default_cwd
    if not working_dir:
        return {
            "success": False,
            "error": "cwd is required (no default_cwd configured)",
            "state": runtime.terminal.state.to_dict(),
        }

    try:
        state = await runtime.terminal.start(workstream_id, conversation_uuid, working_dir, command_mode)
    except RettibChatError as e:
        return {"success": False, "error": str(e), "state": runtime.terminal.state.to_dict()}

    return {"success": True, "error": None, "state": state.to_dict()}


def stop_terminal_session(runtime: Optional[AgentRuntime] = None) -> dict:
    """Ask the interactive session to exit."""
    runtime = runtime or get_runtime()
    return {"success": True, "state": runtime.terminal.stop().to_dict()}


def send_terminal_input(data: str, runtime: Optional[AgentRuntime] = None) -> dict:
    """Write raw input (keystrokes) to the interactive session."""
    runtime = runtime or get_runtime()
    try:
        runtime.terminal.write(data)
    except RettibChatError as e:
        return {"success": False, "error": str(e)}
    return {"success": True, "error": None}


def resize_terminal(cols: float, rows: float, runtime: Optional[AgentRuntime] = None) -> dict:
    runtime = runtime or get_runtime()
    runtime.terminal.resize(cols, rows)
    return {"success": True, "state": runtime.terminal.state.to_dict()}


def get_terminal_state(runtime: Optional[AgentRuntime] = None) -> dict:
    runtime = runtime or get_runtime()
    return runtime.terminal.state.to_dict()


def read_terminal_events(limit: Optional[int] = None, runtime: Optional[AgentRuntime] = None) -> dict:
    """Drain buffered terminal events, oldest first."""
    runtime = runtime or get_runtime()
    events = runtime.terminal_events.drain(limit)
    return {
        "events": [event.to_dict() for event in events],
        "remaining": len(runtime.terminal_events),
        "dropped": runtime.terminal_events.dropped,
        "state": runtime.terminal.state.to_dict(),
    }
