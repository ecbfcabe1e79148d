"""MCP Server for chatting with the claude CLI about Rettib workstreams.

This server exposes one-shot chat exchanges and a single interactive
terminal session with the claude command-line agent.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Annotated, Optional

from mcp.server.fastmcp import FastMCP

from .runtime import get_runtime
from .tools import (
    cancel_stream as cancel_stream_impl,
    check_status as check_status_impl,
    get_terminal_state as get_terminal_state_impl,
    read_terminal_events as read_terminal_events_impl,
    resize_terminal as resize_terminal_impl,
    send_message as send_message_impl,
    send_terminal_input as send_terminal_input_impl,
    start_terminal_session as start_terminal_session_impl,
    stop_terminal_session as stop_terminal_session_impl,
)


@asynccontextmanager
async def lifespan(server: FastMCP) -> AsyncIterator[None]:
    """Stop the interactive session when the server shuts down."""
    try:
        yield
    finally:
        await get_runtime().shutdown()


# Initialize the MCP server
mcp = FastMCP("Rettib Chat", lifespan=lifespan)


@mcp.tool()
async def send_message(
    message: Annotated[str, "The message to send to claude"],
    cwd: Annotated[
        Optional[str],
        "Working directory the claude process runs in. Defaults to default_cwd from rettib.yaml.",
    ] = None,
    workstream_id: Annotated[
        Optional[int],
        "Workstream this conversation belongs to. Its latest session is recorded.",
    ] = None,
    context: Annotated[
        str,
        "Context bundle for the workstream, prepended to the message",
    ] = "",
    resume_session_id: Annotated[
        Optional[str],
        "Full session id from a previous result to continue that conversation. If not provided, starts a new session.",
    ] = None,
    model: Annotated[Optional[str], "Override the model (optional)"] = None,
    permission_mode: Annotated[
        Optional[str],
        "One of acceptEdits, bypassPermissions, default, delegate, dontAsk, plan (optional)",
    ] = None,
    skip_permissions: Annotated[
        bool,
        "Pass --dangerously-skip-permissions to claude",
    ] = False,
    stream_id: Annotated[
        Optional[str],
        "Stream id to use, so the exchange can be cancelled with cancel_stream while it runs (optional)",
    ] = None,
) -> dict:
    """Send one message to claude and wait for the complete reply.

    Returns:
        A dictionary with:
        - success: Whether the exchange completed without error
        - stream_id / session_id: Use session_id as resume_session_id to continue
        - assistant_text: Claude's reply
        - result_text: Claude's final result, including any permission requests
        - is_error / exit_code: Outcome of the claude process
        - events: Every stream event (tokens, tool uses, tool results, questions, ...)
    """
    return await send_message_impl(
        workstream_id=workstream_id,
        message=message,
        cwd=cwd,
        context=context,
        resume_session_id=resume_session_id,
        model=model,
        permission_mode=permission_mode,
        skip_permissions=skip_permissions,
        stream_id=stream_id,
    )


@mcp.tool()
def cancel_stream(
    stream_id: Annotated[str, "Stream id of the running exchange"],
) -> dict:
    """Ask a running send_message exchange to terminate.

    Returns cancelled=False when no such exchange is running.
    """
    return cancel_stream_impl(stream_id)


@mcp.tool()
async def start_terminal_session(
    workstream_id: Annotated[int, "Workstream the session belongs to"],
    cwd: Annotated[Optional[str], "Working directory for claude"] = None,
    conversation_uuid: Annotated[
        Optional[str],
        "Conversation to resume. If not provided, a new conversation is created.",
    ] = None,
    command_mode: Annotated[
        str,
        "'claude' for a normal session, 'cc' to skip permission prompts",
    ] = "claude",
) -> dict:
    """Start the interactive claude terminal session.

    Only one session can run at a time. Starting the conversation that is
    already running returns its state; any other conversation fails until
    stop_terminal_session is called.
    """
    return await start_terminal_session_impl(
        workstream_id=workstream_id,
        cwd=cwd,
        conversation_uuid=conversation_uuid,
        command_mode=command_mode,
    )


@mcp.tool()
def stop_terminal_session() -> dict:
    """Stop the interactive terminal session (it ends asynchronously)."""
    return stop_terminal_session_impl()


@mcp.tool()
def send_terminal_input(
    data: Annotated[str, "Raw input, e.g. text followed by '\\r'"],
) -> dict:
    """Write input to the interactive terminal session."""
    return send_terminal_input_impl(data)


@mcp.tool()
def resize_terminal(
    cols: Annotated[float, "Terminal width in columns"],
    rows: Annotated[float, "Terminal height in rows"],
) -> dict:
    """Resize the interactive terminal (minimum 20x6)."""
    return resize_terminal_impl(cols, rows)


@mcp.tool()
def get_terminal_state() -> dict:
    """Get the state of the interactive terminal session."""
    return get_terminal_state_impl()


@mcp.tool()
def read_terminal_events(
    limit: Annotated[Optional[int], "Maximum number of events to return"] = None,
) -> dict:
    """Read pending terminal events (output, started, stopped, exit, error)."""
    return read_terminal_events_impl(limit)


@mcp.tool()
async def check_status() -> dict:
    """Check the status of the MCP server and its dependencies.

    Returns information about:
    - Whether the claude CLI is available
    - Where settings were loaded from
    - Running streams and the interactive terminal state
    """
    return await check_status_impl()


def main():
    """Entry point for the MCP server."""
    mcp.run()


if __name__ == "__main__":
    main()
