"""One-shot chat tools."""

from typing import Optional

from ..errors import RettibChatError
from ..executor import StreamRequest, start_claude_stream
from ..executor.logging import get_logger
from ..runtime import AgentRuntime, get_runtime


def build_message(message: str, context: str = "") -> str:
    """Prepend the workstream context bundle to the user's message."""
    if not context.strip():
        return message
    return f"## Context\n\n{context.strip()}\n\n## Message\n\n{message}"


def _failure(error: str, stream_id: Optional[str] = None, session_id: Optional[str] = None) -> dict:
    return {
        "success": False,
        "error": error,
        "stream_id": stream_id,
        "session_id": session_id,
        "assistant_text": "",
        "result_text": None,
        "is_error": True,
        "exit_code": None,
        "events": [],
    }


async def send_message(
    workstream_id: Optional[int],
    message: str,
    cwd: Optional[str] = None,
    context: str = "",
    resume_session_id: Optional[str] = None,
    model: Optional[str] = None,
    permission_mode: Optional[str] = None,
    skip_permissions: bool = False,
    stream_id: Optional[str] = None,
    runtime: Optional[AgentRuntime] = None,
) -> dict:
    """Send one message to claude and wait for the reply.

    Returns:
        A dictionary with:
        - success: Whether the exchange ran to completion without error
        - error: Why it could not run, if it did not
        - stream_id / session_id: Identifiers of this exchange
        - assistant_text: Best-effort assistant reply
        - result_text: Claude's own result, plus any permission summary
        - is_error / exit_code: Outcome reported by the process
        - events: The full stream event feed
    """
    runtime = runtime or get_runtime()
    settings = runtime.settings

    if runtime.terminal.is_active_for(resume_session_id):
        return _failure(
            f"Conversation {resume_session_id.strip()} is open in the interactive terminal. "
            "Send the message there or stop the terminal session first.",
            session_id=resume_session_id,
        )

    working_dir = cwd or settings.default_cwd
    if not working_dir:
        return _failure("cwd is required (no default_cwd configured)")

    try:
        request = StreamRequest(
            message=build_message(message, context),
            cwd=working_dir,
            resume_session_id=resume_session_id,
            model=model or settings.default_model,
            permission_mode=permission_mode or settings.default_permission_mode,
            skip_permissions=skip_permissions,
        )
    except RettibChatError as e:
        return _failure(str(e))

    handle = start_claude_stream(
        request,
        registry=runtime.registry,
        resolver=runtime.resolver,
        stream_id=stream_id,
    )
    events: list[dict] = []
    try:
        async for event in handle.events:
            events.append(event.to_dict())
        result = await handle.result
    except RettibChatError as e:
        failure = _failure(str(e), stream_id=handle.stream_id, session_id=request.resume_session_id)
        failure["events"] = events
        return failure
    finally:
        handle.abandon()

    if workstream_id is not None and result.session_id:
        runtime.metadata_store.record_session(workstream_id, result.session_id, working_dir)
        get_logger().debug(f"Recorded session {result.session_id} for workstream {workstream_id}")

    return {
        "success": not result.is_error,
        "error": None,
        **result.to_dict(),
        "events": events,
    }


def cancel_stream(stream_id: str, runtime: Optional[AgentRuntime] = None) -> dict:
    """Request early termination of a running exchange."""
    runtime = runtime or get_runtime()
    cancelled = runtime.registry.cancel(stream_id)
    return {
        "stream_id": stream_id,
        "cancelled": cancelled,
    }
