"""One-shot execution of the claude CLI with live event streaming.

A run spawns ``claude -p`` for a single request, decodes its stream-json
output line by line, republishes what it finds as ``StreamEvent``s and
returns a ``SendResult`` once the process has exited.
"""

import asyncio
import logging
import os
import uuid
from dataclasses import dataclass, field
from typing import Optional

from ..errors import ClaudeNotFoundError, ProcessSpawnError
from .cli import ClaudeExecutableResolver, build_child_path_env
from .events import EventSink, QueueEventSink
from .logging import get_logger
from .models import (
    AssistantTextFact,
    Fact,
    InitFact,
    PermissionDenialFact,
    PermissionFact,
    QuestionFact,
    ResultFact,
    SendResult,
    StreamEvent,
    StreamRequest,
    TokenFact,
    ToolResultFact,
    ToolUseFact,
)
from .protocol import decode_line
from .registry import StreamRegistry
from .utils import build_permission_summary, clean_stderr_line

STDOUT_LINE_LIMIT = 10 * 1024 * 1024


@dataclass
class _StreamState:
    """Internal state for stream processing."""
    stream_id: str
    sink: Optional[EventSink]
    session_id: Optional[str] = None
    text_from_chunks: str = ""
    text_from_final_message: str = ""
    result_text: Optional[str] = None
    marked_as_error: bool = False
    stderr_lines: list[str] = field(default_factory=list)
    permission_denials: list[PermissionDenialFact] = field(default_factory=list)

    def emit(self, event_type: str, **payload) -> None:
        if self.sink is None:
            return
        self.sink.publish(
            StreamEvent(
                stream_id=self.stream_id,
                event_type=event_type,
                session_id=self.session_id,
                **payload,
            )
        )


def build_claude_args(request: StreamRequest) -> list[str]:
    """Argument vector for a one-shot, streaming claude invocation."""
    args = [
        "-p",
        request.message,
        "--output-format",
        "stream-json",
        "--verbose",
        "--include-partial-messages",
    ]
    if request.resume_session_id:
        args.extend(["--resume", request.resume_session_id])
    if request.model:
        args.extend(["--model", request.model])
    if request.permission_mode:
        args.extend(["--permission-mode", request.permission_mode.value])
    if request.skip_permissions:
        args.append("--dangerously-skip-permissions")
    return args


def new_stream_id() -> str:
    return str(uuid.uuid4())


def _apply_fact(state: _StreamState, fact: Fact, logger: logging.Logger) -> None:
    """Fold one decoded fact into the run state and publish it."""
    prefix = f"[{state.stream_id[:8]}]"

    if isinstance(fact, InitFact):
        logger.info(f"{prefix} Session: {state.session_id} | Model: {fact.data.get('model', '?')}")
        state.emit("init", data=fact.data)
    elif isinstance(fact, TokenFact):
        state.text_from_chunks += fact.text
        state.emit("token", text=fact.text)
    elif isinstance(fact, ToolUseFact):
        logger.info(f"{prefix} 🔧 {fact.name or '?'}")
        state.emit("tool_use", data=fact.to_dict())
    elif isinstance(fact, QuestionFact):
        state.emit("question", data=fact.to_dict())
    elif isinstance(fact, AssistantTextFact):
        state.text_from_final_message = fact.text
        if fact.text:
            state.emit("assistant", text=fact.text)
    elif isinstance(fact, ToolResultFact):
        state.emit("tool_result", data=fact.to_dict())
    elif isinstance(fact, PermissionFact):
        logger.warning(f"{prefix} {len(fact.denials)} permission denial(s)")
        state.permission_denials.extend(fact.denials)
        state.marked_as_error = True
        state.emit("permission", data=fact.to_dict())
    elif isinstance(fact, ResultFact):
        if fact.result is not None:
            state.result_text = fact.result
        if fact.is_error is not None:
            # Denials already forced the error flag and must keep it
            state.marked_as_error = fact.is_error or bool(state.permission_denials)
        state.emit("result", data=fact.data)


async def _iter_lines(reader: asyncio.StreamReader, state: _StreamState, logger: logging.Logger, label: str):
    """Yield lines until EOF, skipping any line longer than the reader limit.

    ``readline`` discards an overlong line before raising, so reading can
    continue and the pipe keeps draining.
    """
    while True:
        try:
            line = await reader.readline()
        except ValueError as e:
            logger.error(f"[{state.stream_id[:8]}] {label} line skipped: {e}")
            message = f"{label} line exceeded {STDOUT_LINE_LIMIT} bytes and was skipped"
            state.stderr_lines.append(message)
            state.emit("error", error=message)
            continue
        if not line:
            return
        yield line


async def _read_stream(stdout: asyncio.StreamReader, state: _StreamState, logger: logging.Logger) -> None:
    """Read and process stdout stream."""
    try:
        async for line in _iter_lines(stdout, state, logger, "stdout"):
            decoded = decode_line(line.decode("utf-8", errors="replace"))
            if decoded.session_id:
                state.session_id = decoded.session_id
            for fact in decoded.facts:
                _apply_fact(state, fact, logger)
    except (BrokenPipeError, ConnectionError) as e:
        logger.debug(f"[{state.stream_id[:8]}] Stream closed: {type(e).__name__}")


async def _read_stderr(stderr: asyncio.StreamReader, state: _StreamState, logger: logging.Logger) -> None:
    """Read stderr stream."""
    async for line in _iter_lines(stderr, state, logger, "stderr"):
        cleaned = clean_stderr_line(line.decode("utf-8", errors="replace"))
        if not cleaned:
            continue
        state.stderr_lines.append(cleaned)
        state.emit("error", error=cleaned)


def _build_result(state: _StreamState, exit_code: Optional[int], logger: logging.Logger) -> SendResult:
    """Build SendResult from collected state."""
    assistant_text = state.text_from_chunks or state.text_from_final_message or state.result_text or ""
    stderr_text = "\n".join(state.stderr_lines) or None
    permission_summary = (
        build_permission_summary(state.permission_denials) if state.permission_denials else None
    )
    is_error = state.marked_as_error or exit_code != 0 or bool(state.permission_denials)

    if state.result_text is not None and permission_summary:
        result_text: Optional[str] = f"{state.result_text}\n\n{permission_summary}"
    elif state.result_text is not None:
        result_text = state.result_text
    elif is_error:
        result_text = stderr_text or permission_summary
    else:
        result_text = None

    if is_error:
        logger.error(f"[{state.stream_id[:8]}] ❌ Stream failed (exit code {exit_code})")
    else:
        logger.info(f"[{state.stream_id[:8]}] ✅ Stream completed")

    return SendResult(
        stream_id=state.stream_id,
        session_id=state.session_id,
        assistant_text=assistant_text,
        result_text=result_text,
        is_error=is_error,
        exit_code=exit_code,
    )


async def run_claude_stream(
    request: StreamRequest,
    sink: Optional[EventSink] = None,
    *,
    registry: StreamRegistry,
    resolver: ClaudeExecutableResolver,
    stream_id: Optional[str] = None,
) -> SendResult:
    """Run one request/response exchange with the claude CLI.

    Args:
        request: What to ask and where to run.
        sink: Receives the live ``StreamEvent`` feed, ending with ``done``.
        registry: Where the running process is registered for cancellation.
        resolver: Locates the claude executable.
        stream_id: Pre-allocated stream id, so callers can cancel early.

    Returns:
        SendResult once the process has exited.

    Raises:
        ClaudeNotFoundError: No usable claude executable.
        ProcessSpawnError: The process could not be started.
    """
    logger = get_logger()

    child_path_env = build_child_path_env(resolver.extra_dirs)
    claude = await asyncio.to_thread(resolver.resolve, child_path_env)
    if not claude:
        raise ClaudeNotFoundError()

    stream_id = stream_id or new_stream_id()
    state = _StreamState(stream_id=stream_id, sink=sink, session_id=request.resume_session_id)

    preview = request.message[:80] + "..." if len(request.message) > 80 else request.message
    logger.info(f"[{stream_id[:8]}] 🚀 Starting | Resume: {request.resume_session_id or '-'} | Message: {preview}")

    try:
        process = await asyncio.create_subprocess_exec(
            claude,
            *build_claude_args(request),
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            limit=STDOUT_LINE_LIMIT,
            cwd=request.cwd,
            env={**os.environ, "PATH": child_path_env},
        )
    except OSError as e:
        logger.error(f"[{stream_id[:8]}] Failed to spawn {claude}: {e}")
        state.emit("error", error=str(e))
        raise ProcessSpawnError(f"Unable to start claude (command: {claude}, cwd: {request.cwd}). {e}") from e

    registry.register(stream_id, process)
    try:
        assert process.stdout and process.stderr
        # Drain both pipes to EOF before waiting, or a chatty process can block
        await asyncio.gather(
            _read_stream(process.stdout, state, logger),
            _read_stderr(process.stderr, state, logger),
        )
        exit_code = await process.wait()
    finally:
        registry.unregister(stream_id)
        if process.returncode is None:
            # The run was abandoned, e.g. the caller was cancelled
            logger.warning(f"[{stream_id[:8]}] Run abandoned, terminating claude (pid {process.pid})")
            try:
                process.terminate()
            except ProcessLookupError:
                pass

    result = _build_result(state, exit_code, logger)
    state.emit("done", data={"exit_code": exit_code, "is_error": result.is_error})
    return result


@dataclass
class StreamHandle:
    """A run in progress: its live event feed and its eventual result."""
    stream_id: str
    events: QueueEventSink
    result: "asyncio.Task[SendResult]"

    def abandon(self) -> None:
        """Cancel the run task; its process is terminated on the way out."""
        if not self.result.done():
            self.result.cancel()


def start_claude_stream(
    request: StreamRequest,
    *,
    registry: StreamRegistry,
    resolver: ClaudeExecutableResolver,
    stream_id: Optional[str] = None,
) -> StreamHandle:
    """Start ``run_claude_stream`` as a task and hand back its event channel.

    The channel is closed when the run finishes, whether it succeeded,
    raised or was cancelled. Must be called from a running event loop.
    """
    stream_id = stream_id or new_stream_id()
    events = QueueEventSink()

    async def run() -> SendResult:
        try:
            return await run_claude_stream(
                request, events, registry=registry, resolver=resolver, stream_id=stream_id
            )
        finally:
            events.close()

    return StreamHandle(stream_id=stream_id, events=events, result=asyncio.create_task(run()))
