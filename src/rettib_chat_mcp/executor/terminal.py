"""Interactive claude sessions attached to a pseudo-terminal.

Only one interactive session exists at a time. It fills the single terminal
pane of the UI, and two interactive clients on the same claude identity
would break turn-taking. The slot is claimed synchronously in ``start``
before anything is awaited, so concurrent starts on the event loop cannot
both win.
"""

import asyncio
import codecs
import math
import os
import uuid
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, Sequence, Union

from ..errors import (
    ClaudeNotFoundError,
    ConfigurationError,
    NoActiveSessionError,
    ProcessSpawnError,
    SessionConflictError,
)
from ..metadata import ChatMetadataStore, sync_conversation_reference
from .cli import ClaudeExecutableResolver, build_child_path_env
from .events import EventSink
from .logging import get_logger
from .models import CommandMode, TerminalEvent, TerminalPhase, TerminalSessionState, now_ms
from .pseudo_terminal import PtyProcess

DEFAULT_COLS = 120
DEFAULT_ROWS = 32
MIN_COLS = 20
MIN_ROWS = 6
# How long to keep reading output after the process has exited
OUTPUT_DRAIN_SECONDS = 1.0

SpawnPty = Callable[..., Awaitable[PtyProcess]]


@dataclass
class _ActiveSession:
    conversation_uuid: str
    workstream_id: int
    cwd: str
    command_mode: CommandMode
    resumed: bool
    phase: TerminalPhase = TerminalPhase.STARTING
    pty: Optional[PtyProcess] = None
    started_at: Optional[int] = None
    stop_requested: bool = False
    watcher: Optional[asyncio.Task] = None


def build_terminal_args(conversation_uuid: str, resume: bool, command_mode: CommandMode) -> list[str]:
    args = ["--resume", conversation_uuid] if resume else ["--session-id", conversation_uuid]
    if command_mode == CommandMode.CC:
        args.append("--dangerously-skip-permissions")
    return args


def _split_returncode(returncode: Optional[int]) -> tuple[Optional[int], Optional[int]]:
    """Map a returncode to (exit_code, signal)."""
    if returncode is None:
        return None, None
    if returncode < 0:
        return None, -returncode
    return returncode, None


class TerminalSessionManager:
    """Owns the single interactive terminal slot.

    Phases: idle -> starting -> active -> (stopping | crashed) -> idle.
    Lifecycle and output events go to ``sink`` as ``TerminalEvent``s.
    """

    def __init__(
        self,
        sink: EventSink,
        resolver: ClaudeExecutableResolver,
        metadata_store: Optional[ChatMetadataStore] = None,
        *,
        cols: int = DEFAULT_COLS,
        rows: int = DEFAULT_ROWS,
        spawn_pty: SpawnPty = PtyProcess.spawn,
    ):
        self._sink = sink
        self._resolver = resolver
        self._metadata_store = metadata_store
        self._cols = cols
        self._rows = rows
        self._spawn_pty = spawn_pty
        self._session: Optional[_ActiveSession] = None
        self._background: set[asyncio.Task] = set()

    @property
    def state(self) -> TerminalSessionState:
        session = self._session
        if session is None:
            return TerminalSessionState()
        return TerminalSessionState(
            phase=session.phase,
            conversation_uuid=session.conversation_uuid,
            workstream_id=session.workstream_id,
            cwd=session.cwd,
            command_mode=session.command_mode,
            started_at=session.started_at,
        )

    def is_active_for(self, conversation_uuid: Optional[str]) -> bool:
        normalized = (conversation_uuid or "").strip()
        return bool(normalized) and self._session is not None and self._session.conversation_uuid == normalized

    def _emit(self, event_type: str, session: _ActiveSession, **payload) -> None:
        self._sink.publish(
            TerminalEvent(
                event_type=event_type,
                conversation_uuid=session.conversation_uuid,
                workstream_id=session.workstream_id,
                **payload,
            )
        )

    async def start(
        self,
        workstream_id: int,
        conversation_uuid: Optional[str],
        cwd: str,
        command_mode: Union[CommandMode, str] = CommandMode.CLAUDE,
    ) -> TerminalSessionState:
        """Start (or resume) the interactive session.

        Starting the conversation that already owns the slot returns the
        current state unchanged. Any other start while the slot is busy
        raises ``SessionConflictError``.
        """
        requested = (conversation_uuid or "").strip() or None

        current = self._session
        if current is not None:
            if requested and current.conversation_uuid == requested:
                return self.state
            if requested is None and not current.resumed and current.workstream_id == workstream_id:
                return self.state
            raise SessionConflictError(current.conversation_uuid)

        try:
            mode = CommandMode(command_mode)
        except ValueError:
            raise ConfigurationError(f"Invalid command mode: {command_mode!r}") from None

        session = _ActiveSession(
            conversation_uuid=requested or str(uuid.uuid4()),
            workstream_id=workstream_id,
            cwd=cwd,
            command_mode=mode,
            resumed=requested is not None,
        )
        self._session = session

        try:
            session.pty = await self._spawn(session)
        except BaseException:
            self._session = None
            raise

        session.phase = TerminalPhase.ACTIVE
        session.started_at = now_ms()
        get_logger().info(
            f"[terminal] ▶️ Started {session.conversation_uuid} for workstream {workstream_id} "
            f"({'resume' if session.resumed else 'new'}, mode={mode.value})"
        )
        self._emit("started", session, state=self.state)
        self._schedule_sync(session)
        session.watcher = asyncio.create_task(self._watch(session))

        if session.stop_requested:
            # stop() arrived while the process was still spawning
            session.phase = TerminalPhase.STOPPING
            session.pty.hangup()

        return self.state

    async def _spawn(self, session: _ActiveSession) -> PtyProcess:
        path_env = build_child_path_env(self._resolver.extra_dirs)
        claude = await asyncio.to_thread(self._resolver.resolve, path_env)
        if not claude:
            raise ClaudeNotFoundError()

        argv: Sequence[str] = [
            claude,
            *build_terminal_args(session.conversation_uuid, session.resumed, session.command_mode),
        ]
        env = {**os.environ, "PATH": path_env, "TERM": "xterm-256color"}
        try:
            return await self._spawn_pty(argv, cwd=session.cwd, env=env, cols=self._cols, rows=self._rows)
        except OSError as e:
            raise ProcessSpawnError(
                f"Unable to start terminal session (command: {claude}, cwd: {session.cwd}). {e}"
            ) from e

    async def _pump_output(self, session: _ActiveSession) -> None:
        assert session.pty is not None
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        async for chunk in session.pty.chunks():
            text = decoder.decode(chunk)
            if text:
                self._emit("output", session, output=text)
        tail = decoder.decode(b"", final=True)
        if tail:
            self._emit("output", session, output=tail)

    async def _watch(self, session: _ActiveSession) -> None:
        assert session.pty is not None
        pump = asyncio.create_task(self._pump_output(session))
        returncode = await session.pty.wait()
        # Descendants may keep the slave open; stop reading after a grace period
        await asyncio.wait({pump}, timeout=OUTPUT_DRAIN_SECONDS)
        session.pty.close()
        await pump
        self._on_exit(session, returncode)

    def _on_exit(self, session: _ActiveSession, returncode: Optional[int]) -> None:
        if self._session is not session:
            return

        logger = get_logger()
        exit_code, signum = _split_returncode(returncode)
        if session.stop_requested:
            event_type = "stopped"
            logger.info(f"[terminal] ⏹️ Stopped {session.conversation_uuid}")
        else:
            event_type = "exit"
            session.phase = TerminalPhase.CRASHED
            logger.warning(
                f"[terminal] Session {session.conversation_uuid} exited (code={exit_code}, signal={signum})"
            )

        self._session = None
        self._emit(event_type, session, exit_code=exit_code, signal=signum, state=self.state)
        self._schedule_sync(session)

    def _schedule_sync(self, session: _ActiveSession) -> None:
        if self._metadata_store is None:
            return
        task = asyncio.create_task(self._sync_metadata(session))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def _sync_metadata(self, session: _ActiveSession) -> None:
        assert self._metadata_store is not None
        try:
            await sync_conversation_reference(
                self._metadata_store, session.workstream_id, session.conversation_uuid, session.cwd
            )
        except Exception as e:
            get_logger().warning(f"[terminal] Metadata sync failed for {session.conversation_uuid}: {e}")
            self._emit("error", session, message=str(e) or "Failed to sync terminal session metadata")

    def stop(self) -> TerminalSessionState:
        """Ask the session to end. The slot frees once the process exits."""
        session = self._session
        if session is None:
            return self.state

        session.stop_requested = True
        if session.pty is not None:
            session.phase = TerminalPhase.STOPPING
            session.pty.hangup()
        return self.state

    def write(self, data: Union[str, bytes]) -> None:
        session = self._session
        if session is None or session.pty is None:
            raise NoActiveSessionError()
        session.pty.write(data.encode("utf-8") if isinstance(data, str) else data)

    def resize(self, cols: float, rows: float) -> None:
        session = self._session
        if session is None or session.pty is None:
            return
        if not math.isfinite(cols) or not math.isfinite(rows):
            return
        session.pty.resize(max(MIN_COLS, math.floor(cols)), max(MIN_ROWS, math.floor(rows)))

    async def shutdown(self, timeout: float = 5.0) -> None:
        """Best-effort stop used when the hosting process exits."""
        session = self._session
        if session is None:
            return

        self.stop()
        if session.watcher is None:
            return
        done, _ = await asyncio.wait({session.watcher}, timeout=timeout)
        if not done and session.pty is not None:
            get_logger().warning(f"[terminal] Session {session.conversation_uuid} ignored hangup, killing")
            session.pty.kill()
