"""Pytest fixtures for rettib-chat-mcp tests."""

import asyncio
import json
import signal
from unittest.mock import AsyncMock, MagicMock

import pytest

from rettib_chat_mcp import runtime
from rettib_chat_mcp.config import Settings
from rettib_chat_mcp.executor import BufferedEventSink, StreamRegistry, TerminalSessionManager, logging
from rettib_chat_mcp.executor.cli import ClaudeExecutableResolver
from rettib_chat_mcp.metadata import InMemoryChatMetadataStore


@pytest.fixture
def reset_logger_singleton():
    """Сброс singleton _logger между тестами."""
    original_value = logging._logger

    logging._logger = None

    yield

    logging._logger = original_value


@pytest.fixture
def reset_runtime_singleton():
    """Сброс singleton _runtime между тестами."""
    original_value = runtime._runtime

    runtime._runtime = None

    yield

    runtime._runtime = original_value


@pytest.fixture
def fake_resolver():
    """Resolver, который всегда находит /usr/bin/claude без запуска процессов."""
    resolver = ClaudeExecutableResolver()
    resolver.resolve = MagicMock(return_value="/usr/bin/claude")
    return resolver


@pytest.fixture
def pty_spawner():
    return FakePtySpawner()


@pytest.fixture
def agent_runtime(fake_resolver, pty_spawner, reset_logger_singleton):
    """AgentRuntime с поддельным claude и поддельным pty."""
    settings = Settings(default_cwd="/work")
    metadata_store = InMemoryChatMetadataStore()
    terminal_events = BufferedEventSink(maxlen=settings.terminal_event_buffer)
    return runtime.AgentRuntime(
        settings=settings,
        resolver=fake_resolver,
        registry=StreamRegistry(),
        metadata_store=metadata_store,
        terminal_events=terminal_events,
        terminal=TerminalSessionManager(terminal_events, fake_resolver, metadata_store, spawn_pty=pty_spawner),
    )


class CollectingEventSink:
    """Sink, сохраняющий все опубликованные события по порядку."""

    def __init__(self):
        self.events: list = []

    def publish(self, event) -> None:
        self.events.append(event)


def ndjson(*payloads) -> list[bytes]:
    """Строки stream-json в том виде, в каком их пишет claude."""
    return [(json.dumps(p) if not isinstance(p, str) else p).encode("utf-8") + b"\n" for p in payloads]


class FakeStream:
    """Заменитель asyncio.StreamReader поверх async-генератора строк."""

    def __init__(self, lines):
        self._lines = lines.__aiter__()

    async def readline(self) -> bytes:
        try:
            return await self._lines.__anext__()
        except StopAsyncIteration:
            return b""


def make_process(stdout_lines=(), stderr_lines=(), returncode=0, on_stdout=None):
    """Мок asyncio.subprocess.Process с async-генераторами вместо pipe."""
    process = MagicMock()
    process.returncode = None

    async def mock_stdout():
        for line in stdout_lines:
            if on_stdout is not None:
                on_stdout()
            yield line

    async def mock_stderr():
        for line in stderr_lines:
            yield line

    async def mock_wait():
        process.returncode = returncode
        return returncode

    process.stdout = FakeStream(mock_stdout())
    process.stderr = FakeStream(mock_stderr())
    process.wait = AsyncMock(side_effect=mock_wait)
    process.terminate = MagicMock()
    return process


class FakePty:
    """Заменитель PtyProcess: вывод подаётся через feed(), выход через finish()."""

    def __init__(self):
        self.queue: asyncio.Queue = asyncio.Queue()
        self.exited = asyncio.get_running_loop().create_future()
        self.written: list[bytes] = []
        self.sizes: list[tuple[int, int]] = []
        self.signals: list[int] = []
        self.closed = False

    async def chunks(self):
        while True:
            data = await self.queue.get()
            if data is None:
                return
            yield data

    def feed(self, data: bytes) -> None:
        self.queue.put_nowait(data)

    def finish(self, returncode: int) -> None:
        if not self.exited.done():
            self.queue.put_nowait(None)
            self.exited.set_result(returncode)

    def write(self, data: bytes) -> None:
        self.written.append(data)

    def resize(self, cols: int, rows: int) -> None:
        self.sizes.append((cols, rows))

    def hangup(self) -> None:
        self.signals.append(signal.SIGHUP)
        self.finish(-signal.SIGHUP)

    def kill(self) -> None:
        self.signals.append(signal.SIGKILL)
        self.finish(-signal.SIGKILL)

    async def wait(self) -> int:
        return await self.exited

    def close(self) -> None:
        self.closed = True
        self.queue.put_nowait(None)


class FakePtySpawner:
    """Записывает вызовы spawn и выдаёт новый FakePty на каждый запуск."""

    def __init__(self, error: Exception = None):
        self.calls: list[dict] = []
        self.ptys: list[FakePty] = []
        self.error = error

    async def __call__(self, argv, *, cwd, env, cols, rows):
        self.calls.append({"argv": list(argv), "cwd": cwd, "env": env, "cols": cols, "rows": rows})
        if self.error is not None:
            raise self.error
        pty = FakePty()
        self.ptys.append(pty)
        return pty


async def settle(rounds: int = 10) -> None:
    """Дать event loop обработать отложенные задачи."""
    for _ in range(rounds):
        await asyncio.sleep(0)
