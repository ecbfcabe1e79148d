"""Child processes attached to a pseudo-terminal (POSIX only)."""

import asyncio
import fcntl
import os
import signal
import struct
import termios
from typing import AsyncIterator, Optional, Sequence

READ_CHUNK_SIZE = 65536


def set_window_size(fd: int, cols: int, rows: int) -> None:
    fcntl.ioctl(fd, termios.TIOCSWINSZ, struct.pack("HHHH", rows, cols, 0, 0))


def _become_session_leader() -> None:
    # Runs in the child between fork and exec: the slave on fd 0 becomes
    # the controlling terminal of a fresh session.
    os.setsid()
    fcntl.ioctl(0, termios.TIOCSCTTY, 0)


class PtyProcess:
    """A subprocess whose stdio is the slave side of a pty.

    Output is read from the master side by the event loop and handed out
    through ``chunks()`` in the order it was produced.
    """

    def __init__(self, process: asyncio.subprocess.Process, master_fd: int):
        self._process = process
        self._master_fd: Optional[int] = master_fd
        self._queue: asyncio.Queue = asyncio.Queue()
        self._reading = True
        self._pending = bytearray()
        self._loop = asyncio.get_running_loop()
        # Writes must never stall the loop when the child stops reading
        os.set_blocking(master_fd, False)
        self._loop.add_reader(master_fd, self._on_readable)

    @classmethod
    async def spawn(
        cls,
        argv: Sequence[str],
        *,
        cwd: str,
        env: dict,
        cols: int,
        rows: int,
    ) -> "PtyProcess":
        master_fd, slave_fd = os.openpty()
        try:
            set_window_size(master_fd, cols, rows)
            process = await asyncio.create_subprocess_exec(
                *argv,
                stdin=slave_fd,
                stdout=slave_fd,
                stderr=slave_fd,
                cwd=cwd,
                env=env,
                preexec_fn=_become_session_leader,
            )
        except BaseException:
            os.close(master_fd)
            raise
        finally:
            os.close(slave_fd)
        return cls(process, master_fd)

    @property
    def pid(self) -> int:
        return self._process.pid

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode

    def _on_readable(self) -> None:
        try:
            data = os.read(self._master_fd, READ_CHUNK_SIZE)
        except BlockingIOError:
            return
        except OSError:
            # EIO once every slave descriptor is closed
            data = b""
        if data:
            self._queue.put_nowait(data)
        else:
            self._stop_reading()

    def _stop_reading(self) -> None:
        if not self._reading:
            return
        self._reading = False
        if self._master_fd is not None:
            self._loop.remove_reader(self._master_fd)
        self._queue.put_nowait(None)

    async def chunks(self) -> AsyncIterator[bytes]:
        while True:
            data = await self._queue.get()
            if data is None:
                return
            yield data

    @property
    def pending_input(self) -> int:
        """Bytes accepted by ``write`` that the child has not taken yet."""
        return len(self._pending)

    def write(self, data: bytes) -> None:
        """Queue input for the child without blocking.

        Whatever the pty does not accept right away is flushed by the
        event loop once the master becomes writable again.
        """
        if self._master_fd is None:
            raise BrokenPipeError("pty is closed")
        if not data:
            return
        was_idle = not self._pending
        self._pending += data
        if was_idle:
            self._flush()

    def _flush(self) -> None:
        while self._pending:
            try:
                written = os.write(self._master_fd, self._pending)
            except (BlockingIOError, InterruptedError):
                break
            except OSError:
                # Child side is gone; the reader reports EOF
                self._pending.clear()
                break
            del self._pending[:written]

        if self._pending:
            self._loop.add_writer(self._master_fd, self._flush)
        else:
            self._loop.remove_writer(self._master_fd)

    def resize(self, cols: int, rows: int) -> None:
        if self._master_fd is not None:
            set_window_size(self._master_fd, cols, rows)

    def send_signal(self, signum: int) -> None:
        try:
            self._process.send_signal(signum)
        except ProcessLookupError:
            pass

    def hangup(self) -> None:
        self.send_signal(signal.SIGHUP)

    def kill(self) -> None:
        self.send_signal(signal.SIGKILL)

    async def wait(self) -> int:
        return await self._process.wait()

    def close(self) -> None:
        """Stop reading and release the master descriptor."""
        self._stop_reading()
        if self._master_fd is not None:
            self._loop.remove_writer(self._master_fd)
            self._pending.clear()
            os.close(self._master_fd)
            self._master_fd = None
