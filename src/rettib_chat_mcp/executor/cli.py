"""CLI utilities for finding and validating the claude executable."""

import os
import subprocess
from typing import Iterable, Optional

from .logging import get_logger

CLAUDE_BINARY_NAME = "claude"
CLAUDE_BINARY_ENV_KEYS = ("RETTIB_CLAUDE_BIN", "CLAUDE_BIN")
PROBE_TIMEOUT_SECONDS = 6.0


def known_claude_bin_dirs() -> list[str]:
    """Install locations that are often missing from a GUI app's PATH."""
    home = os.path.expanduser("~")
    return [
        os.path.join(home, ".npm-global", "bin"),
        os.path.join(home, ".bun", "bin"),
        os.path.join(home, ".local", "bin"),
        "/opt/homebrew/bin",
        "/usr/local/bin",
        "/usr/bin",
        "/bin",
    ]


def _unique(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def _split_path(path_env: str) -> list[str]:
    return [part for part in path_env.split(os.pathsep) if part.strip()]


def build_child_path_env(extra_dirs: Iterable[str] = ()) -> str:
    """PATH for child processes: the current PATH plus known install dirs."""
    parts = _split_path(os.environ.get("PATH", ""))
    merged = _unique([*parts, *known_claude_bin_dirs(), *extra_dirs])
    return os.pathsep.join(merged)


def executable_in_dir(dir_path: str, binary_name: str = CLAUDE_BINARY_NAME) -> Optional[str]:
    if not dir_path:
        return None
    candidate = os.path.join(dir_path, binary_name)
    if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
        return candidate
    return None


def probe_executable(candidate: str, path_env: str) -> bool:
    """Run ``candidate --version`` and require a zero exit code."""
    try:
        completed = subprocess.run(
            [candidate, "--version"],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            env={**os.environ, "PATH": path_env},
            timeout=PROBE_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.SubprocessError) as e:
        get_logger().debug(f"Probe failed for {candidate}: {type(e).__name__}: {e}")
        return False
    return completed.returncode == 0


class ClaudeExecutableResolver:
    """Finds a working claude binary and remembers it.

    Candidates are checked in this order:
    1. ``configured_path`` (from the settings file)
    2. RETTIB_CLAUDE_BIN, then CLAUDE_BIN
    3. well-known install directories, then ``extra_dirs``
    4. every directory of the PATH passed to ``resolve``

    The cached result is revalidated on every call.
    """

    def __init__(self, configured_path: Optional[str] = None, extra_dirs: Iterable[str] = ()):
        self.configured_path = configured_path
        self.extra_dirs = list(extra_dirs)
        self._cached: Optional[str] = None

    @property
    def cached(self) -> Optional[str]:
        return self._cached

    def candidates(self, path_env: str) -> list[str]:
        candidates = []

        overrides = [self.configured_path] + [os.environ.get(key) for key in CLAUDE_BINARY_ENV_KEYS]
        for configured in overrides:
            if configured and configured.strip():
                candidates.append(os.path.abspath(os.path.expanduser(configured.strip())))

        for dir_path in [*known_claude_bin_dirs(), *self.extra_dirs, *_split_path(path_env)]:
            candidate = executable_in_dir(dir_path)
            if candidate:
                candidates.append(candidate)

        return _unique(candidates)

    def resolve(self, path_env: str) -> Optional[str]:
        logger = get_logger()

        if self._cached and probe_executable(self._cached, path_env):
            return self._cached

        for candidate in self.candidates(path_env):
            if probe_executable(candidate, path_env):
                if candidate != self._cached:
                    logger.info(f"Using claude executable: {candidate}")
                self._cached = candidate
                return candidate

        if self._cached:
            logger.warning(f"Cached claude executable is no longer usable: {self._cached}")
        self._cached = None
        return None


# Default resolver for check_claude_available
_default_resolver = ClaudeExecutableResolver()


def check_claude_available(resolver: Optional[ClaudeExecutableResolver] = None) -> tuple[bool, str]:
    """Check if the claude CLI is available.

    Returns:
        Tuple of (is_available, message).
    """
    resolver = resolver or _default_resolver
    path = resolver.resolve(build_child_path_env(resolver.extra_dirs))
    if path:
        return True, f"claude found at: {path}"
    return False, (
        "claude CLI not found in PATH. "
        "Install it and ensure it is in PATH, or set RETTIB_CLAUDE_BIN "
        "to the full binary path."
    )
