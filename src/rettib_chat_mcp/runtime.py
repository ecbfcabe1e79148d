"""Long-lived objects shared by the MCP tools."""

from dataclasses import dataclass
from typing import Optional

from .config import Settings, get_config
from .executor import BufferedEventSink, ClaudeExecutableResolver, StreamRegistry, TerminalSessionManager
from .executor.logging import get_logger
from .metadata import InMemoryChatMetadataStore


@dataclass
class AgentRuntime:
    settings: Settings
    resolver: ClaudeExecutableResolver
    registry: StreamRegistry
    metadata_store: InMemoryChatMetadataStore
    terminal_events: BufferedEventSink
    terminal: TerminalSessionManager

    @classmethod
    def from_settings(cls, settings: Settings) -> "AgentRuntime":
        resolver = ClaudeExecutableResolver(settings.claude_bin, settings.extra_bin_dirs)
        metadata_store = InMemoryChatMetadataStore()
        terminal_events = BufferedEventSink(maxlen=settings.terminal_event_buffer)
        terminal = TerminalSessionManager(
            terminal_events,
            resolver,
            metadata_store,
            cols=settings.terminal_cols,
            rows=settings.terminal_rows,
        )
        return cls(
            settings=settings,
            resolver=resolver,
            registry=StreamRegistry(),
            metadata_store=metadata_store,
            terminal_events=terminal_events,
            terminal=terminal,
        )

    async def shutdown(self) -> None:
        """Stop the interactive session. In-flight streams are abandoned."""
        if len(self.registry):
            get_logger().info(f"Shutting down with {len(self.registry)} stream(s) still running")
        await self.terminal.shutdown()


# Global runtime instance (singleton)
_runtime: Optional[AgentRuntime] = None


def get_runtime() -> AgentRuntime:
    """Get or create the shared runtime."""
    global _runtime
    if _runtime is None:
        _runtime = AgentRuntime.from_settings(get_config())
    return _runtime
