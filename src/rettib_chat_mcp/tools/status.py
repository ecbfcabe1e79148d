"""Status check tool."""

import asyncio
from typing import Optional

from ..executor import check_claude_available
from ..runtime import AgentRuntime, get_runtime


async def check_status(runtime: Optional[AgentRuntime] = None) -> dict:
    """Check the status of the MCP server and its dependencies.

    Returns information about:
    - Whether the claude CLI is available
    - Where settings were loaded from
    - Running streams and the interactive terminal state
    """
    runtime = runtime or get_runtime()

    # Resolving runs each candidate with --version
    cli_available, cli_message = await asyncio.to_thread(check_claude_available, runtime.resolver)
    config_path = runtime.settings.config_path

    return {
        "claude_available": cli_available,
        "claude_message": cli_message,
        "config_path": str(config_path) if config_path else None,
        "active_streams": len(runtime.registry),
        "terminal": runtime.terminal.state.to_dict(),
    }
