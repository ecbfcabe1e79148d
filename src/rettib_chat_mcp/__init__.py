"""MCP server for chatting with the claude CLI about Rettib workstreams."""

__version__ = "0.1.0"
