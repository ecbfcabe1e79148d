"""Chat metadata collaborator.

The relational store of the desktop app lives elsewhere; this module only
describes what the chat engine needs from it and ships an in-memory
implementation used by the server and the tests.
"""

import time
from typing import Optional, Protocol

from pydantic import BaseModel, Field


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatReference(BaseModel):
    """A conversation linked to a workstream."""

    conversation_uuid: str
    conversation_title: Optional[str] = None
    last_user_message: Optional[str] = None
    chat_timestamp: Optional[int] = None
    source: str = Field(default="claude_cli", description="Where the conversation came from")


class WorkstreamSession(BaseModel):
    """Latest claude session recorded for a workstream."""

    workstream_id: int
    session_id: str
    cwd: Optional[str] = None
    updated_at: int = Field(default_factory=_now_ms)


class ChatMetadataStore(Protocol):
    def record_session(self, workstream_id: int, session_id: str, cwd: Optional[str]) -> None:
        ...

    def link_conversation(self, workstream_id: int, reference: ChatReference) -> None:
        ...


class InMemoryChatMetadataStore:
    """Keeps sessions and chat references for the lifetime of the process."""

    def __init__(self) -> None:
        self.sessions: dict[int, WorkstreamSession] = {}
        self.references: dict[int, dict[str, ChatReference]] = {}

    def record_session(self, workstream_id: int, session_id: str, cwd: Optional[str]) -> None:
        self.sessions[workstream_id] = WorkstreamSession(
            workstream_id=workstream_id, session_id=session_id, cwd=cwd
        )

    def link_conversation(self, workstream_id: int, reference: ChatReference) -> None:
        self.references.setdefault(workstream_id, {})[reference.conversation_uuid] = reference

    def get_session(self, workstream_id: int) -> Optional[WorkstreamSession]:
        return self.sessions.get(workstream_id)

    def list_references(self, workstream_id: int) -> list[ChatReference]:
        return list(self.references.get(workstream_id, {}).values())


async def sync_conversation_reference(
    store: ChatMetadataStore,
    workstream_id: int,
    conversation_uuid: str,
    cwd: Optional[str],
) -> None:
    """Record the session as the workstream's latest and link it."""
    store.record_session(workstream_id, conversation_uuid, cwd)
    store.link_conversation(
        workstream_id,
        ChatReference(
            conversation_uuid=conversation_uuid,
            conversation_title=conversation_uuid,
            chat_timestamp=_now_ms(),
            source="claude_cli",
        ),
    )
