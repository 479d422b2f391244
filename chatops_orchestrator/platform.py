"""
Chat platform interfaces consumed by the orchestrator.

The orchestrator never performs network I/O against the chat platform
itself: it reads identifiers from the inbound message and calls
reply/edit/send on message-like handles. ``InMemoryPlatform`` implements the
interfaces for the HTTP API, the interactive CLI and the tests.
"""

import itertools
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Author:
    id: str
    name: str
    bot: bool = False


@dataclass(frozen=True)
class Attachment:
    """Metadata of a file attached to a chat message."""

    name: str
    url: str
    size: Optional[int] = None
    content_type: Optional[str] = None


@runtime_checkable
class MessageHandle(Protocol):
    """A message previously posted by the assistant."""

    id: str

    async def edit(self, content: Optional[str] = None, display: Any = None) -> None: ...


@runtime_checkable
class ChatMessage(Protocol):
    """An inbound (or historical) chat message."""

    id: str
    channel_id: str
    guild_id: Optional[str]
    channel_name: Optional[str]
    author: Author
    content: str
    attachments: list[Attachment]
    created_at: float

    async def reply(
        self, content: Optional[str] = None, display: Any = None
    ) -> MessageHandle: ...


class ChatPlatform(Protocol):
    """Channel-level operations the message processor relies on."""

    async def send(
        self, channel_id: str, content: Optional[str] = None, display: Any = None
    ) -> MessageHandle: ...

    async def fetch_history(
        self, channel_id: str, limit: int, before: Optional[str] = None
    ) -> list[ChatMessage]: ...

    async def channel_exists(self, channel_id: str) -> bool: ...


class ChannelNotFound(LookupError):
    """Raised by the in-memory platform for unknown channels."""


_message_ids = itertools.count(1)


@dataclass
class InMemoryMessage:
    """A message stored by ``InMemoryPlatform``."""

    platform: "InMemoryPlatform" = field(repr=False)
    channel_id: str
    author: Author
    content: str = ""
    guild_id: Optional[str] = None
    channel_name: Optional[str] = None
    attachments: list[Attachment] = field(default_factory=list)
    display: Any = None
    reply_to: Optional[str] = None
    id: str = field(default_factory=lambda: str(next(_message_ids)))
    created_at: float = field(default_factory=time.time)
    edits: int = 0

    async def reply(
        self, content: Optional[str] = None, display: Any = None
    ) -> "InMemoryMessage":
        if not await self.platform.channel_exists(self.channel_id):
            raise ChannelNotFound(self.channel_id)
        return self.platform.post(
            self.channel_id,
            content=content or "",
            display=display,
            author=self.platform.bot_author,
            reply_to=self.id,
        )

    async def edit(self, content: Optional[str] = None, display: Any = None) -> None:
        if content is not None:
            self.content = content
        if display is not None:
            self.display = display
        self.edits += 1


class InMemoryPlatform:
    """Process-local chat platform: channels are lists of messages."""

    def __init__(
        self,
        guild_id: Optional[str] = "guild-1",
        bot_author: Optional[Author] = None,
    ):
        self.guild_id = guild_id
        self.bot_author = bot_author or Author(id="bot", name="assistant", bot=True)
        self.channels: dict[str, list[InMemoryMessage]] = {}
        self.channel_names: dict[str, str] = {}

    def create_channel(self, channel_id: str, name: Optional[str] = None) -> None:
        self.channels.setdefault(channel_id, [])
        self.channel_names[channel_id] = name or channel_id

    def delete_channel(self, channel_id: str) -> None:
        self.channels.pop(channel_id, None)
        self.channel_names.pop(channel_id, None)

    def post(
        self,
        channel_id: str,
        content: str = "",
        author: Optional[Author] = None,
        attachments: Optional[list[Attachment]] = None,
        display: Any = None,
        reply_to: Optional[str] = None,
    ) -> InMemoryMessage:
        """Store a message in a channel, creating the channel if needed."""
        if channel_id not in self.channels:
            self.create_channel(channel_id)
        message = InMemoryMessage(
            platform=self,
            channel_id=channel_id,
            author=author or self.bot_author,
            content=content,
            guild_id=self.guild_id,
            channel_name=self.channel_names.get(channel_id),
            attachments=list(attachments or []),
            display=display,
            reply_to=reply_to,
        )
        self.channels[channel_id].append(message)
        return message

    async def send(
        self, channel_id: str, content: Optional[str] = None, display: Any = None
    ) -> InMemoryMessage:
        if channel_id not in self.channels:
            raise ChannelNotFound(channel_id)
        return self.post(channel_id, content=content or "", display=display)

    async def fetch_history(
        self, channel_id: str, limit: int, before: Optional[str] = None
    ) -> list[InMemoryMessage]:
        messages = self.channels.get(channel_id, [])
        if before is not None:
            ids = [m.id for m in messages]
            if before in ids:
                messages = messages[: ids.index(before)]
        return list(messages[-limit:]) if limit > 0 else []

    async def channel_exists(self, channel_id: str) -> bool:
        return channel_id in self.channels

    def bot_messages(self, channel_id: str) -> list[InMemoryMessage]:
        return [m for m in self.channels.get(channel_id, []) if m.author.bot]
