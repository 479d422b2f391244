"""
Conversation models consumed by the provider adapter.

A conversation is an ordered list of entries, each with a role and an
ordered list of parts (text, inline binary data, or a reference to a file
uploaded to the provider).
"""

import time
from dataclasses import dataclass, field
from typing import Literal, Optional, Union

Role = Literal["user", "model"]


@dataclass(frozen=True)
class TextPart:
    text: str


@dataclass(frozen=True)
class InlineDataPart:
    """Base64-encoded attachment bytes sent inline with the request."""

    mime_type: str
    data: str


@dataclass(frozen=True)
class FileReferencePart:
    """An attachment uploaded to the provider ahead of the request."""

    mime_type: str
    file_id: str
    display_name: Optional[str] = None


ConversationPart = Union[TextPart, InlineDataPart, FileReferencePart]


@dataclass
class ConversationEntry:
    """One turn of the conversation sent to the provider."""

    role: Role
    parts: list[ConversationPart]
    timestamp: float = field(default_factory=time.time)

    @classmethod
    def user_text(cls, text: str) -> "ConversationEntry":
        return cls(role="user", parts=[TextPart(text)])

    @property
    def first_text(self) -> Optional[str]:
        """Text of the first part, or None if it is not a text part."""
        if self.parts and isinstance(self.parts[0], TextPart):
            return self.parts[0].text
        return None

    @property
    def text(self) -> str:
        """Concatenation of all text parts."""
        return "".join(p.text for p in self.parts if isinstance(p, TextPart))
