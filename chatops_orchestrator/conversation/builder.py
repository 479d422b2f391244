"""
Conversation context assembly.

Converts channel history into provider turns and prepends a summary of the
recent user requests so the provider can resolve follow-ups like "do that
again" or "delete the channel you just made".
"""

import logging
import re
from typing import Optional

from ..models import ConversationEntry, ConversationPart, TextPart
from ..platform import ChatMessage
from .attachments import AttachmentEncoder

logger = logging.getLogger(__name__)

RESPONDING_PREFIX = re.compile(r"^\[Responding to @\w+\]\s*", re.IGNORECASE)
FUNCTION_RESULT_PREFIX = "Function "
USER_MESSAGE_MARKER = "User message: "
PREVIOUS_CONTEXT_HEADER = "PREVIOUS CONVERSATION CONTEXT (READ THIS CAREFULLY):"
FUNCTION_RESULTS_HEADER = (
    "Recent function call results (you can reference this data in your responses):"
)
RECENT_REQUESTS_LIMIT = 5


def current_request_text(message: ChatMessage) -> str:
    channel_name = message.channel_name or message.channel_id
    return (
        f"Current channel: {channel_name} (ID: {message.channel_id})\n"
        f"{USER_MESSAGE_MARKER}{message.content.strip()}"
    )


def _is_function_result(entry: ConversationEntry) -> bool:
    text = entry.first_text
    return entry.role == "user" and text is not None and text.startswith(FUNCTION_RESULT_PREFIX)


def _is_user_request(entry: ConversationEntry) -> bool:
    text = entry.first_text
    return (
        entry.role == "user"
        and text is not None
        and not text.startswith(FUNCTION_RESULT_PREFIX)
    )


def previous_context_text(recent: list[ConversationEntry]) -> str:
    """Summary turn listing recent user requests and function results."""
    text = PREVIOUS_CONTEXT_HEADER

    requests = [e for e in recent if _is_user_request(e)][-RECENT_REQUESTS_LIMIT:]
    if requests:
        text += "\n\nRecent user requests:"
        for index, entry in enumerate(requests, 1):
            request = entry.first_text or ""
            if USER_MESSAGE_MARKER in request:
                request = request.split(USER_MESSAGE_MARKER, 1)[1]
            text += f'\n{index}. "{request}"'

    results = [e for e in recent if _is_function_result(e)]
    if results:
        text += f"\n\n{FUNCTION_RESULTS_HEADER}"
        for index, entry in enumerate(results, 1):
            text += f"\n{index}. {entry.first_text or ''}"
    return text


def build_conversation_context(
    current_parts: list[ConversationPart],
    history: list[ConversationEntry],
    max_recent: int = 10,
) -> list[ConversationEntry]:
    """
    Order the turns sent to the provider.

    Returns ``[summary, *recent history, current request]``, or just the
    current request when there is no history.
    """
    current = ConversationEntry(role="user", parts=list(current_parts))
    recent = history[-max_recent:] if max_recent > 0 else []
    if not recent:
        return [current]

    summary = ConversationEntry.user_text(previous_context_text(recent))
    return [summary, *recent, current]


class ConversationContextBuilder:
    """Builds the provider conversation for one inbound chat message."""

    def __init__(self, encoder: Optional[AttachmentEncoder] = None, max_recent: int = 10):
        self.encoder = encoder
        self.max_recent = max_recent

    async def _attachment_parts(self, message: ChatMessage) -> list[ConversationPart]:
        if not message.attachments or self.encoder is None:
            return []
        return await self.encoder.encode(message.attachments)

    async def entry_from_message(
        self, message: ChatMessage, current_user_id: str
    ) -> Optional[ConversationEntry]:
        """Convert one history message; None when it carries nothing useful."""
        parts: list[ConversationPart] = []
        author = message.author

        if author.bot:
            content = RESPONDING_PREFIX.sub("", message.content or "").strip()
            if content:
                parts.append(TextPart(content))
            elif message.attachments:
                parts.append(TextPart(f"{author.name} shared attachments."))
            parts.extend(await self._attachment_parts(message))
            if not parts:
                return None
            return ConversationEntry(role="model", parts=parts, timestamp=message.created_at)

        prefix = "[SAME USER] " if author.id == current_user_id else "[DIFFERENT USER] "
        content = (message.content or "").strip()
        if content:
            parts.append(TextPart(f"{prefix}@{author.name}: {content}"))
        elif message.attachments:
            parts.append(TextPart(f"{prefix}@{author.name} shared attachments."))
        else:
            return None
        parts.extend(await self._attachment_parts(message))
        return ConversationEntry(role="user", parts=parts, timestamp=message.created_at)

    async def build(
        self, message: ChatMessage, history: list[ChatMessage]
    ) -> list[ConversationEntry]:
        entries = []
        for past in history:
            entry = await self.entry_from_message(past, message.author.id)
            if entry is not None:
                entries.append(entry)

        current_parts: list[ConversationPart] = [TextPart(current_request_text(message))]
        current_parts.extend(await self._attachment_parts(message))
        logger.debug(
            f"Built context: {len(entries)} history entries, "
            f"{len(current_parts)} current part(s)"
        )
        return build_conversation_context(current_parts, entries, self.max_recent)
