"""
Conversation assembly: channel history, the current request and attachments.
"""

from .attachments import (
    AttachmentEncoder,
    attachment_summary,
    format_size,
    resolve_mime_type,
)
from .builder import (
    ConversationContextBuilder,
    build_conversation_context,
    current_request_text,
    previous_context_text,
)

__all__ = [
    "AttachmentEncoder",
    "attachment_summary",
    "format_size",
    "resolve_mime_type",
    "ConversationContextBuilder",
    "build_conversation_context",
    "current_request_text",
    "previous_context_text",
]
