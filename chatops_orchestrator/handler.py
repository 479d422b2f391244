"""
Inbound message processing.

``MessageProcessor.handle`` is the entry point the chat integration calls for
every new message: it filters messages the assistant should ignore, builds
the conversation from channel history, runs the orchestration loop and
delivers the reply.
"""

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from .conversation import AttachmentEncoder, ConversationContextBuilder
from .errors import OrchestratorError
from .models import AppConfig
from .orchestration import OrchestrationLoop, OrchestrationResult
from .platform import ChatMessage, ChatPlatform, MessageHandle
from .provider import ProviderClient
from .tracing import TracingContext, get_tracing_client

logger = logging.getLogger(__name__)

NO_RESPONSE_TEXT = (
    "I received your message but couldn't generate a response. "
    "Please check the logs for details."
)
ERROR_TEXT = "Sorry, I encountered an error processing your message."


@dataclass
class ProcessingResult:
    """Outcome of handling one inbound message."""

    reply: str
    run_id: str
    delivered_to: Optional[str] = None
    reply_message: Optional[MessageHandle] = None
    orchestration: Optional[OrchestrationResult] = None
    error: Optional[str] = None


class MessageProcessor:
    """Runs the orchestration loop for messages arriving on a chat platform."""

    def __init__(
        self,
        platform: ChatPlatform,
        loop: OrchestrationLoop,
        builder: Optional[ConversationContextBuilder] = None,
        allowed_channel: str = "",
        history_limit: int = 10,
    ):
        self.platform = platform
        self.loop = loop
        self.builder = builder or ConversationContextBuilder(max_recent=history_limit)
        self.allowed_channel = allowed_channel
        self.history_limit = history_limit

    @classmethod
    def from_config(
        cls,
        settings: AppConfig,
        platform: ChatPlatform,
        provider: ProviderClient,
        sleep: Any = None,
    ) -> "MessageProcessor":
        conv = settings.conversation
        encoder = AttachmentEncoder(
            provider,
            inline_limit=conv.inline_attachment_limit,
            max_bytes=conv.max_attachment_bytes,
        )
        return cls(
            platform=platform,
            loop=OrchestrationLoop.from_config(settings, provider, sleep=sleep),
            builder=ConversationContextBuilder(encoder, conv.max_recent_messages),
            allowed_channel=conv.allowed_channel,
            history_limit=conv.max_recent_messages,
        )

    def should_handle(self, message: ChatMessage) -> bool:
        if message.author.bot:
            return False
        if self.allowed_channel and message.channel_id != self.allowed_channel:
            return False
        return bool((message.content or "").strip())

    async def handle(self, message: ChatMessage) -> Optional[ProcessingResult]:
        """
        Process one inbound message end to end.

        Returns:
            ProcessingResult, or None when the message is ignored.
        """
        if not self.should_handle(message):
            return None

        run_id = f"run-{uuid.uuid4().hex[:8]}"
        request = message.content.strip()
        tracing = TracingContext(
            run_id=run_id,
            session_id=message.channel_id,
            user_id=message.author.id,
        )
        tracing.start_trace(
            request=request,
            metadata={"channel_id": message.channel_id, "guild_id": message.guild_id},
        )

        result: Optional[OrchestrationResult] = None
        error: Optional[str] = None
        try:
            history = await self.platform.fetch_history(
                message.channel_id, self.history_limit, before=message.id
            )
            conversation = await self.builder.build(message, history)
            result = await self.loop.run(conversation, request, message, tracing, run_id)
            reply = result.text.strip() or NO_RESPONSE_TEXT
        except OrchestratorError as e:
            logger.error(f"[{run_id}] Orchestration failed: {e}")
            error = str(e)
            reply = ERROR_TEXT
        except Exception as e:
            logger.exception(f"[{run_id}] Unexpected error processing message: {e}")
            error = str(e) or type(e).__name__
            reply = ERROR_TEXT
        finally:
            tracing.end_trace(
                output=error or (result.text[:500] if result else None),
                status="error" if error else "success",
                metadata={"stop_reason": result.stop_reason} if result else None,
            )
            _flush_tracing()

        new_channel_id = result.new_channel_id if result else None
        handle, delivered_to = await self.deliver(message, reply, new_channel_id)
        return ProcessingResult(
            reply=reply,
            run_id=run_id,
            delivered_to=delivered_to,
            reply_message=handle,
            orchestration=result,
            error=error,
        )

    async def deliver(
        self,
        message: ChatMessage,
        text: str,
        new_channel_id: Optional[str] = None,
    ) -> tuple[Optional[MessageHandle], Optional[str]]:
        """
        Send the reply.

        A purge replaces the origin channel, so the reply goes to the new
        channel when one was created. Otherwise reply to the message and fall
        back to a plain channel send when replying fails.
        """
        if new_channel_id and await self.platform.channel_exists(new_channel_id):
            try:
                return await self.platform.send(new_channel_id, text), new_channel_id
            except Exception as e:
                logger.warning(f"Failed to send reply to new channel {new_channel_id}: {e}")

        try:
            return await message.reply(text), message.channel_id
        except Exception as e:
            logger.info(f"Failed to reply to message, sending regular message instead: {e}")

        try:
            return await self.platform.send(message.channel_id, text), message.channel_id
        except Exception as e:
            logger.warning(f"No suitable channel found for response: {e}")
            return None, None


def _flush_tracing() -> None:
    """Flush tracing client if available."""
    client = get_tracing_client()
    if client:
        client.flush()
