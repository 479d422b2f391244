"""
Fallback reply when the main loop ends without usable text.
"""

import logging
from typing import Optional

from ..models import ConversationEntry
from ..provider import GenerationConfig, ProviderClient
from ..tracing import TracingContext
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

MAX_SENTENCES = 2

FALLBACK_PROMPT = (
    "The previous response was empty. Provide a concise, helpful reply "
    "(max {sentences} sentences) to this request: {request}"
)
FALLBACK_TEMPLATE = (
    "I received your request: {request}. I could not retrieve additional "
    "context, but I am ready to help if you can clarify or provide more details."
)


def template_reply(request: str) -> str:
    return FALLBACK_TEMPLATE.format(request=request)


class FallbackGenerator:
    """One auxiliary provider call, then a fixed template. Never raises."""

    def __init__(
        self,
        provider: Optional[ProviderClient],
        model: str,
        retry: Optional[RetryPolicy] = None,
    ):
        self.provider = provider
        self.model = model
        self.retry = retry or RetryPolicy(max_attempts=1)

    async def generate(self, request: str, tracing: Optional[TracingContext] = None) -> str:
        if self.provider is not None:
            prompt = FALLBACK_PROMPT.format(sentences=MAX_SENTENCES, request=request)
            try:
                response = await self.retry.run(
                    self.provider.generate,
                    self.model,
                    GenerationConfig(),
                    [ConversationEntry.user_text(prompt)],
                    tracing,
                    "fallback",
                )
                text = (response.text or "").strip()
                if text:
                    return text
            except Exception as e:
                logger.warning(f"Fallback generation failed: {e}")
        return template_reply(request)
