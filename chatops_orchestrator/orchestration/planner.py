"""
Up-front action planning.

Before the first main round, a lightweight provider call lists the
operations the request will need. The names become pending placeholders in
the execution log so the checklist can show the whole plan early. Planning
is best-effort: any failure leaves the log unchanged.
"""

import json
import logging
import re
from typing import Any, Optional

import json_repair

from ..models import ConversationEntry
from ..operations.registry import OperationRegistry
from ..provider import GenerationConfig, ProviderClient
from ..tracing import TracingContext
from .checklist import ChecklistReporter
from .dedup import CallDeduplicator
from .execution_log import ExecutionLog
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

EMBED_INTENT = re.compile(
    r"\b(embed|rich\s*embed|format(?:ted|ting)?|layout|table|grid|card|presentation|styled)\b",
    re.IGNORECASE,
)
SEARCH_INTENT = re.compile(r"\bsearch|news|find|look up", re.IGNORECASE)

SEARCH_OPERATION = "search"
EMBED_OPERATIONS = ("createEmbed", "sendDiscordMessage")

PLANNING_PROMPT = """Analyze this request and list ALL function calls you will need to make, in the exact order you'll execute them.

Available tools: {tools}

Request: "{request}"

Think through the COMPLETE workflow:
- If creating multiple items (channels, roles, etc.), list each creation separately
- If setting permissions on multiple channels, list each setChannelPermissions call
- Include the final message/response function if needed

Rules:
- Use createEmbed for rich formatting/embeds
- Use sendDiscordMessage for final messages
- Avoid executeCode unless user explicitly wants custom code
- List EVERY function call, don't summarize

Respond with ONLY a JSON array of function names in execution order, e.g., ["createCategory","createChannel","createRole","sendDiscordMessage"]"""


def parse_plan(text: str) -> list[str]:
    """Lenient parse of a JSON array of names; non-strings are dropped."""
    text = (text or "").strip()
    if not text:
        return []
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError:
        parsed = json_repair.loads(text)
    if not isinstance(parsed, list):
        return []
    return [name for name in parsed if isinstance(name, str)]


def enrich_plan(plan: list[str], request: str) -> list[str]:
    """Apply intent heuristics, then drop repeated names keeping first order."""
    plan = list(plan)
    if SEARCH_INTENT.search(request) and SEARCH_OPERATION not in plan:
        plan.insert(0, SEARCH_OPERATION)
    if EMBED_INTENT.search(request):
        for name in EMBED_OPERATIONS:
            if name not in plan:
                plan.append(name)
    return list(dict.fromkeys(plan))


class Planner:
    """Seeds the execution log with placeholders for the expected calls."""

    def __init__(
        self,
        provider: ProviderClient,
        model: str,
        retry: RetryPolicy,
        registry: type[OperationRegistry] = OperationRegistry,
        deduplicator: Optional[CallDeduplicator] = None,
    ):
        self.provider = provider
        self.model = model
        self.retry = retry
        self.registry = registry
        self.deduplicator = deduplicator or CallDeduplicator()

    def build_prompt(self, request: str) -> str:
        return PLANNING_PROMPT.format(
            tools=", ".join(self.registry.names()), request=request
        )

    async def propose(self, request: str, tracing: Optional[TracingContext] = None) -> list[str]:
        response = await self.retry.run(
            self.provider.generate,
            self.model,
            GenerationConfig(),
            [ConversationEntry.user_text(self.build_prompt(request))],
            tracing,
            "action_plan",
        )
        return enrich_plan(parse_plan(response.text or "[]"), request)

    def seed(self, plan: list[str], log: ExecutionLog) -> list[int]:
        """Create placeholders for registered names, in plan order."""
        handles = []
        for name in plan:
            if self.registry.get(name) is None:
                continue
            if self.deduplicator.is_single_execution(name) and log.has_name(name):
                continue
            handles.append(log.add_placeholder(name))
        return handles

    async def plan(
        self,
        request: str,
        log: ExecutionLog,
        message: Any = None,
        reporter: Optional[ChecklistReporter] = None,
        tracing: Optional[TracingContext] = None,
    ) -> list[str]:
        """Plan, seed and post the initial checklist. Never raises."""
        try:
            plan = await self.propose(request, tracing)
            if plan:
                logger.info(
                    "[action-plan] %s",
                    json.dumps(
                        {
                            "message_id": getattr(message, "id", "unknown"),
                            "user_id": getattr(getattr(message, "author", None), "id", "unknown"),
                            "plan": plan,
                            "flags": {
                                "structured": bool(EMBED_INTENT.search(request)),
                                "search": bool(SEARCH_INTENT.search(request)),
                            },
                            "request_preview": request[:140],
                        },
                        ensure_ascii=False,
                    ),
                )
            self.seed(plan, log)
            if reporter is not None and message is not None:
                await reporter.start(message, log)
            return plan
        except Exception as e:
            logger.warning(f"Action planning failed: {e}")
            return []
