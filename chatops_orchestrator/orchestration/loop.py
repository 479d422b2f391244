"""
Round-based orchestration loop.

Each round sends the conversation to the provider. Proposed operation calls
are shown as pending on the live checklist, run one at a time in emitted
order, and their results are appended to the conversation as synthetic user
turns for the next round. The loop stops when the provider answers with
text only, when too many duplicate calls were skipped (the loop guard), or
when the round budget runs out.
"""

import asyncio
import json
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..models import AppConfig, ConversationEntry, ExecutionStatus, OperationCall
from ..operations.registry import OperationRegistry
from ..provider import GenerationConfig, ProviderClient
from ..tracing import TracingContext
from .checklist import ChecklistRenderer, ChecklistReporter
from .dedup import CallDeduplicator
from .execution_log import ExecutionLog
from .executor import FunctionResult, OperationExecutor, RunState
from .fallback import FallbackGenerator
from .planner import Planner
from .retry import RetryPolicy

logger = logging.getLogger(__name__)

ANSWERED = "answered"
LOOP_GUARD = "loop_guard"
MAX_ROUNDS = "max_rounds"

FUNCTION_RESULT_REMINDER = (
    "IMPORTANT: Use this data in your response. "
    "Do NOT say you don't have access to this information."
)
PREVIEW_LENGTH = 100

LIMIT_PROMPT = (
    "The assistant ran out of processing rounds while handling this request: "
    "{request}\n\nSummarize for the user, in a few sentences, what was "
    "completed and what was not, based on this report:\n\n{report}"
)


@dataclass
class OrchestrationResult:
    """Result from a complete orchestration run."""

    text: str
    execution_log: ExecutionLog
    function_results: list[FunctionResult] = field(default_factory=list)
    new_channel_id: Optional[str] = None
    rounds: int = 0
    stop_reason: str = ANSWERED
    run_id: str = ""


def function_result_text(name: str, result: Any) -> str:
    """Synthetic user turn carrying one operation result back to the provider."""
    header = f"FUNCTION RESULT FOR {name.upper()}:"
    if isinstance(result, str):
        return f"{header}\n{result}\n\n{FUNCTION_RESULT_REMINDER}"
    try:
        pretty = json.dumps(result, indent=2, ensure_ascii=False)
    except (TypeError, ValueError):
        return f"{header} {result}\n\n{FUNCTION_RESULT_REMINDER}"
    return f"{header}\n{pretty}\n\n{FUNCTION_RESULT_REMINDER}"


def _preview(result: Any) -> str:
    if isinstance(result, str):
        if len(result) > PREVIEW_LENGTH:
            return result[:PREVIEW_LENGTH] + "..."
        return result
    try:
        return json.dumps(result, ensure_ascii=False, default=str)[:PREVIEW_LENGTH]
    except (TypeError, ValueError):
        return str(result)[:PREVIEW_LENGTH]


def _error_text(result: Any) -> str:
    if isinstance(result, dict) and result.get("error"):
        return str(result["error"])
    return str(result or "Unknown error")


def build_limit_summary(log: ExecutionLog, max_rounds: int) -> str:
    """Deterministic report used when the round budget is exhausted."""
    entries = log.ordered()
    lines = [
        f"⚠️ Hit processing limit ({max_rounds} rounds). Here's what completed:",
        "",
        "**Completed:**",
    ]
    lines.extend(
        f"✅ **{e.name}**: {_preview(e.result)}"
        for e in entries
        if e.status is ExecutionStatus.SUCCESS
    )

    failed = [
        f"❌ **{e.name}**: {_error_text(e.result)}"
        for e in entries
        if e.status is ExecutionStatus.ERROR
    ]
    if failed:
        lines.extend(["", "**Failed:**", *failed])

    not_done = sum(
        1
        for e in entries
        if e.status in (ExecutionStatus.SKIPPED, ExecutionStatus.PENDING)
    )
    if not_done:
        lines.extend(["", f"**Skipped:** {not_done} operation(s) not completed"])
    return "\n".join(lines)


class OrchestrationLoop:
    """
    Drives provider rounds for one inbound message.

    Per-round flow:
        1. Provider call (retry-wrapped) with the current conversation
        2. No calls: the response text is the answer
        3. Otherwise pre-register the batch and post or refresh the checklist
        4. Process each call (dedup gate, execute, checklist update)
        5. Append one result turn per call to the conversation
        6. Stop early once the loop guard threshold is reached
    """

    def __init__(
        self,
        provider: ProviderClient,
        executor: OperationExecutor,
        model: str,
        generation_config: Optional[GenerationConfig] = None,
        retry: Optional[RetryPolicy] = None,
        max_rounds: int = 5,
        loop_guard_threshold: int = 2,
        planner: Optional[Planner] = None,
        fallback: Optional[FallbackGenerator] = None,
        renderer: Optional[ChecklistRenderer] = None,
        settle_delay: float = 0.3,
        limit_message: str = "template",
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.provider = provider
        self.executor = executor
        self.model = model
        self.generation_config = generation_config or GenerationConfig()
        self.retry = retry or RetryPolicy()
        self.max_rounds = max_rounds
        self.loop_guard_threshold = loop_guard_threshold
        self.planner = planner
        self.fallback = fallback or FallbackGenerator(provider, model)
        self.renderer = renderer or ChecklistRenderer()
        self.settle_delay = settle_delay
        self.limit_message = limit_message
        self._sleep = sleep

    @classmethod
    def from_config(
        cls,
        settings: AppConfig,
        provider: ProviderClient,
        registry: type[OperationRegistry] = OperationRegistry,
        sleep: Any = None,
    ) -> "OrchestrationLoop":
        """Wire every component from the unified configuration."""
        orch = settings.orchestrator
        deduplicator = CallDeduplicator(
            single_execution=orch.single_execution_operations,
            repeat_guard=orch.repeat_guard_operation or None,
        )
        sleep_kwargs = {"sleep": sleep} if sleep is not None else {}
        executor = OperationExecutor(
            registry=registry,
            deduplicator=deduplicator,
            post_call_delay=orch.post_call_delay,
            **sleep_kwargs,
        )
        planner = None
        if settings.planner.enabled:
            planner = Planner(
                provider,
                settings.planner.model,
                RetryPolicy.from_config(settings.planner.retry, sleep=sleep),
                registry=registry,
                deduplicator=deduplicator,
            )
        fallback = FallbackGenerator(
            provider if settings.fallback.enabled else None,
            settings.fallback.model,
            RetryPolicy.from_config(settings.fallback.retry, sleep=sleep),
        )
        return cls(
            provider=provider,
            executor=executor,
            model=orch.model,
            generation_config=GenerationConfig(
                system_instruction=orch.system_instruction,
                tools=registry.tool_definitions(),
                temperature=orch.temperature,
                max_tokens=orch.max_tokens,
            ),
            retry=RetryPolicy.from_config(orch.retry, sleep=sleep),
            max_rounds=orch.max_rounds,
            loop_guard_threshold=orch.loop_guard_threshold,
            planner=planner,
            fallback=fallback,
            renderer=ChecklistRenderer(
                display_limit=settings.checklist.display_limit,
                mutating_only=settings.checklist.mutating_only,
            ),
            settle_delay=settings.checklist.settle_delay,
            limit_message=orch.limit_message,
            **sleep_kwargs,
        )

    async def run(
        self,
        conversation: list[ConversationEntry],
        request: str,
        message: Any,
        tracing: Optional[TracingContext] = None,
        run_id: Optional[str] = None,
    ) -> OrchestrationResult:
        """
        Run the loop for one inbound message.

        Args:
            conversation: Prior turns plus the current request turn.
            request: Literal request text (planner, fallback, limit report).
            message: Inbound chat message (ids for normalization, checklist reply).
            tracing: Trace to attach provider generations and operation spans to.
            run_id: Identifier used as log prefix; generated when omitted.

        Returns:
            OrchestrationResult with the final text and the execution log.

        Raises:
            ProviderError: When a provider call fails fatally or exhausts retries.
        """
        run_id = run_id or f"run-{uuid.uuid4().hex[:8]}"
        owns_trace = tracing is None
        if tracing is None:
            author = getattr(message, "author", None)
            tracing = TracingContext(run_id=run_id, user_id=getattr(author, "id", None))
            tracing.start_trace(request=request)

        state = RunState(
            message=message,
            run_id=run_id,
            reporter=ChecklistReporter(self.renderer, self.settle_delay, sleep=self._sleep),
            tracing=tracing,
        )
        conversation = list(conversation)
        text = ""
        rounds = 0
        stop_reason = MAX_ROUNDS
        status = "error"

        logger.info("[%s] Starting orchestration for: %s", run_id, request[:140])
        try:
            if self.planner is not None and not state.reporter.started:
                await self.planner.plan(request, state.log, message, state.reporter, tracing)

            for round_number in range(1, self.max_rounds + 1):
                rounds = round_number
                response = await self.retry.run(
                    self.provider.generate,
                    self.model,
                    self.generation_config,
                    conversation,
                    tracing,
                    f"round_{round_number}",
                )
                if not response.calls:
                    text = response.text
                    stop_reason = ANSWERED
                    break

                results = await self._run_batch(response.calls, state)
                conversation.extend(
                    ConversationEntry.user_text(function_result_text(r.name, r.result))
                    for r in results
                )

                if state.caches.loop_guard >= self.loop_guard_threshold:
                    logger.warning(
                        "[%s] Loop guard reached after %d skipped duplicate(s)",
                        run_id,
                        state.caches.loop_guard,
                    )
                    stop_reason = LOOP_GUARD
                    break
            else:
                logger.warning("[%s] Max rounds (%d) reached", run_id, self.max_rounds)
                text = await self._limit_text(state, request, tracing)

            if not text.strip():
                text = await self.fallback.generate(request, tracing)
            status = "success"
        finally:
            if state.log.finalize_pending():
                await state.reporter.update(state.log)
            self._log_trace_summary(state, rounds, stop_reason)
            if owns_trace:
                tracing.end_trace(output=text[:500] if text else None, status=status)

        return OrchestrationResult(
            text=text,
            execution_log=state.log,
            function_results=list(state.function_results),
            new_channel_id=state.new_channel_id,
            rounds=rounds,
            stop_reason=stop_reason,
            run_id=run_id,
        )

    async def _run_batch(
        self, calls: list[OperationCall], state: RunState
    ) -> list[FunctionResult]:
        self.executor.preregister(calls, state)
        await state.reporter.sync(state.message, state.log)
        results = []
        for call in calls:
            results.append(await self.executor.process(call, state))
        return results

    async def _limit_text(
        self, state: RunState, request: str, tracing: TracingContext
    ) -> str:
        report = build_limit_summary(state.log, self.max_rounds)
        if self.limit_message != "provider" or self.fallback.provider is None:
            return report
        try:
            response = await self.fallback.retry.run(
                self.fallback.provider.generate,
                self.fallback.model,
                GenerationConfig(),
                [ConversationEntry.user_text(LIMIT_PROMPT.format(request=request, report=report))],
                tracing,
                "limit_message",
            )
        except Exception as e:
            logger.warning("[%s] Limit message generation failed: %s", state.run_id, e)
            return report
        return (response.text or "").strip() or report

    @staticmethod
    def _log_trace_summary(state: RunState, rounds: int, stop_reason: str) -> None:
        """Log a compact trace summary."""
        prefix = f"[{state.run_id}] "
        logger.info("%s%s", prefix, "─" * 50)
        logger.info("%sTRACE SUMMARY (%d round(s), stop: %s)", prefix, rounds, stop_reason)
        logger.info("%s%s", prefix, "─" * 50)
        for index, entry in enumerate(state.log.ordered(), 1):
            preview = _preview(entry.result) if entry.result is not None else ""
            if entry.status is ExecutionStatus.ERROR:
                logger.error("%s%d. %s [error] -> %s", prefix, index, entry.name, preview)
            else:
                logger.info(
                    "%s%d. %s [%s] -> %s", prefix, index, entry.name, entry.status.value, preview
                )
