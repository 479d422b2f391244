"""
Operation execution for the orchestration loop.

``OperationExecutor.execute`` runs one call against the registry: argument
normalization, handler lookup, operation context, error capture and the
purge sentinel. ``OperationExecutor.process`` wraps it with the per-run
bookkeeping: deduplication, the execution log, the live checklist and the
structured ``[operation]`` log lines.
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional

from ..models import ExecutionStatus, OperationCall
from ..operations.context import OperationContext, operation_scope
from ..operations.registry import OperationDefinition, OperationRegistry
from ..tracing import TracingContext
from .checklist import ChecklistReporter
from .dedup import CallDeduplicator, DedupCaches
from .execution_log import ExecutionLog
from .normalize import normalize_args
from .signature import sign

logger = logging.getLogger(__name__)

LOG_PREFIX = "[operation]"
LOG_VALUE_LIMIT = 300

PURGE_OPERATION = "purgeChannel"
NEW_CHANNEL_PATTERN = re.compile(r"NEW_CHANNEL_ID:(\d+)")
NEW_CHANNEL_STRIP_PATTERN = re.compile(r"\s*NEW_CHANNEL_ID:\d+")

SKIP_EVENTS = {
    "repeat_guard": "repeat-guard-skip",
    "single_execution": "single-execution-skip",
    "duplicate_signature": "signature-duplicate-skip",
}


@dataclass
class ExecutionOutcome:
    result: Any
    status: ExecutionStatus
    new_channel_id: Optional[str] = None


@dataclass
class FunctionResult:
    """A result fed back to the provider for one processed call."""

    name: str
    result: Any
    status: ExecutionStatus


@dataclass
class RunState:
    """Mutable state shared by every call of one orchestration run."""

    message: Any
    run_id: str = ""
    log: ExecutionLog = field(default_factory=ExecutionLog)
    caches: DedupCaches = field(default_factory=DedupCaches)
    reporter: Optional[ChecklistReporter] = None
    tracing: Optional[TracingContext] = None
    new_channel_id: Optional[str] = None
    function_results: list[FunctionResult] = field(default_factory=list)

    @property
    def guild_id(self) -> Optional[str]:
        return getattr(self.message, "guild_id", None)

    @property
    def channel_id(self) -> Optional[str]:
        return getattr(self.message, "channel_id", None)


def extract_new_channel_id(result: str) -> tuple[Optional[str], str]:
    """Split a purge result into (new channel id, cleaned text)."""
    match = NEW_CHANNEL_PATTERN.search(result)
    if not match:
        return None, result
    return match.group(1), NEW_CHANNEL_STRIP_PATTERN.sub("", result, count=1)


def _clip(value: Any) -> Any:
    if isinstance(value, str):
        return value if len(value) <= LOG_VALUE_LIMIT else value[:LOG_VALUE_LIMIT] + "..."
    if isinstance(value, dict):
        return {k: _clip(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_clip(v) for v in value]
    return value


def _is_error_result(result: Any) -> bool:
    return isinstance(result, dict) and bool(result.get("error"))


class OperationExecutor:
    """Runs operation calls proposed by the provider, one at a time."""

    def __init__(
        self,
        registry: type[OperationRegistry] = OperationRegistry,
        deduplicator: Optional[CallDeduplicator] = None,
        post_call_delay: float = 0.5,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.registry = registry
        self.deduplicator = deduplicator or CallDeduplicator()
        self.post_call_delay = post_call_delay
        self._sleep = sleep

    def log_event(self, message: Any, event: str, payload: dict) -> None:
        author = getattr(message, "author", None)
        entry = {
            "event": event,
            "guild": getattr(message, "guild_id", None) or "DM",
            "channel": getattr(message, "channel_id", None),
            "user": getattr(author, "id", None),
            "payload": _clip(payload),
        }
        try:
            rendered = json.dumps(entry, ensure_ascii=False, default=str)
        except (TypeError, ValueError):
            rendered = "[unserializable]"
        logger.info(f"{LOG_PREFIX} {rendered}")

    def unknown_operation_result(self, name: str) -> dict:
        error = f"Unknown function: {name}"
        suggestion = self.registry.suggest(name)
        if suggestion:
            error += f". Did you mean '{suggestion}'? Use exact function names from your tools."
        return {"error": error}

    async def execute(
        self,
        call: OperationCall,
        message: Any,
        tracing: Optional[TracingContext] = None,
    ) -> ExecutionOutcome:
        """Normalize, look up and run a single call. Never raises."""
        args = normalize_args(
            call.name,
            call.args,
            getattr(message, "guild_id", None),
            getattr(message, "channel_id", None),
        )
        definition = self.registry.get(call.name)
        if definition is None:
            return ExecutionOutcome(self.unknown_operation_result(call.name), ExecutionStatus.ERROR)
        return await self._invoke(definition, args, message, tracing)

    async def _invoke(
        self,
        definition: OperationDefinition,
        args: dict,
        message: Any,
        tracing: Optional[TracingContext],
    ) -> ExecutionOutcome:
        author = getattr(message, "author", None)
        context = OperationContext(
            message=message,
            user_id=getattr(author, "id", ""),
            channel_id=getattr(message, "channel_id", ""),
            guild_id=getattr(message, "guild_id", None),
        )
        tracing = tracing or TracingContext(run_id="untraced")

        with tracing.span(f"operation:{definition.name}", input=args) as span:
            try:
                with operation_scope(context):
                    result = await definition.handler(args, context)
            except Exception as e:
                logger.debug("Operation %s raised: %s", definition.name, e, exc_info=True)
                span.set_status("error")
                span.set_output({"error": str(e)})
                return ExecutionOutcome({"error": str(e) or type(e).__name__}, ExecutionStatus.ERROR)

            new_channel_id = None
            if definition.name == PURGE_OPERATION and isinstance(result, str):
                new_channel_id, result = extract_new_channel_id(result)

            status = ExecutionStatus.ERROR if _is_error_result(result) else ExecutionStatus.SUCCESS
            span.set_status(status.value)
            span.set_output(_clip({"result": result}))
            return ExecutionOutcome(result, status, new_channel_id)

    async def _settle(
        self,
        state: RunState,
        handle: Optional[int],
        name: str,
        args: Any,
        status: ExecutionStatus,
        result: Any,
    ) -> None:
        if handle is not None:
            state.log.finalize(handle, status, result)
        else:
            state.log.append(name, args, status, result)
        state.function_results.append(FunctionResult(name, result, status))
        if state.reporter is not None:
            await state.reporter.update(state.log)

    async def process(self, call: OperationCall, state: RunState) -> FunctionResult:
        """Run one call with deduplication, logging and checklist updates.

        Every processed call, executed or not, is followed by the post-call
        delay.
        """
        outcome = await self._process(call, state)
        if self.post_call_delay:
            await self._sleep(self.post_call_delay)
        return outcome

    async def _process(self, call: OperationCall, state: RunState) -> FunctionResult:
        message = state.message
        args = normalize_args(call.name, call.args, state.guild_id, state.channel_id)
        signature = sign(call.name, args)

        handle = state.log.find_pending_by_signature(call.name, signature)
        if handle is None:
            handle = state.log.claim_placeholder(call.name, args)

        definition = self.registry.get(call.name)
        if definition is None:
            self.log_event(message, "handler-missing", {"name": call.name})
            result = self.unknown_operation_result(call.name)
            await self._settle(state, handle, call.name, args, ExecutionStatus.ERROR, result)
            return state.function_results[-1]

        normalized_call = OperationCall(call.name, args)
        decision = self.deduplicator.check(normalized_call, signature, state.caches)
        if not decision.should_execute:
            self.log_event(
                message,
                SKIP_EVENTS.get(decision.reason, "skip"),
                {"name": call.name, "attempt": state.caches.attempts[call.name]},
            )
            await self._settle(
                state, handle, call.name, args, ExecutionStatus.SKIPPED, decision.result
            )
            return state.function_results[-1]

        self.log_event(message, "execute-start", {"name": call.name, "args": args})
        outcome = await self._invoke(definition, args, message, state.tracing)
        if outcome.new_channel_id:
            state.new_channel_id = outcome.new_channel_id
        self.deduplicator.record(
            normalized_call,
            signature,
            outcome.result,
            state.caches,
            succeeded=outcome.status is ExecutionStatus.SUCCESS,
        )

        if outcome.status is ExecutionStatus.SUCCESS:
            self.log_event(message, "execute-success", {"name": call.name, "result": outcome.result})
        else:
            self.log_event(message, "execute-error", {"name": call.name, "error": outcome.result})

        await self._settle(state, handle, call.name, args, outcome.status, outcome.result)
        return state.function_results[-1]

    def preregister(self, calls: list[OperationCall], state: RunState) -> None:
        """Show a batch of proposed calls as pending before any of them runs."""
        for call in calls:
            args = normalize_args(call.name, call.args, state.guild_id, state.channel_id)
            signature = sign(call.name, args)
            if state.log.has_signature(call.name, signature):
                continue
            if state.log.claim_placeholder(call.name, args) is not None:
                continue
            if self.deduplicator.is_single_execution(call.name) and state.log.has_name(call.name):
                continue
            state.log.append(call.name, args)
