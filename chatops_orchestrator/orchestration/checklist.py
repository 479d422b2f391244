"""
Live progress checklist for one orchestration run.

``ChecklistRenderer`` turns an ``ExecutionLog`` into a compact display;
``ChecklistReporter`` posts it once as a reply to the inbound message and
edits it in place on every mutation. Rendering and editing failures are
logged and dropped: the checklist must never interrupt the loop.
"""

import asyncio
import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from ..models import ExecutionLogEntry, ExecutionStatus
from .execution_log import ExecutionLog

logger = logging.getLogger(__name__)

TITLE = "\U0001f4cb Action Checklist"
EMPTY_PLACEHOLDER = "No actions to display."
SUMMARY_MAX_LENGTH = 160
MAX_ARRAY_ITEMS = 3

COLOR_IN_PROGRESS = 0x3498DB
COLOR_SUCCEEDED = 0x2ECC71
COLOR_FAILED = 0xE74C3C

STATUS_GLYPHS = {
    ExecutionStatus.SUCCESS: "✅",
    ExecutionStatus.ERROR: "❌",
    ExecutionStatus.PENDING: "⏳",
    ExecutionStatus.SKIPPED: "⚠️",
}

FOOTERS = {
    "in_progress": "Actions in progress...",
    "succeeded": "All actions completed successfully!",
    "failed": "Some actions failed - check details above",
}

LABEL_FIELDS = ("title", "name")
CONTENT_FIELDS = ("value", "description", "content", "message", "text", "summary", "result")

DESTRUCTIVE_PATTERN = re.compile(
    r"^(delete|remove|clear|purge|ban|kick|timeout|moderate)", re.IGNORECASE
)
CREATION_PATTERN = re.compile(
    r"^(create|add|set|update|edit|modify|rename|move)(?!Embed)", re.IGNORECASE
)


@dataclass
class ChecklistDisplay:
    """Platform-neutral rendition of the checklist (an embed on most chats)."""

    title: str
    description: str
    color: int
    state: str
    footer: Optional[str] = None
    timestamp: Optional[datetime] = None

    def as_text(self) -> str:
        lines = [self.title, "", self.description]
        if self.footer:
            lines.extend(["", self.footer])
        return "\n".join(lines)


def _normalize(value: str) -> str:
    return re.sub(r"\s+", " ", value).strip()


def _truncate(value: str, max_length: int = SUMMARY_MAX_LENGTH) -> str:
    if len(value) <= max_length:
        return value
    return value[: max(0, max_length - 3)] + "..."


def _short(value: str) -> str:
    return _truncate(_normalize(value))


def _summarize_mapping(result: dict) -> str:
    error = result.get("error")
    if isinstance(error, str):
        return _short(error)

    label = next(
        (result[k] for k in LABEL_FIELDS if isinstance(result.get(k), str)), None
    )
    content = next(
        (
            result[k]
            for k in CONTENT_FIELDS
            if isinstance(result.get(k), str) and result[k].strip()
        ),
        None,
    )
    if label and content:
        return f"{label}: {_short(content)}"
    if content:
        return _short(content)

    pairs = [
        f"{key}: {_short(val)}"
        for key, val in result.items()
        if isinstance(val, str) and val.strip()
    ][:2]
    return "; ".join(pairs)


def summarize_result(result: Any) -> str:
    """Human-readable one-liner for an operation result."""
    if result is None:
        return ""
    if isinstance(result, str):
        return _short(result)
    if isinstance(result, (list, tuple)):
        items = [s for s in (summarize_result(item) for item in result) if s]
        return "\n   • ".join(items[:MAX_ARRAY_ITEMS])
    if isinstance(result, dict):
        return _summarize_mapping(result)
    return _short(str(result))


def is_mutating(entry: ExecutionLogEntry) -> bool:
    """True for operations whose progress the user should see."""
    if DESTRUCTIVE_PATTERN.match(entry.name) or CREATION_PATTERN.match(entry.name):
        return True
    return (
        entry.name == "executeCode"
        and isinstance(entry.args, dict)
        and entry.args.get("risky") is True
    )


class ChecklistRenderer:
    """Formats an execution log as a checklist display."""

    def __init__(self, display_limit: int = 4096, mutating_only: bool = True):
        self.display_limit = display_limit
        self.mutating_only = mutating_only

    def should_display(self, log: ExecutionLog) -> bool:
        if len(log) == 0:
            return False
        if not self.mutating_only:
            return True
        return any(is_mutating(entry) for entry in log)

    def render(self, log: ExecutionLog) -> ChecklistDisplay:
        now = datetime.now(timezone.utc)
        if len(log) == 0:
            return ChecklistDisplay(
                title=TITLE,
                description=EMPTY_PLACEHOLDER,
                color=COLOR_IN_PROGRESS,
                state="in_progress",
                timestamp=now,
            )

        counts = log.counts()
        state = self.overall_state(log)
        color = {
            "in_progress": COLOR_IN_PROGRESS,
            "succeeded": COLOR_SUCCEEDED,
            "failed": COLOR_FAILED,
        }[state]

        header_parts = []
        for status, label in (
            (ExecutionStatus.SUCCESS, "completed"),
            (ExecutionStatus.PENDING, "pending"),
            (ExecutionStatus.ERROR, "failed"),
            (ExecutionStatus.SKIPPED, "skipped"),
        ):
            if counts[status]:
                header_parts.append(f"{STATUS_GLYPHS[status]} {counts[status]} {label}")
        header = " • ".join(header_parts)

        lines = [self._render_line(i, entry) for i, entry in enumerate(log.ordered(), 1)]
        description = f"{header}\n\n" + "\n".join(lines)
        if len(description) > self.display_limit:
            description = description[: self.display_limit - 3] + "..."

        return ChecklistDisplay(
            title=TITLE,
            description=description,
            color=color,
            state=state,
            footer=FOOTERS[state],
            timestamp=now,
        )

    @staticmethod
    def overall_state(log: ExecutionLog) -> str:
        counts = log.counts()
        if counts[ExecutionStatus.PENDING]:
            return "in_progress"
        if not counts[ExecutionStatus.ERROR]:
            return "succeeded"
        return "failed"

    @staticmethod
    def _render_line(index: int, entry: ExecutionLogEntry) -> str:
        glyph = STATUS_GLYPHS[entry.status]
        summary = summarize_result(entry.result)
        if summary:
            return f"{index}. {glyph} **{entry.name}**\n   └ {summary}"
        status_text = (
            "Processing..." if entry.status is ExecutionStatus.PENDING else "Completed"
        )
        return f"{index}. {glyph} **{entry.name}** {status_text}"


class ChecklistReporter:
    """Owns the posted checklist message for one run."""

    def __init__(
        self,
        renderer: ChecklistRenderer,
        settle_delay: float = 0.3,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        self.renderer = renderer
        self.settle_delay = settle_delay
        self._sleep = sleep
        self.handle: Any = None

    @property
    def started(self) -> bool:
        return self.handle is not None

    async def start(self, message: Any, log: ExecutionLog) -> bool:
        """Post the first checklist as a reply, if the log warrants one."""
        if self.started or not self.renderer.should_display(log):
            return False
        try:
            self.handle = await message.reply(display=self.renderer.render(log))
        except Exception as e:
            logger.debug("Checklist post failed: %s", e)
            return False
        if self.settle_delay:
            await self._sleep(self.settle_delay)
        return True

    async def update(self, log: ExecutionLog) -> None:
        """Re-render the posted checklist in place; failures are ignored."""
        if self.handle is None:
            return
        try:
            await self.handle.edit(display=self.renderer.render(log))
        except Exception as e:
            logger.debug("Checklist update failed: %s", e)

    async def sync(self, message: Any, log: ExecutionLog) -> None:
        """Post the checklist if it is not up yet, otherwise edit it."""
        if self.started:
            await self.update(log)
        else:
            await self.start(message, log)
