"""
Run-scoped tracing using Langfuse SDK v3.

One ``TracingContext`` covers one inbound chat message. Provider calls are
recorded as generations and operation executions as spans, all linked to
the root span through an explicit ``TraceContext`` so nesting does not
depend on OTEL context state across ``await`` points.
"""

import logging
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional

from langfuse.types import TraceContext

from .client import get_tracing_client

logger = logging.getLogger(__name__)


def _langfuse():
    client = get_tracing_client()
    if client is None or not client.enabled:
        return None
    return client.client


@dataclass
class _Observation:
    """Shared lifecycle of spans and generations."""

    name: str
    enabled: bool = False
    input: Optional[Any] = None
    metadata: Optional[dict] = None
    _trace_context: Optional[TraceContext] = field(default=None, repr=False)
    _context_manager: Any = field(default=None, repr=False)
    _observation: Any = field(default=None, repr=False)
    _start_time: float = field(default=0.0, repr=False)
    _output: Optional[Any] = field(default=None, repr=False)
    _status: str = field(default="success", repr=False)

    as_type = "span"

    def _start_kwargs(self) -> dict:
        return {
            "trace_context": self._trace_context,
            "as_type": self.as_type,
            "name": self.name,
            "input": self.input,
            "metadata": self.metadata,
        }

    def _end_kwargs(self) -> dict:
        kwargs: dict[str, Any] = {
            "metadata": {
                "status": self._status,
                "duration_ms": round((time.time() - self._start_time) * 1000, 2),
            }
        }
        if self._output is not None:
            kwargs["output"] = self._output
        return kwargs

    def start(self) -> None:
        if not self.enabled:
            return
        langfuse = _langfuse()
        if langfuse is None:
            return
        try:
            self._start_time = time.time()
            self._context_manager = langfuse.start_as_current_observation(
                **self._start_kwargs()
            )
            self._observation = self._context_manager.__enter__()
        except Exception as e:
            logger.warning(f"Failed to start {self.as_type} '{self.name}': {e}")
            self._observation = None

    def end(self) -> None:
        if not self.enabled or self._observation is None:
            return
        try:
            self._observation.update(**self._end_kwargs())
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"Failed to end {self.as_type} '{self.name}': {e}")

    def set_output(self, output: Any) -> None:
        self._output = output

    def set_status(self, status: str) -> None:
        self._status = status


@dataclass
class SpanContext(_Observation):
    """A span around one operation execution."""


@dataclass
class GenerationContext(_Observation):
    """A generation around one provider call."""

    model: str = ""
    model_parameters: Optional[dict] = None
    _usage: Optional[dict] = field(default=None, repr=False)

    as_type = "generation"

    def _start_kwargs(self) -> dict:
        kwargs = super()._start_kwargs()
        kwargs["model"] = self.model
        kwargs["model_parameters"] = self.model_parameters
        return kwargs

    def _end_kwargs(self) -> dict:
        kwargs = super()._end_kwargs()
        if self._usage:
            kwargs["usage"] = self._usage
        return kwargs

    def set_usage(
        self,
        prompt_tokens: Optional[int] = None,
        completion_tokens: Optional[int] = None,
        total_tokens: Optional[int] = None,
    ) -> None:
        usage = {
            "promptTokens": prompt_tokens,
            "completionTokens": completion_tokens,
            "totalTokens": total_tokens,
        }
        self._usage = {k: v for k, v in usage.items() if v is not None}


@dataclass
class TracingContext:
    """
    Trace for a single orchestration run.

    Safe to use whether or not tracing is enabled: when it is not, spans and
    generations are inert objects that still accept outputs and statuses.
    """

    run_id: str
    session_id: Optional[str] = None
    user_id: Optional[str] = None
    _context_manager: Any = field(default=None, repr=False)
    _root_span: Any = field(default=None, repr=False)
    _enabled: bool = field(default=False, repr=False)
    _start_time: float = field(default_factory=time.time, repr=False)

    def __post_init__(self):
        client = get_tracing_client()
        self._enabled = client is not None and client.enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_trace(
        self,
        name: str = "chat_message",
        request: Optional[str] = None,
        metadata: Optional[dict] = None,
    ) -> None:
        """Open the root span for this run."""
        langfuse = _langfuse() if self._enabled else None
        if langfuse is None:
            logger.debug(f"[{self.run_id}] start_trace skipped: tracing disabled")
            return
        try:
            self._context_manager = langfuse.start_as_current_observation(
                as_type="span",
                name=name,
                input={"request": request} if request else None,
                metadata={"run_id": self.run_id, **(metadata or {})},
            )
            self._root_span = self._context_manager.__enter__()
            self._root_span.update_trace(user_id=self.user_id, session_id=self.session_id)
            self._start_time = time.time()
        except Exception as e:
            logger.warning(f"[{self.run_id}] Failed to start trace: {e}")
            self._root_span = None

    def end_trace(
        self,
        output: Optional[str] = None,
        status: str = "success",
        metadata: Optional[dict] = None,
    ) -> None:
        if self._root_span is None:
            return
        try:
            self._root_span.update(
                output=output,
                metadata={
                    "status": status,
                    "duration_ms": round((time.time() - self._start_time) * 1000, 2),
                    **(metadata or {}),
                },
            )
            self._context_manager.__exit__(None, None, None)
        except Exception as e:
            logger.warning(f"[{self.run_id}] Failed to end trace: {e}")
        finally:
            self._root_span = None

    def get_trace_context(self) -> Optional[TraceContext]:
        """Parent link for child observations, or None without a root span."""
        trace_id = getattr(self._root_span, "trace_id", None)
        span_id = getattr(self._root_span, "id", None)
        if not trace_id or not span_id:
            return None
        return TraceContext(trace_id=trace_id, parent_span_id=span_id)

    @contextmanager
    def span(
        self,
        name: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
    ) -> Iterator[SpanContext]:
        span_ctx = SpanContext(
            name=name,
            enabled=self._enabled,
            input=input,
            metadata=metadata,
            _trace_context=self.get_trace_context(),
        )
        try:
            span_ctx.start()
            yield span_ctx
        finally:
            span_ctx.end()

    @contextmanager
    def generation(
        self,
        name: str,
        model: str,
        input: Optional[Any] = None,
        metadata: Optional[dict] = None,
        model_parameters: Optional[dict] = None,
    ) -> Iterator[GenerationContext]:
        gen_ctx = GenerationContext(
            name=name,
            enabled=self._enabled,
            input=input,
            metadata=metadata,
            model=model,
            model_parameters=model_parameters,
            _trace_context=self.get_trace_context(),
        )
        try:
            gen_ctx.start()
            yield gen_ctx
        finally:
            gen_ctx.end()
