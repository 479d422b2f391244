"""
Pytest configuration and fixtures for chat-ops orchestrator tests.
"""

from typing import Any, Optional

import pytest

from chatops_orchestrator.errors import ProviderError
from chatops_orchestrator.models import FileReferencePart, OperationCall
from chatops_orchestrator.operations import OperationRegistry
from chatops_orchestrator.orchestration import (
    CallDeduplicator,
    OperationExecutor,
    OrchestrationLoop,
    RetryPolicy,
)
from chatops_orchestrator.platform import Author, InMemoryPlatform
from chatops_orchestrator.provider import ProviderResponse


def calls(*items) -> ProviderResponse:
    """Provider response proposing ``(name, args)`` calls."""
    return ProviderResponse(calls=[OperationCall(name, dict(args)) for name, args in items])


def text(value: str) -> ProviderResponse:
    """Provider response with text only."""
    return ProviderResponse(text=value)


class StubProvider:
    """Scripted stand-in for ProviderClient.

    Each ``generate`` call consumes the next scripted item: a ProviderResponse
    is returned, an exception is raised, a callable is invoked with the
    conversation. When the script runs out, ``default`` is used.
    """

    def __init__(self, script=None, default: Any = None):
        self.script = list(script or [])
        self.default = default
        self.requests: list[dict] = []
        self.uploads: list[tuple] = []

    async def generate(self, model, config, contents, tracing=None, name="provider_call"):
        self.requests.append(
            {"model": model, "config": config, "contents": list(contents), "name": name}
        )
        item = self.script.pop(0) if self.script else self.default
        if callable(item) and not isinstance(item, ProviderResponse):
            item = item(contents)
        if isinstance(item, BaseException):
            raise item
        return item if item is not None else ProviderResponse()

    def named(self, name: str) -> list[dict]:
        return [r for r in self.requests if r["name"] == name]

    async def upload_file(self, data: bytes, filename: str, mime_type: str):
        self.uploads.append((data, filename, mime_type))
        return FileReferencePart(mime_type=mime_type, file_id="file-1", display_name=filename)

    async def close(self):
        pass


class SleepRecorder:
    """Async sleep replacement that records requested delays."""

    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture(autouse=True)
def restore_registry():
    """Keep each test's registrations out of the shared registry."""
    saved = OperationRegistry.all_operations()
    yield
    OperationRegistry.clear()
    OperationRegistry._operations.update(saved)


@pytest.fixture
def sleeper():
    return SleepRecorder()


@pytest.fixture
def platform():
    platform = InMemoryPlatform(guild_id="guild-1")
    platform.create_channel("100", "general")
    return platform


@pytest.fixture
def user():
    return Author(id="user-1", name="alice")


@pytest.fixture
def message(platform, user):
    return platform.post("100", content="send hello to general", author=user)


class OperationRecorder:
    """Registers operations whose handlers record every invocation."""

    def __init__(self):
        self.calls: list[tuple[str, dict]] = []

    def make(self, name: str, result: Any = None, error: Optional[Exception] = None):
        async def handler(args, context):
            self.calls.append((name, dict(args)))
            if error is not None:
                raise error
            return result if result is not None else f"{name} done"

        OperationRegistry.register(name, f"{name} operation", {}, handler)

    def count(self, name: str) -> int:
        return sum(1 for called, _ in self.calls if called == name)


@pytest.fixture
def operations():
    return OperationRecorder()


@pytest.fixture
def make_loop(sleeper):
    """Build an OrchestrationLoop with zero pacing delays."""

    def factory(provider, **kwargs):
        executor = OperationExecutor(
            deduplicator=kwargs.pop("deduplicator", CallDeduplicator()),
            post_call_delay=kwargs.pop("post_call_delay", 0),
            sleep=sleeper,
        )
        kwargs.setdefault("retry", RetryPolicy(max_attempts=5, base_delay=3.0, sleep=sleeper))
        kwargs.setdefault("settle_delay", 0)
        kwargs.setdefault("sleep", sleeper)
        return OrchestrationLoop(provider, executor, model="test-model", **kwargs)

    return factory


def transient(status: int = 503) -> ProviderError:
    return ProviderError(f"status {status}", status_code=status)
