"""
Generative provider client.

Adapts the conversation model (user/model turns made of text, inline data
and uploaded-file parts) to OpenAI-compatible chat completions with
function tools, and the completion back to proposed operation calls plus
response text.
"""

import io
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import json_repair
from openai import APIConnectionError, APIStatusError, AsyncOpenAI, OpenAIError

from .errors import ProviderError
from .models import (
    ConversationEntry,
    FileReferencePart,
    InlineDataPart,
    OperationCall,
    OrchestratorConfig,
    TextPart,
)
from .tracing import TracingContext

logger = logging.getLogger(__name__)

ROLE_MAP = {"user": "user", "model": "assistant"}


@dataclass
class GenerationConfig:
    """Per-call generation settings."""

    system_instruction: str = ""
    tools: list[dict] = field(default_factory=list)
    temperature: Optional[float] = None
    max_tokens: Optional[int] = None


@dataclass
class ProviderResponse:
    calls: list[OperationCall] = field(default_factory=list)
    text: str = ""
    usage: Optional[dict] = None


def _data_url(part: InlineDataPart) -> str:
    return f"data:{part.mime_type};base64,{part.data}"


def _content_part(part: Any) -> dict:
    if isinstance(part, TextPart):
        return {"type": "text", "text": part.text}
    if isinstance(part, InlineDataPart):
        if part.mime_type.startswith("image/"):
            return {"type": "image_url", "image_url": {"url": _data_url(part)}}
        return {"type": "file", "file": {"file_data": _data_url(part)}}
    if isinstance(part, FileReferencePart):
        return {"type": "file", "file": {"file_id": part.file_id}}
    raise TypeError(f"Unsupported conversation part: {type(part).__name__}")


def to_messages(contents: list[ConversationEntry], system_instruction: str = "") -> list[dict]:
    """Convert conversation entries to chat completion messages."""
    messages: list[dict] = []
    if system_instruction:
        messages.append({"role": "system", "content": system_instruction})

    for entry in contents:
        role = ROLE_MAP[entry.role]
        text_only = all(isinstance(p, TextPart) for p in entry.parts)
        if role == "assistant" or text_only:
            # Assistant turns only accept text.
            messages.append({"role": role, "content": entry.text})
        else:
            messages.append(
                {"role": role, "content": [_content_part(p) for p in entry.parts]}
            )
    return messages


def parse_arguments(raw: Optional[str]) -> dict:
    """Decode tool call arguments, tolerating malformed JSON."""
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except json.JSONDecodeError:
        args = json_repair.loads(raw)
        logger.debug("Repaired malformed tool arguments: %s", raw[:200])
    return args if isinstance(args, dict) else {}


def _status_code(error: OpenAIError) -> Optional[int]:
    if isinstance(error, APIStatusError):
        return error.status_code
    if isinstance(error, APIConnectionError):
        return 503
    return None


class ProviderClient:
    """Async client for an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[AsyncOpenAI] = None,
    ):
        self._client = client or AsyncOpenAI(
            base_url=base_url or None,
            api_key=api_key or "not-needed",
        )

    @classmethod
    def from_config(cls, settings: OrchestratorConfig) -> "ProviderClient":
        return cls(base_url=settings.base_url, api_key=settings.api_key)

    async def generate(
        self,
        model: str,
        config: GenerationConfig,
        contents: list[ConversationEntry],
        tracing: Optional[TracingContext] = None,
        name: str = "provider_call",
    ) -> ProviderResponse:
        """Run one completion. Raises ProviderError on API failures."""
        create_kwargs: dict[str, Any] = {
            "model": model,
            "messages": to_messages(contents, config.system_instruction),
        }
        if config.tools:
            create_kwargs["tools"] = config.tools
        if config.temperature is not None:
            create_kwargs["temperature"] = config.temperature
        if config.max_tokens is not None:
            create_kwargs["max_tokens"] = config.max_tokens

        tracing = tracing or TracingContext(run_id="untraced")
        with tracing.generation(
            name=name,
            model=model,
            input=create_kwargs["messages"],
            model_parameters={
                "temperature": config.temperature,
                "max_tokens": config.max_tokens,
            },
        ) as gen:
            try:
                completion = await self._client.chat.completions.create(**create_kwargs)
            except OpenAIError as e:
                gen.set_status("error")
                logger.error(f"Provider call to {model} failed: {e}")
                raise ProviderError(str(e), status_code=_status_code(e)) from e

            response = self._parse_completion(completion)
            gen.set_output(response.text[:2000])
            if response.usage:
                gen.set_usage(**response.usage)
            return response

    @staticmethod
    def _parse_completion(completion: Any) -> ProviderResponse:
        if not completion.choices:
            return ProviderResponse()
        message = completion.choices[0].message
        calls = [
            OperationCall(name=tc.function.name, args=parse_arguments(tc.function.arguments))
            for tc in (message.tool_calls or [])
            if getattr(tc, "function", None) is not None and tc.function.name
        ]
        usage = None
        if completion.usage:
            usage = {
                "prompt_tokens": completion.usage.prompt_tokens,
                "completion_tokens": completion.usage.completion_tokens,
                "total_tokens": completion.usage.total_tokens,
            }
        return ProviderResponse(calls=calls, text=message.content or "", usage=usage)

    async def upload_file(self, data: bytes, filename: str, mime_type: str) -> FileReferencePart:
        """Upload a large attachment; the returned part references it by id."""
        try:
            uploaded = await self._client.files.create(
                file=(filename, io.BytesIO(data), mime_type),
                purpose="user_data",
            )
        except OpenAIError as e:
            raise ProviderError(f"Upload of {filename} failed: {e}", _status_code(e)) from e
        return FileReferencePart(mime_type=mime_type, file_id=uploaded.id, display_name=filename)

    async def close(self) -> None:
        try:
            await self._client.close()
        except Exception as e:
            logger.debug("Error closing provider client: %s", e)
