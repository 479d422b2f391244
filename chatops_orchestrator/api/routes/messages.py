"""
Inbound message endpoint.

Implements /v1/messages: the request is posted as a chat message on the
server's in-memory platform and handled exactly the way a live chat message
would be, including checklist posting and reply delivery.
"""

import logging

from fastapi import APIRouter, Request

from ..schemas import (
    ErrorResponse,
    ExecutionEntry,
    MessageRequest,
    MessageResponse,
)
from ...handler import MessageProcessor
from ...platform import Attachment, Author, InMemoryPlatform

logger = logging.getLogger(__name__)

router = APIRouter()


def _attachments(items) -> list[Attachment]:
    return [
        Attachment(name=a.name, url=a.url, size=a.size, content_type=a.content_type)
        for a in items
    ]


def _seed_channel(platform: InMemoryPlatform, request: MessageRequest) -> None:
    """Make sure the channel exists; supplied history replaces its contents.

    Without history the channel keeps whatever earlier requests left in it.
    """
    channel_id = request.channel_id
    if channel_id in platform.channels and not request.history:
        return
    name = request.channel_name or platform.channel_names.get(channel_id)
    platform.delete_channel(channel_id)
    platform.create_channel(channel_id, name)
    for past in request.history:
        author = (
            platform.bot_author
            if past.bot
            else Author(id=past.author.id, name=past.author.name)
        )
        platform.post(
            channel_id,
            content=past.content,
            author=author,
            attachments=_attachments(past.attachments),
        )


@router.post(
    "/v1/messages",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Invalid request"}},
    summary="Process a chat message",
    description=(
        "Post a message to a simulated channel and let the orchestrator handle it. "
        "Returns the reply text, the rendered checklist and the execution log."
    ),
)
async def create_message(body: MessageRequest, request: Request) -> MessageResponse:
    processor: MessageProcessor = request.app.state.processor
    platform: InMemoryPlatform = request.app.state.platform

    _seed_channel(platform, body)
    message = platform.post(
        body.channel_id,
        content=body.content,
        author=Author(id=body.author.id, name=body.author.name),
        attachments=_attachments(body.attachments),
    )
    if body.guild_id != platform.guild_id:
        message.guild_id = body.guild_id

    logger.info(f"Inbound message in {body.channel_id}: {body.content[:100]}")
    outcome = await processor.handle(message)
    if outcome is None:
        logger.debug(f"Message {message.id} ignored")
        return MessageResponse(ignored=True)

    response = MessageResponse(
        reply=outcome.reply,
        run_id=outcome.run_id,
        channel_id=outcome.delivered_to,
        error=outcome.error,
    )
    result = outcome.orchestration
    if result is not None:
        renderer = processor.loop.renderer
        log = result.execution_log
        response.new_channel_id = result.new_channel_id
        response.stop_reason = result.stop_reason
        response.rounds = result.rounds
        response.execution_log = [ExecutionEntry(**e) for e in log.to_list()]
        if renderer.should_display(log):
            response.checklist = renderer.render(log).as_text()
    return response
