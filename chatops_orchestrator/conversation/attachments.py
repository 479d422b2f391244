"""
Attachment encoding for provider requests.

Every attachment becomes a short summary text part followed by either the
file data (inline base64 for small files, an uploaded file reference for
large ones) or a text notice explaining why the data is missing.
"""

import base64
import logging
import os
from typing import Optional, Union
from urllib.parse import urlparse

import httpx

from ..errors import ProviderError
from ..models import ConversationPart, InlineDataPart, TextPart
from ..platform import Attachment

logger = logging.getLogger(__name__)

INLINE_ATTACHMENT_LIMIT = 4 * 1024 * 1024
MAX_ATTACHMENT_BYTES = 25 * 1024 * 1024
DEFAULT_MIME_TYPE = "application/octet-stream"

EXTENSION_MIME_TYPES = {
    ".aac": "audio/aac",
    ".avi": "video/x-msvideo",
    ".bmp": "image/bmp",
    ".csv": "text/csv",
    ".doc": "application/msword",
    ".docx": "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    ".flac": "audio/flac",
    ".gif": "image/gif",
    ".heic": "image/heic",
    ".jpeg": "image/jpeg",
    ".jpg": "image/jpeg",
    ".json": "application/json",
    ".m4a": "audio/mp4",
    ".mkv": "video/x-matroska",
    ".mov": "video/quicktime",
    ".mp3": "audio/mpeg",
    ".mp4": "video/mp4",
    ".ogg": "audio/ogg",
    ".pdf": "application/pdf",
    ".png": "image/png",
    ".ppt": "application/vnd.ms-powerpoint",
    ".pptx": "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    ".rar": "application/vnd.rar",
    ".svg": "image/svg+xml",
    ".tar": "application/x-tar",
    ".txt": "text/plain",
    ".wav": "audio/wav",
    ".webm": "video/webm",
    ".webp": "image/webp",
    ".xls": "application/vnd.ms-excel",
    ".xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ".zip": "application/zip",
    ".7z": "application/x-7z-compressed",
}

SIZE_UNITS = ("B", "KB", "MB", "GB")


def resolve_mime_type(attachment: Attachment) -> Optional[str]:
    """Content type reported by the platform, else a guess from the extension."""
    if attachment.content_type:
        return attachment.content_type
    extension = os.path.splitext(attachment.name or "")[1].lower()
    if not extension:
        return None
    return EXTENSION_MIME_TYPES.get(extension)


def format_size(size: Optional[float]) -> str:
    """Human readable size: ``512 B``, ``1.5 KB``, ``25 MB``."""
    if not size or size <= 0:
        return "0 B"
    value = float(size)
    index = 0
    while value >= 1024 and index < len(SIZE_UNITS) - 1:
        value /= 1024
        index += 1
    decimals = 0 if value >= 10 or index == 0 else 1
    return f"{value:.{decimals}f} {SIZE_UNITS[index]}"


def attachment_summary(attachment: Attachment, mime_type: Optional[str]) -> str:
    name = attachment.name or "attachment"
    size = format_size(attachment.size) if attachment.size is not None else "unknown size"
    return f"Attachment {name} ({mime_type or 'unknown type'}, {size})"


class AttachmentEncoder:
    """
    Turns chat attachments into conversation parts.

    Downloads go through an ``httpx.AsyncClient``; files above the inline
    limit are handed to the provider's file upload.
    """

    def __init__(
        self,
        provider=None,
        inline_limit: int = INLINE_ATTACHMENT_LIMIT,
        max_bytes: int = MAX_ATTACHMENT_BYTES,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 60.0,
    ):
        self.provider = provider
        self.inline_limit = inline_limit
        self.max_bytes = max_bytes
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def encode(self, attachments: list[Attachment]) -> list[ConversationPart]:
        parts: list[ConversationPart] = []
        for attachment in attachments:
            mime_type = resolve_mime_type(attachment)
            parts.append(TextPart(attachment_summary(attachment, mime_type)))
            parts.append(await self.data_part(attachment, mime_type))
        return parts

    async def data_part(
        self, attachment: Attachment, mime_type: Optional[str]
    ) -> ConversationPart:
        name = attachment.name or "attachment"

        if attachment.size is not None and attachment.size > self.max_bytes:
            return TextPart(
                f"Attachment {name} exceeds the {format_size(self.max_bytes)} processing limit."
            )

        downloaded = await self._download(attachment)
        if isinstance(downloaded, TextPart):
            return downloaded
        data, header_type = downloaded

        mime_type = mime_type or header_type or DEFAULT_MIME_TYPE
        if len(data) <= self.inline_limit:
            return InlineDataPart(
                mime_type=mime_type,
                data=base64.b64encode(data).decode("ascii"),
            )

        if self.provider is None:
            return TextPart(
                f"Attachment {name} is {format_size(len(data))} and requires upload, "
                "which is unavailable."
            )
        try:
            return await self.provider.upload_file(data, name, mime_type)
        except ProviderError as e:
            logger.warning(f"Attachment upload failed for {name}: {e}")
            return TextPart(f"Attachment {name} could not be uploaded ({e}).")

    async def _download(
        self, attachment: Attachment
    ) -> Union[TextPart, tuple[bytes, Optional[str]]]:
        name = attachment.name or "attachment"

        try:
            parsed = urlparse(attachment.url)
        except ValueError:
            return TextPart(f"Attachment {name} has an invalid URL.")
        if not parsed.scheme:
            return TextPart(f"Attachment {name} has an invalid URL.")
        if parsed.scheme not in ("http", "https"):
            return TextPart(f"Attachment {name} uses an unsupported protocol.")
        if not parsed.netloc:
            return TextPart(f"Attachment {name} has an invalid URL.")

        try:
            response = await self.client.get(attachment.url)
        except httpx.HTTPError as e:
            logger.debug(f"Download of {name} failed: {e}")
            reason = str(e) or "unknown error"
            return TextPart(f"Attachment {name} could not be downloaded ({reason}).")

        if response.is_error:
            return TextPart(
                f"Attachment {name} download failed with status {response.status_code}."
            )
        if not response.content:
            return TextPart(f"Attachment {name} is empty.")

        header_type = response.headers.get("content-type")
        if header_type:
            header_type = header_type.split(";")[0].strip() or None
        return response.content, header_type
