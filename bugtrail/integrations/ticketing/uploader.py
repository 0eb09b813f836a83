"""Attachment upload pipeline.

Evidence files reach the tracker through a three-step protocol:

1. Request an upload slot: the provider asks its service for a short-lived
   pre-signed write URL for a file of a given content type and size, and
   receives the headers that URL requires plus the permanent asset URL.
2. Transfer bytes: PUT the raw file to the write URL.
3. Record the permanent asset URL so it can be embedded in the ticket.

Step 1 is provider-specific and supplied through the UploadSlotRequester
protocol; steps 2 and 3 are generic.

Failure policy:
    A failure while reading the file, requesting the slot or transferring
    the bytes ends that attachment with ``success=False`` and a message
    naming the stage. There are no retries, and remaining attachments and
    the ticket itself are not affected.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from types import MappingProxyType
from typing import Protocol, runtime_checkable

import httpx

from bugtrail.config.settings import DEFAULT_MAX_CONCURRENT_UPLOADS, DEFAULT_UPLOAD_CACHE_CONTROL
from bugtrail.integrations.ticketing.exceptions import TicketingError
from bugtrail.integrations.ticketing.graphql import ClientFactory
from bugtrail.integrations.ticketing.types import (
    AttachmentUploadResult,
    TicketingCredentials,
    UploadSlot,
)
from bugtrail.utils.errors import sanitize_message

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Capture formats produced by the desktop tool; anything else is sent as binary
CONTENT_TYPES: MappingProxyType[str, str] = MappingProxyType(
    {
        ".png": "image/png",
        ".jpg": "image/jpeg",
        ".jpeg": "image/jpeg",
        ".gif": "image/gif",
        ".webp": "image/webp",
        ".mp4": "video/mp4",
        ".mov": "video/quicktime",
        ".webm": "video/webm",
    }
)

# Stage names used as failure message prefixes
STAGE_READ = "read"
STAGE_SLOT = "upload slot"
STAGE_TRANSFER = "transfer"
# Failures that do not belong to one of the steps above
STAGE_UPLOAD = "upload"


def guess_content_type(path: str | Path) -> str:
    """Map a file extension to the MIME type sent with the upload."""
    return CONTENT_TYPES.get(Path(path).suffix.lower(), DEFAULT_CONTENT_TYPE)


@runtime_checkable
class UploadSlotRequester(Protocol):
    """Provider-specific step 1 of the upload protocol.

    Implementations raise a TicketingError subclass on failure.
    """

    async def request_upload_slot(
        self,
        *,
        credentials: TicketingCredentials,
        content_type: str,
        filename: str,
        size: int,
    ) -> UploadSlot:
        """Ask the service for a pre-signed upload target."""
        ...


class UploadStageError(Exception):
    """An attachment failed at a given stage of the protocol.

    Attributes:
        stage: STAGE_READ, STAGE_SLOT, STAGE_TRANSFER or STAGE_UPLOAD
        detail: Sanitized description of the failure
    """

    def __init__(self, stage: str, detail: str) -> None:
        self.stage = stage
        self.detail = detail
        super().__init__(f"{stage} failed: {detail}")


class AttachmentUploader:
    """Uploads attachment files through the three-step protocol.

    Attachments of one ticket may be uploaded concurrently (bounded by
    ``max_concurrent``); results always come back in input order.

    Attributes:
        _slot_requester: Provider implementation of step 1
        _client_factory: Coroutine returning the shared HTTP client
        _timeout: Timeout applied to the PUT
        _cache_control: Cache-Control header sent with the bytes
        _max_concurrent: Maximum attachments in flight at once
    """

    def __init__(
        self,
        slot_requester: UploadSlotRequester,
        client_factory: ClientFactory,
        *,
        timeout: httpx.Timeout,
        cache_control: str = DEFAULT_UPLOAD_CACHE_CONTROL,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT_UPLOADS,
    ) -> None:
        self._slot_requester = slot_requester
        self._client_factory = client_factory
        self._timeout = timeout
        self._cache_control = cache_control
        self._max_concurrent = max(1, max_concurrent)

    async def upload_all(
        self,
        file_paths: Sequence[str],
        credentials: TicketingCredentials,
    ) -> list[AttachmentUploadResult]:
        """Upload every file, one result per path in input order.

        Args:
            file_paths: Local files to upload
            credentials: Credential snapshot used for every slot request
        """
        if not file_paths:
            return []

        semaphore = asyncio.Semaphore(self._max_concurrent)

        async def _bounded(path: str) -> AttachmentUploadResult:
            async with semaphore:
                return await self.upload(path, credentials)

        results = await asyncio.gather(*(_bounded(path) for path in file_paths))
        return list(results)

    async def upload(
        self, file_path: str, credentials: TicketingCredentials
    ) -> AttachmentUploadResult:
        """Upload one file; failures come back as results, never as exceptions."""
        try:
            asset_url = await self._upload(file_path, credentials)
        except UploadStageError as e:
            logger.warning("Attachment %s not uploaded: %s", Path(file_path).name, e)
            return AttachmentUploadResult(file_path=file_path, success=False, message=str(e))
        except Exception as e:
            # Raw text of unknown exceptions may contain credentials; report the type only
            error = UploadStageError(STAGE_UPLOAD, f"unexpected {type(e).__name__}")
            logger.warning("Attachment %s not uploaded: %s", Path(file_path).name, error)
            return AttachmentUploadResult(file_path=file_path, success=False, message=str(error))

        logger.debug("Attachment %s uploaded", Path(file_path).name)
        return AttachmentUploadResult(file_path=file_path, success=True, message=asset_url)

    async def _upload(self, file_path: str, credentials: TicketingCredentials) -> str:
        path = Path(file_path)
        data = await self._read(path)
        content_type = guess_content_type(path)

        # Step 1: request the upload slot
        try:
            slot = await self._slot_requester.request_upload_slot(
                credentials=credentials,
                content_type=content_type,
                filename=path.name or "attachment",
                size=len(data),
            )
        except TicketingError as e:
            raise UploadStageError(STAGE_SLOT, e.detail) from e

        if not slot.upload_url or not slot.asset_url:
            raise UploadStageError(STAGE_SLOT, "service returned an incomplete upload slot")

        # Step 2: transfer the bytes
        await self._transfer(slot, data, content_type)

        # Step 3: the permanent URL is what gets embedded in the ticket
        return slot.asset_url

    async def _read(self, path: Path) -> bytes:
        try:
            return await asyncio.to_thread(path.read_bytes)
        except (OSError, ValueError) as e:
            # ValueError: paths the OS cannot represent, e.g. with a NUL byte
            reason = getattr(e, "strerror", None) or type(e).__name__
            raise UploadStageError(STAGE_READ, f"cannot read {path.name}: {reason}") from e

    async def _transfer(self, slot: UploadSlot, data: bytes, content_type: str) -> None:
        # Pre-signed URLs and their headers embed signatures; keep them out of messages
        secrets = (slot.upload_url, *slot.headers.values())
        headers = {
            "Content-Type": content_type,
            "Cache-Control": self._cache_control,
        }
        headers.update({key: value for key, value in slot.headers.items() if key})

        client = await self._client_factory()
        try:
            response = await client.put(
                slot.upload_url,
                content=data,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise UploadStageError(
                STAGE_TRANSFER, f"timed out after {self._timeout.write}s"
            ) from e
        except httpx.HTTPError as e:
            raise UploadStageError(
                STAGE_TRANSFER, sanitize_message(f"{type(e).__name__}: {e}", secrets)
            ) from e

        if not response.is_success:
            raise UploadStageError(
                STAGE_TRANSFER,
                sanitize_message(f"HTTP {response.status_code}: {response.text}", secrets),
            )


__all__ = [
    "AttachmentUploader",
    "CONTENT_TYPES",
    "DEFAULT_CONTENT_TYPE",
    "STAGE_READ",
    "STAGE_SLOT",
    "STAGE_TRANSFER",
    "STAGE_UPLOAD",
    "UploadSlotRequester",
    "UploadStageError",
    "guess_content_type",
]
