"""Tests for bugtrail.integrations.ticketing.uploader module.

Tests cover:
- Content type detection from file extensions
- The three upload stages and their failure messages
- Order preservation and bounded concurrency
- Signed URLs kept out of failure messages
"""

import asyncio
from pathlib import Path
from unittest.mock import AsyncMock

import httpx
import pytest

from bugtrail.integrations.ticketing import TicketingCredentials, TicketingNetworkError, UploadSlot
from bugtrail.integrations.ticketing.uploader import (
    DEFAULT_CONTENT_TYPE,
    STAGE_UPLOAD,
    AttachmentUploader,
    UploadSlotRequester,
    guess_content_type,
)

CREDENTIALS = TicketingCredentials(api_key="lin_api_x", team_id="team-1")

# =============================================================================
# Fixtures
# =============================================================================


def make_slot(filename: str) -> UploadSlot:
    return UploadSlot(
        upload_url=f"https://uploads.test/{filename}?signature=s3cr3t",
        asset_url=f"https://assets.test/{filename}",
        headers={"x-amz-acl": "public-read"},
    )


class RecordingStorage:
    """Pre-signed URL storage that records PUTs."""

    def __init__(self) -> None:
        self.puts: list[httpx.Request] = []
        self.status_for: dict[str, int] = {}

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.puts.append(request)
        filename = request.url.path.rsplit("/", 1)[-1]
        status = self.status_for.get(filename, 200)
        return httpx.Response(status, text=f"rejected {request.url}")


@pytest.fixture
def storage():
    return RecordingStorage()


@pytest.fixture
def slot_requester():
    """Slot requester returning a slot named after the file."""
    requester = AsyncMock()
    requester.request_upload_slot.side_effect = lambda **kwargs: make_slot(kwargs["filename"])
    return requester


@pytest.fixture
def uploader(slot_requester, storage):
    client = httpx.AsyncClient(transport=httpx.MockTransport(storage.handler))

    async def client_factory():
        return client

    return AttachmentUploader(
        slot_requester,
        client_factory,
        timeout=httpx.Timeout(5.0),
    )


@pytest.fixture
def files(tmp_path):
    paths = []
    for name in ("one.png", "two.jpg", "three.webm", "four.log"):
        path = tmp_path / name
        path.write_bytes(name.encode())
        paths.append(str(path))
    return paths


# =============================================================================
# Content types
# =============================================================================


class TestGuessContentType:
    """Tests for guess_content_type."""

    @pytest.mark.parametrize(
        "filename,expected",
        [
            ("shot.png", "image/png"),
            ("shot.JPG", "image/jpeg"),
            ("shot.jpeg", "image/jpeg"),
            ("anim.gif", "image/gif"),
            ("shot.webp", "image/webp"),
            ("clip.mp4", "video/mp4"),
            ("clip.mov", "video/quicktime"),
            ("clip.webm", "video/webm"),
            ("console.log", DEFAULT_CONTENT_TYPE),
            ("noextension", DEFAULT_CONTENT_TYPE),
        ],
    )
    def test_mapping(self, filename, expected):
        assert guess_content_type(filename) == expected


# =============================================================================
# Upload stages
# =============================================================================


class TestUploadStages:
    """Tests for the three-step protocol of a single attachment."""

    @pytest.mark.asyncio
    async def test_success_returns_asset_url(self, uploader, slot_requester, storage, files):
        """A successful upload reports the permanent asset URL."""
        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is True
        assert result.message == "https://assets.test/one.png"
        slot_requester.request_upload_slot.assert_awaited_once_with(
            credentials=CREDENTIALS,
            content_type="image/png",
            filename="one.png",
            size=len(b"one.png"),
        )
        put = storage.puts[0]
        assert put.method == "PUT"
        assert put.content == b"one.png"
        assert put.headers["Content-Type"] == "image/png"
        assert put.headers["Cache-Control"] == "public, max-age=31536000"
        assert put.headers["x-amz-acl"] == "public-read"

    @pytest.mark.asyncio
    async def test_read_failure(self, uploader, slot_requester, tmp_path):
        """A missing file fails at the read stage without a slot request."""
        result = await uploader.upload(str(tmp_path / "missing.png"), CREDENTIALS)

        assert result.success is False
        assert result.message.startswith("read failed")
        assert "missing.png" in result.message
        slot_requester.request_upload_slot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unreadable_path(self, uploader, slot_requester, tmp_path):
        """A path the OS cannot represent fails at the read stage."""
        result = await uploader.upload(str(tmp_path / "bad\x00.png"), CREDENTIALS)

        assert result.success is False
        assert result.message.startswith("read failed")
        slot_requester.request_upload_slot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_result(self, uploader, slot_requester, files):
        """Errors outside the known stages are reported by type, not text."""
        slot_requester.request_upload_slot.side_effect = RuntimeError("token lin_api_x leaked")

        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is False
        assert result.message == f"{STAGE_UPLOAD} failed: unexpected RuntimeError"
        assert "lin_api_x" not in result.message

    @pytest.mark.asyncio
    async def test_slot_failure(self, uploader, slot_requester, storage, files):
        """A refused slot request fails at the upload slot stage."""
        slot_requester.request_upload_slot.side_effect = TicketingNetworkError("quota exceeded")

        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is False
        assert result.message == "upload slot failed: quota exceeded"
        assert storage.puts == []

    @pytest.mark.asyncio
    async def test_incomplete_slot(self, uploader, slot_requester, files):
        """A slot without URLs fails at the upload slot stage."""
        slot_requester.request_upload_slot.side_effect = None
        slot_requester.request_upload_slot.return_value = UploadSlot(upload_url="", asset_url="")

        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is False
        assert result.message.startswith("upload slot failed")

    @pytest.mark.asyncio
    async def test_transfer_rejected(self, uploader, storage, files):
        """A non-2xx PUT fails at the transfer stage without leaking the signed URL."""
        storage.status_for["one.png"] = 403

        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is False
        assert result.message.startswith("transfer failed: HTTP 403")
        assert "s3cr3t" not in result.message

    @pytest.mark.asyncio
    async def test_transfer_transport_error(self, slot_requester, files):
        """Transport failures during the PUT fail at the transfer stage."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection reset", request=request)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))

        async def client_factory():
            return client

        uploader = AttachmentUploader(slot_requester, client_factory, timeout=httpx.Timeout(5.0))

        result = await uploader.upload(files[0], CREDENTIALS)

        assert result.success is False
        assert result.message.startswith("transfer failed: ConnectError")

    @pytest.mark.asyncio
    async def test_custom_cache_control(self, slot_requester, storage, files):
        """Cache-Control comes from configuration."""
        client = httpx.AsyncClient(transport=httpx.MockTransport(storage.handler))

        async def client_factory():
            return client

        uploader = AttachmentUploader(
            slot_requester,
            client_factory,
            timeout=httpx.Timeout(5.0),
            cache_control="no-cache",
        )

        await uploader.upload(files[0], CREDENTIALS)

        assert storage.puts[0].headers["Cache-Control"] == "no-cache"


# =============================================================================
# Batches
# =============================================================================


class TestUploadAll:
    """Tests for AttachmentUploader.upload_all."""

    @pytest.mark.asyncio
    async def test_empty(self, uploader, slot_requester):
        """No attachments means no requests."""
        assert await uploader.upload_all([], CREDENTIALS) == []
        slot_requester.request_upload_slot.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_results_follow_input_order(self, uploader, slot_requester, files):
        """Results match input order even when later files finish first."""
        delays = {Path(p).name: 0.01 * (len(files) - i) for i, p in enumerate(files)}

        async def slow_slot(**kwargs):
            await asyncio.sleep(delays[kwargs["filename"]])
            return make_slot(kwargs["filename"])

        slot_requester.request_upload_slot.side_effect = slow_slot

        results = await uploader.upload_all(files, CREDENTIALS)

        assert [r.file_path for r in results] == files
        assert all(r.success for r in results)

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_others(self, uploader, storage, files):
        """One failed attachment leaves the rest untouched."""
        storage.status_for["two.jpg"] = 500

        results = await uploader.upload_all(files, CREDENTIALS)

        assert [r.success for r in results] == [True, False, True, True]

    @pytest.mark.asyncio
    async def test_unreadable_path_does_not_stop_others(self, uploader, files):
        bad = str(Path(files[0]).parent / "bad\x00.png")

        results = await uploader.upload_all([files[0], bad, files[1]], CREDENTIALS)

        assert [r.file_path for r in results] == [files[0], bad, files[1]]
        assert [r.success for r in results] == [True, False, True]

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self, slot_requester, storage, files):
        """No more than max_concurrent uploads run at once."""
        in_flight = 0
        peak = 0

        async def tracked_slot(**kwargs):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return make_slot(kwargs["filename"])

        slot_requester.request_upload_slot.side_effect = tracked_slot
        client = httpx.AsyncClient(transport=httpx.MockTransport(storage.handler))

        async def client_factory():
            return client

        uploader = AttachmentUploader(
            slot_requester,
            client_factory,
            timeout=httpx.Timeout(5.0),
            max_concurrent=2,
        )

        results = await uploader.upload_all(files, CREDENTIALS)

        assert len(results) == len(files)
        assert peak == 2


class TestUploadSlotRequesterProtocol:
    """Tests for the UploadSlotRequester protocol."""

    def test_linear_integration_satisfies_protocol(self, linear):
        assert isinstance(linear, UploadSlotRequester)
