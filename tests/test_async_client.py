"""
Tests for the aiohttp-based archive download client.

Covers:
- Session lifecycle and the async context manager protocol
- Streaming a response to disk via a temporary file
- Progress reporting (sync and async callbacks)
- Mapping HTTP and transport failures to chromever errors
"""

import asyncio
from unittest.mock import AsyncMock, Mock

import aiohttp
import pytest

from chromever.async_client import AsyncDownloadClient
from chromever.exceptions import FileSystemError, HTTPError, NetworkError

pytestmark = [pytest.mark.unit]

URL = "https://storage.example/chrome-win64.zip"


def _make_async_iter(chunks):
    async def _gen():
        for chunk in chunks:
            yield chunk

    return _gen()


def _mock_response(mocker, status=200, chunks=(b"PK",), headers=None):
    mock_response = AsyncMock()
    mock_response.status = status
    mock_response.headers = headers if headers is not None else {}

    mock_content = mocker.MagicMock()
    mock_content.iter_chunked = Mock(return_value=_make_async_iter(list(chunks)))
    mock_response.content = mock_content

    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)
    return mock_response


def _patch_session(mocker, client, response=None, get_side_effect=None):
    mock_session = mocker.MagicMock()
    if get_side_effect is not None:
        mock_session.get = mocker.MagicMock(side_effect=get_side_effect)
    else:
        mock_session.get = mocker.MagicMock(return_value=response)
    mocker.patch.object(client, "_ensure_session", AsyncMock(return_value=mock_session))
    return mock_session


class TestAsyncDownloadClientInitialization:
    """Test client construction."""

    def test_defaults(self):
        client = AsyncDownloadClient()

        assert client.timeout.total is None
        assert client.timeout.sock_connect == 30
        assert client.chunk_size == 64 * 1024
        assert client._session is None

    def test_custom_values(self):
        client = AsyncDownloadClient(connect_timeout=5, chunk_size=1024)

        assert client.timeout.sock_read == 5
        assert client.chunk_size == 1024


@pytest.mark.asyncio
class TestSessionLifecycle:
    """Test session creation and cleanup."""

    async def test_context_manager_opens_and_closes_session(self):
        async with AsyncDownloadClient() as client:
            session = client._session
            assert session is not None
            assert not session.closed

        assert session.closed
        assert client._session is None

    async def test_close_closes_open_session(self, mocker):
        client = AsyncDownloadClient()
        mock_session = mocker.MagicMock()
        mock_session.closed = False
        mock_session.close = AsyncMock()
        client._session = mock_session

        await client.close()

        mock_session.close.assert_awaited_once()
        assert client._session is None

    async def test_close_without_session_is_noop(self):
        client = AsyncDownloadClient()

        await client.close()

        assert client._session is None


@pytest.mark.asyncio
class TestDownloadFile:
    """Test streaming downloads."""

    async def test_success_writes_target(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        response = _mock_response(
            mocker, chunks=[b"PK\x03\x04", b"data"], headers={"Content-Length": "8"}
        )
        session = _patch_session(mocker, client, response)
        target = tmp_path / "cache" / "chrome-120.zip"

        written = await client.download_file(URL, target)

        assert written == 8
        assert target.read_bytes() == b"PK\x03\x04data"
        session.get.assert_called_once_with(URL)
        assert [p.name for p in target.parent.iterdir()] == ["chrome-120.zip"]

    async def test_progress_callback_receives_running_totals(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        response = _mock_response(
            mocker, chunks=[b"aaa", b"bb", b"c"], headers={"Content-Length": "6"}
        )
        _patch_session(mocker, client, response)
        seen = []

        await client.download_file(
            URL, tmp_path / "a.zip", progress_callback=lambda d, t: seen.append((d, t))
        )

        assert seen == [(3, 6), (5, 6), (6, 6)]

    async def test_missing_content_length_reports_unknown_total(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, _mock_response(mocker, chunks=[b"xy"]))
        seen = []

        await client.download_file(
            URL, tmp_path / "a.zip", progress_callback=lambda d, t: seen.append((d, t))
        )

        assert seen == [(2, None)]

    async def test_async_callback_is_awaited(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, _mock_response(mocker, chunks=[b"xy"]))
        callback = AsyncMock()

        await client.download_file(URL, tmp_path / "a.zip", progress_callback=callback)

        callback.assert_awaited_once_with(2, None)

    async def test_failing_callback_does_not_abort_download(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, _mock_response(mocker, chunks=[b"xy"]))
        target = tmp_path / "a.zip"

        def broken_callback(_downloaded, _total):
            raise RuntimeError("display went away")

        await client.download_file(URL, target, progress_callback=broken_callback)

        assert target.read_bytes() == b"xy"

    @pytest.mark.parametrize("status", [404, 500, 302])
    async def test_error_status_raises_http_error(self, mocker, tmp_path, status):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, _mock_response(mocker, status=status))
        target = tmp_path / "cache" / "chrome-120.zip"

        with pytest.raises(HTTPError) as exc_info:
            await client.download_file(URL, target)

        assert exc_info.value.status_code == status
        assert exc_info.value.url == URL
        assert not target.exists()
        assert list(target.parent.iterdir()) == []

    async def test_client_error_becomes_network_error(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(
            mocker,
            client,
            get_side_effect=aiohttp.ClientConnectionError("connection reset"),
        )

        with pytest.raises(NetworkError) as exc_info:
            await client.download_file(URL, tmp_path / "a.zip")

        assert "connection reset" in str(exc_info.value)

    async def test_timeout_becomes_network_error(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, get_side_effect=asyncio.TimeoutError())

        with pytest.raises(NetworkError):
            await client.download_file(URL, tmp_path / "a.zip")

    async def test_interrupted_stream_leaves_no_partial_file(self, mocker, tmp_path):
        client = AsyncDownloadClient()

        async def _broken_stream():
            yield b"partial"
            raise aiohttp.ClientPayloadError("stream ended early")

        response = _mock_response(mocker)
        response.content.iter_chunked = Mock(return_value=_broken_stream())
        _patch_session(mocker, client, response)
        target = tmp_path / "cache" / "chrome-120.zip"

        with pytest.raises(NetworkError):
            await client.download_file(URL, target)

        assert list(target.parent.iterdir()) == []

    async def test_cancelled_download_leaves_no_temp_files(self, mocker, tmp_path):
        target = tmp_path / "cache" / "chrome-120.zip"

        for _attempt in range(3):
            client = AsyncDownloadClient()
            first_chunk_written = asyncio.Event()

            async def _stalled_stream(event=first_chunk_written):
                yield b"partial"
                event.set()
                await asyncio.Event().wait()

            response = _mock_response(mocker)
            response.content.iter_chunked = Mock(return_value=_stalled_stream())
            _patch_session(mocker, client, response)

            task = asyncio.create_task(client.download_file(URL, target))
            await first_chunk_written.wait()
            task.cancel()

            with pytest.raises(asyncio.CancelledError):
                await task

        assert list(target.parent.iterdir()) == []

    async def test_unexpected_error_leaves_no_temp_files(self, mocker, tmp_path):
        client = AsyncDownloadClient()

        async def _failing_stream():
            yield b"partial"
            raise RuntimeError("decoder blew up")

        response = _mock_response(mocker)
        response.content.iter_chunked = Mock(return_value=_failing_stream())
        _patch_session(mocker, client, response)
        target = tmp_path / "cache" / "chrome-120.zip"

        with pytest.raises(RuntimeError):
            await client.download_file(URL, target)

        assert list(target.parent.iterdir()) == []

    async def test_rename_failure_becomes_filesystem_error(self, mocker, tmp_path):
        client = AsyncDownloadClient()
        _patch_session(mocker, client, _mock_response(mocker, chunks=[b"xy"]))
        mocker.patch("pathlib.Path.replace", side_effect=PermissionError("locked"))
        target = tmp_path / "a.zip"

        with pytest.raises(FileSystemError) as exc_info:
            await client.download_file(URL, target)

        assert "locked" in str(exc_info.value)
        assert list(tmp_path.iterdir()) == []
