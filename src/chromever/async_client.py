"""
Async HTTP download client for chromever.

Streams a single archive to disk with aiohttp, reporting progress as chunks
arrive. There is no retry and no parallel chunk fetching.
"""

import asyncio
import os
import time
from pathlib import Path
from typing import Any, Callable, Optional, Union

import aiofiles  # type: ignore[import-untyped]
import aiohttp
from aiohttp import ClientSession, ClientTimeout, TCPConnector

from chromever.constants import (
    BYTES_PER_MEGABYTE,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_REQUEST_TIMEOUT,
    FILE_SIZE_MB_LOGGING_THRESHOLD,
)
from chromever.exceptions import FileSystemError, HTTPError, NetworkError
from chromever.log_utils import logger
from chromever.utils import format_size, get_user_agent, is_success_status

Pathish = Union[str, Path]

# Called with (downloaded_bytes, total_bytes_or_None); may be a coroutine function
DownloadProgressCallback = Callable[[int, Optional[int]], Any]


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.debug(f"Could not remove temporary file {path}: {e}")


class AsyncDownloadClient:
    """
    Asynchronous archive downloader using aiohttp.

    Example:
        async with AsyncDownloadClient() as client:
            await client.download_file(url, target, progress_callback=on_chunk)
    """

    def __init__(
        self,
        connect_timeout: float = DEFAULT_REQUEST_TIMEOUT,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ) -> None:
        """
        Parameters:
            connect_timeout (float): Seconds allowed for connecting and for each
                socket read. The overall transfer is not capped.
            chunk_size (int): Bytes read per chunk.
        """
        self.timeout = ClientTimeout(
            total=None, sock_connect=connect_timeout, sock_read=connect_timeout
        )
        self.chunk_size = chunk_size
        self._session: Optional[ClientSession] = None

    async def __aenter__(self) -> "AsyncDownloadClient":
        await self._ensure_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _ensure_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(
                connector=TCPConnector(limit=1),
                timeout=self.timeout,
                headers={"User-Agent": get_user_agent()},
            )
        return self._session

    async def close(self) -> None:
        """Close the client session and release resources."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None

    async def download_file(
        self,
        url: str,
        target_path: Pathish,
        progress_callback: Optional[DownloadProgressCallback] = None,
    ) -> int:
        """
        Download `url` to `target_path` via a temporary file and an atomic rename.

        Parameters:
            url (str): Source URL.
            target_path (Pathish): Destination; parent directories are created.
            progress_callback (Optional[callable]): Invoked after every chunk with
                (downloaded, total). `total` is None when the server sends no
                Content-Length. Callback errors are logged and ignored.

        Returns:
            int: Number of bytes written.

        Raises:
            HTTPError: On a non-2xx response; carries the status code.
            NetworkError: On connection or transfer failures.
            FileSystemError: If the file cannot be written or moved into place.
        """
        session = await self._ensure_session()
        target = Path(target_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        temp_path = target.with_name(
            f"{target.name}.tmp.{os.getpid()}.{int(time.time() * 1000)}"
        )

        try:
            start_time = time.time()
            async with session.get(url) as response:
                if not is_success_status(response.status):
                    raise HTTPError(
                        f"Download failed with HTTP status {response.status}",
                        status_code=response.status,
                        url=url,
                    )

                raw_content_length = response.headers.get("Content-Length")
                try:
                    total_size = int(raw_content_length) if raw_content_length else 0
                except (TypeError, ValueError):
                    total_size = 0
                downloaded = 0

                async with aiofiles.open(temp_path, "wb") as f:
                    async for chunk in response.content.iter_chunked(self.chunk_size):
                        await f.write(chunk)
                        downloaded += len(chunk)

                        if progress_callback:
                            try:
                                result = progress_callback(downloaded, total_size or None)
                                if asyncio.iscoroutine(result):
                                    await result
                            except Exception as cb_err:
                                logger.debug(f"Progress callback error: {cb_err}")

            temp_path.replace(target)

            elapsed = time.time() - start_time
            logger.debug(f"Downloaded {url} in {elapsed:.2f}s")
            if downloaded / BYTES_PER_MEGABYTE >= FILE_SIZE_MB_LOGGING_THRESHOLD:
                logger.info(f"Downloaded: {target.name} ({format_size(downloaded)})")
            else:
                logger.info(f"Downloaded: {target.name} ({downloaded} bytes)")
            return downloaded

        except HTTPError:
            _remove_quietly(temp_path)
            raise
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            _remove_quietly(temp_path)
            raise NetworkError("Download request failed", url=url, details=str(e)) from e
        except OSError as e:
            _remove_quietly(temp_path)
            raise FileSystemError(
                f"Could not save download to {target}", path=str(target), details=str(e)
            ) from e
        except BaseException:
            # Cancellation (Ctrl-C under asyncio.run) or an unexpected error
            _remove_quietly(temp_path)
            raise
