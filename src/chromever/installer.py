"""
Installer for chromever.

Runs the install sequence for one milestone:

    short-circuit -> acquire archive -> extract -> verify -> commit or roll back -> cleanup

The version directory itself is the commit record, so a failed attempt must
never leave versions/<milestone> behind.
"""

from pathlib import Path
from typing import Callable, Optional

from chromever.async_client import AsyncDownloadClient, DownloadProgressCallback
from chromever.exceptions import (
    CorruptedArchiveError,
    ExecutableNotFoundError,
    FileSystemError,
)
from chromever.files import ExtractProgressCallback, extract_all
from chromever.log_utils import logger
from chromever.storage import InstallationStore


class Installer:
    """Downloads, extracts and verifies one Chrome version at a time."""

    def __init__(
        self,
        store: InstallationStore,
        client_factory: Callable[[], AsyncDownloadClient] = AsyncDownloadClient,
    ) -> None:
        self.store = store
        self.client_factory = client_factory

    async def acquire_archive(
        self,
        download_url: str,
        milestone: int,
        progress_callback: Optional[DownloadProgressCallback] = None,
    ) -> Path:
        """
        Return the cached archive for `milestone`, downloading it if absent.

        The cache is keyed by milestone only: an existing file is reused as is.
        """
        archive = self.store.cache_archive_path(milestone)
        if archive.exists():
            logger.info(f"Using cached archive: {archive}")
            return archive

        logger.info(f"Downloading from {download_url}")
        async with self.client_factory() as client:
            await client.download_file(
                download_url, archive, progress_callback=progress_callback
            )
        return archive

    def _rollback(self, milestone: int) -> None:
        try:
            if self.store.remove_version_dir(milestone):
                logger.info(f"Rolled back partial install of Chrome {milestone}")
        except FileSystemError as e:
            logger.error(f"Rollback of Chrome {milestone} failed: {e}")

    async def install_and_commit(
        self,
        download_url: str,
        milestone: int,
        progress_callback: Optional[DownloadProgressCallback] = None,
        extract_callback: Optional[ExtractProgressCallback] = None,
    ) -> Path:
        """
        Install `milestone` from `download_url` and return its executable path.

        Calling this for an already installed milestone is a no-op: no network
        activity and no cache writes happen.

        Raises:
            HTTPError, NetworkError: If the archive cannot be downloaded.
            ArchiveError: If the archive is corrupt or contains unsafe paths.
            ExecutableNotFoundError: If extraction produced no browser executable.
            FileSystemError: On filesystem failures.
        """
        existing = self.store.find_executable(milestone)
        if existing is not None:
            logger.info(f"Chrome {milestone} is already installed")
            return existing

        self.store.ensure_directories()

        if self.store.has_version_dir(milestone):
            logger.warning(
                f"Removing incomplete install of Chrome {milestone} before reinstalling"
            )
            self.store.remove_version_dir(milestone)

        archive = await self.acquire_archive(download_url, milestone, progress_callback)

        version_dir = self.store.version_dir(milestone)
        logger.info("Extracting...")
        try:
            extract_all(archive, version_dir, extract_callback)
        except CorruptedArchiveError:
            self._rollback(milestone)
            # Drop the bad archive so the next attempt downloads a fresh copy
            self.store.remove_cached_archive(milestone)
            raise
        except Exception:
            self._rollback(milestone)
            raise

        logger.info("Verifying...")
        self.store.invalidate(milestone)
        executable = self.store.find_executable(milestone)
        if executable is None:
            self._rollback(milestone)
            raise ExecutableNotFoundError(
                f"Install failed: {self.store.executable_name} not found",
                details=f"the archive for Chrome {milestone} did not contain it",
            )

        logger.info(f"{self.store.executable_name} located at {executable}")
        self.store.remove_cached_archive(milestone)
        return executable
