"""
Installation store for chromever.

The installation root is the registry: there is no metadata file or database.
A milestone is installed exactly when versions/<milestone> exists and a
recursive search inside it finds the browser executable.
"""

import os
from pathlib import Path
from typing import Dict, List, Optional

from chromever.constants import (
    ARCHIVE_NAME_TEMPLATE,
    CACHE_DIR_NAME,
    EXECUTABLE_NAME,
    PROFILES_DIR_NAME,
    VERSIONS_DIR_NAME,
)
from chromever.exceptions import FileSystemError
from chromever.files import safe_rmtree
from chromever.log_utils import logger
from chromever.models import InstalledVersion


def find_file_recursive(directory: Path, target_name: str) -> Optional[Path]:
    """
    Depth-first search for a file named `target_name` (case-insensitive).

    Entries are visited in directory-listing order; the first match wins.
    """
    target = target_name.lower()
    try:
        entries = list(os.scandir(directory))
    except OSError as e:
        logger.debug("Could not scan %s: %s", directory, e)
        return None

    for entry in entries:
        try:
            if entry.is_file():
                if entry.name.lower() == target:
                    return Path(entry.path)
            elif entry.is_dir(follow_symlinks=False):
                found = find_file_recursive(Path(entry.path), target_name)
                if found is not None:
                    return found
        except OSError as e:
            logger.debug("Skipping unreadable entry %s: %s", entry.path, e)
    return None


class InstallationStore:
    """
    Filesystem-backed registry of installed versions.

    Layout under `root`:
        versions/<milestone>/      extracted browser tree
        cache/chrome-<m>.zip       downloaded archive awaiting extraction
        profiles/<milestone>/      isolated user-data directory
    """

    def __init__(
        self, root: Path, executable_name: str = EXECUTABLE_NAME
    ) -> None:
        self.root = Path(root)
        self.executable_name = executable_name
        # Per-process memo of executable lookups, never persisted
        self._executable_cache: Dict[int, Path] = {}

    @property
    def versions_dir(self) -> Path:
        return self.root / VERSIONS_DIR_NAME

    @property
    def cache_dir(self) -> Path:
        return self.root / CACHE_DIR_NAME

    @property
    def profiles_dir(self) -> Path:
        return self.root / PROFILES_DIR_NAME

    def version_dir(self, milestone: int) -> Path:
        return self.versions_dir / str(milestone)

    def profile_dir(self, milestone: int) -> Path:
        return self.profiles_dir / str(milestone)

    def cache_archive_path(self, milestone: int) -> Path:
        return self.cache_dir / ARCHIVE_NAME_TEMPLATE.format(milestone=milestone)

    def ensure_directories(self) -> None:
        """
        Create the versions, cache and profiles roots if they are missing.

        Raises:
            FileSystemError: If a directory cannot be created.
        """
        for directory in (self.versions_dir, self.cache_dir, self.profiles_dir):
            try:
                directory.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise FileSystemError(
                    f"Could not create directory {directory}",
                    path=str(directory),
                    details=str(e),
                ) from e

    def invalidate(self, milestone: Optional[int] = None) -> None:
        """Forget memoised executable lookups (all of them when milestone is None)."""
        if milestone is None:
            self._executable_cache.clear()
        else:
            self._executable_cache.pop(milestone, None)

    def has_version_dir(self, milestone: int) -> bool:
        return self.version_dir(milestone).is_dir()

    def find_executable(self, milestone: int) -> Optional[Path]:
        """
        Locate the browser executable anywhere below versions/<milestone>.

        Returns:
            Optional[Path]: The first matching file in depth-first order, or None
            when the directory is absent or holds no executable.
        """
        cached = self._executable_cache.get(milestone)
        if cached is not None and cached.is_file():
            return cached

        version_dir = self.version_dir(milestone)
        if not version_dir.is_dir():
            return None

        found = find_file_recursive(version_dir, self.executable_name)
        if found is not None:
            self._executable_cache[milestone] = found
        return found

    def is_installed(self, milestone: int) -> bool:
        """True when the version directory exists and contains the executable."""
        return self.find_executable(milestone) is not None

    def list_installed(self) -> List[InstalledVersion]:
        """
        Enumerate installed versions, sorted by milestone.

        Directories whose names are not integers, and version directories with
        no executable, are left out.
        """
        if not self.versions_dir.is_dir():
            return []

        installed: List[InstalledVersion] = []
        for entry in self.versions_dir.iterdir():
            if not entry.is_dir():
                continue
            try:
                milestone = int(entry.name)
            except ValueError:
                logger.debug("Ignoring non-version directory %s", entry)
                continue
            if milestone <= 0 or str(milestone) != entry.name:
                continue

            executable = self.find_executable(milestone)
            if executable is not None:
                installed.append(
                    InstalledVersion(milestone=milestone, executable_path=executable)
                )

        installed.sort(key=lambda v: v.milestone)
        return installed

    def remove_version_dir(self, milestone: int) -> bool:
        """
        Delete versions/<milestone>.

        Raises:
            FileSystemError: If deletion fails (e.g. a file is held open by a
                running browser).
        """
        self.invalidate(milestone)
        return safe_rmtree(self.version_dir(milestone), self.versions_dir)

    def remove_version(self, milestone: int) -> None:
        """
        Uninstall a milestone: delete its version tree, then its profile.

        A missing version directory is a no-op. Profile cleanup is best effort;
        its failures are logged and never fail the uninstall.
        """
        self.remove_version_dir(milestone)

        try:
            if safe_rmtree(self.profile_dir(milestone), self.profiles_dir):
                logger.debug(f"Removed profile for Chrome {milestone}")
        except FileSystemError as e:
            logger.warning(f"Could not remove profile for Chrome {milestone}: {e}")

    def remove_cached_archive(self, milestone: int) -> bool:
        """Delete the cached archive for `milestone`; failures are logged, not raised."""
        archive = self.cache_archive_path(milestone)
        try:
            archive.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.debug(f"Could not remove cached archive {archive}: {e}")
            return False
        logger.debug(f"Removed cached archive {archive}")
        return True
