"""
File Operations for chromever

Traversal-safe ZIP extraction and contained directory removal.
"""

import os
import shutil
import zipfile
import zlib
from pathlib import Path
from typing import Callable, Optional

from chromever.exceptions import (
    CorruptedArchiveError,
    FileSystemError,
    PathValidationError,
    UnsafeArchivePathError,
)
from chromever.log_utils import logger

ExtractProgressCallback = Callable[[int, int], None]


def _is_within_base(real_base_dir: str, candidate: str) -> bool:
    """
    Determine whether the candidate path resides within the given base directory.

    Returns:
        True if the candidate path is inside `real_base_dir`, False otherwise.
    """
    try:
        return os.path.commonpath([real_base_dir, candidate]) == real_base_dir
    except ValueError:
        return False


def is_safe_archive_member(member_name: str) -> bool:
    """
    Determine whether an archive member name is safe to extract.

    Returns:
        `True` if the member name contains no absolute paths, drive letters,
        parent-directory references, or null bytes, `False` otherwise.
    """
    if not member_name or member_name.startswith(("/", "\\")):
        return False
    if "\x00" in member_name:
        return False
    # ZIP names use forward slashes; treat backslashes the same on every platform
    parts = member_name.replace("\\", "/").split("/")
    if ".." in parts:
        return False
    if ":" in parts[0]:
        return False
    normalized = os.path.normpath(member_name)
    if os.path.isabs(normalized):
        return False
    return True


def safe_extract_path(extract_dir: str, file_path: str) -> str:
    """
    Resolve a safe absolute extraction path and prevent directory traversal.

    Parameters:
        extract_dir (str): Base directory intended for extraction.
        file_path (str): Member path from the archive to be extracted.

    Returns:
        str: Absolute, normalized path inside extract_dir suitable for extraction.

    Raises:
        UnsafeArchivePathError: If the member name is unsafe or the resolved path
            is outside extract_dir.
    """
    if not is_safe_archive_member(file_path):
        raise UnsafeArchivePathError(
            f"Unsafe archive member '{file_path}'",
            details="absolute or parent-directory paths are not allowed",
        )

    real_extract_dir = os.path.realpath(extract_dir)
    prospective_path = os.path.join(real_extract_dir, file_path)
    normalized_path = os.path.realpath(prospective_path)

    if not _is_within_base(real_extract_dir, normalized_path):
        raise UnsafeArchivePathError(
            f"Unsafe extraction path '{file_path}' is outside base '{extract_dir}'"
        )

    return normalized_path


def extract_all(
    zip_path: Path,
    target_dir: Path,
    progress_callback: Optional[ExtractProgressCallback] = None,
) -> int:
    """
    Extract every entry of a ZIP archive into `target_dir`, preserving relative paths.

    All member paths are validated before anything is written, so an archive with
    a single unsafe entry leaves the filesystem untouched.

    Parameters:
        zip_path (Path): Archive to extract.
        target_dir (Path): Destination directory; created if missing.
        progress_callback (Optional[callable]): Called with (done, total) after
            each entry.

    Returns:
        int: Number of archive entries processed.

    Raises:
        CorruptedArchiveError: If the file is not a readable ZIP archive or an
            entry cannot be decompressed.
        UnsafeArchivePathError: If any entry would resolve outside `target_dir`.
        FileSystemError: If writing the extracted files fails.
    """
    try:
        with zipfile.ZipFile(zip_path, "r") as zip_ref:
            members = zip_ref.infolist()

            planned = [
                (info, safe_extract_path(str(target_dir), info.filename))
                for info in members
            ]
            os.makedirs(target_dir, exist_ok=True)

            total = len(planned)
            for done, (info, extract_path) in enumerate(planned, start=1):
                if info.is_dir():
                    os.makedirs(extract_path, exist_ok=True)
                else:
                    os.makedirs(os.path.dirname(extract_path), exist_ok=True)
                    with (
                        zip_ref.open(info) as source,
                        open(extract_path, "wb") as target,
                    ):
                        shutil.copyfileobj(source, target)
                    logger.debug(f"Extracted {info.filename} to {extract_path}")

                if progress_callback:
                    progress_callback(done, total)

            return total
    except UnsafeArchivePathError as e:
        e.archive_path = str(zip_path)
        raise
    except (
        zipfile.BadZipFile,
        zipfile.LargeZipFile,
        EOFError,
        zlib.error,
        # Encrypted entries and unsupported compression methods
        RuntimeError,
        ValueError,
    ) as e:
        raise CorruptedArchiveError(
            f"Could not read ZIP archive {zip_path}",
            archive_path=str(zip_path),
            details=str(e),
        ) from e
    except OSError as e:
        raise FileSystemError(
            f"Error extracting archive into {target_dir}",
            path=str(target_dir),
            details=str(e),
        ) from e


def safe_rmtree(path_to_remove: Path, base_dir: Path) -> bool:
    """
    Remove a directory tree, a file, or a symlink that lives inside `base_dir`.

    Symlinks are unlinked rather than followed.

    Returns:
        bool: `True` if something was removed, `False` if the path did not exist.

    Raises:
        PathValidationError: If the path resolves outside `base_dir`.
        FileSystemError: If the removal itself fails (e.g. a file is locked).
    """
    path_str = str(path_to_remove)
    if not os.path.lexists(path_str):
        return False

    real_base_dir = os.path.realpath(base_dir)
    if os.path.islink(path_str):
        location = os.path.realpath(os.path.dirname(os.path.abspath(path_str)))
    else:
        location = os.path.realpath(path_str)

    if not _is_within_base(real_base_dir, location):
        raise PathValidationError(
            f"Refusing to remove {path_str}: it resolves outside {base_dir}",
            path=path_str,
        )

    try:
        if os.path.islink(path_str) or not os.path.isdir(path_str):
            os.remove(path_str)
        else:
            shutil.rmtree(path_str)
    except OSError as e:
        raise FileSystemError(
            f"Could not remove {path_str}", path=path_str, details=str(e)
        ) from e
    return True
