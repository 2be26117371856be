# src/chromever/utils.py
import importlib.metadata
from typing import Iterable, List

from chromever.constants import APP_NAME, BYTES_PER_MEGABYTE, HTTP_STATUS_ERROR_THRESHOLD

# Cache for the User-Agent string to avoid repeated metadata lookups
_USER_AGENT_CACHE = None


def get_version() -> str:
    """Return the installed chromever version, or "unknown" when running from a checkout."""
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `chromever/{version}`.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        _USER_AGENT_CACHE = f"{APP_NAME}/{get_version()}"

    return _USER_AGENT_CACHE


def format_size(num_bytes: int) -> str:
    if num_bytes >= BYTES_PER_MEGABYTE:
        return f"{num_bytes / BYTES_PER_MEGABYTE:.1f} MB"
    return f"{num_bytes} bytes"


def chunk_rows(values: Iterable[int], per_row: int) -> List[str]:
    """Render integers as comma-separated rows of at most `per_row` items."""
    items = [str(v) for v in values]
    return [", ".join(items[i : i + per_row]) for i in range(0, len(items), per_row)]


def is_success_status(status_code: int) -> bool:
    """True for 2xx responses; redirects that were not followed count as failures."""
    return 200 <= status_code < HTTP_STATUS_ERROR_THRESHOLD
