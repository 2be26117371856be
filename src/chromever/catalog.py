"""
Version catalog for chromever.

Merges two sources into one milestone-sorted list:

- the legacy Chromium snapshot table (milestones 80-112), compiled in because
  no live API serves those builds any more;
- the Chrome for Testing feed (milestones 113+), fetched as JSON.
"""

from typing import Any, Callable, Dict, List, Optional

import requests

from chromever.constants import (
    CFT_MILESTONES_URL,
    CHROME_DOWNLOAD_COMPONENT,
    CHROMIUM_SNAPSHOT_URL_TEMPLATE,
    DEFAULT_REQUEST_TIMEOUT,
    TARGET_PLATFORM,
)
from chromever.exceptions import CatalogParseError, HTTPError, NetworkError
from chromever.log_utils import logger
from chromever.models import SourceKind, VersionDescriptor
from chromever.utils import get_user_agent, is_success_status

# (milestone, full version, chromium snapshot build id)
LEGACY_VERSIONS = (
    (80, "80.0.3987.163", "722274"),
    (83, "83.0.4103.116", "756071"),
    (85, "85.0.4183.121", "818858"),
    (88, "88.0.4324.150", "827102"),
    (91, "91.0.4472.124", "870758"),
    (95, "95.0.4638.69", "929999"),
    (99, "99.0.4844.84", "972766"),
    (103, "103.0.5060.134", "1003031"),
    (106, "106.0.5249.119", "1036745"),
    (109, "109.0.5414.119", "1083080"),
    (112, "112.0.5615.121", "1108766"),
)


def get_legacy_versions() -> List[VersionDescriptor]:
    """Build descriptors for the compiled-in Chromium snapshot table."""
    return [
        VersionDescriptor(
            milestone=milestone,
            version=version,
            download_url=CHROMIUM_SNAPSHOT_URL_TEMPLATE.format(build_id=build_id),
            source=SourceKind.LEGACY_SNAPSHOT,
        )
        for milestone, version, build_id in LEGACY_VERSIONS
    ]


def _parse_milestone(raw: Any) -> Optional[int]:
    """
    Parse a milestone field into a positive integer.

    Returns:
        Optional[int]: The milestone, or None when `raw` is not a positive integer
        (booleans and non-numeric strings included).
    """
    if isinstance(raw, bool):
        return None
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        return None
    return value if value > 0 else None


def _platform_url(record: Dict[str, Any], platform: str) -> Optional[str]:
    downloads = record.get("downloads")
    if not isinstance(downloads, dict):
        return None
    entries = downloads.get(CHROME_DOWNLOAD_COMPONENT)
    if not isinstance(entries, list):
        return None
    for entry in entries:
        if not isinstance(entry, dict):
            continue
        url = entry.get("url")
        if entry.get("platform") == platform and isinstance(url, str) and url:
            return url
    return None


def parse_live_catalog(
    payload: Any, platform: str = TARGET_PLATFORM
) -> List[VersionDescriptor]:
    """
    Extract win64 chrome downloads from a Chrome for Testing milestones document.

    Records are skipped (never fatal) when they are not objects, when their
    milestone is not a positive integer, or when they carry no chrome download for
    `platform`.

    Parameters:
        payload (Any): Decoded JSON document.
        platform (str): Platform tag to extract.

    Returns:
        List[VersionDescriptor]: Live entries sorted by milestone.

    Raises:
        CatalogParseError: If the document itself is not shaped like a milestones feed.
    """
    if not isinstance(payload, dict):
        raise CatalogParseError(
            "Unexpected catalog payload",
            details=f"expected an object, got {type(payload).__name__}",
        )
    milestones = payload.get("milestones")
    if not isinstance(milestones, dict):
        raise CatalogParseError(
            "Unexpected catalog payload", details="missing 'milestones' object"
        )

    versions: List[VersionDescriptor] = []
    for key, record in milestones.items():
        if not isinstance(record, dict):
            logger.debug("Skipping malformed catalog record %s", key)
            continue

        milestone = _parse_milestone(record.get("milestone"))
        if milestone is None:
            logger.debug(
                "Skipping catalog record %s with invalid milestone %r",
                key,
                record.get("milestone"),
            )
            continue

        url = _platform_url(record, platform)
        if url is None:
            logger.debug("Milestone %s has no %s download; skipping", milestone, platform)
            continue

        version = record.get("version")
        versions.append(
            VersionDescriptor(
                milestone=milestone,
                version=version if isinstance(version, str) else "",
                download_url=url,
                source=SourceKind.LIVE_CATALOG,
            )
        )

    versions.sort(key=lambda v: v.milestone)
    return versions


def fetch_live_versions(
    url: str = CFT_MILESTONES_URL, timeout: float = DEFAULT_REQUEST_TIMEOUT
) -> List[VersionDescriptor]:
    """
    Fetch and parse the Chrome for Testing milestones feed.

    No retries are attempted; any failure is surfaced to the caller.

    Raises:
        NetworkError: If the host cannot be reached.
        HTTPError: If the server answers with a non-2xx status.
        CatalogParseError: If the body is not valid JSON or not a milestones feed.
    """
    logger.debug(f"Fetching version catalog: {url}")
    try:
        response = requests.get(
            url, timeout=timeout, headers={"User-Agent": get_user_agent()}
        )
        response.raise_for_status()
    except requests.HTTPError as e:
        status = e.response.status_code if e.response is not None else None
        raise HTTPError(
            f"Version catalog request failed with HTTP status {status}",
            status_code=status,
            url=url,
        ) from e
    except requests.RequestException as e:
        raise NetworkError(
            "Could not reach the Chrome for Testing API", url=url, details=str(e)
        ) from e

    if not is_success_status(response.status_code):
        raise HTTPError(
            f"Version catalog request failed with HTTP status {response.status_code}",
            status_code=response.status_code,
            url=url,
        )

    try:
        payload = response.json()
    except ValueError as e:
        raise CatalogParseError(
            "Could not parse the Chrome for Testing API response", details=str(e)
        ) from e

    versions = parse_live_catalog(payload)
    logger.debug(f"Catalog lists {len(versions)} {TARGET_PLATFORM} milestones")
    return versions


class CatalogAggregator:
    """
    Merged view over the legacy table and the live feed.

    The live feed is fetched lazily, at most once per instance, so repeated
    list_all()/find() calls are side-effect free and return identical results.
    """

    def __init__(
        self,
        fetcher: Callable[[], List[VersionDescriptor]] = fetch_live_versions,
    ) -> None:
        self._fetcher = fetcher
        self._live: Optional[List[VersionDescriptor]] = None

    def _live_versions(self) -> List[VersionDescriptor]:
        if self._live is None:
            self._live = list(self._fetcher())
        return self._live

    def list_all(self) -> List[VersionDescriptor]:
        """
        Return every known version, one per milestone, sorted ascending.

        When a milestone appears in both sources the live entry wins.
        """
        merged: Dict[int, VersionDescriptor] = {}
        for descriptor in get_legacy_versions() + self._live_versions():
            merged[descriptor.milestone] = descriptor
        return [merged[m] for m in sorted(merged)]

    def find(self, milestone: int) -> Optional[VersionDescriptor]:
        for descriptor in self.list_all():
            if descriptor.milestone == milestone:
                return descriptor
        return None

    def milestones(self) -> List[int]:
        return [descriptor.milestone for descriptor in self.list_all()]
