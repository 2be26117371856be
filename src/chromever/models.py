"""
Core data structures shared by the catalog, the installation store and the CLI.
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


class SourceKind(Enum):
    """Where a catalog entry came from. Display-only."""

    LEGACY_SNAPSHOT = "Chromium Snapshot"
    LIVE_CATALOG = "Chrome for Testing"

    @property
    def label(self) -> str:
        return self.value


@dataclass(frozen=True)
class VersionDescriptor:
    """A release that can be downloaded."""

    milestone: int
    """Major version number; unique within one aggregated catalog"""

    version: str
    """Full dotted version string (e.g. '120.0.6099.109')"""

    download_url: str
    """Absolute URL of the win64 archive"""

    source: SourceKind
    """Which catalog source produced this entry"""


@dataclass(frozen=True)
class InstalledVersion:
    """A version present in the installation root."""

    milestone: int
    """Name of the directory under versions/"""

    executable_path: Path
    """Browser executable located inside that directory"""
