"""
Custom exceptions for chromever.

Library code raises these; the CLI is the only place that catches them and
turns them into a message and a non-zero exit status.
"""

from typing import Optional


class ChromeverError(Exception):
    """
    Base exception for all chromever errors.

    All custom exceptions inherit from this class so the command layer can
    catch every application-specific failure in one place.
    """

    def __init__(self, message: str, details: Optional[str] = None) -> None:
        """
        Initialize the exception.

        Args:
            message: The primary error message.
            details: Optional additional context about the error.
        """
        self.message = message
        self.details = details
        super().__init__(message)

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - {self.details}"
        return self.message


# =============================================================================
# Configuration Errors
# =============================================================================


class ConfigurationError(ChromeverError):
    """Exception raised when the configuration file is unreadable or invalid."""

    pass


# =============================================================================
# Download Errors
# =============================================================================


class DownloadError(ChromeverError):
    """
    Base exception for network-related errors.

    Attributes:
        url: The URL that was being requested when the error occurred.
    """

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.url = url


class NetworkError(DownloadError):
    """
    Exception raised when a host cannot be reached.

    This includes DNS failures, refused connections, timeouts and TLS errors.
    """

    pass


class HTTPError(DownloadError):
    """
    Exception raised when the server answers with a non-2xx status.

    Attributes:
        status_code: The HTTP status code returned by the server.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        url: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, url, details)
        self.status_code = status_code


# =============================================================================
# Catalog Errors
# =============================================================================


class CatalogParseError(ChromeverError):
    """Exception raised when the remote version catalog cannot be parsed."""

    pass


# =============================================================================
# Archive Errors
# =============================================================================


class ArchiveError(ChromeverError):
    """
    Exception raised for archive-related errors.

    Attributes:
        archive_path: Path to the problematic archive.
    """

    def __init__(
        self,
        message: str,
        archive_path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.archive_path = archive_path


class CorruptedArchiveError(ArchiveError):
    """Exception raised when an archive is not a readable ZIP file."""

    pass


class UnsafeArchivePathError(ArchiveError):
    """Exception raised when an archive member would land outside the target directory."""

    pass


# =============================================================================
# File System Errors
# =============================================================================


class FileSystemError(ChromeverError):
    """
    Exception raised for file system failures.

    Attributes:
        path: The path that caused the error.
    """

    def __init__(
        self,
        message: str,
        path: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        super().__init__(message, details)
        self.path = path


class PathValidationError(FileSystemError):
    """Exception raised when a path fails containment checks."""

    pass


# =============================================================================
# Version Errors
# =============================================================================


class VersionNotFoundError(ChromeverError):
    """Exception raised when a milestone is not present in the remote catalog."""

    def __init__(
        self, milestone: int, message: Optional[str] = None, details: Optional[str] = None
    ) -> None:
        super().__init__(
            message or f"No Chrome version found for milestone {milestone}", details
        )
        self.milestone = milestone


class VersionNotInstalledError(ChromeverError):
    """Exception raised when an operation needs a milestone that is not installed."""

    def __init__(
        self, milestone: int, message: Optional[str] = None, details: Optional[str] = None
    ) -> None:
        super().__init__(message or f"Chrome {milestone} is not installed", details)
        self.milestone = milestone


class VerificationError(ChromeverError):
    """Exception raised when a freshly extracted version fails verification."""

    pass


class ExecutableNotFoundError(VerificationError):
    """Exception raised when the browser executable is missing after extraction."""

    pass


# =============================================================================
# Launch Errors
# =============================================================================


class LaunchError(ChromeverError):
    """Exception raised when the browser process cannot be spawned."""

    pass
