"""
Custom exceptions for orange-zest.

Errors fall into three groups:

- transient: ``TransientServerError``; retried with a pause and never
  surfaced from a batch operation.
- per-item: subclasses of ``ItemError``; reported through an error event,
  the item is skipped and the batch continues.
- fatal: everything else; aborts the current phase and propagates to the
  caller unchanged.
"""

from typing import Optional


class ZestError(Exception):
    """Base exception for all orange-zest errors."""


class ConfigError(ZestError):
    """Configuration errors."""


class TransientServerError(ZestError):
    """Retryable failure signaled by the remote service (5xx, 429, network)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class RetriesExhaustedError(ZestError):
    """Transient failures kept happening past the retry budget."""


class ApiError(ZestError):
    """Non-retryable API response."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(ApiError):
    """Credentials were rejected by the service."""


class MalformedResponseError(ZestError):
    """Response body did not have the expected structure."""


class ItemError(ZestError):
    """Failure scoped to a single track or playlist."""


class PlaylistFetchError(ItemError):
    """The full playlist record could not be fetched."""


class PlaylistCompletionError(ItemError):
    """The playlist was fetched but could not be turned into a full record."""


class TrackDownloadError(ItemError):
    """A single track could not be downloaded."""


class NoPlayableMediaError(TrackDownloadError):
    """Track has no transcoding that can be streamed to a file."""


class OutputError(TrackDownloadError):
    """The local sink for a track could not be created or written."""


class MetadataError(ZestError):
    """Metadata embedding errors."""


class StorageError(ZestError):
    """Archive storage is unavailable or holds invalid data."""


class InputFileNotFoundError(StorageError):
    """A metadata file expected from an earlier run does not exist."""

    def __init__(self, path):
        super().__init__(f"Input file not found: {path}")
        self.path = path


class ZestCancelled(ZestError):
    """The run was cancelled between steps."""
