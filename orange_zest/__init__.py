"""
Core modules for orange-zest archive functionality.
"""

from orange_zest.cache import TTLCache
from orange_zest.downloader import Downloader, DownloadSummary, FailedItem
from orange_zest.events import EventCategory, EventKind, ZestingEvent
from orange_zest.exceptions import (
    ApiError,
    AuthenticationError,
    ConfigError,
    InputFileNotFoundError,
    ItemError,
    StorageError,
    TransientServerError,
    ZestCancelled,
    ZestError,
)
from orange_zest.hydrator import Hydrator
from orange_zest.models import (
    CollectionKind,
    Credentials,
    Playlist,
    PlaylistSummary,
    Profile,
    Track,
)
from orange_zest.paginator import Paginator
from orange_zest.retry import RetryPolicy
from orange_zest.soundcloud_client import SoundCloudClient
from orange_zest.zester import Zester

__version__ = "0.1.0"

__all__ = [
    "Zester",
    "SoundCloudClient",
    "Paginator",
    "Hydrator",
    "Downloader",
    "DownloadSummary",
    "FailedItem",
    "RetryPolicy",
    "ZestingEvent",
    "EventKind",
    "EventCategory",
    "CollectionKind",
    "Credentials",
    "Profile",
    "Track",
    "PlaylistSummary",
    "Playlist",
    "ZestError",
    "ConfigError",
    "TransientServerError",
    "ApiError",
    "AuthenticationError",
    "ItemError",
    "StorageError",
    "InputFileNotFoundError",
    "ZestCancelled",
    "TTLCache",
]
