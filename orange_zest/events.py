"""
Progress events reported by the paginator, hydrator and downloader.

A single event vocabulary covers every phase. Each event names its kind and
the subject it is about (a track, a playlist summary or a full playlist).
Observers receive events synchronously and cannot influence control flow:
their return values are ignored and their exceptions are logged and dropped.
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Callable, Optional

from orange_zest.models import Playlist

logger = logging.getLogger(__name__)


class EventCategory(str, Enum):
    """Shared shape of events, independent of the subject type."""

    PROGRESS = "progress"
    RETRY_PAUSE = "retry_pause"
    ITEM_START = "item_start"
    ITEM_DONE = "item_done"
    ITEM_ERROR = "item_error"
    GROUP_START = "group_start"
    GROUP_DONE = "group_done"


class EventKind(str, Enum):
    """Every distinguishable step reported during a run."""

    MORE_ITEMS_DOWNLOADED = "more_items_downloaded"
    PAUSED_AFTER_SERVER_ERROR = "paused_after_server_error"
    START_ITEM_FETCH = "start_item_fetch"
    FINISH_ITEM_FETCH = "finish_item_fetch"
    ITEM_FETCH_ERROR = "item_fetch_error"
    NUM_TRACKS_TO_DOWNLOAD = "num_tracks_to_download"
    START_TRACK_DOWNLOAD = "start_track_download"
    FINISH_TRACK_DOWNLOAD = "finish_track_download"
    TRACK_DOWNLOAD_ERROR = "track_download_error"
    START_PLAYLIST_DOWNLOAD = "start_playlist_download"
    FINISH_PLAYLIST_DOWNLOAD = "finish_playlist_download"

    @property
    def category(self) -> EventCategory:
        return _CATEGORIES[self]


_CATEGORIES = {
    EventKind.MORE_ITEMS_DOWNLOADED: EventCategory.PROGRESS,
    EventKind.NUM_TRACKS_TO_DOWNLOAD: EventCategory.PROGRESS,
    EventKind.PAUSED_AFTER_SERVER_ERROR: EventCategory.RETRY_PAUSE,
    EventKind.START_ITEM_FETCH: EventCategory.ITEM_START,
    EventKind.START_TRACK_DOWNLOAD: EventCategory.ITEM_START,
    EventKind.FINISH_ITEM_FETCH: EventCategory.ITEM_DONE,
    EventKind.FINISH_TRACK_DOWNLOAD: EventCategory.ITEM_DONE,
    EventKind.ITEM_FETCH_ERROR: EventCategory.ITEM_ERROR,
    EventKind.TRACK_DOWNLOAD_ERROR: EventCategory.ITEM_ERROR,
    EventKind.START_PLAYLIST_DOWNLOAD: EventCategory.GROUP_START,
    EventKind.FINISH_PLAYLIST_DOWNLOAD: EventCategory.GROUP_DONE,
}


@dataclass(frozen=True)
class ZestingEvent:
    """
    One observable step of a run.

    Attributes:
        kind: What happened
        subject: Track, PlaylistSummary or Playlist the event is about
        count: Item count for progress events
        delay_seconds: Pause length for retry pauses
        error: Exception for error events
        playlist: Owning playlist for events of a nested (playlist) download
    """

    kind: EventKind
    subject: Any = None
    count: Optional[int] = None
    delay_seconds: Optional[float] = None
    error: Optional[BaseException] = None
    playlist: Optional[Playlist] = None

    @property
    def category(self) -> EventCategory:
        return self.kind.category

    @property
    def is_error(self) -> bool:
        return self.category == EventCategory.ITEM_ERROR

    @classmethod
    def more_items_downloaded(cls, count: int) -> "ZestingEvent":
        return cls(EventKind.MORE_ITEMS_DOWNLOADED, count=count)

    @classmethod
    def paused_after_server_error(cls, delay_seconds: float) -> "ZestingEvent":
        return cls(EventKind.PAUSED_AFTER_SERVER_ERROR, delay_seconds=delay_seconds)

    @classmethod
    def start_item_fetch(cls, summary) -> "ZestingEvent":
        return cls(EventKind.START_ITEM_FETCH, subject=summary)

    @classmethod
    def finish_item_fetch(cls, summary) -> "ZestingEvent":
        return cls(EventKind.FINISH_ITEM_FETCH, subject=summary)

    @classmethod
    def item_fetch_error(cls, summary, error: BaseException) -> "ZestingEvent":
        return cls(EventKind.ITEM_FETCH_ERROR, subject=summary, error=error)

    @classmethod
    def num_tracks_to_download(cls, count: int) -> "ZestingEvent":
        return cls(EventKind.NUM_TRACKS_TO_DOWNLOAD, count=count)

    @classmethod
    def start_track_download(cls, track) -> "ZestingEvent":
        return cls(EventKind.START_TRACK_DOWNLOAD, subject=track)

    @classmethod
    def finish_track_download(cls, track) -> "ZestingEvent":
        return cls(EventKind.FINISH_TRACK_DOWNLOAD, subject=track)

    @classmethod
    def track_download_error(cls, track, error: BaseException) -> "ZestingEvent":
        return cls(EventKind.TRACK_DOWNLOAD_ERROR, subject=track, error=error)

    @classmethod
    def start_playlist_download(cls, playlist: Playlist) -> "ZestingEvent":
        return cls(EventKind.START_PLAYLIST_DOWNLOAD, subject=playlist, playlist=playlist)

    @classmethod
    def finish_playlist_download(cls, playlist: Playlist) -> "ZestingEvent":
        return cls(EventKind.FINISH_PLAYLIST_DOWNLOAD, subject=playlist, playlist=playlist)


EventSink = Callable[[ZestingEvent], None]


def emit(on_event: Optional[EventSink], event: ZestingEvent) -> None:
    """
    Deliver an event to the observer, if any.

    Args:
        on_event: Observer callback (may be None)
        event: Event to deliver
    """
    if on_event is None:
        return
    try:
        on_event(event)
    except Exception as e:
        logger.debug(f"Error in event observer for {event.kind.value}: {e}")


def scoped_to_playlist(on_event: Optional[EventSink], playlist: Playlist) -> Optional[EventSink]:
    """Wrap an observer so every event it receives names the owning playlist."""
    if on_event is None:
        return None

    def scoped(event: ZestingEvent) -> None:
        on_event(replace(event, playlist=playlist))

    return scoped
