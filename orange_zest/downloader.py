"""
Main download orchestrator.

Walks a flat list of tracks (likes) or a list of playlists, streaming each
track's media into a sink supplied by the caller. A track that cannot be
downloaded is reported and skipped; only credential failures and
cancellation end a run early.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor, as_completed
from contextlib import nullcontext
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from orange_zest.events import EventSink, ZestingEvent, emit, scoped_to_playlist
from orange_zest.exceptions import (
    AuthenticationError,
    OutputError,
    TrackDownloadError,
    ZestCancelled,
)
from orange_zest.models import Playlist, Track
from orange_zest.rate_limiter import RequestRateLimiter
from orange_zest.retry import RetryPolicy, check_cancelled

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024

# Called as open_output(track, playlist); returns a writable context manager
OutputOpener = Callable[[Track, Optional[Playlist]], object]


@dataclass
class FailedItem:
    """A track that was skipped, and why."""

    track: Track
    reason: str
    playlist: Optional[Playlist] = None


@dataclass
class DownloadSummary:
    """Download run result: what was written and what was skipped."""

    downloaded: List[Track] = field(default_factory=list)
    failed: List[FailedItem] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.downloaded) + len(self.failed)

    def merge(self, other: "DownloadSummary") -> None:
        self.downloaded.extend(other.downloaded)
        self.failed.extend(other.failed)


class Downloader:
    """
    Streams track media to caller-provided sinks.

    With ``max_workers`` of 1 tracks are downloaded one after another with a
    fixed pacing wait in between. With more workers a thread pool runs the
    downloads and a shared ``RequestRateLimiter`` bounds the request rate
    instead; observer calls and summary updates are serialized with a lock.
    """

    def __init__(
        self,
        client,
        retry_policy: Optional[RetryPolicy] = None,
        max_workers: int = 1,
        rate_limiter: Optional[RequestRateLimiter] = None,
        chunk_size: int = CHUNK_SIZE,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize downloader.

        Args:
            client: Transport with ``open_media_stream(track)``
            retry_policy: Policy for transient server errors and pacing
            max_workers: Number of concurrent downloads
            rate_limiter: Shared request limiter (created when max_workers > 1)
            chunk_size: Bytes per read from the media stream
            cancel_event: Optional cancellation flag checked between tracks
        """
        if max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.max_workers = max_workers
        if rate_limiter is None and max_workers > 1:
            rate_limiter = RequestRateLimiter()
        self.rate_limiter = rate_limiter
        self.chunk_size = chunk_size
        self.cancel_event = cancel_event

    def download_tracks(
        self,
        tracks: List[Track],
        open_output: OutputOpener,
        on_event: Optional[EventSink] = None,
        limit: Optional[int] = None,
        playlist: Optional[Playlist] = None,
    ) -> DownloadSummary:
        """
        Download a flat list of tracks.

        Args:
            tracks: Tracks in metadata order
            open_output: Opens the sink for one track
            on_event: Observer for download events
            limit: Only the first ``limit`` tracks are attempted (None = all)
            playlist: Owning playlist, passed through to ``open_output``

        Returns:
            DownloadSummary of the run

        Raises:
            AuthenticationError: If the service rejects the credentials
            ZestCancelled: If the run is cancelled between tracks
        """
        return self._run(tracks, open_output, on_event, limit, playlist, pace_first=False)

    def download_playlists(
        self,
        playlists: List[Playlist],
        open_output: OutputOpener,
        on_event: Optional[EventSink] = None,
        limit: Optional[int] = None,
    ) -> DownloadSummary:
        """
        Download the tracks of each playlist as its own flat run.

        Every event of a playlist's run carries that playlist, and ``limit``
        applies to each playlist separately.

        Args:
            playlists: Full playlists
            open_output: Opens the sink for one track
            on_event: Observer for download events
            limit: Per-playlist track limit (None = all)

        Returns:
            DownloadSummary across all playlists
        """
        summary = DownloadSummary()
        started = False

        for playlist in playlists:
            check_cancelled(self.cancel_event)
            logger.info(f"Downloading playlist: {playlist.title} ({len(playlist.tracks)} tracks)")
            emit(on_event, ZestingEvent.start_playlist_download(playlist))
            result = self._run(
                playlist.tracks,
                open_output,
                scoped_to_playlist(on_event, playlist),
                limit,
                playlist,
                pace_first=started,
            )
            started = started or result.attempted > 0
            summary.merge(result)
            emit(on_event, ZestingEvent.finish_playlist_download(playlist))

        return summary

    def _run(
        self,
        tracks: List[Track],
        open_output: OutputOpener,
        on_event: Optional[EventSink],
        limit: Optional[int],
        playlist: Optional[Playlist],
        pace_first: bool,
    ) -> DownloadSummary:
        if limit is not None and limit < 0:
            raise ValueError("limit must not be negative")
        selected = list(tracks) if limit is None else list(tracks)[:limit]
        emit(on_event, ZestingEvent.num_tracks_to_download(len(selected)))

        summary = DownloadSummary()
        if self.max_workers > 1 and len(selected) > 1:
            self._run_concurrently(selected, open_output, on_event, playlist, summary)
            return summary

        for index, track in enumerate(selected):
            if index > 0 or pace_first:
                self.retry_policy.pace(self.cancel_event)
            check_cancelled(self.cancel_event)
            if self.rate_limiter is not None:
                self._acquire_slot()
            self._download_one(track, open_output, on_event, playlist, summary, nullcontext())

        return summary

    def _run_concurrently(
        self,
        selected: List[Track],
        open_output: OutputOpener,
        on_event: Optional[EventSink],
        playlist: Optional[Playlist],
        summary: DownloadSummary,
    ) -> None:
        lock = threading.Lock()

        def serialized(event: ZestingEvent) -> None:
            with lock:
                emit(on_event, event)

        def worker(track: Track) -> None:
            check_cancelled(self.cancel_event)
            self._acquire_slot()
            self._download_one(track, open_output, serialized, playlist, summary, lock)

        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = [executor.submit(worker, track) for track in selected]
            try:
                for future in as_completed(futures):
                    future.result()
            except BaseException:
                for f in futures:
                    f.cancel()
                raise

    def _acquire_slot(self) -> None:
        if not self.rate_limiter.acquire(cancel_event=self.cancel_event):
            raise ZestCancelled("Run cancelled")

    def _download_one(
        self,
        track: Track,
        open_output: OutputOpener,
        on_event: Optional[EventSink],
        playlist: Optional[Playlist],
        summary: DownloadSummary,
        lock,
    ) -> None:
        emit(on_event, ZestingEvent.start_track_download(track))
        try:
            self.retry_policy.call(
                lambda: self._transfer(track, open_output, playlist),
                on_event,
                self.cancel_event,
            )
        except (AuthenticationError, ZestCancelled):
            raise
        except Exception as e:
            logger.error(f"Failed to download {track.title!r}: {e}")
            with lock:
                summary.failed.append(FailedItem(track=track, reason=str(e), playlist=playlist))
            emit(on_event, ZestingEvent.track_download_error(track, e))
            return

        logger.debug(f"Downloaded: {track.title}")
        with lock:
            summary.downloaded.append(track)
        emit(on_event, ZestingEvent.finish_track_download(track))

    def _transfer(
        self, track: Track, open_output: OutputOpener, playlist: Optional[Playlist]
    ) -> None:
        """
        Copy one track's full media stream into a fresh sink.

        A retry calls this again from the start, reopening both the stream
        and the sink, so a partially written attempt is never kept.
        """
        with self.client.open_media_stream(track) as stream:
            # Stream errors arrive as ZestError, so any OSError here is the sink's
            try:
                with open_output(track, playlist) as sink:
                    for chunk in stream.iter_chunks(self.chunk_size):
                        if self.cancel_event is not None and self.cancel_event.is_set():
                            raise TrackDownloadError(f"Download of {track.title!r} cancelled")
                        sink.write(chunk)
            except OSError as e:
                raise OutputError(f"Cannot write output for {track.title!r}: {e}") from e
