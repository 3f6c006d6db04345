"""
Archive run facade.

Wires the SoundCloud client into the paginator, hydrator and downloader.
Metadata is always fetched in full; the track limit only bounds downloads.
"""

import logging
import threading
from typing import List, Optional

from orange_zest.config import ArchiveSettings
from orange_zest.downloader import Downloader, DownloadSummary, OutputOpener
from orange_zest.events import EventSink
from orange_zest.hydrator import Hydrator
from orange_zest.models import CollectionKind, Credentials, Playlist, Profile, Track
from orange_zest.paginator import Paginator
from orange_zest.rate_limiter import RequestRateLimiter
from orange_zest.retry import RetryPolicy
from orange_zest.soundcloud_client import SoundCloudClient

logger = logging.getLogger(__name__)


class Zester:
    """Fetches a user's likes and playlists and downloads their audio."""

    def __init__(
        self,
        credentials: Credentials,
        settings: Optional[ArchiveSettings] = None,
        client=None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize with credentials and run settings.

        Args:
            credentials: OAuth token and client id
            settings: Archive settings (defaults if omitted)
            client: Transport to use instead of a SoundCloudClient
            cancel_event: Optional cancellation flag shared by every phase
        """
        self.settings = settings or ArchiveSettings()
        self.client = client or SoundCloudClient(
            credentials,
            timeout=self.settings.request_timeout,
            cache_max_size=self.settings.cache_max_size,
            cache_ttl=self.settings.cache_ttl,
        )
        self.cancel_event = cancel_event
        self.retry_policy = RetryPolicy(
            server_error_delay=self.settings.server_error_delay,
            max_server_errors=self.settings.max_server_errors,
            pacing_delay=self.settings.pacing_delay,
        )
        self.paginator = Paginator(self.client, self.retry_policy, cancel_event)
        self.hydrator = Hydrator(self.client, self.retry_policy, cancel_event)

        rate_limiter = None
        if self.settings.threads > 1:
            rate_limiter = RequestRateLimiter(
                max_requests=self.settings.requests_per_window,
                window_seconds=self.settings.rate_window_seconds,
            )
        self.downloader = Downloader(
            self.client,
            self.retry_policy,
            max_workers=self.settings.threads,
            rate_limiter=rate_limiter,
            chunk_size=self.settings.chunk_size,
            cancel_event=cancel_event,
        )

    def profile(self) -> Profile:
        """Fetch the user's counts, used to size progress reporting."""
        return self.retry_policy.call(self.client.fetch_profile, cancel_event=self.cancel_event)

    def likes(self, on_event: Optional[EventSink] = None) -> List[Track]:
        """Fetch every liked track, most recent first."""
        return self.paginator.fetch_all(CollectionKind.LIKES, on_event)

    def playlists(
        self,
        on_event: Optional[EventSink] = None,
        on_hydrate_event: Optional[EventSink] = None,
    ) -> List[Playlist]:
        """
        Fetch every liked and owned playlist with its tracks.

        Args:
            on_event: Observer for the summary listing
            on_hydrate_event: Observer for per-playlist hydration (defaults to on_event)
        """
        summaries = self.paginator.fetch_all(CollectionKind.PLAYLISTS, on_event)
        logger.info(f"Hydrating {len(summaries)} playlists...")
        return self.hydrator.hydrate_all(summaries, on_hydrate_event or on_event)

    def download_likes_audio(
        self,
        likes: List[Track],
        open_output: OutputOpener,
        on_event: Optional[EventSink] = None,
        limit: Optional[int] = None,
    ) -> DownloadSummary:
        """Download the audio of liked tracks (the first ``limit`` only, if set)."""
        if limit is None:
            limit = self.settings.limit
        return self.downloader.download_tracks(likes, open_output, on_event, limit)

    def download_playlists_audio(
        self,
        playlists: List[Playlist],
        open_output: OutputOpener,
        on_event: Optional[EventSink] = None,
        limit: Optional[int] = None,
    ) -> DownloadSummary:
        """Download the audio of every playlist, nested by playlist."""
        if limit is None:
            limit = self.settings.limit
        return self.downloader.download_playlists(playlists, open_output, on_event, limit)
