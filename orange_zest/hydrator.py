"""
Turns playlist summaries into full playlist records.
"""

import logging
import threading
from typing import Any, Dict, List, Optional

from orange_zest.events import EventSink, ZestingEvent, emit
from orange_zest.exceptions import (
    AuthenticationError,
    MalformedResponseError,
    PlaylistCompletionError,
    PlaylistFetchError,
    ZestCancelled,
)
from orange_zest.models import Playlist, PlaylistSummary, Track
from orange_zest.retry import RetryPolicy, check_cancelled

logger = logging.getLogger(__name__)

# Maximum ids per track lookup request
TRACK_BATCH_SIZE = 50


class Hydrator:
    """
    Fetches the full record for each playlist summary.

    A failure on one playlist is reported through an ``ITEM_FETCH_ERROR``
    event and that playlist is left out of the result; the batch carries on.
    Only credential failures and cancellation stop the batch.
    """

    def __init__(
        self,
        client,
        retry_policy: Optional[RetryPolicy] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize hydrator.

        Args:
            client: Transport with ``fetch_playlist(id)`` and ``fetch_tracks(ids)``
            retry_policy: Policy for transient server errors
            cancel_event: Optional cancellation flag checked between playlists
        """
        self.client = client
        self.retry_policy = retry_policy or RetryPolicy()
        self.cancel_event = cancel_event

    def hydrate_all(
        self,
        summaries: List[PlaylistSummary],
        on_event: Optional[EventSink] = None,
    ) -> List[Playlist]:
        """
        Hydrate every summary, in order.

        Args:
            summaries: Playlist summaries from the playlists collection
            on_event: Observer for fetch and error events

        Returns:
            Full playlists; one entry fewer for every ``ITEM_FETCH_ERROR`` emitted
        """
        playlists: List[Playlist] = []

        for summary in summaries:
            check_cancelled(self.cancel_event)
            emit(on_event, ZestingEvent.start_item_fetch(summary))
            try:
                playlist = self._hydrate(summary, on_event)
            except (AuthenticationError, ZestCancelled):
                raise
            except Exception as e:
                logger.error(f"Skipping playlist {summary.title!r}: {e}")
                emit(on_event, ZestingEvent.item_fetch_error(summary, e))
                continue

            playlists.append(playlist)
            emit(on_event, ZestingEvent.finish_item_fetch(summary))

        failed = len(summaries) - len(playlists)
        logger.info(
            f"Hydrated {len(playlists)} of {len(summaries)} playlists"
            + (f" ({failed} failed)" if failed else "")
        )
        return playlists

    def _hydrate(self, summary: PlaylistSummary, on_event: Optional[EventSink]) -> Playlist:
        try:
            data = self.retry_policy.call(
                lambda: self.client.fetch_playlist(summary.id),
                on_event,
                self.cancel_event,
            )
        except (AuthenticationError, ZestCancelled):
            raise
        except Exception as e:
            raise PlaylistFetchError(
                f"Could not fetch playlist {summary.title!r}: {e}"
            ) from e

        try:
            return self._complete(data, on_event)
        except (AuthenticationError, ZestCancelled):
            raise
        except Exception as e:
            raise PlaylistCompletionError(
                f"Could not complete playlist {summary.title!r}: {e}"
            ) from e

    def _complete(self, data: Dict[str, Any], on_event: Optional[EventSink]) -> Playlist:
        """
        Build the full playlist, resolving track stubs.

        The service returns only the first few tracks of a playlist in full;
        the rest are stubs carrying just an id.
        """
        if not isinstance(data, dict) or "id" not in data or "title" not in data:
            raise MalformedResponseError("Playlist record is missing id or title")
        entries = data.get("tracks") or []
        if not isinstance(entries, list):
            raise MalformedResponseError("Playlist tracks is not a list")

        resolved: Dict[Any, Track] = {}
        stub_ids = []
        for entry in entries:
            if not isinstance(entry, dict) or "id" not in entry:
                raise MalformedResponseError("Playlist track entry has no id")
            if Track.is_stub(entry):
                stub_ids.append(entry["id"])
            else:
                resolved[entry["id"]] = Track.from_api(entry)

        for start in range(0, len(stub_ids), TRACK_BATCH_SIZE):
            batch = stub_ids[start:start + TRACK_BATCH_SIZE]
            tracks = self.retry_policy.call(
                lambda: self.client.fetch_tracks(batch),
                on_event,
                self.cancel_event,
            )
            for track in tracks:
                resolved[track.id] = track

        ordered = []
        for entry in entries:
            track = resolved.get(entry["id"])
            if track is None:
                logger.warning(
                    f"Track {entry['id']} in playlist {data['title']!r} is no longer available"
                )
                continue
            ordered.append(track)

        return Playlist(
            id=data["id"],
            title=data["title"],
            tracks=ordered,
            permalink_url=data.get("permalink_url"),
        )
