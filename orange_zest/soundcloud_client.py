"""
SoundCloud api-v2 client: the transport used by the paginator, hydrator
and downloader.
"""

import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import requests

from orange_zest.cache import TTLCache
from orange_zest.exceptions import (
    ApiError,
    AuthenticationError,
    MalformedResponseError,
    NoPlayableMediaError,
    TransientServerError,
)
from orange_zest.models import (
    CollectionKind,
    Credentials,
    Page,
    PlaylistSummary,
    Profile,
    Track,
)

logger = logging.getLogger(__name__)

API_BASE = "https://api-v2.soundcloud.com"
PAGE_SIZE = 200
REQUEST_TIMEOUT = 30
USER_AGENT = "orange-zest/0.1"

# Statuses the service uses for overload and maintenance
TRANSIENT_STATUSES = {429}

COLLECTION_PATHS = {
    CollectionKind.LIKES: "/users/{user_id}/track_likes",
    CollectionKind.PLAYLISTS: "/users/{user_id}/playlists/liked_and_owned",
}


class MediaStream:
    """Open HTTP body of one track's media."""

    def __init__(self, response: requests.Response):
        self.response = response

    def iter_chunks(self, chunk_size: int) -> Iterator[bytes]:
        """
        Yield the body in chunks.

        Raises:
            TransientServerError: If the connection breaks mid-body
        """
        try:
            for chunk in self.response.iter_content(chunk_size=chunk_size):
                if chunk:
                    yield chunk
        except (
            requests.exceptions.ChunkedEncodingError,
            requests.exceptions.ConnectionError,
            requests.exceptions.Timeout,
        ) as e:
            raise TransientServerError(f"Media stream interrupted: {e}") from e

    def close(self) -> None:
        self.response.close()

    def __enter__(self) -> "MediaStream":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


class SoundCloudClient:
    """Authenticated SoundCloud API client with caching."""

    def __init__(
        self,
        credentials: Credentials,
        timeout: float = REQUEST_TIMEOUT,
        cache_max_size: int = 1000,
        cache_ttl: int = 3600,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize with credentials and cache settings.

        Args:
            credentials: OAuth token and client id
            timeout: Per-request timeout in seconds
            cache_max_size: Maximum cache entries (LRU eviction)
            cache_ttl: Cache TTL in seconds (default: 1 hour)
            session: Optional preconfigured requests session
        """
        self.credentials = credentials
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "Authorization": f"OAuth {credentials.oauth_token}",
            "User-Agent": USER_AGENT,
            "Accept": "application/json",
        })
        self.cache = TTLCache(max_size=cache_max_size, ttl_seconds=cache_ttl)

    def _request(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        stream: bool = False,
    ) -> requests.Response:
        """
        Perform a GET and classify failures.

        Raises:
            TransientServerError: 5xx, 429 or network failure
            AuthenticationError: 401
            ApiError: Any other unsuccessful status
        """
        params = dict(params or {})
        if "client_id=" not in url:
            params["client_id"] = self.credentials.client_id

        logger.debug(f"GET {url}")
        try:
            response = self.session.get(url, params=params, timeout=self.timeout, stream=stream)
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            raise TransientServerError(f"Network error for {url}: {e}") from e
        except requests.exceptions.RequestException as e:
            raise ApiError(f"Request to {url} failed: {e}") from e

        status = response.status_code
        if status < 400:
            return response

        response.close()
        if status >= 500 or status in TRANSIENT_STATUSES:
            raise TransientServerError(f"Server error {status} for {url}", status_code=status)
        if status == 401:
            raise AuthenticationError(
                "SoundCloud rejected the credentials (401); check the OAuth token and client id",
                status_code=status,
            )
        raise ApiError(f"HTTP {status} for {url}", status_code=status)

    def _get_json(self, url: str, params: Optional[Dict[str, Any]] = None) -> Any:
        response = self._request(url, params)
        try:
            return response.json()
        except ValueError as e:
            raise MalformedResponseError(f"Invalid JSON from {url}: {e}") from e

    def _get_cached_or_fetch(self, cache_key: str, fetch_func: Callable[[], Any]) -> Any:
        """Get from cache or fetch and cache the result."""
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached
        result = fetch_func()
        self.cache.set(cache_key, result)
        return result

    def fetch_profile(self) -> Profile:
        """Get the signed-in user's profile (cached)."""
        return self._get_cached_or_fetch(
            "profile", lambda: Profile.from_api(self._get_json(f"{API_BASE}/me"))
        )

    def fetch_page(self, kind: CollectionKind, cursor: Optional[str] = None) -> Page:
        """
        Fetch one page of a collection.

        Args:
            kind: Collection to read
            cursor: ``next_href`` of the previous page, None for the first page

        Returns:
            Page of Track (likes) or PlaylistSummary (playlists) records
        """
        if cursor:
            data = self._get_json(cursor)
        else:
            path = COLLECTION_PATHS[kind].format(user_id=self.fetch_profile().user_id)
            data = self._get_json(
                f"{API_BASE}{path}",
                {"limit": PAGE_SIZE, "linked_partitioning": 1},
            )

        if not isinstance(data, dict) or not isinstance(data.get("collection"), list):
            raise MalformedResponseError(f"{kind.value} page has no collection")

        if kind == CollectionKind.LIKES:
            items = [self._parse_like(entry) for entry in data["collection"]]
        else:
            items = [self._parse_playlist_entry(entry) for entry in data["collection"]]
        return Page(items=items, next_cursor=data.get("next_href") or None)

    @staticmethod
    def _parse_like(entry: Dict[str, Any]) -> Track:
        if not isinstance(entry, dict) or "track" not in entry:
            raise MalformedResponseError("Like entry has no track")
        return Track.from_api(entry["track"])

    @staticmethod
    def _parse_playlist_entry(entry: Dict[str, Any]) -> PlaylistSummary:
        # Liked playlists are wrapped, owned ones may come bare
        if isinstance(entry, dict) and isinstance(entry.get("playlist"), dict):
            entry = entry["playlist"]
        return PlaylistSummary.from_api(entry)

    def fetch_playlist(self, playlist_id: int) -> Dict[str, Any]:
        """Get the raw full playlist record (tracks may be stubs)."""
        data = self._get_json(f"{API_BASE}/playlists/{playlist_id}")
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Playlist {playlist_id} response is not an object")
        return data

    def fetch_tracks(self, track_ids: List[int]) -> List[Track]:
        """
        Get full track records by id (cached).

        Ids the service does not return (deleted or private tracks) are
        absent from the result.
        """
        found = self.cache.get_many(f"track:{i}" for i in track_ids)
        missing = [i for i in track_ids if f"track:{i}" not in found]

        if missing:
            data = self._get_json(
                f"{API_BASE}/tracks", {"ids": ",".join(str(i) for i in missing)}
            )
            if not isinstance(data, list):
                raise MalformedResponseError("Track lookup response is not a list")
            for entry in data:
                track = Track.from_api(entry)
                self.cache.set(f"track:{track.id}", track)
                found[f"track:{track.id}"] = track

        return [found[f"track:{i}"] for i in track_ids if f"track:{i}" in found]

    def open_media_stream(self, track: Track) -> MediaStream:
        """
        Open the media body of a track.

        Raises:
            NoPlayableMediaError: If no full-length progressive stream exists
            TransientServerError: On server or network failure
        """
        transcoding = track.preferred_transcoding()
        if transcoding is None:
            raise NoPlayableMediaError(f"Track {track.title!r} has no downloadable stream")

        params = {}
        if track.track_authorization:
            params["track_authorization"] = track.track_authorization
        data = self._get_json(transcoding.url, params)
        if not isinstance(data, dict) or not data.get("url"):
            raise MalformedResponseError(f"No stream URL for track {track.id}")

        return MediaStream(self._request(data["url"], stream=True))
