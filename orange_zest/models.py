"""
Data models for orange-zest.

Records are plain dataclasses with no back-references. ``to_dict``/``from_dict``
use stable field names so metadata captured by one run can be fed to a later
download-only run.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from orange_zest.exceptions import MalformedResponseError

# Preferred container per MIME type, most preferred first
MIME_EXTENSIONS = {
    "audio/mpeg": "mp3",
    "audio/mp4": "m4a",
    "audio/ogg": "ogg",
}


class CollectionKind(str, Enum):
    """Paginated collections of the signed-in user."""

    LIKES = "likes"  # Liked tracks
    PLAYLISTS = "playlists"  # Liked and owned playlists (summaries)


@dataclass(frozen=True)
class Credentials:
    """Session token and application identifier, immutable for the run."""

    oauth_token: str = field(repr=False)
    client_id: str


@dataclass
class Profile:
    """User-level counts used to size progress reporting."""

    user_id: int
    username: str = ""
    likes_count: int = 0
    playlist_count: int = 0
    private_playlists_count: int = 0

    @property
    def total_playlist_count(self) -> int:
        return self.playlist_count + self.private_playlists_count

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Profile":
        """Build a profile from a ``/me`` response."""
        if not isinstance(data, dict) or "id" not in data:
            raise MalformedResponseError("Profile response has no user id")
        return cls(
            user_id=data["id"],
            username=data.get("username") or "",
            likes_count=data.get("likes_count") or 0,
            playlist_count=data.get("playlist_count") or 0,
            private_playlists_count=data.get("private_playlists_count") or 0,
        )


@dataclass
class Page:
    """One server response page; ``next_cursor`` is None on the last page."""

    items: List[Any]
    next_cursor: Optional[str] = None


@dataclass(frozen=True)
class Transcoding:
    """Media transcoding descriptor needed to open a download stream."""

    url: str
    preset: str = ""
    protocol: str = ""  # "progressive" or "hls"
    mime_type: str = ""
    snipped: bool = False  # 30 second preview only

    @property
    def is_progressive(self) -> bool:
        return self.protocol == "progressive"

    @property
    def extension(self) -> str:
        base_mime = self.mime_type.split(";", 1)[0].strip()
        return MIME_EXTENSIONS.get(base_mime, "mp3")

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Transcoding":
        fmt = data.get("format") or {}
        return cls(
            url=data["url"],
            preset=data.get("preset") or "",
            protocol=fmt.get("protocol") or "",
            mime_type=fmt.get("mime_type") or "",
            snipped=bool(data.get("snipped", False)),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "preset": self.preset,
            "protocol": self.protocol,
            "mime_type": self.mime_type,
            "snipped": self.snipped,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Transcoding":
        return cls(
            url=data["url"],
            preset=data.get("preset", ""),
            protocol=data.get("protocol", ""),
            mime_type=data.get("mime_type", ""),
            snipped=data.get("snipped", False),
        )


@dataclass
class Track:
    """Track metadata model."""

    id: int
    title: str
    username: str = ""
    permalink_url: Optional[str] = None
    duration_ms: int = 0
    artwork_url: Optional[str] = None
    created_at: Optional[str] = None
    track_authorization: Optional[str] = None
    transcodings: List[Transcoding] = field(default_factory=list)

    @staticmethod
    def is_stub(data: Dict[str, Any]) -> bool:
        """Playlist records only carry the first few tracks in full."""
        return "title" not in data

    def preferred_transcoding(self) -> Optional[Transcoding]:
        """
        Pick the transcoding to download.

        Only full-length progressive streams can be copied straight to a
        file; among those MP3 wins, then the order the service listed them.

        Returns:
            Transcoding or None if the track has no playable media
        """
        candidates = [
            t for t in self.transcodings if t.is_progressive and not t.snipped
        ]
        if not candidates:
            return None
        ranking = list(MIME_EXTENSIONS)

        def rank(transcoding: Transcoding) -> int:
            base_mime = transcoding.mime_type.split(";", 1)[0].strip()
            return ranking.index(base_mime) if base_mime in ranking else len(ranking)

        # min() is stable, so ties keep the service's order
        return min(candidates, key=rank)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "Track":
        """
        Convert an API track object to a Track.

        Args:
            data: Track object from the API

        Returns:
            Track instance

        Raises:
            MalformedResponseError: If required fields are missing
        """
        if not isinstance(data, dict):
            raise MalformedResponseError(f"Expected track object, got {type(data).__name__}")
        try:
            track_id = data["id"]
            title = data["title"]
        except KeyError as e:
            raise MalformedResponseError(f"Track is missing field {e}") from e

        media = data.get("media") or {}
        try:
            transcodings = [
                Transcoding.from_api(t) for t in media.get("transcodings") or []
            ]
        except (KeyError, TypeError, AttributeError) as e:
            raise MalformedResponseError(
                f"Track {track_id} has invalid transcodings: {e}"
            ) from e

        user = data.get("user") or {}
        return cls(
            id=track_id,
            title=title,
            username=user.get("username") or "",
            permalink_url=data.get("permalink_url"),
            duration_ms=data.get("full_duration") or data.get("duration") or 0,
            artwork_url=data.get("artwork_url"),
            created_at=data.get("created_at"),
            track_authorization=data.get("track_authorization"),
            transcodings=transcodings,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "username": self.username,
            "permalink_url": self.permalink_url,
            "duration_ms": self.duration_ms,
            "artwork_url": self.artwork_url,
            "created_at": self.created_at,
            "track_authorization": self.track_authorization,
            "transcodings": [t.to_dict() for t in self.transcodings],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Track":
        """
        Create track from its stored dictionary form.

        Raises:
            ValueError: If required fields are missing
        """
        for required in ("id", "title"):
            if required not in data:
                raise ValueError(f"Missing required field: {required}")
        return cls(
            id=data["id"],
            title=data["title"],
            username=data.get("username", ""),
            permalink_url=data.get("permalink_url"),
            duration_ms=data.get("duration_ms", 0),
            artwork_url=data.get("artwork_url"),
            created_at=data.get("created_at"),
            track_authorization=data.get("track_authorization"),
            transcodings=[
                Transcoding.from_dict(t) for t in data.get("transcodings", [])
            ],
        )


@dataclass
class PlaylistSummary:
    """Minimal playlist identity, enough to request the full record."""

    id: int
    title: str
    track_count: int = 0
    permalink_url: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "PlaylistSummary":
        if not isinstance(data, dict):
            raise MalformedResponseError(
                f"Expected playlist object, got {type(data).__name__}"
            )
        try:
            return cls(
                id=data["id"],
                title=data["title"],
                track_count=data.get("track_count") or 0,
                permalink_url=data.get("permalink_url"),
            )
        except KeyError as e:
            raise MalformedResponseError(f"Playlist is missing field {e}") from e


@dataclass
class Playlist:
    """Full playlist record. An empty ``tracks`` list is a valid playlist."""

    id: int
    title: str
    tracks: List[Track] = field(default_factory=list)
    permalink_url: Optional[str] = None

    @property
    def summary(self) -> PlaylistSummary:
        return PlaylistSummary(
            id=self.id,
            title=self.title,
            track_count=len(self.tracks),
            permalink_url=self.permalink_url,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "permalink_url": self.permalink_url,
            "tracks": [t.to_dict() for t in self.tracks],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Playlist":
        for required in ("id", "title"):
            if required not in data:
                raise ValueError(f"Missing required field: {required}")
        return cls(
            id=data["id"],
            title=data["title"],
            permalink_url=data.get("permalink_url"),
            tracks=[Track.from_dict(t) for t in data.get("tracks", [])],
        )
