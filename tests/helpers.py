"""
Test helper functions and utilities.
"""
from typing import Any, Dict, List, Optional

from orange_zest.models import Playlist, PlaylistSummary, Track, Transcoding


PROGRESSIVE_MP3 = {
    "url": "https://api-v2.soundcloud.com/media/soundcloud:tracks:1/abc/stream/progressive",
    "preset": "mp3_0_0",
    "snipped": False,
    "format": {"protocol": "progressive", "mime_type": "audio/mpeg"},
}

HLS_OPUS = {
    "url": "https://api-v2.soundcloud.com/media/soundcloud:tracks:1/abc/stream/hls",
    "preset": "opus_0_0",
    "snipped": False,
    "format": {"protocol": "hls", "mime_type": 'audio/ogg; codecs="opus"'},
}


def create_track_data(track_id: int = 1, title: str = "Windowlicker", **kwargs) -> Dict[str, Any]:
    """Create an API track object with optional overrides."""
    data = {
        "id": track_id,
        "kind": "track",
        "title": title,
        "permalink_url": f"https://soundcloud.com/aphex/track-{track_id}",
        "full_duration": 366000,
        "artwork_url": None,
        "created_at": "2019-04-01T10:00:00Z",
        "track_authorization": "auth-token",
        "user": {"id": 99, "username": "Aphex Twin"},
        "media": {"transcodings": [HLS_OPUS, PROGRESSIVE_MP3]},
    }
    data.update(kwargs)
    return data


def create_stub_data(track_id: int) -> Dict[str, Any]:
    """Track stub as found past the first few entries of a playlist record."""
    return {"id": track_id, "kind": "track", "policy": "ALLOW"}


def create_playlist_data(playlist_id: int = 10, title: str = "Night drive", tracks=None) -> Dict[str, Any]:
    return {
        "id": playlist_id,
        "kind": "playlist",
        "title": title,
        "permalink_url": f"https://soundcloud.com/me/sets/{playlist_id}",
        "track_count": len(tracks or []),
        "tracks": tracks or [],
    }


def create_track(track_id: int = 1, title: Optional[str] = None, **kwargs) -> Track:
    """Create a Track record with one progressive MP3 transcoding."""
    defaults = {
        "id": track_id,
        "title": title or f"Track {track_id}",
        "username": "Artist",
        "permalink_url": f"https://soundcloud.com/artist/track-{track_id}",
        "transcodings": [
            Transcoding(
                url=f"https://api.example/media/{track_id}",
                preset="mp3_0_0",
                protocol="progressive",
                mime_type="audio/mpeg",
            )
        ],
    }
    defaults.update(kwargs)
    return Track(**defaults)


def create_playlist(playlist_id: int = 10, title: Optional[str] = None, tracks: Optional[List[Track]] = None) -> Playlist:
    return Playlist(id=playlist_id, title=title or f"Playlist {playlist_id}", tracks=tracks or [])


def create_summary(playlist_id: int = 10, title: Optional[str] = None) -> PlaylistSummary:
    return PlaylistSummary(id=playlist_id, title=title or f"Playlist {playlist_id}")


class FakeStream:
    """Stands in for MediaStream: yields fixed chunks, optionally failing midway."""

    def __init__(self, chunks: List[bytes], error: Optional[Exception] = None):
        self.chunks = chunks
        self.error = error
        self.closed = False

    def iter_chunks(self, chunk_size: int):
        for chunk in self.chunks:
            yield chunk
        if self.error is not None:
            raise self.error

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class MemoryOutput:
    """
    In-memory open_output: keeps committed bytes per (playlist id, track id).

    A sink that exits with an error discards what it buffered, like the
    file sink does.
    """

    def __init__(self, fail_for: Optional[set] = None):
        self.files: Dict[Any, bytes] = {}
        self.opened: List[Any] = []
        self.fail_for = fail_for or set()

    def __call__(self, track: Track, playlist: Optional[Playlist] = None):
        if track.id in self.fail_for:
            raise PermissionError(f"read-only location for {track.id}")
        key = (playlist.id if playlist else None, track.id)
        self.opened.append(key)
        return _MemorySink(self.files, key)


class _MemorySink:
    def __init__(self, files, key):
        self.files = files
        self.key = key
        self.buffer = bytearray()

    def __enter__(self):
        return self

    def write(self, data: bytes) -> int:
        self.buffer.extend(data)
        return len(data)

    def __exit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.files[self.key] = bytes(self.buffer)
