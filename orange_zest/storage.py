"""
On-disk archive: JSON metadata files and per-track audio files.
"""

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Callable, Iterable, List, Optional

from orange_zest.exceptions import (
    InputFileNotFoundError,
    MetadataError,
    StorageError,
)
from orange_zest.models import Playlist, Track

logger = logging.getLogger(__name__)

PART_SUFFIX = ".part"


def sanitize(text: str) -> str:
    """Sanitize string for filename."""
    text = re.sub(r'[<>:"/\\|?*\x00-\x1f]', "", text)
    text = text.strip(". ")
    return text or "untitled"


def track_filename(track: Track) -> str:
    """``<artist> - <title> [<id>].<ext>``; the id keeps same-named tracks apart."""
    transcoding = track.preferred_transcoding()
    ext = transcoding.extension if transcoding else "mp3"
    name = sanitize(track.title)
    if track.username:
        name = f"{sanitize(track.username)} - {name}"
    return f"{name} [{track.id}].{ext}"


def save_records(path: Path, records: Iterable[Any]) -> None:
    """
    Save records to a JSON file.

    Args:
        path: Destination file
        records: Objects with ``to_dict()``

    Raises:
        StorageError: If the file cannot be written
    """
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump([r.to_dict() for r in records], f, indent=2, ensure_ascii=False)
    except OSError as e:
        raise StorageError(f"Cannot write {path}: {e}") from e
    logger.info(f"Saved metadata to {path}")


def _load_records(path: Path, from_dict: Callable[[dict], Any]) -> List[Any]:
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError:
        raise InputFileNotFoundError(path) from None
    except json.JSONDecodeError as e:
        raise StorageError(f"Invalid JSON in {path}: {e}") from e
    except OSError as e:
        raise StorageError(f"Error reading {path}: {e}") from e

    if not isinstance(data, list):
        raise StorageError(f"Expected a list of records in {path}")
    try:
        return [from_dict(entry) for entry in data]
    except (ValueError, KeyError, TypeError) as e:
        raise StorageError(f"Invalid record in {path}: {e}") from e


def load_tracks(path: Path) -> List[Track]:
    """Load tracks saved by ``save_records``."""
    return _load_records(path, Track.from_dict)


def load_playlists(path: Path) -> List[Playlist]:
    """Load playlists saved by ``save_records``."""
    return _load_records(path, Playlist.from_dict)


class FileSink:
    """
    Writable sink for one track.

    Bytes go to a uniquely named ``.part`` file next to the destination, which
    replaces the destination only when the sink closes without an error. Two
    sinks for the same destination never share a temporary file. A failed
    copy removes its partial file and leaves any existing file untouched.
    """

    def __init__(self, path: Path, on_commit: Optional[Callable[[Path], None]] = None):
        self.path = Path(path)
        self.part_path: Optional[Path] = None
        self.on_commit = on_commit
        self._file = None

    def __enter__(self) -> "FileSink":
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, part_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=PART_SUFFIX
        )
        self.part_path = Path(part_path)
        self._file = os.fdopen(fd, "wb")
        return self

    def write(self, data: bytes) -> int:
        return self._file.write(data)

    def __exit__(self, exc_type, exc, tb) -> None:
        self._file.close()
        if exc_type is not None:
            self.part_path.unlink(missing_ok=True)
            return
        try:
            os.replace(self.part_path, self.path)
        except OSError:
            self.part_path.unlink(missing_ok=True)
            raise
        logger.debug(f"Wrote {self.path}")
        if self.on_commit:
            self.on_commit(self.path)


class AudioOutput:
    """
    Maps tracks to files under the archive root.

    Likes go to ``<root>/<likes_dir>/`` and playlist tracks to
    ``<root>/<playlists_dir>/<playlist title>/``.
    """

    def __init__(
        self,
        root: Path,
        likes_dir: str = "likes",
        playlists_dir: str = "playlists",
        embedder=None,
    ):
        self.root = Path(root)
        self.likes_dir = likes_dir
        self.playlists_dir = playlists_dir
        self.embedder = embedder

    def prepare(self) -> None:
        """
        Make sure the archive root exists.

        Raises:
            StorageError: If the root cannot be created
        """
        try:
            self.root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageError(f"Cannot create output directory {self.root}: {e}") from e

    def path_for(self, track: Track, playlist: Optional[Playlist] = None) -> Path:
        if playlist is None:
            directory = self.root / self.likes_dir
        else:
            directory = self.root / self.playlists_dir / sanitize(playlist.title)
        return directory / track_filename(track)

    def __call__(self, track: Track, playlist: Optional[Playlist] = None) -> FileSink:
        on_commit = None
        if self.embedder is not None:
            def on_commit(path: Path) -> None:
                try:
                    self.embedder.embed(path, track, playlist)
                except MetadataError as e:
                    logger.warning(f"Could not tag {path}: {e}")

        return FileSink(self.path_for(track, playlist), on_commit=on_commit)
