"""
Metadata embedding using mutagen.
"""

import logging
from pathlib import Path
from typing import Optional

from mutagen import File, MutagenError
from mutagen.id3 import ID3, TALB, TIT2, TPE1, WOAS, ID3NoHeaderError

from orange_zest.exceptions import MetadataError
from orange_zest.models import Playlist, Track

logger = logging.getLogger(__name__)


class MetadataEmbedder:
    """Writes title, artist, album and source URL tags into downloaded files."""

    def embed(self, file_path: Path, track: Track, playlist: Optional[Playlist] = None) -> None:
        """
        Embed metadata into audio file.

        Args:
            file_path: Path to audio file
            track: Track the file was downloaded for
            playlist: Owning playlist, used as the album tag
        """
        if not file_path.exists():
            raise MetadataError(f"File not found: {file_path}")

        album = playlist.title if playlist else None
        file_ext = file_path.suffix[1:].lower()
        try:
            if file_ext == "mp3":
                self._embed_mp3(file_path, track, album)
            else:
                self._embed_easy(file_path, track, album)
        except (MutagenError, OSError) as e:
            raise MetadataError(f"Failed to embed metadata: {e}") from e

    def _embed_mp3(self, file_path: Path, track: Track, album: Optional[str]) -> None:
        try:
            tags = ID3(str(file_path))
        except ID3NoHeaderError:
            tags = ID3()

        tags["TIT2"] = TIT2(encoding=3, text=track.title)
        if track.username:
            tags["TPE1"] = TPE1(encoding=3, text=track.username)
        if album:
            tags["TALB"] = TALB(encoding=3, text=album)
        if track.permalink_url:
            tags["WOAS"] = WOAS(url=track.permalink_url)

        tags.save(str(file_path))

    def _embed_easy(self, file_path: Path, track: Track, album: Optional[str]) -> None:
        audio = File(str(file_path), easy=True)
        if audio is None:
            logger.warning(f"Unsupported format for metadata: {file_path.suffix}")
            return
        if audio.tags is None:
            audio.add_tags()

        audio["title"] = track.title
        if track.username:
            audio["artist"] = track.username
        if album:
            audio["album"] = album
        audio.save()
