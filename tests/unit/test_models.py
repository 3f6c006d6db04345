"""
Unit tests for data models.
"""
import pytest

from orange_zest.exceptions import MalformedResponseError
from orange_zest.models import (
    CollectionKind,
    Credentials,
    Playlist,
    PlaylistSummary,
    Profile,
    Track,
    Transcoding,
)
from tests.helpers import (
    HLS_OPUS,
    PROGRESSIVE_MP3,
    create_playlist,
    create_stub_data,
    create_track,
    create_track_data,
)


class TestCredentials:
    """Test Credentials."""

    def test_token_hidden_from_repr(self):
        """Test that the session token never appears in logs via repr."""
        creds = Credentials(oauth_token="secret-token", client_id="cid")
        assert "secret-token" not in repr(creds)
        assert "cid" in repr(creds)

    def test_immutable(self):
        """Test that credentials cannot be changed during a run."""
        creds = Credentials(oauth_token="t", client_id="c")
        with pytest.raises(AttributeError):
            creds.client_id = "other"


class TestProfile:
    """Test Profile."""

    def test_from_api(self):
        """Test building a profile from a /me response."""
        profile = Profile.from_api({
            "id": 42,
            "username": "zester",
            "likes_count": 120,
            "playlist_count": 3,
            "private_playlists_count": 2,
        })
        assert profile.user_id == 42
        assert profile.username == "zester"
        assert profile.likes_count == 120
        assert profile.total_playlist_count == 5

    def test_from_api_null_counts(self):
        """Test that null counts are treated as zero."""
        profile = Profile.from_api({"id": 1, "likes_count": None})
        assert profile.likes_count == 0
        assert profile.total_playlist_count == 0

    def test_from_api_missing_id(self):
        """Test that a response without id is malformed."""
        with pytest.raises(MalformedResponseError):
            Profile.from_api({"username": "nobody"})


class TestTranscoding:
    """Test Transcoding."""

    def test_from_api(self):
        """Test parsing a transcoding descriptor."""
        transcoding = Transcoding.from_api(PROGRESSIVE_MP3)
        assert transcoding.url == PROGRESSIVE_MP3["url"]
        assert transcoding.protocol == "progressive"
        assert transcoding.is_progressive
        assert transcoding.extension == "mp3"

    def test_extension_ignores_codec_parameters(self):
        """Test that MIME parameters do not affect the extension."""
        transcoding = Transcoding.from_api(HLS_OPUS)
        assert transcoding.extension == "ogg"
        assert not transcoding.is_progressive

    def test_unknown_mime_defaults_to_mp3(self):
        assert Transcoding(url="u", mime_type="audio/x-unknown").extension == "mp3"


class TestTrack:
    """Test Track model."""

    def test_from_api(self):
        """Test converting an API track object."""
        track = Track.from_api(create_track_data(7, "Xtal"))
        assert track.id == 7
        assert track.title == "Xtal"
        assert track.username == "Aphex Twin"
        assert track.duration_ms == 366000
        assert track.track_authorization == "auth-token"
        assert len(track.transcodings) == 2

    def test_from_api_falls_back_to_duration(self):
        """Test that duration is used when full_duration is absent."""
        data = create_track_data(1)
        del data["full_duration"]
        data["duration"] = 30000
        assert Track.from_api(data).duration_ms == 30000

    def test_from_api_missing_title(self):
        """Test that a track without title is malformed."""
        with pytest.raises(MalformedResponseError, match="title"):
            Track.from_api({"id": 1})

    def test_from_api_not_a_dict(self):
        with pytest.raises(MalformedResponseError):
            Track.from_api(["not", "a", "track"])

    def test_from_api_invalid_transcodings(self):
        """Test that transcodings without url are malformed."""
        data = create_track_data(1, media={"transcodings": [{"preset": "mp3_0_0"}]})
        with pytest.raises(MalformedResponseError):
            Track.from_api(data)

    def test_is_stub(self):
        """Test recognizing stub entries from playlist records."""
        assert Track.is_stub(create_stub_data(5))
        assert not Track.is_stub(create_track_data(5))

    def test_preferred_transcoding_picks_progressive(self):
        """Test that HLS streams are passed over for progressive ones."""
        track = Track.from_api(create_track_data(1))
        chosen = track.preferred_transcoding()
        assert chosen is not None
        assert chosen.is_progressive
        assert chosen.mime_type == "audio/mpeg"

    def test_preferred_transcoding_ranks_mp3_first(self):
        """Test MIME ranking among progressive streams."""
        track = create_track(1, transcodings=[
            Transcoding(url="a", protocol="progressive", mime_type="audio/ogg"),
            Transcoding(url="b", protocol="progressive", mime_type="audio/mpeg"),
        ])
        assert track.preferred_transcoding().url == "b"

    def test_preferred_transcoding_skips_snippets(self):
        """Test that preview snippets are never chosen."""
        track = create_track(1, transcodings=[
            Transcoding(url="a", protocol="progressive", mime_type="audio/mpeg", snipped=True),
        ])
        assert track.preferred_transcoding() is None

    def test_preferred_transcoding_hls_only(self):
        track = Track.from_api(create_track_data(1, media={"transcodings": [HLS_OPUS]}))
        assert track.preferred_transcoding() is None

    def test_to_dict_from_dict(self):
        """Test that the stored form restores an equal track."""
        track = Track.from_api(create_track_data(3))
        assert Track.from_dict(track.to_dict()) == track

    def test_from_dict_missing_required(self):
        """Test from_dict with missing required fields."""
        with pytest.raises(ValueError, match="title"):
            Track.from_dict({"id": 1})


class TestPlaylist:
    """Test playlist models."""

    def test_summary_from_api(self):
        summary = PlaylistSummary.from_api({"id": 10, "title": "Set", "track_count": 4})
        assert summary.id == 10
        assert summary.track_count == 4

    def test_summary_from_api_missing_field(self):
        with pytest.raises(MalformedResponseError):
            PlaylistSummary.from_api({"id": 10})

    def test_summary_property(self):
        """Test deriving a summary from a full playlist."""
        playlist = create_playlist(3, "Dusk", [create_track(1), create_track(2)])
        assert playlist.summary == PlaylistSummary(id=3, title="Dusk", track_count=2)

    def test_to_dict_from_dict(self):
        playlist = create_playlist(3, "Dusk", [create_track(1), create_track(2)])
        restored = Playlist.from_dict(playlist.to_dict())
        assert restored == playlist
        assert [t.id for t in restored.tracks] == [1, 2]

    def test_from_dict_missing_required(self):
        with pytest.raises(ValueError, match="id"):
            Playlist.from_dict({"title": "No id"})


def test_collection_kind_values():
    assert CollectionKind("likes") is CollectionKind.LIKES
    assert CollectionKind.PLAYLISTS.value == "playlists"
