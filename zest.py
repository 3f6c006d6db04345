#!/usr/bin/env python3
"""
Archive SoundCloud likes and playlists.

USAGE:
    python3 zest.py [-c CONFIG] [OPTIONS]

SYNOPSIS:
    Fetches the signed-in user's liked tracks and playlists, saves their
    metadata as JSON, then downloads the audio of every track into the
    output directory. With --audio-only, metadata saved by an earlier run
    is reused and nothing but audio is fetched.
"""

import argparse
import getpass
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

from orange_zest.config import (
    CLIENT_ID_ENV,
    OAUTH_TOKEN_ENV,
    ConfigError,
    ZestConfig,
    load_config,
    resolve_credentials,
)
from orange_zest.downloader import DownloadSummary
from orange_zest.events import EventKind, ZestingEvent
from orange_zest.exceptions import (
    AuthenticationError,
    InputFileNotFoundError,
    ZestCancelled,
    ZestError,
)
from orange_zest.metadata import MetadataEmbedder
from orange_zest.models import Credentials, Playlist, Track
from orange_zest.storage import AudioOutput, load_playlists, load_tracks, save_records
from orange_zest.zester import Zester

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def setup_logging(log_level: str) -> None:
    """Configure logging level from the command line."""
    level = getattr(logging, log_level.upper(), logging.INFO)
    logging.getLogger().setLevel(level)
    logger.setLevel(level)


class EventLogger:
    """Logs run events with running counts against an expected total."""

    def __init__(self, label: str, expected_total: Optional[int] = None):
        self.label = label
        self.expected_total = expected_total
        self.count = 0

    def __call__(self, event: ZestingEvent) -> None:
        prefix = f"[{event.playlist.title}] " if event.playlist else ""

        if event.kind == EventKind.MORE_ITEMS_DOWNLOADED:
            self.count += event.count
            total = f"/{self.expected_total}" if self.expected_total else ""
            logger.info(f"{self.label}: {self.count}{total} fetched")
        elif event.kind == EventKind.NUM_TRACKS_TO_DOWNLOAD:
            self.expected_total = event.count
            self.count = 0
            logger.info(f"{prefix}{self.label}: {event.count} tracks to download")
        elif event.kind == EventKind.PAUSED_AFTER_SERVER_ERROR:
            logger.warning(f"{prefix}Server error, pausing for {event.delay_seconds}s")
        elif event.kind == EventKind.FINISH_ITEM_FETCH:
            self.count += 1
            logger.info(f"{self.label}: {self.count}/{self.expected_total} {event.subject.title}")
        elif event.kind == EventKind.FINISH_TRACK_DOWNLOAD:
            self.count += 1
            logger.info(f"{prefix}{self.count}/{self.expected_total} {event.subject.title}")
        elif event.kind == EventKind.START_PLAYLIST_DOWNLOAD:
            logger.info(f"Playlist: {event.playlist.title}")
        elif event.is_error:
            self.count += 1
            logger.error(f"{prefix}Skipped {event.subject.title}: {event.error}")


def install_cancel_handlers(cancel_event: threading.Event) -> None:
    """Turn SIGINT/SIGTERM into a cancellation request checked between steps."""

    def signal_handler(signum, frame):
        logger.warning(f"Received signal {signum}, stopping after the current step...")
        cancel_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)


def get_credentials(config: ZestConfig, args: argparse.Namespace) -> Credentials:
    """Resolve credentials, prompting for whatever is still missing."""
    credentials = resolve_credentials(config.credentials, args.oauth_token, args.client_id)
    if credentials is not None:
        return credentials

    token = (
        args.oauth_token
        or config.credentials.oauth_token
        or os.getenv(OAUTH_TOKEN_ENV)
        or getpass.getpass("OAuth token: ")
    )
    client_id = (
        args.client_id
        or config.credentials.client_id
        or os.getenv(CLIENT_ID_ENV)
        or input("Client ID: ").strip()
    )
    credentials = resolve_credentials(config.credentials, token, client_id)
    if credentials is None:
        raise ConfigError("Both an OAuth token and a client id are required")
    return credentials


def fetch_metadata(zester: Zester, config: ZestConfig, what: str):
    """Fetch and save likes and playlists; returns (likes, playlists)."""
    archive = config.archive
    output_dir = Path(archive.output_dir)
    profile = zester.profile()
    logger.info(
        f"Signed in as {profile.username}: {profile.likes_count} likes, "
        f"{profile.total_playlist_count} playlists"
    )

    likes: List[Track] = []
    playlists: List[Playlist] = []
    if what in ("likes", "all"):
        likes = zester.likes(EventLogger("Likes", profile.likes_count))
        save_records(output_dir / archive.likes_file, likes)
    if what in ("playlists", "all"):
        playlists = zester.playlists(
            EventLogger("Playlist listing", profile.total_playlist_count),
            EventLogger("Playlists", profile.total_playlist_count),
        )
        save_records(output_dir / archive.playlists_file, playlists)
    return likes, playlists


def load_metadata(config: ZestConfig, what: str):
    """Load likes and playlists saved by an earlier run."""
    archive = config.archive
    output_dir = Path(archive.output_dir)
    likes = load_tracks(output_dir / archive.likes_file) if what in ("likes", "all") else []
    playlists = (
        load_playlists(output_dir / archive.playlists_file)
        if what in ("playlists", "all")
        else []
    )
    logger.info(f"Loaded {len(likes)} likes and {len(playlists)} playlists from {output_dir}")
    return likes, playlists


def download_audio(zester: Zester, config: ZestConfig, likes, playlists) -> DownloadSummary:
    """Download audio for everything loaded."""
    archive = config.archive
    output = AudioOutput(
        Path(archive.output_dir),
        likes_dir=archive.likes_audio_dir,
        playlists_dir=archive.playlists_audio_dir,
        embedder=MetadataEmbedder() if archive.embed_metadata else None,
    )
    output.prepare()

    summary = DownloadSummary()
    if likes:
        summary.merge(zester.download_likes_audio(likes, output, EventLogger("Likes audio")))
    if playlists:
        summary.merge(
            zester.download_playlists_audio(playlists, output, EventLogger("Playlist audio"))
        )
    return summary


def print_summary(summary: DownloadSummary) -> None:
    """Print download summary."""
    print("\n" + "=" * 80)
    print("DOWNLOAD SUMMARY")
    print("=" * 80)
    print(f"Downloaded: {len(summary.downloaded)}")
    print(f"Skipped: {len(summary.failed)}")
    if summary.failed:
        print("-" * 80)
        for item in summary.failed:
            where = f"[{item.playlist.title}] " if item.playlist else ""
            print(f"{where}{item.track.title}: {item.reason}")
    print("=" * 80)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="zest.py",
        description="Archive SoundCloud likes and playlists, metadata and audio.",
    )
    parser.add_argument("-c", "--config", help="Path to a YAML configuration file.")
    parser.add_argument("--oauth-token", help="SoundCloud OAuth token.")
    parser.add_argument("--client-id", help="SoundCloud client id.")
    parser.add_argument("-o", "--output", help="Output directory (overrides config).")
    parser.add_argument(
        "--what",
        choices=["likes", "playlists", "all"],
        default="all",
        help="Which collections to archive.",
    )
    parser.add_argument(
        "--limit",
        type=int,
        help="Only download the N most recent tracks of each run (metadata is always complete).",
    )
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--metadata-only", action="store_true", help="Skip audio downloads.")
    mode.add_argument(
        "--audio-only",
        action="store_true",
        help="Download audio for metadata saved by an earlier run.",
    )
    parser.add_argument("--log-level", default="INFO", help="Logging level.")
    return parser


def main() -> None:
    """Main entry point."""
    args = build_parser().parse_args()
    setup_logging(args.log_level)

    try:
        config = load_config(args.config)
        if args.output:
            config.archive.output_dir = args.output
        if args.limit is not None:
            if args.limit < 0:
                raise ConfigError("--limit must not be negative")
            config.archive.limit = args.limit
        credentials = get_credentials(config, args)
    except ConfigError as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    cancel_event = threading.Event()
    install_cancel_handlers(cancel_event)
    zester = Zester(credentials, config.archive, cancel_event=cancel_event)

    try:
        if args.audio_only:
            likes, playlists = load_metadata(config, args.what)
        else:
            likes, playlists = fetch_metadata(zester, config, args.what)

        if not args.metadata_only:
            summary = download_audio(zester, config, likes, playlists)
            print_summary(summary)
    except ZestCancelled:
        logger.warning("Archive run cancelled")
        sys.exit(130)
    except AuthenticationError as e:
        logger.error(f"Authentication failed: {e}")
        sys.exit(1)
    except InputFileNotFoundError as e:
        logger.error(f"{e}. Run without --audio-only first to fetch metadata.")
        sys.exit(1)
    except ZestError as e:
        logger.error(f"Archive run failed: {e}")
        sys.exit(1)
    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
