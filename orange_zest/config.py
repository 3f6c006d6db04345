"""
Configuration models and loader.
"""

import os
from pathlib import Path
from typing import Literal, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError

from orange_zest.exceptions import ConfigError
from orange_zest.models import Credentials

OAUTH_TOKEN_ENV = "ZEST_OAUTH_TOKEN"
CLIENT_ID_ENV = "ZEST_CLIENT_ID"


class CredentialSettings(BaseModel):
    """Credentials from the config file; either may be left to env vars or flags."""

    oauth_token: Optional[str] = None
    client_id: Optional[str] = None


class ArchiveSettings(BaseModel):
    """Archive run configuration settings."""

    output_dir: str = "soundcloud-archive"
    likes_file: str = "likes.json"
    playlists_file: str = "playlists.json"
    likes_audio_dir: str = "likes"
    playlists_audio_dir: str = "playlists"
    limit: Optional[int] = Field(default=None, ge=0)  # Tracks per download run
    threads: int = Field(default=1, ge=1)
    requests_per_window: int = Field(default=2, ge=1)  # Only used when threads > 1
    rate_window_seconds: float = Field(default=1.0, gt=0)
    server_error_delay: float = Field(default=30.0, ge=0)
    max_server_errors: int = Field(default=10, ge=0)
    pacing_delay: float = Field(default=2.0, ge=0)
    request_timeout: float = Field(default=30.0, gt=0)
    chunk_size: int = Field(default=65536, gt=0)
    cache_max_size: int = 1000  # Maximum cached entries
    cache_ttl: int = 3600  # Cache TTL in seconds (1 hour)
    embed_metadata: bool = True


class ZestConfig(BaseModel):
    """Main configuration model."""

    version: Literal["1.0"] = "1.0"
    credentials: CredentialSettings = Field(default_factory=CredentialSettings)
    archive: ArchiveSettings = Field(default_factory=ArchiveSettings)

    @classmethod
    def from_yaml(cls, path: str) -> "ZestConfig":
        """
        Load and validate configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            ZestConfig instance

        Raises:
            ConfigError: If file not found or invalid
        """
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigError(f"Configuration file not found: {path}")

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigError(f"Error parsing YAML file: {e}") from e

        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError(f"Configuration must be a mapping: {path}")

        # YAML reads an unquoted 1.0 as a float
        version = data.get("version", "1.0")
        if str(version) != "1.0":
            raise ConfigError(f"Invalid version: {version}. Expected 1.0")
        data["version"] = "1.0"

        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid configuration: {e}") from e


def load_config(config_path: Optional[str] = None) -> ZestConfig:
    """
    Load configuration from YAML file, or defaults when no path is given.

    Args:
        config_path: Path to configuration file

    Returns:
        ZestConfig instance
    """
    if config_path is None:
        return ZestConfig()
    return ZestConfig.from_yaml(config_path)


def resolve_credentials(
    settings: CredentialSettings,
    oauth_token: Optional[str] = None,
    client_id: Optional[str] = None,
) -> Optional[Credentials]:
    """
    Combine credential sources: explicit values, then config, then environment.

    Returns:
        Credentials, or None if either part is still missing
    """
    token = oauth_token or settings.oauth_token or os.getenv(OAUTH_TOKEN_ENV)
    cid = client_id or settings.client_id or os.getenv(CLIENT_ID_ENV)
    if not token or not cid:
        return None
    return Credentials(oauth_token=token, client_id=cid)
