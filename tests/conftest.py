"""
Shared pytest fixtures for orange-zest tests.
"""
import tempfile
from pathlib import Path

import pytest

from orange_zest.config import ArchiveSettings
from orange_zest.models import Credentials
from orange_zest.retry import RetryPolicy


@pytest.fixture
def tmp_test_dir():
    """Create temporary directory for tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def credentials():
    """Test credentials (never sent anywhere)."""
    return Credentials(oauth_token="2-123456-test-token", client_id="test-client-id")


@pytest.fixture
def no_wait_policy():
    """Retry policy with zero pauses so tests run instantly."""
    return RetryPolicy(server_error_delay=0, max_server_errors=3, pacing_delay=0)


@pytest.fixture
def fast_settings(tmp_test_dir):
    """Archive settings with no waits, writing into the temp dir."""
    return ArchiveSettings(
        output_dir=str(tmp_test_dir / "archive"),
        server_error_delay=0,
        max_server_errors=3,
        pacing_delay=0,
        embed_metadata=False,
    )


@pytest.fixture
def recorded_events():
    """List collecting every event passed to the observer."""
    return []


@pytest.fixture
def on_event(recorded_events):
    return recorded_events.append
