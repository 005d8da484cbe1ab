"""
Shared fixtures for the resource tests.
"""
import pytest

from pimdecsync.config import Settings
from pimdecsync.tests.fixtures.mock_decsync_client import MockDecsyncClient, TEST_APP_ID, TEST_DECSYNC_DIR
from pimdecsync.tests.fixtures.recording_host import RecordingHost


@pytest.fixture
def settings():
    """Settings pointing at the mock DecSync directory."""
    return Settings(decsync_dir=TEST_DECSYNC_DIR)


@pytest.fixture
def mock_client():
    """Mock client with two contacts collections and one calendar."""
    client = MockDecsyncClient()
    client.add_collection("contacts", "alice", display_name="Alice's contacts")
    client.add_collection("contacts", "bob", display_name="Bob's contacts")
    client.add_collection("calendars", "work", display_name="Work")
    return client


@pytest.fixture
def host():
    return RecordingHost()


@pytest.fixture
def app_id():
    return TEST_APP_ID
