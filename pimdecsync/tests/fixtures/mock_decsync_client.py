"""
Mock DecSync client for testing.
"""
from typing import Dict, List, Optional, Set, Tuple

from pimdecsync.decsync_client import DecsyncError
from pimdecsync.models import Entry


TEST_DECSYNC_DIR = "/tmp/decsync"
TEST_APP_ID = "test-host-12345"


class MockDecsyncSession:
    """In-memory session over one collection of a MockDecsyncClient."""

    def __init__(self, client: "MockDecsyncClient", sync_type: str, collection: str, app_id: str):
        self.client = client
        self.sync_type = sync_type
        self.collection = collection
        self.app_id = app_id
        self.closed = False

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def stored_entries(self, prefix: List[str]):
        if self.closed:
            raise RuntimeError("DecSync session is closed")
        self.client.replays.append((self.sync_type, self.collection, list(prefix)))
        for entry in self.client.replay_log(self.sync_type, self.collection):
            if entry.path[:len(prefix)] == prefix:
                yield entry

    def set_entry(self, path: List[str], key: str, value: str) -> None:
        if self.closed:
            raise RuntimeError("DecSync session is closed")
        self.client.add_entry(self.sync_type, self.collection, path, value, key=key, app_id=self.app_id)

    def close(self) -> None:
        self.closed = True
        self.client.closed_sessions += 1


class MockDecsyncClient:
    """Mock libdecsync client keeping the log in memory."""

    def __init__(self, decsync_info_status: int = 0):
        """Initialize mock client with an empty DecSync directory."""
        self.decsync_info_status = decsync_info_status
        self.collections: Dict[str, List[str]] = {}      # type -> names
        self.static_info: Dict[Tuple[str, str, str], str] = {}
        self.entries: Dict[Tuple[str, str], List[Entry]] = {}
        self.broken: Set[Tuple[str, str]] = set()
        self.opened_sessions: List[MockDecsyncSession] = []
        self.closed_sessions = 0
        self.replays: List[Tuple[str, str, List[str]]] = []
        self.written: List[Tuple[str, str, List[str], str, str, str]] = []
        self._clock = 0

    def add_collection(self, sync_type: str, name: str, display_name: Optional[str] = None) -> None:
        """Add a collection, with its display name stored as a JSON string."""
        self.collections.setdefault(sync_type, []).append(name)
        self.entries.setdefault((sync_type, name), [])
        if display_name is not None:
            self.static_info[(sync_type, name, '"name"')] = f'"{display_name}"'

    def add_entry(self, sync_type: str, name: str, path: List[str], value: str,
                  key: str = "null", app_id: str = "remote-app") -> Entry:
        """Append an entry; later entries supersede earlier ones on replay."""
        self._clock += 1
        entry = Entry(list(path), f"2020-01-01T00:00:{self._clock:02d}", key, value)
        self.entries.setdefault((sync_type, name), []).append(entry)
        self.written.append((sync_type, name, list(path), key, value, app_id))
        return entry

    def replay_log(self, sync_type: str, name: str) -> List[Entry]:
        """Latest entry per (path, key), like libdecsync's stored entries."""
        latest: Dict[Tuple[Tuple[str, ...], str], Entry] = {}
        for entry in self.entries.get((sync_type, name), []):
            latest[(tuple(entry.path), entry.key)] = entry
        return list(latest.values())

    def check_decsync_info(self, decsync_dir: str) -> int:
        return self.decsync_info_status

    def get_app_id(self, app_name: str) -> str:
        return TEST_APP_ID

    def list_collections(self, decsync_dir: str, sync_type: str, max_count: int) -> List[str]:
        return self.collections.get(sync_type, [])[:max_count]

    def open_session(self, decsync_dir: str, sync_type: str, collection: str, app_id: str) -> MockDecsyncSession:
        if (sync_type, collection) in self.broken:
            raise DecsyncError(f"failed to initialize DecSync {sync_type} collection {collection}", 3)
        session = MockDecsyncSession(self, sync_type, collection, app_id)
        self.opened_sessions.append(session)
        return session

    def get_static_info(self, decsync_dir: str, sync_type: str, collection: str, key: str) -> str:
        return self.static_info.get((sync_type, collection, key), "")
