"""
Tests for resource.py against a recording host.
"""
import pytest

from pimdecsync.codec import encode_value
from pimdecsync.config import OFFLINE_RETRY_SECONDS, Settings
from pimdecsync.models import Item
from pimdecsync.resource import STATUS_BROKEN, DecSyncResource
from pimdecsync.tests.fixtures.mock_decsync_client import MockDecsyncClient, TEST_APP_ID


@pytest.fixture
def resource(host, settings, mock_client, tmp_path):
    return DecSyncResource(host, settings, mock_client, tmp_path / "settings.json")


def _collection(resource, remote_id):
    for collection in resource.retrieve_collections():
        if collection.remote_id == remote_id:
            return collection
    raise AssertionError(f"no collection {remote_id}")


def test_start_online(resource, host):
    assert host.online is True
    assert host.statuses == []
    assert resource.app_id == TEST_APP_ID


@pytest.mark.parametrize("info_status,message", [
    (1, "found invalid .decsync-version"),
    (2, "unsupported version"),
    (7, "unknown error"),
])
def test_start_with_bad_decsync_dir(host, settings, info_status, message):
    DecSyncResource(host, settings, MockDecsyncClient(decsync_info_status=info_status))

    assert host.online is False
    assert host.statuses[0][0] == STATUS_BROKEN
    assert message in host.statuses[0][1]
    assert host.offline_for == [OFFLINE_RETRY_SECONDS]


def test_start_unconfigured(host, mock_client):
    resource = DecSyncResource(host, Settings(), mock_client)

    assert host.online is False
    assert host.statuses == [(STATUS_BROKEN, "no DecSync directory configured")]
    assert host.offline_for == [OFFLINE_RETRY_SECONDS]
    assert resource.retrieve_collections() == []
    assert host.retrieved_collections == [[]]


def test_retrieve_collections(resource, host):
    collections = resource.retrieve_collections()

    assert host.retrieved_collections == [collections]
    assert "contacts/alice" in [c.remote_id for c in collections]


def test_retrieve_items(resource, host, mock_client):
    mock_client.add_entry("contacts", "alice", ["resources", "1"], encode_value(b"hello"))
    mock_client.add_entry("contacts", "alice", ["resources", "2"], "null")

    items = resource.retrieve_items(_collection(resource, "contacts/alice"))

    assert host.retrieved_items == [items]
    assert [(i.remote_id, i.payload) for i in items] == [("1", b"hello")]


def test_retrieve_items_broken_collection(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    mock_client.broken.add(("contacts", "alice"))

    assert resource.retrieve_items(alice) == []
    assert host.statuses == [(STATUS_BROKEN, "failed to initialize DecSync collection")]
    assert host.retrieved_items == []


def test_retrieve_items_of_type_folder(resource, host):
    folder = _collection(resource, "contacts/")

    assert resource.retrieve_items(folder) == []
    assert host.retrieved_items == []


def test_item_added_commits_after_fetch(resource, host, mock_client):
    """The write waits for the payload fetch to finish."""
    alice = _collection(resource, "contacts/alice")
    host.defer_fetch = True
    host.payloads["42"] = b"BEGIN:VCARD\nEND:VCARD\n"

    resource.item_added(Item("42", "text/directory", collection=alice), alice)
    assert host.committed == []
    assert mock_client.written == []

    item, job = host.pending.pop()
    host.complete(item, job)

    assert [i.remote_id for i in host.committed] == ["42"]
    assert [(i.remote_id, i.payload) for i in resource.retrieve_items(alice)] == [
        ("42", b"BEGIN:VCARD\nEND:VCARD\n"),
    ]


def test_item_added_fetch_error(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    host.fetch_error = RuntimeError("payload unavailable")

    resource.item_added(Item("42", "text/directory", collection=alice), alice)

    assert host.committed == []
    assert mock_client.written == []


def test_item_added_fetch_cancelled(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    host.defer_fetch = True

    resource.item_added(Item("42", "text/directory", collection=alice), alice)
    _, job = host.pending.pop()
    job.cancel()

    assert host.committed == []
    assert mock_client.written == []


def test_item_added_broken_collection(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    mock_client.broken.add(("contacts", "alice"))

    resource.item_added(Item("42", "text/directory", b"x", alice), alice)

    assert host.committed == []


def test_item_changed_writes_new_payload(resource, host):
    alice = _collection(resource, "contacts/alice")
    resource.item_added(Item("1", "text/directory", b"v1", alice), alice)

    resource.item_changed(Item("1", "text/directory", b"v2", alice), {b"PLD:RFC822"})

    assert len(host.committed) == 2
    assert [i.payload for i in resource.retrieve_items(alice)] == [b"v2"]


def test_item_changed_without_collection(resource, host):
    resource.item_changed(Item("1", "text/directory", b"v2"))

    assert host.committed == []


def test_item_removed(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    mock_client.add_entry("contacts", "alice", ["resources", "1"], encode_value(b"hello"))
    item = resource.retrieve_items(alice)[0]

    resource.item_removed(item)

    assert host.committed == [item]
    assert resource.retrieve_items(alice) == []


def test_item_removed_broken_collection(resource, host, mock_client):
    alice = _collection(resource, "contacts/alice")
    mock_client.broken.add(("contacts", "alice"))

    resource.item_removed(Item("1", "text/directory", collection=alice))

    assert host.committed == []


def test_collection_hooks_are_acknowledged(resource, host):
    alice = _collection(resource, "contacts/alice")
    folder = alice.parent

    resource.collection_added(alice, folder)
    resource.collection_changed(alice, {b"ENTITYDISPLAY", b"AccessRights"})
    resource.collection_removed(alice)

    assert host.processed == 3


def test_synchronize_retrieves_every_collection(resource, host, mock_client):
    mock_client.add_entry("contacts", "bob", ["resources", "b1"], encode_value(b"bob"))

    resource.synchronize()

    assert len(host.retrieved_collections) == 1
    # calendars/work, contacts/alice and contacts/bob
    assert len(host.retrieved_items) == 3
    assert [i.remote_id for items in host.retrieved_items for i in items] == ["b1"]


def test_configure_accepts_new_directory(host, mock_client, tmp_path):
    settings_path = tmp_path / "settings.json"
    resource = DecSyncResource(host, Settings(), mock_client, settings_path)

    assert resource.configure(str(tmp_path / "DecSync")) is True

    assert resource.settings.decsync_dir == str(tmp_path / "DecSync")
    assert Settings.load(settings_path).decsync_dir == str(tmp_path / "DecSync")
    assert host.online is True
    assert len(host.retrieved_collections) == 1


@pytest.mark.parametrize("new_path", ["", None, "/tmp/decsync"])
def test_configure_rejects_empty_or_unchanged_path(resource, host, new_path):
    assert resource.configure(new_path) is False
    assert host.retrieved_collections == []


def test_configure_rejects_invalid_directory(resource, mock_client, tmp_path):
    mock_client.decsync_info_status = 1

    assert resource.configure(str(tmp_path)) is False
    assert resource.settings.decsync_dir == "/tmp/decsync"
    assert not (tmp_path / "settings.json").exists()
