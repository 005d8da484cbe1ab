"""
Core synchronization between DecSync collections and PIM collections.
Implements collection enumeration, item replay and local change writes.
"""
import logging
from typing import Dict, List, Optional

from .codec import DELETED_VALUE, ValueDecodeError, decode_static_info, decode_value, encode_value
from .config import ENTRY_KEY, ITEMS_PREFIX, STATIC_INFO_NAME_KEY, Settings
from .decsync_client import DecsyncClient, DecsyncError
from .models import (
    COLLECTION_TYPES,
    DIRECTORY_MIMETYPE,
    RIGHT_CAN_CREATE_COLLECTION,
    RIGHT_READ_ONLY,
    Collection,
    CollectionType,
    Item,
    collection_type,
)
from .paths import collection_remote_id, item_path, parse_collection_remote_id, type_folder_remote_id


# Configure logger
logger = logging.getLogger(__name__)


class _SyncComponent:
    """Shared state of the components talking to libdecsync."""

    def __init__(self, client: DecsyncClient, settings: Settings, app_id: str):
        """
        Args:
            client: libdecsync client
            settings: User settings holding the DecSync directory
            app_id: App id tagging entries written by this install
        """
        self.client = client
        self.settings = settings
        self.app_id = app_id

    def _open_session(self, sync_type: str, name: str):
        return self.client.open_session(self.settings.decsync_dir, sync_type, name, self.app_id)


class CollectionEnumerator(_SyncComponent):
    """Lists DecSync collections as a PIM collection hierarchy."""

    def enumerate(self) -> List[Collection]:
        """
        Build type folders and the DecSync collections below them.

        Returns:
            Type folders followed by their collections, per type
        """
        collections: List[Collection] = []

        if not self.settings.decsync_dir:
            return collections

        for sync_type in COLLECTION_TYPES:
            folder = self.type_folder(sync_type)
            collections.append(folder)

            names = self.client.list_collections(
                self.settings.decsync_dir, sync_type.name, self.settings.max_collections
            )
            for name in names:
                collection = self._project_collection(sync_type, name, folder)
                if collection is not None:
                    collections.append(collection)

        return collections

    @staticmethod
    def type_folder(sync_type: CollectionType) -> Collection:
        # Allow subcollections only
        return Collection(
            remote_id=type_folder_remote_id(sync_type.name),
            name=f"DecSync {sync_type.name}",
            content_mimetypes=[DIRECTORY_MIMETYPE],
            rights=RIGHT_CAN_CREATE_COLLECTION,
            parent=None,
        )

    def _project_collection(self, sync_type: CollectionType, name: str, folder: Collection) -> Optional[Collection]:
        logger.debug(f"initialize {sync_type.name} collection {name}")
        try:
            session = self._open_session(sync_type.name, name)
        except DecsyncError as e:
            logger.warning(str(e))
            return None

        with session:
            try:
                remote_id = collection_remote_id(sync_type.name, name)
            except ValueError as e:
                logger.warning(f"skipping {sync_type.name} collection {name!r}: {e}")
                return None

            return Collection(
                remote_id=remote_id,
                name=self._display_name(sync_type, name),
                content_mimetypes=list(sync_type.mimetypes),
                rights=RIGHT_READ_ONLY,
                parent=folder,
            )

    def _display_name(self, sync_type: CollectionType, name: str) -> str:
        raw = self.client.get_static_info(
            self.settings.decsync_dir, sync_type.name, name, STATIC_INFO_NAME_KEY
        )
        try:
            display_name = decode_static_info(raw)
        except ValueDecodeError as e:
            logger.debug(f"no usable display name for {sync_type.name}/{name}: {e}")
            return name

        return display_name or name


class ItemSynchronizer(_SyncComponent):
    """Replays the stored entries of one collection into PIM items."""

    def synchronize(self, collection: Collection) -> List[Item]:
        """
        Fetch all live items of a collection.

        Args:
            collection: Collection built by CollectionEnumerator

        Returns:
            Items for every entry not marked as deleted

        Raises:
            DecsyncError: If libdecsync cannot open the collection
        """
        sync_type, name = parse_collection_remote_id(collection.remote_id)
        mime_type = collection_type(sync_type).item_mimetype
        logger.debug(f"getting items for {sync_type}/{name}")

        # Later entries for the same item override earlier ones
        items: Dict[str, Item] = {}

        with self._open_session(sync_type, name) as session:
            for entry in session.stored_entries(ITEMS_PREFIX):
                if len(entry.path) < 2:
                    logger.debug(f"ignoring entry without item id: {entry.path}")
                    continue

                item_id = entry.path[-1]
                logger.debug(
                    f"got update notification: path={'/'.join(entry.path)} "
                    f"datetime={entry.datetime} key={entry.key}"
                )

                try:
                    payload = decode_value(entry.value)
                except ValueDecodeError as e:
                    logger.warning(f"skipping item {item_id} in {sync_type}/{name}: {e}")
                    continue

                if payload is None:
                    # This item is deleted
                    items.pop(item_id, None)
                    continue

                items[item_id] = Item(item_id, mime_type, payload, collection)

        return list(items.values())


class ChangeWriter(_SyncComponent):
    """Writes local item changes to the DecSync log."""

    def write_item(self, collection: Collection, item_id: str, payload: bytes) -> bool:
        """
        Store a new or modified item.

        Args:
            collection: Collection the item belongs to
            item_id: Item remote id
            payload: Full item payload

        Returns:
            True if the entry was written
        """
        return self._set_item_value(collection, item_id, encode_value(payload))

    def delete_item(self, collection: Collection, item_id: str) -> bool:
        """Mark an item as deleted. Returns True if the entry was written."""
        # To delete a contact or calendar event, set its value to JSON null
        return self._set_item_value(collection, item_id, DELETED_VALUE)

    def _set_item_value(self, collection: Collection, item_id: str, value: str) -> bool:
        if not item_id:
            logger.error(f"cannot write item without remote id to {collection.remote_id!r}")
            return False

        try:
            sync_type, name = parse_collection_remote_id(collection.remote_id)
        except ValueError as e:
            logger.error(f"cannot write item {item_id}: {e}")
            return False

        try:
            session = self._open_session(sync_type, name)
        except DecsyncError as e:
            logger.warning(f"failed to create DecSync instance {sync_type}/{name}: {e}")
            return False

        with session:
            session.set_entry(item_path(item_id), ENTRY_KEY, value)

        logger.debug(f"wrote item {item_id} to {sync_type}/{name}")
        return True
