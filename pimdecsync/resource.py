"""
DecSync resource: connects a PIM host to DecSync collections.

The host drives the resource through retrieve_* requests and change hooks.
The resource reports back through the ResourceHost callbacks.
"""
import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from functools import partial
from pathlib import Path
from typing import Iterable, List, Optional

from .config import APP_NAME, OFFLINE_RETRY_SECONDS, Settings
from .decsync_client import DECSYNC_INFO_OK, DecsyncClient, DecsyncError, describe_decsync_info
from .models import Collection, Item
from .sync import ChangeWriter, CollectionEnumerator, ItemSynchronizer


# Configure logger
logger = logging.getLogger(__name__)


STATUS_BROKEN = "broken"


class ResourceHost(ABC):
    """Callbacks a PIM host provides to the resource."""

    @abstractmethod
    def collections_retrieved(self, collections: List[Collection]) -> None:
        pass

    @abstractmethod
    def items_retrieved(self, items: List[Item]) -> None:
        pass

    @abstractmethod
    def change_committed(self, item: Item) -> None:
        pass

    @abstractmethod
    def change_processed(self) -> None:
        pass

    @abstractmethod
    def status(self, level: str, message: str) -> None:
        pass

    @abstractmethod
    def set_online(self, online: bool) -> None:
        pass

    @abstractmethod
    def set_temporary_offline(self, seconds: int) -> None:
        pass

    @abstractmethod
    def fetch_item(self, item: Item) -> "Future[Item]":
        """
        Fetch the full payload of a local item.

        Returns:
            Future resolving to the item with its payload
        """
        pass


class DecSyncResource:
    """Bridge between one ResourceHost and the configured DecSync directory."""

    def __init__(
        self,
        host: ResourceHost,
        settings: Settings,
        client: Optional[DecsyncClient] = None,
        settings_path: Optional[Path] = None,
    ):
        """
        Initialize the resource.

        Args:
            host: PIM host receiving results and status
            settings: User settings
            client: libdecsync client (loaded if None)
            settings_path: File configure() saves settings to
        """
        self.host = host
        self.settings = settings
        self.settings_path = settings_path
        self.client = client if client is not None else DecsyncClient()

        self.check_storage()

        self.app_id = self.client.get_app_id(APP_NAME)
        logger.debug(f"resource started with app ID {self.app_id}")

        self.enumerator = CollectionEnumerator(self.client, self.settings, self.app_id)
        self.synchronizer = ItemSynchronizer(self.client, self.settings, self.app_id)
        self.writer = ChangeWriter(self.client, self.settings, self.app_id)

    def check_storage(self) -> bool:
        """
        Check the DecSync directory and update the online state.

        Returns:
            True if the directory is usable
        """
        path = self.settings.decsync_dir
        if not path:
            message = "no DecSync directory configured"
        else:
            version_status = self.client.check_decsync_info(path)
            if version_status == DECSYNC_INFO_OK:
                self.host.set_online(True)
                return True
            message = describe_decsync_info(version_status, path)

        self.host.set_online(False)
        self.host.status(STATUS_BROKEN, message)
        logger.critical(message)
        self.host.set_temporary_offline(OFFLINE_RETRY_SECONDS)
        return False

    def configure(self, new_path: Optional[str]) -> bool:
        """
        Apply a DecSync directory chosen by the user.

        Args:
            new_path: Selected directory (empty or None when cancelled)

        Returns:
            True if the configuration was accepted
        """
        old_path = self.settings.decsync_dir
        if not new_path or str(new_path) == old_path:
            return False

        version_status = self.client.check_decsync_info(str(new_path))
        if version_status != DECSYNC_INFO_OK:
            logger.warning(describe_decsync_info(version_status, str(new_path)))
            return False

        self.settings.set_decsync_dir(new_path)
        self.settings.save(self.settings_path)
        self.check_storage()
        self.synchronize()
        return True

    def synchronize(self) -> List[Collection]:
        """Retrieve all collections, then the items of each DecSync collection."""
        collections = self.retrieve_collections()
        for collection in collections:
            if not collection.is_type_folder:
                self.retrieve_items(collection)
        return collections

    def retrieve_collections(self) -> List[Collection]:
        collections = self.enumerator.enumerate()
        self.host.collections_retrieved(collections)
        return collections

    def retrieve_items(self, collection: Collection) -> List[Item]:
        """
        Replay the items of one collection to the host.

        Returns:
            Retrieved items (empty if the collection could not be opened)
        """
        logger.debug("retrieveItems")
        try:
            items = self.synchronizer.synchronize(collection)
        except DecsyncError as e:
            self.host.status(STATUS_BROKEN, "failed to initialize DecSync collection")
            logger.warning(str(e))
            return []
        except (KeyError, ValueError) as e:
            logger.error(f"cannot retrieve items of {collection.remote_id!r}: {e}")
            return []

        self.host.items_retrieved(items)
        return items

    def item_added(self, item: Item, collection: Collection) -> None:
        """Write a new local item once its full payload has been fetched."""
        job = self.host.fetch_item(item)
        job.add_done_callback(partial(self._item_added_with_payload, collection))

    def item_changed(self, item: Item, parts: Iterable[bytes] = ()) -> None:
        if item.collection is None:
            logger.warning(f"couldn't change item {item.remote_id}: no parent collection")
            return
        logger.debug(f"itemChanged {item.remote_id} parts={sorted(parts)}")
        self.item_added(item, item.collection)

    def _item_added_with_payload(self, collection: Collection, job: "Future[Item]") -> None:
        if job.cancelled():
            logger.warning("couldn't add item: fetch job cancelled")
            return
        if job.exception() is not None:
            logger.warning(f"couldn't add item: fetch job error: {job.exception()}")
            return

        item = job.result()
        logger.debug(f"itemAdded with payload {item.payload!r}")
        if self.writer.write_item(collection, item.remote_id, item.payload):
            self.host.change_committed(item)

    def item_removed(self, item: Item) -> None:
        if item.collection is None:
            logger.warning(f"couldn't remove item {item.remote_id}: no parent collection")
            return

        if self.writer.delete_item(item.collection, item.remote_id):
            self.host.change_committed(item)

    def collection_added(self, collection: Collection, parent: Collection) -> None:
        logger.debug(f"collectionAdded({collection.remote_id}, parent={parent.remote_id})")
        self.host.change_processed()

    def collection_changed(self, collection: Collection, changed_attributes: Iterable[bytes] = ()) -> None:
        attrs = "".join("/" + attr.decode("utf-8", "replace") for attr in changed_attributes)
        logger.debug(f"collectionChanged({collection.remote_id}, {attrs})")
        self.host.change_processed()

    def collection_removed(self, collection: Collection) -> None:
        logger.debug(f"collectionRemoved({collection.remote_id})")
        self.host.change_processed()
