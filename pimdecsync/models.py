"""
Models for the DecSync PIM resource.
Contains the collection, item and entry structure definitions.
"""
from typing import List, Literal, Optional, Tuple


# Content type of a collection that only holds sub-collections
DIRECTORY_MIMETYPE = "inode/directory"

RIGHT_READ_ONLY = "read_only"
RIGHT_CAN_CREATE_COLLECTION = "can_create_collection"
Right = Literal["read_only", "can_create_collection"]


class CollectionType:
    """A kind of DecSync collection and the item MIME types it carries."""

    def __init__(self, name: str, mimetypes: Tuple[str, ...]):
        self.name: str = name
        self.mimetypes: Tuple[str, ...] = mimetypes

    @property
    def item_mimetype(self) -> str:
        return self.mimetypes[0]

    def __repr__(self) -> str:
        return f"CollectionType({self.name!r})"


COLLECTION_TYPES: Tuple[CollectionType, ...] = (
    CollectionType("calendars", ("application/x-vnd.akonadi.calendar.event", "text/calendar")),
    CollectionType("contacts", ("text/directory",)),
)


def collection_type(name: str) -> CollectionType:
    """Look up a collection type by name. Raises KeyError if unknown."""
    for sync_type in COLLECTION_TYPES:
        if sync_type.name == name:
            return sync_type
    raise KeyError(f"Unknown DecSync collection type: {name}")


class Collection:
    """A PIM collection: either a type folder or a projected DecSync collection."""

    def __init__(
        self,
        remote_id: str,
        name: str,
        content_mimetypes: List[str],
        rights: Right,
        parent: Optional["Collection"] = None,
    ):
        self.remote_id: str = remote_id
        self.name: str = name
        self.content_mimetypes: List[str] = content_mimetypes
        self.rights: Right = rights
        # None means the root collection
        self.parent: Optional["Collection"] = parent

    @property
    def is_type_folder(self) -> bool:
        return self.content_mimetypes == [DIRECTORY_MIMETYPE]

    def __repr__(self) -> str:
        return f"Collection({self.remote_id!r}, name={self.name!r})"


class Item:
    """A PIM item backed by one live DecSync entry."""

    def __init__(
        self,
        remote_id: str,
        mime_type: str,
        payload: bytes = b"",
        collection: Optional[Collection] = None,
    ):
        self.remote_id: str = remote_id
        self.mime_type: str = mime_type
        self.payload: bytes = payload
        self.collection: Optional[Collection] = collection

    def __repr__(self) -> str:
        return f"Item({self.remote_id!r}, {self.mime_type!r}, {len(self.payload)} bytes)"


class Entry:
    """One (path, datetime, key, value) record of the DecSync log."""

    def __init__(self, path: List[str], datetime: str, key: str, value: str):
        self.path: List[str] = path
        self.datetime: str = datetime
        self.key: str = key
        self.value: str = value

    def __repr__(self) -> str:
        return f"Entry({self.path!r}, {self.datetime!r}, {self.key!r}, {self.value!r})"
