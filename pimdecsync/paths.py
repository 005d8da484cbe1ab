"""
Mapping between PIM remote ids and DecSync collection and entry paths.
"""
from typing import List, Tuple

from .config import ITEMS_PREFIX


SEPARATOR = "/"


def _check_segment(segment: str, what: str) -> None:
    if not segment:
        raise ValueError(f"Empty {what}")
    if SEPARATOR in segment:
        raise ValueError(f"{what} must not contain {SEPARATOR!r}: {segment!r}")


def type_folder_remote_id(sync_type: str) -> str:
    """Remote id of the synthetic folder grouping all collections of a type."""
    _check_segment(sync_type, "collection type")
    return sync_type + SEPARATOR


def collection_remote_id(sync_type: str, name: str) -> str:
    _check_segment(sync_type, "collection type")
    _check_segment(name, "collection name")
    return sync_type + SEPARATOR + name


def parse_collection_remote_id(remote_id: str) -> Tuple[str, str]:
    """
    Split a collection remote id into (type, name).

    Args:
        remote_id: Remote id built by collection_remote_id()

    Returns:
        Tuple of (collection type, collection name)
    """
    parts = remote_id.split(SEPARATOR, 1)
    if len(parts) != 2 or not parts[0] or not parts[1]:
        raise ValueError(f"Not a collection remote id: {remote_id!r}")
    return parts[0], parts[1]


def item_remote_id(sync_type: str, name: str, item_id: str) -> str:
    if not item_id:
        raise ValueError("Empty item id")
    return collection_remote_id(sync_type, name) + SEPARATOR + item_id


def parse_item_remote_id(remote_id: str) -> Tuple[str, str, str]:
    """
    Split an item remote id into (type, name, item id).

    Everything after the second separator is the item id, separators included.
    """
    parts = remote_id.split(SEPARATOR, 2)
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Not an item remote id: {remote_id!r}")
    return parts[0], parts[1], parts[2]


def item_path(item_id: str) -> List[str]:
    """DecSync entry path of an item."""
    return ITEMS_PREFIX + [item_id]
