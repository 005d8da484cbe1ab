"""
DecSync client implementation using ctypes bindings to libdecsync.
Provides wrappers for the decsync_* functions used by the resource.
"""
import ctypes
import ctypes.util
import logging
from ctypes import CFUNCTYPE, POINTER, c_char_p, c_int, c_void_p
from typing import Iterator, List, Optional

from .config import APPID_LENGTH, COLLECTION_NAME_LENGTH, STATIC_INFO_LENGTH
from .models import Entry


# Configure logger
logger = logging.getLogger(__name__)


# void (*onEntryUpdate)(const char** path, int len, const char* datetime,
#                       const char* key, const char* value, void* extra)
ENTRY_UPDATE_CALLBACK = CFUNCTYPE(None, POINTER(c_char_p), c_int, c_char_p, c_char_p, c_char_p, c_void_p)

# Results of decsync_check_decsync_info
DECSYNC_INFO_OK = 0
DECSYNC_INFO_INVALID = 1
DECSYNC_INFO_UNSUPPORTED_VERSION = 2

DECSYNC_INFO_MESSAGES = {
    DECSYNC_INFO_INVALID: "libdecsync: {path}: found invalid .decsync-version",
    DECSYNC_INFO_UNSUPPORTED_VERSION: "libdecsync: {path}: unsupported version",
}


def describe_decsync_info(status: int, path: str) -> str:
    """Human-readable message for a decsync_check_decsync_info result."""
    if status == DECSYNC_INFO_OK:
        return f"libdecsync: {path}: ok"
    return DECSYNC_INFO_MESSAGES.get(status, "libdecsync: {path}: unknown error").format(path=path)


class DecsyncError(RuntimeError):
    """libdecsync returned a non-zero error code."""

    def __init__(self, message: str, code: int):
        super().__init__(f"{message}: error {code}")
        self.code = code


def _encode(text: str) -> bytes:
    # Inverse of _decode, so names read from libdecsync round-trip byte for byte
    return text.encode("utf-8", "surrogateescape")


def _decode(raw: Optional[bytes]) -> str:
    if raw is None:
        return ""
    return raw.decode("utf-8", "surrogateescape")


def _path_array(path: List[str]):
    """Build a const char*[] for a DecSync path."""
    return (c_char_p * len(path))(*[_encode(segment) for segment in path])


class DecsyncSession:
    """An open libdecsync instance for one collection."""

    def __init__(self, lib, handle: c_void_p, sync_type: str, collection: str):
        self.lib = lib
        self.handle = handle
        self.sync_type = sync_type
        self.collection = collection
        # ctypes callbacks must outlive their registration
        self._callbacks: List = []

    def __enter__(self) -> "DecsyncSession":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def stored_entries(self, prefix: List[str]) -> Iterator[Entry]:
        """
        Replay all stored entries under a path prefix.

        A listener is registered for `prefix` and every stored entry is
        executed against it. libdecsync calls the listener synchronously, once
        per entry, so the entries are collected first and yielded afterwards.

        Args:
            prefix: Path prefix, e.g. ["resources"]

        Returns:
            Iterator over the replayed entries
        """
        if self.handle is None:
            raise RuntimeError("DecSync session is closed")

        entries: List[Entry] = []

        def on_entry_update(path, length, datetime, key, value, extra):
            entries.append(Entry(
                [_decode(path[i]) for i in range(length)],
                _decode(datetime),
                _decode(key),
                _decode(value),
            ))

        callback = ENTRY_UPDATE_CALLBACK(on_entry_update)
        self._callbacks.append(callback)

        c_prefix = _path_array(prefix)
        self.lib.decsync_add_listener(self.handle, c_prefix, len(prefix), callback)
        self.lib.decsync_init_stored_entries(self.handle)
        self.lib.decsync_execute_all_stored_entries_for_path_prefix(
            self.handle, c_prefix, len(prefix), None
        )

        logger.debug(f"replayed {len(entries)} entries for {self.sync_type}/{self.collection}")
        yield from entries

    def set_entry(self, path: List[str], key: str, value: str) -> None:
        """Append a new entry for `path` to the DecSync log."""
        if self.handle is None:
            raise RuntimeError("DecSync session is closed")

        self.lib.decsync_set_entry(
            self.handle, _path_array(path), len(path), _encode(key), _encode(value)
        )

    def close(self) -> None:
        """Release the libdecsync instance."""
        if self.handle is not None:
            self.lib.decsync_free(self.handle)
            self.handle = None
            self._callbacks = []


class DecsyncClient:
    """DecSync client for interfacing with libdecsync."""

    def __init__(self):
        """Load libdecsync and declare its function prototypes."""
        self.lib = self._load_libdecsync()
        self._setup_function_prototypes()

    def _load_libdecsync(self):
        """Load libdecsync library using ctypes."""
        # Try different library names (platform dependent)
        for lib_name in ["libdecsync.so", "libdecsync.dylib", "decsync.dll"]:
            try:
                return ctypes.CDLL(lib_name)
            except OSError:
                continue

        # If we get here, rely on the system search paths
        found = ctypes.util.find_library("decsync")
        if found is None:
            logger.error("Failed to load libdecsync: library not found")
            raise RuntimeError("Failed to load libdecsync. Please make sure libdecsync is installed")

        try:
            return ctypes.CDLL(found)
        except OSError as e:
            logger.error(f"Failed to load libdecsync: {e}")
            raise RuntimeError(f"Failed to load libdecsync. Please make sure libdecsync is installed: {e}")

    def _setup_function_prototypes(self):
        """Define function prototypes for libdecsync."""
        lib = self.lib

        lib.decsync_check_decsync_info.argtypes = [c_char_p]
        lib.decsync_check_decsync_info.restype = c_int

        lib.decsync_get_app_id.argtypes = [c_char_p, c_char_p, c_int]
        lib.decsync_get_app_id.restype = None

        lib.decsync_list_decsync_collections.argtypes = [
            c_char_p, c_char_p, POINTER(c_char_p), c_int
        ]
        lib.decsync_list_decsync_collections.restype = c_int

        lib.decsync_new.argtypes = [
            POINTER(c_void_p), c_char_p, c_char_p, c_char_p, c_char_p
        ]
        lib.decsync_new.restype = c_int

        lib.decsync_free.argtypes = [c_void_p]
        lib.decsync_free.restype = None

        lib.decsync_get_static_info.argtypes = [
            c_char_p, c_char_p, c_char_p, c_char_p, c_char_p, c_int
        ]
        lib.decsync_get_static_info.restype = None

        lib.decsync_add_listener.argtypes = [
            c_void_p, POINTER(c_char_p), c_int, ENTRY_UPDATE_CALLBACK
        ]
        lib.decsync_add_listener.restype = None

        lib.decsync_init_stored_entries.argtypes = [c_void_p]
        lib.decsync_init_stored_entries.restype = None

        lib.decsync_execute_all_stored_entries_for_path_prefix.argtypes = [
            c_void_p, POINTER(c_char_p), c_int, c_void_p
        ]
        lib.decsync_execute_all_stored_entries_for_path_prefix.restype = None

        lib.decsync_set_entry.argtypes = [
            c_void_p, POINTER(c_char_p), c_int, c_char_p, c_char_p
        ]
        lib.decsync_set_entry.restype = None

    def check_decsync_info(self, decsync_dir: str) -> int:
        """
        Check the .decsync-info of a DecSync directory.

        Returns:
            0 if usable, 1 for an invalid info file, 2 for an unsupported version
        """
        return self.lib.decsync_check_decsync_info(_encode(decsync_dir))

    def get_app_id(self, app_name: str) -> str:
        """Derive the app id used to tag entries written by this install."""
        buffer = ctypes.create_string_buffer(APPID_LENGTH)
        self.lib.decsync_get_app_id(_encode(app_name), buffer, APPID_LENGTH)
        return _decode(buffer.value)

    def list_collections(self, decsync_dir: str, sync_type: str, max_count: int) -> List[str]:
        """
        List the DecSync collections of one type.

        Args:
            decsync_dir: DecSync directory
            sync_type: Collection type, e.g. "contacts"
            max_count: Maximum number of names to return

        Returns:
            Collection names
        """
        if max_count < 1:
            return []

        # libdecsync writes each name into a caller-owned buffer
        buffers = [ctypes.create_string_buffer(COLLECTION_NAME_LENGTH) for _ in range(max_count)]
        names = (c_char_p * max_count)(*[ctypes.cast(buf, c_char_p) for buf in buffers])

        found = self.lib.decsync_list_decsync_collections(
            _encode(decsync_dir), _encode(sync_type), names, max_count
        )
        logger.debug(f"found {found}/{max_count} collections for {sync_type}")

        return [_decode(buffers[i].value) for i in range(min(found, max_count))]

    def open_session(self, decsync_dir: str, sync_type: str, collection: str, app_id: str) -> DecsyncSession:
        """
        Create a libdecsync instance for one collection.

        Raises:
            DecsyncError: If libdecsync fails to initialize the collection
        """
        handle = c_void_p()
        error = self.lib.decsync_new(
            ctypes.byref(handle),
            _encode(decsync_dir),
            _encode(sync_type),
            _encode(collection),
            _encode(app_id),
        )
        if error:
            raise DecsyncError(f"failed to initialize DecSync {sync_type} collection {collection}", error)

        return DecsyncSession(self.lib, handle, sync_type, collection)

    def get_static_info(self, decsync_dir: str, sync_type: str, collection: str, key: str) -> str:
        """
        Read a static info value of a collection.

        Args:
            key: JSON-encoded key, e.g. '"name"'

        Returns:
            JSON-encoded value, or an empty string if unset
        """
        buffer = ctypes.create_string_buffer(STATIC_INFO_LENGTH)
        self.lib.decsync_get_static_info(
            _encode(decsync_dir),
            _encode(sync_type),
            _encode(collection),
            _encode(key),
            buffer,
            STATIC_INFO_LENGTH,
        )
        return _decode(buffer.value)
