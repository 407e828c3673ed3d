import copy
import hashlib
import json
import logging
import threading
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple

from asset_store import AssetError
from item_schema import ItemValidationError, validate_items

EMPTY_VERSION = "empty"


class PersistenceError(RuntimeError):
    pass


class ItemStoreVersionConflictError(RuntimeError):
    """Raised when a mutation names a collection version that is no longer current."""

    def __init__(self, expected_version: str, current_version: str) -> None:
        super().__init__(
            f"Item collection has changed (expected version {expected_version}, current {current_version})"
        )
        self.expected_version = expected_version
        self.current_version = current_version


class AssetDeleter(Protocol):
    def delete_asset(self, reference: str) -> None:
        ...


def _serialize(items: Sequence[Dict[str, Any]]) -> bytes:
    return json.dumps(list(items), indent=2, ensure_ascii=False).encode("utf-8")


def _version_of(payload: bytes) -> str:
    return hashlib.sha256(payload).hexdigest()[:12]


def image_reference(item: Any) -> Optional[str]:
    if not isinstance(item, dict):
        return None
    client = item.get("client")
    if not isinstance(client, dict):
        return None
    ref = client.get("imageurl")
    return ref if isinstance(ref, str) and ref.strip() else None


class ItemStore:
    """The item collection, persisted as one JSON list.

    The store owns the in-memory copy after the first load; every mutation is
    a read-modify-write under one lock and is written to disk before it
    becomes visible. ``version`` is a content hash of the persisted bytes, so
    callers can pass the version they last saw as ``expected_version`` and get
    ItemStoreVersionConflictError instead of clobbering someone else's edit.
    """

    def __init__(self, path: Path, assets: Optional[AssetDeleter] = None):
        self.path = path
        self.assets = assets
        self._lock = threading.RLock()
        self._items: Optional[List[Dict[str, Any]]] = None
        self._version = EMPTY_VERSION

    def _load(self) -> List[Dict[str, Any]]:
        if self._items is not None:
            return self._items
        if not self.path.exists():
            self._items = []
            self._version = EMPTY_VERSION
            return self._items
        try:
            payload = self.path.read_bytes()
            data = json.loads(payload.decode("utf-8"))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise PersistenceError(f"Failed to read items from {self.path}: {exc}") from exc
        if not isinstance(data, list):
            raise PersistenceError(f"Top-level JSON in {self.path} must be a list")
        self._items = data
        self._version = _version_of(payload)
        return self._items

    def _write(self, items: List[Dict[str, Any]]) -> None:
        try:
            payload = _serialize(items)
        except (TypeError, ValueError) as exc:
            raise PersistenceError(f"Items could not be serialized to JSON: {exc}") from exc

        temporary = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            temporary.write_bytes(payload)
            temporary.replace(self.path)
        except OSError as exc:
            temporary.unlink(missing_ok=True)
            raise PersistenceError(f"Failed to save items to {self.path}: {exc}") from exc

        self._items = items
        self._version = _version_of(payload)

    def _check_version(self, expected_version: Optional[str]) -> None:
        if expected_version is not None and expected_version != self._version:
            raise ItemStoreVersionConflictError(expected_version, self._version)

    @property
    def version(self) -> str:
        with self._lock:
            self._load()
            return self._version

    def reload(self) -> None:
        """Drop the in-memory copy so the next access re-reads the file."""
        with self._lock:
            self._items = None
            self._version = EMPTY_VERSION

    def list_items(self) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._load())

    def snapshot(self) -> Dict[str, Any]:
        with self._lock:
            items = copy.deepcopy(self._load())
            return {"version": self._version, "items": items}

    def replace_all(self, items: Sequence[Dict[str, Any]], expected_version: Optional[str] = None) -> str:
        """Substitute the whole collection. All-or-nothing: invalid input or a failed write changes nothing."""
        errors = validate_items(items)
        if errors:
            raise ItemValidationError(errors)
        with self._lock:
            self._load()
            self._check_version(expected_version)
            self._write(copy.deepcopy(list(items)))
            return self._version

    def delete_at(self, index: int, expected_version: Optional[str] = None) -> Tuple[Dict[str, Any], str]:
        """Remove the item at ``index``; returns it with the version this deletion wrote."""
        with self._lock:
            items = self._load()
            self._check_version(expected_version)
            if index < 0 or index >= len(items):
                raise IndexError(f"No item at position {index} (collection has {len(items)})")
            return self._remove(index)

    def delete_named(self, name: str, expected_version: Optional[str] = None) -> Tuple[Dict[str, Any], str]:
        with self._lock:
            items = self._load()
            self._check_version(expected_version)
            for index, item in enumerate(items):
                if isinstance(item, dict) and item.get("name") == name:
                    return self._remove(index)
            raise KeyError(name)

    def _remove(self, index: int) -> Tuple[Dict[str, Any], str]:
        items = self._load()
        removed = items[index]
        remaining = items[:index] + items[index + 1:]
        self._write(remaining)
        version = self._version

        ref = image_reference(removed)
        if ref and self.assets is not None:
            try:
                self.assets.delete_asset(ref)
            except AssetError:
                logging.warning("Item %r removed but its image %s could not be deleted", removed.get("name"), ref, exc_info=True)
        return copy.deepcopy(removed), version
