# spellapi/storage.py
"""
Document store backends for the spell catalog.

The catalog talks to storage only through the ``SpellStore`` protocol.
Two implementations are provided:

* ``MongoSpellStore`` wraps a pymongo collection and is what the service
  runs against in production.
* ``InMemorySpellStore`` keeps documents in a list guarded by a lock. It
  is used for local development and tests, and is always an explicit
  instance handed to the catalog, never a module-level list.

Both enforce the (name, metadata.system) uniqueness at write time and
report a violation as ``DuplicateDocument``.
"""

from __future__ import annotations

import copy
import logging
import threading
from typing import Any, Dict, List, Optional, Protocol

import pymongo
from pymongo import ASCENDING, MongoClient
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from .catalog.filters import NAME_PATH, SYSTEM_PATH, Filter
from .errors import DuplicateDocument, StoreError

logger = logging.getLogger(__name__)

IDENTITY_INDEX = "name_system_unique"


class SpellStore(Protocol):
    def query(self, spell_filter: Filter) -> List[Dict[str, Any]]:
        ...

    def insert(self, document: Dict[str, Any]) -> None:
        ...

    def delete(self, spell_filter: Filter) -> int:
        ...

    def distinct_values(self, field_path: str) -> List[Any]:
        ...

    def distinct_field_names(self) -> List[str]:
        ...

    def ensure_indexes(self) -> None:
        ...


def _dig(document: Dict[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, dict):
            return None
        current = current.get(part)
    return current


class InMemorySpellStore:
    """Process-local store with the same contract as the Mongo backend."""

    def __init__(self, documents: Optional[List[Dict[str, Any]]] = None):
        self._lock = threading.Lock()
        self._documents: List[Dict[str, Any]] = []
        for document in documents or []:
            self.insert(document)

    def __len__(self) -> int:
        with self._lock:
            return len(self._documents)

    def query(self, spell_filter: Filter) -> List[Dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(d) for d in self._documents if spell_filter.matches(d)]

    def insert(self, document: Dict[str, Any]) -> None:
        identity = (_dig(document, NAME_PATH), _dig(document, SYSTEM_PATH))
        with self._lock:
            for existing in self._documents:
                if (_dig(existing, NAME_PATH), _dig(existing, SYSTEM_PATH)) == identity:
                    raise DuplicateDocument(
                        f"duplicate key for name={identity[0]!r} system={identity[1]!r}"
                    )
            self._documents.append(copy.deepcopy(document))

    def delete(self, spell_filter: Filter) -> int:
        # Removes at most one document, like ``delete_one``.
        with self._lock:
            for index, document in enumerate(self._documents):
                if spell_filter.matches(document):
                    del self._documents[index]
                    return 1
        return 0

    def distinct_values(self, field_path: str) -> List[Any]:
        values: List[Any] = []
        # Keyed by type too: True, 1 and 1.0 are different stored values.
        seen = set()
        with self._lock:
            for document in self._documents:
                stored = _dig(document, field_path)
                if stored is None:
                    continue
                for item in stored if isinstance(stored, list) else [stored]:
                    key = (type(item), repr(item))
                    if key not in seen:
                        seen.add(key)
                        values.append(item)
        return values

    def distinct_field_names(self) -> List[str]:
        names = set()
        with self._lock:
            for document in self._documents:
                names.update((document.get("attributes") or {}).keys())
        return sorted(names)

    def ensure_indexes(self) -> None:
        return None


class MongoSpellStore:
    """Spell documents in a MongoDB collection.

    Every call runs under ``pymongo.timeout`` so it has its own deadline of
    ``timeout_ms``, whatever the client-wide defaults are.
    """

    def __init__(self, collection: Collection, timeout_ms: Optional[int] = None):
        self.collection = collection
        self.timeout_ms = timeout_ms

    @classmethod
    def connect(
        cls,
        uri: str,
        database: str = "spellapi",
        collection: str = "spells",
        timeout_ms: int = 5000,
    ) -> "MongoSpellStore":
        """Create a store from a connection URI.

        The client does not contact the server (nor start its monitor
        threads) until the first store call.
        """
        client: MongoClient = MongoClient(
            uri,
            connect=False,
            serverSelectionTimeoutMS=timeout_ms,
            connectTimeoutMS=timeout_ms,
        )
        return cls(client[database][collection], timeout_ms=timeout_ms)

    def _deadline(self):
        seconds = self.timeout_ms / 1000 if self.timeout_ms else None
        return pymongo.timeout(seconds)

    def ensure_indexes(self) -> None:
        try:
            with self._deadline():
                self.collection.create_index(
                    [(NAME_PATH, ASCENDING), (SYSTEM_PATH, ASCENDING)],
                    name=IDENTITY_INDEX,
                    unique=True,
                )
        except PyMongoError as exc:
            raise StoreError(f"failed to create identity index: {exc}") from exc

    def query(self, spell_filter: Filter) -> List[Dict[str, Any]]:
        query = spell_filter.to_mongo()
        logger.debug("Mongo find on %s: %s", self.collection.name, query)
        try:
            with self._deadline():
                return list(self.collection.find(query, {"_id": 0}))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    def insert(self, document: Dict[str, Any]) -> None:
        try:
            with self._deadline():
                # insert_one adds ``_id`` to the dict it is given.
                result = self.collection.insert_one(dict(document))
        except DuplicateKeyError as exc:
            raise DuplicateDocument(str(exc)) from exc
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        logger.debug("Mongo insert on %s: %s", self.collection.name, result.inserted_id)

    def delete(self, spell_filter: Filter) -> int:
        try:
            with self._deadline():
                result = self.collection.delete_one(spell_filter.to_mongo())
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
        return result.deleted_count

    def distinct_values(self, field_path: str) -> List[Any]:
        try:
            with self._deadline():
                return list(self.collection.distinct(field_path))
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc

    def distinct_field_names(self) -> List[str]:
        pipeline = [
            {"$project": {"fields": {"$objectToArray": {"$ifNull": ["$attributes", {}]}}}},
            {"$unwind": "$fields"},
            {"$group": {"_id": "$fields.k"}},
            {"$sort": {"_id": 1}},
        ]
        try:
            with self._deadline():
                return [row["_id"] for row in self.collection.aggregate(pipeline)]
        except PyMongoError as exc:
            raise StoreError(str(exc)) from exc
