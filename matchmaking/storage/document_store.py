"""
Document store contract and an in-memory implementation.

The matchmaking core needs only three capabilities from its backing store:
- get a document by id
- query a collection with simple filters
- write a batch of documents atomically, up to a documented size ceiling

InMemoryDocumentStore implements the contract for tests and the CLI, and can
dump/load its contents as JSON.
"""

import copy
import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from ..errors import BatchSizeExceededError

logger = logging.getLogger(__name__)

FILTER_OPERATORS = ["==", "in", "array_contains", "array_contains_any"]


@dataclass(frozen=True)
class Filter:
    """
    A single query predicate.

    Attributes:
        field: Document field (dotted paths reach into nested maps)
        op: One of FILTER_OPERATORS
        value: Comparison value (a list for 'in' and 'array_contains_any')
    """
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unknown filter operator: {self.op}")

    def matches(self, doc: Dict[str, Any]) -> bool:
        actual = _lookup(doc, self.field)
        if self.op == "==":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        if not isinstance(actual, list):
            return False
        if self.op == "array_contains":
            return self.value in actual
        return any(v in actual for v in self.value)


def _lookup(doc: Dict[str, Any], path: str) -> Any:
    value: Any = doc
    for key in path.split("."):
        if not isinstance(value, dict) or key not in value:
            return None
        value = value[key]
    return value


class WriteBatch(ABC):
    """An atomic group of writes."""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        """Queue a full write (or a shallow merge when merge=True)."""

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Queue a delete."""

    @abstractmethod
    def commit(self) -> int:
        """Apply all queued writes atomically; returns the number applied."""

    @abstractmethod
    def __len__(self) -> int:
        pass


class DocumentStore(ABC):
    """Minimal document-store contract used by the matchmaking core."""

    #: Maximum number of writes in one atomic batch
    max_batch_size: int = 500

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Return the document (with its 'id') or None."""

    @abstractmethod
    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        """Return documents matching every filter, up to limit."""

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start a new atomic write batch."""


class InMemoryWriteBatch(WriteBatch):
    """Write batch for InMemoryDocumentStore."""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self._ops: List[Tuple[str, str, str, Optional[Dict[str, Any]], bool]] = []

    def _append(self, op) -> None:
        if len(self._ops) >= self._store.max_batch_size:
            raise BatchSizeExceededError(
                f"Batch exceeds maximum size of {self._store.max_batch_size} writes"
            )
        self._ops.append(op)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any], merge: bool = False) -> None:
        self._append(("set", collection, doc_id, copy.deepcopy(data), merge))

    def delete(self, collection: str, doc_id: str) -> None:
        self._append(("delete", collection, doc_id, None, False))

    def commit(self) -> int:
        applied = self._store._apply(self._ops)
        self._ops = []
        return applied

    def __len__(self) -> int:
        return len(self._ops)


class InMemoryDocumentStore(DocumentStore):
    """
    Dictionary-backed document store.

    Attributes:
        max_batch_size: Atomic-write ceiling enforced on every batch
    """

    def __init__(self, max_batch_size: int = 500):
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be >= 1, got {max_batch_size}")
        self.max_batch_size = max_batch_size
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self.commit_count = 0

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            return None
        result = copy.deepcopy(doc)
        result["id"] = doc_id
        return result

    def query(
        self,
        collection: str,
        filters: Iterable[Filter] = (),
        limit: Optional[int] = None
    ) -> List[Dict[str, Any]]:
        filters = list(filters)
        results = []
        for doc_id, doc in self._collections.get(collection, {}).items():
            if all(f.matches(doc) for f in filters):
                result = copy.deepcopy(doc)
                result["id"] = doc_id
                results.append(result)
                if limit is not None and len(results) >= limit:
                    break
        return results

    def batch(self) -> InMemoryWriteBatch:
        return InMemoryWriteBatch(self)

    def count(self, collection: str) -> int:
        """Number of documents in a collection."""
        return len(self._collections.get(collection, {}))

    def _apply(self, ops) -> int:
        for op, collection, doc_id, data, merge in ops:
            docs = self._collections.setdefault(collection, {})
            if op == "delete":
                docs.pop(doc_id, None)
            elif merge and doc_id in docs:
                docs[doc_id].update(data)
            else:
                docs[doc_id] = data
        self.commit_count += 1
        return len(ops)

    def dump(self, filepath: str) -> None:
        """Save all collections to a JSON file."""
        path = Path(filepath)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self._collections, f, indent=2, default=str)
        logger.info(f"Saved document store to {filepath}")

    @classmethod
    def load(cls, filepath: str, max_batch_size: int = 500) -> "InMemoryDocumentStore":
        """Load a store from a JSON file; a missing file gives an empty store."""
        store = cls(max_batch_size=max_batch_size)
        path = Path(filepath)
        if path.exists():
            with open(path, "r") as f:
                store._collections = json.load(f)
            logger.info(f"Loaded document store from {filepath}")
        return store
