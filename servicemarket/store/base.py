# servicemarket/store/base.py
"""
Document store contract.

Collections hold JSON-serialisable documents addressed by string ids. Every
write bumps an integer `version` kept next to the document; passing
`expected_version` turns an update into a compare-and-swap that raises
`VersionConflict` when another writer got there first.
"""

from __future__ import annotations

import abc
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from servicemarket.errors import MarketplaceError, NotFound


class VersionConflict(MarketplaceError):
    """Conditional write lost against a concurrent writer."""

    status_code = 409
    retryable = True
    default_code = "version_conflict"


@dataclass
class Document:
    id: str
    data: Dict[str, Any]
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, **self.data}


@dataclass
class BatchOp:
    kind: str  # set / update / delete
    collection: str
    doc_id: str
    data: Optional[Dict[str, Any]] = None


def new_id() -> str:
    return uuid.uuid4().hex


def missing(collection: str, doc_id: str) -> NotFound:
    # "requests" -> "request_not_found", like the API details
    name = collection[:-1] if collection.endswith("s") else collection
    return NotFound(f"{collection}/{doc_id} does not exist", code=f"{name}_not_found")


def matches(data: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    if not filters:
        return True
    return all(data.get(k) == v for k, v in filters.items())


def sort_and_limit(
    docs: List[Document],
    order_by: Optional[str],
    descending: bool,
    limit: Optional[int],
) -> List[Document]:
    if order_by:
        def key(d: Document) -> Tuple[int, Any]:
            v = d.data.get(order_by)
            # documents without the field sort first (ascending)
            return (0, "") if v is None else (1, v)

        docs = sorted(docs, key=key, reverse=descending)
    if limit is not None:
        docs = docs[: max(0, int(limit))]
    return docs


class WriteBatch:
    """
    Multi-document write applied atomically by `commit()`.

    Used as a context manager the batch commits on a clean exit and is
    discarded when the block raises.
    """

    def __init__(self, store: "DocumentStore"):
        self._store = store
        self.ops: List[BatchOp] = []
        self.committed = False

    def set(self, collection: str, doc_id: Optional[str], data: Dict[str, Any]) -> str:
        doc_id = doc_id or new_id()
        self.ops.append(BatchOp("set", collection, doc_id, dict(data)))
        return doc_id

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        self.ops.append(BatchOp("update", collection, doc_id, dict(fields)))

    def delete(self, collection: str, doc_id: str) -> None:
        self.ops.append(BatchOp("delete", collection, doc_id))

    def commit(self) -> None:
        if self.committed:
            return
        if self.ops:
            self._store._apply_batch(self.ops)
        self.committed = True

    def __len__(self) -> int:
        return len(self.ops)

    def __enter__(self) -> "WriteBatch":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.commit()


class DocumentStore(abc.ABC):
    @abc.abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        ...

    @abc.abstractmethod
    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        ...

    @abc.abstractmethod
    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        """Create or fully overwrite a document."""

    @abc.abstractmethod
    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        """Merge top-level fields into an existing document."""

    @abc.abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Remove a document; returns False when it did not exist."""

    @abc.abstractmethod
    def _apply_batch(self, ops: List[BatchOp]) -> None:
        ...

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        doc_id = new_id()
        self.set(collection, doc_id, data)
        return doc_id

    def append_to_array(
        self,
        collection: str,
        doc_id: str,
        field_name: str,
        value: Any,
        expected_version: Optional[int] = None,
    ) -> Document:
        doc = self.get(collection, doc_id)
        if doc is None:
            raise missing(collection, doc_id)
        if expected_version is not None and doc.version != expected_version:
            raise VersionConflict(f"{collection}/{doc_id} changed (expected v{expected_version}, got v{doc.version})")
        items = list(doc.data.get(field_name) or [])
        items.append(value)
        # the version read above guards the write, so a concurrent append
        # surfaces as a conflict instead of being lost
        return self.update(collection, doc_id, {field_name: items}, expected_version=doc.version)

    def batch(self) -> WriteBatch:
        return WriteBatch(self)

    def close(self) -> None:
        pass
