# servicemarket/store/memory.py
from __future__ import annotations

import copy
import threading
from typing import Any, Dict, List, Optional, Tuple

from servicemarket.store.base import (
    BatchOp,
    Document,
    DocumentStore,
    VersionConflict,
    matches,
    missing,
    sort_and_limit,
)


class InMemoryDocumentStore(DocumentStore):
    """
    Process-local store: one lock guards every read and write, documents are
    deep-copied on the way in and out so callers never share state.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._docs: Dict[Tuple[str, str], Tuple[Dict[str, Any], int]] = {}

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._lock:
            row = self._docs.get((collection, doc_id))
            if row is None:
                return None
            data, version = row
            return Document(id=doc_id, data=copy.deepcopy(data), version=version)

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        with self._lock:
            docs = [
                Document(id=doc_id, data=copy.deepcopy(data), version=version)
                for (coll, doc_id), (data, version) in self._docs.items()
                if coll == collection and matches(data, filters)
            ]
        return sort_and_limit(docs, order_by, descending, limit)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        with self._lock:
            return self._set(collection, doc_id, data)

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        with self._lock:
            return self._update(collection, doc_id, fields, expected_version)

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._lock:
            return self._docs.pop((collection, doc_id), None) is not None

    def _set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        key = (collection, doc_id)
        prev = self._docs.get(key)
        version = prev[1] + 1 if prev else 1
        self._docs[key] = (copy.deepcopy(data), version)
        return Document(id=doc_id, data=copy.deepcopy(data), version=version)

    def _update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int],
    ) -> Document:
        key = (collection, doc_id)
        row = self._docs.get(key)
        if row is None:
            raise missing(collection, doc_id)
        data, version = row
        if expected_version is not None and version != expected_version:
            raise VersionConflict(f"{collection}/{doc_id} changed (expected v{expected_version}, got v{version})")
        merged = dict(data)
        merged.update(copy.deepcopy(fields))
        self._docs[key] = (merged, version + 1)
        return Document(id=doc_id, data=copy.deepcopy(merged), version=version + 1)

    def _apply_batch(self, ops: List[BatchOp]) -> None:
        with self._lock:
            snapshot = dict(self._docs)
            try:
                for op in ops:
                    if op.kind == "set":
                        self._set(op.collection, op.doc_id, op.data or {})
                    elif op.kind == "update":
                        self._update(op.collection, op.doc_id, op.data or {}, None)
                    elif op.kind == "delete":
                        self._docs.pop((op.collection, op.doc_id), None)
                    else:
                        raise ValueError(f"unknown batch op: {op.kind}")
            except Exception:
                self._docs = snapshot
                raise
