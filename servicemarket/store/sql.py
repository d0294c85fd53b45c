# servicemarket/store/sql.py
from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from servicemarket.errors import StoreUnavailable
from servicemarket.store.base import (
    BatchOp,
    Document,
    DocumentStore,
    VersionConflict,
    matches,
    missing,
    sort_and_limit,
)
from servicemarket.store.models import DocumentORM, utcnow
from servicemarket.store.session import init_db, make_engine, make_session_factory


logger = logging.getLogger(__name__)

# unconditional merges re-read and retry when they lose a race
_MERGE_ATTEMPTS = 5


def _dumps(data: Dict[str, Any]) -> str:
    return json.dumps(data, ensure_ascii=False)


def _to_document(obj: DocumentORM) -> Document:
    return Document(id=obj.id, data=json.loads(obj.data_json), version=int(obj.version))


class SqlDocumentStore(DocumentStore):
    """
    Documents kept as JSON text in a single SQLAlchemy table.

    Conditional writes are `UPDATE ... WHERE version = :read_version`; a zero
    rowcount means a concurrent writer bumped the version in between.
    """

    def __init__(self, session_factory: sessionmaker, engine: Optional[Engine] = None):
        self._session_factory = session_factory
        self._engine = engine

    @classmethod
    def from_url(cls, database_url: str) -> "SqlDocumentStore":
        engine = make_engine(database_url)
        init_db(engine)
        return cls(make_session_factory(engine), engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("document store call failed: %s", e)
            raise StoreUnavailable(str(e)) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    @staticmethod
    def _row(db: Session, collection: str, doc_id: str) -> Optional[DocumentORM]:
        stmt = select(DocumentORM).where(
            DocumentORM.collection == collection,
            DocumentORM.id == doc_id,
        )
        return db.execute(stmt).scalars().first()

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._session() as db:
            obj = self._row(db, collection, doc_id)
            return _to_document(obj) if obj is not None else None

    def query(
        self,
        collection: str,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
    ) -> List[Document]:
        with self._session() as db:
            stmt = select(DocumentORM).where(DocumentORM.collection == collection)
            rows = list(db.execute(stmt).scalars().all())
        docs = [d for d in (_to_document(r) for r in rows) if matches(d.data, filters)]
        return sort_and_limit(docs, order_by, descending, limit)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        try:
            with self._session() as db:
                doc = self._set(db, collection, doc_id, data)
        except StoreUnavailable as e:
            # two writers created the same id at once; the second overwrites
            if not isinstance(e.__cause__, IntegrityError):
                raise
            with self._session() as db:
                doc = self._set(db, collection, doc_id, data)
        return doc

    def update(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> Document:
        for _ in range(_MERGE_ATTEMPTS):
            with self._session() as db:
                obj = self._row(db, collection, doc_id)
                if obj is None:
                    raise missing(collection, doc_id)
                current = int(obj.version)
                if expected_version is not None and current != expected_version:
                    raise VersionConflict(
                        f"{collection}/{doc_id} changed (expected v{expected_version}, got v{current})"
                    )
                merged = json.loads(obj.data_json)
                merged.update(fields)
                if self._swap(db, collection, doc_id, current, merged):
                    return Document(id=doc_id, data=merged, version=current + 1)
            if expected_version is not None:
                raise VersionConflict(f"{collection}/{doc_id} changed during write")
        raise VersionConflict(f"{collection}/{doc_id} kept changing during write")

    def delete(self, collection: str, doc_id: str) -> bool:
        with self._session() as db:
            res = db.execute(
                delete(DocumentORM).where(
                    DocumentORM.collection == collection,
                    DocumentORM.id == doc_id,
                )
            )
            return res.rowcount > 0

    def _apply_batch(self, ops: List[BatchOp]) -> None:
        with self._session() as db:
            for op in ops:
                if op.kind == "set":
                    self._set(db, op.collection, op.doc_id, op.data or {})
                elif op.kind == "update":
                    obj = self._row(db, op.collection, op.doc_id)
                    if obj is None:
                        raise missing(op.collection, op.doc_id)
                    merged = json.loads(obj.data_json)
                    merged.update(op.data or {})
                    obj.data_json = _dumps(merged)
                    obj.version = int(obj.version) + 1
                    obj.updated_at = utcnow()
                elif op.kind == "delete":
                    db.execute(
                        delete(DocumentORM).where(
                            DocumentORM.collection == op.collection,
                            DocumentORM.id == op.doc_id,
                        )
                    )
                else:
                    raise ValueError(f"unknown batch op: {op.kind}")
                db.flush()

    def _set(self, db: Session, collection: str, doc_id: str, data: Dict[str, Any]) -> Document:
        now = utcnow()
        obj = self._row(db, collection, doc_id)
        if obj is None:
            obj = DocumentORM(
                collection=collection,
                id=doc_id,
                data_json=_dumps(data),
                version=1,
                created_at=now,
                updated_at=now,
            )
            db.add(obj)
        else:
            obj.data_json = _dumps(data)
            obj.version = int(obj.version) + 1
            obj.updated_at = now
        db.flush()
        return Document(id=doc_id, data=dict(data), version=int(obj.version))

    @staticmethod
    def _swap(db: Session, collection: str, doc_id: str, read_version: int, data: Dict[str, Any]) -> bool:
        res = db.execute(
            update(DocumentORM)
            .where(
                DocumentORM.collection == collection,
                DocumentORM.id == doc_id,
                DocumentORM.version == read_version,
            )
            .values(data_json=_dumps(data), version=read_version + 1, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
