# servicemarket/store/models.py
from __future__ import annotations

import datetime as dt

from sqlalchemy import Column, DateTime, Integer, String, Text

from servicemarket.store.session import Base


def utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class DocumentORM(Base):
    __tablename__ = "documents"

    collection = Column(String(64), primary_key=True)
    id = Column(String(128), primary_key=True)

    data_json = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)

    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
