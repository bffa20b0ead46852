#!/usr/bin/env python3
"""
Shared SQLAlchemy base and mixin for the Sweet Shop API.

- UUID primary key (String(36)) with defaults
- created_at / updated_at timestamps
- keyword construction and a readable __repr__

Notes:
- Timestamps get a Python-side default so they are populated at flush time
  (no refresh round-trip), with func.now() kept as the server default for
  rows written outside the ORM.
- Persistence is not handled here; commits belong to services.transaction.atomic.
"""

from __future__ import annotations

import uuid

from sqlalchemy import Column, String, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

from utils.time_utils import utcnow

# Declarative base for all models
Base = declarative_base()


def _uuid_str() -> str:
    """Return a canonical UUIDv4 string (36 chars, with hyphens)."""
    return str(uuid.uuid4())


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, updated_at.
    """

    id = Column(String(36), primary_key=True, default=_uuid_str, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
    )

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs.
        The id is assigned eagerly so dependent rows (ledger references) can
        point at an object before it is flushed.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)
        if getattr(self, "id", None) is None:
            self.id = _uuid_str()

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} id={self.id}>"
