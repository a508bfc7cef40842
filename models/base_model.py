#!/usr/bin/env python3
"""
Shared SQLAlchemy base for the Orbit invoice API.

- Integer autoincrement primary key
- created_at timestamp (UTC), defaulted on insert
- save() and delete() that go through the DBStorage singleton

For SQLite, func.now() maps to CURRENT_TIMESTAMP (UTC).
"""

from __future__ import annotations

from datetime import datetime, timezone

# Importing 'models' gives access to the global 'storage' instance (DBStorage)
# defined in models/__init__.py.
import models

from sqlalchemy import Column, Integer, DateTime
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

# Declarative base for all models
Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; SQLite stores datetimes without an offset."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class BaseModel:
    """
    Base mixin for all persistent models: id, created_at, save(), delete().
    """

    id = Column(Integer, primary_key=True, autoincrement=True)
    created_at = Column(DateTime, default=utcnow, server_default=func.now(), nullable=False)

    def __init__(self, *args, **kwargs):
        """
        Allow attribute initialization via kwargs without requiring a session here.
        created_at is filled in on insert unless passed explicitly.
        """
        for key, value in kwargs.items():
            if key != "__class__":
                setattr(self, key, value)

    def save(self):
        """Add the instance to the session and commit."""
        models.storage.new(self)
        models.storage.save()

    def delete(self):
        """Hard delete the current instance and commit."""
        models.storage.delete(self)
        models.storage.save()
