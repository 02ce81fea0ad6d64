"""Declarative base shared by every model, plus row serialization."""

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import inspect
from sqlalchemy.orm import declarative_base


def new_id() -> str:
    return str(uuid.uuid4())


def _plain(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class _RowMixin:
    def to_dict(self) -> dict:
        """Column values as a JSON-friendly dict (datetimes as ISO strings)."""
        return {
            attr.columns[0].name: _plain(getattr(self, attr.key))
            for attr in inspect(self).mapper.column_attrs
        }


Base = declarative_base(cls=_RowMixin)
