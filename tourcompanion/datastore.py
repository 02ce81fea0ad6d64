"""Data store collaborator — table-scoped CRUD that reports errors as values.

Every operation returns a QueryResponse(data, error) instead of raising for
database failures, so the Safe Query Utility can classify the error and
decide between retry, empty fallback and failure.

Usage:
    store = SqlAlchemyDataStore()
    resp = await store.select("projects", in_filter=InFilter("end_client_id", ids))
    resp = await store.single("requests", {"id": rid}, embed=("project.end_client",))

Filters:
  - match: column == value for every pair
  - in_filter: column IN (values); the column may be a dotted relationship
    path ("chatbot.project_id") which joins through the relationship chain

Called by: utils/safe_query.py, services/*
Depends on: database.py (SessionLocal), models
"""

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from loguru import logger
from sqlalchemy import inspect, select
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    MultipleResultsFound,
    NoResultFound,
    OperationalError,
    SQLAlchemyError,
)

from .database import SessionLocal
from .models import (
    Analytics,
    Asset,
    Chatbot,
    ChatbotRequest,
    Creator,
    EndClient,
    Lead,
    Project,
    Request,
)

TABLES = {
    m.__tablename__: m
    for m in (Creator, EndClient, Project, Chatbot, ChatbotRequest, Analytics, Request, Lead, Asset)
}

NO_ROWS_CODE = "PGRST116"
UNDEFINED_TABLE_CODE = "42P01"


@dataclass
class StoreError:
    message: str
    code: str = ""


@dataclass
class QueryResponse:
    data: Any = None
    error: StoreError | None = None


@dataclass
class InFilter:
    column: str
    values: list = field(default_factory=list)


class DataStore(ABC):
    """Minimal surface the aggregators and the notification pipeline depend on."""

    @abstractmethod
    async def select(
        self,
        table: str,
        *,
        match: dict | None = None,
        in_filter: InFilter | None = None,
        order_by: str | None = "created_at",
        descending: bool = True,
        limit: int | None = None,
    ) -> QueryResponse: ...

    @abstractmethod
    async def single(self, table: str, match: dict, *, embed: tuple[str, ...] = ()) -> QueryResponse: ...

    @abstractmethod
    async def insert(self, table: str, values: dict) -> QueryResponse: ...

    @abstractmethod
    async def update(self, table: str, values: dict, match: dict) -> QueryResponse: ...

    @abstractmethod
    async def delete(self, table: str, match: dict) -> QueryResponse: ...


# ── SQLAlchemy implementation ────────────────────────────────────────


def _translate_error(exc: SQLAlchemyError) -> StoreError:
    """Map SQLAlchemy exceptions onto PostgREST-style message/code pairs."""
    if isinstance(exc, NoResultFound):
        return StoreError("JSON object requested, no rows returned", NO_ROWS_CODE)
    if isinstance(exc, MultipleResultsFound):
        return StoreError("JSON object requested, multiple rows returned", NO_ROWS_CODE)

    orig = getattr(exc, "orig", None)
    message = str(orig or exc)
    code = str(getattr(orig, "pgcode", "") or "")

    if isinstance(exc, IntegrityError):
        return StoreError(f"constraint violation: {message}", code or "23000")
    if isinstance(exc, OperationalError):
        if "no such table" in message.lower():
            return StoreError(f"relation does not exist: {message}", UNDEFINED_TABLE_CODE)
        return StoreError(f"connection error: {message}", code or "08006")
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return StoreError(f"connection error: {message}", code or "08006")
    return StoreError(message, code)


def _resolve_column(model, path: str):
    """Return (relationship joins, column) for a possibly dotted column path."""
    parts = path.split(".")
    joins = []
    current = model
    for rel_name in parts[:-1]:
        rel = getattr(current, rel_name)
        joins.append(rel)
        current = rel.property.mapper.class_
    return joins, getattr(current, parts[-1])


def _attr_values(model, values: dict) -> dict:
    """Translate column names (e.g. "metadata") to mapped attribute keys."""
    by_column = {a.columns[0].name: a.key for a in inspect(model).column_attrs}
    return {by_column.get(k, k): v for k, v in values.items()}


def _with_relations(obj, embed: tuple[str, ...]) -> dict:
    row = obj.to_dict()
    for path in embed:
        target, current = row, obj
        for name in path.split("."):
            current = getattr(current, name, None)
            if current is None:
                target[name] = None
                break
            target = target.setdefault(name, current.to_dict())
    return row


class SqlAlchemyDataStore(DataStore):
    """DataStore over the ORM models; one short session per call on a worker thread."""

    def __init__(self, session_factory=None):
        self._session_factory = session_factory or SessionLocal

    async def _run(self, fn, table: str, *args) -> QueryResponse:
        if table not in TABLES:
            return QueryResponse(
                error=StoreError(f'relation "{table}" does not exist', UNDEFINED_TABLE_CODE)
            )
        return await asyncio.to_thread(self._run_sync, fn, TABLES[table], *args)

    def _run_sync(self, fn, model, *args) -> QueryResponse:
        try:
            with self._session_factory() as db:
                return QueryResponse(data=fn(db, model, *args))
        except SQLAlchemyError as e:
            err = _translate_error(e)
            logger.debug("Store error ({}): {}", err.code, err.message)
            return QueryResponse(error=err)

    # ── reads ──

    async def select(
        self,
        table,
        *,
        match=None,
        in_filter=None,
        order_by="created_at",
        descending=True,
        limit=None,
    ):
        return await self._run(self._select, table, match, in_filter, order_by, descending, limit)

    def _select(self, db, model, match, in_filter, order_by, descending, limit):
        stmt = select(model)
        if match:
            stmt = stmt.filter_by(**match)
        if in_filter is not None:
            joins, column = _resolve_column(model, in_filter.column)
            for rel in joins:
                stmt = stmt.join(rel)
            stmt = stmt.where(column.in_(list(in_filter.values)))
        if order_by and hasattr(model, order_by):
            col = getattr(model, order_by)
            stmt = stmt.order_by(col.desc() if descending else col.asc())
        if limit:
            stmt = stmt.limit(limit)
        return [row.to_dict() for row in db.execute(stmt).scalars().all()]

    async def single(self, table, match, *, embed=()):
        return await self._run(self._single, table, match, embed)

    def _single(self, db, model, match, embed):
        obj = db.execute(select(model).filter_by(**match)).scalar_one()
        return _with_relations(obj, embed)

    # ── writes ──

    async def insert(self, table, values):
        return await self._run(self._insert, table, values)

    def _insert(self, db, model, values):
        obj = model(**_attr_values(model, values))
        db.add(obj)
        db.commit()
        db.refresh(obj)
        return obj.to_dict()

    async def update(self, table, values, match):
        return await self._run(self._update, table, values, match)

    def _update(self, db, model, values, match):
        obj = db.execute(select(model).filter_by(**match)).scalar_one()
        for key, value in _attr_values(model, values).items():
            setattr(obj, key, value)
        db.commit()
        db.refresh(obj)
        return obj.to_dict()

    async def delete(self, table, match):
        return await self._run(self._delete, table, match)

    def _delete(self, db, model, match):
        obj = db.execute(select(model).filter_by(**match)).scalar_one()
        row = obj.to_dict()
        db.delete(obj)
        db.commit()
        return row
