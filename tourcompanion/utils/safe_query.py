"""Safe query wrapper — timeout, bounded retry and error classification.

Wraps a single data-store operation so transient or partial failures never
crash the caller. Every call returns a SafeQueryResult instead of raising.

Design rules:
  - Recoverable errors (network, timeout, connection, 5xx, rate limit) are
    retried with linear backoff: attempt * BACKOFF_STEP_SECONDS
  - Data-absent errors (no rows, not found, does not exist, non-auth
    permission denial, constraint violations) become success with data=None
    when fallback_to_empty is set
  - Anything else is a failure carrying the error message
  - success=True always means error is None; data may still be None

Called by: services/dashboard_service.py, services/portal_service.py,
           services/notification_service.py, services/analytics_service.py
Depends on: datastore.py (QueryResponse, StoreError)
"""

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from ..config import settings
from ..datastore import DataStore, InFilter, QueryResponse

BACKOFF_STEP_SECONDS = 1.0

RECOVERABLE_MESSAGES = ("network", "timeout", "connection", "rate limit", "too many requests")
RECOVERABLE_CODES = {"500", "502", "503", "504"}
DATA_ABSENT_MESSAGES = ("no rows", "not found", "does not exist")
CONSTRAINT_MESSAGES = ("foreign key", "constraint")
PERMISSION_DENIED_CODE = "42501"


@dataclass
class SafeQueryResult:
    data: Any = None
    error: str | None = None
    success: bool = False


def _parts(error) -> tuple[str, str]:
    message = (getattr(error, "message", None) or "").lower()
    code = str(getattr(error, "code", None) or "").lower()
    return message, code


def is_recoverable_error(error) -> bool:
    """Network blips, timeouts, temporary server errors and rate limiting."""
    if not error:
        return False
    message, code = _parts(error)
    if any(m in message for m in RECOVERABLE_MESSAGES):
        return True
    return code in RECOVERABLE_CODES


def is_data_error(error) -> bool:
    """Missing records, non-auth permission denials, expected constraint hits."""
    if not error:
        return False
    message, code = _parts(error)
    if any(m in message for m in DATA_ABSENT_MESSAGES):
        return True
    if code == PERMISSION_DENIED_CODE and "authentication" not in message:
        return True
    return any(m in message for m in CONSTRAINT_MESSAGES)


async def safe_query(
    query_fn: Callable[[], Awaitable[QueryResponse]],
    *,
    fallback_to_empty: bool = True,
    retry_attempts: int | None = None,
    timeout_ms: int | None = None,
) -> SafeQueryResult:
    """Run query_fn with a timeout and bounded retries; never raises."""
    if retry_attempts is None:
        retry_attempts = settings.safe_query_retry_attempts
    if timeout_ms is None:
        timeout_ms = settings.safe_query_timeout_ms

    last_error: str | None = None

    for attempt in range(retry_attempts + 1):
        try:
            result = await asyncio.wait_for(query_fn(), timeout=timeout_ms / 1000)
        except asyncio.TimeoutError:
            last_error = "Query timeout"
        except Exception as e:
            last_error = str(e) or type(e).__name__
        else:
            error = result.error
            if not error:
                return SafeQueryResult(data=result.data, error=None, success=True)

            last_error = error.message
            if is_recoverable_error(error) and attempt < retry_attempts:
                logger.warning(
                    "Query attempt {}/{} failed, retrying: {}",
                    attempt + 1, retry_attempts + 1, error.message,
                )
                await asyncio.sleep(BACKOFF_STEP_SECONDS * (attempt + 1))
                continue

            if fallback_to_empty and is_data_error(error):
                logger.warning("Query failed, returning empty result: {}", error.message)
                return SafeQueryResult(data=None, error=None, success=True)

            return SafeQueryResult(
                data=None, error=error.message or "Database query failed", success=False
            )

        # Timeout or raised exception
        if attempt < retry_attempts:
            logger.warning(
                "Query attempt {}/{} raised, retrying: {}",
                attempt + 1, retry_attempts + 1, last_error,
            )
            await asyncio.sleep(BACKOFF_STEP_SECONDS * (attempt + 1))

    return SafeQueryResult(
        data=None,
        error=last_error or "Query failed after all retry attempts",
        success=False,
    )


# ── Store helpers ────────────────────────────────────────────────────


async def safe_single_query(store: DataStore, table: str, match: dict, **options) -> SafeQueryResult:
    embed = options.pop("embed", ())
    return await safe_query(lambda: store.single(table, match, embed=embed), **options)


async def safe_multi_query(
    store: DataStore,
    table: str,
    match: dict | None = None,
    *,
    in_filter: InFilter | None = None,
    order_by: str | None = "created_at",
    **options,
) -> SafeQueryResult:
    """List query; always falls back to empty on data-absent errors."""
    options["fallback_to_empty"] = True
    return await safe_query(
        lambda: store.select(table, match=match, in_filter=in_filter, order_by=order_by),
        **options,
    )


async def safe_insert(store: DataStore, table: str, values: dict, **options) -> SafeQueryResult:
    options.setdefault("fallback_to_empty", False)
    return await safe_query(lambda: store.insert(table, values), **options)


async def safe_update(store: DataStore, table: str, values: dict, match: dict, **options) -> SafeQueryResult:
    options.setdefault("fallback_to_empty", False)
    return await safe_query(lambda: store.update(table, values, match), **options)


async def safe_delete(store: DataStore, table: str, match: dict, **options) -> SafeQueryResult:
    options.setdefault("fallback_to_empty", False)
    return await safe_query(lambda: store.delete(table, match), **options)


async def safe_batch_operations(
    operations: list[Callable[[], Awaitable[QueryResponse]]], **options
) -> list[SafeQueryResult]:
    """Run operations concurrently, each with its own error handling, results in order."""
    results = await asyncio.gather(
        *(safe_query(op, **options) for op in operations), return_exceptions=True
    )
    return [
        r if isinstance(r, SafeQueryResult)
        else SafeQueryResult(data=None, error=str(r) or "Operation failed", success=False)
        for r in results
    ]
