"""Helpers shared by the services that run multi-step store operations."""
import functools
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Callable, Iterable, Mapping, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING
from pymongo.errors import PyMongoError

from app.config import settings
from app.errors import NotFound, UpstreamFailure, ValidationFailed
from app.models.common import PageParams

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", DESCENDING), ("_id", DESCENDING)]


def store_operation(func):
    """
    Map store failures raised inside a service method to UpstreamFailure.

    The original exception is logged with its traceback; the caller only
    sees the generic upstream error.
    """

    @functools.wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except PyMongoError as e:
            logger.error(
                "Store operation %s failed: %s", func.__qualname__, e,
                exc_info=True,
                extra={"error_code": UpstreamFailure.code},
            )
            raise UpstreamFailure() from e

    return wrapper


@asynccontextmanager
async def transaction(db) -> AsyncIterator[Optional[Any]]:
    """
    Open a client session with a running transaction.

    Yields the session to pass as ``session=`` to every store call, or None
    when transactions are disabled (standalone servers). An exception
    raised in the block aborts the transaction.
    """
    if not settings.mongodb_transactions:
        yield None
        return

    async with await db.client.start_session() as session:
        async with session.start_transaction():
            yield session


def parse_object_id(value: str, resource: str) -> ObjectId:
    """
    Parse a record id.

    Raises:
        NotFound: If the value is not a valid ObjectId
    """
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise NotFound(resource, value)


async def paginate(
    collection,
    query: Mapping[str, Any],
    params: PageParams,
    convert: Callable[[dict], Any],
    sort: Optional[list] = None,
    session=None,
) -> tuple[list, int]:
    """
    Fetch one page of a query plus the total match count.

    Args:
        collection: Motor collection
        query: Filter document
        params: Page and limit
        convert: Document-to-model converter
        sort: Sort specification, newest first by default
        session: Optional client session

    Returns:
        Tuple of (converted items, total count)
    """
    total = await collection.count_documents(query, session=session)
    # Past the last page; skip may also exceed what the store accepts.
    if params.skip >= total:
        return [], total

    cursor = collection.find(
        query,
        sort=sort or NEWEST_FIRST,
        skip=params.skip,
        limit=params.limit,
        session=session,
    )
    docs = await cursor.to_list(length=None)
    return [convert(doc) for doc in docs], total


def average_progress(values: Iterable[int]) -> int:
    """
    Mean of child progress values rounded half up; 0 when there are none.

    Examples:
        >>> average_progress([50, 100])
        75
        >>> average_progress([0, 25])
        13
        >>> average_progress([])
        0
    """
    values = list(values)
    if not values:
        return 0
    return int(math.floor(sum(values) / len(values) + 0.5))


def ensure_transition(
    allowed: Mapping[Any, Iterable[Any]],
    current: Any,
    target: Any,
    field: str = "status",
) -> None:
    """
    Check a status transition against an allowed-transition map.

    Raises:
        ValidationFailed: If ``current -> target`` is not allowed
    """
    if target in allowed.get(current, ()):
        return
    current_value = getattr(current, "value", current)
    target_value = getattr(target, "value", target)
    raise ValidationFailed([{
        "field": field,
        "message": f"cannot transition from {current_value} to {target_value}",
        "type": "invalid_transition",
    }])
