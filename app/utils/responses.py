"""Success envelope builders."""
import math
from typing import Any, Sequence

from app.models.common import PageParams, Pagination


def success(data: Any) -> dict:
    """Wrap a single entity (or result object) in the success envelope."""
    return {"success": True, "data": data}


def paginated(items: Sequence[Any], total: int, params: PageParams) -> dict:
    """
    Wrap a page of items in the list envelope.

    Args:
        items: Items on the requested page (empty past the last page)
        total: Total number of matching records
        params: Requested page and limit

    Returns:
        ``{"success", "items", "pagination"}`` dict
    """
    return {
        "success": True,
        "items": list(items),
        "pagination": Pagination(
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=math.ceil(total / params.limit) if total else 0,
        ),
    }
