"""
Response envelope helpers shared by every route

Success: {"success": true, "message": ..., "data"?: ..., "count"?: ...,
          "pagination"?: {"page", "limit", "total", "total_pages"}}
"""
import math
from typing import Any, Dict


def success_response(message: str, data: Any = None, **extra) -> Dict[str, Any]:
    body: Dict[str, Any] = {"success": True, "message": message}
    if data is not None:
        body["data"] = data
    body.update({key: value for key, value in extra.items() if value is not None})
    return body


def pagination_meta(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if limit else 0,
    }


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit
