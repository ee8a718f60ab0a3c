"""
Aggregation pipeline building blocks.

Each function returns one stage (or a short list of stages) so that views can
be assembled from named pieces and each piece can be checked on its own.
"""

import math
from typing import List, Optional, Tuple

from fastapi import Query
from pydantic import BaseModel

from errors import BadRequest

PUBLIC_PROFILE_FIELDS = ("username", "full_name", "avatar_url")
DEFAULT_SORT = ("created_at", -1)
MAX_LIMIT = 100


def match(filter_dict: dict) -> dict:
    return {"$match": filter_dict}


def lookup(from_collection: str, local_field: str, foreign_field: str, as_field: str) -> dict:
    return {
        "$lookup": {
            "from": from_collection,
            "localField": local_field,
            "foreignField": foreign_field,
            "as": as_field,
        }
    }


def unwind(field: str, keep_empty: bool = False) -> dict:
    path = field if field.startswith("$") else f"${field}"
    if keep_empty:
        return {"$unwind": {"path": path, "preserveNullAndEmptyArrays": True}}
    return {"$unwind": path}


def public_profile(source: str) -> dict:
    """Expression building the public subset of a user found at ``source``."""
    profile = {"_id": f"${source}._id"}
    for name in PUBLIC_PROFILE_FIELDS:
        profile[name] = f"${source}.{name}"
    return profile


def join_owner(local_field: str = "owner", as_field: Optional[str] = None, keep_orphans: bool = False) -> List[dict]:
    """Replace a user reference with that user's public profile."""
    as_field = as_field or local_field
    details = f"{as_field}_details"
    return [
        lookup("user", local_field, "_id", details),
        unwind(details, keep_empty=keep_orphans),
        {"$addFields": {as_field: public_profile(details)}},
        {"$project": {details: 0}},
    ]


def count_of(field: str) -> dict:
    return {"$size": f"${field}"}


def contains(value, array_expr) -> dict:
    return {"$in": [value, array_expr]}


def sort_stage(field: str = DEFAULT_SORT[0], direction: int = DEFAULT_SORT[1]) -> dict:
    # _id breaks ties so pages never overlap
    return {"$sort": {field: direction, "_id": direction}}


def paginate(page: int, limit: int) -> List[dict]:
    return [{"$skip": (page - 1) * limit}, {"$limit": limit}]


def group_into_list(field: str, as_field: str) -> dict:
    return {"$group": {"_id": None, as_field: {"$push": f"${field}"}}}


# -------------------- Pagination --------------------

class Pagination(BaseModel):
    page: int = 1
    limit: int = 10

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def pagination_params(page: str = Query("1"), limit: str = Query("10")) -> Pagination:
    """Normalize page/limit query values; non-positive or non-numeric values are rejected."""
    try:
        page_number, limit_number = int(page), int(limit)
    except (TypeError, ValueError):
        raise BadRequest("Invalid pagination parameters")
    if page_number < 1 or limit_number < 1:
        raise BadRequest("Invalid pagination parameters")
    return Pagination(page=page_number, limit=min(limit_number, MAX_LIMIT))


def sort_params(sort_by: Optional[str], sort_type: Optional[str], allowed) -> Tuple[str, int]:
    if not sort_by:
        return DEFAULT_SORT
    if sort_by not in allowed:
        raise BadRequest(f"Cannot sort by {sort_by}")
    direction = str(sort_type or "desc").lower()
    if direction in ("desc", "-1"):
        return sort_by, -1
    if direction in ("asc", "1"):
        return sort_by, 1
    raise BadRequest("sort_type must be asc or desc")


def page_meta(total: int, pagination: Pagination) -> dict:
    total_pages = math.ceil(total / pagination.limit) if total else 0
    return {
        "total": total,
        "current_page": pagination.page,
        "limit": pagination.limit,
        "total_pages": total_pages,
        "has_next_page": pagination.page < total_pages,
        "has_prev_page": pagination.page > 1,
    }
