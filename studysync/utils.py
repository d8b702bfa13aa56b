from typing import List, Dict, Any, Callable, Optional, Tuple
from datetime import datetime, timezone
import asyncio

from bson import ObjectId
from bson.errors import InvalidId

from .errors import NotFoundError, ValidationError


def is_object_id(value: Any) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


def to_object_id(value: str, label: str = "ID") -> ObjectId:
    """Parse a 24-hex string or raise a 400"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise ValidationError(f"Invalid {label}")


def parse_csv_ids(raw: Optional[str], param: str) -> List[str]:
    """Split a comma separated id list, keeping only valid ids in input order

    Raises:
        ValidationError: the parameter is missing or holds no valid id
    """
    if not raw:
        raise ValidationError(f"{param} parameter is required")

    ids = []
    for part in raw.split(","):
        part = part.strip()
        if is_object_id(part) and part not in ids:
            ids.append(part)

    if not ids:
        raise ValidationError("No valid resource IDs provided")
    return ids


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """MongoDB hands back naive datetimes; treat them as UTC"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def paginate_query(
    model,
    query_filters: dict,
    sort: List[Tuple[str, int]],
    page: int = 1,
    limit: int = 10,
    transform_func: Optional[Callable] = None,
) -> Tuple[List[Any], Dict[str, Any]]:
    """Generic pagination function for MongoDB queries

    Args:
        model: The Beanie document model to query
        query_filters: Dictionary of query filters
        sort: List of (field, direction) pairs
        page: Page number, 1-based (default: 1)
        limit: Items per page (default: 10)
        transform_func: Optional function to transform each item

    Returns:
        Tuple of (items_list, pagination_info)
    """
    skip = (page - 1) * limit

    items = await model.find(query_filters).sort(sort).skip(skip).limit(limit).to_list()

    total_items = await model.find(query_filters).count()
    total_pages = (total_items + limit - 1) // limit if limit > 0 else 1

    result_list = []
    if items:
        if transform_func:
            # Handle both synchronous and asynchronous transform functions
            if asyncio.iscoroutinefunction(transform_func):
                result_list = await asyncio.gather(
                    *[transform_func(item) for item in items]
                )
            else:
                result_list = [transform_func(item) for item in items]
        else:
            result_list = items

    pagination_info = {
        "current_page": page,
        "total_pages": total_pages,
        "total": total_items,
        "limit": limit,
        "has_next_page": page < total_pages,
        "has_prev_page": page > 1,
    }

    return list(result_list), pagination_info


async def get_or_404(model, id: str, name: str = "Item"):
    """Get a document by ID or raise NotFoundError

    Malformed ids are a 400, well-formed but missing ids a 404.
    """
    item = await model.get(to_object_id(id, f"{name.lower()} ID"))
    if not item:
        raise NotFoundError(f"{name} not found")
    return item


async def batch_get(model, ids: List[str]) -> Dict[str, Any]:
    """Get multiple documents by ID in a single query, keyed by string id"""
    object_ids = [ObjectId(i) for i in ids if is_object_id(i)]
    if not object_ids:
        return {}

    items = await model.find({"_id": {"$in": object_ids}}).to_list()
    return {str(item.id): item for item in items}
