"""
Time estimates and completion aggregates.

Everything here is request-scoped: totals are derived from the resources
and the completion ledger on every read and never stored as state.
"""

from dataclasses import dataclass, asdict
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, Mapping, Set, Union

from ..models.enums import ResourceType
from ..models.resource import Resource

DEFAULT_MINS_PER_PAGE = 3

ESTIMATED_TYPES = {
    ResourceType.ARTICLE,
    ResourceType.GOOGLE_DRIVE,
    ResourceType.CUSTOM_LINK,
}


def _number(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def resource_duration(resource: Union[Resource, Mapping[str, Any]]) -> float:
    """Estimated minutes for one resource; unknown types count as 0"""
    if isinstance(resource, Resource):
        rtype, metadata = resource.type, resource.metadata or {}
    else:
        rtype, metadata = resource.get("type"), resource.get("metadata") or {}

    try:
        rtype = ResourceType(rtype)
    except ValueError:
        return 0

    if rtype == ResourceType.YOUTUBE_VIDEO:
        return _number(metadata.get("duration"))
    if rtype == ResourceType.PDF:
        return _number(metadata.get("pages")) * _number(metadata.get("mins_per_page"))
    if rtype in ESTIMATED_TYPES:
        return _number(metadata.get("estimated_mins"))
    return 0


def percent(part: float, whole: float) -> int:
    """round(100 * part / whole) with halves rounded up, 0 for an empty whole"""
    if not whole:
        return 0
    value = Decimal(str(part)) * 100 / Decimal(str(whole))
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _tidy(minutes: float) -> Union[int, float]:
    return int(minutes) if float(minutes).is_integer() else round(minutes, 2)


@dataclass
class ProgressSummary:
    total_resources: int
    completed_resources: int
    total_time: Union[int, float]
    completed_time: Union[int, float]
    remaining_time: Union[int, float]
    resource_percent: int
    time_percent: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _resource_id(resource: Union[Resource, Mapping[str, Any]]) -> str:
    if isinstance(resource, Resource):
        return str(resource.id)
    return str(resource.get("id"))


def summarize(resources: Iterable[Resource], completed_ids: Set[str]) -> ProgressSummary:
    """Aggregate a resource set against the ids the ledger marks complete"""
    resources = list(resources)
    total_time = 0
    completed_time = 0
    completed_count = 0

    for resource in resources:
        minutes = resource_duration(resource)
        total_time += minutes
        if _resource_id(resource) in completed_ids:
            completed_count += 1
            completed_time += minutes

    return ProgressSummary(
        total_resources=len(resources),
        completed_resources=completed_count,
        total_time=_tidy(total_time),
        completed_time=_tidy(completed_time),
        remaining_time=_tidy(total_time - completed_time),
        resource_percent=percent(completed_count, len(resources)),
        time_percent=percent(completed_time, total_time),
    )


def total_time(resources: Iterable[Resource]) -> Union[int, float]:
    return _tidy(sum(resource_duration(r) for r in resources))
