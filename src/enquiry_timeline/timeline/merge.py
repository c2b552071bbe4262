"""Timeline merge engine -- dedup by id, newest first.

All functions are pure: they never mutate their inputs and always return a
new list. Output order depends only on item timestamps and ids, never on the
order the inputs arrived in.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime, timezone, tzinfo

from pydantic import BaseModel, Field

from src.enquiry_timeline.timeline.duration import format_breakdown
from src.enquiry_timeline.timeline.schemas import CommunicationType, TimelineItem


def _sort_key(item: TimelineItem) -> tuple[datetime, str]:
    return (item.timestamp, item.id)


def merge_timeline(
    existing: Iterable[TimelineItem],
    incoming: Iterable[TimelineItem],
) -> list[TimelineItem]:
    """Union two item lists keyed by id, sorted by timestamp descending.

    Items in ``incoming`` replace items in ``existing`` with the same id.
    Equal timestamps are ordered by descending id so the result is stable.

    Args:
        existing: Items already on the timeline.
        incoming: Freshly normalized items from one fetch.

    Returns:
        New list with no duplicate ids, newest first.
    """
    by_id: dict[str, TimelineItem] = {}
    for item in existing:
        by_id[item.id] = item
    for item in incoming:
        by_id[item.id] = item
    return sorted(by_id.values(), key=_sort_key, reverse=True)


def filter_by_type(
    items: Iterable[TimelineItem],
    item_type: CommunicationType | str | None,
) -> list[TimelineItem]:
    """Narrow a merged timeline to one item type; ``None`` keeps everything."""
    if item_type is None:
        return list(items)
    wanted = CommunicationType(item_type)
    return [item for item in items if item.type == wanted]


def count_by_type(items: Iterable[TimelineItem]) -> dict[CommunicationType, int]:
    counts = {kind: 0 for kind in CommunicationType}
    for item in items:
        counts[item.type] += 1
    return counts


# ── Summary ─────────────────────────────────────────────────────────────────


class TimelineSummary(BaseModel):
    """Header figures for an enquiry's timeline."""

    total: int = 0
    counts: dict[CommunicationType, int] = Field(default_factory=dict)
    first_contact: datetime | None = None
    days_since_first_contact: int = 0
    time_since_first_contact: str | None = None


def summarize_timeline(
    items: Iterable[TimelineItem],
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> TimelineSummary:
    """Total communications, per-type counts and age of the earliest item."""
    items = list(items)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    if not items:
        return TimelineSummary(counts=count_by_type(items))

    first = min(items, key=_sort_key).timestamp
    elapsed_days = max(0, (now - first).days)

    return TimelineSummary(
        total=len(items),
        counts=count_by_type(items),
        first_contact=first,
        days_since_first_contact=elapsed_days,
        time_since_first_contact=format_breakdown(first, now, tz),
    )


def stage_gaps(
    items: Iterable[TimelineItem],
    tz: tzinfo | None = None,
) -> list[tuple[str, str, str]]:
    """Elapsed time between consecutive items, oldest first.

    Returns:
        ``(from_id, to_id, formatted_gap)`` for each adjacent pair.
    """
    ordered = sorted(items, key=_sort_key)
    return [
        (earlier.id, later.id, format_breakdown(earlier.timestamp, later.timestamp, tz))
        for earlier, later in zip(ordered, ordered[1:])
    ]
