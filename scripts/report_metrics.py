#!/usr/bin/env python3
"""Completion, status-mix and activity metrics for a report aggregate."""

from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, Iterable, List, Optional, Sequence

from scripts.report_aggregate import Aggregate, Entry, WorkItem, display_text, entry_kind

__all__ = [
    "ReportMetrics",
    "StatusCounts",
    "TrendDay",
    "activity_trend",
    "bar_percent",
    "compute_metrics",
    "display_text",
    "entry_kind",
    "local_date",
    "percentage",
    "status_caption",
    "status_mix_widths",
]


def percentage(part: int, whole: int) -> int:
    """Whole-number percentage, rounding halves up; 0 for an empty whole."""
    if not whole:
        return 0
    value = Decimal(100 * part) / Decimal(whole)
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def status_mix_widths(values: Sequence[int]) -> List[int]:
    """Integer widths out of 100 for a proportional bar.

    Each width is an independent percentage. A nonzero value that rounds to 0
    still gets width 1 so it stays visible. If the widths then do not sum to
    100, the residual goes to the largest width (first wins on ties).
    """
    total = sum(values)
    if total <= 0:
        return [0 for _ in values]
    widths = [max(percentage(v, total), 1) if v > 0 else 0 for v in values]
    residual = 100 - sum(widths)
    if residual:
        largest = max(range(len(widths)), key=lambda idx: (widths[idx], -idx))
        widths[largest] += residual
    return widths


def bar_percent(count: int, max_count: int) -> int:
    return percentage(count, max(max_count, 1))


def local_date(stamp: dt.datetime) -> dt.date:
    if stamp.tzinfo is not None:
        return stamp.astimezone().date()
    return stamp.date()


@dataclass(frozen=True)
class TrendDay:
    day: dt.date
    count: int

    @property
    def label(self) -> str:
        return self.day.strftime("%a %d %b")


def activity_trend(entries: Iterable[Entry], today: Optional[dt.date] = None, days: int = 7) -> List[TrendDay]:
    today = today or dt.date.today()
    window = [today - dt.timedelta(days=offset) for offset in range(days - 1, -1, -1)]
    counts = {day: 0 for day in window}
    for entry in entries:
        if entry.created_at is None:
            continue
        day = local_date(entry.created_at)
        if day in counts:
            counts[day] += 1
    return [TrendDay(day=day, count=counts[day]) for day in window]


def _format_stamp(stamp: dt.datetime) -> str:
    if stamp.tzinfo is not None:
        stamp = stamp.astimezone()
    return stamp.strftime("%Y-%m-%d %H:%M")


def status_caption(item: WorkItem) -> str:
    if item.is_cancelled:
        return f"Reason: {item.cancelled_reason or 'Not provided'}"
    if item.is_complete:
        return f"Completed at: {_format_stamp(item.completed_at) if item.completed_at else 'N/A'}"
    return "In progress"


@dataclass(frozen=True)
class StatusCounts:
    total: int
    completed: int
    cancelled: int

    @property
    def open(self) -> int:
        return self.total - self.completed - self.cancelled

    @property
    def completed_pct(self) -> int:
        return percentage(self.completed, self.total)

    @property
    def open_pct(self) -> int:
        return percentage(self.open, self.total)

    @property
    def cancelled_pct(self) -> int:
        return percentage(self.cancelled, self.total)

    @property
    def remaining(self) -> int:
        return max(self.total - self.completed, 0)


@dataclass(frozen=True)
class ReportMetrics:
    counts: StatusCounts
    mix_widths: List[int]
    trend: List[TrendDay]
    captions: Dict[str, str] = field(default_factory=dict)

    @property
    def compliance_pct(self) -> int:
        return self.counts.completed_pct

    @property
    def max_trend(self) -> int:
        return max([day.count for day in self.trend] + [1])

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.counts.total,
            "completed": self.counts.completed,
            "open": self.counts.open,
            "cancelled": self.counts.cancelled,
            "percentages": {
                "completed": self.counts.completed_pct,
                "open": self.counts.open_pct,
                "cancelled": self.counts.cancelled_pct,
            },
            "mix_widths": list(self.mix_widths),
            "compliance": {"percent": self.compliance_pct, "remaining": self.counts.remaining},
            "trend": [{"day": d.day.isoformat(), "count": d.count} for d in self.trend],
            "max_trend": self.max_trend,
        }


def compute_metrics(aggregate: Aggregate, today: Optional[dt.date] = None, *, trend_days: int = 7) -> ReportMetrics:
    items = aggregate.items
    counts = StatusCounts(
        total=len(items),
        completed=sum(1 for item in items if item.is_complete),
        cancelled=sum(1 for item in items if item.is_cancelled),
    )
    return ReportMetrics(
        counts=counts,
        mix_widths=status_mix_widths([counts.completed, counts.open, counts.cancelled]),
        trend=activity_trend(aggregate.entries, today, trend_days),
        captions={item.id: status_caption(item) for item in items},
    )
