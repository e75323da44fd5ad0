#!/usr/bin/env python3
"""Layout planner: turn an aggregate and its metrics into format-neutral blocks.

The planner decides what goes on each page or slide, the colors and the
designer-fixed proportions. Emitters implement ``BlockRenderer`` and are driven
block by block through ``render_plan``; they never look at the aggregate.
"""

from __future__ import annotations

import abc
import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from scripts.report_aggregate import Aggregate, EntryKind, WorkItem
from scripts.report_assets import AssetResolver, ResolvedAsset
from scripts.report_metrics import ReportMetrics, bar_percent

GREEN = "1B8F5A"
AMBER = "B67710"
RED = "B92C2C"
SLATE = "64748B"
INK = "0F172A"
TRACK = "E2E8F0"

STATUS_COLORS = {"complete": GREEN, "open": AMBER, "cancelled": RED, "archived": SLATE}

REPORT_HEADING = "Shutdown Completion Report"
NO_ENTRIES = "No entries."
NO_PHOTOS = "No photos logged."


def tint(hex_color: str, ratio: float) -> str:
    """Blend a 6-digit hex color toward white by ``ratio`` (0..1)."""
    channels = [int(hex_color[i:i + 2], 16) for i in (0, 2, 4)]
    mixed = [int(round(c + (255 - c) * ratio)) for c in channels]
    return "".join(f"{c:02X}" for c in mixed)


def grid_position(index: int, columns: int = 2) -> Tuple[int, int]:
    return index % columns, index // columns


@dataclass(frozen=True)
class TitleBlock:
    company: str
    heading: str
    report_name: str
    period: str
    date_range: str
    footer: str
    logo: Optional[ResolvedAsset] = None


@dataclass(frozen=True)
class KpiCard:
    label: str
    value: int
    fill: str
    text_color: str


@dataclass(frozen=True)
class KpiRow:
    cards: Tuple[KpiCard, ...]


@dataclass(frozen=True)
class MixSegment:
    label: str
    value: int
    percent: int
    width: int
    color: str


@dataclass(frozen=True)
class StatusMixBar:
    segments: Tuple[MixSegment, ...]


@dataclass(frozen=True)
class ComplianceGauge:
    percent: int
    completed: int
    total: int
    remaining: int
    color: str = GREEN
    track: str = TRACK

    @property
    def caption(self) -> str:
        return f"{self.completed} completed of {self.total} total"


@dataclass(frozen=True)
class TrendRow:
    label: str
    count: int
    width: int


@dataclass(frozen=True)
class TrendTable:
    rows: Tuple[TrendRow, ...]
    max_count: int


@dataclass(frozen=True)
class EntrySection:
    title: str
    lines: Tuple[str, ...]


@dataclass(frozen=True)
class ItemDetailBlock:
    item_id: str
    header: str
    status: str
    status_color: str
    caption: str
    sections: Tuple[EntrySection, ...]

    @property
    def status_label(self) -> str:
        return f"Status: {self.status.upper()}"


@dataclass(frozen=True)
class GalleryPhoto:
    path: str
    asset: Optional[ResolvedAsset]


@dataclass(frozen=True)
class PhotoGallery:
    photos: Tuple[GalleryPhoto, ...]
    slot_limit: int = 6
    columns: int = 2

    def slide_photos(self) -> List[ResolvedAsset]:
        """First ``slot_limit`` candidates that resolved, in entry order."""
        return [p.asset for p in self.photos[: self.slot_limit] if p.asset is not None]

    def page_photos(self) -> List[ResolvedAsset]:
        return [p.asset for p in self.photos if p.asset is not None]


@dataclass(frozen=True)
class FollowUpList:
    rows: Tuple[Tuple[str, str], ...]


@dataclass
class Section:
    kind: str
    blocks: List[Any] = field(default_factory=list)
    page_break_after: bool = False


@dataclass
class ReportPlan:
    title: str
    company: str
    header_text: str
    footer_text: str
    accent: str
    accent_soft: str
    sections: List[Section] = field(default_factory=list)

    def blocks(self) -> Iterator[Any]:
        for section in self.sections:
            yield from section.blocks

    def sections_of(self, kind: str) -> List[Section]:
        return [s for s in self.sections if s.kind == kind]


class BlockRenderer(abc.ABC):
    """One implementation per output container."""

    def begin_section(self, section: Section, plan: ReportPlan) -> None:
        pass

    def end_section(self, section: Section, plan: ReportPlan) -> None:
        pass

    @abc.abstractmethod
    def render_title(self, block: TitleBlock, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_kpi_row(self, block: KpiRow, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_status_mix(self, block: StatusMixBar, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_compliance(self, block: ComplianceGauge, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_trend(self, block: TrendTable, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_item_detail(self, block: ItemDetailBlock, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_gallery(self, block: PhotoGallery, plan: ReportPlan) -> None: ...

    @abc.abstractmethod
    def render_follow_ups(self, block: FollowUpList, plan: ReportPlan) -> None: ...


_DISPATCH = {
    TitleBlock: "render_title",
    KpiRow: "render_kpi_row",
    StatusMixBar: "render_status_mix",
    ComplianceGauge: "render_compliance",
    TrendTable: "render_trend",
    ItemDetailBlock: "render_item_detail",
    PhotoGallery: "render_gallery",
    FollowUpList: "render_follow_ups",
}


def render_plan(plan: ReportPlan, renderer: BlockRenderer) -> BlockRenderer:
    for section in plan.sections:
        renderer.begin_section(section, plan)
        for block in section.blocks:
            method = _DISPATCH.get(type(block))
            if method is None:
                raise TypeError(f"no renderer for block {type(block).__name__}")
            getattr(renderer, method)(block, plan)
        renderer.end_section(section, plan)
    return renderer


def _month_year(value: Optional[dt.date]) -> str:
    return value.strftime("%B %Y") if value else "N/A"


def _date_range(start: Optional[dt.date], end: Optional[dt.date]) -> str:
    if start and end:
        return f"{start.isoformat()} to {end.isoformat()}"
    if start:
        return f"From {start.isoformat()}"
    return ""


def _title_block(aggregate: Aggregate, resolver: Optional[AssetResolver], logo_bucket: str) -> TitleBlock:
    branding = aggregate.branding
    logo = resolver.resolve(logo_bucket, branding.logo_path) if resolver and branding.logo_path else None
    return TitleBlock(
        company=branding.company_name,
        heading=REPORT_HEADING,
        report_name=aggregate.report.display_name,
        period=_month_year(aggregate.report.start_date),
        date_range=_date_range(aggregate.report.start_date, aggregate.report.end_date),
        footer=branding.footer_text,
        logo=logo,
    )


def _summary_blocks(metrics: ReportMetrics) -> List[Any]:
    counts = metrics.counts
    kpis = KpiRow(
        cards=(
            KpiCard("Total", counts.total, "F8FAFF", INK),
            KpiCard("Completed", counts.completed, "EAF8F0", GREEN),
            KpiCard("Open", counts.open, "FFF7E4", AMBER),
            KpiCard("Cancelled", counts.cancelled, "FCEDEE", RED),
        )
    )
    mix_values = [
        ("Completed", counts.completed, counts.completed_pct, GREEN),
        ("Open", counts.open, counts.open_pct, AMBER),
        ("Cancelled", counts.cancelled, counts.cancelled_pct, RED),
    ]
    mix = StatusMixBar(
        segments=tuple(
            MixSegment(label=label, value=value, percent=pct, width=width, color=color)
            for (label, value, pct, color), width in zip(mix_values, metrics.mix_widths)
        )
    )
    gauge = ComplianceGauge(
        percent=metrics.compliance_pct,
        completed=counts.completed,
        total=counts.total,
        remaining=counts.remaining,
    )
    max_count = metrics.max_trend
    trend = TrendTable(
        rows=tuple(TrendRow(label=d.label, count=d.count, width=bar_percent(d.count, max_count)) for d in metrics.trend),
        max_count=max_count,
    )
    return [kpis, mix, gauge, trend]


def _item_blocks(
    aggregate: Aggregate,
    item: WorkItem,
    metrics: ReportMetrics,
    resolver: Optional[AssetResolver],
    layout: Dict[str, Any],
) -> List[Any]:
    per_section = int(layout.get("entries_per_section", 2))
    newest = aggregate.entries_for(item.id, newest_first=True)
    sections = []
    for title, kind in (("Comments", EntryKind.GENERAL), ("Issues", EntryKind.ISSUE)):
        rows = [e for e in newest if e.kind == kind][:per_section]
        sections.append(EntrySection(title=title, lines=tuple(e.text or "No comment" for e in rows)))
    detail = ItemDetailBlock(
        item_id=item.id,
        header=f"{item.code} | {item.title or 'Untitled work order'}",
        status=item.status,
        status_color=STATUS_COLORS.get(item.status, AMBER),
        caption=metrics.captions.get(item.id, ""),
        sections=tuple(sections),
    )

    paths = [path for entry in aggregate.entries_for(item.id) for path in entry.photo_paths]
    max_photos = layout.get("max_photos")
    if max_photos is not None:
        paths = paths[: int(max_photos)]
    assets = resolver.resolve_many(str(layout.get("photo_bucket", "report-photos")), paths) if resolver else [None] * len(paths)
    gallery = PhotoGallery(
        photos=tuple(GalleryPhoto(path=p, asset=a) for p, a in zip(paths, assets)),
        slot_limit=int(layout.get("photo_slot_limit", 6)),
    )
    return [detail, gallery]


def _follow_up_block(aggregate: Aggregate) -> Optional[FollowUpList]:
    rows = []
    for item in aggregate.items:
        for entry in aggregate.entries_for(item.id, newest_first=True):
            if entry.kind == EntryKind.FOLLOW_UP and entry.text:
                rows.append((item.code, entry.text))
    return FollowUpList(rows=tuple(rows)) if rows else None


def plan_report(
    aggregate: Aggregate,
    metrics: ReportMetrics,
    resolver: Optional[AssetResolver] = None,
    *,
    layout: Optional[Dict[str, Any]] = None,
    logo_bucket: str = "branding-logos",
) -> ReportPlan:
    """Build the ordered sections for one report.

    ``layout`` carries ``entries_per_section``, ``photo_slot_limit``,
    ``photo_bucket`` and an optional ``max_photos`` cap on photo candidates
    resolved per item.
    """
    layout = layout or {}
    branding = aggregate.branding
    plan = ReportPlan(
        title=f"{aggregate.report.display_name} - Shutdown Report",
        company=branding.company_name,
        header_text=branding.header_text or branding.company_name,
        footer_text=branding.footer_text,
        accent=branding.accent_hex,
        accent_soft=tint(branding.accent_hex, 0.85),
    )
    plan.sections.append(Section(kind="title", blocks=[_title_block(aggregate, resolver, logo_bucket)]))
    plan.sections.append(Section(kind="summary", blocks=_summary_blocks(metrics), page_break_after=True))
    for item in aggregate.items:
        plan.sections.append(
            Section(kind="item", blocks=_item_blocks(aggregate, item, metrics, resolver, layout), page_break_after=True)
        )
    follow_ups = _follow_up_block(aggregate)
    if follow_ups is not None:
        plan.sections.append(Section(kind="follow_up", blocks=[follow_ups]))
    plan.sections[-1].page_break_after = False
    return plan
