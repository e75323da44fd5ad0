#!/usr/bin/env python3
"""Aggregate loader: one report, its branding, work orders and their entries."""

from __future__ import annotations

import argparse
import datetime as dt
import enum
import json
import os
import re
import sqlite3
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

ROOT = Path(__file__).resolve().parents[1]
ROOT = Path(os.getenv("REPORT_EXPORT_ROOT", str(ROOT))).resolve()

import sys
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.errors import MissingInputError


ARCHIVE_PREFIX = "[ARCHIVED] "
ISSUE_PREFIX = "__ISSUE__:"
FOLLOW_UP_PREFIX = "__NEXT_SHUT__:"
DEFAULT_ACCENT = "C7662D"
DEFAULT_COMPANY = "Reportz"
DEFAULT_FOOTER = "Generated by Reportz"

_HEX_RE = re.compile(r"^[0-9A-Fa-f]{6}$")


class EntryKind(str, enum.Enum):
    GENERAL = "general"
    ISSUE = "issue"
    FOLLOW_UP = "follow_up"


_PREFIXES: Tuple[Tuple[str, EntryKind], ...] = (
    (ISSUE_PREFIX, EntryKind.ISSUE),
    (FOLLOW_UP_PREFIX, EntryKind.FOLLOW_UP),
)


def entry_kind(comment: Optional[str]) -> EntryKind:
    if not comment:
        return EntryKind.GENERAL
    for prefix, kind in _PREFIXES:
        if comment.startswith(prefix):
            return kind
    return EntryKind.GENERAL


def display_text(comment: Optional[str]) -> Optional[str]:
    """Strip the hidden kind prefix; None when nothing readable remains."""
    if not comment:
        return None
    text = comment
    for prefix, _kind in _PREFIXES:
        if text.startswith(prefix):
            text = text[len(prefix):]
            break
    return text.strip() or None


def tag_comment(kind: EntryKind, text: str) -> str:
    cleaned = text.strip()
    for prefix, prefix_kind in _PREFIXES:
        if prefix_kind == kind:
            return f"{prefix} {cleaned}".strip()
    return cleaned


def normalize_hex(raw: Optional[str], fallback: str = DEFAULT_ACCENT) -> str:
    cleaned = str(raw or "").strip()
    if cleaned.startswith("#"):
        cleaned = cleaned[1:]
    return cleaned.upper() if _HEX_RE.match(cleaned) else fallback


def strip_archive_prefix(name: str) -> str:
    if name.startswith(ARCHIVE_PREFIX):
        return name[len(ARCHIVE_PREFIX):]
    return name


def parse_timestamp(value: Any) -> Optional[dt.datetime]:
    if isinstance(value, dt.datetime):
        return value
    text = str(value or "").strip()
    if not text:
        return None
    try:
        return dt.datetime.fromisoformat(text)
    except ValueError:
        return None


def parse_date(value: Any) -> Optional[dt.date]:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    stamp = parse_timestamp(value)
    return stamp.date() if stamp else None


@dataclass(frozen=True)
class Report:
    id: str
    tenant_id: str
    name: str
    start_date: Optional[dt.date] = None
    end_date: Optional[dt.date] = None
    status: str = ""

    @property
    def display_name(self) -> str:
        return strip_archive_prefix(self.name)


@dataclass(frozen=True)
class Branding:
    company_name: str = DEFAULT_COMPANY
    header_text: str = ""
    footer_text: str = DEFAULT_FOOTER
    accent_hex: str = DEFAULT_ACCENT
    logo_path: str = ""


@dataclass(frozen=True)
class WorkItem:
    id: str
    report_id: str
    code: str
    title: Optional[str]
    status: str
    cancelled_reason: Optional[str] = None
    completed_at: Optional[dt.datetime] = None

    @property
    def is_complete(self) -> bool:
        return self.status == "complete"

    @property
    def is_cancelled(self) -> bool:
        return self.status == "cancelled"


@dataclass(frozen=True)
class Entry:
    id: str
    work_item_id: str
    kind: EntryKind
    text: Optional[str]
    photo_paths: Tuple[str, ...] = ()
    created_at: Optional[dt.datetime] = None
    author: str = ""


@dataclass(frozen=True)
class Aggregate:
    report: Report
    branding: Branding
    items: Tuple[WorkItem, ...] = ()
    entries: Tuple[Entry, ...] = ()
    has_branding: bool = False
    _by_item: Dict[str, Tuple[Entry, ...]] = field(default_factory=dict, repr=False, compare=False)

    def entries_for(self, item_id: str, *, newest_first: bool = False) -> List[Entry]:
        rows = list(self._by_item.get(item_id, ()))
        return rows[::-1] if newest_first else rows


def sanitize_branding(row: Optional[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None) -> Branding:
    defaults = defaults or {}
    fallback_accent = normalize_hex(defaults.get("accent_hex"), DEFAULT_ACCENT)
    company = str(defaults.get("company_name") or DEFAULT_COMPANY)
    footer = str(defaults.get("footer_text") or DEFAULT_FOOTER)
    if not row:
        return Branding(company_name=company, footer_text=footer, accent_hex=fallback_accent)
    return Branding(
        company_name=str(row.get("company_name") or company),
        header_text=str(row.get("header_text") or ""),
        footer_text=str(row.get("footer_text") or footer),
        accent_hex=normalize_hex(row.get("accent_hex"), fallback_accent),
        logo_path=str(row.get("logo_path") or "").strip(),
    )


def _work_item(row: Dict[str, Any], report_id: str) -> WorkItem:
    status = str(row.get("status") or "open").strip().lower()
    reason = str(row.get("cancelled_reason") or "").strip() if status == "cancelled" else ""
    completed_at = parse_timestamp(row.get("completed_at")) if status == "complete" else None
    return WorkItem(
        id=str(row["id"]),
        report_id=str(row.get("report_id") or report_id),
        code=str(row.get("wo_number") or ""),
        title=row.get("title") or None,
        status=status,
        cancelled_reason=reason or None,
        completed_at=completed_at,
    )


def _photo_paths(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw) if raw.strip() else []
        except json.JSONDecodeError:
            raw = [raw]
    if not isinstance(raw, (list, tuple)):
        return ()
    return tuple(str(p).strip() for p in raw if str(p or "").strip())


def _entry(row: Dict[str, Any]) -> Entry:
    comment = row.get("comment")
    return Entry(
        id=str(row["id"]),
        work_item_id=str(row["work_order_id"]),
        kind=entry_kind(comment),
        text=display_text(comment),
        photo_paths=_photo_paths(row.get("photo_urls")),
        created_at=parse_timestamp(row.get("created_at")),
        author=str(row.get("created_by") or row.get("author") or ""),
    )


def _sort_key(entry: Entry) -> Tuple[int, float]:
    # Unparseable timestamps sort last.
    if entry.created_at is None:
        return (1, 0.0)
    stamp = entry.created_at
    if stamp.tzinfo is None:
        stamp = stamp.astimezone()
    return (0, stamp.timestamp())


def assemble(
    report_row: Dict[str, Any],
    branding_row: Optional[Dict[str, Any]],
    work_order_rows: List[Dict[str, Any]],
    update_rows: List[Dict[str, Any]],
    *,
    branding_defaults: Optional[Dict[str, Any]] = None,
) -> Aggregate:
    report = Report(
        id=str(report_row["id"]),
        tenant_id=str(report_row.get("tenant_id") or ""),
        name=str(report_row.get("name") or ""),
        start_date=parse_date(report_row.get("start_date")),
        end_date=parse_date(report_row.get("end_date")),
        status=str(report_row.get("status") or ""),
    )
    items = tuple(_work_item(row, report.id) for row in work_order_rows)
    item_ids = {item.id for item in items}
    entries = sorted(
        (_entry(row) for row in update_rows if str(row.get("work_order_id")) in item_ids),
        key=_sort_key,
    )
    by_item: Dict[str, List[Entry]] = {}
    for entry in entries:
        by_item.setdefault(entry.work_item_id, []).append(entry)
    return Aggregate(
        report=report,
        branding=sanitize_branding(branding_row, branding_defaults),
        items=items,
        entries=tuple(entries),
        has_branding=bool(branding_row),
        _by_item={key: tuple(rows) for key, rows in by_item.items()},
    )


def _check_report(report_row: Optional[Dict[str, Any]], report_id: str, tenant_id: Optional[str]) -> Dict[str, Any]:
    if not report_row:
        raise MissingInputError("Report not found", report_id=report_id)
    if tenant_id and str(report_row.get("tenant_id") or "") != str(tenant_id):
        raise MissingInputError("Report does not belong to tenant", report_id=report_id, tenant_id=tenant_id)
    return report_row


def init_schema(conn: sqlite3.Connection) -> None:
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS reports (
          id TEXT PRIMARY KEY,
          tenant_id TEXT NOT NULL,
          name TEXT NOT NULL,
          start_date TEXT,
          end_date TEXT,
          status TEXT DEFAULT 'active'
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS tenant_branding (
          tenant_id TEXT PRIMARY KEY,
          company_name TEXT,
          header_text TEXT,
          footer_text TEXT,
          logo_path TEXT,
          accent_hex TEXT
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS work_orders (
          id TEXT PRIMARY KEY,
          report_id TEXT NOT NULL,
          wo_number TEXT NOT NULL,
          title TEXT,
          status TEXT NOT NULL DEFAULT 'open',
          cancelled_reason TEXT,
          completed_at TEXT
        )
        """
    )
    conn.execute(
        """
        CREATE TABLE IF NOT EXISTS wo_updates (
          id TEXT PRIMARY KEY,
          work_order_id TEXT NOT NULL,
          comment TEXT,
          photo_urls TEXT DEFAULT '[]',
          created_at TEXT NOT NULL,
          created_by TEXT
        )
        """
    )
    conn.execute("CREATE INDEX IF NOT EXISTS idx_work_orders_report ON work_orders(report_id, wo_number)")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_wo_updates_wo_created ON wo_updates(work_order_id, created_at)")
    conn.commit()


def load_aggregate_from_db(
    db_path: Path,
    report_id: str,
    *,
    tenant_id: Optional[str] = None,
    branding_defaults: Optional[Dict[str, Any]] = None,
) -> Aggregate:
    if not str(report_id or "").strip():
        raise MissingInputError("Missing reportId")
    if not Path(db_path).exists():
        raise MissingInputError("Report database not found", db_path=str(db_path))
    conn = sqlite3.connect(str(db_path))
    conn.row_factory = sqlite3.Row
    try:
        row = conn.execute(
            "SELECT id, tenant_id, name, start_date, end_date, status FROM reports WHERE id=?",
            (report_id,),
        ).fetchone()
        report_row = _check_report(dict(row) if row else None, report_id, tenant_id)
        branding = conn.execute(
            "SELECT company_name, header_text, footer_text, logo_path, accent_hex FROM tenant_branding WHERE tenant_id=?",
            (report_row["tenant_id"],),
        ).fetchone()
        work_orders = [
            dict(r)
            for r in conn.execute(
                "SELECT id, report_id, wo_number, title, status, cancelled_reason, completed_at "
                "FROM work_orders WHERE report_id=? ORDER BY wo_number",
                (report_id,),
            )
        ]
        updates: List[Dict[str, Any]] = []
        if work_orders:
            marks = ",".join("?" for _ in work_orders)
            updates = [
                dict(r)
                for r in conn.execute(
                    f"SELECT id, work_order_id, comment, photo_urls, created_at, created_by "
                    f"FROM wo_updates WHERE work_order_id IN ({marks}) ORDER BY created_at ASC",
                    [w["id"] for w in work_orders],
                )
            ]
    finally:
        conn.close()
    return assemble(
        report_row,
        dict(branding) if branding else None,
        work_orders,
        updates,
        branding_defaults=branding_defaults,
    )


def build_aggregate(
    payload: Dict[str, Any],
    *,
    report_id: Optional[str] = None,
    tenant_id: Optional[str] = None,
    branding_defaults: Optional[Dict[str, Any]] = None,
) -> Aggregate:
    """Build from a snapshot dict with report, branding, work_orders and updates."""
    report_row = payload.get("report") if isinstance(payload.get("report"), dict) else None
    wanted = str(report_id or (report_row or {}).get("id") or "").strip()
    if not wanted:
        raise MissingInputError("Missing reportId")
    if report_row and str(report_row.get("id")) != wanted:
        report_row = None
    report_row = _check_report(report_row, wanted, tenant_id)
    work_orders = [row for row in payload.get("work_orders", []) or [] if isinstance(row, dict)]
    work_orders.sort(key=lambda row: str(row.get("wo_number") or ""))
    updates = [row for row in payload.get("updates", []) or [] if isinstance(row, dict)]
    branding = payload.get("branding") if isinstance(payload.get("branding"), dict) else None
    return assemble(report_row, branding, work_orders, updates, branding_defaults=branding_defaults)


def load_aggregate_from_json(path: Path, **kwargs: Any) -> Aggregate:
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    return build_aggregate(payload, **kwargs)


def aggregate_summary(aggregate: Aggregate) -> Dict[str, Any]:
    kinds: Dict[str, int] = {kind.value: 0 for kind in EntryKind}
    for entry in aggregate.entries:
        kinds[entry.kind.value] += 1
    return {
        "report_id": aggregate.report.id,
        "display_name": aggregate.report.display_name,
        "tenant_id": aggregate.report.tenant_id,
        "work_orders": len(aggregate.items),
        "entries": len(aggregate.entries),
        "entry_kinds": kinds,
        "photos": sum(len(entry.photo_paths) for entry in aggregate.entries),
        "accent_hex": aggregate.branding.accent_hex,
        "has_branding": aggregate.has_branding,
    }


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Load a report aggregate and print its summary")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--db")
    src.add_argument("--snapshot")
    parser.add_argument("--report-id", default="")
    parser.add_argument("--tenant-id", default="")
    return parser


def main() -> int:
    args = build_cli().parse_args()
    if args.db:
        aggregate = load_aggregate_from_db(Path(args.db), args.report_id, tenant_id=args.tenant_id or None)
    else:
        aggregate = load_aggregate_from_json(Path(args.snapshot), report_id=args.report_id or None, tenant_id=args.tenant_id or None)
    print(json.dumps(aggregate_summary(aggregate), ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
