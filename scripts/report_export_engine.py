#!/usr/bin/env python3
"""Report export engine: aggregate -> metrics -> plan -> PPTX/DOCX bytes."""

from __future__ import annotations

import argparse
import datetime as dt
import json
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

ROOT = Path(__file__).resolve().parents[1]
ROOT = Path(os.getenv("REPORT_EXPORT_ROOT", str(ROOT))).resolve()

import sys
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.config import load_cfg
from core.errors import EmissionError, MissingInputError
from core.task_model import RunContext, create_run_context
from core.telemetry import TelemetryClient
from scripts.report_aggregate import Aggregate, load_aggregate_from_db, load_aggregate_from_json
from scripts.report_assets import AssetResolver, DirectoryFetcher, Fetch, StorageApiFetcher
from scripts.report_docx_renderer import PageDocumentRenderer, render_report_docx
from scripts.report_layout import ReportPlan, plan_report
from scripts.report_metrics import compute_metrics
from scripts.report_pptx_renderer import render_report_pptx

PPTX_MIME = "application/vnd.openxmlformats-officedocument.presentationml.presentation"
DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
MIME_TYPES = {"pptx": PPTX_MIME, "docx": DOCX_MIME}

_HOSTILE_CHARS = re.compile(r'[<>:"/\\|?*]')


def safe_filename(name: str, ext: str) -> str:
    stem = _HOSTILE_CHARS.sub("", name)[:80].strip()
    return f"{stem or 'report'}.{ext}"


@dataclass
class ExportResult:
    content: bytes
    filename: str
    mime_type: str
    meta: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "mime_type": self.mime_type,
            "size_bytes": len(self.content),
            "meta": dict(self.meta),
        }


def build_fetcher(cfg: Dict[str, Any]) -> Fetch:
    storage = cfg.get("storage", {})
    base_url = str(storage.get("base_url", "")).strip()
    if base_url:
        api_key = os.getenv(str(storage.get("api_key_env", "")), "") if storage.get("api_key_env") else ""
        return StorageApiFetcher(base_url, api_key, timeout=float(storage.get("timeout", 15)))
    root = Path(str(storage.get("root", "storage")))
    return DirectoryFetcher(root if root.is_absolute() else ROOT / root)


def _telemetry_from_cfg(cfg: Dict[str, Any]) -> TelemetryClient | None:
    events_file = str(cfg.get("telemetry", {}).get("events_file", "")).strip()
    if not events_file:
        return None
    return TelemetryClient(events_file=Path(events_file))


def export_report(
    aggregate: Aggregate,
    fetch: Fetch,
    *,
    fmt: str = "pptx",
    cfg: Optional[Dict[str, Any]] = None,
    today: Optional[dt.date] = None,
    telemetry: TelemetryClient | None = None,
    run: RunContext | None = None,
) -> ExportResult:
    """Compile one report into a document.

    Asset failures degrade the affected block and are only reported through
    telemetry. A failure while serializing the container raises EmissionError.
    """
    fmt = str(fmt or "pptx").strip().lower()
    if fmt not in MIME_TYPES:
        raise MissingInputError("Unsupported export format", fmt=fmt)
    cfg = cfg or load_cfg()
    run = run or create_run_context(report_id=aggregate.report.id, fmt=fmt)
    storage = cfg.get("storage", {})
    logo_bucket = str(storage.get("logo_bucket", "branding-logos"))
    started = time.time()

    def emit(action: str, status: str, **kwargs: Any) -> None:
        if telemetry is None:
            return
        try:
            telemetry.emit(module="report_export", action=action, status=status, trace_id=run.trace_id, run_id=run.run_id, **kwargs)
        except OSError:
            # Telemetry is best effort; an unwritable events file never fails an export.
            pass

    def on_asset_failure(bucket: str, path: str, reason: str) -> None:
        emit("asset.fetch", "failed", error_code="ASSET_UNAVAILABLE", error_message=reason, meta={"bucket": bucket, "path": path})

    resolver = AssetResolver(fetch, max_workers=int(storage.get("max_workers", 4)), on_failure=on_asset_failure)
    layout = dict(cfg.get("layout", {}))
    layout["photo_bucket"] = storage.get("photo_bucket", "report-photos")
    if fmt == "pptx":
        layout["max_photos"] = int(layout.get("photo_slot_limit", 6))

    metrics = compute_metrics(aggregate, today, trend_days=int(layout.get("trend_days", 7)))
    plan: ReportPlan = plan_report(
        aggregate,
        metrics,
        resolver,
        layout=layout,
        logo_bucket=logo_bucket,
    )

    page_renderer = PageDocumentRenderer() if fmt == "docx" else None
    try:
        content = render_report_pptx(plan) if page_renderer is None else render_report_docx(plan, page_renderer)
    except Exception as exc:
        emit(
            "export",
            "failed",
            latency_ms=int((time.time() - started) * 1000),
            error_code="EMISSION_FAILURE",
            error_message=f"{type(exc).__name__}: {exc}",
            meta={"fmt": fmt, "report_id": aggregate.report.id},
        )
        raise EmissionError(f"Could not write {fmt} document: {exc}", fmt=fmt, report_id=aggregate.report.id) from exc

    if page_renderer is not None:
        for path in page_renderer.skipped_assets:
            bucket = logo_bucket if path == aggregate.branding.logo_path else str(layout["photo_bucket"])
            on_asset_failure(bucket, path, "image format not supported in docx")

    result = ExportResult(
        content=content,
        filename=safe_filename(aggregate.report.display_name, fmt),
        mime_type=MIME_TYPES[fmt],
        meta={
            "report_id": aggregate.report.id,
            "fmt": fmt,
            "sections": len(plan.sections),
            "metrics": metrics.to_dict(),
            "trace_id": run.trace_id,
            "run_id": run.run_id,
        },
    )
    emit(
        "export",
        "ok",
        latency_ms=int((time.time() - started) * 1000),
        meta={"fmt": fmt, "report_id": aggregate.report.id, "size_bytes": len(content)},
    )
    return result


def run_request(params: Dict[str, Any], *, fetch: Fetch | None = None) -> Dict[str, Any]:
    cfg_path = str(params.get("cfg", "")).strip()
    cfg = load_cfg(Path(cfg_path) if cfg_path else None)
    report_id = str(params.get("report_id", "")).strip()
    tenant_id = str(params.get("tenant_id", "")).strip() or None
    fmt = str(params.get("format", "pptx")).strip().lower()
    branding_defaults = cfg.get("branding", {})

    if str(params.get("snapshot", "")).strip():
        aggregate = load_aggregate_from_json(
            Path(str(params["snapshot"])),
            report_id=report_id or None,
            tenant_id=tenant_id,
            branding_defaults=branding_defaults,
        )
    elif str(params.get("db", "")).strip():
        aggregate = load_aggregate_from_db(
            Path(str(params["db"])),
            report_id,
            tenant_id=tenant_id,
            branding_defaults=branding_defaults,
        )
    else:
        raise MissingInputError("Either db or snapshot is required")

    today = dt.date.fromisoformat(str(params["today"])) if params.get("today") else None
    run = create_run_context(report_id=aggregate.report.id, fmt=fmt)
    result = export_report(
        aggregate,
        fetch or build_fetcher(cfg),
        fmt=fmt,
        cfg=cfg,
        today=today,
        telemetry=_telemetry_from_cfg(cfg),
        run=run,
    )
    out_dir = Path(str(params.get("out_dir", "")).strip() or ROOT / "exports")
    out_dir.mkdir(parents=True, exist_ok=True)
    out_path = out_dir / result.filename
    out_path.write_bytes(result.content)
    payload = result.to_dict()
    payload.update({"ok": True, "path": str(out_path), "run": run.to_dict()})
    return payload


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Export a shutdown report as PPTX or DOCX")
    src = parser.add_mutually_exclusive_group(required=True)
    src.add_argument("--db")
    src.add_argument("--snapshot")
    parser.add_argument("--report-id", default="")
    parser.add_argument("--tenant-id", default="")
    parser.add_argument("--format", choices=sorted(MIME_TYPES), default="pptx")
    parser.add_argument("--out-dir", default="")
    parser.add_argument("--cfg", default="")
    parser.add_argument("--today", default="", help="YYYY-MM-DD, end of the activity window")
    return parser


def main() -> int:
    args = build_cli().parse_args()
    out = run_request(
        {
            "db": args.db or "",
            "snapshot": args.snapshot or "",
            "report_id": args.report_id,
            "tenant_id": args.tenant_id,
            "format": args.format,
            "out_dir": args.out_dir,
            "cfg": args.cfg,
            "today": args.today,
        }
    )
    print(json.dumps(out, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
