#!/usr/bin/env python3
"""Summarize report export telemetry: outcomes, latency and unavailable assets."""

from __future__ import annotations

import argparse
import json
import os
from collections import Counter
from pathlib import Path
from typing import Any, Dict, List

ROOT = Path(__file__).resolve().parents[1]
ROOT = Path(os.getenv("REPORT_EXPORT_ROOT", str(ROOT))).resolve()

import sys
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.config import load_cfg
from core.telemetry import DEFAULT_EVENTS_FILE, read_events


def summarize(rows: List[Dict[str, Any]], topn: int = 10) -> Dict[str, Any]:
    exports = [r for r in rows if r.get("action") == "export"]
    ok = [r for r in exports if r.get("status") == "ok"]
    failed = [r for r in exports if r.get("status") == "failed"]
    assets = [r for r in rows if r.get("action") == "asset.fetch" and r.get("status") == "failed"]

    by_fmt = Counter(str((r.get("meta") or {}).get("fmt", "unknown")) for r in exports)
    export_errors = Counter(str(r.get("error_code", "") or "UNKNOWN") for r in failed)
    asset_errors = Counter(str(r.get("error_code", "") or "UNKNOWN") for r in assets)
    asset_paths = Counter(str((r.get("meta") or {}).get("path", "")) for r in assets)
    latencies = [int(r.get("latency_ms", 0) or 0) for r in ok]

    return {
        "events_total": len(rows),
        "exports_total": len(exports),
        "exports_ok": len(ok),
        "exports_failed": len(failed),
        "failure_rate_pct": round((len(failed) / len(exports)) * 100, 2) if exports else 0.0,
        "avg_latency_ms": round(sum(latencies) / len(latencies), 1) if latencies else 0.0,
        "by_fmt": dict(by_fmt.most_common()),
        "export_errors": dict(export_errors.most_common(topn)),
        "assets_unavailable": len(assets),
        "asset_errors": dict(asset_errors.most_common(topn)),
        "top_missing_assets": [{"path": path, "count": count} for path, count in asset_paths.most_common(topn)],
    }


def resolve_log(arg: str, cfg: Dict[str, Any]) -> Path:
    raw = arg or str(cfg.get("telemetry", {}).get("events_file", "")).strip()
    path = Path(raw) if raw else DEFAULT_EVENTS_FILE
    return path if path.is_absolute() else ROOT / path


def build_cli() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Report export telemetry summary")
    parser.add_argument("--log", default="", help="events.jsonl; defaults to telemetry.events_file from config")
    parser.add_argument("--cfg", default="")
    parser.add_argument("--topn", type=int, default=10)
    return parser


def main() -> int:
    args = build_cli().parse_args()
    cfg = load_cfg(Path(args.cfg) if args.cfg else None)
    log_path = resolve_log(args.log, cfg)
    report = summarize(read_events(log_path), max(1, int(args.topn)))
    report["log"] = str(log_path)
    print(json.dumps(report, ensure_ascii=False, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
