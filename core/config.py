#!/usr/bin/env python3
"""TOML configuration for the report export pipeline."""

from __future__ import annotations

import copy
import os
import tomllib
from pathlib import Path
from typing import Any, Dict


ROOT = Path(os.getenv("REPORT_EXPORT_ROOT", str(Path(__file__).resolve().parents[1]))).resolve()
CFG_DEFAULT = ROOT / "config" / "report_export.toml"

DEFAULT_CFG: Dict[str, Any] = {
    "branding": {
        "company_name": "Reportz",
        "footer_text": "Generated by Reportz",
        "accent_hex": "C7662D",
    },
    "storage": {
        "root": "storage",
        "base_url": "",
        "api_key_env": "STORAGE_SERVICE_KEY",
        "timeout": 15,
        "logo_bucket": "branding-logos",
        "photo_bucket": "report-photos",
        "max_workers": 4,
    },
    "layout": {
        "photo_slot_limit": 6,
        "entries_per_section": 2,
        "trend_days": 7,
    },
    "telemetry": {
        "events_file": "",
    },
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(out.get(key), dict):
            out[key] = _merge(out[key], value)
        else:
            out[key] = value
    return out


def load_cfg(path: Path | None = None) -> Dict[str, Any]:
    """Load TOML config over the built-in defaults; a missing file means defaults."""
    if path is None:
        path = Path(os.getenv("REPORT_EXPORT_CONFIG", str(CFG_DEFAULT)))
    if not path.is_absolute():
        path = ROOT / path
    if not path.exists():
        return copy.deepcopy(DEFAULT_CFG)
    with path.open("rb") as f:
        return _merge(DEFAULT_CFG, tomllib.load(f))
