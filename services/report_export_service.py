#!/usr/bin/env python3
"""Report export service wrapper."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Dict

ROOT = Path(__file__).resolve().parents[1]
ROOT = Path(os.getenv("REPORT_EXPORT_ROOT", str(ROOT))).resolve()

import sys
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from core.errors import MissingInputError
from core.registry.service_protocol import ExportArtifact, ServiceEnvelope, from_error, ok_response
from scripts.report_assets import Fetch
from scripts.report_export_engine import run_request

SERVICE = "report.export"


class ReportExportService:
    def __init__(self, root: Path = ROOT, fetch: Fetch | None = None):
        self.root = Path(root)
        self.fetch = fetch

    def run(self, params: Dict[str, Any]) -> ServiceEnvelope:
        meta = {"entrypoint": "report_export_engine"}
        params = dict(params)
        if not str(params.get("out_dir", "")).strip():
            params["out_dir"] = str(self.root / "exports")
        try:
            payload = run_request(params, fetch=self.fetch)
        except MissingInputError as exc:
            return from_error(SERVICE, exc, meta=meta)
        artifact = ExportArtifact(path=payload["path"], mime_type=payload["mime_type"], size_bytes=payload["size_bytes"])
        payload["artifacts"] = {"items": [artifact.to_dict()]}
        return ok_response(SERVICE, payload=payload, meta=meta)
