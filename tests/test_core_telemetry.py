#!/usr/bin/env python3
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from core.config import DEFAULT_CFG, load_cfg
from core.errors import EmissionError
from core.registry.service_protocol import from_error
from core.task_model import create_run_context
from core.telemetry import TelemetryClient, read_events


class CoreTelemetryTest(unittest.TestCase):
    def test_emit_and_read(self):
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "nested" / "events.jsonl"
            c = TelemetryClient(events_file=p)
            c.emit(module="report_export", action="export", status="ok", trace_id="t", run_id="r", latency_ms=12, meta={"fmt": "pptx"})
            rows = p.read_text(encoding="utf-8").strip().splitlines()
            self.assertEqual(len(rows), 1)
            obj = json.loads(rows[0])
            self.assertEqual(obj["module"], "report_export")
            self.assertEqual(obj["trace_id"], "t")
            self.assertEqual(obj["meta"], {"fmt": "pptx"})

    def test_read_events_filters_and_skips_bad_lines(self):
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "events.jsonl"
            c = TelemetryClient(events_file=p)
            c.emit(module="report_export", action="asset.fetch", status="failed", error_code="ASSET_UNAVAILABLE")
            with p.open("a", encoding="utf-8") as f:
                f.write("{not json\n")
            c.emit(module="report_export", action="export", status="ok")
            self.assertEqual(len(read_events(p)), 2)
            self.assertEqual(read_events(p, status="failed")[0]["error_code"], "ASSET_UNAVAILABLE")
            self.assertEqual(read_events(p, action="export", status="failed"), [])
            self.assertEqual(read_events(Path(td) / "absent.jsonl"), [])

    def test_error_envelope_from_typed_error(self):
        env = from_error("report.export", EmissionError("zip broke", fmt="pptx")).to_dict()
        self.assertFalse(env["ok"])
        self.assertEqual(env["error_code"], "emission_failure")
        self.assertEqual(env["details"], {"fmt": "pptx"})

    def test_run_context_env_injection(self):
        with mock.patch.dict("os.environ", {"REPORT_EXPORT_TRACE_ID": "trace-x"}):
            ctx = create_run_context(report_id="r1", fmt="docx")
        self.assertEqual(ctx.trace_id, "trace-x")
        self.assertTrue(ctx.run_id.startswith("run_"))
        self.assertEqual(ctx.to_dict()["report_id"], "r1")


class CoreConfigTest(unittest.TestCase):
    def test_missing_file_gives_defaults(self):
        cfg = load_cfg(Path("/nonexistent/report_export.toml"))
        self.assertEqual(cfg, DEFAULT_CFG)
        cfg["layout"]["photo_slot_limit"] = 1
        self.assertEqual(DEFAULT_CFG["layout"]["photo_slot_limit"], 6)

    def test_file_overrides_merge(self):
        with tempfile.TemporaryDirectory() as td:
            p = Path(td) / "cfg.toml"
            p.write_text("[layout]\nphoto_slot_limit = 4\n[branding]\ncompany_name = \"Acme\"\n", encoding="utf-8")
            cfg = load_cfg(p)
        self.assertEqual(cfg["layout"]["photo_slot_limit"], 4)
        self.assertEqual(cfg["layout"]["trend_days"], 7)
        self.assertEqual(cfg["branding"]["company_name"], "Acme")
        self.assertEqual(cfg["branding"]["accent_hex"], "C7662D")


if __name__ == "__main__":
    unittest.main()
