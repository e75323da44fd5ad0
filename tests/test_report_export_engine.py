#!/usr/bin/env python3
import io
import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock
from zipfile import ZipFile

from docx import Document

from core.config import load_cfg
from core.errors import EmissionError, MissingInputError
from core.telemetry import TelemetryClient, read_events
from scripts.report_assets import DirectoryFetcher, StorageApiFetcher
from scripts.report_export_engine import (
    DOCX_MIME,
    PPTX_MIME,
    build_fetcher,
    export_report,
    run_request,
    safe_filename,
)
from services.report_export_service import ReportExportService
from tests.report_fixtures import TODAY, DictFetch, aggregate_from, scenario_a_payload, scenario_b_payload


def _write_cfg(td: Path) -> Path:
    cfg = td / "report_export.toml"
    cfg.write_text(
        "[telemetry]\n"
        f"events_file = \"{(td / 'events.jsonl').as_posix()}\"\n"
        "[storage]\n"
        f"root = \"{(td / 'storage').as_posix()}\"\n",
        encoding="utf-8",
    )
    return cfg


class ReportExportEngineTest(unittest.TestCase):
    def setUp(self):
        self.cfg = load_cfg(Path("/nonexistent/report_export.toml"))

    def test_safe_filename(self):
        self.assertEqual(safe_filename('a<b>:c"/\\|?*d', "pptx"), "abcd.pptx")
        self.assertEqual(safe_filename("x" * 100, "docx"), "x" * 80 + ".docx")
        self.assertEqual(safe_filename("???", "pptx"), "report.pptx")

    def test_export_pptx(self):
        result = export_report(aggregate_from(scenario_a_payload()), DictFetch(), fmt="pptx", cfg=self.cfg, today=TODAY)
        self.assertEqual(result.mime_type, PPTX_MIME)
        self.assertEqual(result.filename, "Spring Outage.pptx")
        self.assertEqual(result.meta["metrics"]["compliance"]["percent"], 60)
        self.assertEqual(result.meta["sections"], 12)
        with ZipFile(io.BytesIO(result.content)) as zf:
            self.assertIn("ppt/presentation.xml", zf.namelist())
        self.assertEqual(result.to_dict()["size_bytes"], len(result.content))

    def test_export_docx(self):
        result = export_report(aggregate_from(scenario_b_payload(7)), DictFetch(), fmt="DOCX", cfg=self.cfg, today=TODAY)
        self.assertEqual(result.mime_type, DOCX_MIME)
        self.assertEqual(result.filename, "Boiler Turnaround.docx")
        self.assertEqual(len(Document(io.BytesIO(result.content)).inline_shapes), 7)

    def test_slide_export_fetches_only_slot_limit(self):
        fetch = DictFetch()
        export_report(aggregate_from(scenario_b_payload(7)), fetch, fmt="pptx", cfg=self.cfg, today=TODAY)
        self.assertEqual(len(fetch.calls), 6)

    def test_unsupported_format(self):
        with self.assertRaises(MissingInputError):
            export_report(aggregate_from(scenario_b_payload(0)), DictFetch(), fmt="pdf", cfg=self.cfg)

    def test_asset_failures_are_reported_not_raised(self):
        with tempfile.TemporaryDirectory() as td:
            events_file = Path(td) / "events.jsonl"
            fetch = DictFetch({"r1/wo1/p1.png": None})
            result = export_report(
                aggregate_from(scenario_b_payload(2)),
                fetch,
                fmt="pptx",
                cfg=self.cfg,
                today=TODAY,
                telemetry=TelemetryClient(events_file=events_file),
            )
            events = read_events(events_file)
        self.assertTrue(result.content)
        failed = [e for e in events if e["action"] == "asset.fetch"]
        self.assertEqual(len(failed), 1)
        self.assertEqual(failed[0]["error_code"], "ASSET_UNAVAILABLE")
        self.assertEqual(failed[0]["meta"]["path"], "r1/wo1/p1.png")
        done = [e for e in events if e["action"] == "export"]
        self.assertEqual(done[0]["status"], "ok")
        self.assertEqual(done[0]["trace_id"], result.meta["trace_id"])

    def test_undecodable_docx_image_is_reported(self):
        with tempfile.TemporaryDirectory() as td:
            events_file = Path(td) / "events.jsonl"
            result = export_report(
                aggregate_from(scenario_b_payload(2)),
                DictFetch({"r1/wo1/p2.png": b"RIFF....WEBPVP8 "}),
                fmt="docx",
                cfg=self.cfg,
                today=TODAY,
                telemetry=TelemetryClient(events_file=events_file),
            )
            failed = read_events(events_file, action="asset.fetch")
        self.assertEqual(len(Document(io.BytesIO(result.content)).inline_shapes), 1)
        self.assertEqual([e["meta"]["path"] for e in failed], ["r1/wo1/p2.png"])
        self.assertEqual(failed[0]["meta"]["bucket"], "report-photos")

    def test_truncated_jpeg_does_not_abort_docx_export(self):
        truncated = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 40
        result = export_report(
            aggregate_from(scenario_b_payload(3)),
            DictFetch({"r1/wo1/p2.png": truncated}),
            fmt="docx",
            cfg=self.cfg,
            today=TODAY,
        )
        self.assertEqual(len(Document(io.BytesIO(result.content)).inline_shapes), 2)

    def test_unwritable_telemetry_does_not_abort_export(self):
        with tempfile.TemporaryDirectory() as td:
            events_dir = Path(td) / "events.jsonl"
            events_dir.mkdir()
            result = export_report(
                aggregate_from(scenario_b_payload(3)),
                DictFetch({"r1/wo1/p1.png": None}),
                fmt="pptx",
                cfg=self.cfg,
                today=TODAY,
                telemetry=TelemetryClient(events_file=events_dir),
            )
        with ZipFile(io.BytesIO(result.content)) as zf:
            self.assertEqual(len([n for n in zf.namelist() if n.startswith("ppt/media/")]), 2)

    def test_emission_failure_is_wrapped(self):
        with tempfile.TemporaryDirectory() as td:
            events_file = Path(td) / "events.jsonl"
            with mock.patch("scripts.report_export_engine.render_report_pptx", side_effect=ValueError("zip broke")):
                with self.assertRaises(EmissionError) as ctx:
                    export_report(
                        aggregate_from(scenario_b_payload(0)),
                        DictFetch(),
                        cfg=self.cfg,
                        telemetry=TelemetryClient(events_file=events_file),
                    )
            events = read_events(events_file)
        self.assertEqual(ctx.exception.code, "EMISSION_FAILURE")
        self.assertIsInstance(ctx.exception.__cause__, ValueError)
        self.assertEqual(events[-1]["status"], "failed")
        self.assertEqual(events[-1]["error_code"], "EMISSION_FAILURE")

    def test_build_fetcher(self):
        self.assertIsInstance(build_fetcher(self.cfg), DirectoryFetcher)
        cfg = load_cfg(Path("/nonexistent/report_export.toml"))
        cfg["storage"]["base_url"] = "https://store.example"
        with mock.patch.dict("os.environ", {"STORAGE_SERVICE_KEY": "secret"}):
            fetcher = build_fetcher(cfg)
        self.assertIsInstance(fetcher, StorageApiFetcher)
        self.assertEqual(fetcher.api_key, "secret")

    def test_run_request_writes_file(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            snapshot = root / "snap.json"
            snapshot.write_text(json.dumps(scenario_a_payload()), encoding="utf-8")
            out = run_request(
                {
                    "snapshot": str(snapshot),
                    "tenant_id": "t1",
                    "format": "docx",
                    "out_dir": str(root / "out"),
                    "cfg": str(_write_cfg(root)),
                    "today": TODAY.isoformat(),
                },
                fetch=DictFetch(),
            )
            self.assertTrue(out["ok"])
            self.assertTrue(Path(out["path"]).exists())
            self.assertEqual(Path(out["path"]).name, "Spring Outage.docx")
            self.assertEqual(out["run"]["fmt"], "docx")
            self.assertEqual(read_events(root / "events.jsonl")[-1]["action"], "export")

    def test_run_request_needs_a_source(self):
        with self.assertRaises(MissingInputError):
            run_request({"report_id": "r1", "cfg": "/nonexistent/report_export.toml"})


class ReportExportServiceTest(unittest.TestCase):
    def test_service_ok_and_missing_input(self):
        with tempfile.TemporaryDirectory() as td:
            root = Path(td)
            snapshot = root / "snap.json"
            snapshot.write_text(json.dumps(scenario_b_payload(1)), encoding="utf-8")
            svc = ReportExportService(root=root, fetch=DictFetch())
            cfg = str(_write_cfg(root))

            ok = svc.run({"snapshot": str(snapshot), "format": "pptx", "cfg": cfg}).to_dict()
            self.assertTrue(ok["ok"])
            self.assertEqual(ok["service"], "report.export")
            self.assertEqual(Path(ok["path"]).parent, root / "exports")
            self.assertEqual(ok["artifacts"]["items"][0]["mime_type"], ok["mime_type"])
            self.assertEqual(ok["service_meta"], {"entrypoint": "report_export_engine"})

            bad = svc.run({"snapshot": str(snapshot), "report_id": "missing", "cfg": cfg}).to_dict()
            self.assertFalse(bad["ok"])
            self.assertEqual(bad["error_code"], "missing_input")
            self.assertEqual(bad["details"]["report_id"], "missing")


if __name__ == "__main__":
    unittest.main()
