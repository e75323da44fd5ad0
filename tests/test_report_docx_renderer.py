#!/usr/bin/env python3
import io
import unittest

from docx import Document

from scripts.report_assets import AssetResolver
from scripts.report_docx_renderer import PageDocumentRenderer, _bar_text, render_report_docx
from scripts.report_layout import plan_report
from scripts.report_metrics import compute_metrics
from tests.report_fixtures import (
    TODAY,
    DictFetch,
    aggregate_from,
    follow_up_payload,
    scenario_a_payload,
    scenario_b_payload,
)


def _plan(payload, fetch=None):
    agg = aggregate_from(payload)
    return plan_report(agg, compute_metrics(agg, TODAY), AssetResolver(fetch or DictFetch()))


def _text(doc):
    return "\n".join(p.text for p in doc.paragraphs)


class ReportDocxRendererTest(unittest.TestCase):
    def test_page_document_has_every_photo(self):
        doc = Document(io.BytesIO(render_report_docx(_plan(scenario_b_payload(7)))))
        self.assertEqual(len(doc.inline_shapes), 7)

    def test_running_header_and_page_footer(self):
        doc = Document(io.BytesIO(render_report_docx(_plan(scenario_a_payload()))))
        section = doc.sections[0]
        self.assertEqual(section.header.paragraphs[0].text, "Acme Plant")
        footer_xml = section.footer.paragraphs[0]._p.xml
        self.assertIn("Acme confidential", section.footer.paragraphs[0].text)
        self.assertIn(" PAGE ", footer_xml)
        self.assertIn('w:fldCharType="begin"', footer_xml)
        self.assertIn('w:fldCharType="end"', footer_xml)
        self.assertEqual(doc.core_properties.title, "Spring Outage - Shutdown Report")

    def test_sections_flow_with_page_breaks(self):
        doc = Document(io.BytesIO(render_report_docx(_plan(scenario_a_payload()))))
        body = doc.element.body.xml
        # summary plus nine of the ten item sections end with a break
        self.assertEqual(body.count('w:type="page"'), 10)
        text = _text(doc)
        self.assertIn("Shutdown Completion Report", text)
        self.assertIn("Completed: 6 (60%)", text)
        self.assertIn("6 completed of 10 total", text)
        self.assertIn("WO-010 | Valve 10", text)
        self.assertIn("Reason: Parts late", text)
        self.assertIn("No entries.", text)
        self.assertIn("No photos logged.", text)
        trend = [t for t in doc.tables if t.rows[0].cells[0].text == "Day"][0]
        self.assertEqual(len(trend.rows), 8)
        self.assertEqual(trend.rows[7].cells[2].text, "2")

    def test_undecodable_image_is_skipped(self):
        fetch = DictFetch({"r1/wo1/p2.png": b"definitely not an image"})
        renderer = PageDocumentRenderer()
        doc = Document(io.BytesIO(render_report_docx(_plan(scenario_b_payload(3), fetch), renderer)))
        self.assertEqual(len(doc.inline_shapes), 2)
        self.assertEqual(renderer.skipped_assets, ["r1/wo1/p2.png"])

    def test_truncated_jpeg_is_skipped(self):
        truncated = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 40
        fetch = DictFetch({"r1/wo1/p2.png": truncated})
        renderer = PageDocumentRenderer()
        doc = Document(io.BytesIO(render_report_docx(_plan(scenario_b_payload(3), fetch), renderer)))
        self.assertEqual(len(doc.inline_shapes), 2)
        self.assertEqual(renderer.skipped_assets, ["r1/wo1/p2.png"])

    def test_follow_up_table(self):
        doc = Document(io.BytesIO(render_report_docx(_plan(follow_up_payload()))))
        self.assertIn("Follow-ups for Next Period", _text(doc))
        table = doc.tables[-1]
        self.assertEqual(table.rows[1].cells[0].text, "WO-001")
        self.assertEqual(table.rows[1].cells[1].text, "Replace burner next outage")

    def test_bar_text(self):
        self.assertEqual(_bar_text(100, 4), "█" * 20)
        self.assertEqual(_bar_text(0, 0), "")
        self.assertEqual(_bar_text(1, 1), "█")


if __name__ == "__main__":
    unittest.main()
