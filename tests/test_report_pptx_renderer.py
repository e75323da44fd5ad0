#!/usr/bin/env python3
import io
import struct
import unittest
import xml.etree.ElementTree as ET
from zipfile import ZipFile

from scripts.report_assets import AssetResolver
from scripts.report_layout import plan_report
from scripts.report_metrics import compute_metrics
from scripts.report_pptx_renderer import _arc_end_angle, _clip, _contain, _emu, _text, render_report_pptx
from tests.report_fixtures import (
    TODAY,
    PNG_1PX,
    DictFetch,
    aggregate_from,
    follow_up_payload,
    scenario_a_payload,
    scenario_b_payload,
)


def _deck(payload, fetch=None, **layout):
    agg = aggregate_from(payload)
    plan = plan_report(agg, compute_metrics(agg, TODAY), AssetResolver(fetch or DictFetch()), layout=layout)
    return ZipFile(io.BytesIO(render_report_pptx(plan)))


def _slide_names(zf):
    return sorted(n for n in zf.namelist() if n.startswith("ppt/slides/slide") and n.endswith(".xml"))


class ReportPptxRendererTest(unittest.TestCase):
    def test_ten_items_make_twelve_slides(self):
        with _deck(scenario_a_payload()) as zf:
            names = set(zf.namelist())
            self.assertIn("[Content_Types].xml", names)
            self.assertIn("ppt/presentation.xml", names)
            self.assertIn("ppt/theme/theme1.xml", names)
            slides = _slide_names(zf)
            self.assertEqual(len(slides), 12)
            for idx in range(1, 13):
                self.assertIn(f"ppt/slides/_rels/slide{idx}.xml.rels", names)
            presentation = zf.read("ppt/presentation.xml").decode("utf-8")
            self.assertEqual(presentation.count("<p:sldId "), 12)
            for name in slides:
                ET.fromstring(zf.read(name))
            summary = zf.read("ppt/slides/slide2.xml").decode("utf-8")
            self.assertIn("Executive Dashboard", summary)
            self.assertIn("60%", summary)
            self.assertIn("6 completed of 10 total", summary)
            self.assertIn("blockArc", summary)
            title = zf.read("ppt/slides/slide1.xml").decode("utf-8")
            self.assertIn("Spring Outage", title)
            self.assertNotIn("[ARCHIVED]", title)
            self.assertIn("1A2B3C", zf.read("ppt/theme/theme1.xml").decode("utf-8"))

    def test_gallery_embeds_at_most_six_photos(self):
        with _deck(scenario_b_payload(7), max_photos=6) as zf:
            media = [n for n in zf.namelist() if n.startswith("ppt/media/")]
            self.assertEqual(len(media), 6)
            item_slide = zf.read("ppt/slides/slide3.xml").decode("utf-8")
            self.assertEqual(item_slide.count("<p:pic>"), 6)
            rels = zf.read("ppt/slides/_rels/slide3.xml.rels").decode("utf-8")
            self.assertIn('Id="rId7"', rels)
            self.assertIn('Extension="png"', zf.read("[Content_Types].xml").decode("utf-8"))

    def test_no_photos_placeholder(self):
        with _deck(scenario_b_payload(0)) as zf:
            self.assertFalse([n for n in zf.namelist() if n.startswith("ppt/media/")])
            self.assertIn("No photos logged.", zf.read("ppt/slides/slide3.xml").decode("utf-8"))

    def test_invalid_accent_falls_back_to_default(self):
        payload = scenario_b_payload(0)
        payload["branding"] = {"company_name": "Acme", "accent_hex": "zzzzzz"}
        with _deck(payload) as zf:
            self.assertIn("C7662D", zf.read("ppt/theme/theme1.xml").decode("utf-8"))
            self.assertIn('val="C7662D"', zf.read("ppt/slides/slide1.xml").decode("utf-8"))

    def test_follow_up_slide(self):
        with _deck(follow_up_payload()) as zf:
            slides = _slide_names(zf)
            self.assertEqual(len(slides), 4)
            last = zf.read("ppt/slides/slide4.xml").decode("utf-8")
            self.assertIn("Follow-ups for Next Period", last)
            self.assertIn("WO-001: Replace burner next outage", last)

    def test_text_is_escaped(self):
        payload = scenario_b_payload(0)
        payload["work_orders"][0]["title"] = "Tank <A> & \x07B"
        with _deck(payload) as zf:
            xml = zf.read("ppt/slides/slide3.xml").decode("utf-8")
            ET.fromstring(xml)
            self.assertIn("Tank &lt;A&gt; &amp; B", xml)

    def test_pictures_keep_aspect_ratio(self):
        wide = PNG_1PX[:16] + struct.pack(">II", 40, 20) + PNG_1PX[24:]
        payload = scenario_b_payload(2)
        payload["branding"] = {"company_name": "Acme", "logo_path": "t1/logo.png"}
        with _deck(payload, DictFetch({"r1/wo1/p1.png": wide, "t1/logo.png": wide})) as zf:
            item_slide = zf.read("ppt/slides/slide3.xml").decode("utf-8")
            title = zf.read("ppt/slides/slide1.xml").decode("utf-8")
        self.assertIn('<a:ext cx="1810512" cy="905256"/>', item_slide)
        self.assertIn(f'<a:off x="{_emu(8.38)}" y="{_emu(2.55) + 187452}"/>', item_slide)
        self.assertIn('<a:ext cx="1280160" cy="1280160"/>', item_slide)
        self.assertIn(f'<a:off x="{_emu(0.6) + 274320}" y="{_emu(0.55)}"/><a:ext cx="1463040" cy="731520"/>', title)

    def test_contain_falls_back_to_the_box(self):
        self.assertEqual(_contain(b"not an image", 100, 50), (0, 0, 100, 50))
        self.assertEqual(_contain(PNG_1PX, 100, 50), (25, 0, 50, 50))

    def test_helpers(self):
        self.assertEqual(_arc_end_angle(25), 0)
        self.assertEqual(_arc_end_angle(50), 90 * 60000)
        self.assertEqual(_text("a<b"), "a&lt;b")
        self.assertEqual(len(_clip("x" * 300)), 180)
        self.assertEqual(_clip("  a   b "), "a b")


if __name__ == "__main__":
    unittest.main()
