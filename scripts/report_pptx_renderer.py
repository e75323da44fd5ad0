#!/usr/bin/env python3
"""Native PPTX emitter: one slide per planned section, written as raw OOXML parts."""

from __future__ import annotations

import io
import re
from typing import Any, Dict, Iterable, List, Tuple
from xml.sax.saxutils import escape
from zipfile import ZIP_DEFLATED, ZipFile

from docx.image.image import Image

from scripts.report_assets import ResolvedAsset
from scripts.report_layout import (
    NO_ENTRIES,
    NO_PHOTOS,
    BlockRenderer,
    ComplianceGauge,
    FollowUpList,
    ItemDetailBlock,
    KpiRow,
    PhotoGallery,
    ReportPlan,
    Section,
    StatusMixBar,
    TitleBlock,
    TrendTable,
    grid_position,
    render_plan,
)

SLIDE_CX = 12192000
SLIDE_CY = 6858000
EMU_PER_INCH = 914400

PAPER = "F6F7FB"
WHITE = "FFFFFF"
PANEL = "F8FAFF"
PANEL_ALT = "F8FAFC"
LINE = "D8DEEA"
INK = "0F172A"
BODY = "334155"
MUTED = "64748B"
LABEL = "5F6F88"

MAX_LINE_CHARS = 180
MAX_FOLLOW_UP_ROWS = 12

_INVALID_XML = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _emu(inches: float) -> int:
    return int(round(inches * EMU_PER_INCH))


def _contain(data: bytes, box_cx: int, box_cy: int) -> Tuple[int, int, int, int]:
    """Offset and size that fit the image inside the box without distorting it."""
    try:
        image = Image.from_blob(data)
        px_w, px_h = image.px_width, image.px_height
    except Exception:
        return 0, 0, box_cx, box_cy
    if px_w <= 0 or px_h <= 0:
        return 0, 0, box_cx, box_cy
    scale = min(box_cx / px_w, box_cy / px_h)
    cx = int(round(px_w * scale))
    cy = int(round(px_h * scale))
    return (box_cx - cx) // 2, (box_cy - cy) // 2, cx, cy


def _text(value: Any) -> str:
    return escape(_INVALID_XML.sub("", str(value or "")))


def _clip(value: str, limit: int = MAX_LINE_CHARS) -> str:
    text = " ".join(str(value or "").split())
    return text if len(text) <= limit else text[: limit - 1].rstrip() + "…"


def _geom_xml(prst: str, adjust: Dict[str, int] | None = None) -> str:
    guides = "".join(f'<a:gd name="{name}" fmla="val {value}"/>' for name, value in (adjust or {}).items())
    return f"<a:prstGeom prst=\"{prst}\"><a:avLst>{guides}</a:avLst></a:prstGeom>"


def _paragraph_xml(text: str, *, size: int, color: str, bold: bool = False, italic: bool = False, align: str = "l") -> str:
    style_bits = [f'sz="{size}"', 'lang="en-US"']
    if bold:
        style_bits.append('b="1"')
    if italic:
        style_bits.append('i="1"')
    return (
        "<a:p>"
        f"<a:pPr algn=\"{align}\"/>"
        f"<a:r><a:rPr {' '.join(style_bits)}><a:solidFill><a:srgbClr val=\"{color}\"/></a:solidFill></a:rPr>"
        f"<a:t>{_text(text)}</a:t></a:r>"
        f"<a:endParaRPr sz=\"{size}\" lang=\"en-US\"/>"
        "</a:p>"
    )


def _textbox_shape(
    shape_id: int,
    name: str,
    x: int,
    y: int,
    cx: int,
    cy: int,
    paragraphs: Iterable[str],
    *,
    font_size: int,
    color: str,
    fill: str | None = None,
    line: str | None = None,
    bold_first: bool = False,
    italic: bool = False,
    prst: str = "rect",
    adjust: Dict[str, int] | None = None,
    align: str = "l",
    anchor: str = "t",
) -> str:
    body = []
    paras = list(paragraphs) or [""]
    for idx, paragraph in enumerate(paras):
        body.append(
            _paragraph_xml(
                paragraph,
                size=font_size if idx == 0 or not bold_first else max(font_size - 200, 1000),
                color=color,
                bold=bold_first and idx == 0,
                italic=italic,
                align=align,
            )
        )
    fill_xml = f"<a:solidFill><a:srgbClr val=\"{fill}\"/></a:solidFill>" if fill else "<a:noFill/>"
    line_xml = (
        f"<a:ln w=\"12700\"><a:solidFill><a:srgbClr val=\"{line}\"/></a:solidFill></a:ln>" if line else "<a:ln><a:noFill/></a:ln>"
    )
    return (
        "<p:sp>"
        f"<p:nvSpPr><p:cNvPr id=\"{shape_id}\" name=\"{_text(name)}\"/><p:cNvSpPr txBox=\"1\"/><p:nvPr/></p:nvSpPr>"
        "<p:spPr>"
        f"<a:xfrm><a:off x=\"{x}\" y=\"{y}\"/><a:ext cx=\"{cx}\" cy=\"{cy}\"/></a:xfrm>"
        f"{_geom_xml(prst, adjust)}"
        f"{fill_xml}{line_xml}"
        "</p:spPr>"
        f"<p:txBody><a:bodyPr wrap=\"square\" lIns=\"91440\" tIns=\"45720\" rIns=\"91440\" bIns=\"45720\" anchor=\"{anchor}\"/>"
        "<a:lstStyle/>"
        f"{''.join(body)}"
        "</p:txBody>"
        "</p:sp>"
    )


def _picture_shape(shape_id: int, name: str, rel_id: str, x: int, y: int, cx: int, cy: int) -> str:
    return (
        "<p:pic>"
        f"<p:nvPicPr><p:cNvPr id=\"{shape_id}\" name=\"{_text(name)}\"/>"
        "<p:cNvPicPr><a:picLocks noChangeAspect=\"1\"/></p:cNvPicPr><p:nvPr/></p:nvPicPr>"
        "<p:blipFill>"
        f"<a:blip r:embed=\"{rel_id}\"/>"
        "<a:stretch><a:fillRect/></a:stretch>"
        "</p:blipFill>"
        "<p:spPr>"
        f"<a:xfrm><a:off x=\"{x}\" y=\"{y}\"/><a:ext cx=\"{cx}\" cy=\"{cy}\"/></a:xfrm>"
        "<a:prstGeom prst=\"rect\"><a:avLst/></a:prstGeom>"
        "</p:spPr>"
        "</p:pic>"
    )


def _block_shape(
    shape_id: int,
    name: str,
    x: int,
    y: int,
    cx: int,
    cy: int,
    *,
    fill: str,
    line: str | None = None,
    prst: str = "rect",
    adjust: Dict[str, int] | None = None,
) -> str:
    return _textbox_shape(
        shape_id,
        name,
        x,
        y,
        cx,
        cy,
        [""],
        font_size=1000,
        color=fill,
        fill=fill,
        line=line,
        prst=prst,
        adjust=adjust,
    )


def _arc_end_angle(percent: int) -> int:
    # DrawingML angles run clockwise from 3 o'clock in 60000ths of a degree; 12 o'clock is 270.
    degrees = (270 + 360 * percent / 100.0) % 360
    return int(round(degrees * 60000))


class SlideDeckRenderer(BlockRenderer):
    """Collects slide XML and media for ``render_report_pptx``."""

    def __init__(self) -> None:
        self.slides: List[Dict[str, Any]] = []
        self.media: List[Tuple[str, bytes]] = []
        self._slide: Dict[str, Any] = {}
        self._next_id = 2

    def _id(self) -> int:
        shape_id = self._next_id
        self._next_id += 1
        return shape_id

    def _add(self, *shapes: str) -> None:
        self._slide["shapes"].extend(shapes)

    def _embed(self, asset: ResolvedAsset) -> str:
        media_name = f"image{len(self.media) + 1}.{asset.extension}"
        self.media.append((media_name, asset.data))
        rels = self._slide["media"]
        rels.append(media_name)
        return f"rId{len(rels) + 1}"

    def begin_section(self, section: Section, plan: ReportPlan) -> None:
        self._slide = {"kind": section.kind, "shapes": [], "media": []}
        self._next_id = 2
        background = PAPER if section.kind == "title" else WHITE
        band = {"title": 0.35, "summary": 0.28}.get(section.kind, 0.2)
        self._add(
            _block_shape(self._id(), "Background", 0, 0, SLIDE_CX, SLIDE_CY, fill=background),
            _block_shape(self._id(), "Accent Band", 0, 0, SLIDE_CX, _emu(band), fill=plan.accent),
        )

    def end_section(self, section: Section, plan: ReportPlan) -> None:
        index = len(self.slides) + 1
        if section.kind != "title":
            self._add(
                _textbox_shape(self._id(), "Footer", _emu(0.6), _emu(7.1), _emu(9.5), _emu(0.3), [plan.footer_text], font_size=900, color=MUTED),
                _textbox_shape(self._id(), "Slide Number", _emu(11.9), _emu(7.1), _emu(0.8), _emu(0.3), [f"{index:02d}"], font_size=1000, color=MUTED, align="r"),
            )
        self.slides.append(self._slide)

    def render_title(self, block: TitleBlock, plan: ReportPlan) -> None:
        if block.logo is not None:
            rel_id = self._embed(block.logo)
            dx, dy, cx, cy = _contain(block.logo.data, _emu(2.2), _emu(0.8))
            self._add(_picture_shape(self._id(), "Logo", rel_id, _emu(0.6) + dx, _emu(0.55) + dy, cx, cy))
        period_lines = [block.period] + ([block.date_range] if block.date_range else [])
        self._add(
            _textbox_shape(self._id(), "Company", _emu(0.6), _emu(1.6), _emu(12), _emu(0.5), [block.company], font_size=2200, color=plan.accent, bold_first=True),
            _textbox_shape(self._id(), "Heading", _emu(0.6), _emu(2.2), _emu(12), _emu(0.7), [block.heading], font_size=3400, color=INK, bold_first=True),
            _textbox_shape(self._id(), "Report Name", _emu(0.6), _emu(3.05), _emu(12), _emu(0.9), [block.report_name], font_size=2800, color=INK, bold_first=True),
            _textbox_shape(self._id(), "Period", _emu(0.6), _emu(4.35), _emu(6.9), _emu(1.15), period_lines, font_size=1500, color=BODY, fill=WHITE, line=LINE, bold_first=True, prst="roundRect", anchor="ctr"),
            _textbox_shape(self._id(), "Footer", _emu(0.6), _emu(7.1), _emu(12), _emu(0.3), [block.footer], font_size=1000, color=MUTED),
        )

    def render_kpi_row(self, block: KpiRow, plan: ReportPlan) -> None:
        self._add(_textbox_shape(self._id(), "Dashboard Title", _emu(0.6), _emu(0.45), _emu(7), _emu(0.5), ["Executive Dashboard"], font_size=2600, color=INK, bold_first=True))
        for idx, card in enumerate(block.cards):
            x = 0.6 + idx * 3.1
            self._add(
                _block_shape(self._id(), f"KpiCard{idx + 1}", _emu(x), _emu(1.1), _emu(2.85), _emu(1.25), fill=card.fill, line=LINE, prst="roundRect"),
                _textbox_shape(self._id(), f"KpiLabel{idx + 1}", _emu(x + 0.2), _emu(1.25), _emu(2.4), _emu(0.3), [card.label], font_size=1100, color=LABEL, bold_first=True),
                _textbox_shape(self._id(), f"KpiValue{idx + 1}", _emu(x + 0.2), _emu(1.55), _emu(2.4), _emu(0.65), [str(card.value)], font_size=2800, color=card.text_color, bold_first=True),
            )

    def render_status_mix(self, block: StatusMixBar, plan: ReportPlan) -> None:
        self._add(_textbox_shape(self._id(), "Status Mix", _emu(0.6), _emu(2.7), _emu(3), _emu(0.35), ["Status Mix"], font_size=1400, color=BODY, bold_first=True))
        x = _emu(0.6)
        full = _emu(12.1)
        for idx, seg in enumerate(block.segments):
            if seg.width <= 0:
                continue
            cx = full * seg.width // 100
            self._add(_block_shape(self._id(), f"Mix{idx + 1}", x, _emu(3.05), cx, _emu(0.35), fill=seg.color))
            x += cx
        for idx, seg in enumerate(block.segments):
            y = 3.55 + idx * 0.27
            self._add(
                _block_shape(self._id(), f"Legend{idx + 1}", _emu(0.6), _emu(y + 0.05), _emu(0.14), _emu(0.14), fill=seg.color),
                _textbox_shape(self._id(), f"LegendText{idx + 1}", _emu(0.8), _emu(y - 0.03), _emu(4), _emu(0.27), [f"{seg.label}: {seg.value} ({seg.percent}%)"], font_size=1100, color=BODY),
            )

    def render_compliance(self, block: ComplianceGauge, plan: ReportPlan) -> None:
        ring = (_emu(5.9), _emu(4.2), _emu(2.4), _emu(2.4))
        self._add(
            _textbox_shape(self._id(), "Compliance Title", _emu(5.3), _emu(3.5), _emu(4.8), _emu(0.35), ["Schedule Compliance"], font_size=1400, color=BODY, bold_first=True),
            _block_shape(self._id(), "Compliance Panel", _emu(5.25), _emu(3.9), _emu(7.1), _emu(3.05), fill=PANEL, line=LINE, prst="roundRect"),
        )
        if block.total and block.percent >= 100:
            self._add(_block_shape(self._id(), "Gauge Completed", *ring, fill=block.color, prst="donut", adjust={"adj": 16000}))
        else:
            self._add(_block_shape(self._id(), "Gauge Remaining", *ring, fill=block.track, prst="donut", adjust={"adj": 16000}))
            if block.percent > 0:
                arc = {"adj1": 16200000, "adj2": _arc_end_angle(block.percent), "adj3": 16000}
                self._add(_block_shape(self._id(), "Gauge Completed", *ring, fill=block.color, prst="blockArc", adjust=arc))
        self._add(
            _textbox_shape(self._id(), "Compliance Percent", _emu(8.95), _emu(4.4), _emu(2.9), _emu(0.7), [f"{block.percent}%"], font_size=4000, color=block.color, bold_first=True, align="ctr"),
            _textbox_shape(self._id(), "Compliance Label", _emu(8.95), _emu(5.08), _emu(2.9), _emu(0.3), ["On-schedule completion"], font_size=1000, color=MUTED, align="ctr"),
            _textbox_shape(self._id(), "Compliance Caption", _emu(8.95), _emu(5.42), _emu(2.9), _emu(0.3), [block.caption], font_size=1100, color=BODY, bold_first=True, align="ctr"),
        )

    def render_trend(self, block: TrendTable, plan: ReportPlan) -> None:
        self._add(_textbox_shape(self._id(), "Trend Title", _emu(0.6), _emu(4.5), _emu(4.4), _emu(0.35), [f"{len(block.rows)}-Day Activity"], font_size=1400, color=BODY, bold_first=True))
        full = _emu(2.6)
        for idx, row in enumerate(block.rows):
            y = 4.88 + idx * 0.31
            self._add(
                _textbox_shape(self._id(), f"TrendDay{idx + 1}", _emu(0.6), _emu(y), _emu(1.15), _emu(0.28), [row.label], font_size=1000, color=BODY),
                _block_shape(self._id(), f"TrendTrack{idx + 1}", _emu(1.75), _emu(y + 0.07), full, _emu(0.14), fill=plan.accent_soft),
            )
            if row.width > 0:
                self._add(_block_shape(self._id(), f"TrendBar{idx + 1}", _emu(1.75), _emu(y + 0.07), full * row.width // 100, _emu(0.14), fill=plan.accent))
            self._add(_textbox_shape(self._id(), f"TrendCount{idx + 1}", _emu(4.4), _emu(y), _emu(0.6), _emu(0.28), [str(row.count)], font_size=1000, color=BODY, align="r"))

    def render_item_detail(self, block: ItemDetailBlock, plan: ReportPlan) -> None:
        self._add(
            _textbox_shape(self._id(), "Work Order", _emu(0.6), _emu(0.45), _emu(11.8), _emu(0.65), [_clip(block.header, 90)], font_size=2400, color=INK, bold_first=True),
            _textbox_shape(self._id(), "Status Badge", _emu(0.6), _emu(1.25), _emu(2.4), _emu(0.46), [block.status_label], font_size=1100, color=block.status_color, fill=PANEL_ALT, line=block.status_color, bold_first=True, prst="roundRect", anchor="ctr"),
            _textbox_shape(self._id(), "Status Meta", _emu(3.2), _emu(1.3), _emu(9.0), _emu(0.36), [_clip(block.caption, 120)], font_size=1100, color=BODY, anchor="ctr"),
        )
        for idx, section in enumerate(block.sections):
            y = 2.05 + idx * 1.85
            lines = [f"- {_clip(line)}" for line in section.lines] or [NO_ENTRIES]
            self._add(
                _textbox_shape(self._id(), section.title, _emu(0.6), _emu(y), _emu(7.35), _emu(1.6), [section.title] + lines, font_size=1300, color=INK, fill=PANEL, line=LINE, bold_first=True, prst="roundRect")
            )

    def render_gallery(self, block: PhotoGallery, plan: ReportPlan) -> None:
        gx, gy, gw, gh = 8.15, 2.05, 4.55, 5.0
        self._add(
            _block_shape(self._id(), "Gallery", _emu(gx), _emu(gy), _emu(gw), _emu(gh), fill=PANEL_ALT, line=LINE, prst="roundRect"),
            _textbox_shape(self._id(), "Gallery Title", _emu(gx + 0.23), _emu(gy + 0.08), _emu(4.1), _emu(0.32), ["Photos"], font_size=1200, color=INK, bold_first=True),
        )
        photos = block.slide_photos()
        if not photos:
            self._add(_textbox_shape(self._id(), "No Photos", _emu(gx + 0.23), _emu(gy + 2.3), _emu(gw - 0.46), _emu(0.34), [NO_PHOTOS], font_size=1100, color=MUTED, italic=True, align="ctr"))
            return
        for idx, asset in enumerate(photos):
            col, row = grid_position(idx, block.columns)
            rel_id = self._embed(asset)
            x = gx + 0.23 + col * 2.1
            y = gy + 0.5 + row * 1.5
            dx, dy, cx, cy = _contain(asset.data, _emu(1.98), _emu(1.4))
            self._add(_picture_shape(self._id(), f"Photo{idx + 1}", rel_id, _emu(x) + dx, _emu(y) + dy, cx, cy))

    def render_follow_ups(self, block: FollowUpList, plan: ReportPlan) -> None:
        rows = [f"{code}: {_clip(text, 140)}" for code, text in block.rows[:MAX_FOLLOW_UP_ROWS]]
        hidden = len(block.rows) - len(rows)
        if hidden > 0:
            rows.append(f"+ {hidden} more")
        self._add(
            _textbox_shape(self._id(), "Follow-up Title", _emu(0.6), _emu(0.45), _emu(11.8), _emu(0.65), ["Follow-ups for Next Period"], font_size=2400, color=INK, bold_first=True),
            _textbox_shape(self._id(), "Follow-up List", _emu(0.6), _emu(1.3), _emu(12.1), _emu(5.6), rows, font_size=1200, color=BODY, fill=PANEL, line=LINE, prst="roundRect"),
        )


def _slide_xml_from_shapes(shapes: List[str]) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<p:sld xmlns:a=\"http://schemas.openxmlformats.org/drawingml/2006/main\" "
        "xmlns:r=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships\" "
        "xmlns:p=\"http://schemas.openxmlformats.org/presentationml/2006/main\">"
        "<p:cSld><p:spTree>"
        "<p:nvGrpSpPr><p:cNvPr id=\"1\" name=\"\"/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr>"
        "<p:grpSpPr><a:xfrm><a:off x=\"0\" y=\"0\"/><a:ext cx=\"0\" cy=\"0\"/><a:chOff x=\"0\" y=\"0\"/><a:chExt cx=\"0\" cy=\"0\"/></a:xfrm></p:grpSpPr>"
        f"{''.join(shapes)}"
        "</p:spTree></p:cSld>"
        "<p:clrMapOvr><a:masterClrMapping/></p:clrMapOvr>"
        "</p:sld>"
    )


def _slide_rels_xml(media_names: List[str]) -> str:
    items = [
        "<Relationship Id=\"rId1\" "
        "Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/slideLayout\" "
        "Target=\"../slideLayouts/slideLayout1.xml\"/>"
    ]
    for idx, name in enumerate(media_names, start=2):
        items.append(
            f"<Relationship Id=\"rId{idx}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/image\" "
            f"Target=\"../media/{_text(name)}\"/>"
        )
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Relationships xmlns=\"http://schemas.openxmlformats.org/package/2006/relationships\">"
        + "".join(items)
        + "</Relationships>"
    )


def _theme_xml(accent: str) -> str:
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<a:theme xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" name="ShutdownReport">
  <a:themeElements>
    <a:clrScheme name="ShutdownReport">
      <a:dk1><a:srgbClr val="0F172A"/></a:dk1>
      <a:lt1><a:srgbClr val="FFFFFF"/></a:lt1>
      <a:dk2><a:srgbClr val="334155"/></a:dk2>
      <a:lt2><a:srgbClr val="F6F7FB"/></a:lt2>
      <a:accent1><a:srgbClr val="{accent}"/></a:accent1>
      <a:accent2><a:srgbClr val="1B8F5A"/></a:accent2>
      <a:accent3><a:srgbClr val="B67710"/></a:accent3>
      <a:accent4><a:srgbClr val="B92C2C"/></a:accent4>
      <a:accent5><a:srgbClr val="64748B"/></a:accent5>
      <a:accent6><a:srgbClr val="D8DEEA"/></a:accent6>
      <a:hlink><a:srgbClr val="0563C1"/></a:hlink>
      <a:folHlink><a:srgbClr val="954F72"/></a:folHlink>
    </a:clrScheme>
    <a:fontScheme name="ShutdownReportFont">
      <a:majorFont><a:latin typeface="Aptos"/><a:ea typeface=""/><a:cs typeface=""/></a:majorFont>
      <a:minorFont><a:latin typeface="Aptos"/><a:ea typeface=""/><a:cs typeface=""/></a:minorFont>
    </a:fontScheme>
    <a:fmtScheme name="ShutdownReportFmt">
      <a:fillStyleLst>
        <a:solidFill><a:schemeClr val="phClr"/></a:solidFill>
        <a:solidFill><a:schemeClr val="phClr"/></a:solidFill>
        <a:solidFill><a:schemeClr val="phClr"/></a:solidFill>
      </a:fillStyleLst>
      <a:lnStyleLst>
        <a:ln w="9525"><a:solidFill><a:schemeClr val="phClr"/></a:solidFill></a:ln>
        <a:ln w="25400"><a:solidFill><a:schemeClr val="phClr"/></a:solidFill></a:ln>
        <a:ln w="38100"><a:solidFill><a:schemeClr val="phClr"/></a:solidFill></a:ln>
      </a:lnStyleLst>
      <a:effectStyleLst><a:effectStyle><a:effectLst/></a:effectStyle><a:effectStyle><a:effectLst/></a:effectStyle><a:effectStyle><a:effectLst/></a:effectStyle></a:effectStyleLst>
      <a:bgFillStyleLst><a:solidFill><a:schemeClr val="phClr"/></a:solidFill><a:solidFill><a:schemeClr val="phClr"/></a:solidFill><a:solidFill><a:schemeClr val="phClr"/></a:solidFill></a:bgFillStyleLst>
    </a:fmtScheme>
  </a:themeElements>
  <a:objectDefaults/>
  <a:extraClrSchemeLst/>
</a:theme>"""


def _slide_layout_xml() -> str:
    return """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<p:sldLayout xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main" type="blank" preserve="1">
  <p:cSld name="Blank">
    <p:spTree>
      <p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr>
      <p:grpSpPr><a:xfrm><a:off x="0" y="0"/><a:ext cx="0" cy="0"/><a:chOff x="0" y="0"/><a:chExt cx="0" cy="0"/></a:xfrm></p:grpSpPr>
    </p:spTree>
  </p:cSld>
  <p:clrMapOvr><a:masterClrMapping/></p:clrMapOvr>
</p:sldLayout>"""


def _slide_layout_rels_xml() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Relationships xmlns=\"http://schemas.openxmlformats.org/package/2006/relationships\">"
        "<Relationship Id=\"rId1\" "
        "Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/slideMaster\" "
        "Target=\"../slideMasters/slideMaster1.xml\"/>"
        "</Relationships>"
    )


def _slide_master_xml() -> str:
    return """<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<p:sldMaster xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" xmlns:r="http://schemas.openxmlformats.org/officeDocument/2006/relationships" xmlns:p="http://schemas.openxmlformats.org/presentationml/2006/main">
  <p:cSld name="Master">
    <p:bg><p:bgPr><a:solidFill><a:srgbClr val="FFFFFF"/></a:solidFill><a:effectLst/></p:bgPr></p:bg>
    <p:spTree>
      <p:nvGrpSpPr><p:cNvPr id="1" name=""/><p:cNvGrpSpPr/><p:nvPr/></p:nvGrpSpPr>
      <p:grpSpPr><a:xfrm><a:off x="0" y="0"/><a:ext cx="0" cy="0"/><a:chOff x="0" y="0"/><a:chExt cx="0" cy="0"/></a:xfrm></p:grpSpPr>
    </p:spTree>
  </p:cSld>
  <p:clrMap bg1="lt1" tx1="dk1" bg2="lt2" tx2="dk2" accent1="accent1" accent2="accent2" accent3="accent3" accent4="accent4" accent5="accent5" accent6="accent6" hlink="hlink" folHlink="folHlink"/>
  <p:sldLayoutIdLst><p:sldLayoutId id="2147483649" r:id="rId1"/></p:sldLayoutIdLst>
  <p:txStyles>
    <p:titleStyle/><p:bodyStyle/><p:otherStyle/>
  </p:txStyles>
</p:sldMaster>"""


def _slide_master_rels_xml() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Relationships xmlns=\"http://schemas.openxmlformats.org/package/2006/relationships\">"
        "<Relationship Id=\"rId1\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/slideLayout\" Target=\"../slideLayouts/slideLayout1.xml\"/>"
        "<Relationship Id=\"rId2\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/theme\" Target=\"../theme/theme1.xml\"/>"
        "</Relationships>"
    )


def _presentation_xml(slide_count: int) -> str:
    slide_ids = "".join(f'<p:sldId id="{256 + idx}" r:id="rId{idx + 2}"/>' for idx in range(slide_count))
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<p:presentation xmlns:a=\"http://schemas.openxmlformats.org/drawingml/2006/main\" xmlns:r=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships\" xmlns:p=\"http://schemas.openxmlformats.org/presentationml/2006/main\">"
        "<p:sldMasterIdLst><p:sldMasterId id=\"2147483648\" r:id=\"rId1\"/></p:sldMasterIdLst>"
        f"<p:sldIdLst>{slide_ids}</p:sldIdLst>"
        f"<p:sldSz cx=\"{SLIDE_CX}\" cy=\"{SLIDE_CY}\"/>"
        "<p:notesSz cx=\"6858000\" cy=\"9144000\"/>"
        "<p:defaultTextStyle/>"
        "</p:presentation>"
    )


def _presentation_rels_xml(slide_count: int) -> str:
    items = ["<Relationship Id=\"rId1\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/slideMaster\" Target=\"slideMasters/slideMaster1.xml\"/>"]
    for idx in range(slide_count):
        items.append(f"<Relationship Id=\"rId{idx + 2}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/slide\" Target=\"slides/slide{idx + 1}.xml\"/>")
    base = slide_count + 2
    items.extend([
        f"<Relationship Id=\"rId{base}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/presProps\" Target=\"presProps.xml\"/>",
        f"<Relationship Id=\"rId{base + 1}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/viewProps\" Target=\"viewProps.xml\"/>",
        f"<Relationship Id=\"rId{base + 2}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/theme\" Target=\"theme/theme1.xml\"/>",
        f"<Relationship Id=\"rId{base + 3}\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/tableStyles\" Target=\"tableStyles.xml\"/>",
    ])
    return "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?><Relationships xmlns=\"http://schemas.openxmlformats.org/package/2006/relationships\">" + "".join(items) + "</Relationships>"


_IMAGE_TYPES = {"png": "image/png", "jpeg": "image/jpeg", "webp": "image/webp"}


def _content_types_xml(slide_count: int, extensions: Iterable[str]) -> str:
    slide_overrides = "".join(f'<Override PartName="/ppt/slides/slide{idx + 1}.xml" ContentType="application/vnd.openxmlformats-officedocument.presentationml.slide+xml"/>' for idx in range(slide_count))
    image_defaults = "".join(f'<Default Extension="{ext}" ContentType="{_IMAGE_TYPES[ext]}"/>' for ext in sorted(set(extensions)))
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Types xmlns=\"http://schemas.openxmlformats.org/package/2006/content-types\">"
        "<Default Extension=\"rels\" ContentType=\"application/vnd.openxmlformats-package.relationships+xml\"/>"
        "<Default Extension=\"xml\" ContentType=\"application/xml\"/>"
        f"{image_defaults}"
        "<Override PartName=\"/ppt/presentation.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml\"/>"
        "<Override PartName=\"/ppt/slideMasters/slideMaster1.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.slideMaster+xml\"/>"
        "<Override PartName=\"/ppt/slideLayouts/slideLayout1.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.slideLayout+xml\"/>"
        "<Override PartName=\"/ppt/theme/theme1.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.theme+xml\"/>"
        "<Override PartName=\"/ppt/presProps.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.presProps+xml\"/>"
        "<Override PartName=\"/ppt/viewProps.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.viewProps+xml\"/>"
        "<Override PartName=\"/ppt/tableStyles.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.presentationml.tableStyles+xml\"/>"
        "<Override PartName=\"/docProps/core.xml\" ContentType=\"application/vnd.openxmlformats-package.core-properties+xml\"/>"
        "<Override PartName=\"/docProps/app.xml\" ContentType=\"application/vnd.openxmlformats-officedocument.extended-properties+xml\"/>"
        f"{slide_overrides}"
        "</Types>"
    )


def _root_rels_xml() -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Relationships xmlns=\"http://schemas.openxmlformats.org/package/2006/relationships\">"
        "<Relationship Id=\"rId1\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument\" Target=\"ppt/presentation.xml\"/>"
        "<Relationship Id=\"rId2\" Type=\"http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties\" Target=\"docProps/core.xml\"/>"
        "<Relationship Id=\"rId3\" Type=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships/extended-properties\" Target=\"docProps/app.xml\"/>"
        "</Relationships>"
    )


def _core_xml(title: str, company: str) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<cp:coreProperties xmlns:cp=\"http://schemas.openxmlformats.org/package/2006/metadata/core-properties\" xmlns:dc=\"http://purl.org/dc/elements/1.1/\" xmlns:dcterms=\"http://purl.org/dc/terms/\" xmlns:dcmitype=\"http://purl.org/dc/dcmitype/\" xmlns:xsi=\"http://www.w3.org/2001/XMLSchema-instance\">"
        f"<dc:title>{_text(title)}</dc:title>"
        f"<dc:subject>{_text('Shutdown report: ' + title)}</dc:subject>"
        f"<dc:creator>{_text(company)}</dc:creator><cp:lastModifiedBy>{_text(company)}</cp:lastModifiedBy></cp:coreProperties>"
    )


def _app_xml(slide_count: int, company: str) -> str:
    return (
        "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?>"
        "<Properties xmlns=\"http://schemas.openxmlformats.org/officeDocument/2006/extended-properties\" xmlns:vt=\"http://schemas.openxmlformats.org/officeDocument/2006/docPropsVTypes\">"
        "<Application>Reportz</Application>"
        f"<Company>{_text(company)}</Company>"
        f"<Slides>{slide_count}</Slides><PresentationFormat>Widescreen</PresentationFormat></Properties>"
    )


def _pres_props_xml() -> str:
    return "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?><p:presentationPr xmlns:a=\"http://schemas.openxmlformats.org/drawingml/2006/main\" xmlns:r=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships\" xmlns:p=\"http://schemas.openxmlformats.org/presentationml/2006/main\"/>"


def _view_props_xml() -> str:
    return "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?><p:viewPr xmlns:a=\"http://schemas.openxmlformats.org/drawingml/2006/main\" xmlns:r=\"http://schemas.openxmlformats.org/officeDocument/2006/relationships\" xmlns:p=\"http://schemas.openxmlformats.org/presentationml/2006/main\"/>"


def _table_styles_xml() -> str:
    return "<?xml version=\"1.0\" encoding=\"UTF-8\" standalone=\"yes\"?><a:tblStyleLst xmlns:a=\"http://schemas.openxmlformats.org/drawingml/2006/main\" def=\"{5C22544A-7EE6-4342-B048-85BDC9FD1C3A}\"/>"


def render_report_pptx(plan: ReportPlan) -> bytes:
    deck = render_plan(plan, SlideDeckRenderer())
    slides = deck.slides
    buf = io.BytesIO()
    with ZipFile(buf, "w", compression=ZIP_DEFLATED) as zf:
        zf.writestr("[Content_Types].xml", _content_types_xml(len(slides), (name.rsplit(".", 1)[1] for name, _ in deck.media)))
        zf.writestr("_rels/.rels", _root_rels_xml())
        zf.writestr("docProps/core.xml", _core_xml(plan.title, plan.company))
        zf.writestr("docProps/app.xml", _app_xml(len(slides), plan.company))
        zf.writestr("ppt/presentation.xml", _presentation_xml(len(slides)))
        zf.writestr("ppt/_rels/presentation.xml.rels", _presentation_rels_xml(len(slides)))
        zf.writestr("ppt/theme/theme1.xml", _theme_xml(plan.accent))
        zf.writestr("ppt/slideMasters/slideMaster1.xml", _slide_master_xml())
        zf.writestr("ppt/slideMasters/_rels/slideMaster1.xml.rels", _slide_master_rels_xml())
        zf.writestr("ppt/slideLayouts/slideLayout1.xml", _slide_layout_xml())
        zf.writestr("ppt/slideLayouts/_rels/slideLayout1.xml.rels", _slide_layout_rels_xml())
        zf.writestr("ppt/presProps.xml", _pres_props_xml())
        zf.writestr("ppt/viewProps.xml", _view_props_xml())
        zf.writestr("ppt/tableStyles.xml", _table_styles_xml())
        for media_name, data in deck.media:
            zf.writestr(f"ppt/media/{media_name}", data)
        for idx, slide in enumerate(slides, start=1):
            zf.writestr(f"ppt/slides/slide{idx}.xml", _slide_xml_from_shapes(slide["shapes"]))
            zf.writestr(f"ppt/slides/_rels/slide{idx}.xml.rels", _slide_rels_xml(slide["media"]))
    return buf.getvalue()
