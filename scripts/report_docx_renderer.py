#!/usr/bin/env python3
"""DOCX emitter: the planned sections as one flowing, paginated document."""

from __future__ import annotations

import io
from typing import List

from docx import Document
from docx.enum.table import WD_TABLE_ALIGNMENT
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.image.image import Image
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, Pt, RGBColor

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
    render_plan,
)

FONT = "Aptos"
INK = "0F172A"
BODY = "334155"
MUTED = "64748B"
CONTENT_WIDTH = 6.9
BAR_CHAR = "█"
BAR_SLOTS = 20


def _rgb(hex_color: str) -> RGBColor:
    return RGBColor.from_string(hex_color.upper())


def set_cell_shading(cell, color="FFFFFF"):
    """Set cell background color"""
    shading_elm = OxmlElement("w:shd")
    shading_elm.set(qn("w:val"), "clear")
    shading_elm.set(qn("w:fill"), color)
    cell._tc.get_or_add_tcPr().append(shading_elm)


def _style_run(run, *, size: float = 11, color: str = BODY, bold: bool = False, italic: bool = False):
    run.font.name = FONT
    run.font.size = Pt(size)
    run.font.bold = bold
    run.font.italic = italic
    run.font.color.rgb = _rgb(color)
    return run


def add_formatted_heading(doc, text, level=1, color=INK):
    """Add a formatted heading"""
    heading = doc.add_heading(text, level=level)
    for run in heading.runs:
        _style_run(run, size={0: 26, 1: 18, 2: 13}.get(level, 12), color=color, bold=True)
    return heading


def add_formatted_paragraph(doc, text, *, size=11, color=BODY, bold=False, italic=False, style=None, align=None):
    """Add a formatted paragraph"""
    para = doc.add_paragraph(style=style)
    _style_run(para.add_run(text), size=size, color=color, bold=bold, italic=italic)
    if align is not None:
        para.alignment = align
    return para


def _field_char(paragraph, kind: str) -> None:
    fld = OxmlElement("w:fldChar")
    fld.set(qn("w:fldCharType"), kind)
    _style_run(paragraph.add_run(), size=9, color=MUTED)._r.append(fld)


def _add_page_field(paragraph) -> None:
    """Running PAGE field; Word recomputes the cached "1" on every page."""
    _field_char(paragraph, "begin")
    instr = OxmlElement("w:instrText")
    instr.set(qn("xml:space"), "preserve")
    instr.text = " PAGE "
    _style_run(paragraph.add_run(), size=9, color=MUTED)._r.append(instr)
    _field_char(paragraph, "separate")
    _style_run(paragraph.add_run("1"), size=9, color=MUTED)
    _field_char(paragraph, "end")


def _proportional_table(doc, cells: List[tuple], height_pt: float = 14):
    """One-row table whose cell widths follow ``(width_units, fill)`` out of 100."""
    cells = [(width, fill) for width, fill in cells if width > 0]
    table = doc.add_table(rows=1, cols=len(cells))
    table.autofit = False
    table.alignment = WD_TABLE_ALIGNMENT.LEFT
    for idx, (width, fill) in enumerate(cells):
        cell = table.rows[0].cells[idx]
        cell.width = Inches(CONTENT_WIDTH * width / 100)
        table.columns[idx].width = Inches(CONTENT_WIDTH * width / 100)
        set_cell_shading(cell, fill)
        cell.paragraphs[0].paragraph_format.space_after = Pt(0)
        _style_run(cell.paragraphs[0].add_run(" "), size=height_pt / 2)
    return table


def _bar_text(width: int, count: int) -> str:
    slots = int(round(width * BAR_SLOTS / 100))
    if count > 0 and slots == 0:
        slots = 1
    return BAR_CHAR * slots


class PageDocumentRenderer(BlockRenderer):
    """Builds a python-docx Document section by section."""

    def __init__(self) -> None:
        self.doc = Document()
        self.skipped_assets: List[str] = []
        style = self.doc.styles["Normal"]
        style.font.name = FONT
        style.font.size = Pt(11)
        sect = self.doc.sections[0]
        sect.left_margin = sect.right_margin = Inches(0.8)
        sect.top_margin = sect.bottom_margin = Inches(0.8)

    def _decodable(self, asset) -> bool:
        try:
            Image.from_blob(asset.data)
        except Exception:
            # python-docx header parsers raise bare Exception on truncated JPEG markers.
            self.skipped_assets.append(asset.path)
            return False
        return True

    def _running_header_footer(self, plan: ReportPlan) -> None:
        sect = self.doc.sections[0]
        header = sect.header.paragraphs[0]
        _style_run(header.add_run(plan.header_text), size=9, color=plan.accent, bold=True)
        header.alignment = WD_ALIGN_PARAGRAPH.RIGHT
        footer = sect.footer.paragraphs[0]
        _style_run(footer.add_run(f"{plan.footer_text}    Page "), size=9, color=MUTED)
        _add_page_field(footer)

    def begin_section(self, section: Section, plan: ReportPlan) -> None:
        if section.kind == "title":
            self.doc.core_properties.title = plan.title
            self.doc.core_properties.author = plan.company
            self.doc.core_properties.subject = f"Shutdown report: {plan.title}"
            self._running_header_footer(plan)

    def end_section(self, section: Section, plan: ReportPlan) -> None:
        if section.page_break_after:
            self.doc.add_page_break()

    def render_title(self, block: TitleBlock, plan: ReportPlan) -> None:
        if block.logo is not None and self._decodable(block.logo):
            self.doc.add_picture(io.BytesIO(block.logo.data), height=Inches(0.8))
        add_formatted_paragraph(self.doc, block.company, size=20, color=plan.accent, bold=True)
        add_formatted_heading(self.doc, block.heading, level=0)
        add_formatted_paragraph(self.doc, block.report_name, size=18, color=INK, bold=True)
        add_formatted_paragraph(self.doc, block.period, size=13, bold=True)
        if block.date_range:
            add_formatted_paragraph(self.doc, block.date_range, size=11, color=MUTED)

    def render_kpi_row(self, block: KpiRow, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, "Executive Dashboard", level=1, color=plan.accent)
        table = self.doc.add_table(rows=2, cols=len(block.cards))
        table.alignment = WD_TABLE_ALIGNMENT.CENTER
        for idx, card in enumerate(block.cards):
            label_cell = table.rows[0].cells[idx]
            value_cell = table.rows[1].cells[idx]
            for cell in (label_cell, value_cell):
                set_cell_shading(cell, card.fill)
            _style_run(label_cell.paragraphs[0].add_run(card.label), size=10, color="5F6F88", bold=True)
            _style_run(value_cell.paragraphs[0].add_run(str(card.value)), size=24, color=card.text_color, bold=True)

    def render_status_mix(self, block: StatusMixBar, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, "Status Mix", level=2)
        if any(seg.width > 0 for seg in block.segments):
            _proportional_table(self.doc, [(seg.width, seg.color) for seg in block.segments])
        for seg in block.segments:
            para = self.doc.add_paragraph()
            para.paragraph_format.space_after = Pt(0)
            _style_run(para.add_run(BAR_CHAR + " "), size=10, color=seg.color)
            _style_run(para.add_run(f"{seg.label}: {seg.value} ({seg.percent}%)"), size=10)

    def render_compliance(self, block: ComplianceGauge, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, "Schedule Compliance", level=2)
        if block.total:
            _proportional_table(self.doc, [(block.percent, block.color), (100 - block.percent, block.track)])
        else:
            _proportional_table(self.doc, [(100, block.track)])
        add_formatted_paragraph(self.doc, f"{block.percent}%", size=32, color=block.color, bold=True)
        add_formatted_paragraph(self.doc, "On-schedule completion", size=10, color=MUTED)
        add_formatted_paragraph(self.doc, block.caption, size=11, bold=True)

    def render_trend(self, block: TrendTable, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, f"{len(block.rows)}-Day Activity", level=2)
        table = self.doc.add_table(rows=len(block.rows) + 1, cols=3)
        table.style = "Table Grid"
        for idx, title in enumerate(("Day", "Activity", "Entries")):
            cell = table.rows[0].cells[idx]
            set_cell_shading(cell, plan.accent)
            _style_run(cell.paragraphs[0].add_run(title), size=10, color="FFFFFF", bold=True)
        for idx, row in enumerate(block.rows, start=1):
            cells = table.rows[idx].cells
            _style_run(cells[0].paragraphs[0].add_run(row.label), size=10)
            _style_run(cells[1].paragraphs[0].add_run(_bar_text(row.width, row.count)), size=10, color=plan.accent)
            _style_run(cells[2].paragraphs[0].add_run(str(row.count)), size=10)
            cells[2].paragraphs[0].alignment = WD_ALIGN_PARAGRAPH.RIGHT

    def render_item_detail(self, block: ItemDetailBlock, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, block.header, level=1)
        para = self.doc.add_paragraph()
        _style_run(para.add_run(block.status_label), size=11, color=block.status_color, bold=True)
        _style_run(para.add_run(f"    {block.caption}"), size=11)
        for section in block.sections:
            add_formatted_heading(self.doc, section.title, level=2)
            if not section.lines:
                add_formatted_paragraph(self.doc, NO_ENTRIES, italic=True, color=MUTED)
            for line in section.lines:
                add_formatted_paragraph(self.doc, line, style="List Bullet")

    def render_gallery(self, block: PhotoGallery, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, "Photos", level=2)
        rendered = 0
        for asset in block.page_photos():
            if not self._decodable(asset):
                continue
            self.doc.add_picture(io.BytesIO(asset.data), width=Inches(3.2))
            rendered += 1
        if not rendered:
            add_formatted_paragraph(self.doc, NO_PHOTOS, italic=True, color=MUTED, align=WD_ALIGN_PARAGRAPH.CENTER)

    def render_follow_ups(self, block: FollowUpList, plan: ReportPlan) -> None:
        add_formatted_heading(self.doc, "Follow-ups for Next Period", level=1)
        table = self.doc.add_table(rows=len(block.rows) + 1, cols=2)
        table.style = "Table Grid"
        for idx, title in enumerate(("Work order", "Follow-up")):
            cell = table.rows[0].cells[idx]
            set_cell_shading(cell, plan.accent)
            _style_run(cell.paragraphs[0].add_run(title), size=10, color="FFFFFF", bold=True)
        for idx, (code, text) in enumerate(block.rows, start=1):
            _style_run(table.rows[idx].cells[0].paragraphs[0].add_run(code), size=10, bold=True)
            _style_run(table.rows[idx].cells[1].paragraphs[0].add_run(text), size=10)


def render_report_docx(plan: ReportPlan, renderer: PageDocumentRenderer | None = None) -> bytes:
    renderer = renderer or PageDocumentRenderer()
    render_plan(plan, renderer)
    buf = io.BytesIO()
    renderer.doc.save(buf)
    return buf.getvalue()
