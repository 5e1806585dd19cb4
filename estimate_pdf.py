from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from io import BytesIO
from typing import List, Optional, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.units import inch
from reportlab.pdfbase import pdfmetrics
from reportlab.pdfbase.cidfonts import UnicodeCIDFont
from reportlab.pdfgen import canvas

from ai_proposal import Proposal
from estimate_engine import EstimateResult
from handoff import EstimationRecord, format_jpy
from pricing_catalog import PricingCatalog
from site_content import SITE_NAME

# Built-in Japanese CID font; no font files need to ship with the app.
JP_FONT = "HeiseiKakuGo-W5"
pdfmetrics.registerFont(UnicodeCIDFont(JP_FONT))

DISCLAIMER = "*税抜価格・要件により変動します。これはAIによるシミュレーション値です。"


@dataclass(frozen=True)
class EstimateSheetLine:
    description: str
    amount_jpy: int


@dataclass(frozen=True)
class EstimateSheet:
    estimate_id: str
    issued_on: date
    category_label: str
    scale_label: str
    design_label: str
    features_label: str
    line_items: Tuple[EstimateSheetLine, ...]
    total_jpy: int
    monthly_maintenance_jpy: int = 0
    notes: Tuple[str, ...] = ()
    proposal: Optional[Proposal] = None


def build_estimate_sheet(
    record: EstimationRecord,
    estimate: EstimateResult,
    catalog: PricingCatalog,
    *,
    issued_on: Optional[date] = None,
) -> EstimateSheet:
    state = record.state
    features = "、".join(catalog.feature_labels(state.selected_features))
    return EstimateSheet(
        estimate_id=record.record_id[:8].upper(),
        issued_on=issued_on or date.today(),
        category_label=catalog.category_label(state.category),
        scale_label=catalog.scale_label(state.scale),
        design_label="素材支給あり" if state.design_provided else "制作依頼 (追加費)",
        features_label=features or "特になし",
        line_items=tuple(EstimateSheetLine(li.description, li.amount_jpy) for li in estimate.line_items),
        total_jpy=record.total_jpy,
        monthly_maintenance_jpy=estimate.monthly_maintenance_jpy,
        notes=estimate.notes,
        proposal=record.proposal,
    )


def make_estimate_pdf_bytes(sheet: EstimateSheet) -> bytes:
    """
    Render a one-page estimate sheet.

    Layout: header band (site, estimate id, date, total), selection summary,
    line items with the total row, optional maintenance line, optional AI proposal draft.
    """
    buf = BytesIO()
    c = canvas.Canvas(buf, pagesize=A4)
    # Uncompressed so the ASCII markers can be found in the bytes.
    c.setPageCompression(0)
    w, h = A4

    margin = 0.6 * inch
    x0 = margin
    y_top = h - margin
    pad = 0.15 * inch
    content_w = w - 2 * margin

    header_h = 1.1 * inch
    _rect(c, x0, y_top - header_h, content_w, header_h, stroke=1, fill=0)
    c.setFont("Helvetica-Bold", 14)
    c.drawString(x0 + pad, y_top - 0.45 * inch, SITE_NAME)
    c.setFont("Helvetica", 9)
    c.drawString(x0 + pad, y_top - 0.68 * inch, "PROJECT ESTIMATE")

    box_w = 2.4 * inch
    box_x = w - margin - box_w
    line_h = 0.22 * inch
    t_y = y_top - 0.35 * inch
    c.setFont("Helvetica-Bold", 10)
    c.drawString(box_x, t_y, f"EST-{sheet.estimate_id}")
    t_y -= line_h
    c.setFont("Helvetica", 9)
    c.drawString(box_x, t_y, f"Date: {sheet.issued_on.isoformat()}")
    t_y -= line_h + 0.03 * inch
    c.setFont("Helvetica-Bold", 11)
    c.drawString(box_x, t_y, f"Total: {format_jpy(sheet.total_jpy)}~")

    y = y_top - header_h - 0.3 * inch

    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0, y, "SELECTION")
    y -= 0.25 * inch
    label_w = 1.3 * inch
    for label, value in (
        ("開発タイプ", sheet.category_label),
        ("規模感", sheet.scale_label),
        ("デザイン対応", sheet.design_label),
        ("機能", sheet.features_label),
    ):
        c.setFont(JP_FONT, 9)
        c.drawString(x0 + pad, y, label)
        _draw_truncated(c, x0 + pad + label_w, y, value, max_width=content_w - label_w - 2 * pad)
        y -= 0.22 * inch

    y -= 0.15 * inch
    y = _render_line_items(c, sheet=sheet, x0=x0, pad=pad, table_w=content_w, table_top_y=y)

    if sheet.proposal is not None:
        y -= 0.3 * inch
        y = _render_proposal(c, proposal=sheet.proposal, x0=x0, pad=pad, box_w=content_w, top_y=y, min_y=margin + 0.6 * inch)

    footer_y = margin + 0.2 * inch
    c.setFillColor(colors.grey)
    c.setFont(JP_FONT, 7.5)
    note_y = footer_y + 0.15 * inch
    for n in sheet.notes[:3]:
        c.drawString(x0, note_y, n)
        note_y += 0.13 * inch
    c.drawString(x0, footer_y, DISCLAIMER)
    c.setFillColor(colors.black)

    c.showPage()
    c.save()
    return buf.getvalue()


def _rect(c: canvas.Canvas, x: float, y: float, w: float, h: float, *, stroke: int, fill: int) -> None:
    c.rect(x, y, w, h, stroke=stroke, fill=fill)


def _hline(c: canvas.Canvas, x1: float, x2: float, y: float) -> None:
    c.line(x1, y, x2, y)


def _draw_truncated(c: canvas.Canvas, x: float, y: float, text: str, *, max_width: float) -> None:
    """
    Draw text in the current font, cut with an ellipsis so it stays inside a box.
    """
    t = (text or "").strip()
    if not t or max_width <= 0:
        return
    if c.stringWidth(t) <= max_width:
        c.drawString(x, y, t)
        return
    ell = "..."
    lo = 0
    hi = len(t)
    best = ""
    while lo <= hi:
        mid = (lo + hi) // 2
        cand = (t[:mid].rstrip() + ell) if mid < len(t) else t
        if c.stringWidth(cand) <= max_width:
            best = cand
            lo = mid + 1
        else:
            hi = mid - 1
    if best:
        c.drawString(x, y, best)


def _wrap_text(c: canvas.Canvas, text: str, *, max_width: float) -> List[str]:
    """
    Character-level wrap in the current font (Japanese has no spaces to break on).
    """
    lines: List[str] = []
    for paragraph in (text or "").splitlines() or [""]:
        current = ""
        for ch in paragraph:
            if current and c.stringWidth(current + ch) > max_width:
                lines.append(current)
                current = ch
            else:
                current += ch
        lines.append(current)
    return lines


def _render_line_items(
    c: canvas.Canvas,
    *,
    sheet: EstimateSheet,
    x0: float,
    pad: float,
    table_w: float,
    table_top_y: float,
) -> float:
    """
    Draw the line items table followed by the total rows. Returns the y below the table.
    """
    row_h = 0.27 * inch
    extra_rows = 2 if sheet.monthly_maintenance_jpy else 1
    table_h = 0.55 * inch + (len(sheet.line_items) + extra_rows) * row_h
    table_bottom_y = table_top_y - table_h
    right_x = x0 + table_w - pad
    _rect(c, x0, table_bottom_y, table_w, table_h, stroke=1, fill=0)

    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0 + pad, table_top_y - 0.25 * inch, "DESCRIPTION")
    c.drawRightString(right_x, table_top_y - 0.25 * inch, "AMOUNT")
    _hline(c, x0, x0 + table_w, table_top_y - 0.35 * inch)

    desc_max_w = table_w - 1.6 * inch
    row_y = table_top_y - 0.55 * inch
    for li in sheet.line_items:
        c.setFont(JP_FONT, 9)
        _draw_truncated(c, x0 + pad, row_y, li.description, max_width=desc_max_w)
        c.setFont("Helvetica", 9)
        c.drawRightString(right_x, row_y, format_jpy(li.amount_jpy))
        row_y -= row_h

    _hline(c, x0, x0 + table_w, row_y + row_h - 0.08 * inch)
    c.setFont("Helvetica-Bold", 10)
    c.drawString(x0 + pad, row_y, "TOTAL (one-time)")
    c.drawRightString(right_x, row_y, f"{format_jpy(sheet.total_jpy)}~")
    row_y -= row_h

    if sheet.monthly_maintenance_jpy:
        c.setFont("Helvetica", 9)
        c.drawString(x0 + pad, row_y, "MAINTENANCE (monthly)")
        c.drawRightString(right_x, row_y, f"{format_jpy(sheet.monthly_maintenance_jpy)} / month")

    return table_bottom_y


def _render_proposal(
    c: canvas.Canvas,
    *,
    proposal: Proposal,
    x0: float,
    pad: float,
    box_w: float,
    top_y: float,
    min_y: float,
) -> float:
    c.setFont("Helvetica-Bold", 9)
    c.drawString(x0, top_y, "AI PROPOSAL DRAFT")
    y = top_y - 0.25 * inch
    text_w = box_w - 2 * pad
    line_h = 0.18 * inch

    c.setFont(JP_FONT, 9)
    sections = [("プロジェクト概要", proposal.summary)]
    if proposal.technical_challenges:
        sections.append(("技術的な課題", "、".join(proposal.technical_challenges)))
    if proposal.recommended_stack:
        sections.append(("推奨技術スタック", " / ".join(proposal.recommended_stack)))
    if proposal.timeline_estimation:
        sections.append(("想定スケジュール", proposal.timeline_estimation))

    for title, body in sections:
        if y < min_y:
            break
        c.setFont(JP_FONT, 9)
        c.drawString(x0 + pad, y, f"■ {title}")
        y -= line_h
        for line in _wrap_text(c, body, max_width=text_w):
            if y < min_y:
                break
            c.drawString(x0 + pad, y, line)
            y -= line_h
        y -= 0.06 * inch
    return y
