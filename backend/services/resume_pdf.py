# backend/services/resume_pdf.py
"""
Print-ready PDF of the benchmark resume, built from the rendered markdown
blocks with reportlab.
"""

import html
import io
from typing import Any, Dict, List, Tuple

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.platypus import HRFlowable, Paragraph, SimpleDocTemplate, Spacer

from services.resume_renderer import (
    CONTACT,
    HEADING,
    LIST,
    SUBHEADING,
    TextSpan,
    render_markdown,
)

TEXT_COLOR = colors.HexColor("#1e293b")
MUTED_COLOR = colors.HexColor("#64748b")
ACCENT_COLOR = colors.HexColor("#4f46e5")
LINE_COLOR = colors.HexColor("#e2e8f0")


def build_pdf_styles() -> Dict[str, ParagraphStyle]:
    sample = getSampleStyleSheet()
    return {
        HEADING: ParagraphStyle(
            "name",
            parent=sample["Title"],
            fontName="Helvetica-Bold",
            fontSize=24,
            leading=28,
            textColor=TEXT_COLOR,
            spaceAfter=2,
        ),
        CONTACT: ParagraphStyle(
            "contact",
            parent=sample["Normal"],
            fontName="Helvetica",
            fontSize=9.6,
            leading=12,
            alignment=1,
            textColor=MUTED_COLOR,
            spaceAfter=6,
        ),
        SUBHEADING: ParagraphStyle(
            "section",
            parent=sample["Heading3"],
            fontName="Helvetica-Bold",
            fontSize=11.4,
            leading=14,
            textColor=ACCENT_COLOR,
            spaceBefore=8,
            spaceAfter=4,
        ),
        "body": ParagraphStyle(
            "body",
            parent=sample["Normal"],
            fontName="Helvetica",
            fontSize=10.2,
            leading=14.2,
            textColor=TEXT_COLOR,
            spaceAfter=3,
        ),
        "bullet": ParagraphStyle(
            "bullet",
            parent=sample["Normal"],
            fontName="Helvetica",
            fontSize=10.2,
            leading=14.2,
            textColor=TEXT_COLOR,
            leftIndent=14,
            bulletIndent=2,
            spaceBefore=1,
            spaceAfter=3,
        ),
    }


def spans_to_markup(spans: Tuple[TextSpan, ...]) -> str:
    """Escape span text and wrap emphasised spans in <b> tags."""
    parts = []
    for span in spans:
        text = html.escape(span.text)
        parts.append(f"<b>{text}</b>" if span.bold else text)
    return "".join(parts)


def render_resume_pdf(markdown: str, title: str = "Benchmark Resume") -> bytes:
    """
    Render benchmark resume markdown to PDF bytes.

    Args:
        markdown: The sampleResume markdown of an analysis
        title: PDF document title

    Returns:
        PDF file contents
    """
    styles = build_pdf_styles()
    output = io.BytesIO()
    doc = SimpleDocTemplate(
        output,
        pagesize=A4,
        leftMargin=44,
        rightMargin=44,
        topMargin=42,
        bottomMargin=34,
        title=title,
    )

    story: List[Any] = []
    for block in render_markdown(markdown):
        if block.kind == LIST:
            for item in block.items:
                story.append(Paragraph(spans_to_markup(item), styles["bullet"], bulletText="• "))
            story.append(Spacer(1, 4))
        elif block.kind == HEADING:
            story.append(Paragraph(spans_to_markup(block.spans), styles[HEADING]))
        elif block.kind == CONTACT:
            story.append(Paragraph(spans_to_markup(block.spans), styles[CONTACT]))
            story.append(HRFlowable(width="100%", color=LINE_COLOR, thickness=0.9, spaceBefore=2, spaceAfter=7))
        elif block.kind == SUBHEADING:
            story.append(Paragraph(spans_to_markup(block.spans), styles[SUBHEADING]))
        else:
            story.append(Paragraph(spans_to_markup(block.spans), styles["body"]))

    if not story:
        story.append(Paragraph("Benchmark profile unavailable.", styles["body"]))

    doc.build(story)
    output.seek(0)
    return output.getvalue()
