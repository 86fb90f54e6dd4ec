"""PDF export of a job-description package."""

import io
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Optional, Union
from xml.sax.saxutils import escape

from pydantic import ValidationError
from reportlab.lib import colors
from reportlab.lib.enums import TA_CENTER
from reportlab.lib.pagesizes import A4, letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import (
    ListFlowable,
    Paragraph,
    SimpleDocTemplate,
    Spacer,
    Table,
    TableStyle,
)

from jd_refiner.models.document import JobDescriptionDocument, Role

logger = logging.getLogger(__name__)

WEEKDAYS = ["Mon", "Tue", "Wed", "Thu", "Fri"]


class ExportError(Exception):
    """The document could not be rendered."""


@dataclass
class PDFConfig:
    """Page and font settings for the PDF export."""

    title: str = "Comprehensive Job Description Analysis"
    page_size: str = "letter"  # "letter" or "a4"
    margin: float = 0.8  # inches

    title_font_size: int = 22
    heading_font_size: int = 16
    subheading_font_size: int = 13
    body_font_size: int = 10

    text_color: str = "#1f2933"
    accent_color: str = "#1d4ed8"


class PDFExporter:
    """
    Renders a job-description package to PDF with reportlab.

    Usage:
        pdf_bytes = PDFExporter().export(document)
        PDFExporter().export_to_file(document, Path("jd.pdf"))
    """

    def __init__(self, config: Optional[PDFConfig] = None):
        self.config = config or PDFConfig()
        self._styles = self._build_styles()

    def _build_styles(self) -> dict[str, ParagraphStyle]:
        base = getSampleStyleSheet()
        text = colors.HexColor(self.config.text_color)
        accent = colors.HexColor(self.config.accent_color)

        return {
            "title": ParagraphStyle(
                "JDTitle",
                parent=base["Title"],
                fontSize=self.config.title_font_size,
                textColor=accent,
                alignment=TA_CENTER,
                spaceAfter=6,
            ),
            "meta": ParagraphStyle(
                "JDMeta",
                parent=base["Normal"],
                fontSize=self.config.body_font_size - 1,
                textColor=colors.grey,
                alignment=TA_CENTER,
                spaceAfter=18,
            ),
            "heading1": ParagraphStyle(
                "JDHeading1",
                parent=base["Heading1"],
                fontSize=self.config.heading_font_size,
                textColor=accent,
                spaceBefore=14,
                spaceAfter=8,
            ),
            "heading2": ParagraphStyle(
                "JDHeading2",
                parent=base["Heading2"],
                fontSize=self.config.subheading_font_size,
                textColor=text,
                spaceBefore=8,
                spaceAfter=4,
            ),
            "body": ParagraphStyle(
                "JDBody",
                parent=base["Normal"],
                fontSize=self.config.body_font_size,
                textColor=text,
                leading=self.config.body_font_size + 4,
                spaceAfter=4,
            ),
        }

    def _p(self, text: Any, style: str = "body") -> Paragraph:
        return Paragraph(escape(str(text)), self._styles[style])

    def _bullets(self, items: Optional[list[str]], start: str = "•") -> list:
        if not items:
            return []
        return [
            ListFlowable(
                [self._p(item) for item in items],
                bulletType="bullet",
                start=start,
                leftIndent=15,
            )
        ]

    def _labelled_list(self, label: str, items: Optional[list[str]]) -> list:
        if not items:
            return []
        return [self._p(label, "heading2"), *self._bullets(items)]

    def _role_section(self, index: int, role: Role) -> list:
        elements = [self._p(f"Role #{index}: {role.title or 'Untitled role'}", "heading1")]

        facts = [
            ("Purpose", role.purpose),
            ("Family", role.family),
            ("Service", role.service),
            ("Weekly Hours", role.hours_per_week),
            (
                "Client Facing",
                None if role.client_facing is None else ("Yes" if role.client_facing else "No"),
            ),
            ("Reporting To", role.reporting_to),
        ]
        for label, value in facts:
            if value not in (None, ""):
                elements.append(
                    Paragraph(f"<b>{label}:</b> {escape(str(value))}", self._styles["body"])
                )

        elements.extend(self._labelled_list("Core Outcomes", role.core_outcomes))
        elements.extend(self._labelled_list("Responsibilities", role.responsibilities))
        elements.extend(self._labelled_list("Required Skills", role.skills))
        elements.extend(self._labelled_list("Tools & Technologies", role.tools))
        elements.extend(self._labelled_list("Key Performance Indicators", role.kpis))
        elements.extend(self._labelled_list("Personality Fit", role.personality))

        if role.sample_week:
            elements.append(self._p("Sample Week", "heading2"))
            days = [day for day in WEEKDAYS if day in role.sample_week]
            days += [day for day in role.sample_week if day not in WEEKDAYS]
            for day in days:
                elements.append(
                    Paragraph(
                        f"<b>{escape(day)}:</b> {escape(str(role.sample_week[day]))}",
                        self._styles["body"],
                    )
                )

        if role.overlap_requirements:
            elements.append(self._p("Overlap Requirements", "heading2"))
            elements.append(self._p(role.overlap_requirements))
        if role.communication_norms:
            elements.append(self._p("Communication Norms", "heading2"))
            elements.append(self._p(role.communication_norms))

        return elements

    def _split_table(self, document: JobDescriptionDocument) -> list:
        if not document.split_table:
            return []

        rows = [["Role", "Purpose", "Hours", "Service"]]
        for row in document.split_table:
            rows.append(
                [
                    self._p(row.role or ""),
                    self._p(row.purpose or ""),
                    self._p("" if row.hrs is None else f"{row.hrs:g}"),
                    self._p(row.service or ""),
                ]
            )

        table = Table(rows, colWidths=[1.6 * inch, 3.0 * inch, 0.7 * inch, 1.4 * inch])
        table.setStyle(
            TableStyle(
                [
                    ("BACKGROUND", (0, 0), (-1, 0), colors.HexColor(self.config.accent_color)),
                    ("TEXTCOLOR", (0, 0), (-1, 0), colors.white),
                    ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
                    ("GRID", (0, 0), (-1, -1), 0.5, colors.lightgrey),
                    ("VALIGN", (0, 0), (-1, -1), "TOP"),
                ]
            )
        )
        return [self._p("Role Split", "heading1"), table]

    def _service_section(self, document: JobDescriptionDocument) -> list:
        rec = document.service_recommendation
        if rec is None:
            return []

        elements = [self._p("Service Recommendation", "heading1")]
        if rec.best_fit:
            elements += [self._p("Best Fit", "heading2"), self._p(rec.best_fit)]
        if rec.why:
            elements += [self._p("Why", "heading2"), self._p(rec.why)]
        if rec.cost_framing:
            elements += [self._p("Cost Framing", "heading2"), self._p(rec.cost_framing)]
        if rec.next_steps:
            elements += [self._p("Next Steps", "heading2"), *self._bullets(rec.next_steps, "-")]
        return elements

    def _onboarding_section(self, document: JobDescriptionDocument) -> list:
        plan = document.onboarding_2w
        if plan is None or not (plan.week_1 or plan.week_2):
            return []
        return [
            self._p("2-Week Onboarding Plan", "heading1"),
            *self._labelled_list("Week 1", plan.week_1),
            *self._labelled_list("Week 2", plan.week_2),
        ]

    def build_story(self, document: JobDescriptionDocument) -> list:
        """Flowables for the whole package, in reading order."""
        generated = datetime.now(timezone.utc).strftime("%Y-%m-%d")
        story = [
            self._p(self.config.title, "title"),
            self._p(f"Generated: {generated}", "meta"),
        ]

        if document.what_you_told_us:
            story += [self._p("What You Told Us", "heading1"), self._p(document.what_you_told_us)]

        for index, role in enumerate(document.roles or [], 1):
            story.extend(self._role_section(index, role))

        story.extend(self._split_table(document))
        story.extend(self._service_section(document))
        story.extend(self._onboarding_section(document))

        if document.risks:
            story += [self._p("Risks", "heading1"), *self._bullets(document.risks)]
        if document.assumptions:
            story += [self._p("Assumptions", "heading1"), *self._bullets(document.assumptions)]

        return story

    def export(self, document: Union[dict[str, Any], JobDescriptionDocument]) -> bytes:
        """
        Render the package to PDF.

        Raises:
            ExportError: The document does not have a renderable shape
        """
        if not isinstance(document, JobDescriptionDocument):
            try:
                document = JobDescriptionDocument.from_payload(document)
            except ValidationError as e:
                raise ExportError(f"Document cannot be rendered: {e}") from e

        buffer = io.BytesIO()
        margin = self.config.margin * inch
        doc = SimpleDocTemplate(
            buffer,
            pagesize=A4 if self.config.page_size.lower() == "a4" else letter,
            leftMargin=margin,
            rightMargin=margin,
            topMargin=margin,
            bottomMargin=margin,
            title=self.config.title,
        )
        doc.build(
            self.build_story(document),
            onFirstPage=self._add_page_number,
            onLaterPages=self._add_page_number,
        )

        data = buffer.getvalue()
        logger.info(f"Rendered PDF: {doc.page} pages, {len(data)} bytes")
        return data

    def export_to_file(
        self,
        document: Union[dict[str, Any], JobDescriptionDocument],
        path: Path,
    ) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(self.export(document))
        return path

    def _add_page_number(self, canvas, doc) -> None:
        canvas.saveState()
        canvas.setFont("Helvetica", 8)
        canvas.setFillColor(colors.grey)
        canvas.drawRightString(
            doc.pagesize[0] - self.config.margin * inch,
            self.config.margin * inch / 2,
            f"Page {canvas.getPageNumber()}",
        )
        canvas.restoreState()


def export_pdf(
    document: Union[dict[str, Any], JobDescriptionDocument],
    config: Optional[PDFConfig] = None,
) -> bytes:
    """Render a job-description package to PDF bytes."""
    return PDFExporter(config).export(document)
