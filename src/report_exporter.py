#!/usr/bin/env python3
"""
REPORT EXPORTER - HTML/PDF rendering of evaluation reports

EXPORT WORKFLOW:
1. Build template context from a Report snapshot (and optional summaries)
2. Render HTML with Jinja2 (report.html / instructor_summary.html)
3. Convert to PDF with WeasyPrint when installed
4. Without WeasyPrint the rendered HTML is saved instead

File names follow the office convention:
  reporte-evaluacion-YYYY-MM-DD.pdf
  datos-evaluacion-YYYY-MM-DD.json
"""

import logging
import re
from datetime import date
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape
from tqdm import tqdm

# PDF generation
try:
    from weasyprint import HTML, CSS

    WEASYPRINT_AVAILABLE = True
except ImportError:
    WEASYPRINT_AVAILABLE = False

from aggregation_engine import (
    by_instructor,
    compute_aspect_averages,
    compute_participation,
    format_fixed,
    mean_grade,
    partition,
)
from evaluation_models import ASPECT_LABELS, ASPECT_SHORT_LABELS, EvaluationRecord, Report
from evaluation_settings import settings
from evaluation_store import export_json
from excel_importer import fold_accents
from grading_classifier import classify
from report_builder import (
    GeneralSummary,
    InstructorSummary,
    ReportScope,
    available_keys,
    build_report,
    build_scope_report,
    select_records,
)

logger = logging.getLogger(__name__)


def report_filename(day: Optional[date] = None) -> str:
    return f"reporte-evaluacion-{(day or date.today()).isoformat()}.pdf"


def data_filename(day: Optional[date] = None) -> str:
    return f"datos-evaluacion-{(day or date.today()).isoformat()}.json"


class ReportExporter:
    """Render reports to PDF (or HTML) and records to JSON"""

    def __init__(self, templates_dir: Optional[Path] = None, output_dir: Optional[Path] = None):
        """
        Args:
            templates_dir: Jinja2 templates and styles.css (settings.TEMPLATES_DIR)
            output_dir: Destination folder (settings.OUTPUT_DIR)
        """
        self.templates_dir = Path(templates_dir or settings.TEMPLATES_DIR)
        self.output_dir = Path(output_dir or settings.OUTPUT_DIR)

        self.env = Environment(
            loader=FileSystemLoader(str(self.templates_dir)),
            autoescape=select_autoescape(["html", "xml"]),
        )
        self.env.filters["fixed"] = format_fixed

        logger.info(f"Report exporter initialized")
        logger.info(f"Templates: {self.templates_dir}")
        logger.info(f"Output: {self.output_dir}")

    def _report_context(self, report: Report, general: Optional[GeneralSummary]) -> Dict[str, Any]:
        records = report.records
        aspects = compute_aspect_averages(records)
        average = mean_grade(records)

        return {
            "report": report,
            "records": records,
            "participation": compute_participation(records),
            "aspect_rows": list(zip(ASPECT_SHORT_LABELS, ASPECT_LABELS, aspects.as_list())),
            "average_grade": average,
            "classification": classify(average).value,
            "instructor_count": len(partition(records, by_instructor)),
            "charts": list(zip(report.charts, report.interpretations)),
            "general": general,
        }

    def render_report_html(self, report: Report, general: Optional[GeneralSummary] = None) -> str:
        template = self.env.get_template("report.html")
        return template.render(**self._report_context(report, general))

    def render_instructor_summary_html(
        self, summaries: Sequence[InstructorSummary], title: Optional[str] = None
    ) -> str:
        template = self.env.get_template("instructor_summary.html")
        return template.render(
            title=title or settings.REPORT_TITLE,
            summaries=summaries,
            generated_on=date.today().isoformat(),
        )

    def export_report(
        self,
        report: Report,
        filename: Optional[str] = None,
        general: Optional[GeneralSummary] = None,
    ) -> Path:
        """Write the report; returns the PDF path, or the HTML path without WeasyPrint"""
        logger.info(f"📄 Exporting report '{report.title}' ({len(report.records)} records)")
        html_content = self.render_report_html(report, general)
        output_path = self.output_dir / (filename or report_filename(report.generated_at.date()))
        return self._write_document(html_content, output_path)

    def export_instructor_summary(
        self,
        summaries: Sequence[InstructorSummary],
        filename: str,
        title: Optional[str] = None,
    ) -> Path:
        logger.info(f"📄 Exporting instructor summary ({len(summaries)} groups)")
        html_content = self.render_instructor_summary_html(summaries, title)
        return self._write_document(html_content, self.output_dir / filename)

    def export_records(
        self, records: Sequence[EvaluationRecord], filename: Optional[str] = None
    ) -> Path:
        return export_json(records, self.output_dir / (filename or data_filename()))

    def _write_document(self, html_content: str, output_path: Path) -> Path:
        output_path.parent.mkdir(parents=True, exist_ok=True)

        if WEASYPRINT_AVAILABLE:
            self._generate_pdf_weasyprint(html_content, output_path)
        else:
            # Fallback: save HTML for manual conversion
            html_path = output_path.with_suffix(".html")
            with open(html_path, "w", encoding="utf-8") as f:
                f.write(html_content)
            logger.warning(f"WeasyPrint not available - saved HTML to {html_path}")
            return html_path

        logger.info(f"✅ Report generated: {output_path}")
        return output_path

    def _generate_pdf_weasyprint(self, html_content: str, output_path: Path):
        css_path = self.templates_dir / "styles.css"
        document = HTML(string=html_content, base_url=str(self.templates_dir))

        if css_path.exists():
            document.write_pdf(output_path, stylesheets=[CSS(filename=str(css_path))])
        else:
            logger.warning(f"CSS file not found: {css_path}, generating without stylesheet")
            document.write_pdf(output_path)


def export_all(
    exporter: ReportExporter,
    report: Report,
    general: Optional[GeneralSummary] = None,
) -> List[Path]:
    """Report document plus its JSON data file"""
    day = report.generated_at.date()
    return [
        exporter.export_report(report, report_filename(day), general),
        exporter.export_records(report.records, data_filename(day)),
    ]


def export_scope_reports(
    exporter: ReportExporter,
    records: Sequence[EvaluationRecord],
    scope: ReportScope,
    progress: bool = False,
) -> List[Path]:
    """One report per selector value of a scope (every faculty, every program...)"""
    scope = ReportScope(scope)
    keys = available_keys(records, scope)
    iterator = tqdm(keys, desc=f"{scope.value} reports", unit="report") if progress else keys
    folder = scope.value

    paths = []
    for key in iterator:
        selected = select_records(records, scope, key)
        scope_report = build_scope_report(selected, scope, key)
        report = build_report(
            selected,
            title=f"{settings.REPORT_TITLE} - {key}",
            charts=scope_report.charts,
        )
        filename = f"{folder}/{slugify(key)}-{report_filename(report.generated_at.date())}"
        paths.append(exporter.export_report(report, filename))
    return paths


def slugify(text: str) -> str:
    """File-safe lowercase name: 'Ingeniería Civil' -> 'ingenieria-civil'"""
    folded = fold_accents(text).lower()
    return re.sub(r"[^a-z0-9]+", "-", folded).strip("-") or "reporte"
