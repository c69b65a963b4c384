#!/usr/bin/env python3
"""
Import an evaluation workbook and generate every report for it
Usage: python3 generate_report.py <workbook.xlsx> <output_dir>
"""

import sys
import logging
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

logging.basicConfig(level=logging.INFO)

print(f"Starting report generation...")
print(f"  Workbook:   {sys.argv[1] if len(sys.argv) > 1 else 'MISSING'}")
print(f"  Output Dir: {sys.argv[2] if len(sys.argv) > 2 else 'MISSING'}")

if len(sys.argv) < 3:
    print("ERROR: Missing arguments")
    print("Usage: python3 generate_report.py <workbook.xlsx> <output_dir>")
    sys.exit(1)

workbook = Path(sys.argv[1]).expanduser()
output_dir = Path(sys.argv[2]).expanduser()

# Import after adding to path
from excel_importer import ExcelImportNormalizer
from evaluation_store import EvaluationCollection
from report_builder import ReportScope, build_general_summary, build_instructor_summaries, build_report
from report_exporter import ReportExporter, export_all, export_scope_reports

print(f"\nImporting {workbook.name}...")
normalizer = ExcelImportNormalizer()
result = normalizer.import_file(workbook)
print(normalizer.validation_report())

if not result.success:
    print(f"\n❌ {result.message}")
    sys.exit(1)

collection = EvaluationCollection(result.imported)
records = collection.snapshot()
print(f"\n✅ {result.message}")

exporter = ReportExporter(output_dir=output_dir)

print("\nGenerating general university report...")
general = build_general_summary(records)
report = build_report(records)
written = export_all(exporter, report, general)

if general.institutional.differs:
    print(
        f"  Note: manual average {general.institutional.manual.overall:.2f} differs from "
        f"system average {general.institutional.precise.overall:.2f}"
    )

print("Generating instructor summaries...")
written.append(
    exporter.export_instructor_summary(
        build_instructor_summaries(records, ReportScope.FACULTY), "resumen-docentes-por-facultad.pdf"
    )
)

print("Generating faculty and program reports...")
written.extend(export_scope_reports(exporter, records, ReportScope.FACULTY, progress=True))
written.extend(export_scope_reports(exporter, records, ReportScope.PROGRAM, progress=True))

print(f"\n✅ SUCCESS! {len(written)} files written to {output_dir}")
for path in written:
    print(f"  {path}")
