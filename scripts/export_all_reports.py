#!/usr/bin/env python3
"""
BATCH REPORT EXPORTER
Exports every report from the locally stored evaluation data.

Optionally refreshes the local store from JSONBin first (--sync).

Output structure:
output/
├── reporte-evaluacion-YYYY-MM-DD.pdf
├── datos-evaluacion-YYYY-MM-DD.json
├── resumen-docentes-por-facultad.pdf
├── resumen-docentes-por-carrera.pdf
├── faculty/<faculty>-reporte-evaluacion-YYYY-MM-DD.pdf
└── program/<program>-reporte-evaluacion-YYYY-MM-DD.pdf
"""

import sys
import logging
from pathlib import Path
from dataclasses import dataclass
from typing import List, Optional

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from cloud_sync import JSONBinSyncClient
from evaluation_settings import settings
from evaluation_store import EvaluationCollection, LocalJSONStore, ReportLog
from report_builder import (
    ReportScope,
    build_general_summary,
    build_instructor_summaries,
    build_report,
)
from report_exporter import ReportExporter, export_all, export_scope_reports


@dataclass
class ExportStep:
    name: str
    success: bool
    paths: List[Path]
    error: Optional[str] = None


def load_records(store: LocalJSONStore, sync: bool) -> EvaluationCollection:
    """Local records, replaced by the cloud copy when --sync finds one"""
    collection = EvaluationCollection(store.load())

    if sync:
        client = JSONBinSyncClient()
        remote = client.load()
        if remote is None:
            print("   ⚠️  No cloud data available - using local records")
        else:
            collection.replace(remote)
            store.save(collection.snapshot())
            print(f"   ☁️  {len(remote)} records loaded from JSONBin")

    return collection


def run_step(name: str, action) -> ExportStep:
    try:
        paths = action()
    except (OSError, ValueError) as e:
        print(f"  ❌ {name} failed: {e}")
        return ExportStep(name=name, success=False, paths=[], error=str(e))
    print(f"  ✅ {name}: {len(paths)} files")
    return ExportStep(name=name, success=True, paths=paths)


def print_summary(steps: List[ExportStep], output_dir: Path):
    print("\n" + "=" * 70)
    print("EXPORT SUMMARY")
    print("=" * 70)
    for step in steps:
        status = "✅" if step.success else "❌"
        print(f"  {status} {step.name}: {len(step.paths)} files")
        if step.error:
            print(f"      Error: {step.error}")
    print(f"\n📁 Output: {output_dir}")
    print("=" * 70)


def main():
    logging.basicConfig(level=logging.INFO)
    logging.getLogger("weasyprint").setLevel(logging.ERROR)

    print("=" * 70)
    print("BATCH REPORT EXPORTER")
    print("=" * 70)

    store = LocalJSONStore()
    print(f"\n📂 Loading records from {store.path}...")
    collection = load_records(store, sync="--sync" in sys.argv)
    records = collection.snapshot()

    if not records:
        print("❌ No evaluation data stored - import a workbook first!")
        sys.exit(1)
    print(f"   {len(records)} records")

    output_dir = Path(settings.OUTPUT_DIR)
    exporter = ReportExporter(output_dir=output_dir)
    report_log = ReportLog(store)

    report = build_report(records)
    general = build_general_summary(records)

    print("\n🚀 Exporting reports...")
    steps = [
        run_step("General report", lambda: export_all(exporter, report, general)),
        run_step(
            "Instructor summary by faculty",
            lambda: [
                exporter.export_instructor_summary(
                    build_instructor_summaries(records, ReportScope.FACULTY),
                    "resumen-docentes-por-facultad.pdf",
                )
            ],
        ),
        run_step(
            "Instructor summary by program",
            lambda: [
                exporter.export_instructor_summary(
                    build_instructor_summaries(records, ReportScope.PROGRAM),
                    "resumen-docentes-por-carrera.pdf",
                )
            ],
        ),
        run_step(
            "Faculty reports",
            lambda: export_scope_reports(exporter, records, ReportScope.FACULTY, progress=True),
        ),
        run_step(
            "Program reports",
            lambda: export_scope_reports(exporter, records, ReportScope.PROGRAM, progress=True),
        ),
    ]

    report_log.append(report)
    print_summary(steps, output_dir)

    failed = [s for s in steps if not s.success]
    if failed:
        print(f"\n⚠️  {len(failed)} export steps failed - review errors above")
        sys.exit(1)
    print("\n✅ All reports exported successfully!")


if __name__ == "__main__":
    main()
