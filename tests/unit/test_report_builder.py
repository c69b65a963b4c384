"""
Unit Tests for Report Builders

Tests for:
- Scope selection and selector keys
- Scope reports (rankings, participation, charts)
- Instructor summaries
- Qualitative distributions
- General university summary
- Rule-based interpretations
"""

import pytest

from evaluation_models import ChartDataset, ChartDescriptor, Report
from report_builder import (
    ReportScope,
    available_keys,
    build_general_summary,
    build_instructor_summaries,
    build_instructor_summary,
    build_qualitative_distribution,
    build_report,
    build_scope_report,
    generate_interpretation,
    select_records,
)
from conftest import make_record


class TestScopeSelection:
    """Tests for select_records() and available_keys()"""

    def test_institution_selects_everything(self, sample_records):
        assert len(select_records(sample_records, ReportScope.INSTITUTION)) == 4

    def test_faculty_scope(self, sample_records):
        selected = select_records(sample_records, ReportScope.FACULTY, "FADE")
        assert [r.instructor for r in selected] == ["Carla Díaz"]

    def test_missing_key_raises(self, sample_records):
        with pytest.raises(ValueError):
            select_records(sample_records, ReportScope.PROGRAM)

    def test_unknown_scope_raises(self, sample_records):
        with pytest.raises(ValueError):
            select_records(sample_records, "campus", "X")

    def test_available_keys_sorted(self, sample_records):
        assert available_keys(sample_records, ReportScope.FACULTY) == ["FADE", "FAING"]
        assert available_keys(sample_records, ReportScope.INSTRUCTOR) == [
            "Ana Ruiz",
            "Carla Díaz",
            "Luis Pérez",
        ]


class TestScopeReport:
    """Tests for build_scope_report()"""

    def test_faculty_report(self, sample_records):
        report = build_scope_report(sample_records, ReportScope.FACULTY, "FAING")

        assert report.course_count == 3
        assert report.participation.surveyed_total == 50
        assert report.participation.participation_pct == "71.43"
        assert [g.key for g in report.instructor_groups] == ["Ana Ruiz", "Luis Pérez"]
        assert [g.key for g in report.program_groups] == ["Carrera Profesional de Ingeniería Civil"]
        assert [c.chart_type for c in report.charts] == ["doughnut", "bar", "bar", "pie"]

    def test_faculty_groups_in_institutional_order(self, sample_records):
        report = build_scope_report(sample_records)
        assert [g.key for g in report.faculty_groups] == ["FADE", "FAING"]

    def test_empty_scope(self, sample_records):
        report = build_scope_report(sample_records, ReportScope.FACULTY, "FAU")

        assert report.is_empty
        assert report.charts == []
        assert report.participation.participation_pct == "0.00"
        assert report.average_grade == 0.0

    def test_long_program_labels_truncated(self):
        records = [make_record(program="Carrera Profesional de Ingeniería Agroindustrial")]

        report = build_scope_report(records)

        program_chart = report.charts[2]
        assert program_chart.labels == ["Carrera Profesional de Ingenie..."]


class TestInstructorSummary:
    """Tests for build_instructor_summary()"""

    def test_summary_totals(self, sample_records):
        summary = build_instructor_summary(sample_records)

        assert summary.instructor_count == 3
        assert summary.course_count == 4
        assert [g.key for g in summary.instructors] == ["Ana Ruiz", "Carla Díaz", "Luis Pérez"]
        assert summary.overall_average == pytest.approx((17.0 + 19.0 + 12.5) / 3)
        assert summary.instructor_average("Ana Ruiz") == 17.0

    def test_detail_rows_sorted_by_instructor(self, sample_records):
        summary = build_instructor_summary(sample_records)
        assert [r.instructor for r in summary.detail_rows] == [
            "Ana Ruiz",
            "Ana Ruiz",
            "Carla Díaz",
            "Luis Pérez",
        ]

    def test_empty(self):
        summary = build_instructor_summary([])
        assert summary.overall_average == 0.0

    def test_one_summary_per_faculty(self, sample_records):
        summaries = build_instructor_summaries(sample_records, ReportScope.FACULTY)
        assert [s.key for s in summaries] == ["FADE", "FAING"]


class TestQualitativeDistribution:
    """Tests for build_qualitative_distribution()"""

    def test_institution_distribution(self, sample_records):
        distribution = build_qualitative_distribution(sample_records)

        assert distribution.total_instructors == 3
        assert distribution.counts["DESTACADO"] == 1
        assert distribution.percentages["BUENO"] == "33.3"
        assert [c.chart_type for c in distribution.charts] == ["pie", "bar"]

    def test_program_distribution_uses_same_path(self, sample_records):
        distribution = build_qualitative_distribution(
            sample_records, ReportScope.PROGRAM, "Carrera Profesional de Derecho"
        )

        assert distribution.counts == {
            "INSATISFACTORIO": 0,
            "ACEPTABLE": 0,
            "BUENO": 0,
            "DESTACADO": 1,
        }
        assert distribution.percentages["DESTACADO"] == "100.0"


class TestGeneralSummary:
    """Tests for build_general_summary()"""

    def test_general_summary(self, sample_records):
        summary = build_general_summary(sample_records)

        assert summary.course_count == 4
        assert [row.faculty for row in summary.faculties] == ["FADE", "FAING"]
        assert summary.institutional.precise.aspect1 == pytest.approx(15.75)
        assert summary.participation.surveyed_total == 80
        assert len(summary.charts) == 2

    def test_empty_collection(self):
        summary = build_general_summary([])

        assert summary.faculties == []
        assert summary.institutional.precise.overall == 0.0
        assert summary.charts == []


class TestInterpretations:
    """Tests for generate_interpretation() and build_report()"""

    def test_bar_interpretation(self):
        chart = ChartDescriptor(
            chart_type="bar",
            title="Nota Promedio por Curso",
            labels=["Cálculo", "Física"],
            datasets=[ChartDataset(label="Nota", data=[18.0, 14.0])],
            y_max=20,
        )

        text = generate_interpretation(chart)

        assert "16.00" in text
        assert "Cálculo" in text
        assert "BUENO" in text

    def test_pie_interpretation(self):
        chart = ChartDescriptor(
            chart_type="doughnut",
            title="Encuestados vs No Encuestados",
            labels=["Encuestados", "No Encuestados"],
            datasets=[ChartDataset(label="Estudiantes", data=[75, 25])],
        )

        text = generate_interpretation(chart)

        assert "Encuestados con 75.0%" in text

    def test_empty_chart(self):
        chart = ChartDescriptor(chart_type="pie", title="Vacío", labels=[], datasets=[])
        assert "no contiene datos" in generate_interpretation(chart)

    def test_report_has_one_interpretation_per_chart(self, sample_records):
        report = build_report(sample_records, title="Prueba")

        assert isinstance(report, Report)
        assert report.title == "Prueba"
        assert len(report.charts) == 4
        assert len(report.interpretations) == len(report.charts)
        assert len(report.records) == 4

    def test_report_is_immutable(self, sample_records):
        report = build_report(sample_records)
        with pytest.raises(Exception):
            report.title = "Otro"
