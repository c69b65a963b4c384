#!/usr/bin/env python3
"""
REPORT BUILDERS - Scoped views over an evaluation snapshot

One parameterized builder per report family, driven by a ReportScope:

✅ Scope report: participation, aspect means, program and instructor rankings
✅ Instructor summary: per-instructor course counts, averages and bands
✅ Qualitative distribution: instructors per band, with percentages
✅ General university summary: per-faculty rows plus precise and manual
   institutional averages side by side
✅ Interpretations: rule-based Spanish commentary for every chart

All builders are pure functions of (records, scope, key); inputs are
never mutated and every result is safe to render or serialize.

Dependencies: aggregation_engine.py, evaluation_models.py
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from aggregation_engine import (
    INSTITUTION_KEY,
    AggregateGroup,
    AspectAverages,
    FacultyBreakdown,
    InstitutionalAverages,
    ParticipationStats,
    SortPolicy,
    aggregate_by_key,
    by_faculty,
    by_instructor,
    by_program,
    classification_percentages,
    collation_key,
    compute_aspect_averages,
    compute_institutional_averages,
    compute_participation,
    count_classifications,
    faculty_breakdown,
    format_fixed,
    mean_grade,
    partition,
)
from evaluation_models import (
    ASPECT_SHORT_LABELS,
    FACULTY_ORDER,
    ChartDataset,
    ChartDescriptor,
    EvaluationRecord,
    QualitativeRating,
    Report,
)
from evaluation_settings import settings
from grading_classifier import classify

GRADE_AXIS_MAX = 20.0
PERCENT_AXIS_MAX = 100.0
LABEL_MAX_LENGTH = 30


class ReportScope(str, Enum):
    """Which slice of the collection a report covers"""
    INSTITUTION = "institution"
    FACULTY = "faculty"
    PROGRAM = "program"
    INSTRUCTOR = "instructor"


SCOPE_KEY_FUNCTIONS: Dict[ReportScope, Callable[[EvaluationRecord], str]] = {
    ReportScope.FACULTY: by_faculty,
    ReportScope.PROGRAM: by_program,
    ReportScope.INSTRUCTOR: by_instructor,
}


@dataclass
class ScopeReport:
    scope: ReportScope
    key: str
    records: List[EvaluationRecord]
    participation: ParticipationStats
    aspects: AspectAverages
    average_grade: float
    classification: str
    instructor_groups: List[AggregateGroup]
    program_groups: List[AggregateGroup]
    faculty_groups: List[AggregateGroup]
    charts: List[ChartDescriptor] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.records

    @property
    def course_count(self) -> int:
        return len(self.records)


@dataclass
class InstructorSummary:
    scope: ReportScope
    key: str
    instructors: List[AggregateGroup]
    detail_rows: List[EvaluationRecord]
    course_count: int
    overall_average: float

    @property
    def instructor_count(self) -> int:
        return len(self.instructors)

    def instructor_average(self, instructor: str) -> Optional[float]:
        group = next((g for g in self.instructors if g.key == instructor), None)
        return group.average_grade if group else None


@dataclass
class QualitativeDistribution:
    scope: ReportScope
    key: str
    instructors: List[AggregateGroup]
    counts: Dict[str, int]
    percentages: Dict[str, str]
    charts: List[ChartDescriptor] = field(default_factory=list)

    @property
    def total_instructors(self) -> int:
        return len(self.instructors)


@dataclass
class GeneralSummary:
    participation: ParticipationStats
    faculties: List[FacultyBreakdown]
    institutional: InstitutionalAverages
    average_grade: float
    classification: str
    course_count: int
    charts: List[ChartDescriptor] = field(default_factory=list)


def select_records(
    records: Optional[Iterable[EvaluationRecord]], scope: ReportScope, key: Optional[str] = None
) -> List[EvaluationRecord]:
    """
    Records belonging to one scope key (all records for INSTITUTION)

    Raises:
        TypeError: records is None
        ValueError: unknown scope, or a missing key for a non-institution scope
    """
    if records is None:
        raise TypeError("select_records() requires a record collection, got None")

    scope = ReportScope(scope)
    if scope == ReportScope.INSTITUTION:
        return list(records)
    if not key:
        raise ValueError(f"A key is required for scope '{scope.value}'")

    key_fn = SCOPE_KEY_FUNCTIONS[scope]
    return [r for r in records if key_fn(r) == key]


def available_keys(records: Iterable[EvaluationRecord], scope: ReportScope) -> List[str]:
    """Distinct selector values for a scope, alphabetically sorted"""
    scope = ReportScope(scope)
    if scope == ReportScope.INSTITUTION:
        return [INSTITUTION_KEY]
    key_fn = SCOPE_KEY_FUNCTIONS[scope]
    return sorted({key_fn(r) for r in records}, key=collation_key)


def _short_label(text: str) -> str:
    return text if len(text) <= LABEL_MAX_LENGTH else text[:LABEL_MAX_LENGTH] + "..."


def _order_by_faculty(groups: List[AggregateGroup]) -> List[AggregateGroup]:
    position = {code: i for i, code in enumerate(FACULTY_ORDER)}
    return sorted(groups, key=lambda g: position.get(g.key, len(position)))


# Chart series


def participation_chart(participation: ParticipationStats) -> ChartDescriptor:
    return ChartDescriptor(
        chart_type="doughnut",
        title="Encuestados vs No Encuestados",
        labels=["Encuestados", "No Encuestados"],
        datasets=[
            ChartDataset(
                label="Estudiantes",
                data=[participation.surveyed_total, participation.not_surveyed_total],
            )
        ],
    )


def aspect_chart(aspects: AspectAverages) -> ChartDescriptor:
    return ChartDescriptor(
        chart_type="bar",
        title="Promedio por Aspectos Académicos Evaluados",
        labels=list(ASPECT_SHORT_LABELS),
        datasets=[ChartDataset(label="Promedio", data=aspects.as_list())],
        y_max=GRADE_AXIS_MAX,
    )


def group_average_chart(groups: Sequence[AggregateGroup], title: str) -> ChartDescriptor:
    return ChartDescriptor(
        chart_type="bar",
        title=title,
        labels=[_short_label(g.key) for g in groups],
        datasets=[ChartDataset(label="Promedio", data=[g.average_grade for g in groups])],
        y_max=GRADE_AXIS_MAX,
    )


def rating_distribution_chart(records: Sequence[EvaluationRecord]) -> ChartDescriptor:
    """Source-reported Calificación counts (not the computed bands)"""
    ratings = [r.value for r in QualitativeRating]
    return ChartDescriptor(
        chart_type="pie",
        title="Distribución de Calificaciones",
        labels=ratings,
        datasets=[
            ChartDataset(
                label="Cursos",
                data=[sum(1 for r in records if r.qualitative_rating == rating) for rating in ratings],
            )
        ],
    )


def classification_charts(counts: Dict[str, int]) -> List[ChartDescriptor]:
    labels = list(counts.keys())
    values = list(counts.values())
    return [
        ChartDescriptor(
            chart_type="pie",
            title="Distribución de Docentes por Calificación",
            labels=labels,
            datasets=[ChartDataset(label="Docentes", data=values)],
        ),
        ChartDescriptor(
            chart_type="bar",
            title="Cantidad de Docentes por Calificación",
            labels=labels,
            datasets=[ChartDataset(label="Docentes", data=values)],
        ),
    ]


def faculty_participation_chart(rows: Sequence[FacultyBreakdown]) -> ChartDescriptor:
    return ChartDescriptor(
        chart_type="bar",
        title="Porcentaje de Participación por Facultad",
        labels=[row.faculty for row in rows],
        datasets=[
            ChartDataset(
                label="% Encuestados",
                data=[float(row.participation.participation_pct) for row in rows],
            )
        ],
        y_max=PERCENT_AXIS_MAX,
    )


def faculty_grade_chart(rows: Sequence[FacultyBreakdown]) -> ChartDescriptor:
    return ChartDescriptor(
        chart_type="bar",
        title="Nota Promedio por Facultad",
        labels=[row.faculty for row in rows],
        datasets=[ChartDataset(label="Promedio", data=[row.average_grade for row in rows])],
        y_max=GRADE_AXIS_MAX,
    )


# Builders


def build_scope_report(
    records: Iterable[EvaluationRecord],
    scope: ReportScope = ReportScope.INSTITUTION,
    key: Optional[str] = None,
) -> ScopeReport:
    """
    Participation, aspect means and rankings for one scope

    Instructor groups are ranked by average (best first), program groups
    alphabetically and faculty groups in institutional order.
    """
    scope = ReportScope(scope)
    selected = select_records(records, scope, key)
    participation = compute_participation(selected)
    aspects = compute_aspect_averages(selected)
    average = mean_grade(selected)
    program_groups = aggregate_by_key(selected, by_program, SortPolicy.ALPHABETICAL)

    charts = []
    if selected:
        charts = [
            participation_chart(participation),
            aspect_chart(aspects),
            group_average_chart(program_groups, "Promedio por Carrera Profesional"),
            rating_distribution_chart(selected),
        ]

    return ScopeReport(
        scope=scope,
        key=key or INSTITUTION_KEY,
        records=selected,
        participation=participation,
        aspects=aspects,
        average_grade=average,
        classification=classify(average).value,
        instructor_groups=aggregate_by_key(selected, by_instructor, SortPolicy.GRADE_DESC),
        program_groups=program_groups,
        faculty_groups=_order_by_faculty(aggregate_by_key(selected, by_faculty)),
        charts=charts,
    )


def build_instructor_summary(
    records: Iterable[EvaluationRecord],
    scope: ReportScope = ReportScope.INSTITUTION,
    key: Optional[str] = None,
) -> InstructorSummary:
    """Per-instructor table; the overall figure is the mean of instructor averages"""
    scope = ReportScope(scope)
    selected = select_records(records, scope, key)
    instructors = aggregate_by_key(selected, by_instructor, SortPolicy.ALPHABETICAL)
    overall = (
        sum(g.average_grade for g in instructors) / len(instructors) if instructors else 0.0
    )

    return InstructorSummary(
        scope=scope,
        key=key or INSTITUTION_KEY,
        instructors=instructors,
        detail_rows=sorted(selected, key=lambda r: collation_key(r.instructor)),
        course_count=len(selected),
        overall_average=overall,
    )


def build_instructor_summaries(
    records: Sequence[EvaluationRecord], scope: ReportScope
) -> List[InstructorSummary]:
    """One summary per selector value (all faculties, all programs...)"""
    return [build_instructor_summary(records, scope, key) for key in available_keys(records, scope)]


def build_qualitative_distribution(
    records: Iterable[EvaluationRecord],
    scope: ReportScope = ReportScope.INSTITUTION,
    key: Optional[str] = None,
) -> QualitativeDistribution:
    """Instructors counted per computed band for a scope"""
    scope = ReportScope(scope)
    selected = select_records(records, scope, key)
    instructors = aggregate_by_key(selected, by_instructor, SortPolicy.ALPHABETICAL)
    counts = count_classifications(instructors)

    return QualitativeDistribution(
        scope=scope,
        key=key or INSTITUTION_KEY,
        instructors=instructors,
        counts=counts,
        percentages=classification_percentages(counts),
        charts=classification_charts(counts) if instructors else [],
    )


def build_general_summary(records: Iterable[EvaluationRecord]) -> GeneralSummary:
    """University-wide summary with both averaging pipelines"""
    selected = select_records(records, ReportScope.INSTITUTION)
    rows = faculty_breakdown(selected)
    average = mean_grade(selected)

    charts = []
    if rows:
        charts = [faculty_participation_chart(rows), faculty_grade_chart(rows)]

    return GeneralSummary(
        participation=compute_participation(selected),
        faculties=rows,
        institutional=compute_institutional_averages(selected),
        average_grade=average,
        classification=classify(average).value,
        course_count=len(selected),
        charts=charts,
    )


def course_average_chart(records: Sequence[EvaluationRecord]) -> ChartDescriptor:
    """Mean Nota per course, in first-appearance order"""
    courses = partition(records, lambda r: r.course)
    return ChartDescriptor(
        chart_type="bar",
        title="Nota Promedio por Curso",
        labels=[_short_label(c) for c in courses],
        datasets=[ChartDataset(label="Nota", data=[mean_grade(m) for m in courses.values()])],
        y_max=GRADE_AXIS_MAX,
    )


def default_report_charts(records: Sequence[EvaluationRecord]) -> List[ChartDescriptor]:
    if not records:
        return []
    return [
        course_average_chart(records),
        rating_distribution_chart(records),
        aspect_chart(compute_aspect_averages(records)),
        participation_chart(compute_participation(records)),
    ]


# Interpretations


def _interpret_series(chart: ChartDescriptor, values: List[float]) -> str:
    average = sum(values) / len(values)
    best = max(range(len(values)), key=lambda i: values[i])
    worst = min(range(len(values)), key=lambda i: values[i])
    kind = "barras" if chart.chart_type == "bar" else "líneas"

    text = (
        f'El gráfico "{chart.title}" muestra {len(values)} categorías mediante {kind}. '
        f"El valor promedio observado es de {format_fixed(average)}."
    )
    if len(values) > 1:
        text += (
            f" El valor más alto corresponde a {chart.labels[best]} ({format_fixed(values[best])})"
            f" y el más bajo a {chart.labels[worst]} ({format_fixed(values[worst])})."
        )
    if chart.y_max == GRADE_AXIS_MAX:
        text += f" En la escala vigesimal, el promedio se ubica en el nivel {classify(average).value}."
    return text


def _interpret_shares(chart: ChartDescriptor, values: List[float]) -> str:
    total = sum(values)
    if total <= 0:
        return f'El gráfico "{chart.title}" no registra valores para analizar.'

    dominant = max(range(len(values)), key=lambda i: values[i])
    parts = [
        f"{label}: {format_fixed(value / total * 100, 1)}%"
        for label, value in zip(chart.labels, values)
        if value > 0
    ]
    return (
        f'El gráfico "{chart.title}" distribuye un total de {format_fixed(total, 0)} casos. '
        f"La categoría predominante es {chart.labels[dominant]} con "
        f"{format_fixed(values[dominant] / total * 100, 1)}% del total "
        f"({'; '.join(parts)})."
    )


def generate_interpretation(chart: ChartDescriptor) -> str:
    """Short Spanish reading of a chart, derived from its numbers"""
    values = list(chart.datasets[0].data) if chart.datasets else []
    values = values[: len(chart.labels)]
    if not values:
        return f'El gráfico "{chart.title}" no contiene datos para interpretar.'

    if chart.chart_type in ("bar", "line"):
        return _interpret_series(chart, values)
    return _interpret_shares(chart, values)


def build_report(
    records: Sequence[EvaluationRecord],
    title: Optional[str] = None,
    charts: Optional[Sequence[ChartDescriptor]] = None,
) -> Report:
    """Immutable report snapshot with one interpretation per chart"""
    snapshot = list(records)
    if charts is None:
        charts = default_report_charts(snapshot)

    return Report(
        title=title or settings.REPORT_TITLE,
        records=snapshot,
        charts=list(charts),
        interpretations=[generate_interpretation(c) for c in charts],
    )
