#!/usr/bin/env python3
"""
AGGREGATION ENGINE - Grouping, averaging and participation statistics
Institutional survey calculations following the evaluation office's sheets

CALCULATION TYPES:
✅ Group averages: Records grouped by instructor, program, faculty or institution
✅ Precise averages: Each aspect averaged over all records, no intermediate rounding
✅ Staged (manual) averages: Per-faculty means rounded to 2 decimals, then averaged
✅ Participation: Surveyed vs not surveyed totals and percentages
✅ Band distribution: Instructors counted per qualitative band

AVERAGING RULES:
- A group with one record keeps that record's Nota verbatim
- A group with 2+ records uses the unweighted mean of member Notas
- Survey counts never weight an average
- The staged mode reproduces a reviewer working faculty sheet by faculty
  sheet; it legitimately differs from the precise mode when faculties
  have different record counts

EDGE CASES HANDLED:
- Empty collections: empty group list, zero averages, "0.00" percentages
- Zero students: participation defined as "0.00", never NaN
- Rounding: half-up on the exact stored value (same as toFixed(2))

Priority: CRITICAL - Core report calculations
Dependencies: evaluation_models.py, grading_classifier.py
"""

import logging
import math
import unicodedata
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from evaluation_models import FACULTY_ORDER, Classification, EvaluationRecord
from grading_classifier import CLASSIFICATION_ORDER, classify

logger = logging.getLogger(__name__)

INSTITUTION_KEY = "INSTITUCIONAL"


class SortPolicy(str, Enum):
    """Display order of aggregate groups; chosen by the call site"""
    INSERTION = "insertion"
    ALPHABETICAL = "alphabetical"
    GRADE_DESC = "grade_desc"


class RoundingMode(str, Enum):
    """Institutional averaging pipeline"""
    PRECISE = "precise"
    STAGED = "staged"


@dataclass
class AggregateGroup:
    """Records sharing one key with their derived average and band"""

    key: str
    records: List[EvaluationRecord]
    average_grade: float
    classification: str

    @property
    def course_count(self) -> int:
        return len(self.records)


@dataclass
class AspectAverages:
    """Average of each academic aspect plus the overall grade"""

    aspect1: float = 0.0
    aspect2: float = 0.0
    aspect3: float = 0.0
    aspect4: float = 0.0
    overall: float = 0.0

    def as_list(self) -> List[float]:
        """Aspect values in AE order (overall excluded)"""
        return [self.aspect1, self.aspect2, self.aspect3, self.aspect4]


@dataclass
class InstitutionalAverages:
    """Both averaging pipelines, always reported side by side"""

    precise: AspectAverages
    manual: AspectAverages

    @property
    def differs(self) -> bool:
        """True when the manual figures disagree with the rounded precise ones"""
        precise = [round_half_up(v) for v in self.precise.as_list() + [self.precise.overall]]
        manual = self.manual.as_list() + [self.manual.overall]
        return precise != manual


@dataclass
class ParticipationStats:
    """Survey participation totals"""

    surveyed_total: int = 0
    not_surveyed_total: int = 0
    participation_pct: str = "0.00"
    not_surveyed_pct: str = "0.00"

    @property
    def total(self) -> int:
        return self.surveyed_total + self.not_surveyed_total


@dataclass
class FacultyBreakdown:
    """Per-faculty participation and aspect means (general report rows)"""

    faculty: str
    course_count: int
    participation: ParticipationStats
    aspects: AspectAverages
    average_grade: float
    classification: str = field(default="")


def round_half_up(value: float, digits: int = 2) -> float:
    """Round on the exact binary value, ties away from zero"""
    if value is None or not math.isfinite(value):
        return value
    quantum = Decimal(1).scaleb(-digits)
    return float(Decimal(value).quantize(quantum, rounding=ROUND_HALF_UP))


def format_fixed(value: float, digits: int = 2) -> str:
    """Format with a fixed number of decimals using half-up rounding"""
    return f"{round_half_up(value, digits):.{digits}f}"


def collation_key(text: str):
    """Accent- and case-insensitive sort key with the raw text as tie breaker"""
    decomposed = unicodedata.normalize("NFKD", str(text))
    folded = "".join(c for c in decomposed if not unicodedata.combining(c))
    return (folded.casefold(), str(text))


# Key selectors for the standard report dimensions
def by_instructor(record: EvaluationRecord) -> str:
    return record.instructor


def by_program(record: EvaluationRecord) -> str:
    return record.program


def by_faculty(record: EvaluationRecord) -> str:
    return record.faculty


def by_institution(record: EvaluationRecord) -> str:
    return INSTITUTION_KEY


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def mean_grade(records: Sequence[EvaluationRecord]) -> float:
    """Unweighted mean Nota (0.0 for no records)"""
    return _mean([r.grade for r in records])


def group_average(records: Sequence[EvaluationRecord]) -> float:
    """Average Nota of one group; a single record keeps its Nota verbatim"""
    if len(records) == 1:
        return records[0].grade
    return mean_grade(records)


def partition(
    records: Iterable[EvaluationRecord], key_fn: Callable[[EvaluationRecord], str]
) -> Dict[str, List[EvaluationRecord]]:
    """Bucket records by key in first-occurrence order"""
    buckets: Dict[str, List[EvaluationRecord]] = {}
    for record in records:
        buckets.setdefault(key_fn(record), []).append(record)
    return buckets


def sort_groups(groups: List[AggregateGroup], policy: SortPolicy) -> List[AggregateGroup]:
    """Return groups ordered by the requested policy (stable)"""
    policy = SortPolicy(policy)
    if policy == SortPolicy.ALPHABETICAL:
        return sorted(groups, key=lambda g: collation_key(g.key))
    if policy == SortPolicy.GRADE_DESC:
        return sorted(groups, key=lambda g: g.average_grade, reverse=True)
    return list(groups)


def aggregate_by_key(
    records: Optional[Iterable[EvaluationRecord]],
    key_fn: Callable[[EvaluationRecord], str],
    sort_policy: SortPolicy = SortPolicy.INSERTION,
) -> List[AggregateGroup]:
    """
    Group records by key and compute each group's average grade and band

    Args:
        records: Evaluation records (a collection snapshot)
        key_fn: Selector returning the grouping key of a record
        sort_policy: Display order requested by the caller

    Returns:
        List of AggregateGroup; empty for an empty collection

    Raises:
        TypeError: records is None (caller defect)
    """
    if records is None:
        raise TypeError("aggregate_by_key() requires a record collection, got None")

    groups = []
    for key, members in partition(records, key_fn).items():
        average = group_average(members)
        groups.append(
            AggregateGroup(
                key=key,
                records=members,
                average_grade=average,
                classification=classify(average).value,
            )
        )

    return sort_groups(groups, sort_policy)


def compute_participation(records: Sequence[EvaluationRecord]) -> ParticipationStats:
    """Surveyed / not surveyed totals with division-by-zero guarded"""
    surveyed = sum(r.surveyed for r in records)
    not_surveyed = sum(r.not_surveyed for r in records)
    total = surveyed + not_surveyed

    if total > 0:
        participation_pct = format_fixed(surveyed / total * 100)
        not_surveyed_pct = format_fixed(not_surveyed / total * 100)
    else:
        participation_pct = "0.00"
        not_surveyed_pct = "0.00"

    return ParticipationStats(
        surveyed_total=surveyed,
        not_surveyed_total=not_surveyed,
        participation_pct=participation_pct,
        not_surveyed_pct=not_surveyed_pct,
    )


def _precise_averages(records: Sequence[EvaluationRecord]) -> AspectAverages:
    if not records:
        return AspectAverages()

    means = [_mean([r.aspects[i] for r in records]) for i in range(4)]
    return AspectAverages(*means, overall=_mean(means))


def _staged_averages(
    records: Sequence[EvaluationRecord], group_key: Callable[[EvaluationRecord], str]
) -> AspectAverages:
    buckets = partition(records, group_key)
    if not buckets:
        return AspectAverages()

    rounded_means = []
    rounded_overalls = []
    for members in buckets.values():
        means = [round_half_up(_mean([r.aspects[i] for r in members])) for i in range(4)]
        rounded_means.append(means)
        rounded_overalls.append(round_half_up(sum(means) / 4))

    aspects = [round_half_up(_mean([m[i] for m in rounded_means])) for i in range(4)]
    return AspectAverages(*aspects, overall=round_half_up(_mean(rounded_overalls)))


def compute_aspect_averages(
    records: Sequence[EvaluationRecord],
    mode: RoundingMode = RoundingMode.PRECISE,
    group_key: Callable[[EvaluationRecord], str] = by_faculty,
) -> AspectAverages:
    """
    Average the four academic aspects with the selected pipeline

    Args:
        records: Evaluation records
        mode: PRECISE (no intermediate rounding) or STAGED (per-group
            means rounded to 2 decimals before combining)
        group_key: Grouping used by the STAGED pipeline (faculty sheets)

    Returns:
        AspectAverages; STAGED values are already rounded to 2 decimals
    """
    if RoundingMode(mode) == RoundingMode.STAGED:
        return _staged_averages(records, group_key)
    return _precise_averages(records)


def compute_institutional_averages(records: Sequence[EvaluationRecord]) -> InstitutionalAverages:
    """Precise and manual institution-wide averages, side by side"""
    result = InstitutionalAverages(
        precise=compute_aspect_averages(records, RoundingMode.PRECISE),
        manual=compute_aspect_averages(records, RoundingMode.STAGED, by_faculty),
    )

    if result.differs:
        logger.info(
            f"Manual average {result.manual.overall:.2f} differs from system "
            f"average {result.precise.overall:.4f} (staged rounding)"
        )
    return result


def faculty_breakdown(
    records: Sequence[EvaluationRecord], faculty_order: Sequence[str] = FACULTY_ORDER
) -> List[FacultyBreakdown]:
    """Per-faculty rows in institutional order, skipping faculties without records"""
    buckets = partition(records, by_faculty)
    rows = []
    for faculty in faculty_order:
        members = buckets.get(faculty)
        if not members:
            continue
        average = mean_grade(members)
        rows.append(
            FacultyBreakdown(
                faculty=faculty,
                course_count=len(members),
                participation=compute_participation(members),
                aspects=_precise_averages(members),
                average_grade=average,
                classification=classify(average).value,
            )
        )
    return rows


def count_classifications(groups: Iterable[AggregateGroup]) -> Dict[str, int]:
    """Groups per band, all four bands present in display order"""
    counts = {band.value: 0 for band in CLASSIFICATION_ORDER}
    for group in groups:
        counts[Classification(group.classification).value] += 1
    return counts


def classification_percentages(counts: Dict[str, int]) -> Dict[str, str]:
    """Share of groups per band with one decimal ("0.0" when there are none)"""
    total = sum(counts.values())
    return {
        band: format_fixed(count / total * 100, 1) if total > 0 else "0.0"
        for band, count in counts.items()
    }
