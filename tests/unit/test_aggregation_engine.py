"""
Unit Tests for Aggregation Engine

Tests for:
- Grouping invariants (every record in exactly one group)
- Group averages and bands
- Sort policies
- Participation percentages
- Precise vs staged (manual) institutional averages
- Rounding helpers
"""

import pytest

from aggregation_engine import (
    RoundingMode,
    SortPolicy,
    aggregate_by_key,
    by_faculty,
    by_instructor,
    by_institution,
    by_program,
    classification_percentages,
    compute_aspect_averages,
    compute_institutional_averages,
    compute_participation,
    count_classifications,
    faculty_breakdown,
    format_fixed,
    round_half_up,
)
from conftest import make_record


class TestAggregateByKey:
    """Tests for aggregate_by_key()"""

    def test_instructor_with_two_courses(self):
        """Ana Ruiz with grades 16 and 18 averages 17.0 (BUENO)"""
        records = [
            make_record("Ana Ruiz", 16.0, course="Cálculo I"),
            make_record("Ana Ruiz", 18.0, course="Cálculo II"),
        ]

        groups = aggregate_by_key(records, by_instructor)

        assert len(groups) == 1
        assert groups[0].key == "Ana Ruiz"
        assert groups[0].course_count == 2
        assert groups[0].average_grade == 17.0
        assert groups[0].classification == "BUENO"

    def test_single_record_keeps_raw_grade(self):
        records = [make_record("Luis Pérez", 15.37)]

        groups = aggregate_by_key(records, by_instructor)

        assert groups[0].average_grade == 15.37

    @pytest.mark.parametrize("key_fn", [by_instructor, by_program, by_faculty, by_institution])
    def test_every_record_in_exactly_one_group(self, sample_records, key_fn):
        groups = aggregate_by_key(sample_records, key_fn)

        assert sum(g.course_count for g in groups) == len(sample_records)
        grouped_ids = [r.id for g in groups for r in g.records]
        assert sorted(grouped_ids) == sorted(r.id for r in sample_records)

    def test_empty_collection(self):
        assert aggregate_by_key([], by_instructor) == []

    def test_none_collection_raises(self):
        with pytest.raises(TypeError):
            aggregate_by_key(None, by_instructor)

    def test_input_not_mutated(self, sample_records):
        before = list(sample_records)
        aggregate_by_key(sample_records, by_instructor, SortPolicy.GRADE_DESC)
        assert sample_records == before

    def test_institution_key(self, sample_records):
        groups = aggregate_by_key(sample_records, by_institution)
        assert [g.key for g in groups] == ["INSTITUCIONAL"]


class TestSortPolicies:
    """Tests for display order of groups"""

    def test_insertion_order(self, sample_records):
        groups = aggregate_by_key(sample_records, by_instructor)
        assert [g.key for g in groups] == ["Ana Ruiz", "Luis Pérez", "Carla Díaz"]

    def test_alphabetical_ignores_accents_and_case(self):
        records = [
            make_record("Óscar Vega"),
            make_record("beatriz Soto"),
            make_record("Alberto Ríos"),
            make_record("Nora Paz"),
        ]

        groups = aggregate_by_key(records, by_instructor, SortPolicy.ALPHABETICAL)

        assert [g.key for g in groups] == ["Alberto Ríos", "beatriz Soto", "Nora Paz", "Óscar Vega"]

    def test_grade_descending(self, sample_records):
        groups = aggregate_by_key(sample_records, by_instructor, SortPolicy.GRADE_DESC)
        assert [g.key for g in groups] == ["Carla Díaz", "Ana Ruiz", "Luis Pérez"]


class TestParticipation:
    """Tests for compute_participation()"""

    def test_percentages(self):
        records = [make_record(surveyed=30, not_surveyed=10)]

        stats = compute_participation(records)

        assert stats.surveyed_total == 30
        assert stats.not_surveyed_total == 10
        assert stats.total == 40
        assert stats.participation_pct == "75.00"
        assert stats.not_surveyed_pct == "25.00"

    def test_zero_students(self):
        stats = compute_participation([make_record(surveyed=0, not_surveyed=0)])

        assert stats.participation_pct == "0.00"
        assert stats.not_surveyed_pct == "0.00"

    def test_empty_collection(self):
        assert compute_participation([]).participation_pct == "0.00"

    def test_counts_do_not_weight_averages(self):
        """A heavily surveyed record has the same weight as a lightly surveyed one"""
        records = [
            make_record("Ana Ruiz", 10.0, surveyed=100),
            make_record("Ana Ruiz", 20.0, surveyed=1),
        ]
        assert aggregate_by_key(records, by_instructor)[0].average_grade == 15.0


class TestInstitutionalAverages:
    """Tests for precise vs staged averaging"""

    def test_balanced_faculties_coincide(self):
        records = [
            make_record(faculty="FAING", aspects=(14.0, 15.0, 16.0, 17.0)),
            make_record(faculty="FAING", aspects=(16.0, 15.0, 14.0, 13.0)),
            make_record(
                faculty="FADE",
                program="Carrera Profesional de Derecho",
                aspects=(18.0, 17.0, 16.0, 15.0),
            ),
            make_record(
                faculty="FADE",
                program="Carrera Profesional de Derecho",
                aspects=(12.0, 13.0, 14.0, 15.0),
            ),
        ]

        result = compute_institutional_averages(records)

        assert result.precise.as_list() == [15.0, 15.0, 15.0, 15.0]
        assert result.manual.as_list() == [15.0, 15.0, 15.0, 15.0]
        assert result.manual.overall == 15.0
        assert not result.differs

    def test_unbalanced_faculties_diverge(self):
        """Two FAING records (10, 12) and one FADE record (20)"""
        records = [
            make_record(faculty="FAING", aspects=(10.0, 10.0, 10.0, 10.0)),
            make_record(faculty="FAING", aspects=(12.0, 12.0, 12.0, 12.0)),
            make_record(
                faculty="FADE",
                program="Carrera Profesional de Derecho",
                aspects=(20.0, 20.0, 20.0, 20.0),
            ),
        ]

        result = compute_institutional_averages(records)

        assert result.precise.aspect1 == pytest.approx(14.0)
        assert result.precise.overall == pytest.approx(14.0)
        assert result.manual.aspect1 == 15.5
        assert result.manual.overall == 15.5
        assert result.differs

    def test_staged_rounds_each_faculty_mean(self):
        """FAING mean 10.333... is rounded to 10.33 before combining"""
        records = [
            make_record(faculty="FAING", aspects=(10.0, 0.0, 0.0, 0.0)),
            make_record(faculty="FAING", aspects=(10.0, 0.0, 0.0, 0.0)),
            make_record(faculty="FAING", aspects=(11.0, 0.0, 0.0, 0.0)),
        ]

        staged = compute_aspect_averages(records, RoundingMode.STAGED)

        assert staged.aspect1 == 10.33
        assert staged.overall == 2.58

    def test_empty_collection(self):
        result = compute_institutional_averages([])

        assert result.precise.overall == 0.0
        assert result.manual.as_list() == [0.0, 0.0, 0.0, 0.0]


class TestFacultyBreakdown:
    """Tests for faculty_breakdown()"""

    def test_fixed_order_and_skips_missing(self, sample_records):
        rows = faculty_breakdown(sample_records)

        assert [row.faculty for row in rows] == ["FADE", "FAING"]
        fading = rows[1]
        assert fading.course_count == 3
        assert fading.participation.surveyed_total == 50
        assert fading.average_grade == pytest.approx((16.0 + 18.0 + 12.5) / 3)


class TestClassificationCounts:
    """Tests for band distribution helpers"""

    def test_counts_and_percentages(self, sample_records):
        groups = aggregate_by_key(sample_records, by_instructor)

        counts = count_classifications(groups)
        percentages = classification_percentages(counts)

        assert counts == {"INSATISFACTORIO": 0, "ACEPTABLE": 1, "BUENO": 1, "DESTACADO": 1}
        assert percentages["ACEPTABLE"] == "33.3"
        assert percentages["INSATISFACTORIO"] == "0.0"

    def test_no_groups(self):
        percentages = classification_percentages(count_classifications([]))
        assert set(percentages.values()) == {"0.0"}


class TestRounding:
    """Tests for half-up rounding helpers"""

    def test_half_up(self):
        assert round_half_up(2.5, 0) == 3.0
        assert round_half_up(15.125) == 15.13

    def test_exact_binary_value(self):
        """1.005 is stored below the midpoint and rounds down"""
        assert round_half_up(1.005) == 1.0

    def test_format_fixed(self):
        assert format_fixed(15.625) == "15.63"
        assert format_fixed(0) == "0.00"
        assert format_fixed(33.333, 1) == "33.3"
