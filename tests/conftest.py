"""
Pytest Configuration and Fixtures

Provides common fixtures for all tests including:
- Evaluation record factory
- Sample collections (balanced and unbalanced faculties)
- Raw spreadsheet rows
- Isolated settings paths
"""

import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from evaluation_models import EvaluationRecord

HEADER_ROW = [
    "FACULTAD",
    "CARRERA PROFESIONAL",
    "DOCENTE",
    "CURSO",
    "SECCIÓN",
    "CALIFICACIÓN",
    "AE-01",
    "AE-02",
    "AE-03",
    "AE-04",
    "NOTA",
    "ENCUESTADOS",
    "NO ENCUESTADOS",
    "VALIDEZ",
]


def make_record(
    instructor="Ana Ruiz",
    grade=16.0,
    faculty="FAING",
    program="Carrera Profesional de Ingeniería Civil",
    course="Cálculo I",
    section="A",
    aspects=(16.0, 16.0, 16.0, 16.0),
    surveyed=20,
    not_surveyed=5,
    **kwargs,
):
    """Build a valid EvaluationRecord with sensible defaults"""
    return EvaluationRecord(
        faculty=faculty,
        program=program,
        instructor=instructor,
        course=course,
        section=section,
        aspect1=aspects[0],
        aspect2=aspects[1],
        aspect3=aspects[2],
        aspect4=aspects[3],
        grade=grade,
        surveyed=surveyed,
        not_surveyed=not_surveyed,
        **kwargs,
    )


@pytest.fixture
def record_factory():
    """Factory for evaluation records"""
    return make_record


@pytest.fixture
def sample_records():
    """Small mixed collection across two faculties"""
    return [
        make_record("Ana Ruiz", 16.0, course="Cálculo I", section="A"),
        make_record("Ana Ruiz", 18.0, course="Cálculo II", section="B"),
        make_record(
            "Luis Pérez",
            12.5,
            course="Física I",
            aspects=(12.0, 13.0, 12.0, 13.0),
            surveyed=10,
            not_surveyed=10,
        ),
        make_record(
            "Carla Díaz",
            19.0,
            faculty="FADE",
            program="Carrera Profesional de Derecho",
            course="Derecho Civil",
            aspects=(19.0, 19.0, 19.0, 19.0),
            surveyed=30,
            not_surveyed=0,
        ),
    ]


@pytest.fixture
def header_row():
    return list(HEADER_ROW)


@pytest.fixture
def isolated_paths(tmp_path, monkeypatch):
    """Point settings at a temporary data/output directory"""
    from evaluation_settings import settings

    monkeypatch.setattr(settings, "DATA_DIR", tmp_path / "data")
    monkeypatch.setattr(settings, "OUTPUT_DIR", tmp_path / "output")
    return tmp_path
