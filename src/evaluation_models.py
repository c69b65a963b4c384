#!/usr/bin/env python3
"""
EVALUATION MODELS - Pydantic schemas for "Tu Opinión Cuenta" survey data
Type-safe data structures for course evaluations, reports and chart data

COMPREHENSIVE DATA VALIDATION:
✅ Evaluation Records: Faculty, program, instructor, course, section
✅ Academic Aspects: AE-01..AE-04 sub-scores and the overall grade (Nota)
✅ Participation: Surveyed / not surveyed student counts
✅ Reports: Immutable snapshots with chart descriptors and interpretations

VALIDATION RULES:
- Faculty must be one of the six institutional codes
- Instructor, course, section and program must be non-empty
- Sub-scores and grade are stored as given (never clamped to 0-20)
- Student counts must be non-negative integers
- Legacy browser keys (facultad, docente, ae01, nota...) are accepted

Priority: CRITICAL - Foundation for all aggregation and reporting
Dependencies: Pydantic for validation
"""

from typing import Optional, List, Literal, Tuple
from pydantic import BaseModel, Field, validator
from datetime import datetime
from enum import Enum
from uuid import uuid4


class Faculty(str, Enum):
    """Institutional faculty codes"""
    FAING = "FAING"
    FAEDCOH = "FAEDCOH"
    FADE = "FADE"
    FACEM = "FACEM"
    FAU = "FAU"
    FACSA = "FACSA"


class QualitativeRating(str, Enum):
    """Source-reported qualitative rating (Calificación) of a record"""
    DESTACADO = "DESTACADO"
    BUENO = "BUENO"
    ACEPTABLE = "ACEPTABLE"
    REGULAR = "REGULAR"
    DEFICIENTE = "DEFICIENTE"


class Classification(str, Enum):
    """Computed grade band for an average grade"""
    DESTACADO = "DESTACADO"
    BUENO = "BUENO"
    ACEPTABLE = "ACEPTABLE"
    INSATISFACTORIO = "INSATISFACTORIO"


class Validity(str, Enum):
    """Survey validity flag"""
    VALID = "Valid"
    INVALID = "Invalid"


# Order used by the general university report
FACULTY_ORDER = ["FADE", "FAEDCOH", "FAING", "FACEM", "FAU", "FACSA"]

# Programs offered by each faculty (entry form choices)
PROGRAMS_BY_FACULTY = {
    "FAING": [
        "Carrera Profesional de Ingeniería Civil",
        "Carrera Profesional de Ingeniería de Sistemas",
        "Carrera Profesional Ingeniería Electrónica",
        "Carrera Profesional de Ingeniería Agroindustrial",
        "Carrera Profesional de Ingeniería Ambiental",
        "Carrera Profesional de Ingeniería Industrial",
    ],
    "FAEDCOH": [
        "Carrera Profesional Educación Inicial",
        "Carrera Profesional Educación Primaria",
        "Carrera Profesional Educación Física y Deportes",
        "Carrera Profesional de Ciencias de la Comunicación",
        "Carrera Profesional de Psicología",
    ],
    "FADE": [
        "Carrera Profesional de Derecho",
    ],
    "FACEM": [
        "Ingeniería Comercial",
        "Escuela Profesional de Ciencias Contables y Financieras",
        "Escuela Profesional de Economía",
        "Administración de Negocios Internacionales",
        "Administración Turístico Hotelera",
        "Administración de Empresas",
    ],
    "FAU": [
        "Escuela Profesional de Arquitectura",
    ],
    "FACSA": [
        "Escuela Profesional de Medicina Humana",
        "Escuela Profesional de Odontología",
        "Laboratorio Clínico y Anatomía Patológica",
        "Terapia Física y Rehabilitación",
    ],
}

ASPECT_SHORT_LABELS = [
    "AE-01: Sílabo",
    "AE-02: Enseñanza",
    "AE-03: Evaluación",
    "AE-04: Actitudinal",
]

ASPECT_LABELS = [
    "Calidad de presentación y contenido sílabico",
    "Ejecución del proceso enseñanza-aprendizaje",
    "Aplicación de la evaluación",
    "Formación actitudinal e interpersonales",
]

UNSPECIFIED_PROGRAM = "No especificada"


class EvaluationError(Exception):
    """Base class for evaluation domain errors"""


class ImportFileError(EvaluationError):
    """Raised when an uploaded file cannot be read as a spreadsheet or JSON snapshot"""


class DuplicateRecordError(EvaluationError):
    """Raised when a record id already exists in the collection"""


class RecordNotFoundError(EvaluationError):
    """Raised when deleting an id that is not in the collection"""


class SyncError(EvaluationError):
    """Raised by the cloud sync client for unrecoverable responses"""


class EvaluationRecord(BaseModel):
    """One course-section-instructor evaluation"""

    id: str = Field(default_factory=lambda: uuid4().hex, description="Stable record identifier")

    faculty: Faculty = Field(..., alias="facultad", description="Faculty code")
    program: str = Field(..., alias="carreraProfesional", description="Professional program name")
    instructor: str = Field(..., alias="docente", description="Instructor full name")
    course: str = Field(..., alias="curso", description="Course name")
    section: str = Field(..., alias="seccion", description="Course section")

    qualitative_rating: QualitativeRating = Field(
        QualitativeRating.BUENO, alias="calificacion", description="Source-reported rating"
    )

    # Academic aspects (AE-01..AE-04), nominally 0-20
    aspect1: float = Field(0.0, alias="ae01", description="Syllabus quality")
    aspect2: float = Field(0.0, alias="ae02", description="Teaching execution")
    aspect3: float = Field(0.0, alias="ae03", description="Evaluation practice")
    aspect4: float = Field(0.0, alias="ae04", description="Attitudinal formation")
    grade: float = Field(0.0, alias="nota", description="Overall grade (Nota)")

    surveyed: int = Field(0, ge=0, alias="encuestados", description="Students who answered")
    not_surveyed: int = Field(0, ge=0, alias="noEncuestados", description="Students who did not answer")
    validity: Validity = Field(Validity.VALID, alias="validez", description="Survey validity")

    @validator("id", pre=True)
    def coerce_id(cls, v):
        """Accept numeric ids from legacy snapshots"""
        if v is None:
            return uuid4().hex
        return str(v)

    @validator("faculty", pre=True)
    def normalize_faculty(cls, v):
        """Uppercase faculty codes"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @validator("program", "instructor", "course", "section", pre=True)
    def require_text(cls, v):
        """Trim identifying text fields and reject blanks"""
        text = str(v).strip() if v is not None else ""
        if not text:
            raise ValueError("must not be empty")
        return text

    @validator("qualitative_rating", pre=True)
    def normalize_rating(cls, v):
        """Uppercase rating labels"""
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @validator("validity", pre=True)
    def parse_validity(cls, v):
        """Map legacy Spanish labels (Válido / Inválido)"""
        if isinstance(v, str):
            legacy = {"VÁLIDO": "Valid", "VALIDO": "Valid", "INVÁLIDO": "Invalid", "INVALIDO": "Invalid"}
            return legacy.get(v.strip().upper(), v.strip())
        return v

    @property
    def aspects(self) -> Tuple[float, float, float, float]:
        """Sub-scores in AE order"""
        return (self.aspect1, self.aspect2, self.aspect3, self.aspect4)

    @property
    def aspect_mean(self) -> float:
        """Mean of the four sub-scores"""
        return sum(self.aspects) / 4

    @property
    def total_students(self) -> int:
        """Surveyed plus not surveyed"""
        return self.surveyed + self.not_surveyed

    @property
    def is_valid(self) -> bool:
        return self.validity == Validity.VALID

    class Config:
        use_enum_values = True
        populate_by_name = True
        frozen = True


class ChartDataset(BaseModel):
    """One numeric series of a chart"""

    label: str = Field(..., description="Series label")
    data: List[float] = Field(default_factory=list, description="Values aligned with chart labels")


class ChartDescriptor(BaseModel):
    """Chart-ready data; drawing is left to the rendering layer"""

    chart_type: Literal["bar", "line", "pie", "doughnut"] = Field(..., description="Chart kind")
    title: str = Field(..., description="Chart title")
    labels: List[str] = Field(default_factory=list, description="Category labels")
    datasets: List[ChartDataset] = Field(default_factory=list, description="Series")
    y_max: Optional[float] = Field(None, description="Fixed axis maximum (20 for grades, 100 for %)")

    class Config:
        frozen = True


class Report(BaseModel):
    """Generated report snapshot; append-only, never edited"""

    title: str = Field(..., description="Report title")
    generated_at: datetime = Field(default_factory=datetime.now, description="Generation timestamp")
    records: List[EvaluationRecord] = Field(default_factory=list, description="Records at generation time")
    charts: List[ChartDescriptor] = Field(default_factory=list, description="Charts included in the report")
    interpretations: List[str] = Field(default_factory=list, description="One interpretation per chart")

    @property
    def display_date(self) -> str:
        """Spanish long date, e.g. '18 de octubre de 2026'"""
        months = [
            "enero", "febrero", "marzo", "abril", "mayo", "junio",
            "julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
        ]
        d = self.generated_at
        return f"{d.day} de {months[d.month - 1]} de {d.year}"

    class Config:
        frozen = True


# Export all models
__all__ = [
    'Faculty',
    'QualitativeRating',
    'Classification',
    'Validity',
    'FACULTY_ORDER',
    'PROGRAMS_BY_FACULTY',
    'ASPECT_SHORT_LABELS',
    'ASPECT_LABELS',
    'UNSPECIFIED_PROGRAM',
    'EvaluationError',
    'ImportFileError',
    'DuplicateRecordError',
    'RecordNotFoundError',
    'SyncError',
    'EvaluationRecord',
    'ChartDataset',
    'ChartDescriptor',
    'Report',
]
