#!/usr/bin/env python3
"""
EXCEL IMPORT NORMALIZER - Spreadsheet loading, header sniffing and row coercion
Turn a "Tu Opinión Cuenta" results workbook into validated EvaluationRecords

IMPORT STRATEGY:
1. Header Detection: Row 0 is always the header; labels are matched exactly
   (accented and unaccented spellings) and then by containment
2. Schema Validation: Required columns must all be found or the file is rejected
3. Row Coercion: Text trimmed, numbers parsed leniently (never raising)
4. Row Validation: Rows missing faculty/instructor/course/section are skipped
   with an error; the rest of the file keeps importing
5. All-or-nothing: A file that yields zero valid rows is a failed import

Priority: CRITICAL - Only entry point for bulk data
Dependencies: pandas (workbook reading), pydantic (record validation)
"""

import logging
import math
import re
import time
import unicodedata
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

import pandas as pd
from pydantic import ValidationError

from evaluation_models import (
    UNSPECIFIED_PROGRAM,
    EvaluationRecord,
    Faculty,
    ImportFileError,
    QualitativeRating,
    Validity,
)

logger = logging.getLogger(__name__)

# Header label -> record field, in matching order
COLUMN_LABELS = {
    "FACULTAD": "faculty",
    "CARRERA PROFESIONAL": "program",
    "DOCENTE": "instructor",
    "CURSO": "course",
    "SECCIÓN": "section",
    "SECCION": "section",
    "CALIFICACIÓN": "qualitative_rating",
    "CALIFICACION": "qualitative_rating",
    "AE-01": "aspect1",
    "AE-02": "aspect2",
    "AE-03": "aspect3",
    "AE-04": "aspect4",
    "NOTA": "grade",
    "ENCUESTADOS": "surveyed",
    "NO ENCUESTADOS": "not_surveyed",
    "VALIDEZ": "validity",
}

REQUIRED_FIELDS = [
    "faculty",
    "instructor",
    "course",
    "section",
    "grade",
    "aspect1",
    "aspect2",
    "aspect3",
    "aspect4",
    "surveyed",
    "not_surveyed",
]

TEXT_FIELDS = ["faculty", "instructor", "course", "section"]

SUPPORTED_EXTENSIONS = {".xlsx", ".xls"}

MAX_REPORTED_ERRORS = 10

_NO_TOKEN = re.compile(r"\bNO\b")
_NOT_SURVEYED = re.compile(r"(?:^|[^A-Z])NO[^A-Z]*ENCUESTADOS")
_LEADING_FLOAT = re.compile(r"^[+-]?(\d+(\.\d*)?|\.\d+)([eE][+-]?\d+)?")
_LEADING_INT = re.compile(r"^[+-]?\d+")
_DOT_THOUSANDS = re.compile(r"^[+-]?\d{1,3}(\.\d{3})+$")


@dataclass
class ImportResult:
    """Outcome of one spreadsheet import"""

    success: bool
    message: str
    imported: List[EvaluationRecord] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.imported)


def fold_accents(text: str) -> str:
    """Strip combining marks: 'VÁLIDO' -> 'VALIDO'"""
    decomposed = unicodedata.normalize("NFKD", text)
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, float) and math.isnan(value):
        return True
    return isinstance(value, str) and value.strip() == ""


def cell_text(value: Any) -> str:
    """Cell as trimmed text; whole floats lose their '.0' (1.0 -> '1')"""
    if _is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_number(value: Any) -> float:
    """
    Lenient real-number parsing; anything unparsable becomes 0

    Accepts comma or dot decimal separators and the other one as a
    thousands separator ("1.234,5" and "1,234.5" -> 1234.5).
    """
    if _is_blank(value) or isinstance(value, bool):
        return 0.0
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else 0.0

    text = str(value).strip().replace(" ", "")
    if "," in text and "." in text:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")
    else:
        text = text.replace(",", ".")

    match = _LEADING_FLOAT.match(text)
    if not match:
        return 0.0
    number = float(match.group(0))
    return number if math.isfinite(number) else 0.0


def parse_integer(value: Any) -> int:
    """Lenient student-count parsing; thousands separators dropped, junk -> 0"""
    if _is_blank(value) or isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(math.floor(value + 0.5)) if math.isfinite(value) else 0

    text = str(value).strip().replace(" ", "").replace(",", "")
    if _DOT_THOUSANDS.match(text):
        text = text.replace(".", "")

    match = _LEADING_INT.match(text)
    return int(match.group(0)) if match else 0


def parse_rating(value: Any) -> str:
    """Source rating; absent or unknown labels default to BUENO"""
    text = cell_text(value).upper()
    allowed = {r.value for r in QualitativeRating}
    return text if text in allowed else QualitativeRating.BUENO.value


def parse_validity(value: Any) -> str:
    """
    Valid whenever the text contains 'válido' (any case or accents)

    Plain containment: 'Inválido' and 'No válido' also read as Valid,
    matching how the evaluation office sheets have always been loaded.
    """
    folded = fold_accents(cell_text(value)).upper()
    return Validity.VALID.value if "VALIDO" in folded else Validity.INVALID.value


def is_not_surveyed_header(header: str) -> bool:
    """'NO ENCUESTADOS' in any spelling: NO_ENCUESTADOS, NO.ENCUESTADOS, NOENCUESTADOS"""
    if "ENCUESTADOS" not in header:
        return False
    return bool(_NOT_SURVEYED.search(header) or _NO_TOKEN.search(header))


def _header_matches(label: str, header: str) -> bool:
    """Containment fallback with the ENCUESTADOS / NO ENCUESTADOS rule"""
    if not header:
        return False
    if label == "NO ENCUESTADOS":
        return is_not_surveyed_header(header)
    if label == "ENCUESTADOS":
        return "ENCUESTADOS" in header and not is_not_surveyed_header(header)
    return label in header or header in label


def match_columns(header_row: Sequence[Any]) -> Dict[str, int]:
    """
    Map record fields to header column indices

    Args:
        header_row: Raw header cells

    Returns:
        Dict field -> column index for every field that could be matched
    """
    headers = [cell_text(h).upper() for h in header_row]
    indices: Dict[str, int] = {}

    for label, field_name in COLUMN_LABELS.items():
        if field_name in indices:
            continue

        index = next((i for i, h in enumerate(headers) if h == label), None)
        if index is None:
            index = next((i for i, h in enumerate(headers) if _header_matches(label, h)), None)

        if index is not None:
            indices[field_name] = index

    return indices


class ExcelImportNormalizer:
    """Convert raw spreadsheet rows into EvaluationRecords"""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        """
        Args:
            clock: Time source in seconds used for synthetic ids (time.time)
        """
        self.clock = clock or time.time
        self.column_indices: Dict[str, int] = {}
        self.validation_errors: List[str] = []
        self.validation_warnings: List[str] = []
        self.last_result: Optional[ImportResult] = None

    def import_spreadsheet(self, rows: Sequence[Sequence[Any]]) -> ImportResult:
        """
        Import raw rows (row 0 = header)

        Returns:
            ImportResult; success=False with no records when the file is
            empty, lacks required columns, or yields no valid row
        """
        self.validation_errors = []
        self.validation_warnings = []
        self.column_indices = {}

        if rows is None or len(rows) < 2:
            return self._fail(
                "El archivo Excel está vacío o no tiene datos. Debe tener al menos "
                "una fila de encabezados y una fila de datos."
            )

        self.column_indices = match_columns(rows[0])
        logger.info(f"📊 Column mapping: {self.column_indices}")

        for field_name in ("surveyed", "not_surveyed"):
            if field_name not in self.column_indices:
                logger.warning(f"⚠️ Column for '{field_name}' not found in header")

        missing = [f for f in REQUIRED_FIELDS if f not in self.column_indices]
        if missing:
            return self._fail(f"Faltan columnas requeridas: {', '.join(missing)}")

        batch_ms = int(self.clock() * 1000)
        imported: List[EvaluationRecord] = []
        row_errors: List[str] = []

        for i in range(1, len(rows)):
            row = rows[i]
            if not row or all(_is_blank(cell) for cell in row):
                continue

            record, error = self._process_row(row, i, batch_ms)
            if error:
                row_errors.append(error)
            else:
                imported.append(record)

        self.validation_warnings = row_errors

        if not imported:
            message = "No se pudieron importar datos válidos del archivo"
            result = self._fail(message)
            result.errors = ([message] + row_errors)[:MAX_REPORTED_ERRORS]
            self.last_result = result
            return result

        if row_errors:
            logger.warning(f"⚠️ {len(row_errors)} rows skipped during import")
        logger.info(f"✅ Imported {len(imported)} evaluation records")

        self.last_result = ImportResult(
            success=True,
            message=f"Se importaron {len(imported)} registros exitosamente",
            imported=imported,
            errors=row_errors[:MAX_REPORTED_ERRORS],
        )
        return self.last_result

    def import_file(self, path: Path) -> ImportResult:
        """Read a workbook from disk and import it"""
        try:
            rows = read_workbook(path)
        except ImportFileError as e:
            return self._fail(str(e))
        except (OSError, ValueError, ImportError, zipfile.BadZipFile) as e:
            logger.error(f"❌ Failed to read workbook {path}: {e}")
            return self._fail(f"Error al procesar el archivo: {e}")
        return self.import_spreadsheet(rows)

    def _cell(self, row: Sequence[Any], field_name: str) -> Any:
        index = self.column_indices.get(field_name)
        if index is None or index >= len(row):
            return None
        return row[index]

    def _count(self, row: Sequence[Any], field_name: str, row_label: str) -> int:
        """Student count; negative cells are lowered to 0"""
        count = parse_integer(self._cell(row, field_name))
        if count < 0:
            logger.warning(f"⚠️ {row_label}: negative {field_name} ({count}) set to 0")
            return 0
        return count

    def _process_row(self, row: Sequence[Any], index: int, batch_ms: int):
        """Return (record, None) or (None, error message) for one data row"""
        row_label = f"Fila {index + 1}"

        texts = {name: cell_text(self._cell(row, name)) for name in TEXT_FIELDS}
        if not all(texts.values()):
            return None, f"{row_label}: Faltan campos requeridos"

        faculty = texts["faculty"].upper()
        if faculty not in {f.value for f in Faculty}:
            return None, f"{row_label}: Facultad desconocida '{texts['faculty']}'"

        aspects = [parse_number(self._cell(row, f"aspect{n}")) for n in range(1, 5)]
        grade = parse_number(self._cell(row, "grade"))
        if not grade > 0:
            grade = sum(aspects) / 4

        try:
            record = EvaluationRecord(
                id=f"{batch_ms}-{index}",
                faculty=faculty,
                program=cell_text(self._cell(row, "program")) or UNSPECIFIED_PROGRAM,
                instructor=texts["instructor"],
                course=texts["course"],
                section=texts["section"],
                qualitative_rating=parse_rating(self._cell(row, "qualitative_rating")),
                aspect1=aspects[0],
                aspect2=aspects[1],
                aspect3=aspects[2],
                aspect4=aspects[3],
                grade=grade,
                surveyed=self._count(row, "surveyed", row_label),
                not_surveyed=self._count(row, "not_surveyed", row_label),
                validity=parse_validity(self._cell(row, "validity")),
            )
        except ValidationError as e:
            first = e.errors()[0]
            location = ".".join(str(part) for part in first.get("loc", ()))
            return None, f"{row_label}: {location} {first.get('msg', 'valor inválido')}".strip()

        return record, None

    def _fail(self, message: str) -> ImportResult:
        logger.error(f"❌ Import failed: {message}")
        self.validation_errors.append(message)
        self.last_result = ImportResult(success=False, message=message, imported=[], errors=[message])
        return self.last_result

    def validation_report(self) -> str:
        """Text summary of the last import"""
        report = ["🔍 IMPORT VALIDATION REPORT", "=" * 50, ""]

        if not self.validation_errors and not self.validation_warnings:
            report.append("✅ All rows imported cleanly!")
        else:
            if self.validation_errors:
                report.append("❌ ERRORS (File rejected):")
                for error in self.validation_errors:
                    report.append(f"  • {error}")
                report.append("")

            if self.validation_warnings:
                report.append("⚠️ SKIPPED ROWS (Review recommended):")
                for warning in self.validation_warnings:
                    report.append(f"  • {warning}")
                report.append("")

        if self.last_result is not None:
            report.append("📊 IMPORT SUMMARY:")
            report.append(f"  Records imported: {self.last_result.imported_count}")
            report.append(f"  Columns mapped: {len(self.column_indices)}")

        return "\n".join(report)


def read_workbook(path: Path) -> List[List[Any]]:
    """
    Read the first sheet of an Excel workbook as raw rows

    Empty cells come back as None; no header inference is done here.

    Raises:
        ImportFileError: unsupported file extension
    """
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_EXTENSIONS:
        raise ImportFileError("Por favor, selecciona un archivo Excel (.xlsx o .xls)")

    logger.info(f"📊 Loading workbook: {path}")
    frame = pd.read_excel(path, header=None, dtype=object)
    frame = frame.astype(object).where(pd.notna(frame), None)
    return frame.values.tolist()


def import_spreadsheet(rows: Sequence[Sequence[Any]]) -> ImportResult:
    """Import raw rows with a fresh normalizer"""
    return ExcelImportNormalizer().import_spreadsheet(rows)
