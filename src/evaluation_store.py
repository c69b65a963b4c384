#!/usr/bin/env python3
"""
EVALUATION STORE - In-memory collection, local JSON persistence and report log

COMPONENTS:
✅ EvaluationCollection: Ordered, thread-safe record set with change listeners
✅ LocalJSONStore: Records and report log persisted in one JSON document
✅ ReportLog: Append-only history of generated reports
✅ JSON export / import: Pretty-printed record arrays for backup and transfer
✅ Entry form: create_entry_record() for single manual records

CONSISTENCY MODEL:
- Every mutation swaps an immutable tuple under a lock; readers always see
  a whole snapshot and never a half-applied bulk import
- Listeners are called explicitly with the new snapshot after each mutation
- Persistence is best effort: failures are logged and reported as False

Dependencies: pydantic (record (de)serialization)
"""

import json
import logging
import os
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from pydantic import ValidationError

from evaluation_models import (
    PROGRAMS_BY_FACULTY,
    DuplicateRecordError,
    EvaluationError,
    EvaluationRecord,
    ImportFileError,
    QualitativeRating,
    RecordNotFoundError,
    Report,
    Validity,
)
from evaluation_settings import settings

logger = logging.getLogger(__name__)

Snapshot = Tuple[EvaluationRecord, ...]
Listener = Callable[[Snapshot], None]


@dataclass
class DisplayPage:
    """First rows of the collection for the data table"""

    rows: List[EvaluationRecord]
    total: int

    @property
    def has_more(self) -> bool:
        return self.total > len(self.rows)


class EvaluationCollection:
    """
    Ordered collection of evaluation records

    Insertion order is preserved. Record ids are unique; adding a duplicate
    raises DuplicateRecordError and leaves the collection untouched.
    """

    def __init__(self, records: Optional[Iterable[EvaluationRecord]] = None):
        self._lock = threading.RLock()
        self._records: Snapshot = ()
        self._listeners: List[Listener] = []
        if records:
            self.extend(records)

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a change listener; returns a function that unregisters it"""
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def snapshot(self) -> Snapshot:
        """Immutable view of the current records"""
        return self._records

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[EvaluationRecord]:
        return iter(self._records)

    def get(self, record_id: str) -> Optional[EvaluationRecord]:
        return next((r for r in self._records if r.id == record_id), None)

    def add(self, record: EvaluationRecord) -> None:
        self.extend([record])

    def extend(self, records: Iterable[EvaluationRecord]) -> None:
        """Append several records atomically (bulk import commit)"""
        new_records = list(records)
        with self._lock:
            seen = {r.id for r in self._records}
            for record in new_records:
                if record.id in seen:
                    raise DuplicateRecordError(f"Record id already exists: {record.id}")
                seen.add(record.id)
            self._commit(self._records + tuple(new_records))

    def delete(self, record_id: str) -> EvaluationRecord:
        """Remove one record by id and return it"""
        with self._lock:
            target = self.get(record_id)
            if target is None:
                raise RecordNotFoundError(f"No record with id {record_id}")
            self._commit(tuple(r for r in self._records if r.id != record_id))
        return target

    def clear(self) -> None:
        with self._lock:
            self._commit(())

    def replace(self, records: Iterable[EvaluationRecord]) -> None:
        """Swap in a whole new record set (cloud or file snapshot)"""
        new_records = tuple(records)
        ids = [r.id for r in new_records]
        if len(ids) != len(set(ids)):
            raise DuplicateRecordError("Replacement snapshot contains duplicate ids")
        with self._lock:
            self._commit(new_records)

    def display_rows(self, limit: Optional[int] = None) -> DisplayPage:
        """At most `limit` leading rows (MAX_ROWS_TO_DISPLAY by default)"""
        if limit is None:
            limit = settings.MAX_ROWS_TO_DISPLAY
        records = self._records
        return DisplayPage(rows=list(records[:limit]), total=len(records))

    def _commit(self, records: Snapshot) -> None:
        self._records = records
        for listener in list(self._listeners):
            listener(records)


def record_to_dict(record: EvaluationRecord) -> Dict[str, Any]:
    """Persisted shape: the legacy browser keys (facultad, docente, ae01...)"""
    return record.model_dump(mode="json", by_alias=True)


def records_from_dicts(items: Iterable[Any]) -> List[EvaluationRecord]:
    """Validate persisted entries, skipping the ones that no longer parse"""
    records = []
    for item in items:
        try:
            records.append(EvaluationRecord.model_validate(item))
        except ValidationError as e:
            logger.warning(f"⚠️ Skipping invalid stored record: {e.errors()[0].get('msg')}")
    return records


class LocalJSONStore:
    """Records and report history kept in one JSON document on disk"""

    def __init__(
        self,
        path: Optional[Path] = None,
        record_key: Optional[str] = None,
        reports_key: Optional[str] = None,
    ):
        self.path = Path(path) if path else settings.storage_path
        self.record_key = record_key or settings.RECORD_KEY
        self.reports_key = reports_key or settings.REPORTS_KEY

    def _read_document(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                document = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"❌ Could not read {self.path}: {e}")
            return {}
        if not isinstance(document, dict):
            logger.error(f"❌ Unexpected storage format in {self.path}")
            return {}
        return document

    def _write_document(self, document: Dict[str, Any]) -> bool:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"❌ Could not write {self.path}: {e}")
            return False
        return True

    def load(self) -> List[EvaluationRecord]:
        """Stored records, or an empty list when missing or unreadable"""
        items = self._read_document().get(self.record_key, [])
        if not isinstance(items, list):
            logger.error(f"❌ Key '{self.record_key}' does not hold a record list")
            return []
        records = records_from_dicts(items)
        logger.info(f"📂 Loaded {len(records)} records from {self.path}")
        return records

    def save(self, records: Sequence[EvaluationRecord]) -> bool:
        document = self._read_document()
        document[self.record_key] = [record_to_dict(r) for r in records]
        saved = self._write_document(document)
        if saved:
            logger.info(f"💾 Saved {len(records)} records to {self.path}")
        return saved

    def clear(self) -> bool:
        """Drop stored records, keeping the report history"""
        document = self._read_document()
        document.pop(self.record_key, None)
        return self._write_document(document)

    def load_reports(self) -> List[Report]:
        reports = []
        for item in self._read_document().get(self.reports_key, []):
            try:
                reports.append(Report.model_validate(item))
            except ValidationError as e:
                logger.warning(f"⚠️ Skipping invalid stored report: {e.errors()[0].get('msg')}")
        return reports

    def save_reports(self, reports: Sequence[Report]) -> bool:
        document = self._read_document()
        document[self.reports_key] = [r.model_dump(mode="json", by_alias=True) for r in reports]
        return self._write_document(document)

    def bind(self, collection: EvaluationCollection) -> Callable[[], None]:
        """Persist the collection after every change"""
        return collection.subscribe(self.save)


class ReportLog:
    """Append-only list of generated reports"""

    def __init__(self, store: Optional[LocalJSONStore] = None):
        self.store = store
        self._lock = threading.RLock()
        self._entries: Tuple[Report, ...] = tuple(store.load_reports()) if store else ()

    @property
    def entries(self) -> Tuple[Report, ...]:
        return self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def append(self, report: Report) -> None:
        with self._lock:
            self._entries = self._entries + (report,)
            self._persist()
        logger.info(f"📝 Report logged: {report.title}")

    def delete(self, index: int) -> Report:
        """Remove one entry; entries themselves are never edited"""
        with self._lock:
            if not 0 <= index < len(self._entries):
                raise IndexError(f"No report at position {index}")
            removed = self._entries[index]
            self._entries = self._entries[:index] + self._entries[index + 1:]
            self._persist()
        return removed

    def _persist(self) -> None:
        if self.store is not None:
            self.store.save_reports(self._entries)


def export_json(records: Sequence[EvaluationRecord], path: Path) -> Path:
    """Write records as a pretty-printed JSON array"""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump([record_to_dict(r) for r in records], f, ensure_ascii=False, indent=2)
    logger.info(f"📤 Exported {len(records)} records to {path}")
    return path


def _has_identity(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    keys = (("facultad", "faculty"), ("carreraProfesional", "program"), ("docente", "instructor"))
    return all(isinstance(item.get(legacy, item.get(name)), str) for legacy, name in keys)


def import_json(source: Union[Path, str]) -> List[EvaluationRecord]:
    """
    Read records from an exported JSON array

    Entries without string faculty/program/instructor are dropped.

    Raises:
        ImportFileError: not JSON, not an array, or no usable entry
    """
    path = Path(source)
    if path.suffix.lower() != ".json":
        raise ImportFileError("Por favor, selecciona un archivo JSON válido")

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ImportFileError(f"Error al importar el archivo JSON: {e}") from e
    except OSError as e:
        raise ImportFileError("Error al leer el archivo") from e

    if not isinstance(data, list):
        raise ImportFileError("El archivo no contiene un formato válido")

    records = records_from_dicts(item for item in data if _has_identity(item))
    if not records:
        raise ImportFileError("No se encontraron datos válidos en el archivo")

    logger.info(f"📥 Imported {len(records)} records from {path}")
    return records


def create_entry_record(
    faculty: str,
    program: str,
    instructor: str,
    course: str,
    section: str,
    aspects: Sequence[float] = (0.0, 0.0, 0.0, 0.0),
    grade: float = 0.0,
    surveyed: int = 0,
    not_surveyed: int = 0,
    qualitative_rating: str = QualitativeRating.BUENO.value,
    validity: str = Validity.VALID.value,
) -> EvaluationRecord:
    """
    Build one record from the manual entry form

    The grade is the mean of the four aspects; a typed grade is only used
    when every aspect is zero.

    Raises:
        EvaluationError: unknown faculty or program outside the faculty
        pydantic.ValidationError: blank text fields or negative counts
    """
    if len(aspects) != 4:
        raise ValueError("Exactly four aspect scores are required")

    faculty_code = str(faculty).strip().upper()
    if faculty_code not in PROGRAMS_BY_FACULTY:
        raise EvaluationError(f"Facultad desconocida: {faculty}")
    if program not in PROGRAMS_BY_FACULTY[faculty_code]:
        raise EvaluationError(f"La carrera '{program}' no pertenece a {faculty_code}")

    computed = sum(aspects) / 4
    return EvaluationRecord(
        faculty=faculty_code,
        program=program,
        instructor=instructor,
        course=course,
        section=section,
        qualitative_rating=qualitative_rating,
        aspect1=aspects[0],
        aspect2=aspects[1],
        aspect3=aspects[2],
        aspect4=aspects[3],
        grade=computed or grade,
        surveyed=surveyed,
        not_surveyed=not_surveyed,
        validity=validity,
    )
