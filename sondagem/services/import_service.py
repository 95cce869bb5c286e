"""
Spreadsheet import merge.

Merges the rows of an uploaded workbook into a snapshot of the tracker state
without mutating it.  Reference entities and students are only ever added
(existing ones are never overwritten, apart from filling a missing school);
per-period phase cells become assessment records through the append-only
import rule of the reconciler.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone

from sondagem.analysis.phases import PERIODS, AssessmentType, canonicalize
from sondagem.analysis.reconciler import append_if_absent
from sondagem.analysis.records import (
    AssessmentResult, Grade, School, Series, Student, TrackerState, new_id,
)

logger = logging.getLogger(__name__)

SHEET_STUDENTS = 'Alunos'
SHEET_SERIES = 'Séries'
SHEET_GRADES = 'Turmas'
SHEET_SCHOOLS = 'Escolas'

# Per-period phase column prefixes of the Alunos sheet
PHASE_COLUMN_PREFIX = {
    AssessmentType.DRAWING: 'Desenho',
    AssessmentType.WRITING: 'Escrita',
}


def phase_column(type_: AssessmentType, period: str) -> str:
    return f'{PHASE_COLUMN_PREFIX[type_]} - {period}'


@dataclass
class ImportSummary:
    """Outcome of one import: the merged state plus what must be persisted."""

    state: TrackerState
    added_count: int = 0
    skipped_count: int = 0
    total_rows: int = 0
    students_to_save: list[Student] = field(default_factory=list)
    assessments_to_save: list[AssessmentResult] = field(default_factory=list)
    series_to_save: list[Series] = field(default_factory=list)
    grades_to_save: list[Grade] = field(default_factory=list)
    schools_to_save: list[School] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return (
            'Processado com sucesso.\n'
            f'Total de linhas: {self.total_rows}\n'
            f'Alunos adicionados: {self.added_count}\n'
            f'Alunos ignorados (já existentes): {self.skipped_count}'
        )

    def to_dict(self) -> dict:
        return {
            'added_count': self.added_count,
            'skipped_count': self.skipped_count,
            'total_rows': self.total_rows,
            'new_assessments': len(self.assessments_to_save),
            'summary': self.summary,
        }


def _cell(row: dict, key: str) -> str:
    value = row.get(key)
    if value is None:
        return ''
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


def _date_cell(row: dict, key: str) -> str:
    """ISO date from a cell holding a date, a datetime or their string forms."""
    value = row.get(key)
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = _cell(row, key)
    # '2018-03-01 00:00:00' as written by spreadsheet date cells
    if len(text) > 10 and text[4:5] == '-' and text[10] in ' T':
        return text[:10]
    return text


def _merge_named(rows, existing: list, record_type) -> list:
    """New Series/Grade records for names not yet present (case-insensitive)."""
    known = {r.name.lower() for r in existing}
    added = []
    for row in rows or ():
        name = _cell(row, 'Nome')
        if name and name.lower() not in known:
            known.add(name.lower())
            added.append(record_type(id=name, name=name))
    return added


def _merge_schools(rows, existing: list[School]) -> list[School]:
    codes = {s.code.lower() for s in existing}
    names = {s.name.lower() for s in existing}
    added = []
    for row in rows or ():
        code = _cell(row, 'Código')
        name = _cell(row, 'Nome')
        if not code or not name:
            continue
        if code.lower() in codes or name.lower() in names:
            continue
        codes.add(code.lower())
        names.add(name.lower())
        added.append(School(id=code, code=code, name=name))
    return added


def _resolve_school(schools: list[School], code: str, name: str) -> str | None:
    if code:
        for s in schools:
            if s.code == code:
                return s.id
    if name:
        for s in schools:
            if s.name.lower() == name.lower():
                return s.id
    return None


def _find_student(students: list[Student], code: str, name: str, birth_date: str) -> int | None:
    """Index of the matching student: by code first, then by name and birth date."""
    if code:
        for i, s in enumerate(students):
            if s.code == code:
                return i
    for i, s in enumerate(students):
        if s.name.lower() == name.lower() and s.birth_date == birth_date:
            return i
    return None


def merge_import(sheets: dict, state: TrackerState, now=None) -> ImportSummary:
    """Merge workbook rows into a copy of ``state``.

    Imported assessments all carry ``now`` as their date, so they read as
    newer than any interactive save of the same period.

    Args:
        sheets: Sheet name -> list of row dicts (header -> cell).  Missing
            sheets are treated as empty.
        state: Current tracker state; left untouched.
        now: Timestamp stamped on imported assessments (datetime or ISO
            string); defaults to the current UTC time.

    Returns:
        ImportSummary with the merged state, counters and the records that
        are new or changed.
    """
    if now is None:
        stamp = datetime.now(timezone.utc).isoformat()
    elif isinstance(now, datetime):
        stamp = now.isoformat()
    else:
        stamp = str(now)

    merged = state.copy()
    result = ImportSummary(state=merged)

    result.series_to_save = _merge_named(sheets.get(SHEET_SERIES), merged.series, Series)
    merged.series.extend(result.series_to_save)
    result.grades_to_save = _merge_named(sheets.get(SHEET_GRADES), merged.grades, Grade)
    merged.grades.extend(result.grades_to_save)
    result.schools_to_save = _merge_schools(sheets.get(SHEET_SCHOOLS), merged.schools)
    merged.schools.extend(result.schools_to_save)

    # Rows without a name (blank spreadsheet lines) are not student rows
    student_rows = [
        row for row in sheets.get(SHEET_STUDENTS) or [] if _cell(row, 'Nome')
    ]
    result.total_rows = len(student_rows)
    to_save = {}

    for row in student_rows:
        name = _cell(row, 'Nome')
        code = _cell(row, 'Código')
        birth_date = _date_cell(row, 'Data de Nascimento')
        school_id = _resolve_school(
            merged.schools, _cell(row, 'Escola (Código)'), _cell(row, 'Escola (Nome)'),
        )

        index = _find_student(merged.students, code, name, birth_date)
        if index is None:
            student = Student(
                id=code or new_id(),
                code=code,
                name=name,
                birth_date=birth_date,
                grade=_cell(row, 'Turma'),
                series=_cell(row, 'Série'),
                school_id=school_id,
                observations=_cell(row, 'Observações'),
            )
            merged.students.append(student)
            to_save[student.id] = student
            result.added_count += 1
        else:
            student = merged.students[index]
            if not student.school_id and school_id:
                student = replace(student, school_id=school_id)
                merged.students[index] = student
                to_save[student.id] = student
            result.skipped_count += 1

        for type_ in PHASE_COLUMN_PREFIX:
            for period in PERIODS:
                raw = _cell(row, phase_column(type_, period))
                if not raw:
                    continue
                incoming = AssessmentResult(
                    id=new_id(),
                    student_id=student.id,
                    type=type_,
                    date=stamp,
                    period=period,
                    phase=canonicalize(raw, type_),
                )
                merged.assessments, appended = append_if_absent(merged.assessments, incoming)
                if appended:
                    result.assessments_to_save.append(incoming)

    result.students_to_save = list(to_save.values())
    logger.info(
        f"Import merged: {result.total_rows} rows, {result.added_count} added, "
        f"{result.skipped_count} skipped, {len(result.assessments_to_save)} new assessments"
    )
    return result
