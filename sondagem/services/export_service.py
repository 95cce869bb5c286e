"""
Workbook export and printable report rows.

Both render each student's latest phase per (domain, period); the export
sheets round-trip through ``merge_import``, the report rows are the
teacher-facing table.
"""
from __future__ import annotations

from sondagem.analysis.cohort import age_at
from sondagem.analysis.phases import PERIODS, AssessmentType
from sondagem.analysis.reconciler import latest_for
from sondagem.analysis.records import TrackerState
from .import_service import (
    PHASE_COLUMN_PREFIX, SHEET_GRADES, SHEET_SCHOOLS, SHEET_SERIES,
    SHEET_STUDENTS, phase_column,
)

MISSING = '-'
UNCLASSIFIED = 'Não Classif.'

REPORT_SORT_KEYS = ('name', 'code', 'age')


def export_sheets(state: TrackerState) -> dict[str, list[dict]]:
    """All collections as workbook sheets (sheet name -> rows)."""
    students = []
    for s in state.students:
        school = state.find_school(s.school_id)
        row = {
            'Código': s.code,
            'Nome': s.name,
            'Data de Nascimento': s.birth_date,
            'Série': s.series,
            'Turma': s.grade,
            'Escola (Código)': school.code if school else '',
            'Escola (Nome)': school.name if school else '',
        }
        for type_ in PHASE_COLUMN_PREFIX:
            for period in PERIODS:
                latest = latest_for(state.assessments, s.id, type_, period)
                row[phase_column(type_, period)] = (latest.phase or '') if latest else ''
        row['Observações'] = s.observations or ''
        students.append(row)

    return {
        SHEET_STUDENTS: students,
        SHEET_SERIES: [{'Nome': s.name} for s in state.series],
        SHEET_GRADES: [{'Nome': g.name} for g in state.grades],
        SHEET_SCHOOLS: [{'Código': s.code, 'Nome': s.name} for s in state.schools],
    }


def _report_phase(assessments, student_id, type_, period) -> str:
    latest = latest_for(assessments, student_id, type_, period)
    if latest is None:
        return MISSING
    return latest.phase or UNCLASSIFIED


def report_rows(state: TrackerState, students=None, sort: str = 'name',
                descending: bool = False) -> list[dict]:
    """Report table rows for ``students`` (default: every student).

    Age is measured at the date of the student's latest drawing assessment.
    ``sort`` is one of ``REPORT_SORT_KEYS``; 'age' sorts by birth date, so
    ascending puts the youngest first.
    """
    students = state.students if students is None else students
    if sort == 'age':
        ordered = sorted(students, key=lambda s: s.birth_date or '', reverse=not descending)
    elif sort == 'code':
        ordered = sorted(students, key=lambda s: s.code or '', reverse=descending)
    else:
        ordered = sorted(students, key=lambda s: (s.name or '').lower(), reverse=descending)

    rows = []
    for s in ordered:
        school = state.find_school(s.school_id)
        last_drawing = latest_for(state.assessments, s.id, AssessmentType.DRAWING)
        age = age_at(s.birth_date, last_drawing.date) if last_drawing else None
        row = {
            'Cód': s.code or MISSING,
            'Escola': school.name if school else MISSING,
            'Aluno': s.name,
            'Idade': f'{age} anos' if age is not None else MISSING,
            'Série/Turma': f'{s.series} {s.grade}',
        }
        for period in PERIODS:
            row[f'Fase Desenho ({period})'] = _report_phase(
                state.assessments, s.id, AssessmentType.DRAWING, period)
        for period in PERIODS:
            row[f'Fase Escrita ({period})'] = _report_phase(
                state.assessments, s.id, AssessmentType.WRITING, period)
        row['Observações'] = s.observations or ''
        rows.append(row)
    return rows
