"""
Record store over the Flask-SQLAlchemy models.

Assessments have no table of their own: the current phase of each
(domain, period) pair lives in a column of the student row.  This module is
the only place that knows the column layout; the rest of the application
sees ``AssessmentResult`` records.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from sondagem.analysis.phases import PERIODS, PHASED_TYPES, AssessmentType
from sondagem.analysis.reconciler import period_assessment_id
from sondagem.analysis.records import (
    AssessmentResult, Grade, School, Series, Student,
)
from sondagem.exceptions import PersistenceFailure
from sondagem.extensions import db
from sondagem.models import GradeRow, SchoolRow, SeriesRow, StudentRow

logger = logging.getLogger(__name__)


def _period_suffix(period: str) -> str:
    # 'Inicial' -> 'inicial', '1º Bim' -> '1bim'
    return period.lower().replace('º', '').replace(' ', '')


def _column_name(type_: AssessmentType, period: str) -> str:
    domain = 'desenho' if type_ == AssessmentType.DRAWING else 'escrita'
    return f'fase_{domain}_{_period_suffix(period)}'


# Column name -> (type, period), and the reverse lookup
ASSESSMENT_COLUMNS: dict[str, tuple[AssessmentType, str]] = {
    _column_name(type_, period): (type_, period)
    for type_ in PHASED_TYPES
    for period in PERIODS
}
COLUMN_FOR: dict[tuple[AssessmentType, str], str] = {
    key: column for column, key in ASSESSMENT_COLUMNS.items()
}


@contextmanager
def _transaction(action: str):
    """Commit on success; roll back and raise PersistenceFailure on any DB error."""
    try:
        yield
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Store failure while {action}: {e}")
        raise PersistenceFailure(f'Erro ao salvar dados no banco ({action}).') from e


@contextmanager
def _reading(action: str):
    try:
        yield
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.error(f"Store failure while {action}: {e}")
        raise PersistenceFailure(f'Erro ao ler dados do banco ({action}).') from e


def _fill_student_row(row: StudentRow, student: Student):
    row.nome = student.name
    row.data_nascimento = student.birth_date or None
    row.escola = student.school_id or None
    row.serie = student.series or None
    row.turma = student.grade or None
    row.observacoes = student.observations or None


class StudentCollection:
    def get_all(self) -> list[Student]:
        with _reading('loading students'):
            rows = StudentRow.query.order_by(StudentRow.nome).all()
        return [
            Student(
                id=row.codigo,
                code=row.codigo,
                name=row.nome,
                birth_date=row.data_nascimento or '',
                grade=row.turma or '',
                series=row.serie or '',
                school_id=row.escola or None,
                observations=row.observacoes or '',
            )
            for row in rows
        ]

    def upsert_batch(self, students: list[Student]) -> int:
        """Insert or update student rows; phase columns are left untouched."""
        with _transaction('saving students'):
            for student in students:
                key = student.code or student.id
                row = db.session.get(StudentRow, key)
                if row is None:
                    row = StudentRow(codigo=key)
                    db.session.add(row)
                _fill_student_row(row, student)
        return len(students)

    def rekey(self, old_key: str, student: Student, assessments: list[AssessmentResult]):
        """Replace the row keyed ``old_key`` by one keyed with ``student``'s code.

        The old row is deleted, the new row inserted and ``assessments``
        written into its phase columns under a single commit, so a failure
        leaves the old row in place.
        """
        with _transaction('re-keying a student'):
            StudentRow.query.filter_by(codigo=old_key).delete()
            row = StudentRow(codigo=student.code or student.id)
            _fill_student_row(row, student)
            for a in assessments:
                column = COLUMN_FOR.get((a.type, a.period))
                if column is not None:
                    setattr(row, column, a.phase or None)
            db.session.add(row)

    def delete_one(self, key: str) -> bool:
        with _transaction('deleting a student'):
            deleted = StudentRow.query.filter_by(codigo=key).delete()
        return bool(deleted)

    def delete_all(self) -> int:
        with _transaction('deleting all students'):
            deleted = StudentRow.query.delete()
        return deleted


class AssessmentCollection:
    def get_all(self) -> list[AssessmentResult]:
        """One record per non-empty phase column, dated with the row's updated_at."""
        with _reading('loading assessments'):
            rows = StudentRow.query.all()
        results = []
        for row in rows:
            stamp = row.updated_at.isoformat() if row.updated_at else ''
            for column, (type_, period) in ASSESSMENT_COLUMNS.items():
                phase = getattr(row, column)
                if not phase:
                    continue
                results.append(AssessmentResult(
                    id=period_assessment_id(row.codigo, type_, period),
                    student_id=row.codigo,
                    type=type_,
                    date=stamp,
                    period=period,
                    phase=phase,
                ))
        return results

    def upsert_batch(self, assessments: list[AssessmentResult]) -> int:
        """Write each record's phase into its column; returns columns written.

        Records without a column (free-form events, unsupported domains) or
        whose student row does not exist are logged and skipped.
        """
        written = 0
        with _transaction('saving assessments'):
            for a in assessments:
                column = COLUMN_FOR.get((a.type, a.period))
                if column is None:
                    logger.warning(
                        f"No store column for {a.type.value}/{a.period!r}, "
                        f"assessment {a.id} kept in memory only"
                    )
                    continue
                row = db.session.get(StudentRow, a.student_id)
                if row is None:
                    logger.warning(f"Assessment {a.id} references unknown student {a.student_id!r}")
                    continue
                setattr(row, column, a.phase or None)
                written += 1
        return written

    def delete_one(self, assessment: AssessmentResult) -> bool:
        """Clear the column holding ``assessment``."""
        column = COLUMN_FOR.get((assessment.type, assessment.period))
        if column is None:
            return False
        with _transaction('clearing an assessment'):
            row = db.session.get(StudentRow, assessment.student_id)
            if row is None:
                return False
            setattr(row, column, None)
        return True


class _NamedCollection:
    """Reference entities whose only attribute is their name (the key)."""

    model = None
    key_column = ''
    record_type = None
    label = ''

    def get_all(self) -> list:
        key = getattr(self.model, self.key_column)
        with _reading(f'loading {self.label}'):
            rows = self.model.query.order_by(key).all()
        return [
            self.record_type(id=getattr(r, self.key_column), name=getattr(r, self.key_column))
            for r in rows
        ]

    def upsert_batch(self, records: list) -> int:
        with _transaction(f'saving {self.label}'):
            for record in records:
                if db.session.get(self.model, record.name) is None:
                    db.session.add(self.model(**{self.key_column: record.name}))
        return len(records)

    def delete_one(self, key: str) -> bool:
        with _transaction(f'deleting {self.label}'):
            deleted = self.model.query.filter(
                getattr(self.model, self.key_column) == key
            ).delete()
        return bool(deleted)


class GradeCollection(_NamedCollection):
    model = GradeRow
    key_column = 'turma'
    record_type = Grade
    label = 'grades'


class SeriesCollection(_NamedCollection):
    model = SeriesRow
    key_column = 'serie'
    record_type = Series
    label = 'series'


class SchoolCollection:
    def get_all(self) -> list[School]:
        with _reading('loading schools'):
            rows = SchoolRow.query.order_by(SchoolRow.nome).all()
        return [School(id=r.codigo, code=r.codigo, name=r.nome) for r in rows]

    def upsert_batch(self, schools: list[School]) -> int:
        with _transaction('saving schools'):
            for school in schools:
                row = db.session.get(SchoolRow, school.code)
                if row is None:
                    row = SchoolRow(codigo=school.code)
                    db.session.add(row)
                row.nome = school.name
        return len(schools)

    def delete_one(self, key: str) -> bool:
        with _transaction('deleting a school'):
            deleted = SchoolRow.query.filter_by(codigo=key).delete()
        return bool(deleted)


class RecordStore:
    """All five collections behind one object, for injection into services."""

    def __init__(self):
        self.students = StudentCollection()
        self.assessments = AssessmentCollection()
        self.grades = GradeCollection()
        self.series = SeriesCollection()
        self.schools = SchoolCollection()

    def delete_all_students(self) -> int:
        return self.students.delete_all()
