"""
Application workflow over the record store, the pure core and the oracle.

Every mutation is written to the store first and applied to the in-memory
``TrackerState`` only once the write succeeded.  Imports are the exception:
they are merged in memory, then persisted entity by entity.
"""
from __future__ import annotations

import logging
from dataclasses import replace

from sondagem.analysis.cohort import dashboard_summary, filter_students
from sondagem.analysis.phases import (
    PERIODS, SITUATIONS, TAXONOMIES, AssessmentType, canonicalize,
)
from sondagem.analysis import reconciler
from sondagem.analysis.records import (
    AssessmentResult, Grade, School, Series, Student, TrackerState, new_id,
)
from sondagem.exceptions import RecordNotFound, TrackerError, ValidationConflict
from .export_service import export_sheets, report_rows
from .import_service import merge_import
from .spreadsheet import read_workbook, write_workbook
from .store import RecordStore

logger = logging.getLogger(__name__)

STUDENT_FIELDS = ('code', 'name', 'birth_date', 'grade', 'series', 'school_id', 'observations')


class TrackerService:
    """Tracker operations for one request / session.

    Args:
        store: RecordStore; a default one over the app database if None.
        oracle: PhaseOracle; created lazily on first classification.
    """

    def __init__(self, store: RecordStore = None, oracle=None):
        self.store = store or RecordStore()
        self._oracle = oracle
        self.state = TrackerState()

    @property
    def oracle(self):
        if self._oracle is None:
            from sondagem.analysis.oracle import PhaseOracle
            self._oracle = PhaseOracle()
        return self._oracle

    def load(self) -> TrackerState:
        self.state = TrackerState(
            students=self.store.students.get_all(),
            assessments=self.store.assessments.get_all(),
            grades=self.store.grades.get_all(),
            series=self.store.series.get_all(),
            schools=self.store.schools.get_all(),
        )
        return self.state

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------

    def get_student(self, student_id: str) -> Student:
        student = self.state.find_student(student_id)
        if student is None:
            raise RecordNotFound('Aluno não encontrado.')
        return student

    def _check_code_free(self, code: str, exclude_id: str = None):
        if code and any(s.code == code and s.id != exclude_id for s in self.state.students):
            raise ValidationConflict('Código de Aluno Já Existe !')

    def add_student(self, student: Student) -> Student:
        """Create a student; the code, when given, becomes its id."""
        if not (student.name or '').strip():
            raise TrackerError('O nome do aluno é obrigatório.')
        self._check_code_free(student.code)

        student = replace(
            student,
            id=student.code or new_id(),
            name=student.name.strip(),
        )
        self.store.students.upsert_batch([student])
        self.state.students.append(student)
        logger.info(f"Student added: {student.id}")
        return student

    def update_student(self, student_id: str, changes: dict) -> Student:
        """Apply field changes; a code change re-keys the student and its assessments."""
        current = self.get_student(student_id)
        fields = {
            k: (v or None) if k == 'school_id' else (v or '')
            for k, v in changes.items() if k in STUDENT_FIELDS
        }
        if 'name' in fields and not (fields['name'] or '').strip():
            raise TrackerError('O nome do aluno é obrigatório.')

        updated = replace(current, **fields)
        code_changed = updated.code != current.code and bool(updated.code)
        if not code_changed:
            self.store.students.upsert_batch([updated])
            self._replace_student(student_id, updated)
            return updated

        self._check_code_free(updated.code, exclude_id=student_id)
        updated = replace(updated, id=updated.code)
        moved = reconciler.rekey_student(self.state.assessments, student_id, updated.id)
        periodic = [
            a for a in moved
            if a.student_id == updated.id and a.period
        ]

        self.store.students.rekey(
            current.code or current.id, updated, self._latest_per_period(periodic),
        )

        self._replace_student(student_id, updated)
        self.state.assessments = moved
        logger.info(f"Student re-keyed: {student_id} -> {updated.id}")
        return updated

    @staticmethod
    def _latest_per_period(assessments: list[AssessmentResult]) -> list[AssessmentResult]:
        keys = {(a.student_id, a.type, a.period) for a in assessments}
        latest = [reconciler.latest_for(assessments, *key) for key in keys]
        return [a for a in latest if a is not None]

    def _replace_student(self, student_id: str, updated: Student):
        self.state.students = [
            updated if s.id == student_id else s for s in self.state.students
        ]

    def delete_student(self, student_id: str):
        """Delete a student and, in cascade, its assessments."""
        student = self.get_student(student_id)
        self.store.students.delete_one(student.code or student.id)
        self.state.students = [s for s in self.state.students if s.id != student_id]
        self.state.assessments = reconciler.drop_student(self.state.assessments, student_id)
        logger.info(f"Student deleted: {student_id}")

    def delete_all_students(self) -> int:
        count = self.store.delete_all_students()
        self.state.students = []
        self.state.assessments = []
        logger.info(f"All students deleted ({count})")
        return count

    # ------------------------------------------------------------------
    # Assessments
    # ------------------------------------------------------------------

    def history(self, student_id: str, type_=None, period: str = None) -> list[AssessmentResult]:
        self.get_student(student_id)
        return reconciler.history_for(self.state.assessments, student_id, type_, period)

    def record_assessment(self, assessment: AssessmentResult) -> AssessmentResult:
        """Save an assessment; one per (student, type, period) when a period is set."""
        self.get_student(assessment.student_id)
        if assessment.period is not None and assessment.period not in PERIODS:
            raise TrackerError(f'Período inválido: {assessment.period}')
        if assessment.situation and assessment.situation not in SITUATIONS:
            raise TrackerError(f'Situação inválida: {assessment.situation}')
        if assessment.type in TAXONOMIES and assessment.phase:
            assessment = replace(assessment, phase=canonicalize(assessment.phase, assessment.type))

        assessments, saved = reconciler.upsert_period_assessment(self.state.assessments, assessment)
        self.store.assessments.upsert_batch([saved])
        self.state.assessments = assessments
        return saved

    def set_period_phase(self, student_id: str, type_, period: str, phase: str,
                         situation: str = None) -> AssessmentResult | None:
        """Set the phase of one period; an empty phase clears the period instead."""
        if not (phase or '').strip():
            self.clear_period_assessment(student_id, type_, period)
            return None
        return self.record_assessment(AssessmentResult(
            id='',
            student_id=student_id,
            type=AssessmentType(type_),
            period=period,
            phase=phase.strip(),
            situation=situation or None,
        ))

    def clear_period_assessment(self, student_id: str, type_, period: str) -> list[AssessmentResult]:
        self.get_student(student_id)
        kept, removed = reconciler.clear_period_assessment(
            self.state.assessments, student_id, type_, period,
        )
        if removed:
            self.store.assessments.delete_one(removed[0])
        self.state.assessments = kept
        return removed

    # ------------------------------------------------------------------
    # Grades, series and schools
    # ------------------------------------------------------------------

    _NAMED = {
        'grades': (Grade, 'grade', 'Turma Já Gravada !',
                   'Não posso apagar esta turma porque tem aluno associado a ela'),
        'series': (Series, 'series', 'Série Já Gravada !',
                   'Não posso apagar esta série porque tem aluno associado a ela'),
    }

    def _add_named(self, kind: str, name: str):
        record_type, _, duplicate_msg, _ = self._NAMED[kind]
        name = (name or '').strip()
        if not name:
            raise TrackerError('O nome é obrigatório.')
        items = getattr(self.state, kind)
        if any(item.name == name for item in items):
            raise ValidationConflict(duplicate_msg)
        record = record_type(id=name, name=name)
        getattr(self.store, kind).upsert_batch([record])
        items.append(record)
        return record

    def _rename_named(self, kind: str, old_id: str, new_name: str):
        record_type, _, duplicate_msg, _ = self._NAMED[kind]
        items = getattr(self.state, kind)
        if not any(item.id == old_id for item in items):
            raise RecordNotFound('Registro não encontrado.')
        new_name = (new_name or '').strip()
        if not new_name:
            raise TrackerError('O nome é obrigatório.')
        if new_name != old_id and any(item.name == new_name for item in items):
            raise ValidationConflict(duplicate_msg)

        record = record_type(id=new_name, name=new_name)
        collection = getattr(self.store, kind)
        if new_name != old_id:
            collection.delete_one(old_id)
        collection.upsert_batch([record])
        setattr(self.state, kind, [record if item.id == old_id else item for item in items])
        return record

    def _delete_named(self, kind: str, item_id: str):
        _, student_attr, _, in_use_msg = self._NAMED[kind]
        if any(getattr(s, student_attr) == item_id for s in self.state.students):
            raise ValidationConflict(in_use_msg)
        getattr(self.store, kind).delete_one(item_id)
        setattr(self.state, kind, [i for i in getattr(self.state, kind) if i.id != item_id])

    def add_grade(self, name: str) -> Grade:
        return self._add_named('grades', name)

    def rename_grade(self, grade_id: str, new_name: str) -> Grade:
        return self._rename_named('grades', grade_id, new_name)

    def delete_grade(self, grade_id: str):
        self._delete_named('grades', grade_id)

    def add_series(self, name: str) -> Series:
        return self._add_named('series', name)

    def rename_series(self, series_id: str, new_name: str) -> Series:
        return self._rename_named('series', series_id, new_name)

    def delete_series(self, series_id: str):
        self._delete_named('series', series_id)

    def add_school(self, code: str, name: str) -> School:
        code, name = (code or '').strip(), (name or '').strip()
        if not code or not name:
            raise TrackerError('Código e nome da escola são obrigatórios.')
        if any(s.code == code for s in self.state.schools):
            raise ValidationConflict('Código de Escola Já Existe !')
        school = School(id=code, code=code, name=name)
        self.store.schools.upsert_batch([school])
        self.state.schools.append(school)
        return school

    def update_school(self, school_id: str, code: str, name: str) -> School:
        """Change a school's code and/or name; a new code replaces the old row."""
        if self.state.find_school(school_id) is None:
            raise RecordNotFound('Escola não encontrada.')
        code, name = (code or '').strip(), (name or '').strip()
        if not code or not name:
            raise TrackerError('Código e nome da escola são obrigatórios.')
        if code != school_id and any(s.code == code for s in self.state.schools):
            raise ValidationConflict('Código de Escola Já Existe !')

        school = School(id=code, code=code, name=name)
        if code != school_id:
            self.store.schools.delete_one(school_id)
        self.store.schools.upsert_batch([school])
        self.state.schools = [school if s.id == school_id else s for s in self.state.schools]
        return school

    def delete_school(self, school_id: str):
        if any(s.school_id == school_id for s in self.state.students):
            raise ValidationConflict('Não posso apagar esta escola porque tem aluno associado a ela')
        self.store.schools.delete_one(school_id)
        self.state.schools = [s for s in self.state.schools if s.id != school_id]

    # ------------------------------------------------------------------
    # Import / export / reporting
    # ------------------------------------------------------------------

    def import_sheets(self, sheets: dict, now=None):
        """Merge workbook rows, persist what changed, then adopt the merged state."""
        summary = merge_import(sheets, self.state, now=now)
        for collection, records in (
            (self.store.series, summary.series_to_save),
            (self.store.grades, summary.grades_to_save),
            (self.store.schools, summary.schools_to_save),
            (self.store.students, summary.students_to_save),
            (self.store.assessments, summary.assessments_to_save),
        ):
            if records:
                collection.upsert_batch(records)
        self.state = summary.state
        return summary

    def import_workbook(self, file_bytes: bytes, now=None):
        return self.import_sheets(read_workbook(file_bytes), now=now)

    def export_sheets(self) -> dict:
        return export_sheets(self.state)

    def export_workbook(self) -> bytes:
        return write_workbook(self.export_sheets())

    def report_rows(self, school_id=None, series=None, grade=None, search=None,
                    sort: str = 'name', descending: bool = False) -> list[dict]:
        students = filter_students(self.state.students, school_id, series, grade, search)
        return report_rows(self.state, students, sort=sort, descending=descending)

    def dashboard(self, period: str, school_id=None, series=None, grade=None,
                  search=None) -> dict:
        if period not in PERIODS:
            raise TrackerError(f'Período inválido: {period}')
        students = filter_students(self.state.students, school_id, series, grade, search)
        return dashboard_summary(students, self.state.assessments, period)

    # ------------------------------------------------------------------
    # Classification oracle
    # ------------------------------------------------------------------

    def classify_drawing(self, image_b64: str, media_type: str = 'image/jpeg',
                         student_id: str = None, period: str = None):
        """Classify a drawing; saves it for the student's period when both are given.

        Returns:
            Tuple of (DrawingClassification, saved AssessmentResult or None).
        """
        if student_id:
            self.get_student(student_id)
        result = self.oracle.classify_drawing(image_b64, media_type, student_code=student_id)
        saved = None
        if student_id and period:
            saved = self.record_assessment(AssessmentResult(
                id='',
                student_id=student_id,
                type=AssessmentType.DRAWING,
                period=period,
                phase=result.phase,
                confidence=result.confidence,
                reasoning=result.reasoning,
                summary=result.summary,
                recommended_activities=result.recommended_activities,
                markers=result.markers,
            ))
        return result, saved

    def classify_writing(self, produced_words, target_words,
                         student_id: str = None, period: str = None):
        """Word-by-word writing classification, optionally saved like drawings."""
        if student_id:
            self.get_student(student_id)
        result = self.oracle.classify_writing_batch(
            produced_words, target_words, student_code=student_id,
        )
        saved = None
        if student_id and period:
            saved = self.record_assessment(AssessmentResult(
                id='',
                student_id=student_id,
                type=AssessmentType.WRITING,
                period=period,
                phase=result.phase,
                confidence=result.confidence,
                reasoning=result.reasoning,
                summary=result.summary,
                recommended_activities=result.recommended_activities,
            ))
        return result, saved

    def transcribe(self, image_b64: str, media_type: str = 'image/jpeg') -> str:
        return self.oracle.extract_handwritten_text(image_b64, media_type)

    def narrative_report(self, student_id: str):
        student = self.get_student(student_id)
        history = reconciler.history_for(self.state.assessments, student_id)
        if not history:
            raise ValidationConflict('Realize uma sondagem primeiro.')
        return self.oracle.generate_narrative_report(
            student.name, history, student_code=student_id,
        )


def load_tracker() -> TrackerService:
    """A TrackerService over the app database, loaded and ready for one request."""
    service = TrackerService()
    service.load()
    return service
