"""Tests for the tracker workflow against the test database."""

from unittest.mock import MagicMock

import pytest

from sondagem.analysis.oracle import DrawingClassification, NarrativeReport
from sondagem.analysis.phases import AssessmentType
from sondagem.analysis.records import AssessmentResult, Student
from sondagem.exceptions import (
    PersistenceFailure, RecordNotFound, TrackerError, ValidationConflict,
)
from sondagem.models import GradeRow, SchoolRow, StudentRow
from sondagem.services.tracker_service import TrackerService

DRAWING = AssessmentType.DRAWING
WRITING = AssessmentType.WRITING


def _loaded(oracle=None):
    service = TrackerService(oracle=oracle)
    service.load()
    return service


class TestStudents:
    def test_add_student_uses_code_as_id(self, app, db, sample_data):
        service = _loaded()
        student = service.add_student(Student(id='', code='A010', name='Davi'))
        assert student.id == 'A010'
        assert db.session.get(StudentRow, 'A010').nome == 'Davi'

    def test_duplicate_code_rejected(self, app, db, sample_data):
        service = _loaded()
        with pytest.raises(ValidationConflict):
            service.add_student(Student(id='', code='A001', name='Outra Ana'))
        assert len(service.state.students) == 3

    def test_student_without_code_gets_generated_id(self, app, db, sample_data):
        service = _loaded()
        student = service.add_student(Student(id='', code='', name='Eva'))
        assert student.id
        assert db.session.get(StudentRow, student.id) is not None

    def test_name_required(self, app, db, sample_data):
        with pytest.raises(TrackerError):
            _loaded().add_student(Student(id='', code='Z1', name='  '))

    def test_code_change_rekeys_student_and_assessments(self, app, db, sample_data):
        service = _loaded()
        updated = service.update_student('A001', {'code': 'B001', 'name': 'Ana Souza'})

        assert updated.id == 'B001'
        assert db.session.get(StudentRow, 'A001') is None
        row = db.session.get(StudentRow, 'B001')
        assert row.fase_desenho_inicial == 'Garatuja Ordenada'
        assert row.fase_escrita_1bim == 'Alfabética Parcial'
        assert {a.student_id for a in service.state.assessments} >= {'B001'}
        assert not [a for a in service.state.assessments if a.student_id == 'A001']

    def test_failed_code_change_keeps_old_row(self, app, db, sample_data):
        service = _loaded()
        # A row the loaded state does not know about
        db.session.execute(StudentRow.__table__.insert().values(codigo='Z999', nome='Outro'))
        db.session.commit()

        with pytest.raises(PersistenceFailure):
            service.update_student('A001', {'code': 'Z999'})

        db.session.expire_all()
        row = db.session.get(StudentRow, 'A001')
        assert row is not None
        assert row.fase_escrita_1bim == 'Alfabética Parcial'
        assert db.session.get(StudentRow, 'Z999').nome == 'Outro'
        assert service.state.find_student('A001') is not None
        assert service.state.find_student('Z999') is None
        assert {a.student_id for a in service.state.assessments} == {'A001', 'A002'}

    def test_code_change_to_existing_code_rejected(self, app, db, sample_data):
        with pytest.raises(ValidationConflict):
            _loaded().update_student('A001', {'code': 'A002'})

    def test_delete_student_cascades(self, app, db, sample_data):
        service = _loaded()
        service.delete_student('A001')
        assert service.state.find_student('A001') is None
        assert not [a for a in service.state.assessments if a.student_id == 'A001']
        assert db.session.get(StudentRow, 'A001') is None

    def test_delete_unknown_student(self, app, db, sample_data):
        with pytest.raises(RecordNotFound):
            _loaded().delete_student('NOPE')

    def test_delete_all_students(self, app, db, sample_data):
        service = _loaded()
        assert service.delete_all_students() == 3
        assert service.state.students == [] and service.state.assessments == []

    def test_failed_write_leaves_state_untouched(self, app, db, sample_data):
        service = _loaded()
        service.store.students = MagicMock()
        service.store.students.upsert_batch.side_effect = PersistenceFailure('down')
        with pytest.raises(PersistenceFailure):
            service.add_student(Student(id='', code='A099', name='Ghost'))
        assert service.state.find_student('A099') is None


class TestAssessments:
    def test_set_period_phase_overwrites(self, app, db, sample_data):
        service = _loaded()
        service.set_period_phase('A002', DRAWING, '1º Bim', 'realismo')
        saved = service.set_period_phase('A002', DRAWING, '1º Bim', 'Pseudo Naturalismo')

        records = [a for a in service.state.assessments
                   if a.student_id == 'A002' and a.type == DRAWING and a.period == '1º Bim']
        assert len(records) == 1
        assert saved.phase == 'Pseudo-Naturalismo'
        assert db.session.get(StudentRow, 'A002').fase_desenho_1bim == 'Pseudo-Naturalismo'

    def test_situation_must_be_known(self, app, db, sample_data):
        service = _loaded()
        saved = service.set_period_phase('A002', DRAWING, '1º Bim', 'Realismo', situation='Adiantado')
        assert saved.situation == 'Adiantado'

        with pytest.raises(TrackerError):
            service.set_period_phase('A002', DRAWING, '2º Bim', 'Realismo', situation='Ótimo')
        assert db.session.get(StudentRow, 'A002').fase_desenho_2bim is None

    def test_empty_phase_clears_period(self, app, db, sample_data):
        service = _loaded()
        assert service.set_period_phase('A001', WRITING, 'Inicial', '') is None
        assert db.session.get(StudentRow, 'A001').fase_escrita_inicial is None
        assert not service.history('A001', WRITING, 'Inicial')

    def test_invalid_period(self, app, db, sample_data):
        with pytest.raises(TrackerError):
            _loaded().set_period_phase('A001', WRITING, '5º Bim', 'Alfabética Parcial')

    def test_record_for_unknown_student(self, app, db, sample_data):
        with pytest.raises(RecordNotFound):
            _loaded().record_assessment(AssessmentResult(
                id='', student_id='NOPE', type=DRAWING, period='Inicial', phase='Realismo',
            ))

    def test_reload_sees_saved_phase(self, app, db, sample_data):
        _loaded().set_period_phase('A003', WRITING, '2º Bim', 'Alfabética Completa')
        latest = _loaded().history('A003', WRITING, '2º Bim')[0]
        assert latest.phase == 'Alfabética Completa'
        assert latest.id == 'A003_ESCRITA_2º Bim'


class TestReferenceData:
    def test_add_duplicate_grade(self, app, db, sample_data):
        with pytest.raises(ValidationConflict):
            _loaded().add_grade('A')

    def test_delete_referenced_grade_rejected(self, app, db, sample_data):
        service = _loaded()
        with pytest.raises(ValidationConflict):
            service.delete_grade('A')
        assert db.session.get(GradeRow, 'A') is not None

    def test_rename_series(self, app, db, sample_data):
        service = _loaded()
        service.add_series('3º Ano')
        renamed = service.rename_series('3º Ano', '3º Ano EF')
        assert renamed.id == '3º Ano EF'
        assert [s.name for s in _loaded().state.series] == ['1º Ano', '2º Ano', '3º Ano EF']

    def test_delete_unreferenced_school(self, app, db, sample_data):
        service = _loaded()
        service.add_school('E03', 'Escola Nova')
        service.delete_school('E03')
        assert db.session.get(SchoolRow, 'E03') is None

    def test_delete_referenced_school_rejected(self, app, db, sample_data):
        with pytest.raises(ValidationConflict):
            _loaded().delete_school('E01')

    def test_update_school_code(self, app, db, sample_data):
        service = _loaded()
        service.add_school('E03', 'Escola Nova')
        school = service.update_school('E03', 'E04', 'Escola Nova II')
        assert school.id == 'E04'
        assert db.session.get(SchoolRow, 'E03') is None
        assert db.session.get(SchoolRow, 'E04').nome == 'Escola Nova II'


class TestImportExportAndReports:
    def test_import_persists_and_is_idempotent(self, app, db, sample_data):
        sheets = {
            'Alunos': [
                {'Código': 'A001', 'Nome': 'Ana Souza', 'Desenho - 2º Bim': 'Esquematismo'},
                {'Código': 'N001', 'Nome': 'Nina', 'Data de Nascimento': '2018-08-08',
                 'Escrita - Inicial': 'pré-alfabético'},
            ],
            'Turmas': [{'Nome': 'C'}],
        }
        first = _loaded().import_sheets(sheets)
        assert first.added_count == 1 and first.skipped_count == 1
        assert db.session.get(StudentRow, 'N001').fase_escrita_inicial == 'Pré-Alfabética'
        assert db.session.get(StudentRow, 'A001').fase_desenho_2bim == 'Esquematismo'
        assert db.session.get(GradeRow, 'C') is not None

        second = _loaded().import_sheets(sheets)
        assert second.added_count == 0
        assert second.skipped_count == second.total_rows == 2
        assert second.assessments_to_save == []

    def test_dashboard(self, app, db, sample_data):
        summary = _loaded().dashboard('Inicial', school_id='E01')
        assert summary['total_students'] == 2
        drawing = summary['domains']['DESENHO']
        assert drawing['evaluated_count'] == 2
        assert drawing['coverage_percent'] == 100.0

    def test_dashboard_invalid_period(self, app, db, sample_data):
        with pytest.raises(TrackerError):
            _loaded().dashboard('Final')

    def test_report_rows_filtered(self, app, db, sample_data):
        rows = _loaded().report_rows(series='2º Ano')
        assert [r['Aluno'] for r in rows] == ['Carla Dias']


class TestOracleWorkflow:
    def test_classify_drawing_saves_for_period(self, app, db, sample_data):
        oracle = MagicMock()
        oracle.classify_drawing.return_value = DrawingClassification(
            phase='Realismo', confidence=0.8, summary='Linha de base rompida',
        )
        service = _loaded(oracle)
        result, saved = service.classify_drawing('aGVsbG8=', 'image/png', 'A003', '1º Bim')

        assert result.phase == 'Realismo'
        assert saved.summary == 'Linha de base rompida'
        assert db.session.get(StudentRow, 'A003').fase_desenho_1bim == 'Realismo'

    def test_classify_without_target_does_not_save(self, app, db, sample_data):
        oracle = MagicMock()
        oracle.classify_drawing.return_value = DrawingClassification(phase='Realismo')
        _, saved = _loaded(oracle).classify_drawing('aGVsbG8=')
        assert saved is None

    def test_narrative_requires_assessments(self, app, db, sample_data):
        oracle = MagicMock()
        with pytest.raises(ValidationConflict):
            _loaded(oracle).narrative_report('A003')
        oracle.generate_narrative_report.assert_not_called()

    def test_narrative_passes_history(self, app, db, sample_data):
        oracle = MagicMock()
        oracle.generate_narrative_report.return_value = NarrativeReport(text='Parecer')
        report = _loaded(oracle).narrative_report('A001')
        assert report.text == 'Parecer'
        name, history = oracle.generate_narrative_report.call_args.args
        assert name == 'Ana Souza'
        assert len(history) == 3
