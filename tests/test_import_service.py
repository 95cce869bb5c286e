"""Tests for the spreadsheet import merge."""

from datetime import datetime

from sondagem.analysis.phases import AssessmentType
from sondagem.analysis.records import School, Series, TrackerState
from sondagem.services.import_service import merge_import
from sondagem.services.spreadsheet import read_workbook, write_workbook

from conftest import make_assessment, make_student

NOW = datetime(2025, 5, 1, 12, 0, 0)


def _sheets():
    return {
        'Séries': [{'Nome': '1º Ano'}, {'Nome': '2º ano'}],
        'Turmas': [{'Nome': 'A'}],
        'Escolas': [
            {'Código': 'E01', 'Nome': 'Escola Aurora'},
            {'Código': '', 'Nome': 'Sem código'},
        ],
        'Alunos': [
            {
                'Código': '100', 'Nome': 'Ana Souza', 'Data de Nascimento': '2018-03-10',
                'Série': '1º Ano', 'Turma': 'A', 'Escola (Código)': 'E01',
                'Escola (Nome)': '', 'Desenho - Inicial': 'garatuja ordenada',
                'Escrita - 1º Bim': 'ALFABÉTICO PARCIAL', 'Observações': '',
            },
            {
                'Código': '', 'Nome': 'Bruno Lima', 'Data de Nascimento': '2017-11-02',
                'Série': '1º Ano', 'Turma': 'A', 'Escola (Código)': '',
                'Escola (Nome)': 'escola aurora', 'Desenho - Inicial': '',
            },
            {'Código': '', 'Nome': '', 'Data de Nascimento': ''},
        ],
    }


class TestMergeImport:
    def test_adds_reference_data_and_students(self):
        state = TrackerState(series=[Series(id='2º Ano', name='2º Ano')])
        result = merge_import(_sheets(), state, now=NOW)

        assert [s.name for s in result.state.series] == ['2º Ano', '1º Ano']
        assert [g.name for g in result.state.grades] == ['A']
        assert [s.code for s in result.state.schools] == ['E01']
        assert result.added_count == 2
        assert result.skipped_count == 0
        assert result.total_rows == 2

        ana, bruno = result.state.students
        assert ana.id == '100' and ana.school_id == 'E01'
        assert bruno.code == '' and bruno.id and bruno.school_id == 'E01'

    def test_phases_are_canonicalized_and_stamped(self):
        result = merge_import(_sheets(), TrackerState(), now=NOW)
        by_type = {a.type: a for a in result.state.assessments}
        assert by_type[AssessmentType.DRAWING].phase == 'Garatuja Ordenada'
        assert by_type[AssessmentType.DRAWING].period == 'Inicial'
        assert by_type[AssessmentType.WRITING].phase == 'Alfabética Parcial'
        assert by_type[AssessmentType.WRITING].date == NOW.isoformat()
        assert len(result.assessments_to_save) == 2

    def test_second_run_is_idempotent(self):
        first = merge_import(_sheets(), TrackerState(), now=NOW)
        second = merge_import(_sheets(), first.state, now=NOW)

        assert second.added_count == 0
        assert second.skipped_count == second.total_rows == 2
        assert second.assessments_to_save == []
        assert len(second.state.students) == 2
        assert len(second.state.assessments) == len(first.state.assessments)
        assert second.students_to_save == []

    def test_matches_by_name_and_birth_date_when_code_differs(self):
        existing = make_student('OLD-1', name='ANA SOUZA', birth_date='2018-03-10')
        result = merge_import(_sheets(), TrackerState(students=[existing]), now=NOW)

        names = [s.name for s in result.state.students]
        assert names.count('ANA SOUZA') == 1
        assert 'Ana Souza' not in names
        drawing = [a for a in result.state.assessments if a.type == AssessmentType.DRAWING]
        assert drawing[0].student_id == 'OLD-1'

    def test_matched_student_gets_missing_school_only(self):
        existing = make_student('100', name='Ana Souza', birth_date='2018-03-10')
        other_school = School(id='E09', code='E09', name='Outra')
        state = TrackerState(students=[existing], schools=[other_school])
        result = merge_import(_sheets(), state, now=NOW)

        assert result.state.find_student('100').school_id == 'E01'
        assert [s.id for s in result.students_to_save].count('100') == 1

        kept = make_student('100', name='Ana Souza', school_id='E09')
        result = merge_import(_sheets(), TrackerState(students=[kept], schools=[other_school]), now=NOW)
        assert result.state.find_student('100').school_id == 'E09'

    def test_different_phase_is_appended_not_overwritten(self):
        existing = make_student('100', name='Ana Souza', birth_date='2018-03-10')
        old = make_assessment('100', AssessmentType.DRAWING, 'Inicial', 'Esquematismo',
                              date='2025-02-01T00:00:00')
        result = merge_import(_sheets(), TrackerState(students=[existing], assessments=[old]), now=NOW)
        drawings = [a for a in result.state.assessments
                    if a.type == AssessmentType.DRAWING and a.period == 'Inicial']
        assert sorted(a.phase for a in drawings) == ['Esquematismo', 'Garatuja Ordenada']

    def test_input_state_not_mutated(self):
        state = TrackerState(students=[make_student('100', name='Ana Souza')])
        merge_import(_sheets(), state, now=NOW)
        assert len(state.students) == 1
        assert state.assessments == []
        assert state.schools == []

    def test_summary_text(self):
        result = merge_import(_sheets(), TrackerState(), now=NOW)
        assert result.summary.startswith('Processado com sucesso.\nTotal de linhas: 2')
        assert 'Alunos adicionados: 2' in result.summary

    def test_missing_sheets(self):
        result = merge_import({}, TrackerState(), now=NOW)
        assert result.total_rows == 0
        assert result.added_count == 0

    def test_spreadsheet_datetime_strings(self):
        sheets = {'Alunos': [{'Código': '7', 'Nome': 'Davi',
                              'Data de Nascimento': '2018-01-05 00:00:00'}]}
        result = merge_import(sheets, TrackerState(), now=NOW)
        assert result.state.students[0].birth_date == '2018-01-05'

    def test_blank_workbook_rows_are_not_counted(self):
        sheets = read_workbook(write_workbook({'Alunos': [
            {'Código': '7', 'Nome': 'Davi', 'Desenho - Inicial': 'Realismo'},
            {'Código': '', 'Nome': '', 'Desenho - Inicial': ''},
        ]}))
        first = merge_import(sheets, TrackerState(), now=NOW)
        second = merge_import(sheets, first.state, now=NOW)

        assert first.total_rows == first.added_count == 1
        assert second.added_count == 0
        assert second.skipped_count == second.total_rows == 1
