"""HTTP-level tests for the JSON blueprints."""

import io
import json
from unittest.mock import patch
from urllib.parse import quote

from sondagem.extensions import db
from sondagem.models import OracleCall, StudentRow


def _row(code):
    db.session.expire_all()
    return db.session.get(StudentRow, code)


class TestHealth:
    def test_health(self, client):
        resp = client.get('/api/health')
        assert resp.status_code == 200
        assert resp.get_json()['status'] == 'ok'

    def test_unknown_route_is_json(self, client):
        resp = client.get('/api/nothing-here')
        assert resp.status_code == 404
        assert 'error' in resp.get_json()


class TestStudentsApi:
    def test_list(self, client, sample_data):
        resp = client.get('/api/students')
        assert resp.status_code == 200
        assert {s['code'] for s in resp.get_json()} == {'A001', 'A002', 'A003'}

    def test_create(self, client, sample_data):
        resp = client.post('/api/students', json={
            'code': 'A010', 'name': 'Davi Rocha', 'series': '1º Ano',
            'grade': 'A', 'school_id': 'E02',
        })
        assert resp.status_code == 201
        assert resp.get_json()['id'] == 'A010'
        assert _row('A010').escola == 'E02'

    def test_create_duplicate_code(self, client, sample_data):
        resp = client.post('/api/students', json={'code': 'A001', 'name': 'Outra Ana'})
        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'Código de Aluno Já Existe !'

    def test_create_requires_json(self, client, sample_data):
        resp = client.post('/api/students', data='nope', content_type='text/plain')
        assert resp.status_code == 400

    def test_get_missing(self, client, sample_data):
        resp = client.get('/api/students/ZZZ')
        assert resp.status_code == 404
        assert resp.get_json()['error'] == 'Aluno não encontrado.'

    def test_update(self, client, sample_data):
        resp = client.put('/api/students/A002', json={'observations': 'Troca de turma'})
        assert resp.status_code == 200
        assert resp.get_json()['observations'] == 'Troca de turma'

    def test_delete(self, client, sample_data):
        resp = client.delete('/api/students/A003')
        assert resp.status_code == 200
        assert client.get('/api/students/A003').status_code == 404

    def test_delete_all(self, client, sample_data):
        resp = client.delete('/api/students')
        assert resp.get_json() == {'deleted': 3}
        assert client.get('/api/students').get_json() == []


class TestPhasesApi:
    def test_history(self, client, sample_data):
        resp = client.get('/api/students/A001/assessments?type=ESCRITA')
        phases = {a['period']: a['phase'] for a in resp.get_json()}
        assert phases == {'Inicial': 'Pré-Alfabética', '1º Bim': 'Alfabética Parcial'}

    def test_history_bad_type(self, client, sample_data):
        resp = client.get('/api/students/A001/assessments?type=PINTURA')
        assert resp.status_code == 400

    def test_set_and_clear_phase(self, client, sample_data):
        resp = client.put('/api/students/A003/phases', json={
            'type': 'DESENHO', 'period': '2º Bim', 'phase': 'pre esquematismo',
        })
        assert resp.status_code == 200
        assert resp.get_json()['phase'] == 'Pré-Esquematismo'
        assert _row('A003').fase_desenho_2bim == 'Pré-Esquematismo'

        resp = client.delete(
            '/api/students/A003/phases',
            query_string={'type': 'DESENHO', 'period': '2º Bim'},
        )
        assert resp.get_json() == {'removed': 1}
        assert _row('A003').fase_desenho_2bim in (None, '')

    def test_empty_phase_clears(self, client, sample_data):
        resp = client.put('/api/students/A002/phases', json={
            'type': 'DESENHO', 'period': 'Inicial', 'phase': '',
        })
        assert resp.get_json() == {'cleared': True}

    def test_record_assessment(self, client, sample_data):
        resp = client.post('/api/assessments', json={
            'student_id': 'A002', 'type': 'ESCRITA', 'period': '1º Bim',
            'phase': 'Alfabética Completa',
        })
        assert resp.status_code == 201
        assert resp.get_json()['id'] == 'A002_ESCRITA_1º Bim'

    def test_record_assessment_invalid_period(self, client, sample_data):
        resp = client.post('/api/assessments', json={
            'student_id': 'A002', 'type': 'ESCRITA', 'period': '5º Bim', 'phase': 'x',
        })
        assert resp.status_code == 400


class TestCatalogApi:
    def test_grades(self, client, sample_data):
        resp = client.post('/api/grades', json={'name': 'C'})
        assert resp.status_code == 201
        assert [g['name'] for g in client.get('/api/grades').get_json()] == ['A', 'B', 'C']

    def test_duplicate_grade(self, client, sample_data):
        resp = client.post('/api/grades', json={'name': 'A'})
        assert resp.status_code == 409

    def test_grade_in_use(self, client, sample_data):
        resp = client.delete('/api/grades/A')
        assert resp.status_code == 409
        assert 'tem aluno associado' in resp.get_json()['error']

    def test_series_rename(self, client, sample_data):
        client.post('/api/series', json={'name': '3º Ano'})
        resp = client.put(f'/api/series/{quote("3º Ano")}', json={'name': '3º Ano EF'})
        assert resp.status_code == 200
        assert resp.get_json()['name'] == '3º Ano EF'

    def test_schools(self, client, sample_data):
        resp = client.post('/api/schools', json={'code': 'E03', 'name': 'Escola Nova'})
        assert resp.status_code == 201
        assert client.delete('/api/schools/E03').status_code == 200
        assert client.delete('/api/schools/E01').status_code == 409


class TestDashboardApi:
    def test_dashboard(self, client, sample_data):
        resp = client.get('/api/dashboard?period=Inicial&school=E01')
        data = resp.get_json()
        assert data['total_students'] == 2
        assert data['has_data'] is True
        drawing = data['domains']['DESENHO']
        assert drawing['evaluated_count'] == 2
        assert drawing['coverage_percent'] == 100.0

    def test_dashboard_bad_period(self, client, sample_data):
        assert client.get('/api/dashboard?period=Junho').status_code == 400

    def test_report_rows(self, client, sample_data):
        resp = client.get('/api/reports/rows', query_string={
            'sort': 'name', 'order': 'desc', 'series': '1º Ano',
        })
        rows = resp.get_json()
        assert [r['Aluno'] for r in rows] == ['Bruno Lima', 'Ana Souza']
        assert rows[1]['Fase Escrita (1º Bim)'] == 'Alfabética Parcial'


class TestTransferApi:
    def test_export_then_import(self, client, sample_data):
        resp = client.get('/api/transfer/export')
        assert resp.status_code == 200
        assert 'attachment' in resp.headers['Content-Disposition']
        workbook = resp.data
        assert workbook[:2] == b'PK'

        client.delete('/api/students')
        resp = client.post(
            '/api/transfer/import',
            data={'file': (io.BytesIO(workbook), 'sondagem.xlsx')},
            content_type='multipart/form-data',
        )
        assert resp.status_code == 200
        summary = resp.get_json()
        assert summary['added_count'] == 3
        assert summary['total_rows'] == 3
        assert _row('A001').fase_escrita_1bim == 'Alfabética Parcial'

    def test_import_without_file(self, client, sample_data):
        resp = client.post('/api/transfer/import', data={}, content_type='multipart/form-data')
        assert resp.status_code == 400

    def test_import_garbage(self, client, sample_data):
        resp = client.post(
            '/api/transfer/import',
            data={'file': (io.BytesIO(b'not a workbook'), 'x.xlsx')},
            content_type='multipart/form-data',
        )
        assert resp.status_code == 400


class TestClassifyApi:
    def test_suggested_words(self, client):
        words = client.get('/api/classify/words').get_json()
        assert 'BOLA' in words['Palavra de alta frequência']
        assert len(words['Pseudopalavras']) == 5

    def test_bad_base64(self, client, sample_data):
        resp = client.post('/api/classify/drawing', json={'image': '***'})
        assert resp.status_code == 400

    @patch('sondagem.analysis.oracle.get_provider')
    def test_provider_failure_is_502(self, mock_get_provider, client, sample_data):
        mock_get_provider.return_value.PROVIDER_NAME = 'claude'
        mock_get_provider.return_value.chat.side_effect = RuntimeError('boom')
        mock_get_provider.return_value.is_rate_limit_error.return_value = False

        resp = client.post('/api/classify/drawing', json={
            'image': 'data:image/png;base64,aGVsbG8=', 'student_id': 'A003', 'period': 'Inicial',
        })

        assert resp.status_code == 502
        assert 'error' in resp.get_json()
        assert OracleCall.query.one().success is False
        assert _row('A003').fase_desenho_inicial in (None, '')

    @patch('sondagem.analysis.oracle.get_provider')
    def test_writing_classification_saved(self, mock_get_provider, client, sample_data):
        from sondagem.analysis.llm.base import LLMResponse

        provider = mock_get_provider.return_value
        provider.PROVIDER_NAME = 'claude'
        provider.chat.return_value = LLMResponse(
            content=json.dumps({'phase': 'Alfabética Completa', 'wordBreakdown': [
                {'target': 'CASA', 'produced': 'KAZA', 'phase': 'Alfabética Completa'},
            ]}),
            model='claude-haiku-4-5', provider='claude',
        )

        resp = client.post('/api/classify/writing', json={
            'produced': 'KAZA', 'targets': 'CASA', 'student_id': 'A003', 'period': '1º Bim',
        })

        assert resp.status_code == 200
        body = resp.get_json()
        assert body['classification']['phase'] == 'Alfabética Completa'
        assert body['assessment']['id'] == 'A003_ESCRITA_1º Bim'
        assert _row('A003').fase_escrita_1bim == 'Alfabética Completa'

    def test_narrative_needs_history(self, client, sample_data):
        resp = client.post('/api/students/A003/narrative')
        assert resp.status_code == 409
        assert resp.get_json()['error'] == 'Realize uma sondagem primeiro.'
