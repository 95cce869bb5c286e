"""Shared test fixtures for the sondagem tracker test suite."""

import pytest

from sondagem import create_app
from sondagem.analysis.phases import AssessmentType
from sondagem.analysis.records import AssessmentResult, Student
from sondagem.extensions import db as _db
from sondagem.models import GradeRow, SchoolRow, SeriesRow, StudentRow


@pytest.fixture()
def app():
    """Create a Flask application configured for testing."""
    application = create_app('testing')
    yield application


@pytest.fixture()
def db(app):
    """Provide a clean database for each test."""
    with app.app_context():
        _db.create_all()
        yield _db
        _db.session.remove()
        _db.drop_all()


@pytest.fixture()
def client(app, db):
    """Provide a Flask test client."""
    return app.test_client()


@pytest.fixture()
def sample_data(app, db):
    """Two schools, reference tables and three students with some phases.

    Returns plain keys (not model objects) so they survive across request
    context boundaries.
    """
    db.session.add_all([
        SchoolRow(codigo='E01', nome='Escola Municipal Aurora'),
        SchoolRow(codigo='E02', nome='Escola Estadual Horizonte'),
        SeriesRow(serie='1º Ano'),
        SeriesRow(serie='2º Ano'),
        GradeRow(turma='A'),
        GradeRow(turma='B'),
    ])
    db.session.add_all([
        StudentRow(
            codigo='A001', nome='Ana Souza', data_nascimento='2018-03-10',
            escola='E01', serie='1º Ano', turma='A',
            fase_desenho_inicial='Garatuja Ordenada',
            fase_escrita_inicial='Pré-Alfabética',
            fase_escrita_1bim='Alfabética Parcial',
        ),
        StudentRow(
            codigo='A002', nome='Bruno Lima', data_nascimento='2017-11-02',
            escola='E01', serie='1º Ano', turma='B',
            fase_desenho_inicial='Esquematismo',
        ),
        StudentRow(
            codigo='A003', nome='Carla Dias', data_nascimento='2017-05-21',
            escola='E02', serie='2º Ano', turma='A',
        ),
    ])
    db.session.commit()
    return {
        'student_ids': ['A001', 'A002', 'A003'],
        'school_ids': ['E01', 'E02'],
        'series': ['1º Ano', '2º Ano'],
        'grades': ['A', 'B'],
    }


def make_student(code, name='Aluno', **kwargs):
    """Plain Student record for the pure-core tests."""
    return Student(id=code, code=code, name=name, **kwargs)


def make_assessment(student_id, type_=AssessmentType.DRAWING, period='Inicial',
                    phase='Esquematismo', date='2025-03-01T10:00:00', id=None):
    return AssessmentResult(
        id=id or f'{student_id}-{type_.value}-{period}-{date}',
        student_id=student_id,
        type=type_,
        date=date,
        period=period,
        phase=phase,
    )
