from __future__ import annotations

from datetime import datetime

from sondagem.extensions import db


class StudentRow(db.Model):
    """A student, with one phase column per assessed domain and period.

    Assessments are denormalised onto the row: ``fase_<domain>_<period>``
    holds the current phase, the row's ``updated_at`` stands in for the
    assessment date.
    """

    __tablename__ = 'alunos'

    codigo = db.Column(db.String(64), primary_key=True)
    nome = db.Column(db.String(200), nullable=False)
    data_nascimento = db.Column(db.String(10), nullable=True)
    escola = db.Column(db.String(64), nullable=True, index=True)
    serie = db.Column(db.String(80), nullable=True)
    turma = db.Column(db.String(80), nullable=True)
    observacoes = db.Column(db.Text, nullable=True)

    fase_desenho_inicial = db.Column(db.String(80), nullable=True)
    fase_desenho_1bim = db.Column(db.String(80), nullable=True)
    fase_desenho_2bim = db.Column(db.String(80), nullable=True)
    fase_desenho_3bim = db.Column(db.String(80), nullable=True)
    fase_desenho_4bim = db.Column(db.String(80), nullable=True)
    fase_escrita_inicial = db.Column(db.String(80), nullable=True)
    fase_escrita_1bim = db.Column(db.String(80), nullable=True)
    fase_escrita_2bim = db.Column(db.String(80), nullable=True)
    fase_escrita_3bim = db.Column(db.String(80), nullable=True)
    fase_escrita_4bim = db.Column(db.String(80), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    updated_at = db.Column(
        db.DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    def __repr__(self) -> str:
        return f'<StudentRow {self.codigo!r} {self.nome!r}>'
