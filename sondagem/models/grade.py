from sondagem.extensions import db


class GradeRow(db.Model):
    """Class label ("Turma"); the name is the key."""

    __tablename__ = 'turmas'

    turma = db.Column(db.String(80), primary_key=True)

    def __repr__(self) -> str:
        return f'<GradeRow {self.turma!r}>'
