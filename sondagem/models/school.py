from sondagem.extensions import db


class SchoolRow(db.Model):
    __tablename__ = 'escolas'

    codigo = db.Column(db.String(64), primary_key=True)
    nome = db.Column(db.String(200), nullable=False)

    def __repr__(self) -> str:
        return f'<SchoolRow {self.codigo!r} {self.nome!r}>'
