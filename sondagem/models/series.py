from sondagem.extensions import db


class SeriesRow(db.Model):
    """Grade level ("Série"); the name is the key."""

    __tablename__ = 'series'

    serie = db.Column(db.String(80), primary_key=True)

    def __repr__(self) -> str:
        return f'<SeriesRow {self.serie!r}>'
