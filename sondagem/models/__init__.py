from .student import StudentRow
from .school import SchoolRow
from .series import SeriesRow
from .grade import GradeRow
from .oracle_call import OracleCall

__all__ = [
    'StudentRow',
    'SchoolRow',
    'SeriesRow',
    'GradeRow',
    'OracleCall',
]
