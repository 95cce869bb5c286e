"""
In-memory domain records and the application-state container.

The store keeps assessments as denormalised columns on the student row; the
application works with one ``AssessmentResult`` per classification event.
Translation between the two lives in ``sondagem.services.store`` only.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone

from .phases import AssessmentType


def new_id() -> str:
    return str(uuid.uuid4())


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value) -> datetime | None:
    """Parse an ISO date/timestamp into a naive UTC datetime, or None."""
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).strip().replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


@dataclass
class Student:
    id: str
    code: str
    name: str
    birth_date: str = ''
    grade: str = ''
    series: str = ''
    school_id: str | None = None
    observations: str = ''

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class AssessmentResult:
    """One classification event for a student."""

    id: str
    student_id: str
    type: AssessmentType
    date: str = field(default_factory=utc_now_iso)
    period: str | None = None
    phase: str | None = None
    situation: str | None = None
    # Oracle metadata, carried for display only
    confidence: float | None = None
    reasoning: str | None = None
    summary: str | None = None
    recommended_activities: str | None = None
    markers: list = field(default_factory=list)
    image_url: str | None = None
    notes: str | None = None

    def __post_init__(self):
        self.type = AssessmentType(self.type)

    @property
    def timestamp(self) -> datetime | None:
        return parse_timestamp(self.date)

    def to_dict(self) -> dict:
        data = asdict(self)
        data['type'] = self.type.value
        return data


@dataclass
class Grade:
    id: str
    name: str


@dataclass
class Series:
    id: str
    name: str


@dataclass
class School:
    id: str
    code: str
    name: str


@dataclass
class TrackerState:
    """Snapshot of all five collections, passed explicitly to the pure core."""

    students: list[Student] = field(default_factory=list)
    assessments: list[AssessmentResult] = field(default_factory=list)
    grades: list[Grade] = field(default_factory=list)
    series: list[Series] = field(default_factory=list)
    schools: list[School] = field(default_factory=list)

    def copy(self) -> 'TrackerState':
        """Shallow copy: new lists, same (treated as immutable) records."""
        return replace(
            self,
            students=list(self.students),
            assessments=list(self.assessments),
            grades=list(self.grades),
            series=list(self.series),
            schools=list(self.schools),
        )

    def find_student(self, student_id: str) -> Student | None:
        for student in self.students:
            if student.id == student_id:
                return student
        return None

    def find_school(self, school_id: str | None) -> School | None:
        if not school_id:
            return None
        for school in self.schools:
            if school.id == school_id:
                return school
        return None
