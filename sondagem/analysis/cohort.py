"""
Cohort statistics for dashboards and printable reports.

Given a filtered population of students and the full assessment collection,
computes per-period coverage and phase distributions.  Each student
contributes at most once to a distribution: through the latest assessment of
the period, the same "latest wins" rule the reconciler applies.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime

from .phases import PHASED_TYPES, AssessmentType, is_pending, taxonomy_for
from .reconciler import latest_for
from .records import AssessmentResult, Student, parse_timestamp

_ALL = 'all'


@dataclass
class CohortStats:
    type: AssessmentType
    period: str
    total_students: int
    evaluated_count: int
    coverage_percent: float
    distribution: list[tuple[str, int]] = field(default_factory=list)
    unclassified: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            'type': self.type.value,
            'period': self.period,
            'total_students': self.total_students,
            'evaluated_count': self.evaluated_count,
            'coverage_percent': self.coverage_percent,
            'distribution': [
                {'phase': phase, 'count': count} for phase, count in self.distribution
            ],
            'unclassified': self.unclassified,
        }


def _facet_off(value) -> bool:
    return value is None or value == '' or value == _ALL


def filter_students(
    students: list[Student],
    school_id: str | None = None,
    series: str | None = None,
    grade: str | None = None,
    search: str | None = None,
) -> list[Student]:
    """Facet filter used by the dashboard, the student list and reports."""
    needle = (search or '').strip().lower()
    return [
        s for s in students
        if (_facet_off(school_id) or s.school_id == school_id)
        and (_facet_off(series) or s.series == series)
        and (_facet_off(grade) or s.grade == grade)
        and (not needle or needle in (s.name or '').lower())
    ]


def cohort_stats(
    students: list[Student],
    assessments: list[AssessmentResult],
    type_: AssessmentType | str,
    period: str,
) -> CohortStats:
    """Coverage and phase distribution of one domain in one period.

    Args:
        students: The cohort, already filtered by the caller.
        assessments: Every known assessment; foreign students are ignored.
        type_: DRAWING or WRITING.
        period: One of ``PERIODS``.

    Returns:
        CohortStats with the distribution in taxonomy order.
    """
    type_ = AssessmentType(type_)
    taxonomy = taxonomy_for(type_)
    cohort_ids = {s.id for s in students}

    in_period = [
        a for a in assessments
        if a.type == type_ and a.period == period and a.student_id in cohort_ids
    ]
    evaluated = {a.student_id for a in in_period if not is_pending(a.phase)}

    counts = Counter()
    for student in students:
        latest = latest_for(in_period, student.id, type_, period)
        if latest is None or is_pending(latest.phase):
            continue
        counts[taxonomy.canonicalize(latest.phase)] += 1

    total = len(students)
    coverage = (len(evaluated) / total * 100) if total > 0 else 0.0

    return CohortStats(
        type=type_,
        period=period,
        total_students=total,
        evaluated_count=len(evaluated),
        coverage_percent=coverage,
        distribution=[(phase, counts.get(phase, 0)) for phase in taxonomy],
        unclassified={
            label: counts[label] for label in sorted(counts) if label not in taxonomy
        },
    )


def dashboard_summary(
    students: list[Student],
    assessments: list[AssessmentResult],
    period: str,
) -> dict:
    """Both domains for one period, shaped for the dashboard endpoint."""
    cohort_ids = {s.id for s in students}
    return {
        'period': period,
        'total_students': len(students),
        'has_data': any(
            a.period == period and a.student_id in cohort_ids for a in assessments
        ),
        'domains': {
            t.value: cohort_stats(students, assessments, t, period).to_dict()
            for t in PHASED_TYPES
        },
    }


def age_at(birth_date, ref) -> int | None:
    """Whole years between ``birth_date`` and ``ref``; None if either is unusable."""
    born = _as_date(birth_date)
    on = _as_date(ref)
    if born is None or on is None:
        return None
    years = on.year - born.year
    if (on.month, on.day) < (born.month, born.day):
        years -= 1
    return years


def _as_date(value) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    parsed = parse_timestamp(value)
    return parsed.date() if parsed else None
