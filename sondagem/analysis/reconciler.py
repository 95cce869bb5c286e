"""
Assessment record reconciliation.

Two write rules coexist and are kept as separately named operations:

* ``upsert_period_assessment``: interactive saves.  At most one record per
  (student, type, period); a new save takes over the existing record's id.
* ``append_if_absent``: spreadsheet import.  Appends unless a record with the
  very same phase already exists; never overwrites, since an import cannot
  tell which historical record is authoritative.

All functions take a list snapshot and return new lists; inputs are never
mutated.
"""
from __future__ import annotations

from dataclasses import replace
from datetime import datetime

from .phases import AssessmentType
from .records import AssessmentResult, new_id

_EARLIEST = datetime.min


def _sort_key(assessment: AssessmentResult) -> datetime:
    return assessment.timestamp or _EARLIEST


def _same_triple(a: AssessmentResult, student_id: str, type_: AssessmentType, period: str | None) -> bool:
    return a.student_id == student_id and a.type == type_ and a.period == period


def period_assessment_id(student_id: str, type_: AssessmentType | str, period: str) -> str:
    """Synthesized id guaranteeing one record per (student, type, period)."""
    return f'{student_id}_{AssessmentType(type_).value}_{period}'


def history_for(
    assessments: list[AssessmentResult],
    student_id: str,
    type_: AssessmentType | str | None = None,
    period: str | None = None,
) -> list[AssessmentResult]:
    """All matching records, newest first (undated records last)."""
    type_ = AssessmentType(type_) if type_ is not None else None
    matching = [
        a for a in assessments
        if a.student_id == student_id
        and (type_ is None or a.type == type_)
        and (period is None or a.period == period)
    ]
    # sorted() is stable, so equal dates keep insertion order reversed below
    return sorted(reversed(matching), key=_sort_key, reverse=True)


def latest_for(
    assessments: list[AssessmentResult],
    student_id: str,
    type_: AssessmentType | str,
    period: str | None = None,
) -> AssessmentResult | None:
    """Most recent record for a student and type (and period, when given)."""
    history = history_for(assessments, student_id, type_, period)
    return history[0] if history else None


def upsert_period_assessment(
    assessments: list[AssessmentResult],
    incoming: AssessmentResult,
) -> tuple[list[AssessmentResult], AssessmentResult]:
    """Save ``incoming`` with overwrite-in-place semantics.

    Returns:
        Tuple of (updated list, the record as saved).
    """
    if not incoming.period:
        saved = incoming if incoming.id else replace(incoming, id=new_id())
        return [*assessments, saved], saved

    existing = latest_for(assessments, incoming.student_id, incoming.type, incoming.period)
    if existing is not None:
        saved = replace(incoming, id=existing.id)
    elif incoming.id:
        saved = incoming
    else:
        saved = replace(
            incoming,
            id=period_assessment_id(incoming.student_id, incoming.type, incoming.period),
        )

    result = []
    replaced = False
    for a in assessments:
        if _same_triple(a, incoming.student_id, incoming.type, incoming.period):
            if not replaced:
                result.append(saved)
                replaced = True
            continue
        result.append(a)
    if not replaced:
        result.append(saved)
    return result, saved


def clear_period_assessment(
    assessments: list[AssessmentResult],
    student_id: str,
    type_: AssessmentType | str,
    period: str,
) -> tuple[list[AssessmentResult], list[AssessmentResult]]:
    """Hard-delete every record of the triple.

    Returns:
        Tuple of (remaining records, removed records).
    """
    type_ = AssessmentType(type_)
    kept, removed = [], []
    for a in assessments:
        (removed if _same_triple(a, student_id, type_, period) else kept).append(a)
    return kept, removed


def append_if_absent(
    assessments: list[AssessmentResult],
    incoming: AssessmentResult,
) -> tuple[list[AssessmentResult], bool]:
    """Append unless the exact (student, type, period, phase) already exists."""
    for a in assessments:
        if _same_triple(a, incoming.student_id, incoming.type, incoming.period) and a.phase == incoming.phase:
            return assessments, False
    return [*assessments, incoming], True


def drop_student(assessments: list[AssessmentResult], student_id: str) -> list[AssessmentResult]:
    """Cascade helper: every record not owned by ``student_id``."""
    return [a for a in assessments if a.student_id != student_id]


def rekey_student(
    assessments: list[AssessmentResult],
    old_id: str,
    new_id_: str,
) -> list[AssessmentResult]:
    """Move a student's records to a new student id (code change)."""
    result = []
    for a in assessments:
        if a.student_id != old_id:
            result.append(a)
            continue
        changes = {'student_id': new_id_}
        if a.period and a.id == period_assessment_id(old_id, a.type, a.period):
            changes['id'] = period_assessment_id(new_id_, a.type, a.period)
        result.append(replace(a, **changes))
    return result
