import logging

from flask import Blueprint, jsonify, request

from sondagem.analysis.phases import AssessmentType
from sondagem.analysis.records import AssessmentResult, Student
from sondagem.exceptions import TrackerError
from sondagem.services.tracker_service import STUDENT_FIELDS, load_tracker

logger = logging.getLogger(__name__)

students_bp = Blueprint('students', __name__, url_prefix='/api')


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise TrackerError('Corpo JSON inválido.')
    return data


def _assessment_type(value):
    try:
        return AssessmentType(value)
    except ValueError:
        raise TrackerError(f'Tipo de sondagem inválido: {value}') from None


@students_bp.route('/students')
def list_students():
    tracker = load_tracker()
    return jsonify([s.to_dict() for s in tracker.state.students])


@students_bp.route('/students', methods=['POST'])
def create_student():
    data = _json_body()
    fields = {f: data.get(f) or '' for f in STUDENT_FIELDS}
    fields['school_id'] = data.get('school_id') or None
    student = Student(id='', **fields)
    tracker = load_tracker()
    student = tracker.add_student(student)
    return jsonify(student.to_dict()), 201


@students_bp.route('/students', methods=['DELETE'])
def delete_all_students():
    tracker = load_tracker()
    count = tracker.delete_all_students()
    return jsonify({'deleted': count})


@students_bp.route('/students/<student_id>')
def get_student(student_id):
    tracker = load_tracker()
    return jsonify(tracker.get_student(student_id).to_dict())


@students_bp.route('/students/<student_id>', methods=['PUT', 'PATCH'])
def update_student(student_id):
    data = _json_body()
    tracker = load_tracker()
    student = tracker.update_student(student_id, data)
    return jsonify(student.to_dict())


@students_bp.route('/students/<student_id>', methods=['DELETE'])
def delete_student(student_id):
    tracker = load_tracker()
    tracker.delete_student(student_id)
    return jsonify({'deleted': student_id})


@students_bp.route('/students/<student_id>/assessments')
def student_history(student_id):
    type_ = request.args.get('type')
    tracker = load_tracker()
    history = tracker.history(
        student_id,
        _assessment_type(type_) if type_ else None,
        request.args.get('period') or None,
    )
    return jsonify([a.to_dict() for a in history])


@students_bp.route('/students/<student_id>/phases', methods=['PUT'])
def set_phase(student_id):
    """Set (or, with an empty phase, clear) one period's phase."""
    data = _json_body()
    tracker = load_tracker()
    saved = tracker.set_period_phase(
        student_id,
        _assessment_type(data.get('type')),
        data.get('period'),
        data.get('phase') or '',
        situation=data.get('situation'),
    )
    if saved is None:
        return jsonify({'cleared': True})
    return jsonify(saved.to_dict())


@students_bp.route('/students/<student_id>/phases', methods=['DELETE'])
def clear_phase(student_id):
    tracker = load_tracker()
    removed = tracker.clear_period_assessment(
        student_id,
        _assessment_type(request.args.get('type')),
        request.args.get('period'),
    )
    return jsonify({'removed': len(removed)})


@students_bp.route('/assessments', methods=['POST'])
def record_assessment():
    data = _json_body()
    if not data.get('student_id'):
        raise TrackerError('student_id é obrigatório.')
    assessment = AssessmentResult(
        id=data.get('id') or '',
        student_id=data['student_id'],
        type=_assessment_type(data.get('type')),
        period=data.get('period') or None,
        phase=data.get('phase'),
        situation=data.get('situation'),
        notes=data.get('notes'),
        image_url=data.get('image_url'),
    )
    if data.get('date'):
        assessment.date = data['date']
    tracker = load_tracker()
    saved = tracker.record_assessment(assessment)
    return jsonify(saved.to_dict()), 201
