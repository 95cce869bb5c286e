from flask import Blueprint, jsonify, request

from sondagem.services.tracker_service import load_tracker

catalog_bp = Blueprint('catalog', __name__, url_prefix='/api')


def _body() -> dict:
    return request.get_json(silent=True) or {}


# --- Grades (Turmas) ---

@catalog_bp.route('/grades')
def list_grades():
    tracker = load_tracker()
    return jsonify([{'id': g.id, 'name': g.name} for g in tracker.state.grades])


@catalog_bp.route('/grades', methods=['POST'])
def add_grade():
    grade = load_tracker().add_grade(_body().get('name'))
    return jsonify({'id': grade.id, 'name': grade.name}), 201


@catalog_bp.route('/grades/<grade_id>', methods=['PUT'])
def rename_grade(grade_id):
    grade = load_tracker().rename_grade(grade_id, _body().get('name'))
    return jsonify({'id': grade.id, 'name': grade.name})


@catalog_bp.route('/grades/<grade_id>', methods=['DELETE'])
def delete_grade(grade_id):
    load_tracker().delete_grade(grade_id)
    return jsonify({'deleted': grade_id})


# --- Series (Séries) ---

@catalog_bp.route('/series')
def list_series():
    tracker = load_tracker()
    return jsonify([{'id': s.id, 'name': s.name} for s in tracker.state.series])


@catalog_bp.route('/series', methods=['POST'])
def add_series():
    series = load_tracker().add_series(_body().get('name'))
    return jsonify({'id': series.id, 'name': series.name}), 201


@catalog_bp.route('/series/<series_id>', methods=['PUT'])
def rename_series(series_id):
    series = load_tracker().rename_series(series_id, _body().get('name'))
    return jsonify({'id': series.id, 'name': series.name})


@catalog_bp.route('/series/<series_id>', methods=['DELETE'])
def delete_series(series_id):
    load_tracker().delete_series(series_id)
    return jsonify({'deleted': series_id})


# --- Schools (Escolas) ---

def _school_json(school) -> dict:
    return {'id': school.id, 'code': school.code, 'name': school.name}


@catalog_bp.route('/schools')
def list_schools():
    tracker = load_tracker()
    return jsonify([_school_json(s) for s in tracker.state.schools])


@catalog_bp.route('/schools', methods=['POST'])
def add_school():
    data = _body()
    school = load_tracker().add_school(data.get('code'), data.get('name'))
    return jsonify(_school_json(school)), 201


@catalog_bp.route('/schools/<school_id>', methods=['PUT'])
def update_school(school_id):
    data = _body()
    school = load_tracker().update_school(school_id, data.get('code'), data.get('name'))
    return jsonify(_school_json(school))


@catalog_bp.route('/schools/<school_id>', methods=['DELETE'])
def delete_school(school_id):
    load_tracker().delete_school(school_id)
    return jsonify({'deleted': school_id})
