from flask import Blueprint, jsonify, request

from sondagem.analysis.phases import PERIODS
from sondagem.services.export_service import REPORT_SORT_KEYS
from sondagem.services.tracker_service import load_tracker

dashboard_bp = Blueprint('dashboard', __name__, url_prefix='/api')


def _facets() -> dict:
    return {
        'school_id': request.args.get('school') or None,
        'series': request.args.get('series') or None,
        'grade': request.args.get('grade') or None,
        'search': request.args.get('q') or None,
    }


@dashboard_bp.route('/dashboard')
def dashboard():
    period = request.args.get('period', PERIODS[0])
    tracker = load_tracker()
    return jsonify(tracker.dashboard(period, **_facets()))


@dashboard_bp.route('/reports/rows')
def report_rows():
    sort = request.args.get('sort', 'name')
    if sort not in REPORT_SORT_KEYS:
        sort = 'name'
    tracker = load_tracker()
    rows = tracker.report_rows(
        sort=sort,
        descending=request.args.get('order') == 'desc',
        **_facets(),
    )
    return jsonify(rows)
