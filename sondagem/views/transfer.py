from datetime import date

from flask import Blueprint, Response, jsonify, request

from sondagem.exceptions import TrackerError
from sondagem.services.spreadsheet import XLSX_MIMETYPE
from sondagem.services.tracker_service import load_tracker

transfer_bp = Blueprint('transfer', __name__, url_prefix='/api/transfer')


@transfer_bp.route('/import', methods=['POST'])
def import_workbook():
    upload = request.files.get('file')
    if upload is None or not upload.filename:
        raise TrackerError('Nenhum arquivo enviado.')
    tracker = load_tracker()
    summary = tracker.import_workbook(upload.read())
    return jsonify(summary.to_dict())


@transfer_bp.route('/export')
def export_workbook():
    tracker = load_tracker()
    content = tracker.export_workbook()
    filename = f'sondagem_completa_{date.today().isoformat()}.xlsx'
    return Response(
        content,
        mimetype=XLSX_MIMETYPE,
        headers={'Content-Disposition': f'attachment; filename={filename}'},
    )
