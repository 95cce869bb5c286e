import base64
import binascii
import logging

from flask import Blueprint, jsonify, request

from sondagem.analysis.oracle import SUGGESTED_WORDS
from sondagem.exceptions import TrackerError
from sondagem.services.tracker_service import load_tracker

logger = logging.getLogger(__name__)

classify_bp = Blueprint('classify', __name__, url_prefix='/api')


def _image_payload():
    """(base64 image, media type) from a multipart upload or a JSON body."""
    upload = request.files.get('image')
    if upload is not None:
        return base64.b64encode(upload.read()).decode('ascii'), upload.mimetype or 'image/jpeg'

    data = request.get_json(silent=True) or {}
    image = data.get('image') or ''
    media_type = data.get('media_type') or 'image/jpeg'
    # Accept data URLs as produced by browsers
    if image.startswith('data:') and ',' in image:
        header, image = image.split(',', 1)
        media_type = header[5:].split(';')[0] or media_type
    if not image:
        raise TrackerError('Nenhuma imagem enviada.')
    try:
        base64.b64decode(image, validate=True)
    except (binascii.Error, ValueError):
        raise TrackerError('Imagem em base64 inválida.') from None
    return image, media_type


def _target() -> tuple:
    source = request.form if request.files else (request.get_json(silent=True) or {})
    return source.get('student_id') or None, source.get('period') or None


@classify_bp.route('/classify/words')
def suggested_words():
    """Dictation word lists by category, for building a writing assessment."""
    return jsonify(SUGGESTED_WORDS)


@classify_bp.route('/classify/drawing', methods=['POST'])
def classify_drawing():
    image, media_type = _image_payload()
    student_id, period = _target()
    tracker = load_tracker()
    result, saved = tracker.classify_drawing(image, media_type, student_id, period)
    return jsonify({
        'classification': result.to_dict(),
        'assessment': saved.to_dict() if saved else None,
    })


@classify_bp.route('/classify/writing', methods=['POST'])
def classify_writing():
    data = request.get_json(silent=True) or {}
    tracker = load_tracker()
    result, saved = tracker.classify_writing(
        data.get('produced') or '',
        data.get('targets') or '',
        data.get('student_id') or None,
        data.get('period') or None,
    )
    return jsonify({
        'classification': result.to_dict(),
        'assessment': saved.to_dict() if saved else None,
    })


@classify_bp.route('/classify/transcribe', methods=['POST'])
def transcribe():
    image, media_type = _image_payload()
    text = load_tracker().transcribe(image, media_type)
    return jsonify({'text': text})


@classify_bp.route('/students/<student_id>/narrative', methods=['POST'])
def narrative(student_id):
    tracker = load_tracker()
    report = tracker.narrative_report(student_id)
    return jsonify(report.to_dict())
