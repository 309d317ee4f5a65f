"""
Routes API - Contrôle des Flux
==============================

Endpoints pour:
- Enregistrement des caméras (add, idempotent)
- Suppression / redémarrage
- Liste et détail des flux

Pipeline: Caméra RTSP → FFmpeg → Relais → /hls/<id> et /whep/<id>
"""

import logging
from flask import Blueprint, current_app, jsonify, request

from ..streaming import RegistrationError, StreamNotFoundError, StreamService

logger = logging.getLogger(__name__)

# Blueprint
streams_bp = Blueprint('streams', __name__, url_prefix='/api/streams')


def get_stream_service() -> StreamService:
    """Service de flux attaché à l'application courante"""
    return current_app.extensions['stream_service']


@streams_bp.route('', methods=['GET'])
def list_streams():
    """Lister les flux enregistrés (instantané)"""
    return jsonify(get_stream_service().list()), 200


@streams_bp.route('', methods=['POST'])
def add_stream():
    """
    Enregistrer une caméra

    Body:
    {
        "id": str,
        "rtspUrl": str,
        "name": str (optionnel)
    }

    Returns:
        200 avec le flux créé, ou {"message": "already exists", "id": ...}
    """
    data = request.get_json(silent=True) or {}
    stream_id = data.get('id')
    rtsp_url = data.get('rtspUrl')

    if not stream_id or not rtsp_url:
        return jsonify({'error': 'Missing id or rtspUrl'}), 400

    try:
        created, record = get_stream_service().add(stream_id, rtsp_url, name=data.get('name') or '')
        return jsonify(record), 200

    except RegistrationError as e:
        logger.error(f"[{stream_id}] ❌ Erreur enregistrement: {e}")
        return jsonify({'error': str(e)}), 500


@streams_bp.route('/<stream_id>', methods=['GET'])
def get_stream(stream_id: str):
    """Obtenir les détails d'un flux"""
    record = get_stream_service().get(stream_id)
    if record is None:
        return jsonify({'error': 'Stream not found'}), 404
    return jsonify(record), 200


@streams_bp.route('/<stream_id>', methods=['DELETE'])
def remove_stream(stream_id: str):
    """Arrêter et supprimer un flux"""
    if not get_stream_service().remove(stream_id):
        return jsonify({'error': 'Stream not found'}), 404
    return jsonify({'message': 'Stream stopped', 'id': stream_id}), 200


@streams_bp.route('/<stream_id>/restart', methods=['POST'])
def restart_stream(stream_id: str):
    """Redémarrer un flux avec sa source connue"""
    try:
        record = get_stream_service().restart(stream_id)
        return jsonify(record), 200

    except StreamNotFoundError:
        return jsonify({'error': 'Stream not found'}), 404
    except RegistrationError as e:
        logger.error(f"[{stream_id}] ❌ Erreur redémarrage: {e}")
        return jsonify({'error': str(e)}), 500
