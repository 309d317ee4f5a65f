# camrelay/routes/health.py

"""
Routes pour les health checks et l'état du serveur
"""

import logging
from flask import Blueprint, current_app, jsonify

from .. import __version__
from ..services.monitoring_service import MonitoringService
from ..streaming import StreamingConfig

logger = logging.getLogger(__name__)

health_bp = Blueprint('health', __name__)
monitoring_service = MonitoringService()


def _stream_count() -> int:
    return current_app.extensions['stream_service'].count()


@health_bp.route('/health', methods=['GET'])
def basic_health_check():
    """Health check basique pour les load balancers"""
    return jsonify({
        'status': 'ok',
        'streams': _stream_count(),
    }), 200


@health_bp.route('/api/server-info', methods=['GET'])
def server_info():
    """Informations publiques du serveur (ports, mode, authentification)"""
    return jsonify({
        'name': 'camrelay',
        'version': __version__,
        'streamAuthEnabled': StreamingConfig.STREAM_AUTH_ENABLED,
        'transcodeMode': StreamingConfig.TRANSCODE_MODE,
        'streams': _stream_count(),
        'ports': StreamingConfig.ports(),
    }), 200


@health_bp.route('/api/system-stats', methods=['GET'])
def system_stats():
    """CPU, mémoire, disque et uptime de la machine"""
    try:
        stats = monitoring_service.get_system_stats()
    except Exception as e:
        logger.error(f"❌ Erreur statistiques système: {e}")
        return jsonify({'error': str(e)}), 500

    stats['streams'] = _stream_count()
    return jsonify(stats), 200
