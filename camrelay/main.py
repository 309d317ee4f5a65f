"""
Fichier principal de l'application camrelay
Factory pattern pour créer l'instance Flask
"""
import atexit
import logging
import os

from flask import Flask, jsonify
from flask_cors import CORS

from . import __version__
from .config import get_config
from .routes.health import health_bp
from .routes.playback_proxy import playback_proxy_bp
from .routes.streams import streams_bp
from .services.logging_service import setup_logging
from .streaming import StreamService, stream_service as default_stream_service

logger = logging.getLogger(__name__)


def create_app(config_name=None, stream_service: StreamService = None):
    """
    Factory pour créer l'application Flask

    Args:
        config_name (str): Nom de la configuration ('development', 'production', 'testing')
                          Par défaut, utilise la variable d'environnement FLASK_ENV ou 'development'
        stream_service (StreamService): Service de flux à utiliser (instance globale par défaut)

    Returns:
        Flask: Instance de l'application configurée
    """

    # Déterminer la configuration à utiliser
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')
    config_class = get_config(config_name)

    app = Flask(__name__)
    app.config.from_object(config_class)

    # Configuration UTF-8 pour JSON
    app.config['JSON_AS_ASCII'] = False
    app.config['JSON_SORT_KEYS'] = False

    setup_logging(app.config['LOG_LEVEL'], app.config['LOGS_DIR'])

    # Validation de la configuration en production
    if config_name == 'production':
        config_class.validate()

    # Configuration CORS
    CORS(app,
         origins=app.config['CORS_ORIGINS'],
         allow_headers=["Content-Type", "Authorization", "If-Match"],
         expose_headers=["Location", "ETag"],
         methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"])

    service = stream_service or default_stream_service
    app.extensions['stream_service'] = service

    # Enregistrement des blueprints
    app.register_blueprint(streams_bp)
    app.register_blueprint(playback_proxy_bp)
    app.register_blueprint(health_bp)

    @app.route('/')
    def index():
        """Page d'accueil de l'API"""
        return {
            'message': 'camrelay API',
            'version': __version__,
            'endpoints': {
                'health': '/health',
                'streams': '/api/streams',
                'hls': '/hls/<id>/index.m3u8',
                'whep': '/whep/<id>'
            }
        }

    @app.errorhandler(404)
    def not_found(error):
        return jsonify({'error': 'Not found'}), 404

    # Arrêter proprement les transcodeurs à la sortie
    if app.config['STOP_STREAMS_ON_EXIT']:
        atexit.register(service.shutdown)

    logger.info(f"🚀 camrelay démarré (env={config_name})")
    return app
