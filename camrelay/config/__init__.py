# camrelay/config/__init__.py

import os


class Config:
    """Configuration de base."""
    SECRET_KEY = os.environ.get('SECRET_KEY') or 'camrelay-dev-key-CHANGE-IN-PRODUCTION'

    # Niveau et dossier des logs
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
    LOGS_DIR = os.environ.get('LOGS_DIR', 'logs')

    # Arrêter tous les transcodeurs à la sortie du processus
    STOP_STREAMS_ON_EXIT = True

    @staticmethod
    def validate():
        """Valide que les variables critiques sont définies."""
        env = os.environ.get('FLASK_ENV', 'development')
        if env == 'production':
            if not os.environ.get('SECRET_KEY'):
                print("⚠️  WARNING: SECRET_KEY not set")
            if not os.environ.get('RELAY_PASSWORD'):
                print("⚠️  WARNING: RELAY_PASSWORD not set, using default relay credentials")

    @staticmethod
    def init_app(app):
        pass


class DevelopmentConfig(Config):
    """Configuration de développement."""
    DEBUG = True
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'DEBUG')
    CORS_ORIGINS = "*"


class ProductionConfig(Config):
    """Configuration de production."""
    DEBUG = False
    TESTING = False
    CORS_ORIGINS = os.environ.get('CORS_ORIGINS', '*').split(',')


class TestingConfig(Config):
    """Configuration de test."""
    TESTING = True
    LOGS_DIR = None
    STOP_STREAMS_ON_EXIT = False
    CORS_ORIGINS = "*"


config = {
    'development': DevelopmentConfig,
    'production': ProductionConfig,
    'testing': TestingConfig,
    'default': DevelopmentConfig
}


def get_config(config_name=None):
    """Retourne la classe de configuration pour un environnement"""
    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')
    return config.get(config_name, config['default'])
