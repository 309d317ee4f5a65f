"""
Exceptions du client de lecture
"""

from typing import Optional


class PlaybackError(Exception):
    """Erreur de base du client de lecture"""


class ConnectionFailed(PlaybackError):
    """Échec d'une connexion de lecture (image, chargeur, pair WebRTC)"""


class ControlApiError(PlaybackError):
    """L'API de contrôle du serveur a répondu avec une erreur"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
