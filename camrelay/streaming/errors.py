"""
Exceptions du relais vidéo
"""

from typing import Optional


class StreamError(Exception):
    """Erreur de base du relais"""


class RegistrationError(StreamError):
    """Impossible d'enregistrer un flux (identifiant/source manquants, transcodeur, relais)"""


class TranscoderNotFoundError(RegistrationError):
    """Le binaire FFmpeg est introuvable"""

    def __init__(self, path: str):
        super().__init__(f"FFmpeg introuvable: {path}")
        self.path = path


class RelayApiError(RegistrationError):
    """L'API de contrôle du relais a répondu avec un statut non-2xx"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StreamNotFoundError(StreamError):
    """Flux inconnu du registre"""

    def __init__(self, stream_id: str):
        super().__init__(f"Flux introuvable: {stream_id}")
        self.stream_id = stream_id
