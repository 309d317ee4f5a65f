"""
Relais vidéo multi-caméras
==========================

Pipeline: Caméra RTSP → FFmpeg (vidéo copiée, audio Opus) → Relais → HLS / WHEP

Composants:
- StreamRegistry: sessions de flux en mémoire (une par identifiant)
- TranscodeSupervisor: processus FFmpeg par caméra
- RelayClient: API de contrôle du relais (mode 'relay')
- StreamService: logique add / remove / restart / list

Caractéristiques:
- Enregistrement idempotent
- Fin de processus détectée et nettoyée automatiquement
- Aucun état persistant: tout est perdu au redémarrage
"""

from .config import StreamingConfig
from .errors import (
    RegistrationError,
    RelayApiError,
    StreamError,
    StreamNotFoundError,
    TranscoderNotFoundError,
)
from .registry import StreamRegistry, StreamSession, StreamStatus
from .relay_client import RelayClient
from .supervisor import TranscodeSupervisor
from .stream_service import StreamService

# Instances globales partagées par les routes
registry = StreamRegistry()
supervisor = TranscodeSupervisor(registry)
stream_service = StreamService(registry=registry, supervisor=supervisor)

__all__ = [
    'StreamingConfig',
    'StreamError',
    'RegistrationError',
    'RelayApiError',
    'StreamNotFoundError',
    'TranscoderNotFoundError',
    'StreamRegistry',
    'StreamSession',
    'StreamStatus',
    'RelayClient',
    'TranscodeSupervisor',
    'StreamService',
    'registry',
    'supervisor',
    'stream_service',
]
