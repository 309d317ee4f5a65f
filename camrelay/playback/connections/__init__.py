"""
Connexions de lecture par protocole

Chaque protocole implémente ``open`` / ``close`` / ``is_healthy``; la
politique de reconnexion est commune (voir ``PlaybackSession``).
"""

from typing import Callable, Dict, Type

from ..sinks import MediaSink
from .base import PlaybackConnection
from .flv import FlvConnection
from .hls import HlsConnection
from .mjpeg import MjpegConnection
from .whep import WhepConnection

CONNECTION_TYPES: Dict[str, Type[PlaybackConnection]] = {
    'mjpeg': MjpegConnection,
    'hls': HlsConnection,
    'flv': FlvConnection,
    'webrtc': WhepConnection,
}


def create_connection(protocol: str, url: str, sink: MediaSink,
                      on_connected: Callable[[], None], on_failed: Callable[[str], None],
                      **options) -> PlaybackConnection:
    """Construire la connexion d'un protocole"""
    try:
        connection_type = CONNECTION_TYPES[protocol]
    except KeyError:
        raise ValueError(f"Protocole inconnu: {protocol}") from None
    return connection_type(url, sink, on_connected, on_failed, **options)


__all__ = [
    'PlaybackConnection',
    'MjpegConnection',
    'HlsConnection',
    'FlvConnection',
    'WhepConnection',
    'CONNECTION_TYPES',
    'create_connection',
]
