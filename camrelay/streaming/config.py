"""
Streaming Configuration
=======================

Configuration centralisée du relais vidéo.
Pipeline: Caméra RTSP → FFmpeg → Relais (MediaMTX) → HLS / WHEP

Toutes les valeurs sont lues une seule fois au démarrage du processus
(pas de rechargement à chaud).
"""

import os
import platform
import shutil
from pathlib import Path
from typing import Optional
import logging

logger = logging.getLogger(__name__)


def _env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value == '':
        return default
    try:
        return float(value)
    except ValueError:
        logger.warning(f"⚠️ Valeur invalide pour {name}: {value!r}, utilisation de {default}")
        return default


def _env_bool(name: str, default: bool = False) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def detect_ffmpeg_path() -> str:
    """Détecte le binaire FFmpeg selon le système d'exploitation"""
    explicit = os.getenv('FFMPEG_PATH')
    if explicit:
        return explicit

    system = platform.system().lower()
    if system == 'windows':
        possible_paths = [
            r"C:\ffmpeg\bin\ffmpeg.exe",
            r"C:\Program Files\ffmpeg\bin\ffmpeg.exe",
        ]
    elif system == 'darwin':
        possible_paths = ['/opt/homebrew/bin/ffmpeg', '/usr/local/bin/ffmpeg']
    else:
        possible_paths = ['/usr/bin/ffmpeg', '/usr/local/bin/ffmpeg', '/snap/bin/ffmpeg']

    found = shutil.which('ffmpeg')
    if found:
        return found

    for path in possible_paths:
        if Path(path).exists():
            return path

    return 'ffmpeg'


class StreamingConfig:
    """Configuration du relais vidéo"""

    # FFmpeg
    FFMPEG_PATH = detect_ffmpeg_path()
    AUDIO_CODEC = 'libopus'
    AUDIO_BITRATE = '128k'
    AUDIO_SAMPLE_RATE = '48000'

    # 'ffmpeg': un transcodeur local par caméra
    # 'relay': le relais tire la source lui-même (API de contrôle)
    TRANSCODE_MODE = os.getenv('TRANSCODE_MODE', 'ffmpeg').lower()

    # Relais (MediaMTX)
    RELAY_API_URL = os.getenv('MEDIAMTX_API', 'http://127.0.0.1:9997').rstrip('/')
    RELAY_HOST = os.getenv('RELAY_HOST', '127.0.0.1')
    RELAY_RTSP_PORT = int(os.getenv('RTSP_PORT', 8554))
    RELAY_HLS_PORT = int(os.getenv('HLS_PORT', 8888))
    RELAY_WEBRTC_PORT = int(os.getenv('WEBRTC_PORT', 8889))
    RELAY_USER = os.getenv('RELAY_USER', 'admin')
    RELAY_PASSWORD = os.getenv('RELAY_PASSWORD', 'admin')
    RELAY_API_TIMEOUT = _env_float('RELAY_API_TIMEOUT', 5.0)

    # Le relais garde le chemin pendant une période de grâce après suppression
    RESTART_SETTLE_DELAY = _env_float('RESTART_SETTLE_DELAY', 1.0)

    # Proxy de lecture
    PROXY_TIMEOUT = _env_float('PROXY_TIMEOUT', 10.0)

    # Authentification des spectateurs (chemin WHEP)
    STREAM_AUTH_ENABLED = _env_bool('STREAM_AUTH_ENABLED', False)
    STREAM_PASSWORD = os.getenv('STREAM_PASSWORD', 'password')

    API_PORT = int(os.getenv('PORT', 3001))

    @classmethod
    def ffmpeg_available(cls, ffmpeg_path: Optional[str] = None) -> bool:
        """Vérifier que le binaire FFmpeg est présent"""
        path = ffmpeg_path or cls.FFMPEG_PATH
        return Path(path).exists() or shutil.which(path) is not None

    @classmethod
    def relay_auth(cls) -> tuple:
        return (cls.RELAY_USER, cls.RELAY_PASSWORD)

    @classmethod
    def relay_hls_base(cls) -> str:
        return f"http://{cls.RELAY_HOST}:{cls.RELAY_HLS_PORT}"

    @classmethod
    def relay_webrtc_base(cls) -> str:
        return f"http://{cls.RELAY_HOST}:{cls.RELAY_WEBRTC_PORT}"

    @classmethod
    def republish_url(cls, stream_id: str) -> str:
        """URL d'ingestion RTSP du relais pour un flux"""
        return (
            f"rtsp://{cls.RELAY_USER}:{cls.RELAY_PASSWORD}"
            f"@{cls.RELAY_HOST}:{cls.RELAY_RTSP_PORT}/{stream_id}"
        )

    @classmethod
    def ports(cls) -> dict:
        return {
            'api': cls.API_PORT,
            'rtsp': cls.RELAY_RTSP_PORT,
            'hls': cls.RELAY_HLS_PORT,
            'webrtc': cls.RELAY_WEBRTC_PORT,
        }
