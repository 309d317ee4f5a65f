"""
camrelay - Relais multi-caméras RTSP/MJPEG
===========================================

Pipeline: Caméra (RTSP) → FFmpeg → Relais (MediaMTX) → HLS / WHEP → Navigateur

Côté serveur (``camrelay.streaming``, ``camrelay.routes``):
- Superviseur des processus de transcodage
- Registre des flux en mémoire
- API de contrôle + proxy de lecture

Côté client (``camrelay.playback``):
- Sessions de lecture MJPEG / HLS / FLV / WebRTC avec reconnexion automatique
"""

__version__ = "1.0.0"
