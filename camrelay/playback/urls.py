"""
Résolution des URL de lecture et conventions de nommage
"""

import base64
from typing import Optional
from urllib.parse import quote, urljoin, urlsplit, urlunsplit

CAMERA_PREFIX = 'cam-'
_LOCAL_HOSTS = ('localhost', '127.0.0.1')


def stream_id_for_camera(camera_id: str) -> str:
    """``cam-<streamId>`` → ``<streamId>``"""
    if camera_id.startswith(CAMERA_PREFIX):
        return camera_id[len(CAMERA_PREFIX):]
    return camera_id


def camera_id_for_stream(stream_id: str) -> str:
    return f"{CAMERA_PREFIX}{stream_id}"


def server_host(server_base: str) -> str:
    return urlsplit(server_base).hostname or ''


def resolve_playback_url(url: str, server_base: str, whep: bool = False) -> str:
    """
    Transformer une URL de lecture en URL absolue joignable

    - chemin relatif: préfixé par l'adresse du serveur
    - hôte local (localhost / 127.0.0.1): remplacé par l'hôte du serveur
    - WHEP sans segment ``/whep`` (ancien format): ``/whep`` ajouté
    """
    if url.startswith('/'):
        resolved = urljoin(server_base.rstrip('/') + '/', url.lstrip('/'))
    else:
        parts = urlsplit(url)
        host = server_host(server_base)
        if parts.hostname in _LOCAL_HOSTS and host:
            netloc = host if parts.port is None else f"{host}:{parts.port}"
            if parts.username:
                credentials = parts.username
                if parts.password:
                    credentials = f"{credentials}:{parts.password}"
                netloc = f"{credentials}@{netloc}"
            resolved = urlunsplit((parts.scheme, netloc, parts.path, parts.query, parts.fragment))
        else:
            resolved = url

    if whep and '/whep' not in resolved:
        resolved = resolved.rstrip('/') + '/whep'
    return resolved


def playback_path(protocol: str, stream_id: str, source_url: Optional[str] = None) -> str:
    """Chemin public d'un flux pour un protocole relayé (FLV: passerelle historique par URL source)"""
    if protocol == 'hls':
        return f"/hls/{stream_id}/index.m3u8"
    if protocol == 'webrtc':
        return f"/whep/{stream_id}"
    if protocol == 'flv' and source_url:
        return f"/api/stream/flv?url={quote(source_url, safe='')}"
    raise ValueError(f"Pas de chemin relayé pour {protocol}")


def viewer_auth_header(password: Optional[str]) -> Optional[str]:
    """``Basic base64("viewer:<password>")`` ou None sans mot de passe"""
    if not password:
        return None
    token = base64.b64encode(f"viewer:{password}".encode('utf-8')).decode('ascii')
    return f"Basic {token}"
