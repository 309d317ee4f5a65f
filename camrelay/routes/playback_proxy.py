"""
Routes - Proxy de Lecture (HLS / WHEP)
======================================

Endpoints pour:
- /hls/<id>/...  → relais HLS (manifestes + segments, octets inchangés)
- /whep/<id>     → relais WebRTC (échange d'offre / réponse SDP)

Les identifiants du relais sont injectés ici, le navigateur ne les voit
jamais. Le proxy ne réessaie jamais: une erreur du relais devient un 502
et la politique de reconnexion reste côté client.
"""

import base64
import hmac
import logging

import requests
from flask import Blueprint, Response, jsonify, request

from ..streaming import StreamingConfig

logger = logging.getLogger(__name__)

# Blueprint
playback_proxy_bp = Blueprint('playback_proxy', __name__)

# En-têtes de réponse du relais renvoyés au client
_PASSTHROUGH_HEADERS = ('Content-Type', 'Cache-Control', 'ETag', 'Last-Modified')
_WHEP_HEADERS = ('Content-Type', 'ETag', 'Accept-Patch', 'Link')


def _relay_auth() -> tuple:
    return StreamingConfig.relay_auth()


def _bad_gateway(stream_id: str, message: str):
    logger.error(f"[{stream_id}] ❌ Erreur proxy: {message}")
    return jsonify({'error': f'Proxy error: {message}'}), 502


def viewer_authorized(auth_header: str) -> bool:
    """
    Vérifier l'en-tête Authorization d'un spectateur

    Format attendu: ``Basic base64("viewer:<mot de passe>")``
    """
    if not StreamingConfig.STREAM_AUTH_ENABLED:
        return True
    if not auth_header or not auth_header.startswith('Basic '):
        return False
    try:
        decoded = base64.b64decode(auth_header[6:].strip()).decode('utf-8')
    except (ValueError, UnicodeDecodeError):
        return False
    _, _, password = decoded.partition(':')
    return hmac.compare_digest(password.encode('utf-8'), StreamingConfig.STREAM_PASSWORD.encode('utf-8'))


# ======================
# HLS
# ======================

@playback_proxy_bp.route('/hls/<stream_id>/<path:subpath>', methods=['GET'])
def proxy_hls(stream_id: str, subpath: str):
    """
    Relayer un manifeste ou un segment HLS

    ``/hls/cam1/index.m3u8`` → ``http://<relais>:8888/cam1/index.m3u8``
    """
    target = f"{StreamingConfig.relay_hls_base()}/{stream_id}/{subpath}"
    try:
        upstream = requests.get(
            target,
            params=request.args,
            auth=_relay_auth(),
            stream=True,
            timeout=StreamingConfig.PROXY_TIMEOUT,
        )
    except requests.RequestException as e:
        return _bad_gateway(stream_id, str(e))

    if not upstream.ok:
        upstream.close()
        return _bad_gateway(stream_id, f"relay answered {upstream.status_code}")

    def generate():
        try:
            for chunk in upstream.iter_content(chunk_size=8192):
                if chunk:
                    yield chunk
        except requests.RequestException as e:
            logger.error(f"[{stream_id}] ❌ Erreur streaming HLS: {e}")
        finally:
            upstream.close()

    headers = {k: upstream.headers[k] for k in _PASSTHROUGH_HEADERS if k in upstream.headers}
    return Response(generate(), status=upstream.status_code, headers=headers)


# ======================
# WHEP
# ======================

def _relay_whep_url(stream_id: str, resource: str = '') -> str:
    url = f"{StreamingConfig.relay_webrtc_base()}/{stream_id}/whep"
    if resource:
        url = f"{url}/{resource}"
    return url


def _public_location(stream_id: str, location: str) -> str:
    """``/<id>/whep/<session>`` côté relais → ``/whep/<id>/<session>`` côté public"""
    prefix = f"/{stream_id}/whep/"
    marker = location.find(prefix)
    if marker == -1:
        return location
    return f"/whep/{stream_id}/{location[marker + len(prefix):]}"


def _forward_whep(stream_id: str, method: str, resource: str = ''):
    if not viewer_authorized(request.headers.get('Authorization', '')):
        logger.warning(f"[{stream_id}] ⚠️ Spectateur non autorisé")
        return jsonify({'error': 'Unauthorized'}), 401

    headers = {}
    if request.content_type:
        headers['Content-Type'] = request.content_type
    elif method == 'POST':
        headers['Content-Type'] = 'application/sdp'
    if request.headers.get('If-Match'):
        headers['If-Match'] = request.headers['If-Match']

    try:
        upstream = requests.request(
            method,
            _relay_whep_url(stream_id, resource),
            data=request.get_data(),
            headers=headers,
            auth=_relay_auth(),
            timeout=StreamingConfig.PROXY_TIMEOUT,
        )
    except requests.RequestException as e:
        return _bad_gateway(stream_id, str(e))

    if not upstream.ok:
        return _bad_gateway(stream_id, f"relay answered {upstream.status_code}")

    response_headers = {k: upstream.headers[k] for k in _WHEP_HEADERS if k in upstream.headers}
    if 'Location' in upstream.headers:
        response_headers['Location'] = _public_location(stream_id, upstream.headers['Location'])

    # La réponse SDP est renvoyée telle quelle
    return Response(upstream.content, status=upstream.status_code, headers=response_headers)


@playback_proxy_bp.route('/whep/<stream_id>', methods=['POST'])
@playback_proxy_bp.route('/whep/<stream_id>/whep', methods=['POST'])
def proxy_whep_offer(stream_id: str):
    """Offre SDP du client → réponse SDP du relais"""
    logger.info(f"[{stream_id}] 📡 Offre WHEP reçue")
    return _forward_whep(stream_id, 'POST')


@playback_proxy_bp.route('/whep/<stream_id>/<path:resource>', methods=['PATCH', 'DELETE'])
def proxy_whep_session(stream_id: str, resource: str):
    """Trickle ICE (PATCH) et fermeture de session (DELETE)"""
    if resource.startswith('whep/'):
        resource = resource[len('whep/'):]
    return _forward_whep(stream_id, request.method, resource)
