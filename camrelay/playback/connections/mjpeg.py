"""
Connexion MJPEG: lecture directe du flux d'images de la caméra

Pas de relais: aucune ré-inscription côté serveur. Chaque tentative ajoute
``t=<tentative>`` à l'URL pour contourner les caches.
"""

import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from ..errors import ConnectionFailed
from .base import PlaybackConnection

logger = logging.getLogger(__name__)

SOI = b'\xff\xd8'
EOI = b'\xff\xd9'


def cache_busted(url: str, attempt: int) -> str:
    parts = urlsplit(url)
    query = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k != 't']
    query.append(('t', str(attempt)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def extract_frames(buffer: bytes):
    """
    Extraire les images JPEG complètes d'un tampon

    Returns:
        (images, reste du tampon)
    """
    frames = []
    while True:
        start_idx = buffer.find(SOI)
        if start_idx == -1:
            break
        end_idx = buffer.find(EOI, start_idx + 2)
        if end_idx == -1:
            # Garder le début d'image pour la suite
            buffer = buffer[start_idx:]
            return frames, buffer
        frames.append(buffer[start_idx:end_idx + 2])
        buffer = buffer[end_idx + 2:]
    # Un marqueur peut être coupé entre deux blocs
    return frames, (buffer[-1:] if buffer.endswith(b'\xff') else b'')


class MjpegConnection(PlaybackConnection):
    """Chargeur d'images MJPEG (multipart ou JPEG unique)"""

    protocol = 'mjpeg'
    buffer_size = 1024 * 1024

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._response = None

    @property
    def request_url(self) -> str:
        return cache_busted(self.url, self.attempt)

    def open(self) -> None:
        self._start_worker(self._run, name=f"mjpeg-{self.attempt}")

    def _run(self):
        response = self._http.get(self.request_url, stream=True, timeout=self.timeout, headers=self.headers)
        self._response = response
        if self.closed:
            response.close()
            return
        if response.status_code != 200:
            raise ConnectionFailed(f"HTTP {response.status_code}")

        multipart = 'multipart' in response.headers.get('Content-Type', '')
        buffer = b''
        for chunk in response.iter_content(chunk_size=8192):
            if self.closed:
                return
            if not chunk:
                continue
            buffer += chunk
            frames, buffer = extract_frames(buffer)
            for frame in frames:
                self.sink.push_frame(frame)
                self._report_connected()

            # Éviter l'accumulation de données
            if len(buffer) > self.buffer_size:
                logger.warning("Buffer MJPEG saturé, reset")
                buffer = b''

        # Une image fixe reste affichée une fois chargée
        if not multipart and self._connected:
            return
        if not self.closed:
            raise ConnectionFailed("flux MJPEG terminé")

    def _release(self) -> None:
        response = self._response
        if response is not None:
            response.close()
