"""
Connexion HLS: chargeur de segments sur le manifeste du relais

- Attend ``initial_delay`` avant le premier chargement (le relais met
  quelques secondes à produire les premiers segments)
- Recharge le manifeste à chaque durée cible
- Un manifeste qui n'avance plus est une erreur fatale: c'est le symptôme
  habituel d'un transcodeur mort côté serveur
"""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import urljoin

from ..errors import ConnectionFailed
from .base import PlaybackConnection

logger = logging.getLogger(__name__)


@dataclass
class MediaPlaylist:
    target_duration: float = 2.0
    media_sequence: int = 0
    segments: List[str] = field(default_factory=list)
    variants: List[str] = field(default_factory=list)
    init_segment: Optional[str] = None
    ended: bool = False

    @property
    def is_master(self) -> bool:
        return bool(self.variants)

    @property
    def last_sequence(self) -> int:
        return self.media_sequence + len(self.segments) - 1


def _attribute(line: str, name: str) -> Optional[str]:
    marker = f'{name}="'
    start = line.find(marker)
    if start == -1:
        return None
    start += len(marker)
    end = line.find('"', start)
    return line[start:end] if end != -1 else None


def parse_playlist(text: str, base_url: str) -> MediaPlaylist:
    """Analyser un manifeste m3u8 (maître ou média)"""
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines or lines[0] != '#EXTM3U':
        raise ConnectionFailed("manifeste HLS invalide")

    playlist = MediaPlaylist()
    expect_variant = False
    for line in lines[1:]:
        if line.startswith('#EXT-X-TARGETDURATION:'):
            playlist.target_duration = float(line.split(':', 1)[1])
        elif line.startswith('#EXT-X-MEDIA-SEQUENCE:'):
            playlist.media_sequence = int(line.split(':', 1)[1])
        elif line.startswith('#EXT-X-STREAM-INF'):
            expect_variant = True
        elif line.startswith('#EXT-X-MAP'):
            uri = _attribute(line, 'URI')
            if uri:
                playlist.init_segment = urljoin(base_url, uri)
        elif line == '#EXT-X-ENDLIST':
            playlist.ended = True
        elif line.startswith('#'):
            continue
        elif expect_variant:
            playlist.variants.append(urljoin(base_url, line))
            expect_variant = False
        else:
            playlist.segments.append(urljoin(base_url, line))
    return playlist


class HlsConnection(PlaybackConnection):
    """Chargeur HLS live"""

    protocol = 'hls'
    live_edge_segments = 3

    def __init__(self, *args, initial_delay: float = 2.0, stall_timeout: Optional[float] = None, **kwargs):
        super().__init__(*args, **kwargs)
        self.initial_delay = initial_delay
        self.stall_timeout = stall_timeout
        self.segments_loaded = 0
        self._last_progress: Optional[float] = None

    def open(self) -> None:
        self._start_worker(self._run, name=f"hls-{self.attempt}")

    def is_healthy(self) -> bool:
        return self.connected and self._last_progress is not None

    def _fetch(self, url: str) -> bytes:
        response = self._http.get(url, timeout=self.timeout, headers=self.headers)
        if not response.ok:
            raise ConnectionFailed(f"HTTP {response.status_code} sur {url}")
        return response.content

    def _load_playlist(self, url: str) -> MediaPlaylist:
        return parse_playlist(self._fetch(url).decode('utf-8', errors='replace'), url)

    def _stall_limit(self, playlist: MediaPlaylist) -> float:
        if self.stall_timeout is not None:
            return self.stall_timeout
        return max(3 * playlist.target_duration, 10.0)

    def _run(self):
        if self.initial_delay and self._wait(self.initial_delay):
            return

        playlist_url = self.url
        playlist = self._load_playlist(playlist_url)
        if playlist.is_master:
            playlist_url = playlist.variants[0]
            playlist = self._load_playlist(playlist_url)

        if playlist.init_segment:
            self.sink.push_data(self._fetch(playlist.init_segment))

        # Démarrer près du direct
        last_loaded = playlist.last_sequence - self.live_edge_segments
        self._last_progress = time.monotonic()

        while not self.closed:
            progressed = False
            for index, segment_url in enumerate(playlist.segments):
                sequence = playlist.media_sequence + index
                if sequence <= last_loaded:
                    continue
                data = self._fetch(segment_url)
                if self.closed:
                    return
                self.sink.push_data(data)
                self.segments_loaded += 1
                last_loaded = sequence
                progressed = True
                self._report_connected()

            now = time.monotonic()
            if progressed:
                self._last_progress = now
            elif now - self._last_progress > self._stall_limit(playlist):
                raise ConnectionFailed("manifeste HLS figé")

            if playlist.ended:
                raise ConnectionFailed("flux HLS terminé")

            interval = playlist.target_duration if progressed else playlist.target_duration / 2
            if self._wait(interval):
                return
            playlist = self._load_playlist(playlist_url)
