"""
Connexion FLV basse latence (chemin historique)

Lit un flux HTTP-FLV et découpe les balises au fil de l'eau.
"""

import logging
from collections import namedtuple
from typing import List

from ..errors import ConnectionFailed
from .base import PlaybackConnection

logger = logging.getLogger(__name__)

FLV_SIGNATURE = b'FLV'
TAG_AUDIO = 8
TAG_VIDEO = 9
TAG_SCRIPT = 18

FlvTag = namedtuple('FlvTag', ['tag_type', 'timestamp', 'size'])


class FlvReader:
    """Découpeur incrémental de balises FLV"""

    def __init__(self):
        self._buffer = b''
        self.header_parsed = False
        self.has_audio = False
        self.has_video = False

    def feed(self, data: bytes) -> List[FlvTag]:
        self._buffer += data

        if not self.header_parsed:
            if len(self._buffer) < 9:
                return []
            if self._buffer[:3] != FLV_SIGNATURE:
                raise ConnectionFailed("en-tête FLV invalide")
            flags = self._buffer[4]
            self.has_audio = bool(flags & 0x04)
            self.has_video = bool(flags & 0x01)
            header_size = int.from_bytes(self._buffer[5:9], 'big')
            # En-tête + PreviousTagSize0
            if len(self._buffer) < header_size + 4:
                return []
            self._buffer = self._buffer[header_size + 4:]
            self.header_parsed = True

        tags = []
        while len(self._buffer) >= 11:
            size = int.from_bytes(self._buffer[1:4], 'big')
            total = 11 + size + 4
            if len(self._buffer) < total:
                break
            timestamp = int.from_bytes(self._buffer[4:7], 'big') | (self._buffer[7] << 24)
            tags.append(FlvTag(self._buffer[0] & 0x1f, timestamp, size))
            self._buffer = self._buffer[total:]
        return tags


class FlvConnection(PlaybackConnection):
    """Lecteur HTTP-FLV live"""

    protocol = 'flv'

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._response = None
        self.video_tags = 0
        self.audio_tags = 0

    def open(self) -> None:
        self._start_worker(self._run, name=f"flv-{self.attempt}")

    def _run(self):
        response = self._http.get(self.url, stream=True, timeout=self.timeout, headers=self.headers)
        self._response = response
        if self.closed:
            response.close()
            return
        if response.status_code != 200:
            raise ConnectionFailed(f"HTTP {response.status_code}")

        reader = FlvReader()
        for chunk in response.iter_content(chunk_size=8192):
            if self.closed:
                return
            if not chunk:
                continue
            self.sink.push_data(chunk)
            for tag in reader.feed(chunk):
                if tag.tag_type == TAG_VIDEO:
                    self.video_tags += 1
                    self._report_connected()
                elif tag.tag_type == TAG_AUDIO:
                    self.audio_tags += 1

        if not self.closed:
            raise ConnectionFailed("flux FLV terminé")

    def _release(self) -> None:
        response = self._response
        if response is not None:
            response.close()
