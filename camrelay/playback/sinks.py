"""
Éléments média headless
=======================

``MediaSink`` joue le rôle de l'élément vidéo/image: il reçoit des images
JPEG, des octets de flux (HLS / FLV) ou un flux WebRTC attaché.
"""

import threading
import time
import uuid
from typing import List, Optional


class LocalMediaStream:
    """Flux local qui accumule les pistes distantes reçues"""

    def __init__(self):
        self.id = uuid.uuid4().hex
        self.tracks: List[object] = []

    def add_track(self, track) -> bool:
        if track in self.tracks:
            return False
        self.tracks.append(track)
        return True

    @property
    def kinds(self) -> List[str]:
        return [getattr(track, 'kind', '') for track in self.tracks]


class MediaSink:
    """Destination des médias d'une session de lecture (thread-safe)"""

    def __init__(self, name: str = ''):
        self.name = name
        self._lock = threading.Lock()
        self.stream: Optional[LocalMediaStream] = None
        self.attach_count = 0
        self.frames = 0
        self.bytes_received = 0
        self.last_frame: Optional[bytes] = None
        self.last_update: Optional[float] = None

    def attach(self, stream: LocalMediaStream) -> bool:
        """
        Attacher un flux, une seule fois par identité

        Returns:
            False si ce flux était déjà attaché
        """
        with self._lock:
            if self.stream is stream:
                return False
            self.stream = stream
            self.attach_count += 1
            return True

    def detach(self):
        with self._lock:
            self.stream = None

    def push_frame(self, frame: bytes):
        with self._lock:
            self.frames += 1
            self.bytes_received += len(frame)
            self.last_frame = frame
            self.last_update = time.monotonic()

    def push_data(self, data: bytes):
        with self._lock:
            self.bytes_received += len(data)
            self.last_update = time.monotonic()

    def clear(self):
        with self._lock:
            self.stream = None
            self.last_frame = None
