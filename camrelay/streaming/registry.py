"""
Stream Registry - Registre des Flux Actifs
==========================================

Responsabilités:
- Source de vérité unique pour "cette caméra est-elle en direct"
- Au plus une session par identifiant
- Suppression conditionnelle sur fin de processus (garde d'identité)

Toutes les mutations passent par un verrou unique: aucune mutation
partielle n'est observable par une autre requête.
"""

import logging
import subprocess
import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class StreamStatus(Enum):
    """Cycle de vie d'une session de flux"""
    STARTING = "Starting"
    RUNNING = "Running"
    STOPPING = "Stopping"
    STOPPED = "Stopped"


def hls_path(stream_id: str) -> str:
    return f"/hls/{stream_id}/index.m3u8"


def whep_path(stream_id: str) -> str:
    return f"/whep/{stream_id}"


@dataclass
class StreamSession:
    """Session de flux pour une caméra"""
    stream_id: str
    source_url: str
    republish_url: str
    name: str = ''

    status: StreamStatus = StreamStatus.STARTING
    process: Optional[subprocess.Popen] = None
    started_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self):
        if not self.name:
            self.name = self.stream_id

    @property
    def hls_url(self) -> str:
        return hls_path(self.stream_id)

    @property
    def webrtc_url(self) -> str:
        return whep_path(self.stream_id)

    def to_dict(self) -> dict:
        """Convertir en dictionnaire pour JSON"""
        return {
            'id': self.stream_id,
            'name': self.name,
            'rtspUrl': self.source_url,
            'hlsUrl': self.hls_url,
            'webrtcUrl': self.webrtc_url,
            'status': self.status.value,
            'startTime': self.started_at.isoformat(),
        }


class StreamRegistry:
    """Registre en mémoire des sessions de flux (thread-safe)"""

    def __init__(self):
        self._sessions: Dict[str, StreamSession] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, stream_id: str) -> bool:
        with self._lock:
            return stream_id in self._sessions

    def get(self, stream_id: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(stream_id)

    def insert_if_absent(self, session: StreamSession) -> bool:
        """
        Insérer une session si l'identifiant est libre

        Returns:
            False si une session existe déjà pour cet identifiant
        """
        with self._lock:
            if session.stream_id in self._sessions:
                return False
            self._sessions[session.stream_id] = session
            return True

    def set_status(self, stream_id: str, status: StreamStatus,
                   process: Optional[subprocess.Popen] = None) -> bool:
        """
        Changer le statut d'une session

        Si ``process`` est fourni, la mise à jour ne s'applique que si la
        session appartient toujours à ce processus.
        """
        with self._lock:
            session = self._sessions.get(stream_id)
            if session is None:
                return False
            if process is not None and session.process is not process:
                return False
            session.status = status
            return True

    def remove(self, stream_id: str) -> Optional[StreamSession]:
        """Retirer une session (no-op si absente)"""
        with self._lock:
            session = self._sessions.pop(stream_id, None)
        if session is not None:
            session.status = StreamStatus.STOPPED
        return session

    def remove_if_owned(self, stream_id: str, process: subprocess.Popen) -> bool:
        """
        Traiter la fin d'un processus: retirer la session seulement si elle
        appartient encore à ce processus.

        Un événement de fin tardif d'un processus déjà remplacé (restart)
        ne doit pas toucher la nouvelle session.
        """
        with self._lock:
            session = self._sessions.get(stream_id)
            if session is None or session.process is not process:
                return False
            del self._sessions[stream_id]
        session.status = StreamStatus.STOPPED
        return True

    def snapshot(self) -> List[dict]:
        """Instantané en lecture seule (vrai au moment de l'appel)"""
        with self._lock:
            return [s.to_dict() for s in self._sessions.values()]

    def ids(self) -> List[str]:
        with self._lock:
            return list(self._sessions.keys())

    def clear(self) -> List[StreamSession]:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        return sessions
