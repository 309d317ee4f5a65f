"""
Interface commune des connexions de lecture
===========================================

Une connexion = un objet vivant (chargeur d'images, chargeur de segments,
pair WebRTC). Elle ne connaît pas la politique de reconnexion: elle se
contente de signaler ``on_connected`` puis, au plus une fois,
``on_failed(raison)``.

- ``open()`` ne bloque pas: le travail se fait dans un thread ou une boucle
- ``close()`` est idempotent et coupe tout rappel ultérieur
"""

import logging
import threading
from abc import ABC, abstractmethod
from typing import Callable, Dict, Optional

import requests

from ..sinks import MediaSink

logger = logging.getLogger(__name__)


class PlaybackConnection(ABC):
    """Connexion de lecture d'un protocole"""

    protocol = ''

    def __init__(
        self,
        url: str,
        sink: MediaSink,
        on_connected: Callable[[], None],
        on_failed: Callable[[str], None],
        attempt: int = 0,
        timeout: float = 10.0,
        headers: Optional[Dict[str, str]] = None,
        http: Optional[requests.Session] = None,
    ):
        self.url = url
        self.sink = sink
        self.attempt = attempt
        self.timeout = timeout
        self.headers = dict(headers or {})
        self._http = http or requests.Session()
        self._on_connected = on_connected
        self._on_failed = on_failed
        self._closed = threading.Event()
        self._report_lock = threading.Lock()
        self._connected = False
        self._failed = False
        self._worker: Optional[threading.Thread] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    @property
    def connected(self) -> bool:
        return self._connected and not self._failed and not self.closed

    @abstractmethod
    def open(self) -> None:
        """Démarrer la connexion sans bloquer"""

    def close(self) -> None:
        """Fermer la connexion (idempotent)"""
        if self._closed.is_set():
            return
        self._closed.set()
        self._release()

    def _release(self) -> None:
        """Libérer les ressources propres au protocole"""

    def is_healthy(self) -> bool:
        return self.connected

    # ------------------------------------------------------------------
    # Signalement
    # ------------------------------------------------------------------

    def _report_connected(self):
        with self._report_lock:
            if self.closed or self._connected or self._failed:
                return
            self._connected = True
        self._on_connected()

    def _report_failure(self, reason: str):
        with self._report_lock:
            if self.closed or self._failed:
                return
            self._failed = True
        logger.warning(f"⚠️ {self.protocol} {self.url}: {reason}")
        self._on_failed(reason)

    def _start_worker(self, target: Callable[[], None], name: str):
        """Exécute ``target`` en arrière-plan, toute exception devient un échec"""

        def run():
            try:
                target()
            except requests.RequestException as e:
                self._report_failure(f"erreur réseau: {e}")
            except Exception as e:
                logger.debug(f"{self.protocol} worker {name}: {e}", exc_info=True)
                self._report_failure(str(e))

        self._worker = threading.Thread(target=run, daemon=True, name=name)
        self._worker.start()
        return self._worker

    def _wait(self, seconds: float) -> bool:
        """Attendre sans ignorer la fermeture. True si la connexion a été fermée."""
        return self._closed.wait(seconds)
