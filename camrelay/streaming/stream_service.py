"""
Stream Service - Logique de l'API de Contrôle
=============================================

Responsabilités:
- add: enregistrement idempotent (un doublon n'est pas une erreur)
- remove: arrêt + suppression, 'introuvable' si absent
- restart: remove puis add après un délai de stabilisation
- list: instantané en lecture seule
"""

import logging
import threading
import time
from typing import Callable, Dict, List, Optional, Tuple

from .config import StreamingConfig
from .errors import RegistrationError, StreamNotFoundError
from .registry import StreamRegistry, StreamStatus
from .supervisor import TranscodeSupervisor

logger = logging.getLogger(__name__)


class StreamService:
    """Façade de l'API de contrôle au-dessus du registre et du superviseur"""

    def __init__(
        self,
        registry: Optional[StreamRegistry] = None,
        supervisor: Optional[TranscodeSupervisor] = None,
        settle_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.registry = registry or StreamRegistry()
        self.supervisor = supervisor or TranscodeSupervisor(self.registry)
        self.settle_delay = StreamingConfig.RESTART_SETTLE_DELAY if settle_delay is None else settle_delay
        self._sleep = sleep
        # Dernière source connue par identifiant, survit à la mort du processus
        self._known_sources: Dict[str, Tuple[str, str]] = {}
        self._known_lock = threading.Lock()
        logger.info("🎬 StreamService initialisé")

    def add(self, stream_id: str, source_url: str, name: str = '') -> Tuple[bool, dict]:
        """
        Enregistrer un flux

        Returns:
            (created, record) - created=False si l'identifiant existait déjà

        Raises:
            RegistrationError: paramètres manquants, FFmpeg absent, relais en erreur
        """
        if not stream_id or not source_url:
            raise RegistrationError("Missing id or rtspUrl")

        existing = self.registry.get(stream_id)
        if existing is not None:
            logger.info(f"[{stream_id}] Flux déjà existant, aucun effet")
            return False, {'message': 'already exists', 'id': stream_id}

        session = self.supervisor.start(stream_id, source_url, name=name)
        if session is None:
            # Ajouté par une autre requête entre-temps
            return False, {'message': 'already exists', 'id': stream_id}

        with self._known_lock:
            self._known_sources[stream_id] = (source_url, session.name)

        self.registry.set_status(stream_id, StreamStatus.RUNNING, process=session.process)
        logger.info(f"[{stream_id}] ✅ Flux enregistré")

        record = session.to_dict()
        return True, record

    def remove(self, stream_id: str) -> bool:
        """
        Arrêter et supprimer un flux

        Returns:
            False si le flux n'existait pas
        """
        removed = self.supervisor.stop(stream_id)
        if removed:
            logger.info(f"[{stream_id}] ✅ Flux supprimé")
        else:
            logger.warning(f"[{stream_id}] ⚠️ Flux introuvable")
        return removed

    def restart(self, stream_id: str) -> dict:
        """
        Redémarrer un flux avec sa dernière source connue

        Le relais considère le chemin comme occupé pendant une période de
        grâce après suppression: on attend ``settle_delay`` avant de
        ré-ajouter.

        Raises:
            StreamNotFoundError: identifiant jamais enregistré
        """
        session = self.registry.get(stream_id)
        if session is not None:
            source_url, name = session.source_url, session.name
        else:
            with self._known_lock:
                known = self._known_sources.get(stream_id)
            if known is None:
                raise StreamNotFoundError(stream_id)
            source_url, name = known

        logger.info(f"[{stream_id}] 🔄 Redémarrage du flux")
        self.supervisor.stop(stream_id)

        if self.settle_delay > 0:
            self._sleep(self.settle_delay)

        _, record = self.add(stream_id, source_url, name=name)
        return record

    def get(self, stream_id: str) -> Optional[dict]:
        session = self.registry.get(stream_id)
        return session.to_dict() if session else None

    def list(self) -> List[dict]:
        return self.registry.snapshot()

    def count(self) -> int:
        return len(self.registry)

    def shutdown(self):
        self.supervisor.stop_all()
