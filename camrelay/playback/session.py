"""
Playback Session - Machine d'État de Reconnexion
================================================

Une session = une caméra + un protocole + au plus une connexion vivante.

États:
    Loading → Connected | Error
    Connected → Error
    Error → Loading (minuterie de reconnexion ou bouton "réessayer")
    * → Destroyed (terminal)

Règles:
- Toute nouvelle tentative ferme la connexion précédente avant d'en créer
  une autre, et annule la minuterie en attente
- ``retry_count`` compte les échecs consécutifs; il revient à 0 seulement
  sur ``Connected``, jamais sur un "réessayer" manuel
- Toutes les ``K`` tentatives (selon la politique), le flux est
  ré-enregistré auprès du serveur avant de réessayer
- Les rappels d'une connexion déjà remplacée sont ignorés
"""

import logging
import threading
from enum import Enum
from functools import partial
from typing import Callable, Dict, Optional

from .connections import PlaybackConnection, create_connection
from .errors import PlaybackError
from .policy import ReconnectPolicy, policy_for
from .sinks import MediaSink

logger = logging.getLogger(__name__)


class PlaybackState(Enum):
    """Cycle de vie d'une session de lecture"""
    LOADING = "Loading"
    CONNECTED = "Connected"
    ERROR = "Error"
    DESTROYED = "Destroyed"


StateListener = Callable[['PlaybackSession', PlaybackState, Optional[str]], None]


class PlaybackSession:
    """Session de lecture d'une caméra avec reconnexion automatique"""

    def __init__(
        self,
        camera_id: str,
        protocol: str,
        url: str,
        sink: Optional[MediaSink] = None,
        policy: Optional[ReconnectPolicy] = None,
        registrar: Optional[Callable[[], object]] = None,
        online: bool = True,
        on_state_change: Optional[StateListener] = None,
        connection_factory: Callable[..., PlaybackConnection] = create_connection,
        connection_options: Optional[Dict] = None,
        timer_factory: Callable[..., threading.Timer] = threading.Timer,
    ):
        self.camera_id = camera_id
        self.protocol = protocol
        self.url = url
        self.sink = sink or MediaSink(camera_id)
        self.policy = policy or policy_for(protocol)
        self.registrar = registrar
        self.online = online
        self.on_state_change = on_state_change
        self._connection_factory = connection_factory
        self._connection_options = dict(connection_options or {})
        self._timer_factory = timer_factory

        self._lock = threading.RLock()
        self.state = PlaybackState.LOADING
        self.last_error: Optional[str] = None
        self.retry_count = 0
        self.exhausted = False
        self.reregistrations = 0
        # Numéro de tentative, sert au cache-busting; ne revient jamais à 0
        self.attempt = 0

        self._connection: Optional[PlaybackConnection] = None
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._timer_token = 0

    def __repr__(self):
        return f"<PlaybackSession {self.camera_id} {self.protocol} {self.state.value} retry={self.retry_count}>"

    # ------------------------------------------------------------------
    # Propriétés
    # ------------------------------------------------------------------

    @property
    def connection(self) -> Optional[PlaybackConnection]:
        return self._connection

    @property
    def pending_timers(self) -> int:
        return 1 if self._timer is not None else 0

    @property
    def destroyed(self) -> bool:
        return self.state is PlaybackState.DESTROYED

    @property
    def indicator(self) -> str:
        """Texte affiché sur la vignette de la caméra"""
        if self.state is PlaybackState.DESTROYED:
            return "closed"
        if not self.online:
            return "offline"
        if self.state is PlaybackState.CONNECTED:
            return "live"
        if self.exhausted:
            return "retry available"
        if self.retry_count > 0:
            return f"retrying (attempt {self.retry_count})"
        return "connecting"

    def status(self) -> dict:
        with self._lock:
            return {
                'camera': self.camera_id,
                'protocol': self.protocol,
                'state': self.state.value,
                'retryCount': self.retry_count,
                'exhausted': self.exhausted,
                'online': self.online,
                'indicator': self.indicator,
                'lastError': self.last_error,
                'healthy': self._connection is not None and self._connection.is_healthy(),
            }

    # ------------------------------------------------------------------
    # Commandes
    # ------------------------------------------------------------------

    def start(self):
        """Ouvrir la première connexion (état initial Loading)"""
        with self._lock:
            if self.destroyed:
                raise PlaybackError(f"[{self.camera_id}] session détruite")
            if not self.online:
                self._set_state(PlaybackState.ERROR, 'offline')
                return
            self._open()

    def retry(self):
        """Bouton "réessayer": nouvelle tentative immédiate, compteur conservé"""
        with self._lock:
            if self.destroyed or not self.online:
                return
            logger.info(f"[{self.camera_id}] 🔄 Nouvelle tentative manuelle ({self.protocol})")
            self.exhausted = False
            self._open()

    def set_online(self, online: bool):
        """Caméra marquée en ligne / hors ligne"""
        with self._lock:
            if self.destroyed or online == self.online:
                return
            self.online = online
            if not online:
                logger.info(f"[{self.camera_id}] Caméra hors ligne")
                self._teardown()
                self._set_state(PlaybackState.ERROR, 'offline')
            else:
                logger.info(f"[{self.camera_id}] Caméra de nouveau en ligne")
                self.exhausted = False
                self._open()

    def destroy(self):
        """Fermeture définitive: connexion fermée, aucune minuterie restante"""
        with self._lock:
            if self.destroyed:
                return
            self._teardown()
            self._set_state(PlaybackState.DESTROYED)
            logger.info(f"[{self.camera_id}] 🛑 Session {self.protocol} fermée")

    # ------------------------------------------------------------------
    # Interne (appelé avec le verrou)
    # ------------------------------------------------------------------

    def _set_state(self, state: PlaybackState, reason: Optional[str] = None):
        self.state = state
        if reason is not None:
            self.last_error = reason
        if self.on_state_change is not None:
            try:
                self.on_state_change(self, state, reason)
            except Exception as e:
                logger.error(f"[{self.camera_id}] ❌ Erreur listener d'état: {e}")

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        self._timer_token += 1

    def _close_connection(self):
        connection, self._connection = self._connection, None
        if connection is not None:
            connection.close()

    def _teardown(self):
        self._cancel_timer()
        self._close_connection()
        # Invalide les rappels de la connexion fermée
        self._generation += 1

    def _open(self):
        self._teardown()
        generation = self._generation
        self.attempt += 1
        self._set_state(PlaybackState.LOADING)

        options = dict(self._connection_options)
        options['attempt'] = self.attempt
        connection = self._connection_factory(
            self.protocol,
            self.url,
            self.sink,
            partial(self._handle_connected, generation),
            partial(self._handle_failed, generation),
            **options
        )
        self._connection = connection
        logger.debug(f"[{self.camera_id}] Ouverture {self.protocol} (tentative {self.attempt})")

        try:
            connection.open()
        except Exception as e:
            self._handle_failed(generation, f"ouverture impossible: {e}")

    def _schedule_retry(self):
        delay = self.policy.delay_for(self.retry_count)
        self._cancel_timer()
        token = self._timer_token
        timer = self._timer_factory(delay, self._on_retry_timer, args=(token,))
        timer.daemon = True
        self._timer = timer
        timer.start()
        logger.info(f"[{self.camera_id}] ⏳ Reconnexion {self.protocol} dans {delay:.1f}s "
                    f"(tentative {self.retry_count})")

    # ------------------------------------------------------------------
    # Rappels (threads des connexions / minuteries)
    # ------------------------------------------------------------------

    def _handle_connected(self, generation: int):
        with self._lock:
            if generation != self._generation or self.state is not PlaybackState.LOADING:
                return
            self.retry_count = 0
            self.exhausted = False
            self.last_error = None
            self._set_state(PlaybackState.CONNECTED)
            logger.info(f"[{self.camera_id}] ✅ Lecture {self.protocol} connectée")

    def _handle_failed(self, generation: int, reason: str):
        with self._lock:
            if generation != self._generation:
                return
            if self.state not in (PlaybackState.LOADING, PlaybackState.CONNECTED):
                return

            self._teardown()
            self.retry_count += 1
            self._set_state(PlaybackState.ERROR, reason)
            logger.warning(f"[{self.camera_id}] ⚠️ Échec {self.protocol}: {reason} (échec {self.retry_count})")

            if not self.online:
                return
            if self.policy.exhausted(self.retry_count):
                self.exhausted = True
                logger.warning(f"[{self.camera_id}] ⚠️ Reconnexion {self.protocol} abandonnée, "
                               f"nouvelle tentative manuelle possible")
                return
            self._schedule_retry()

    def _on_retry_timer(self, token: int):
        with self._lock:
            if token != self._timer_token or self.destroyed:
                return
            self._timer = None
            reregister = self.registrar is not None and self.policy.should_reregister(self.retry_count)

        # Appel HTTP hors verrou
        if reregister:
            self._reregister()

        with self._lock:
            if token != self._timer_token or self.state is not PlaybackState.ERROR or not self.online:
                return
            self._open()

    def _reregister(self):
        logger.info(f"[{self.camera_id}] 🔁 Ré-enregistrement du flux (échec {self.retry_count})")
        try:
            self.registrar()
            self.reregistrations += 1
        except PlaybackError as e:
            logger.error(f"[{self.camera_id}] ❌ Ré-enregistrement impossible: {e}")
        except Exception as e:
            # La tentative suivante a lieu quoi qu'il arrive
            logger.error(f"[{self.camera_id}] ❌ Erreur inattendue au ré-enregistrement: {e}", exc_info=True)
