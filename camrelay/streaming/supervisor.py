"""
Transcode Supervisor - Processus de Transcodage par Caméra
==========================================================

Responsabilités:
- Lancer un FFmpeg par caméra (RTSP source → relais, vidéo copiée, audio Opus)
- Vider stdout/stderr en arrière-plan pour le diagnostic
- Observer la fin des processus et nettoyer le registre
- Arrêter proprement (SIGTERM puis kill)

En mode 'relay', aucun processus local: le relais tire la source lui-même
et le transcodage tourne à la demande côté relais.
"""

import logging
import subprocess
import threading
from typing import Callable, List, Optional

from .config import StreamingConfig
from .errors import RegistrationError, TranscoderNotFoundError
from .registry import StreamRegistry, StreamSession
from .relay_client import RelayClient

logger = logging.getLogger(__name__)

_DIAGNOSTIC_KEYWORDS = ('error', 'opening', 'stream')


class TranscodeSupervisor:
    """Gestionnaire des processus de transcodage"""

    def __init__(
        self,
        registry: StreamRegistry,
        ffmpeg_path: Optional[str] = None,
        mode: Optional[str] = None,
        relay_client: Optional[RelayClient] = None,
        stop_timeout: float = 5.0,
    ):
        self.registry = registry
        self.ffmpeg_path = ffmpeg_path or StreamingConfig.FFMPEG_PATH
        self.mode = (mode or StreamingConfig.TRANSCODE_MODE).lower()
        self.relay_client = relay_client or RelayClient()
        self.stop_timeout = stop_timeout
        self._exit_listeners: List[Callable[[str, int], None]] = []
        logger.info(f"🎥 TranscodeSupervisor initialisé (mode={self.mode})")

    def add_exit_listener(self, callback: Callable[[str, int], None]):
        """Être notifié (stream_id, returncode) à chaque fin de processus"""
        self._exit_listeners.append(callback)

    # ------------------------------------------------------------------
    # Commandes
    # ------------------------------------------------------------------

    def build_command(self, stream_id: str, source_url: str) -> List[str]:
        """Construit la commande FFmpeg: pull RTSP, copie vidéo, audio Opus, push vers le relais"""
        return [
            self.ffmpeg_path,
            '-hide_banner',
            '-nostdin',
            '-rtsp_transport', 'tcp',
            '-i', source_url,
            '-c:v', 'copy',
            '-c:a', StreamingConfig.AUDIO_CODEC,
            '-b:a', StreamingConfig.AUDIO_BITRATE,
            '-ar', StreamingConfig.AUDIO_SAMPLE_RATE,
            '-f', 'rtsp',
            '-rtsp_transport', 'tcp',
            StreamingConfig.republish_url(stream_id),
        ]

    def build_relay_paths(self, stream_id: str, source_url: str) -> List[tuple]:
        """
        Chemins à déclarer sur le relais en mode 'relay'

        ``<id>_raw`` tire la caméra en permanence, ``<id>`` est publié à la
        demande par un FFmpeg lancé par le relais.
        """
        raw_id = f"{stream_id}_raw"
        ffmpeg_input = StreamingConfig.republish_url(raw_id)
        ffmpeg_output = StreamingConfig.republish_url(stream_id)
        run_on_demand = (
            f"ffmpeg -hide_banner -loglevel error -rtsp_transport tcp -i {ffmpeg_input} "
            f"-c:v copy -c:a {StreamingConfig.AUDIO_CODEC} -f rtsp {ffmpeg_output}"
        )
        return [
            (raw_id, {'source': source_url, 'sourceOnDemand': False}),
            (stream_id, {
                'source': 'publisher',
                'runOnDemand': run_on_demand,
                'runOnDemandRestart': True,
            }),
        ]

    # ------------------------------------------------------------------
    # Cycle de vie
    # ------------------------------------------------------------------

    def start(self, stream_id: str, source_url: str, name: str = '') -> Optional[StreamSession]:
        """
        Démarrer le transcodage d'une caméra

        Retourne immédiatement une session 'Starting' sans attendre que le
        relais reçoive des images. Retourne None si l'identifiant est déjà
        enregistré.

        Raises:
            RegistrationError: identifiant/source manquants, FFmpeg absent, relais en erreur
        """
        if not stream_id or not source_url:
            raise RegistrationError("Identifiant ou source manquant")

        if self.mode == 'ffmpeg' and not StreamingConfig.ffmpeg_available(self.ffmpeg_path):
            logger.error(f"[{stream_id}] ❌ FFmpeg introuvable: {self.ffmpeg_path}")
            raise TranscoderNotFoundError(self.ffmpeg_path)

        session = StreamSession(
            stream_id=stream_id,
            source_url=source_url,
            republish_url=StreamingConfig.republish_url(stream_id),
            name=name,
        )

        # Réserver l'identifiant avant de lancer quoi que ce soit
        if not self.registry.insert_if_absent(session):
            logger.info(f"[{stream_id}] Flux déjà enregistré")
            return None

        try:
            if self.mode == 'relay':
                self._register_on_relay(stream_id, source_url)
            else:
                self._spawn(session)
        except Exception:
            self.registry.remove(stream_id)
            raise

        return session

    def _spawn(self, session: StreamSession) -> subprocess.Popen:
        stream_id, source_url = session.stream_id, session.source_url
        cmd = self.build_command(stream_id, source_url)
        logger.info(f"[{stream_id}] 🚀 Démarrage FFmpeg: {source_url}")
        logger.debug(f"[{stream_id}] Commande FFmpeg: {' '.join(cmd)}")

        try:
            process = subprocess.Popen(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                universal_newlines=True,
            )
        except FileNotFoundError as e:
            raise TranscoderNotFoundError(self.ffmpeg_path) from e
        except OSError as e:
            raise RegistrationError(f"Échec du lancement FFmpeg: {e}") from e

        logger.info(f"[{stream_id}] ✅ FFmpeg lancé (PID: {process.pid})")
        # La session doit connaître son processus avant que le watcher ne démarre
        session.process = process

        self._drain(stream_id, process.stdout, 'stdout')
        self._drain(stream_id, process.stderr, 'stderr')

        watcher = threading.Thread(
            target=self._watch_exit,
            args=(stream_id, process),
            daemon=True,
            name=f"transcode-exit-{stream_id}"
        )
        watcher.start()
        return process

    def _register_on_relay(self, stream_id: str, source_url: str):
        registered = []
        try:
            for path_name, path_config in self.build_relay_paths(stream_id, source_url):
                self.relay_client.add_path(path_name, path_config)
                registered.append(path_name)
        except Exception:
            for path_name in registered:
                self.relay_client.delete_path(path_name)
            raise
        logger.info(f"[{stream_id}] ✅ Flux enregistré sur le relais")

    def _drain(self, stream_id: str, pipe, label: str):
        """Lit une sortie FFmpeg en arrière-plan pour éviter les blocages"""
        if pipe is None:
            return None

        def read_pipe():
            try:
                for line in iter(pipe.readline, ''):
                    line = line.strip()
                    if not line:
                        continue
                    if any(keyword in line.lower() for keyword in _DIAGNOSTIC_KEYWORDS):
                        logger.info(f"[{stream_id}] FFmpeg {label}: {line}")
                    else:
                        logger.debug(f"[{stream_id}] FFmpeg {label}: {line}")
            except (OSError, ValueError) as e:
                logger.debug(f"[{stream_id}] Lecture {label} interrompue: {e}")

        thread = threading.Thread(target=read_pipe, daemon=True, name=f"transcode-{label}-{stream_id}")
        thread.start()
        return thread

    def _watch_exit(self, stream_id: str, process: subprocess.Popen):
        returncode = process.wait()
        logger.info(f"[{stream_id}] FFmpeg terminé (code: {returncode}, PID: {process.pid})")

        if self.registry.remove_if_owned(stream_id, process):
            logger.warning(f"[{stream_id}] ⚠️ Processus mort, flux retiré du registre")
        else:
            logger.debug(f"[{stream_id}] Fin d'un processus déjà remplacé, registre inchangé")

        for callback in list(self._exit_listeners):
            try:
                callback(stream_id, returncode)
            except Exception as e:
                logger.error(f"[{stream_id}] ❌ Erreur listener de fin: {e}")

    def stop(self, stream_id: str) -> bool:
        """
        Arrêter le transcodage d'une caméra (idempotent)

        Returns:
            True si une session existait
        """
        session = self.registry.remove(stream_id)
        if session is None:
            logger.debug(f"[{stream_id}] Aucun flux à arrêter")
            return False

        logger.info(f"[{stream_id}] 🛑 Arrêt du flux")

        if session.process is not None:
            self._terminate(stream_id, session.process)
        if self.mode == 'relay':
            for path_name, _ in self.build_relay_paths(stream_id, session.source_url):
                self.relay_client.delete_path(path_name)

        return True

    def _terminate(self, stream_id: str, process: subprocess.Popen):
        if process.poll() is not None:
            return
        try:
            process.terminate()
            try:
                process.wait(timeout=self.stop_timeout)
                logger.info(f"[{stream_id}] ✅ FFmpeg arrêté proprement")
            except subprocess.TimeoutExpired:
                logger.warning(f"[{stream_id}] ⚠️ Timeout, kill forcé")
                process.kill()
        except OSError as e:
            logger.error(f"[{stream_id}] ❌ Erreur arrêt FFmpeg: {e}")

    def stop_all(self):
        """Arrêter tous les flux actifs"""
        stream_ids = self.registry.ids()
        logger.info(f"🧹 Arrêt de {len(stream_ids)} flux")
        for stream_id in stream_ids:
            self.stop(stream_id)
