"""
MultiViewer - Plusieurs caméras, une session de lecture chacune
================================================================

- ``open``: crée la session d'une caméra (l'ancienne est fermée avant)
- ``switch_protocol``: fermeture synchrone puis nouvelle session
- ``close``: ferme tout

Inclut l'outil en ligne de commande ``camrelay-view``.
"""

import argparse
import logging
import signal
import sys
import threading
from dataclasses import dataclass
from functools import partial
from typing import Dict, List, Optional

from ..services.logging_service import setup_logging
from .control_client import ControlApiClient
from .policy import PROTOCOLS, policy_for
from .session import PlaybackSession, PlaybackState
from .urls import playback_path, resolve_playback_url, stream_id_for_camera, viewer_auth_header

logger = logging.getLogger(__name__)


@dataclass
class CameraSource:
    """Ce que le viewer sait d'une caméra"""
    camera_id: str
    rtsp_url: Optional[str] = None
    mjpeg_url: Optional[str] = None
    online: bool = True

    @property
    def stream_id(self) -> str:
        return stream_id_for_camera(self.camera_id)


class MultiViewer:
    """Sessions de lecture de plusieurs caméras"""

    def __init__(
        self,
        server_url: str,
        control_client: Optional[ControlApiClient] = None,
        password: Optional[str] = None,
        colocated: bool = False,
        connection_options: Optional[Dict[str, dict]] = None,
        session_factory=PlaybackSession,
        on_state_change=None,
    ):
        self.server_url = server_url.rstrip('/')
        self.control = control_client or ControlApiClient(self.server_url)
        self.password = password
        self.colocated = colocated
        # Options supplémentaires par protocole (délais, fabrique de pairs...)
        self.connection_options = connection_options or {}
        self._session_factory = session_factory
        self.on_state_change = on_state_change
        self._lock = threading.Lock()
        self._sessions: Dict[str, PlaybackSession] = {}
        self._sources: Dict[str, CameraSource] = {}

    @property
    def sessions(self) -> Dict[str, PlaybackSession]:
        with self._lock:
            return dict(self._sessions)

    def get(self, camera_id: str) -> Optional[PlaybackSession]:
        with self._lock:
            return self._sessions.get(camera_id)

    def _playback_url(self, source: CameraSource, protocol: str, url: Optional[str]) -> str:
        if url is None:
            if protocol == 'mjpeg':
                if not source.mjpeg_url:
                    raise ValueError(f"[{source.camera_id}] URL MJPEG requise")
                url = source.mjpeg_url
            else:
                url = playback_path(protocol, source.stream_id, source.rtsp_url)
        return resolve_playback_url(url, self.server_url, whep=(protocol == 'webrtc'))

    def _options_for(self, protocol: str) -> dict:
        options = dict(self.connection_options.get(protocol, {}))
        if protocol == 'webrtc':
            options.setdefault('colocated', self.colocated)
            auth = viewer_auth_header(self.password)
            if auth:
                headers = dict(options.get('headers') or {})
                headers['Authorization'] = auth
                options['headers'] = headers
        return options

    def _registrar(self, source: CameraSource, protocol: str):
        if not source.rtsp_url or not policy_for(protocol).reregister_every:
            return None
        return partial(self.control.add_stream, source.stream_id, source.rtsp_url)

    def open(self, camera_id: str, protocol: str, url: Optional[str] = None,
             rtsp_url: Optional[str] = None, mjpeg_url: Optional[str] = None,
             online: Optional[bool] = None) -> PlaybackSession:
        """
        Ouvrir (ou rouvrir) la lecture d'une caméra

        Toute session existante pour cette caméra est détruite avant la
        création de la nouvelle.
        """
        policy_for(protocol)

        with self._lock:
            source = self._sources.get(camera_id) or CameraSource(camera_id)
            if rtsp_url is not None:
                source.rtsp_url = rtsp_url
            if mjpeg_url is not None:
                source.mjpeg_url = mjpeg_url
            if online is not None:
                source.online = online
            self._sources[camera_id] = source

            previous = self._sessions.pop(camera_id, None)
            if previous is not None:
                previous.destroy()

            session = self._session_factory(
                camera_id,
                protocol,
                self._playback_url(source, protocol, url),
                registrar=self._registrar(source, protocol),
                online=source.online,
                on_state_change=self.on_state_change,
                connection_options=self._options_for(protocol),
            )
            self._sessions[camera_id] = session

        logger.info(f"[{camera_id}] 🎥 Lecture {protocol}: {session.url}")
        session.start()
        return session

    def switch_protocol(self, camera_id: str, protocol: str, url: Optional[str] = None) -> PlaybackSession:
        """Changer de protocole: l'ancienne connexion est fermée avant la nouvelle"""
        return self.open(camera_id, protocol, url=url)

    def set_online(self, camera_id: str, online: bool):
        with self._lock:
            source = self._sources.get(camera_id)
            if source is not None:
                source.online = online
            session = self._sessions.get(camera_id)
        if session is not None:
            session.set_online(online)

    def close_camera(self, camera_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(camera_id, None)
            self._sources.pop(camera_id, None)
        if session is None:
            return False
        session.destroy()
        return True

    def close(self):
        """Fermer toutes les sessions"""
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.destroy()
        logger.info(f"🧹 {len(sessions)} session(s) de lecture fermée(s)")

    def status(self) -> List[dict]:
        return [session.status() for session in self.sessions.values()]


# ======================
# CLI
# ======================

def parse_args(argv=None):
    p = argparse.ArgumentParser(description="Lecteur headless d'une caméra relayée (camrelay).")
    p.add_argument("--server", default="http://localhost:3001", help="URL du serveur camrelay")
    p.add_argument("--camera", required=True, help="Identifiant de caméra (ex: cam-salon ou salon)")
    p.add_argument("--protocol", choices=PROTOCOLS, default="hls", help="Protocole de lecture")
    p.add_argument("--url", help="URL de lecture explicite (sinon déduite du protocole)")
    p.add_argument("--rtsp", help="URL RTSP source, active le ré-enregistrement automatique")
    p.add_argument("--password", help="Mot de passe spectateur (WHEP)")
    p.add_argument("--register", action="store_true", help="Enregistrer le flux avant la lecture")
    p.add_argument("--colocated", action="store_true", help="Client sur la même machine que le relais")
    p.add_argument("--interval", type=float, default=5.0, help="Intervalle d'affichage de l'état (s)")
    p.add_argument("--log-level", default="INFO", help="Niveau de log")
    return p.parse_args(argv)


def _log_transition(session, state, reason):
    suffix = f" ({reason})" if reason else ""
    logger.info(f"[{session.camera_id}] {session.protocol}: {state.value}{suffix}")


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    viewer = MultiViewer(args.server, password=args.password, colocated=args.colocated,
                         on_state_change=_log_transition)
    stop = threading.Event()

    def shutdown(signum, frame):
        logger.info("Signal reçu, arrêt…")
        stop.set()

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    if args.register:
        if not args.rtsp:
            logger.error("❌ --register nécessite --rtsp")
            return 2
        info = viewer.control.server_info()
        logger.info(f"Serveur {info.get('name')} {info.get('version')} "
                    f"(auth lecteurs: {info.get('streamAuthEnabled')})")
        viewer.control.add_stream(stream_id_for_camera(args.camera), args.rtsp)

    session = viewer.open(
        args.camera,
        args.protocol,
        url=args.url if args.protocol != 'mjpeg' else None,
        rtsp_url=args.rtsp,
        mjpeg_url=args.url if args.protocol == 'mjpeg' else None,
    )

    try:
        while not stop.wait(args.interval):
            status = session.status()
            logger.info(f"[{args.camera}] {status['state']} - {status['indicator']}")
            if session.state is PlaybackState.DESTROYED:
                break
    finally:
        viewer.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
