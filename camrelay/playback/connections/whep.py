"""
Connexion WebRTC (WHEP) avec aiortc
===================================

- Pair en réception seule (transceivers audio + vidéo en recvonly)
- Offre SDP envoyée au proxy, réponse réécrite (candidats ICE internes)
- Pistes distantes accumulées dans un seul flux local, attaché une fois
- ``connected`` → succès, ``failed`` / ``disconnected`` / ``closed`` → échec

Toutes les connexions partagent une boucle asyncio dédiée, démarrée à la
première utilisation.
"""

import asyncio
import logging
import threading
import time
from typing import Callable, Optional
from urllib.parse import urljoin, urlsplit

import requests
from aiortc import RTCConfiguration, RTCPeerConnection, RTCSessionDescription
from aiortc.mediastreams import MediaStreamError

from ..errors import ConnectionFailed
from ..sdp import rewrite_ice_candidates
from ..shared_loader import SharedLoader
from ..sinks import LocalMediaStream
from ..stats import InboundSample, StreamRate, compute_rate
from .base import PlaybackConnection

logger = logging.getLogger(__name__)

_FAILED_STATES = ('failed', 'disconnected', 'closed')


def _start_event_loop() -> asyncio.AbstractEventLoop:
    loop = asyncio.new_event_loop()
    ready = threading.Event()

    def run():
        asyncio.set_event_loop(loop)
        loop.call_soon(ready.set)
        loop.run_forever()

    threading.Thread(target=run, daemon=True, name='whep-event-loop').start()
    ready.wait()
    return loop


event_loop = SharedLoader(_start_event_loop, name='boucle asyncio WebRTC')


def default_peer_connection() -> RTCPeerConnection:
    return RTCPeerConnection(configuration=RTCConfiguration(iceServers=[]))


class WhepConnection(PlaybackConnection):
    """Pair WebRTC en réception seule négocié par WHEP"""

    protocol = 'webrtc'

    def __init__(self, *args, colocated: bool = False,
                 pc_factory: Callable[[], RTCPeerConnection] = default_peer_connection, **kwargs):
        super().__init__(*args, **kwargs)
        self.colocated = colocated
        self._pc_factory = pc_factory
        self._pc: Optional[RTCPeerConnection] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._negotiation = None
        self._consumers = []
        self._resource_url: Optional[str] = None
        self._resource_lock = threading.Lock()
        self.stream = LocalMediaStream()
        self.frames_decoded = 0
        self._last_sample: Optional[InboundSample] = None

    @property
    def target_host(self) -> str:
        return urlsplit(self.url).hostname or ''

    @property
    def connection_state(self) -> str:
        return self._pc.connectionState if self._pc is not None else 'new'

    def is_healthy(self) -> bool:
        return self.connected and self.connection_state == 'connected'

    def open(self) -> None:
        self._loop = event_loop.get()
        self._negotiation = asyncio.run_coroutine_threadsafe(self._negotiate(), self._loop)
        self._negotiation.add_done_callback(self._on_negotiation_done)

    def _on_negotiation_done(self, future):
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            self._report_failure(f"négociation WHEP: {error}")

    # ------------------------------------------------------------------
    # Négociation (boucle asyncio)
    # ------------------------------------------------------------------

    async def _negotiate(self):
        pc = self._pc_factory()
        self._pc = pc

        pc.addTransceiver('video', direction='recvonly')
        pc.addTransceiver('audio', direction='recvonly')

        @pc.on('track')
        def on_track(track):
            self._on_track(track)

        @pc.on('connectionstatechange')
        async def on_connectionstatechange():
            state = pc.connectionState
            logger.debug(f"WHEP {self.url}: état {state}")
            if state == 'connected':
                self._report_connected()
            elif state in _FAILED_STATES:
                self._report_failure(f"connexion {state}")

        offer = await pc.createOffer()
        await pc.setLocalDescription(offer)
        if self.closed:
            return

        loop = asyncio.get_running_loop()
        answer = await loop.run_in_executor(None, self._post_offer, pc.localDescription.sdp)
        if self.closed:
            return

        answer = rewrite_ice_candidates(answer, self.target_host, colocated=self.colocated)
        await pc.setRemoteDescription(RTCSessionDescription(sdp=answer, type='answer'))

    def _post_offer(self, offer_sdp: str) -> str:
        headers = {'Content-Type': 'application/sdp'}
        headers.update(self.headers)
        response = self._http.post(self.url, data=offer_sdp, headers=headers, timeout=self.timeout)
        if not response.ok:
            raise ConnectionFailed(f"WHEP error: {response.status_code}")
        location = response.headers.get('Location')
        if location:
            with self._resource_lock:
                self._resource_url = urljoin(self.url, location)
        # Fermée pendant le POST: la session créée sur le relais est libérée ici
        if self.closed:
            self._delete_resource()
        return response.text

    def _on_track(self, track):
        logger.info(f"WHEP {self.url}: piste reçue ({track.kind})")
        self.stream.add_track(track)
        self.sink.attach(self.stream)
        self._consumers.append(asyncio.ensure_future(self._consume(track)))

    async def _consume(self, track):
        while not self.closed:
            try:
                await track.recv()
            except MediaStreamError:
                return
            if track.kind == 'video':
                self.frames_decoded += 1

    # ------------------------------------------------------------------
    # Statistiques
    # ------------------------------------------------------------------

    async def _sample(self) -> Optional[InboundSample]:
        if self._pc is None:
            return None
        report = await self._pc.getStats()
        bytes_received = 0
        for stat in report.values():
            if getattr(stat, 'type', None) == 'inbound-rtp' and getattr(stat, 'kind', None) == 'video':
                bytes_received = getattr(stat, 'bytesReceived', 0) or 0
        return InboundSample(time.monotonic(), bytes_received, self.frames_decoded)

    def stats(self, timeout: float = 2.0) -> Optional[StreamRate]:
        """fps / débit depuis le relevé précédent"""
        if self._loop is None or not self.connected:
            return None
        sample = asyncio.run_coroutine_threadsafe(self._sample(), self._loop).result(timeout)
        if sample is None:
            return None
        rate = compute_rate(self._last_sample, sample)
        self._last_sample = sample
        return rate

    # ------------------------------------------------------------------
    # Fermeture
    # ------------------------------------------------------------------

    def _release(self) -> None:
        self.sink.detach()
        if self._negotiation is not None:
            self._negotiation.cancel()
        if self._loop is not None:
            asyncio.run_coroutine_threadsafe(self._shutdown(), self._loop)

    async def _shutdown(self):
        for consumer in self._consumers:
            consumer.cancel()
        if self._pc is not None:
            await self._pc.close()
        if self._resource_url:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._delete_resource)

    def _delete_resource(self):
        with self._resource_lock:
            resource_url, self._resource_url = self._resource_url, None
        if not resource_url:
            return
        try:
            self._http.delete(resource_url, headers=self.headers, timeout=self.timeout)
        except requests.RequestException as e:
            logger.debug(f"WHEP {resource_url}: fermeture de session ignorée ({e})")
