"""
Statistiques de réception WebRTC (fps, débit)
"""

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class InboundSample:
    """Relevé inbound-rtp vidéo: horodatage en secondes, compteurs cumulés"""
    timestamp: float
    bytes_received: int
    frames_decoded: int


@dataclass(frozen=True)
class StreamRate:
    fps: int
    mbps: float

    @property
    def bitrate(self) -> str:
        return f"{self.mbps:.2f} Mbps"


def compute_rate(previous: Optional[InboundSample], current: InboundSample) -> Optional[StreamRate]:
    """Débit et fps entre deux relevés consécutifs, None si incalculable"""
    if previous is None:
        return None
    duration = current.timestamp - previous.timestamp
    if duration <= 0:
        return None

    bits = (current.bytes_received - previous.bytes_received) * 8
    frames = current.frames_decoded - previous.frames_decoded
    return StreamRate(
        fps=round(frames / duration),
        mbps=round(bits / duration / 1_000_000, 2),
    )
