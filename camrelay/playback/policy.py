"""
Politiques de reconnexion par protocole
=======================================

Intervalle court pour les premières tentatives, intervalle long ensuite.
Certains chemins sont bornés (MJPEG, FLV), d'autres réessaient sans fin
tant que la caméra est en ligne (HLS, WebRTC).

Toutes les ``reregister_every`` tentatives, le client redemande au serveur
d'enregistrer le flux avant de réessayer.
"""

from dataclasses import dataclass
from typing import Dict, Optional


@dataclass(frozen=True)
class ReconnectPolicy:
    """Constantes de reconnexion d'un protocole"""
    protocol: str
    short_interval: float
    long_interval: float
    # Nombre de tentatives espacées de short_interval
    short_attempts: int = 0
    # None: réessaie indéfiniment
    max_retries: Optional[int] = None
    # None: jamais de ré-enregistrement
    reregister_every: Optional[int] = None

    def delay_for(self, retry_count: int) -> float:
        """Délai avant la tentative numéro ``retry_count`` (1 = première)"""
        if retry_count <= self.short_attempts:
            return self.short_interval
        return self.long_interval

    def exhausted(self, retry_count: int) -> bool:
        return self.max_retries is not None and retry_count > self.max_retries

    def should_reregister(self, retry_count: int) -> bool:
        if not self.reregister_every or retry_count <= 0:
            return False
        return retry_count % self.reregister_every == 0

    @property
    def bounded(self) -> bool:
        return self.max_retries is not None


POLICIES: Dict[str, ReconnectPolicy] = {
    # Pas de relais: pas de ré-enregistrement, bouton "réessayer" après 3 échecs
    'mjpeg': ReconnectPolicy('mjpeg', short_interval=3.0, long_interval=3.0, max_retries=3),
    'hls': ReconnectPolicy('hls', short_interval=3.0, long_interval=3.0, reregister_every=5),
    # Chemin historique, borné
    'flv': ReconnectPolicy('flv', short_interval=3.0, long_interval=3.0, max_retries=10, reregister_every=5),
    'webrtc': ReconnectPolicy('webrtc', short_interval=2.0, long_interval=5.0, short_attempts=10,
                              reregister_every=10),
}

PROTOCOLS = tuple(POLICIES.keys())


def policy_for(protocol: str) -> ReconnectPolicy:
    try:
        return POLICIES[protocol]
    except KeyError:
        raise ValueError(f"Protocole inconnu: {protocol}") from None
