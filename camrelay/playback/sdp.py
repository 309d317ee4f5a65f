"""
Réécriture des candidats ICE d'une réponse SDP

Le relais tourne souvent dans un conteneur et annonce les adresses de son
réseau interne. Seules ces adresses sont remplacées par l'hôte que le
client a réellement utilisé; toutes les autres lignes restent identiques
octet pour octet.
"""

import re
from typing import Iterable

INTERNAL_PREFIXES = ('172.', '10.')

_CANDIDATE_RE = re.compile(
    r'(a=candidate:\S+ \d+ \w+ \d+ )(\d{1,3}\.\d{1,3}\.\d{1,3}\.\d{1,3})( \d+ typ)'
)


def normalize_host(host: str) -> str:
    return '127.0.0.1' if host == 'localhost' else host


def rewrite_ice_candidates(sdp: str, host: str,
                           prefixes: Iterable[str] = INTERNAL_PREFIXES,
                           colocated: bool = False) -> str:
    """
    Remplacer les IP internes des lignes ``a=candidate`` par ``host``

    Args:
        sdp: réponse SDP du relais
        host: hôte utilisé pour joindre le proxy
        prefixes: préfixes d'adresses considérées internes
        colocated: client sur la même machine que le relais, aucune réécriture
    """
    if colocated or not host:
        return sdp

    prefixes = tuple(prefixes)
    target = normalize_host(host)

    def replace(match):
        if match.group(2).startswith(prefixes):
            return f"{match.group(1)}{target}{match.group(3)}"
        return match.group(0)

    return _CANDIDATE_RE.sub(replace, sdp)
