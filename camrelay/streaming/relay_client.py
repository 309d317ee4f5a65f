"""
Client de l'API de contrôle du relais (MediaMTX)
================================================

- Ajouter / supprimer des chemins
- Lister les chemins actifs
"""

import logging
from typing import List, Optional

import requests

from .config import StreamingConfig
from .errors import RelayApiError

logger = logging.getLogger(__name__)


class RelayClient:
    """Client HTTP de l'API de contrôle du relais"""

    def __init__(self, base_url: Optional[str] = None, auth: Optional[tuple] = None,
                 timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        self.base_url = (base_url or StreamingConfig.RELAY_API_URL).rstrip('/')
        self.auth = auth or StreamingConfig.relay_auth()
        self.timeout = timeout if timeout is not None else StreamingConfig.RELAY_API_TIMEOUT
        self._http = session or requests.Session()

    def add_path(self, name: str, config: dict) -> None:
        """
        Enregistrer un chemin sur le relais

        Raises:
            RelayApiError: relais injoignable ou réponse non-2xx
        """
        url = f"{self.base_url}/v3/config/paths/add/{name}"
        logger.info(f"[{name}] Enregistrement du chemin sur le relais")
        try:
            response = self._http.post(url, json=config, auth=self.auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise RelayApiError(f"Relais injoignable: {e}") from e

        if not response.ok:
            raise RelayApiError(
                f"Erreur API relais: {response.status_code} {response.text[:200]}",
                status_code=response.status_code
            )

    def delete_path(self, name: str) -> bool:
        """
        Supprimer un chemin (404 toléré)

        Returns:
            True si le relais a confirmé ou ne connaissait pas le chemin
        """
        url = f"{self.base_url}/v3/config/paths/delete/{name}"
        try:
            response = self._http.delete(url, auth=self.auth, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"[{name}] ❌ Erreur suppression chemin: {e}")
            return False

        if not response.ok and response.status_code != 404:
            logger.error(f"[{name}] ❌ Échec suppression chemin: {response.status_code}")
            return False
        return True

    def list_paths(self) -> List[str]:
        url = f"{self.base_url}/v3/paths/list"
        try:
            response = self._http.get(url, auth=self.auth, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise RelayApiError(f"Impossible de lister les chemins: {e}") from e

        items = response.json().get('items', [])
        return [item.get('name') for item in items if item.get('name')]
