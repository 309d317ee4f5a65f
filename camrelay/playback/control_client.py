"""
Client de l'API de contrôle du serveur
======================================

Utilisé par les sessions de lecture pour ré-enregistrer un flux
("already exists" est un succès) et par l'outil en ligne de commande.
"""

import logging
from typing import List, Optional

import requests

from .errors import ControlApiError

logger = logging.getLogger(__name__)


class ControlApiClient:
    """Client HTTP de ``/api/streams``"""

    def __init__(self, base_url: str, timeout: float = 5.0,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self._http = session or requests.Session()

    def _request(self, method: str, path: str, **kwargs) -> requests.Response:
        url = f"{self.base_url}{path}"
        try:
            return self._http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            raise ControlApiError(f"Serveur injoignable: {e}") from e

    @staticmethod
    def _json(response: requests.Response, expected: type = dict):
        """Corps JSON de la réponse, ControlApiError si le serveur renvoie autre chose"""
        try:
            data = response.json()
        except ValueError as e:
            raise ControlApiError(f"Réponse invalide du serveur: {e}", status_code=response.status_code) from e
        if not isinstance(data, expected):
            raise ControlApiError(f"Réponse inattendue du serveur: {type(data).__name__}",
                                  status_code=response.status_code)
        return data

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        try:
            return response.json().get('error') or response.text
        except (ValueError, AttributeError):
            return response.text

    def add_stream(self, stream_id: str, rtsp_url: str, name: Optional[str] = None) -> dict:
        """
        Enregistrer un flux (idempotent)

        Returns:
            Le flux créé, ou ``{"message": "already exists", "id": ...}``

        Raises:
            ControlApiError: serveur injoignable ou réponse d'erreur
        """
        payload = {'id': stream_id, 'rtspUrl': rtsp_url}
        if name:
            payload['name'] = name

        response = self._request('POST', '/api/streams', json=payload)
        if not response.ok:
            raise ControlApiError(
                f"Enregistrement refusé ({response.status_code}): {self._error_message(response)}",
                status_code=response.status_code
            )

        data = self._json(response)
        if data.get('message') == 'already exists':
            logger.info(f"[{stream_id}] Flux déjà enregistré côté serveur")
        else:
            logger.info(f"[{stream_id}] ✅ Flux enregistré côté serveur")
        return data

    def remove_stream(self, stream_id: str) -> bool:
        """False si le serveur ne connaissait pas le flux"""
        response = self._request('DELETE', f'/api/streams/{stream_id}')
        if response.status_code == 404:
            return False
        if not response.ok:
            raise ControlApiError(self._error_message(response), status_code=response.status_code)
        return True

    def restart_stream(self, stream_id: str) -> dict:
        response = self._request('POST', f'/api/streams/{stream_id}/restart')
        if not response.ok:
            raise ControlApiError(self._error_message(response), status_code=response.status_code)
        return self._json(response)

    def list_streams(self) -> List[dict]:
        response = self._request('GET', '/api/streams')
        if not response.ok:
            raise ControlApiError(self._error_message(response), status_code=response.status_code)
        return self._json(response, list)

    def server_info(self) -> dict:
        response = self._request('GET', '/api/server-info')
        if not response.ok:
            raise ControlApiError(self._error_message(response), status_code=response.status_code)
        return self._json(response)
