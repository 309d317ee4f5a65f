"""
Tests unitaires du client de l'API du relais
"""
from unittest.mock import Mock

import pytest
import requests

from camrelay.streaming.errors import RelayApiError
from camrelay.streaming.relay_client import RelayClient


def response(status_code=200, payload=None, text=''):
    resp = Mock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    resp.text = text
    resp.json.return_value = payload or {}
    if not resp.ok:
        resp.raise_for_status.side_effect = requests.HTTPError(f"{status_code}")
    return resp


@pytest.fixture
def http():
    return Mock(spec=requests.Session)


@pytest.fixture
def client(http):
    return RelayClient('http://relay:9997/', auth=('admin', 'secret'), timeout=2.0, session=http)


@pytest.mark.unit
class TestRelayClient:

    def test_add_path(self, client, http):
        http.post.return_value = response(200)

        client.add_path('cam1', {'source': 'publisher'})

        http.post.assert_called_once_with(
            'http://relay:9997/v3/config/paths/add/cam1',
            json={'source': 'publisher'},
            auth=('admin', 'secret'),
            timeout=2.0,
        )

    def test_add_path_error_status(self, client, http):
        http.post.return_value = response(400, text='path already exists')

        with pytest.raises(RelayApiError) as excinfo:
            client.add_path('cam1', {})
        assert excinfo.value.status_code == 400

    def test_add_path_unreachable(self, client, http):
        http.post.side_effect = requests.ConnectionError('refused')

        with pytest.raises(RelayApiError):
            client.add_path('cam1', {})

    def test_delete_path_tolerates_404(self, client, http):
        http.delete.return_value = response(404)
        assert client.delete_path('cam1') is True

        http.delete.return_value = response(500)
        assert client.delete_path('cam1') is False

    def test_delete_path_unreachable(self, client, http):
        http.delete.side_effect = requests.Timeout()
        assert client.delete_path('cam1') is False

    def test_list_paths(self, client, http):
        http.get.return_value = response(200, {'items': [{'name': 'cam1'}, {'name': 'cam1_raw'}, {}]})

        assert client.list_paths() == ['cam1', 'cam1_raw']
