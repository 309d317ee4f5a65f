"""
Tests d'intégration pour le health check et les informations serveur
"""
from unittest.mock import patch

import pytest

from camrelay import __version__


@pytest.mark.integration
class TestHealthIntegration:

    def test_health_counts_streams(self, client, mock_ffmpeg):
        assert client.get('/health').get_json() == {'status': 'ok', 'streams': 0}

        client.post('/api/streams', json={'id': 'cam1', 'rtspUrl': 'rtsp://camera/1'})

        assert client.get('/health').get_json() == {'status': 'ok', 'streams': 1}

    def test_server_info(self, client):
        data = client.get('/api/server-info').get_json()

        assert data['name'] == 'camrelay'
        assert data['version'] == __version__
        assert data['streamAuthEnabled'] in (True, False)
        assert set(data['ports']) == {'api', 'rtsp', 'hls', 'webrtc'}

    @patch('camrelay.routes.health.monitoring_service.get_system_stats')
    def test_system_stats(self, mock_stats, client):
        mock_stats.return_value = {
            'cpu': 7,
            'memory': {'used': 3, 'total': 8, 'usedPercent': 38},
            'disk': {'used': 20, 'total': 100, 'usedPercent': 20},
            'uptime': 3600,
        }

        response = client.get('/api/system-stats')

        assert response.status_code == 200
        data = response.get_json()
        assert data['cpu'] == 7
        assert data['streams'] == 0

    @patch('camrelay.routes.health.monitoring_service.get_system_stats', side_effect=RuntimeError('psutil'))
    def test_system_stats_error(self, mock_stats, client):
        response = client.get('/api/system-stats')

        assert response.status_code == 500
        assert response.get_json() == {'error': 'psutil'}

    def test_index_lists_endpoints(self, client):
        data = client.get('/').get_json()

        assert data['version'] == __version__
        assert data['endpoints']['streams'] == '/api/streams'

    def test_cors_exposes_whep_location(self, client):
        response = client.options('/whep/cam1', headers={
            'Origin': 'http://dashboard.lan',
            'Access-Control-Request-Method': 'POST',
        })

        assert response.headers.get('Access-Control-Allow-Origin') in ('*', 'http://dashboard.lan')
