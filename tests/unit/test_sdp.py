"""
Tests unitaires de la réécriture des candidats ICE
"""
import pytest

from camrelay.playback.sdp import rewrite_ice_candidates

ANSWER = (
    "v=0\r\n"
    "o=- 123 2 IN IP4 172.17.0.2\r\n"
    "c=IN IP4 10.0.0.8\r\n"
    "a=candidate:1 1 UDP 2130706431 172.17.0.2 8189 typ host\r\n"
    "a=candidate:2 1 UDP 2130706431 10.0.0.8 8189 typ host\r\n"
    "a=candidate:3 1 UDP 1694498815 203.0.113.7 8189 typ srflx raddr 172.17.0.2 rport 8189\r\n"
    "a=candidate:4 1 TCP 1518280447 192.168.1.20 8189 typ host tcptype passive\r\n"
    "a=end-of-candidates\r\n"
)


@pytest.mark.unit
class TestRewriteIceCandidates:

    def test_only_internal_candidates_are_rewritten(self):
        result = rewrite_ice_candidates(ANSWER, '192.168.1.50')

        expected = (
            ANSWER
            .replace("2130706431 172.17.0.2 8189", "2130706431 192.168.1.50 8189")
            .replace("2130706431 10.0.0.8 8189", "2130706431 192.168.1.50 8189")
        )
        assert result == expected

    def test_other_lines_unchanged(self):
        result = rewrite_ice_candidates(ANSWER, 'nvr.local')
        lines = result.split('\r\n')

        assert lines[1] == "o=- 123 2 IN IP4 172.17.0.2"
        assert lines[2] == "c=IN IP4 10.0.0.8"
        assert "203.0.113.7 8189 typ srflx raddr 172.17.0.2" in lines[5]
        assert "192.168.1.20" in lines[6]

    def test_localhost_becomes_loopback(self):
        result = rewrite_ice_candidates(ANSWER, 'localhost')
        assert "2130706431 127.0.0.1 8189 typ host" in result

    def test_colocated_client_keeps_sdp(self):
        assert rewrite_ice_candidates(ANSWER, '192.168.1.50', colocated=True) == ANSWER

    def test_no_host_keeps_sdp(self):
        assert rewrite_ice_candidates(ANSWER, '') == ANSWER

    def test_custom_prefixes(self):
        result = rewrite_ice_candidates(ANSWER, 'example.org', prefixes=('192.168.',))

        assert "1518280447 example.org 8189" in result
        assert "172.17.0.2 8189 typ host" in result
