"""
Tests unitaires des politiques de reconnexion
"""
import pytest

from camrelay.playback.policy import POLICIES, PROTOCOLS, policy_for


@pytest.mark.unit
class TestReconnectPolicy:

    def test_known_protocols(self):
        assert set(PROTOCOLS) == {'mjpeg', 'hls', 'flv', 'webrtc'}

    def test_unknown_protocol(self):
        with pytest.raises(ValueError):
            policy_for('rtmp')

    def test_webrtc_short_then_long_interval(self):
        policy = policy_for('webrtc')

        assert [policy.delay_for(n) for n in (1, 10)] == [2.0, 2.0]
        assert policy.delay_for(11) == 5.0
        assert policy.bounded is False

    def test_hls_reregisters_every_five_failures(self):
        policy = policy_for('hls')

        assert [n for n in range(1, 16) if policy.should_reregister(n)] == [5, 10, 15]
        assert policy.should_reregister(0) is False
        assert policy.exhausted(1000) is False

    def test_webrtc_reregisters_every_ten_failures(self):
        policy = policy_for('webrtc')
        assert [n for n in range(1, 21) if policy.should_reregister(n)] == [10, 20]

    def test_mjpeg_is_bounded_without_reregistration(self):
        policy = POLICIES['mjpeg']

        assert policy.bounded is True
        assert policy.exhausted(3) is False
        assert policy.exhausted(4) is True
        assert not any(policy.should_reregister(n) for n in range(1, 20))

    def test_flv_is_bounded(self):
        policy = POLICIES['flv']

        assert policy.exhausted(10) is False
        assert policy.exhausted(11) is True
        assert policy.should_reregister(5) is True
