"""
Client de lecture adaptative
============================

Une session par caméra et par protocole (MJPEG, HLS, FLV, WebRTC/WHEP),
avec reconnexion bornée ou infinie selon le protocole et ré-enregistrement
du flux auprès du serveur toutes les K tentatives.
"""

from .control_client import ControlApiClient
from .errors import ConnectionFailed, ControlApiError, PlaybackError
from .policy import POLICIES, PROTOCOLS, ReconnectPolicy, policy_for
from .sdp import rewrite_ice_candidates
from .session import PlaybackSession, PlaybackState
from .shared_loader import SharedLoader
from .sinks import LocalMediaStream, MediaSink
from .stats import InboundSample, StreamRate, compute_rate
from .urls import resolve_playback_url, stream_id_for_camera, viewer_auth_header
from .viewer import MultiViewer

__all__ = [
    'ControlApiClient',
    'PlaybackError',
    'ConnectionFailed',
    'ControlApiError',
    'ReconnectPolicy',
    'POLICIES',
    'PROTOCOLS',
    'policy_for',
    'rewrite_ice_candidates',
    'PlaybackSession',
    'PlaybackState',
    'SharedLoader',
    'MediaSink',
    'LocalMediaStream',
    'InboundSample',
    'StreamRate',
    'compute_rate',
    'resolve_playback_url',
    'stream_id_for_camera',
    'viewer_auth_header',
    'MultiViewer',
]
