"""
Tests unitaires des connexions MJPEG / HLS / FLV
Le réseau est simulé par une session requests mockée
"""
from unittest.mock import Mock

import pytest
import requests

from camrelay.playback.connections import (
    FlvConnection,
    HlsConnection,
    MjpegConnection,
    create_connection,
)
from camrelay.playback.connections.flv import TAG_AUDIO, TAG_SCRIPT, TAG_VIDEO, FlvReader
from camrelay.playback.connections.hls import parse_playlist
from camrelay.playback.connections.mjpeg import cache_busted, extract_frames
from camrelay.playback.errors import ConnectionFailed
from camrelay.playback.sinks import MediaSink

JPEG_A = b'\xff\xd8frame-a\xff\xd9'
JPEG_B = b'\xff\xd8frame-b\xff\xd9'


def stream_response(chunks, status_code=200, content_type='multipart/x-mixed-replace; boundary=frame'):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code == 200
    response.headers = {'Content-Type': content_type}
    response.iter_content.return_value = iter(chunks)
    return response


def content_response(content, status_code=200):
    response = Mock()
    response.status_code = status_code
    response.ok = status_code == 200
    response.content = content
    return response


def flv_header(audio=True, video=True):
    flags = (0x04 if audio else 0) | (0x01 if video else 0)
    return b'FLV\x01' + bytes([flags]) + (9).to_bytes(4, 'big') + b'\x00\x00\x00\x00'


def flv_tag(tag_type, payload, timestamp=0):
    header = (
        bytes([tag_type])
        + len(payload).to_bytes(3, 'big')
        + (timestamp & 0xffffff).to_bytes(3, 'big')
        + bytes([(timestamp >> 24) & 0xff])
        + b'\x00\x00\x00'
    )
    return header + payload + (11 + len(payload)).to_bytes(4, 'big')


@pytest.fixture
def http():
    return Mock(spec=requests.Session)


@pytest.fixture
def callbacks():
    return Mock(), Mock()


# ======================
# MJPEG
# ======================

@pytest.mark.unit
class TestMjpegHelpers:

    def test_cache_busted_adds_attempt(self):
        assert cache_busted('http://cam.lan/video.mjpg', 3) == 'http://cam.lan/video.mjpg?t=3'

    def test_cache_busted_replaces_previous_value(self):
        url = cache_busted('http://cam.lan/video.cgi?res=hd&t=1', 2)
        assert url == 'http://cam.lan/video.cgi?res=hd&t=2'

    def test_extract_frames_keeps_partial_frame(self):
        frames, rest = extract_frames(b'--boundary\r\n' + JPEG_A + b'\r\n' + b'\xff\xd8partial')

        assert frames == [JPEG_A]
        assert rest == b'\xff\xd8partial'

    def test_extract_frames_keeps_split_marker(self):
        frames, rest = extract_frames(JPEG_A + b'\r\n--boundary\r\n\xff')

        assert frames == [JPEG_A]
        assert rest == b'\xff'

        frames, rest = extract_frames(rest + b'\xd8frame-b\xff\xd9')
        assert frames == [JPEG_B]


@pytest.mark.unit
class TestMjpegConnection:

    def test_frames_reach_sink_then_stream_end_fails(self, http, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http.get.return_value = stream_response([b'--frame\r\n\xff\xd8frame-a', b'\xff\xd9\r\n', JPEG_B])
        sink = MediaSink('cam-1')
        connection = MjpegConnection('http://cam.lan/video.mjpg', sink, on_connected, on_failed,
                                     attempt=4, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        on_connected.assert_called_once_with()
        on_failed.assert_called_once_with('flux MJPEG terminé')
        assert sink.frames == 2
        assert sink.last_frame == JPEG_B
        assert http.get.call_args.args[0] == 'http://cam.lan/video.mjpg?t=4'

    def test_single_jpeg_stays_connected(self, http, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http.get.return_value = stream_response([JPEG_A], content_type='image/jpeg')
        connection = MjpegConnection('http://cam.lan/snap.jpg', MediaSink(), on_connected, on_failed, http=http)

        connection.open()

        assert wait_until(lambda: on_connected.called)
        connection._worker.join(1)
        on_failed.assert_not_called()

    def test_http_error(self, http, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http.get.return_value = stream_response([], status_code=503)
        connection = MjpegConnection('http://cam.lan/video.mjpg', MediaSink(), on_connected, on_failed, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        on_failed.assert_called_once_with('HTTP 503')
        on_connected.assert_not_called()

    def test_network_error(self, http, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http.get.side_effect = requests.ConnectionError('refused')
        connection = MjpegConnection('http://cam.lan/video.mjpg', MediaSink(), on_connected, on_failed, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        assert on_failed.call_args.args[0].startswith('erreur réseau')

    def test_no_callback_after_close(self, http, callbacks):
        on_connected, on_failed = callbacks
        response = stream_response([JPEG_A])
        http.get.return_value = response
        connection = MjpegConnection('http://cam.lan/video.mjpg', MediaSink(), on_connected, on_failed, http=http)

        connection.close()
        connection.close()
        connection._run()

        on_connected.assert_not_called()
        on_failed.assert_not_called()
        response.close.assert_called()


# ======================
# HLS
# ======================

LIVE_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:7
#EXT-X-TARGETDURATION:{target}
#EXT-X-MEDIA-SEQUENCE:10
#EXT-X-MAP:URI="init.mp4"
#EXTINF:1.0,
seg10.mp4
#EXTINF:1.0,
seg11.mp4
#EXTINF:1.0,
seg12.mp4
#EXTINF:1.0,
seg13.mp4
#EXTINF:1.0,
seg14.mp4
{end}"""

MASTER_PLAYLIST = """#EXTM3U
#EXT-X-VERSION:9
#EXT-X-STREAM-INF:BANDWIDTH=1200000,CODECS="avc1.64001f,opus"
video1_stream.m3u8
"""


def hls_server(playlist, master=None):
    """Fausse session HTTP servant manifeste et segments"""
    requested = []

    def get(url, **kwargs):
        requested.append(url)
        if url.endswith('index.m3u8'):
            return content_response((master or playlist).encode())
        if url.endswith('.m3u8'):
            return content_response(playlist.encode())
        return content_response(b'segment:' + url.encode())

    http = Mock(spec=requests.Session)
    http.get.side_effect = get
    http.requested = requested
    return http


@pytest.mark.unit
class TestParsePlaylist:

    def test_media_playlist(self):
        playlist = parse_playlist(LIVE_PLAYLIST.format(target=2, end=''), 'http://nvr.lan/hls/cam1/stream.m3u8')

        assert playlist.target_duration == 2.0
        assert playlist.media_sequence == 10
        assert playlist.last_sequence == 14
        assert playlist.init_segment == 'http://nvr.lan/hls/cam1/init.mp4'
        assert playlist.segments[0] == 'http://nvr.lan/hls/cam1/seg10.mp4'
        assert playlist.ended is False
        assert playlist.is_master is False

    def test_master_playlist(self):
        playlist = parse_playlist(MASTER_PLAYLIST, 'http://nvr.lan/hls/cam1/index.m3u8')

        assert playlist.is_master is True
        assert playlist.variants == ['http://nvr.lan/hls/cam1/video1_stream.m3u8']

    def test_invalid_playlist(self):
        with pytest.raises(ConnectionFailed):
            parse_playlist('<html>404</html>', 'http://nvr.lan/hls/cam1/index.m3u8')


@pytest.mark.unit
class TestHlsConnection:

    def test_loads_live_edge_then_ended_stream_fails(self, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http = hls_server(LIVE_PLAYLIST.format(target=1, end='#EXT-X-ENDLIST'), master=MASTER_PLAYLIST)
        sink = MediaSink('cam-1')
        connection = HlsConnection('http://nvr.lan/hls/cam1/index.m3u8', sink, on_connected, on_failed,
                                   initial_delay=0, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        on_connected.assert_called_once_with()
        on_failed.assert_called_once_with('flux HLS terminé')
        assert connection.segments_loaded == 3
        segments = [url for url in http.requested if 'seg' in url]
        assert segments == [f'http://nvr.lan/hls/cam1/seg{n}.mp4' for n in (12, 13, 14)]
        assert 'http://nvr.lan/hls/cam1/init.mp4' in http.requested

    def test_stalled_playlist_is_fatal(self, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http = hls_server(LIVE_PLAYLIST.format(target='0.02', end=''))
        connection = HlsConnection('http://nvr.lan/hls/cam1/stream.m3u8', MediaSink(), on_connected, on_failed,
                                   initial_delay=0, stall_timeout=0.05, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        on_connected.assert_called_once_with()
        on_failed.assert_called_once_with('manifeste HLS figé')

    def test_playlist_http_error(self, callbacks, wait_until):
        on_connected, on_failed = callbacks
        http = Mock(spec=requests.Session)
        http.get.return_value = content_response(b'', status_code=404)
        connection = HlsConnection('http://nvr.lan/hls/cam1/index.m3u8', MediaSink(), on_connected, on_failed,
                                   initial_delay=0, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        assert 'HTTP 404' in on_failed.call_args.args[0]

    def test_close_during_initial_delay(self, callbacks):
        on_connected, on_failed = callbacks
        http = Mock(spec=requests.Session)
        connection = HlsConnection('http://nvr.lan/hls/cam1/index.m3u8', MediaSink(), on_connected, on_failed,
                                   initial_delay=5, http=http)

        connection.open()
        connection.close()
        connection._worker.join(1)

        assert not connection._worker.is_alive()
        http.get.assert_not_called()
        on_failed.assert_not_called()


# ======================
# FLV
# ======================

@pytest.mark.unit
class TestFlvReader:

    def test_header_and_tags_across_chunks(self):
        data = flv_header() + flv_tag(TAG_SCRIPT, b'meta') + flv_tag(TAG_VIDEO, b'\x17\x00' * 8, timestamp=40) \
            + flv_tag(TAG_AUDIO, b'\xaf\x01', timestamp=0x01000010)
        reader = FlvReader()

        tags = []
        for i in range(0, len(data), 7):
            tags.extend(reader.feed(data[i:i + 7]))

        assert reader.has_audio and reader.has_video
        assert [t.tag_type for t in tags] == [TAG_SCRIPT, TAG_VIDEO, TAG_AUDIO]
        assert tags[1].timestamp == 40
        assert tags[1].size == 16
        assert tags[2].timestamp == 0x01000010

    def test_invalid_signature(self):
        with pytest.raises(ConnectionFailed):
            FlvReader().feed(b'<html>not flv</html>')


@pytest.mark.unit
class TestFlvConnection:

    def test_connected_on_first_video_tag(self, http, callbacks, wait_until):
        on_connected, on_failed = callbacks
        body = flv_header() + flv_tag(TAG_AUDIO, b'\xaf\x00') + flv_tag(TAG_VIDEO, b'\x17\x01') \
            + flv_tag(TAG_VIDEO, b'\x27\x01')
        http.get.return_value = stream_response([body[:20], body[20:]], content_type='video/x-flv')
        sink = MediaSink()
        connection = FlvConnection('http://nvr.lan/api/stream/flv?url=x', sink, on_connected, on_failed, http=http)

        connection.open()

        assert wait_until(lambda: on_failed.called)
        on_connected.assert_called_once_with()
        on_failed.assert_called_once_with('flux FLV terminé')
        assert connection.video_tags == 2
        assert connection.audio_tags == 1
        assert sink.bytes_received == len(body)


@pytest.mark.unit
class TestCreateConnection:

    def test_builds_protocol_connection(self, callbacks):
        on_connected, on_failed = callbacks
        connection = create_connection('hls', 'http://nvr.lan/hls/cam1/index.m3u8', MediaSink(),
                                       on_connected, on_failed, attempt=2, initial_delay=0.5)

        assert isinstance(connection, HlsConnection)
        assert connection.attempt == 2
        assert connection.initial_delay == 0.5

    def test_unknown_protocol(self, callbacks):
        with pytest.raises(ValueError):
            create_connection('rtmp', 'rtmp://x', MediaSink(), *callbacks)
