"""
Configuration pytest pour camrelay
Fixtures partagées et configuration des tests
"""
import os
import subprocess
import sys
import threading
import time
from unittest.mock import Mock, patch

import pytest

# Ajouter le chemin du projet
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..'))

from camrelay.main import create_app
from camrelay.streaming import StreamingConfig, StreamRegistry, StreamService, TranscodeSupervisor
from camrelay.streaming.relay_client import RelayClient


# ======================
# Processus FFmpeg simulés
# ======================

class FakeProcess:
    """Processus FFmpeg simulé: wait() bloque jusqu'à terminate/kill/exit"""

    _next_pid = 40000

    def __init__(self, args=None, **kwargs):
        FakeProcess._next_pid += 1
        self.pid = FakeProcess._next_pid
        self.args = args
        self.kwargs = kwargs
        self.stdout = None
        self.stderr = None
        self.returncode = None
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exited = threading.Event()

    def poll(self):
        return self.returncode

    def wait(self, timeout=None):
        if not self._exited.wait(timeout):
            raise subprocess.TimeoutExpired(self.args, timeout)
        return self.returncode

    def exit(self, code=1):
        """Simuler la mort du processus"""
        if self.returncode is None:
            self.returncode = code
            self._exited.set()

    def terminate(self):
        self.terminate_calls += 1
        self.exit(-15)

    def kill(self):
        self.kill_calls += 1
        self.exit(-9)


@pytest.fixture
def mock_ffmpeg():
    """Mock FFmpeg pour les tests: chaque Popen crée un FakeProcess"""
    processes = []

    def spawn(args, **kwargs):
        process = FakeProcess(args, **kwargs)
        processes.append(process)
        return process

    with patch('subprocess.Popen', side_effect=spawn) as mock_popen, \
            patch.object(StreamingConfig, 'ffmpeg_available', return_value=True):
        mock_popen.processes = processes
        yield mock_popen

    for process in processes:
        process.exit(0)


# ======================
# Serveur
# ======================

@pytest.fixture
def registry():
    return StreamRegistry()


@pytest.fixture
def relay_client():
    return Mock(spec=RelayClient)


@pytest.fixture
def supervisor(registry, relay_client):
    supervisor = TranscodeSupervisor(
        registry,
        ffmpeg_path='/usr/bin/ffmpeg',
        mode='ffmpeg',
        relay_client=relay_client,
        stop_timeout=1.0,
    )
    yield supervisor
    supervisor.stop_all()


@pytest.fixture
def stream_service(registry, supervisor):
    return StreamService(registry=registry, supervisor=supervisor, settle_delay=0)


@pytest.fixture
def app(stream_service):
    """Fixture de l'application Flask pour les tests"""
    return create_app('testing', stream_service=stream_service)


@pytest.fixture
def client(app):
    """Client de test Flask"""
    return app.test_client()


@pytest.fixture
def wait_until():
    """Attendre qu'une condition devienne vraie (événements asynchrones)"""

    def wait(predicate, timeout=2.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()

    return wait


# ======================
# Client de lecture
# ======================

class FakeConnection:
    """Connexion de lecture pilotée par le test"""

    def __init__(self, protocol, url, sink, on_connected, on_failed, **options):
        self.protocol = protocol
        self.url = url
        self.sink = sink
        self.options = options
        self._on_connected = on_connected
        self._on_failed = on_failed
        self.opened = False
        self.closed = False

    def open(self):
        self.opened = True

    def close(self):
        self.closed = True

    def is_healthy(self):
        return self.opened and not self.closed

    def succeed(self):
        self._on_connected()

    def fail(self, reason='network error'):
        self._on_failed(reason)


class ConnectionRecorder:
    """Fabrique de connexions qui garde une trace de chaque création"""

    def __init__(self):
        self.connections = []

    def __call__(self, protocol, url, sink, on_connected, on_failed, **options):
        connection = FakeConnection(protocol, url, sink, on_connected, on_failed, **options)
        self.connections.append(connection)
        return connection

    @property
    def last(self):
        return self.connections[-1]

    @property
    def live(self):
        return [c for c in self.connections if not c.closed]


class FakeTimer:
    def __init__(self, recorder, interval, function, args=None, kwargs=None):
        self.recorder = recorder
        self.interval = interval
        self.function = function
        self.args = args or ()
        self.kwargs = kwargs or {}
        self.daemon = False
        self.started = False
        self.cancelled = False
        self.fired = False

    def start(self):
        self.started = True
        self.recorder.timers.append(self)

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.function(*self.args, **self.kwargs)


class TimerRecorder:
    """Remplace threading.Timer: les minuteries ne partent que sur fire_next()"""

    def __init__(self):
        self.timers = []

    def __call__(self, interval, function, args=None, kwargs=None):
        return FakeTimer(self, interval, function, args, kwargs)

    @property
    def pending(self):
        return [t for t in self.timers if not t.cancelled and not t.fired]

    def fire_next(self):
        timer = self.pending[0]
        timer.fire()
        return timer


@pytest.fixture
def connections():
    return ConnectionRecorder()


@pytest.fixture
def timers():
    return TimerRecorder()


# Markers personnalisés pour organiser les tests
pytest.mark.integration = pytest.mark.integration
pytest.mark.unit = pytest.mark.unit
pytest.mark.slow = pytest.mark.slow
