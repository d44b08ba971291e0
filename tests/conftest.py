"""
Pytest configuration: in-memory store, hand-driven timers, fake devices.
"""
import os
import sys

os.environ.setdefault('NEURALEDU_DATABASE_URL', 'sqlite://')
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'apps', 'api'))

import pytest
from sqlalchemy.orm import sessionmaker

from neuraledu.db import Base, make_engine
from neuraledu.store import SessionStore
from neuraledu.timers import TimerRegistry
from neuraledu.classroom import Classroom
from neuraledu.services.notify import Notifier


class ManualTask:
    def __init__(self, name, period, fn):
        self.name = name
        self.period = period
        self.fn = fn
        self.elapsed = 0.0
        self.cancelled = False

    def cancel(self):
        self.cancelled = True

    @property
    def running(self):
        return not self.cancelled


class ManualTimers(TimerRegistry):
    """Timer registry whose tasks only fire when the test advances time."""

    def _make(self, name, period, fn):
        return ManualTask(name, period, fn)

    def advance(self, seconds, step=1.0):
        passed = 0.0
        while passed < seconds:
            passed += step
            for task in list(self._tasks.values()):
                if task.cancelled:
                    continue
                task.elapsed += step
                while task.elapsed >= task.period and not task.cancelled:
                    task.elapsed -= task.period
                    task.fn()


class FakeFullscreen:
    def __init__(self, granted=True):
        self.granted = granted
        self.requests = 0
        self.left = 0

    def request(self):
        self.requests += 1
        if self.granted is None:
            raise PermissionError("fullscreen denied")
        return self.granted

    def leave(self):
        self.left += 1


class FakeCamera:
    def __init__(self, granted=True):
        self.granted = granted
        self.acquired = 0
        self.released = 0

    def acquire(self):
        if not self.granted:
            raise PermissionError("camera denied")
        self.acquired += 1
        return object()

    def release(self, stream):
        self.released += 1


class Recorder:
    """Collects notifications emitted for a token."""

    def __init__(self):
        self.messages = []

    def __call__(self, kind, data):
        self.messages.append((kind, data))

    def kinds(self):
        return [k for k, _ in self.messages]

    def last(self, kind):
        for k, data in reversed(self.messages):
            if k == kind:
                return data
        return None


@pytest.fixture
def store():
    """Fresh in-memory store per test"""
    engine = make_engine('sqlite://')
    Base.metadata.create_all(bind=engine)
    yield SessionStore(sessionmaker(bind=engine, autocommit=False, autoflush=False))
    engine.dispose()


@pytest.fixture
def notifier():
    return Notifier()


@pytest.fixture
def devices():
    """Fullscreen/camera fakes handed out to every new session, keyed by creation order"""
    return {'fullscreen': [], 'camera': [], 'fs_granted': True, 'cam_granted': True}


@pytest.fixture
def classroom(store, notifier, devices):
    def fullscreen_factory(send):
        port = FakeFullscreen(devices['fs_granted'])
        devices['fullscreen'].append(port)
        return port

    def camera_factory(send):
        port = FakeCamera(devices['cam_granted'])
        devices['camera'].append(port)
        return port

    return Classroom(store, notifier, timers_factory=ManualTimers, fullscreen_factory=fullscreen_factory,
                     camera_factory=camera_factory, sync_period=3.0, exit_warn=20, ai_delay=120)


@pytest.fixture
def student(store):
    """A registered student with no session yet"""
    from neuraledu.auth import AuthGate
    AuthGate(store).register('alice', 'secret')
    return 'alice'
