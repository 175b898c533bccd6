"""Shared fixtures for NetTools tests."""

import pytest
from PySide6.QtCore import QCoreApplication, QObject, QSettings, Signal


@pytest.fixture(scope="session", autouse=True)
def qapp():
    """Create QCoreApplication instance for tests."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    yield app


class ScriptedSocket(QObject):
    """QWebSocket stand-in whose lifecycle is driven by the test."""

    connected = Signal()
    disconnected = Signal()
    textMessageReceived = Signal(str)
    errorOccurred = Signal(object)

    def __init__(self):
        super().__init__()
        self.url = None
        self.sent = []
        self.closed = False
        self.error_message = ""

    def open(self, url):
        self.url = url.toString()

    def close(self):
        self.closed = True
        self.disconnected.emit()

    def errorString(self):
        return self.error_message

    def sendTextMessage(self, text):
        self.sent.append(text)
        return len(text)

    # Test controls

    def accept(self):
        self.connected.emit()

    def drop(self):
        self.disconnected.emit()

    def fail(self, message="connection refused"):
        self.error_message = message
        self.errorOccurred.emit(message)

    def deliver(self, frame):
        self.textMessageReceived.emit(frame)


class SocketFactory:
    """Creates ScriptedSockets and remembers them in order."""

    def __init__(self):
        self.sockets = []

    def __call__(self):
        socket = ScriptedSocket()
        self.sockets.append(socket)
        return socket

    @property
    def last(self) -> ScriptedSocket:
        return self.sockets[-1]


class FakeLookup:
    def __init__(self, name, callback):
        self.name = name
        self.callback = callback
        self.aborted = False

    def abort(self):
        self.aborted = True


class FakeResolver:
    """Resolver whose lookups stay pending until the test resolves them."""

    def __init__(self):
        self.lookups = []

    def lookup(self, name, callback):
        lookup = FakeLookup(name, callback)
        self.lookups.append(lookup)
        return lookup

    def resolve(self, name, resolvable=True):
        """Answer every pending, non-aborted lookup for name."""
        for lookup in [l for l in self.lookups if l.name == name]:
            self.lookups.remove(lookup)
            if not lookup.aborted:
                lookup.callback(resolvable)

    def resolve_stale(self, name, resolvable=True):
        """Answer lookups for name even if they were aborted."""
        for lookup in [l for l in self.lookups if l.name == name]:
            self.lookups.remove(lookup)
            lookup.callback(resolvable)


class ManualClock:
    """Monotonic clock advanced explicitly by tests (seconds)."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def socket_factory():
    return SocketFactory()


@pytest.fixture
def resolver():
    return FakeResolver()


@pytest.fixture
def snapshot_settings(tmp_path):
    """QSettings backed by a throwaway INI file."""
    settings = QSettings(str(tmp_path / "nettools.ini"), QSettings.Format.IniFormat)
    yield settings
    settings.sync()
