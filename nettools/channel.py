"""Always-reconnecting WebSocket channel to the remote executor."""

import logging
from enum import Enum

from PySide6.QtCore import QObject, QTimer, QUrl, Signal
from PySide6.QtWebSockets import QWebSocket

from nettools.codec import decode_inbound, encode_command
from nettools.errors import MalformedMessageError, NotConnectedError
from nettools.models import Command

logger = logging.getLogger(__name__)


class ChannelState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    OPEN = "open"


class ChannelManager(QObject):
    """Presents one logical duplex channel to a fixed endpoint.

    Key features:
    - Reconnects after every loss until stop() is called
    - Reconnect delay grows by backoff_factor up to max_reconnect_delay_ms
      and resets after a successful handshake (factor 1.0 keeps it fixed)
    - Each socket gets a connection id; events from a superseded socket are
      ignored so old frames are never applied after newer ones
    - Undecodable frames are logged and dropped without closing the socket

    All state lives on the Qt main thread, so no locking is needed.
    """

    # Signals
    state_changed = Signal(object)  # ChannelState
    message_received = Signal(object)  # Fragment | ErrorEvent | Completion

    def __init__(
        self,
        url: str,
        reconnect_delay_ms: int = 3000,
        backoff_factor: float = 2.0,
        max_reconnect_delay_ms: int = 30_000,
        socket_factory=None,
        parent=None,
    ):
        """Initialize channel manager.

        Args:
            url: WebSocket endpoint of the executor
            reconnect_delay_ms: Delay before the first reconnect attempt
            backoff_factor: Multiplier applied to the delay after each attempt
            max_reconnect_delay_ms: Upper bound for the reconnect delay
            socket_factory: Callable returning a QWebSocket-like object
            parent: Qt parent object
        """
        super().__init__(parent)
        if reconnect_delay_ms <= 0:
            raise ValueError("reconnect_delay_ms must be positive")
        if backoff_factor < 1.0:
            raise ValueError("backoff_factor must be >= 1.0")

        self.url = url
        self.reconnect_delay_ms = reconnect_delay_ms
        self.backoff_factor = backoff_factor
        self.max_reconnect_delay_ms = max(max_reconnect_delay_ms, reconnect_delay_ms)
        self._socket_factory = socket_factory if socket_factory is not None else QWebSocket

        self._state = ChannelState.DISCONNECTED
        self._socket = None
        self._connection_id = 0
        self._running = False
        self._next_delay_ms = reconnect_delay_ms

        self._reconnect_timer = QTimer(self)
        self._reconnect_timer.setSingleShot(True)
        self._reconnect_timer.timeout.connect(self._reconnect)

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def connection_id(self) -> int:
        return self._connection_id

    def is_connected(self) -> bool:
        return self._state is ChannelState.OPEN

    def start(self):
        """Open the channel and keep it open until stop()."""
        if self._running:
            return

        self._running = True
        self._next_delay_ms = self.reconnect_delay_ms
        logger.info("Channel starting: url=%s", self.url)
        self._open_socket()

    def stop(self):
        """Close the channel and cancel any pending reconnect."""
        self._running = False
        self._reconnect_timer.stop()

        # Supersede the current socket before closing it
        self._connection_id += 1
        socket, self._socket = self._socket, None
        if socket is not None:
            socket.close()
            socket.deleteLater()

        self._set_state(ChannelState.DISCONNECTED)
        logger.info("Channel stopped (connection_id=%d)", self._connection_id)

    def send(self, command: Command):
        """Send a command frame.

        Raises:
            NotConnectedError: channel is not open
        """
        if self._state is not ChannelState.OPEN or self._socket is None:
            raise NotConnectedError(self._state)

        frame = encode_command(command)
        self._socket.sendTextMessage(frame)
        logger.debug("Frame sent: %s", frame)

    def _set_state(self, state: ChannelState):
        if state is self._state:
            return
        logger.debug("Channel state: %s -> %s", self._state.value, state.value)
        self._state = state
        self.state_changed.emit(state)

    def _open_socket(self):
        self._connection_id += 1
        connection_id = self._connection_id

        socket = self._socket_factory()
        socket.connected.connect(lambda: self._on_connected(connection_id))
        socket.disconnected.connect(lambda: self._on_lost(connection_id, "remote close"))
        socket.textMessageReceived.connect(lambda text: self._on_frame(connection_id, text))
        socket.errorOccurred.connect(lambda error: self._on_error(connection_id, error))
        self._socket = socket

        self._set_state(ChannelState.CONNECTING)
        logger.debug("Connecting: url=%s, connection_id=%d", self.url, connection_id)
        socket.open(QUrl(self.url))

    def _is_current(self, connection_id: int) -> bool:
        return self._running and connection_id == self._connection_id

    def _on_connected(self, connection_id: int):
        if not self._is_current(connection_id):
            return

        self._next_delay_ms = self.reconnect_delay_ms
        self._set_state(ChannelState.OPEN)
        logger.info("Channel open: url=%s, connection_id=%d", self.url, connection_id)

    def _on_frame(self, connection_id: int, text: str):
        if not self._is_current(connection_id):
            logger.debug(
                "Dropping frame from superseded connection: connection_id=%d (current=%d)",
                connection_id,
                self._connection_id,
            )
            return

        try:
            message = decode_inbound(text)
        except MalformedMessageError as e:
            logger.warning("Dropping malformed frame: %s, frame=%s", e.reason, text[:200])
            return

        if message is None:
            logger.debug("Ignoring frame without output, error or endTime: %s", text[:200])
            return

        self.message_received.emit(message)

    def _on_error(self, connection_id: int, error):
        if not self._is_current(connection_id):
            return

        reason = self._socket.errorString() if self._socket is not None else str(error)
        logger.warning("Channel transport error: %s", reason)
        self._on_lost(connection_id, reason)

    def _on_lost(self, connection_id: int, reason: str):
        if not self._is_current(connection_id) or self._state is ChannelState.DISCONNECTED:
            return

        # Anything the lost socket still delivers belongs to a dead connection
        self._connection_id += 1
        socket, self._socket = self._socket, None
        if socket is not None:
            socket.deleteLater()

        self._set_state(ChannelState.DISCONNECTED)
        self._schedule_reconnect(reason)

    def _schedule_reconnect(self, reason: str):
        delay_ms = self._next_delay_ms
        self._next_delay_ms = min(
            int(self._next_delay_ms * self.backoff_factor), self.max_reconnect_delay_ms
        )

        logger.info("Channel lost (%s), reconnecting in %dms", reason, delay_ms)
        self._reconnect_timer.start(delay_ms)

    def _reconnect(self):
        if not self._running:
            return
        logger.debug("Attempting to reconnect...")
        self._open_socket()
