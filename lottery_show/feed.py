"""WebSocket client delivering live registrations to the engine."""

from __future__ import annotations

import logging
from typing import Optional

from PyQt5 import QtCore, QtNetwork, QtWebSockets

from .live_merge import LiveMergeAdapter

logger = logging.getLogger(__name__)

__all__ = ["LiveFeedClient", "feed_url"]


def feed_url(host: str, secure: bool = False) -> str:
    """Endpoint of the registration feed served next to the show."""

    return f"{'wss' if secure else 'ws'}://{host}/api/ws"


class LiveFeedClient(QtCore.QObject):
    """Keep a socket open on ``url`` and forward text frames to ``adapter``.

    A closed connection is retried after ``reconnect_ms`` until :meth:`close`
    is called.
    """

    connected = QtCore.pyqtSignal()
    disconnected = QtCore.pyqtSignal()

    def __init__(
        self,
        adapter: LiveMergeAdapter,
        *,
        reconnect_ms: int = 3000,
        parent: Optional[QtCore.QObject] = None,
    ) -> None:
        super().__init__(parent)
        self._adapter = adapter
        self._url = ""
        self._closed = True
        self._socket = QtWebSockets.QWebSocket()
        self._socket.setParent(self)
        self._socket.connected.connect(self._on_connected)
        self._socket.disconnected.connect(self._on_disconnected)
        self._socket.textMessageReceived.connect(self._on_text)
        self._socket.binaryMessageReceived.connect(self._on_binary)
        self._socket.stateChanged.connect(self._on_state)
        self._retry = QtCore.QTimer(self)
        self._retry.setSingleShot(True)
        self._retry.setInterval(max(0, int(reconnect_ms)))
        self._retry.timeout.connect(self._connect)

    @property
    def url(self) -> str:
        return self._url

    @property
    def is_open(self) -> bool:
        return not self._closed

    @property
    def reconnect_pending(self) -> bool:
        return self._retry.isActive()

    def open(self, url: str) -> None:
        self._url = url
        self._closed = False
        self._connect()

    def close(self) -> None:
        """Stop reconnecting and close the socket; safe to call repeatedly."""

        if self._closed and not self._retry.isActive():
            return
        self._closed = True
        self._retry.stop()
        self._socket.abort()
        logger.info("Live feed closed")

    def _connect(self) -> None:
        if self._closed:
            return
        logger.info("Connecting to live feed %s", self._url)
        self._socket.open(QtCore.QUrl(self._url))

    def _schedule_reconnect(self) -> None:
        if self._closed or self._retry.isActive():
            return
        logger.info("Live feed unavailable, retrying in %d ms", self._retry.interval())
        self._retry.start()

    def _on_connected(self) -> None:
        logger.info("Live feed connected")
        self.connected.emit()

    def _on_disconnected(self) -> None:
        if not self._closed:
            logger.warning("Live feed disconnected: %s", self._socket.errorString())
        self.disconnected.emit()
        self._schedule_reconnect()

    def _on_state(self, state) -> None:
        # A failed connection attempt never reports `disconnected`.
        if state == QtNetwork.QAbstractSocket.UnconnectedState:
            self._schedule_reconnect()

    def _on_text(self, message: str) -> None:
        self._adapter.handle_message(message)

    def _on_binary(self, message) -> None:
        self._adapter.handle_message(bytes(message))
