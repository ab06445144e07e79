from __future__ import annotations

from typing import Any, Protocol

from flask_socketio import SocketIO


class Broadcaster(Protocol):
    def send(self, channel: Any, event: str, payload: dict) -> None:
        ...

    def send_all(self, event: str, payload: dict) -> None:
        ...


class SocketIOBroadcaster:
    """Delivers events through Flask-SocketIO.

    A channel is a socket sid; ``send_all`` reaches every connected client on
    the default namespace.
    """

    def __init__(self, socketio: SocketIO, namespace: str = "/"):
        self._socketio = socketio
        self._namespace = namespace

    def send(self, channel: Any, event: str, payload: dict) -> None:
        if not channel:
            return
        self._socketio.emit(event, payload, to=channel, namespace=self._namespace)

    def send_all(self, event: str, payload: dict) -> None:
        self._socketio.emit(event, payload, namespace=self._namespace)


class NullBroadcaster:
    def send(self, channel: Any, event: str, payload: dict) -> None:
        return

    def send_all(self, event: str, payload: dict) -> None:
        return
