from __future__ import annotations

import logging
from threading import RLock
from typing import Any

from flask import request
from flask_socketio import SocketIO, emit

from ..config import Config
from ..game import service
from ..game.errors import AuthorizationError, GameError, NotFoundError, ValidationError
from . import events

logger = logging.getLogger(__name__)


# socket sid -> participant id
_sessions: dict[str, str] = {}
_sessions_lock = RLock()


def _validate_name(name: str) -> bool:
    n = (name or "").strip()
    if not n:
        return False
    if len(n) > Config.MAX_NAME_LENGTH:
        return False
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        return False
    # No control characters.
    for ch in n:
        if ord(ch) < 32:
            return False
    return True


def _current_participant():
    pid = _sessions.get(request.sid)
    if not pid:
        return None
    return service.get_participant(pid)


def _current_room():
    player = _current_participant()
    if player is None:
        return None, None
    room = service.get_room(player.room_id) if player.room_id else None
    return player, room


def _emit_error(message: str) -> None:
    emit(events.ERROR, events.error_payload(message))


def _drop_session(sid: str) -> None:
    """Leave the current room (if any) and forget the participant."""
    with _sessions_lock:
        pid = _sessions.pop(sid, None)
        if pid:
            service.disconnect_participant(pid)


def reset_sessions() -> None:
    with _sessions_lock:
        _sessions.clear()


def register_socketio_handlers(socketio: SocketIO) -> None:
    @socketio.on("connect")
    def on_connect():
        emit(events.ROOM_LIST_UPDATED, service.room_list_payload())

    @socketio.on("create_room")
    def create_room(data):
        payload = data or {}
        player_name = str(payload.get("playerName", "") or "").strip()
        room_name = str(payload.get("roomName", "") or "").strip()
        language = str(payload.get("language", "") or "").strip() or Config.DEFAULT_LANGUAGE

        try:
            if not _validate_name(player_name):
                raise ValidationError("Name is required")

            with _sessions_lock:
                _drop_session(request.sid)
                player = service.register_participant(player_name, channel=request.sid)
                _sessions[request.sid] = player.id
                room = service.create_room(player, room_name, language)
        except GameError as exc:
            _emit_error(exc.message)
            return

        emit(
            events.ROOM_CREATED,
            {
                "room": events.serialize_room(room),
                "player": events.serialize_player(room, player),
                "players": events.serialize_players(room),
            },
        )

    @socketio.on("join_room")
    def join_room(data):
        payload = data or {}
        room_id = str(payload.get("roomId", "") or "").strip()
        player_name = str(payload.get("playerName", "") or "").strip()

        try:
            if not room_id or not _validate_name(player_name):
                raise ValidationError("Room ID and player name are required")

            room = service.require_room(room_id)
            if room.status != "waiting":
                _emit_error("Game has already started")
                return

            with _sessions_lock:
                room, player = service.enter_room(
                    room_id, player_name, channel=request.sid, previous_id=_sessions.get(request.sid)
                )
                _sessions[request.sid] = player.id
        except GameError as exc:
            _emit_error(exc.message)
            return

        emit(events.CHAT_HISTORY, {"messages": service.get_chat_history(room)})
        emit(
            events.ROOM_JOINED,
            {
                "room": events.serialize_room(room),
                "player": events.serialize_player(room, player),
                "players": events.serialize_players(room),
                "host": room.host_id,
            },
        )

    @socketio.on("get_rooms")
    def get_rooms(data=None):
        emit(events.ROOM_LIST_UPDATED, service.room_list_payload())

    @socketio.on("start_game")
    def start_game(data=None):
        player, room = _current_room()
        if player is None:
            return

        try:
            if room is None:
                raise NotFoundError("Not in a room")
            if room.host_id != player.id:
                raise AuthorizationError("Only the host can start the game")
        except GameError as exc:
            _emit_error(exc.message)
            return

        if not service.start_game(room, player.id):
            if room.status != "waiting":
                _emit_error("Game has already started")
            else:
                _emit_error("At least 2 players needed to start")

    @socketio.on("reset_game")
    def reset_game(data=None):
        player, room = _current_room()
        if player is None:
            return

        if room is None or room.host_id != player.id:
            _emit_error("Only the host can reset the game")
            return

        if not service.reset_game(room, player.id):
            _emit_error("The game has finished, create a new room to play again")

    @socketio.on("send_message")
    def send_message(data):
        player, room = _current_room()
        if player is None or room is None:
            return

        text: Any = (data or {}).get("message", "")
        if not isinstance(text, str) or not text.strip():
            return
        if len(text) > Config.MAX_MESSAGE_LENGTH:
            _emit_error("Message is too long")
            return

        service.send_chat(room, player.id, text)

    @socketio.on("update_canvas")
    def update_canvas(data):
        player, room = _current_room()
        if player is None or room is None:
            return

        service.update_canvas(room, player.id, (data or {}).get("canvasData"))

    @socketio.on("clear_canvas")
    def clear_canvas(data=None):
        player, room = _current_room()
        if player is None or room is None:
            return

        service.clear_canvas(room, player.id)

    @socketio.on("leave_room")
    def leave_room(data=None):
        with _sessions_lock:
            if request.sid not in _sessions:
                return
            _drop_session(request.sid)
        emit(events.LEFT_ROOM, {})

    @socketio.on("disconnect")
    def on_disconnect(*args):
        try:
            _drop_session(request.sid)
        except Exception:
            logger.exception("[disconnect] cleanup failed sid=%s", request.sid)
