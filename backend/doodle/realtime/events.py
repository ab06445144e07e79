"""Outbound event names and payload shapes."""
from __future__ import annotations

from dataclasses import asdict
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from ..game.models import ChatMessage, Participant, Room, Round


PLAYER_JOINED = "player_joined"
PLAYER_LEFT = "player_left"
ROOM_CREATED = "room_created"
ROOM_JOINED = "room_joined"
LEFT_ROOM = "left_room"
GAME_STARTED = "game_started"
GAME_RESET = "game_reset"
NEW_ROUND = "new_round"
TIMER_UPDATE = "timer_update"
ROUND_ENDED = "round_ended"
CORRECT_GUESS = "correct_guess"
GAME_ENDED = "game_ended"
GAME_ENDED_EARLY = "game_ended_early"
CANVAS_UPDATED = "canvas_updated"
CHAT_MESSAGE = "chat_message"
CHAT_HISTORY = "chat_history"
ROOM_LIST_UPDATED = "room_list_updated"
ERROR = "error"

NOT_ENOUGH_PLAYERS = "not enough players"
SYSTEM_SENDER = {"name": "System"}


def serialize_player(room: "Room", player: "Participant") -> dict:
    return {
        "id": player.id,
        "name": player.name,
        "isHost": player.id == room.host_id,
    }


def serialize_players(room: "Room") -> list[dict]:
    return [serialize_player(room, p) for p in room.players.values()]


def serialize_room(room: "Room") -> dict:
    host = room.players.get(room.host_id)
    return {
        "id": room.id,
        "name": room.name,
        "playerCount": len(room.players),
        "maxPlayers": room.max_players,
        "status": room.status,
        "language": room.language,
        "host": host.name if host else "Unknown",
    }


def serialize_round(rnd: "Round", hide_word: bool = False) -> dict:
    word = rnd.current_word
    if hide_word and word:
        word = "_" * len(word)
    return {
        "currentRound": rnd.current_round,
        "currentPlayerIndex": rnd.current_player_index,
        "drawingPlayerId": rnd.drawing_player_id,
        "currentWord": word,
        "timer": rnd.timer,
        "phase": rnd.phase,
        "scores": dict(rnd.scores),
        "usedWords": [] if hide_word else list(rnd.used_words),
        "canvasData": rnd.canvas_data,
        "startTime": rnd.start_time,
    }


def serialize_message(msg: "ChatMessage") -> dict:
    return asdict(msg)


def error_payload(message: str) -> dict:
    return {"message": message}
