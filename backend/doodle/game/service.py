from __future__ import annotations

import logging
import time
import uuid
from threading import RLock
from typing import Any

from ..config import Config
from ..realtime import events
from ..realtime.fanout import Broadcaster, NullBroadcaster
from .errors import NotFoundError, RoomFullError, ValidationError
from .models import ChatMessage, Participant, Room, RoomStatus, Round
from .timers import TimerHandle
from .words import WordBank, default_word_bank

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


_lock = RLock()
_rooms: dict[str, Room] = {}
_participants: dict[str, Participant] = {}
# Advisory only; room_statistics() reconciles it against _rooms.
_statistics: dict[str, int] = {"total": 0, "waiting": 0, "playing": 0, "finished": 0}

_broadcaster: Broadcaster = NullBroadcaster()
_scheduler: Any = None
_word_bank: WordBank | None = None

_TRANSITIONS: set[tuple[str, str]] = {
    ("waiting", "playing"),
    ("playing", "waiting"),
    ("playing", "finished"),
}


def configure(broadcaster: Broadcaster | None = None, scheduler: Any = None, word_bank: WordBank | None = None) -> None:
    """Wire the outbound channel, timer source and word bank."""
    global _broadcaster, _scheduler, _word_bank
    with _lock:
        if broadcaster is not None:
            _broadcaster = broadcaster
        if scheduler is not None:
            _scheduler = scheduler
        if word_bank is not None:
            _word_bank = word_bank


def reset_state() -> None:
    with _lock:
        for room in list(_rooms.values()):
            _cancel_timers(room)
            room.closed = True
        _rooms.clear()
        _participants.clear()
        for key in _statistics:
            _statistics[key] = 0


def word_bank() -> WordBank:
    return _word_bank or default_word_bank()


def _schedule(delay: float, callback, *args: Any, label: str = "") -> TimerHandle:
    if _scheduler is None:
        raise RuntimeError("game service has no scheduler configured")
    return _scheduler.call_later(delay, callback, *args, label=label)


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


def send_to(participant: Participant, event: str, payload: dict) -> None:
    if participant.channel is None:
        return
    try:
        _broadcaster.send(participant.channel, event, payload)
    except Exception:
        # One stale channel must not stop the rest of a broadcast.
        logger.warning("[fanout-failed] event=%s player=%s", event, participant.id, exc_info=True)


def broadcast_to_room(room: Room, event: str, payload: dict, exclude: str | None = None) -> None:
    for pid, player in list(room.players.items()):
        if pid == exclude:
            continue
        send_to(player, event, payload)


def broadcast_room_list() -> None:
    payload = room_list_payload()
    try:
        _broadcaster.send_all(events.ROOM_LIST_UPDATED, payload)
    except Exception:
        logger.warning("[fanout-failed] event=%s global", events.ROOM_LIST_UPDATED, exc_info=True)


# ---------------------------------------------------------------------------
# Participant registry
# ---------------------------------------------------------------------------


def register_participant(name: str, channel: Any = None, participant_id: str | None = None) -> Participant:
    n = (name or "").strip()
    if not n:
        raise ValidationError("Name is required")

    with _lock:
        pid = participant_id or f"player_{uuid.uuid4().hex[:12]}"
        while participant_id is None and pid in _participants:
            pid = f"player_{uuid.uuid4().hex[:12]}"
        player = Participant(id=pid, name=n, channel=channel)
        _participants[pid] = player
        return player


def get_participant(participant_id: str) -> Participant | None:
    with _lock:
        return _participants.get(participant_id)


def unregister_participant(participant_id: str) -> Participant | None:
    with _lock:
        return _participants.pop(participant_id, None)


def disconnect_participant(participant_id: str) -> Room | None:
    """Drop a participant, leaving their room first. Returns that room."""
    with _lock:
        player = _participants.get(participant_id)
        room = None
        if player is not None and player.room_id:
            room = _rooms.get(player.room_id)
            if room is not None:
                remove_member(room, participant_id)
        unregister_participant(participant_id)
        return room


# ---------------------------------------------------------------------------
# Room registry & statistics
# ---------------------------------------------------------------------------


def get_room(room_id: str) -> Room | None:
    with _lock:
        return _rooms.get(room_id)


def require_room(room_id: str | None) -> Room:
    room = get_room(room_id) if room_id else None
    if room is None:
        raise NotFoundError("Room not found")
    return room


def list_rooms() -> list[Room]:
    with _lock:
        return list(_rooms.values())


def room_statistics() -> dict[str, int]:
    """Counts of rooms by status, recomputed from the registry."""
    with _lock:
        stats = {"total": len(_rooms), "waiting": 0, "playing": 0, "finished": 0}
        for room in _rooms.values():
            stats[room.status] += 1
        if stats != _statistics:
            logger.warning("[stats-drift] cached=%s actual=%s", dict(_statistics), stats)
            _statistics.update(stats)
        return dict(stats)


def cached_statistics() -> dict[str, int]:
    with _lock:
        return dict(_statistics)


def list_available_rooms() -> list[dict]:
    with _lock:
        for room in list(_rooms.values()):
            if not room.players:
                _teardown(room, announce=False)
        return [events.serialize_room(r) for r in _rooms.values() if r.status == "waiting"]


def room_list_payload() -> dict:
    with _lock:
        return {"rooms": list_available_rooms(), "statistics": room_statistics()}


def _set_status(room: Room, status: RoomStatus) -> None:
    old = room.status
    if old == status:
        return
    if (old, status) not in _TRANSITIONS:
        raise RuntimeError(f"illegal room status change {old} -> {status}")
    room.status = status
    if room.id in _rooms:
        if _statistics.get(old, 0) > 0:
            _statistics[old] -= 1
        _statistics[status] += 1
    logger.info("[room-status] room=%s %s -> %s", room.id, old, status)


# ---------------------------------------------------------------------------
# Timers
# ---------------------------------------------------------------------------


def _cancel_timers(room: Room) -> None:
    for attr in ("countdown", "pending_round"):
        handle = getattr(room, attr)
        if handle is not None:
            handle.cancel()
            setattr(room, attr, None)
    # Anything already in flight now sees a stale generation.
    room.generation += 1


def _live_room(room_id: str, generation: int) -> Room | None:
    room = _rooms.get(room_id)
    if room is None or room.closed or room.generation != generation:
        logger.debug("[timer-abort] room=%s generation=%s stale", room_id, generation)
        return None
    if room.status != "playing" or room.round is None:
        logger.debug("[timer-abort] room=%s status=%s no active round", room_id, room.status)
        return None
    return room


def _arm_countdown(room: Room) -> None:
    room.countdown = _schedule(
        Config.TICK_INTERVAL_SEC,
        _on_tick,
        room.id,
        room.generation,
        label=f"countdown:{room.id}",
    )


def _schedule_next_round(room: Room) -> None:
    room.pending_round = _schedule(
        Config.NEXT_ROUND_DELAY_SEC,
        _on_next_round,
        room.id,
        room.generation,
        label=f"next-round:{room.id}",
    )


def _on_tick(room_id: str, generation: int) -> None:
    with _lock:
        room = _live_room(room_id, generation)
        if room is None:
            return
        rnd = room.round
        if rnd.phase != "active":
            room.countdown = None
            return

        rnd.timer = max(0, rnd.timer - Config.TICK_INTERVAL_SEC)
        broadcast_to_room(room, events.TIMER_UPDATE, {"timer": rnd.timer})

        if rnd.timer <= 0:
            room.countdown = None
            end_round(room)
            return

        _arm_countdown(room)


def _on_next_round(room_id: str, generation: int) -> None:
    with _lock:
        room = _live_room(room_id, generation)
        if room is None:
            return
        room.pending_round = None
        start_new_round(room)


# ---------------------------------------------------------------------------
# Chat
# ---------------------------------------------------------------------------


def add_chat_message(room: Room, msg: ChatMessage) -> None:
    with _lock:
        room.chat_history.append(msg)
        limit = Config.CHAT_HISTORY_LIMIT
        if len(room.chat_history) > limit:
            room.chat_history = room.chat_history[-limit:]


def get_chat_history(room: Room) -> list[dict]:
    with _lock:
        return [events.serialize_message(m) for m in room.chat_history]


def _post_system_message(room: Room, text: str) -> None:
    msg = ChatMessage(player=dict(events.SYSTEM_SENDER), message=text, timestamp=now_ms(), type="system")
    add_chat_message(room, msg)
    broadcast_to_room(room, events.CHAT_MESSAGE, events.serialize_message(msg))


def normalize_guess(text: str | None) -> str:
    return (text or "").strip().casefold()


def send_chat(room: Room, participant_id: str, text: str) -> ChatMessage | None:
    """Relay a chat line to the room; while playing it doubles as a guess."""
    with _lock:
        player = room.players.get(participant_id)
        if player is None:
            return None

        rnd = room.round
        is_drawer = rnd is not None and rnd.drawing_player_id == participant_id

        msg = ChatMessage(
            player=events.serialize_player(room, player),
            message=text,
            timestamp=now_ms(),
            type="player",
        )
        add_chat_message(room, msg)
        broadcast_to_room(room, events.CHAT_MESSAGE, events.serialize_message(msg))

        if room.status == "playing" and not is_drawer:
            submit_guess(room, participant_id, text)
        return msg


# ---------------------------------------------------------------------------
# Membership
# ---------------------------------------------------------------------------


def create_room(host: Participant, name: str | None = None, language: str | None = None) -> Room:
    if host is None or not (host.name or "").strip():
        raise ValidationError("Name is required")

    with _lock:
        room_id = uuid.uuid4().hex
        while room_id in _rooms:
            room_id = uuid.uuid4().hex

        tag = (language or "").strip() or Config.DEFAULT_LANGUAGE
        room = Room(
            id=room_id,
            name=(name or "").strip() or f"{host.name}'s room",
            language=tag,
            host_id=host.id,
            created_at=now_ms(),
            max_players=Config.MAX_PLAYERS,
        )
        _rooms[room_id] = room
        _statistics["total"] += 1
        _statistics["waiting"] += 1

        add_member(room, host)
        logger.info("[room-created] room=%s host=%s language=%s", room.id, host.id, room.language)

        broadcast_room_list()
        return room


def add_member(room: Room, participant: Participant) -> None:
    with _lock:
        if room.closed or room.id not in _rooms:
            raise NotFoundError("Room not found")
        if participant.id in room.players:
            return
        if len(room.players) >= room.max_players:
            raise RoomFullError()

        room.players[participant.id] = participant
        participant.room_id = room.id
        if room.round is not None:
            room.round.scores.setdefault(participant.id, 0)

        broadcast_to_room(
            room,
            events.PLAYER_JOINED,
            {
                "player": events.serialize_player(room, participant),
                "players": events.serialize_players(room),
                "host": room.host_id,
            },
        )


def join_room(room_id: str | None, participant: Participant) -> Room:
    with _lock:
        room = require_room(room_id)
        add_member(room, participant)
        logger.info("[room-joined] room=%s player=%s size=%d", room.id, participant.id, len(room.players))
        broadcast_room_list()
        return room


def enter_room(
    room_id: str | None, name: str, channel: Any = None, previous_id: str | None = None
) -> tuple[Room, Participant]:
    """Register a new identity and join it to a room.

    The previous identity leaves its room only after the target room has
    been checked; a rejected join leaves it untouched.
    """
    with _lock:
        room = require_room(room_id)
        if previous_id is not None and previous_id in room.players:
            raise ValidationError("Already in this room")
        if len(room.players) >= room.max_players:
            raise RoomFullError()

        player = register_participant(name, channel=channel)
        if previous_id is not None:
            disconnect_participant(previous_id)
        return join_room(room.id, player), player


def remove_member(room: Room, participant_id: str) -> None:
    with _lock:
        if participant_id not in room.players:
            return
        position = list(room.players).index(participant_id)
        player = room.players.pop(participant_id)
        rnd = room.round
        # Keep the rotation pointing at the current drawer's successor.
        if rnd is not None and position <= rnd.current_player_index:
            rnd.current_player_index -= 1
        if player.room_id == room.id:
            player.room_id = None
        logger.info("[room-left] room=%s player=%s size=%d", room.id, participant_id, len(room.players))

        _post_system_message(room, f"{player.name} left the game")

        if room.host_id == participant_id and room.players:
            room.host_id = next(iter(room.players))
            _post_system_message(room, f"{room.players[room.host_id].name} is now the host")

        broadcast_to_room(
            room,
            events.PLAYER_LEFT,
            {
                "playerId": participant_id,
                "players": events.serialize_players(room),
                "host": room.host_id,
            },
        )

        _enforce_invariants(room, departed_id=participant_id)


def _enforce_invariants(room: Room, departed_id: str | None = None) -> None:
    if not room.players:
        _teardown(room)
        return

    if room.status == "playing" and len(room.players) == 1:
        end_game_insufficient_players(room)
        return

    rnd = room.round
    if (
        departed_id is not None
        and room.status == "playing"
        and rnd is not None
        and rnd.phase == "active"
        and rnd.drawing_player_id == departed_id
    ):
        end_round(room)

    broadcast_room_list()


def _teardown(room: Room, announce: bool = True) -> None:
    _cancel_timers(room)
    room.closed = True
    room.round = None
    room.chat_history = []
    for player in room.players.values():
        player.room_id = None
    room.players.clear()

    if _rooms.pop(room.id, None) is not None:
        _statistics["total"] = max(0, _statistics["total"] - 1)
        if _statistics.get(room.status, 0) > 0:
            _statistics[room.status] -= 1
    logger.info("[room-removed] room=%s", room.id)

    if announce:
        broadcast_room_list()


# ---------------------------------------------------------------------------
# Game lifecycle
# ---------------------------------------------------------------------------


def start_game(room: Room, requester_id: str) -> bool:
    with _lock:
        if room.status != "waiting" or len(room.players) < 2 or requester_id != room.host_id:
            return False

        _set_status(room, "playing")
        room.round = Round(
            start_time=now_ms(),
            timer=Config.ROUND_DURATION_SEC,
            scores={pid: 0 for pid in room.players},
        )
        logger.info("[game-started] room=%s players=%d", room.id, len(room.players))

        broadcast_to_room(room, events.GAME_STARTED, {"gameState": events.serialize_round(room.round)})
        start_new_round(room)
        broadcast_room_list()
        return True


def reset_game(room: Room, requester_id: str) -> bool:
    with _lock:
        if requester_id != room.host_id or room.status == "finished":
            return False

        _cancel_timers(room)
        _set_status(room, "waiting")
        room.round = None
        logger.info("[game-reset] room=%s", room.id)

        broadcast_to_room(room, events.GAME_RESET, {"players": events.serialize_players(room)})
        broadcast_room_list()
        return True


def start_new_round(room: Room) -> None:
    with _lock:
        rnd = room.round
        if rnd is None or room.status != "playing" or not room.players:
            return

        _cancel_timers(room)

        order = list(room.players.keys())
        rnd.current_player_index = (rnd.current_player_index + 1) % len(order)
        rnd.drawing_player_id = order[rnd.current_player_index]
        rnd.current_round += 1

        word = word_bank().pick_word(room.language, rnd.used_words)
        rnd.used_words.append(word)
        rnd.current_word = word
        rnd.timer = Config.ROUND_DURATION_SEC
        rnd.canvas_data = None
        rnd.phase = "active"
        rnd.start_time = now_ms()
        logger.info(
            "[round-started] room=%s round=%d drawer=%s",
            room.id,
            rnd.current_round,
            rnd.drawing_player_id,
        )

        for pid, player in list(room.players.items()):
            hide = not Config.SHARE_WORD_WITH_GUESSERS and pid != rnd.drawing_player_id
            game_state = events.serialize_round(rnd, hide_word=hide)
            send_to(
                player,
                events.NEW_ROUND,
                {
                    "drawingPlayerId": rnd.drawing_player_id,
                    "currentWord": game_state["currentWord"],
                    "gameState": game_state,
                },
            )

        _arm_countdown(room)


def end_round(room: Room) -> None:
    with _lock:
        rnd = room.round
        if rnd is None or room.status != "playing" or rnd.phase != "active":
            return

        rnd.phase = "ended"
        _cancel_timers(room)
        logger.info("[round-ended] room=%s round=%d", room.id, rnd.current_round)

        broadcast_to_room(room, events.ROUND_ENDED, {"word": rnd.current_word})
        _schedule_next_round(room)


def submit_guess(room: Room, participant_id: str, text: str) -> bool:
    """Score a guess. Returns True when it matched the secret word."""
    with _lock:
        rnd = room.round
        if room.status != "playing" or rnd is None or rnd.phase != "active":
            return False
        if participant_id == rnd.drawing_player_id:
            return False

        guesser = room.players.get(participant_id)
        drawer = room.players.get(rnd.drawing_player_id) if rnd.drawing_player_id else None
        if guesser is None or drawer is None:
            return False

        if normalize_guess(text) != normalize_guess(rnd.current_word):
            return False

        time_bonus = (rnd.timer // 10) * 10
        drawer_points = 40 + time_bonus
        guesser_points = 30 + time_bonus
        rnd.scores[drawer.id] = rnd.scores.get(drawer.id, 0) + drawer_points
        rnd.scores[guesser.id] = rnd.scores.get(guesser.id, 0) + guesser_points

        rnd.phase = "ended"
        _cancel_timers(room)
        logger.info(
            "[correct-guess] room=%s guesser=%s drawer=%s bonus=%d",
            room.id,
            guesser.id,
            drawer.id,
            time_bonus,
        )

        broadcast_to_room(
            room,
            events.CORRECT_GUESS,
            {
                "guessingPlayer": events.serialize_player(room, guesser),
                "drawingPlayer": events.serialize_player(room, drawer),
                "guessingPlayerPoints": guesser_points,
                "drawingPlayerPoints": drawer_points,
                "word": rnd.current_word,
                "scores": dict(rnd.scores),
            },
        )

        check_for_winner(room)

        if room.status == "playing" and room.round is not None:
            _schedule_next_round(room)
        return True


def check_for_winner(room: Room) -> str | None:
    """Finish the game if someone reached the winning score.

    Ties go to the earliest entry in the score table, which follows the
    roster order at game start with later joiners appended.
    """
    with _lock:
        rnd = room.round
        if rnd is None or room.status != "playing":
            return None

        winner_id = None
        for pid, score in rnd.scores.items():
            if score >= Config.WINNING_SCORE and pid in room.players:
                winner_id = pid
                break

        if winner_id is not None:
            winner = room.players[winner_id]
            score = rnd.scores[winner_id]
            scores = dict(rnd.scores)

            _cancel_timers(room)
            _set_status(room, "finished")
            room.round = None
            logger.info("[game-finished] room=%s winner=%s score=%d", room.id, winner_id, score)

            _post_system_message(room, f"🎉 {winner.name} won the game with {score} points! 🎉")
            broadcast_to_room(
                room,
                events.GAME_ENDED,
                {
                    "winner": events.serialize_player(room, winner),
                    "winnerScore": score,
                    "scores": scores,
                },
            )
            broadcast_room_list()
            return winner_id

        if len(room.players) <= 1:
            end_game_insufficient_players(room)
        return None


def end_game_insufficient_players(room: Room) -> None:
    with _lock:
        if room.status != "playing":
            return

        _cancel_timers(room)

        remaining = None
        if len(room.players) == 1:
            remaining = next(iter(room.players.values()))

        _post_system_message(room, "Game ended - not enough players to continue")
        broadcast_to_room(
            room,
            events.GAME_ENDED_EARLY,
            {
                "reason": events.NOT_ENOUGH_PLAYERS,
                "remainingPlayer": events.serialize_player(room, remaining) if remaining else None,
                "message": (
                    f"Game ended. Only {remaining.name} remains."
                    if remaining
                    else "Game ended. All players have left."
                ),
            },
        )

        _set_status(room, "finished")
        room.round = None
        logger.info("[game-finished] room=%s reason=not_enough_players", room.id)
        broadcast_room_list()


# ---------------------------------------------------------------------------
# Canvas
# ---------------------------------------------------------------------------


def update_canvas(room: Room, participant_id: str, canvas_data: Any) -> bool:
    with _lock:
        rnd = room.round
        if room.status != "playing" or rnd is None or participant_id != rnd.drawing_player_id:
            return False

        rnd.canvas_data = canvas_data
        broadcast_to_room(room, events.CANVAS_UPDATED, {"canvasData": canvas_data}, exclude=participant_id)
        return True


def clear_canvas(room: Room, participant_id: str) -> bool:
    return update_canvas(room, participant_id, None)


def round_snapshot(room: Room, viewer_id: str | None = None) -> dict | None:
    with _lock:
        rnd = room.round
        if rnd is None:
            return None
        hide = not Config.SHARE_WORD_WITH_GUESSERS and viewer_id != rnd.drawing_player_id
        return events.serialize_round(rnd, hide_word=hide)
