from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Optional

from .timers import TimerHandle


RoomStatus = Literal["waiting", "playing", "finished"]
RoundPhase = Literal["active", "ended"]
MessageType = Literal["player", "system"]

ROOM_STATUSES: tuple[str, ...] = ("waiting", "playing", "finished")


@dataclass
class Participant:
    id: str
    name: str
    # Non-owning back-reference, used for lookup only.
    room_id: str | None = None
    # Opaque outbound channel (the Socket.IO sid in production).
    channel: Any = None


@dataclass
class ChatMessage:
    player: dict
    message: str
    timestamp: int
    type: MessageType = "player"


@dataclass
class Round:
    start_time: int
    current_round: int = 0
    current_player_index: int = -1
    drawing_player_id: str | None = None
    current_word: str = ""
    timer: int = 60
    phase: RoundPhase = "active"
    scores: dict[str, int] = field(default_factory=dict)
    used_words: list[str] = field(default_factory=list)
    canvas_data: Any = None


@dataclass
class Room:
    id: str
    name: str
    language: str
    host_id: str
    created_at: int
    max_players: int = 8
    status: RoomStatus = "waiting"
    players: dict[str, Participant] = field(default_factory=dict)
    round: Optional[Round] = None
    chat_history: list[ChatMessage] = field(default_factory=list)
    # Revocable timer handles; at most one of each is armed.
    countdown: TimerHandle | None = None
    pending_round: TimerHandle | None = None
    # Bumped whenever armed timers must become inert.
    generation: int = 0
    closed: bool = False
