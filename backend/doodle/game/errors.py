from __future__ import annotations


class GameError(Exception):
    """Base error reported back to the calling connection only."""

    default_message = "Request failed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(GameError):
    default_message = "Invalid request"


class NotFoundError(GameError):
    default_message = "Room not found"


class AuthorizationError(GameError):
    default_message = "Only the host can do that"


class CapacityError(GameError):
    default_message = "Room is at capacity"


class RoomFullError(CapacityError):
    default_message = "Room is full"
