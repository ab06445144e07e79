from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service
from ..realtime import events

bp = Blueprint("rooms", __name__)


@bp.get("/rooms")
def list_rooms():
    return jsonify(service.room_list_payload())


@bp.get("/rooms/<room_id>")
def get_room(room_id: str):
    room = service.get_room(room_id)
    if not room:
        return jsonify({"error": "room_not_found"}), 404

    payload = events.serialize_room(room)
    payload["players"] = events.serialize_players(room)
    payload["createdAt"] = room.created_at
    return jsonify(payload)
