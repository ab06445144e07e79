from __future__ import annotations

from flask import Blueprint, jsonify

from ..game import service

bp = Blueprint("words", __name__)


@bp.get("/words/languages")
def get_languages():
    bank = service.word_bank()
    return jsonify({"languages": bank.languages(), "default": bank.default_language})
