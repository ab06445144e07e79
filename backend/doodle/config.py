import os


class Config:
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev")

    # CORS
    CORS_ORIGINS = os.environ.get("CORS_ORIGINS", "*")

    # Reverse proxy / IP headers
    TRUST_PROXY_HEADERS = os.environ.get("TRUST_PROXY_HEADERS", "1") == "1"

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # Rooms
    MAX_PLAYERS = int(os.environ.get("MAX_PLAYERS", "8"))
    CHAT_HISTORY_LIMIT = int(os.environ.get("CHAT_HISTORY_LIMIT", "100"))
    MAX_NAME_LENGTH = int(os.environ.get("MAX_NAME_LENGTH", "24"))
    MAX_MESSAGE_LENGTH = int(os.environ.get("MAX_MESSAGE_LENGTH", "200"))

    # Game
    ROUND_DURATION_SEC = int(os.environ.get("ROUND_DURATION_SEC", "60"))
    WINNING_SCORE = int(os.environ.get("WINNING_SCORE", "1000"))
    NEXT_ROUND_DELAY_SEC = int(os.environ.get("NEXT_ROUND_DELAY_SEC", "3"))
    TICK_INTERVAL_SEC = int(os.environ.get("TICK_INTERVAL_SEC", "1"))
    DEFAULT_LANGUAGE = os.environ.get("DEFAULT_LANGUAGE", "en")
    # Guessers receive the secret word in new_round; clients hide it.
    SHARE_WORD_WITH_GUESSERS = os.environ.get("SHARE_WORD_WITH_GUESSERS", "1") == "1"
