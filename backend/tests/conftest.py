import os
import sys

import pytest

# Ensure the backend root (containing the `doodle` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

os.environ.setdefault('SOCKETIO_ASYNC_MODE', 'threading')

from doodle.config import Config  # noqa: E402
from doodle.game import service  # noqa: E402
from doodle.game.timers import TimerHandle  # noqa: E402
from doodle.game.words import WordBank  # noqa: E402


TEST_WORDS = {
    'en': ['apple', 'banana', 'cherry', 'dragon fruit'],
    'sv': ['äpple', 'banan'],
}


class RecordingBroadcaster:
    """Collects outbound events instead of delivering them."""

    def __init__(self):
        self.sent = []
        self.global_sent = []
        self.broken_channels = set()

    def send(self, channel, event, payload):
        if channel in self.broken_channels:
            raise ConnectionError(f'channel {channel} is gone')
        self.sent.append((channel, event, payload))

    def send_all(self, event, payload):
        self.global_sent.append((event, payload))

    def events_for(self, channel, event=None):
        return [p for (c, e, p) in self.sent if c == channel and (event is None or e == event)]

    def names_for(self, channel):
        return [e for (c, e, _) in self.sent if c == channel]

    def clear(self):
        self.sent.clear()
        self.global_sent.clear()


class ManualScheduler:
    """Virtual clock; callbacks run only when the test advances time."""

    def __init__(self):
        self.now = 0.0
        self._seq = 0
        self._pending = []

    def call_later(self, delay, callback, *args, label=''):
        handle = TimerHandle(delay, label=label)
        self._seq += 1
        self._pending.append((self.now + delay, self._seq, handle, callback, args))
        return handle

    def active(self):
        return [h for (_, _, h, _, _) in self._pending if h.active]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [entry for entry in self._pending if entry[0] <= target]
            if not due:
                break
            entry = min(due, key=lambda e: (e[0], e[1]))
            self._pending.remove(entry)
            self.now = entry[0]
            handle = entry[2]
            if handle.cancelled:
                continue
            handle.fired = True
            entry[3](*entry[4])
        self.now = target


@pytest.fixture()
def broadcaster():
    return RecordingBroadcaster()


@pytest.fixture()
def scheduler():
    return ManualScheduler()


@pytest.fixture(autouse=True)
def game_service(broadcaster, scheduler):
    service.reset_state()
    service.configure(
        broadcaster=broadcaster,
        scheduler=scheduler,
        word_bank=WordBank(TEST_WORDS, default_language='en'),
    )
    yield service
    service.reset_state()


@pytest.fixture()
def make_room():
    """Create a room hosted by the first name, joined by the rest."""

    def _make(*names, language='en'):
        players = []
        for name in names:
            player = service.register_participant(name)
            player.channel = player.id
            players.append(player)
        room = service.create_room(players[0], f"{names[0]}'s table", language)
        for player in players[1:]:
            service.join_room(room.id, player)
        return room, players

    return _make


@pytest.fixture()
def playing_room(make_room):
    room, players = make_room('Alice', 'Bob', 'Carol')
    assert service.start_game(room, players[0].id)
    return room, players


@pytest.fixture()
def config_override(monkeypatch):
    def _set(**values):
        for key, value in values.items():
            monkeypatch.setattr(Config, key, value)

    return _set
