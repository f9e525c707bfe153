import os
import sys
import threading
import time
import pytest

# Ensure the backend root (containing the `highpick` package) is on sys.path
CURRENT_DIR = os.path.dirname(__file__)
BACKEND_ROOT = os.path.abspath(os.path.join(CURRENT_DIR, '..'))
if BACKEND_ROOT not in sys.path:
    sys.path.insert(0, BACKEND_ROOT)

from highpick import create_app, db, socketio
from highpick.services.rounds import RoundSettings, get_round_machine, init_round_machine


class TestConfig:
    TESTING = True
    SECRET_KEY = os.environ.get('SECRET_KEY', 'test-secret')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    WTF_CSRF_ENABLED = False
    # Rounds scaled down so a full round takes about a second
    ROUND_DURATION_SEC = 1.0
    REVEAL_INTERVAL_SEC = 0.05
    NUMBERS_PER_ROUND = 10
    ROUND_COOLDOWN_SEC = 0.3
    ROUND_START_RETRY_SEC = 0.05
    ROUND_HISTORY_LIMIT = 10
    GAME_AUTOSTART = False


def wait_until(predicate, timeout=5.0, interval=0.01):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(interval)
    return predicate()


class RecordingBroadcaster:
    """Collects round events as (monotonic time, name, payload)."""

    def __init__(self):
        self.events = []
        self._lock = threading.Lock()

    def _record(self, name, payload):
        with self._lock:
            self.events.append((time.monotonic(), name, payload))

    def new_round(self, round_state):
        self._record('new_round', round_state)

    def number_revealed(self, round_id, number, display_index):
        self._record('number_revealed', {'round_id': round_id, 'number': number, 'display_index': display_index})

    def round_ended(self, round_state):
        self._record('round_ended', round_state)

    def pick_accepted(self, pick):
        self._record('number_picked', dict(pick))

    def pick_rejected(self, round_id, user_id, reason, message, to=None):
        self._record('pick_rejected', {'round_id': round_id, 'user_id': user_id, 'reason': reason, 'to': to})

    def snapshot(self):
        with self._lock:
            return list(self.events)

    def of(self, name, round_id=None):
        found = []
        for _, n, payload in self.snapshot():
            if n != name:
                continue
            rid = payload['id'] if n in ('new_round', 'round_ended') else payload['round_id']
            if round_id is None or rid == round_id:
                found.append(payload)
        return found

    def wait_for(self, name, count=1, round_id=None, timeout=5.0):
        assert wait_until(lambda: len(self.of(name, round_id)) >= count, timeout), (
            f"expected {count} {name} events, got {self.of(name, round_id)}"
        )
        return self.of(name, round_id)


@pytest.fixture()
def flask_app(tmp_path):
    class _Config(TestConfig):
        # A file database so background timers and the test thread share data
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'highpick.db'}"

    application = create_app(_Config)
    with application.app_context():
        # Ensure models are imported so tables are created
        import highpick.models  # noqa: F401
        db.create_all()
        yield application
        get_round_machine(application).stop()
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()


@pytest.fixture()
def sio_client(flask_app, client):
    test_client = socketio.test_client(
        flask_app,
        flask_test_client=client,
        namespace='/ws'
    )
    yield test_client
    try:
        test_client.disconnect(namespace='/ws')
    except Exception:
        pass


@pytest.fixture()
def recorder():
    return RecordingBroadcaster()


@pytest.fixture()
def make_machine(flask_app, recorder):
    """Build a round machine for the app that reports to ``recorder``.

    Keyword arguments override the round settings from the test config.
    """
    def _make(store=None, number_source=None, **settings):
        machine = init_round_machine(flask_app, store=store, broadcaster=recorder, number_source=number_source)
        if settings:
            base = vars(RoundSettings.from_config(flask_app.config))
            base.update(settings)
            machine.settings = RoundSettings(**base)
        return machine
    return _make


@pytest.fixture()
def machine(make_machine):
    return make_machine()


@pytest.fixture()
def steady_round(make_machine, recorder):
    """An active round whose ten numbers are all revealed and that never ends on its own."""
    m = make_machine(round_duration=60)
    state = m.start()
    recorder.wait_for('number_revealed', count=10, round_id=state['id'])
    return m, m.snapshot()
