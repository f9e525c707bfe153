from flask import current_app, request
from flask_login import current_user
from flask_socketio import emit
from highpick import socketio
from highpick.services.game_state import build_game_state
from highpick.services.rounds import get_pick_validator, get_round_machine, get_round_store
from highpick.services.rounds.errors import StoreError
from typing import Dict, Any

# ---- Presence tracking ----

_sid_to_user: Dict[str, Dict[str, Any]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def connected_user_ids() -> set:
    return {u['id'] for u in _sid_to_user.values()}


def _send_game_state() -> None:
    try:
        state = build_game_state(
            get_round_machine(),
            get_round_store(),
            connected_user_ids(),
            history_limit=int(current_app.config.get('ROUND_HISTORY_LIMIT', 10)),
        )
    except StoreError:
        emit('error', {'message': 'Failed to load game state'})
        return
    emit('game_state', state)


def _clean_username(raw) -> str:
    return str(raw or '').strip()[:64]


def handle_connect(auth=None):
    emit('connected', {'message': 'Connected to /ws'})
    # A session that already claimed a username over HTTP is joined right away
    if current_user and current_user.is_authenticated:
        _sid_to_user[_get_sid()] = current_user.to_dict()
    _send_game_state()


def handle_disconnect(reason=None):
    user = _sid_to_user.pop(_get_sid(), None)
    if not user:
        return
    # Other tabs of the same user keep them present
    if user['id'] not in connected_user_ids():
        socketio.emit('player_left', {'id': user['id']}, namespace=request.namespace)


def handle_join(data):
    username = _clean_username((data or {}).get('username'))
    if not username:
        emit('error', {'message': 'username is required'})
        return
    if _get_sid() in _sid_to_user:
        emit('error', {'message': 'Already joined'})
        return

    store = get_round_store()
    try:
        user = store.get_or_create_user(username)
        stats = store.get_player_stats(user['id'])
    except StoreError:
        emit('error', {'message': 'Failed to join game'})
        return

    _sid_to_user[_get_sid()] = user
    current_app.logger.info(f"[join] user={user['id']} username={user['username']}")
    socketio.emit('player_joined', {
        'id': user['id'],
        'username': user['username'],
        'wins': stats['wins'],
        'rounds_played': stats['rounds_played'],
        'connected': True,
    }, namespace=request.namespace)
    emit('joined', {'user': user})
    _send_game_state()


def handle_pick_number(data):
    user = _sid_to_user.get(_get_sid())
    if not user:
        emit('error', {'message': 'Not joined'})
        return
    try:
        round_id = int((data or {}).get('round_id'))
        number = int((data or {}).get('number'))
    except (TypeError, ValueError):
        emit('error', {'message': 'round_id and number must be integers'})
        return

    try:
        get_pick_validator().submit_pick(user['id'], round_id, number, to=_get_sid())
    except StoreError:
        emit('error', {'message': 'Failed to pick number'})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join', handle_join, namespace=namespace)
        socketio.on_event('pick_number', handle_pick_number, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
