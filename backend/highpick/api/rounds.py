from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required, current_user
from highpick.services.game_state import build_leaderboard
from highpick.services.rounds import (
    RejectReason,
    get_pick_validator,
    get_round_machine,
    get_round_store,
)
from highpick.services.rounds.errors import StoreError
from highpick.services.rounds.sync import apply_pick_changes
from highpick.socketio_events import connected_user_ids


rounds = Blueprint('rounds', __name__)

_REJECT_STATUS = {
    RejectReason.INVALID_ROUND: 400,
    RejectReason.INVALID_NUMBER: 400,
    RejectReason.ROUND_NOT_ACTIVE: 409,
    RejectReason.DUPLICATE_PICK: 409,
}


@rounds.errorhandler(StoreError)
def handle_store_error(exc):
    current_app.logger.error(f"[api-store-error] {request.path}: {exc}")
    return jsonify({'error': 'Game storage is unavailable, try again'}), 503


@rounds.route('/game', methods=['GET'])
def get_game():
    """Current round snapshot plus the leaderboard."""
    return jsonify({
        'current_round': get_round_machine().snapshot(),
        'leaderboard': build_leaderboard(get_round_store(), connected_user_ids()),
    })


@rounds.route('/rounds', methods=['GET'])
def get_rounds():
    default_limit = int(current_app.config.get('ROUND_HISTORY_LIMIT', 10))
    limit = request.args.get('limit', default_limit, type=int)
    limit = max(1, min(limit, 100))
    return jsonify(get_round_store().get_round_history(limit))


@rounds.route('/rounds/<int:round_id>/picks', methods=['GET'])
def get_round_picks(round_id):
    store = get_round_store()
    if store.get_round(round_id) is None:
        return jsonify({'error': 'Round not found'}), 404
    return jsonify(store.get_picks(round_id))


@rounds.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    return jsonify(build_leaderboard(get_round_store(), connected_user_ids()))


@rounds.route('/picks', methods=['POST'])
@login_required
def submit_pick():
    data = request.get_json(silent=True) or {}
    try:
        round_id = int(data.get('round_id'))
        number = int(data.get('number'))
    except (TypeError, ValueError):
        return jsonify({'error': 'round_id and number must be integers'}), 400

    result = get_pick_validator().submit_pick(current_user.id, round_id, number)
    if result.accepted:
        return jsonify(result.to_dict()), 201
    return jsonify({'error': result.message, **result.to_dict()}), _REJECT_STATUS[result.reason]


@rounds.route('/picks/sync', methods=['POST'])
@login_required
def sync_picks():
    """Apply a transaction of pick changes replicated from the session user's client store."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'error': 'Expected a JSON object'}), 400
    changes = data.get('changes')
    if not isinstance(changes, list):
        return jsonify({'error': 'changes must be a list'}), 400
    results = apply_pick_changes(get_pick_validator(), changes, user_id=current_user.id)
    return jsonify({'id': data.get('id'), 'results': results})
