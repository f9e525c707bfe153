from flask import Blueprint, request, jsonify, current_app
from flask_login import login_user, logout_user, login_required, current_user
from highpick import db
from highpick.models import User
from highpick.services.rounds import get_round_store
from highpick.services.rounds.errors import StoreError

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the highpick game server!'})


@main.route('/api/username', methods=['GET'])
def get_username():
    if not current_user.is_authenticated:
        return jsonify({'username': None})
    try:
        stats = get_round_store().get_player_stats(current_user.id)
    except StoreError:
        return jsonify({'error': 'Failed to load player stats'}), 503
    return jsonify({
        'username': current_user.username,
        'user_id': current_user.id,
        'wins': stats['wins'],
        'rounds_played': stats['rounds_played'],
    })


@main.route('/api/username', methods=['POST'])
def set_username():
    """Claim a username for this session, creating the user on first use."""
    data = request.get_json(silent=True) or {}
    username = str(data.get('username') or '').strip()
    if not username:
        return jsonify({'error': 'Missing username'}), 400
    if len(username) > 64:
        return jsonify({'error': 'Username is too long'}), 400

    try:
        user = get_round_store().get_or_create_user(username)
    except StoreError:
        return jsonify({'error': 'Failed to set username'}), 503
    login_user(db.session.get(User, user['id']), remember=True)
    current_app.logger.info(f"[username] user={user['id']} username={user['username']}")
    return jsonify({'success': True, 'user': user})


@main.route('/api/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})
