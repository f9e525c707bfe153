"""Broadcast gateway: logical round events onto the Socket.IO transport."""

NEW_ROUND = 'new_round'
NUMBER_REVEALED = 'number_revealed'
ROUND_ENDED = 'round_ended'
NUMBER_PICKED = 'number_picked'
PICK_REJECTED = 'pick_rejected'


class SocketIOBroadcaster:
    def __init__(self, socketio, namespace='/ws'):
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, event, payload, to=None):
        # socketio.emit works outside of a request context, so timers can call it
        self.socketio.emit(event, payload, to=to, namespace=self.namespace)

    def new_round(self, round_state: dict) -> None:
        self.emit(NEW_ROUND, {'round': round_state})

    def number_revealed(self, round_id: int, number: int, display_index: int) -> None:
        self.emit(NUMBER_REVEALED, {'round_id': round_id, 'number': number, 'display_index': display_index})

    def round_ended(self, round_state: dict) -> None:
        self.emit(ROUND_ENDED, {'round': round_state})

    def pick_accepted(self, pick: dict) -> None:
        self.emit(NUMBER_PICKED, {
            'round_id': pick['round_id'],
            'user_id': pick['user_id'],
            'username': pick.get('username'),
            'number': pick['number'],
        })

    def pick_rejected(self, round_id, user_id, reason, message, to=None) -> None:
        self.emit(PICK_REJECTED, {
            'round_id': round_id,
            'user_id': user_id,
            'reason': reason,
            'message': message,
        }, to=to)
