"""Round domain services: the round lifecycle, number reveals and picks.

Routes and socket handlers reach these through ``get_round_machine`` and
``get_pick_validator`` so transport code stays out of the game mechanics.
Each app gets its own machine; nothing here is process-wide.
"""
from flask import current_app

from highpick import socketio
from .events import SocketIOBroadcaster
from .machine import RoundSettings, RoundStateMachine
from .numbers import next_number
from .picks import PickResult, PickValidator, RejectReason
from .store import RoundStore

EXTENSION_KEY = 'highpick.rounds'


def init_round_machine(app, store=None, broadcaster=None, number_source=None):
    """Build the round machine, its store and pick validator for ``app``.

    Replaces any machine previously attached to the app (after stopping it).
    """
    previous = app.extensions.get(EXTENSION_KEY)
    if previous:
        previous['machine'].stop()

    store = store or RoundStore(app)
    machine = RoundStateMachine(
        store,
        broadcaster or SocketIOBroadcaster(socketio),
        RoundSettings.from_config(app.config),
        spawn=socketio.start_background_task,
        sleep=socketio.sleep,
        logger=app.logger,
        number_source=number_source or next_number,
    )
    app.extensions[EXTENSION_KEY] = {
        'machine': machine,
        'validator': PickValidator(machine),
        'store': store,
    }
    return machine


def _services(app=None):
    return (app or current_app).extensions[EXTENSION_KEY]


def get_round_machine(app=None) -> RoundStateMachine:
    return _services(app)['machine']


def get_pick_validator(app=None) -> PickValidator:
    return _services(app)['validator']


def get_round_store(app=None) -> RoundStore:
    return _services(app)['store']


__all__ = [
    'init_round_machine',
    'get_round_machine',
    'get_pick_validator',
    'get_round_store',
    'PickResult',
    'PickValidator',
    'RejectReason',
    'RoundSettings',
    'RoundStateMachine',
    'RoundStore',
]
