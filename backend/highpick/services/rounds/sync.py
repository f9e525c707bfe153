"""Apply pick writes replicated from offline-first client stores.

A client records picks locally and ships them later as a transaction of
change records::

    {"operation": "insert",
     "value": {"id": "<uuid>", "user_id": 3, "round_id": 12, "number": 27},
     "write_id": "<uuid>"}

Inserts go through the same ``PickValidator.submit_pick`` path as live
picks, with the change's ``id`` as the pick id so a re-sent change is
answered with its original acceptance.
"""
import uuid
from typing import Iterable, List, Optional

from .errors import StoreError


def _as_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _as_uuid(value):
    if value is None:
        return None
    try:
        return str(uuid.UUID(str(value)))
    except ValueError:
        return None


def apply_pick_changes(validator, changes: Iterable[dict], user_id: Optional[int] = None) -> List[dict]:
    """Apply each change and return one result entry per change.

    With ``user_id`` set, changes may only carry picks of that user.
    """
    results = []
    for change in changes or []:
        if not isinstance(change, dict) or not isinstance(change.get('value') or {}, dict):
            results.append({'id': None, 'write_id': None, 'accepted': False,
                            'reason': 'malformed_change', 'message': 'Each change must be an object'})
            continue
        value = change.get('value') or {}
        entry = {'id': value.get('id'), 'write_id': change.get('write_id')}
        if change.get('operation') != 'insert':
            entry.update(accepted=False, reason='unsupported_operation',
                         message='Picks can only be inserted')
            results.append(entry)
            continue

        pick_user_id = _as_int(value.get('user_id'))
        round_id = _as_int(value.get('round_id'))
        number = _as_int(value.get('number'))
        pick_id = _as_uuid(value.get('id'))
        if pick_user_id is None or round_id is None or number is None or pick_id is None:
            entry.update(accepted=False, reason='malformed_change',
                         message='id, user_id, round_id and number are required')
            results.append(entry)
            continue
        if user_id is not None and pick_user_id != user_id:
            entry.update(accepted=False, reason='user_mismatch',
                         message='Changes can only carry your own picks')
            results.append(entry)
            continue

        try:
            result = validator.submit_pick(
                pick_user_id, round_id, number,
                pick_id=pick_id,
                write_id=_as_uuid(change.get('write_id')),
            )
        except StoreError:
            entry.update(accepted=False, reason='store_unavailable',
                         message='Pick could not be stored, retry later')
            results.append(entry)
            continue
        entry.update(result.to_dict())
        results.append(entry)
    return results
