import threading
from contextlib import nullcontext
from enum import Enum
from typing import Dict, Optional, Tuple

from .errors import PickConflict, StoreError


class RejectReason(str, Enum):
    INVALID_ROUND = 'invalid_round'
    ROUND_NOT_ACTIVE = 'round_not_active'
    INVALID_NUMBER = 'invalid_number'
    DUPLICATE_PICK = 'duplicate_pick'


REJECT_MESSAGES = {
    RejectReason.INVALID_ROUND: 'Invalid round',
    RejectReason.ROUND_NOT_ACTIVE: 'Round is over',
    RejectReason.INVALID_NUMBER: 'Pick the newest number',
    RejectReason.DUPLICATE_PICK: 'Already picked a number in this round',
}


class PickResult:
    def __init__(self, accepted: bool, pick: Optional[dict] = None,
                 reason: Optional[RejectReason] = None, replayed: bool = False):
        self.accepted = accepted
        self.pick = pick
        self.reason = reason
        # True when a retry carried the id of a pick that was already accepted
        self.replayed = replayed

    @classmethod
    def ok(cls, pick, replayed=False):
        return cls(True, pick=pick, replayed=replayed)

    @classmethod
    def rejected(cls, reason):
        return cls(False, reason=reason)

    @property
    def message(self):
        return REJECT_MESSAGES.get(self.reason) if self.reason else None

    def to_dict(self):
        if self.accepted:
            return {'accepted': True, 'pick': self.pick}
        return {'accepted': False, 'reason': self.reason.value, 'message': self.message}

    def __repr__(self):
        if self.accepted:
            return f"<PickResult accepted pick={self.pick and self.pick.get('id')}>"
        return f"<PickResult rejected reason={self.reason.value}>"


class PickValidator:
    """Single entry point for pick submissions.

    Live socket handlers, the HTTP route and the replicated change processor
    all go through ``submit_pick``. Submissions for the same (user, round)
    are serialised; the store's unique constraint backs that up.
    """

    def __init__(self, machine):
        self.machine = machine
        self._locks: Dict[Tuple[int, int], threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def _key_lock(self, user_id: int, round_id: int):
        """Lock for (user, round), or a no-op context for any round but the current one.

        Picks for other rounds are rejected on admission, so they never get a
        lock entry of their own.
        """
        if round_id != self.machine.current_round_id():
            return nullcontext()
        with self._locks_guard:
            lock = self._locks.get((user_id, round_id))
            if lock is None:
                for key in [k for k in self._locks if k[1] != round_id]:
                    del self._locks[key]
                lock = self._locks[(user_id, round_id)] = threading.Lock()
            return lock

    def submit_pick(self, user_id: int, round_id: int, number: int,
                    pick_id: Optional[str] = None, write_id: Optional[str] = None,
                    to=None) -> PickResult:
        """Validate and record a pick.

        ``to`` addresses the rejection event to one socket. Store failures
        raise ``StoreError`` after the submission has been released.
        """
        with self._key_lock(user_id, round_id):
            result = self._submit_locked(user_id, round_id, number, pick_id, write_id)
        if not result.accepted:
            self.machine.broadcaster.pick_rejected(round_id, user_id, result.reason.value, result.message, to=to)
            self.machine.logger.info(
                f"[pick-rejected] round={round_id} user={user_id} number={number} reason={result.reason.value}"
            )
        return result

    def _submit_locked(self, user_id, round_id, number, pick_id, write_id) -> PickResult:
        m = self.machine
        reason = m.admit_pick(round_id, number)
        if reason is not None:
            return PickResult.rejected(reason)
        try:
            existing = m.store.get_user_pick(user_id, round_id)
            if existing:
                if pick_id and existing['id'] == pick_id:
                    return PickResult.ok(existing, replayed=True)
                return PickResult.rejected(RejectReason.DUPLICATE_PICK)
            try:
                pick = m.store.create_pick(user_id, round_id, number, pick_id=pick_id, write_id=write_id)
            except PickConflict:
                return PickResult.rejected(RejectReason.DUPLICATE_PICK)

            with m.lock:
                # The round may have ended while the pick was being written
                if not m.accepting_picks(round_id):
                    # Voided first so the outcome ignores it even if the delete fails
                    m.void_pick(round_id, pick['id'])
                    try:
                        m.store.delete_pick(pick['id'])
                    except StoreError as exc:
                        m.logger.error(f"[pick-rollback-fail] round={round_id} pick={pick['id']}: {exc}")
                    else:
                        m.logger.info(f"[pick-rollback] round={round_id} user={user_id} pick={pick['id']}")
                    return PickResult.rejected(RejectReason.ROUND_NOT_ACTIVE)
                m.broadcaster.pick_accepted(pick)
            m.logger.info(f"[pick] round={round_id} user={user_id} number={number}")
            return PickResult.ok(pick)
        finally:
            m.settle_pick(round_id)
