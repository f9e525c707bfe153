import threading
from datetime import datetime, timezone
from typing import Dict, Optional, Set

from .errors import StoreError, RoundInvariantError
from .numbers import next_number
from .picks import RejectReason
from .scheduler import RevealScheduler
from .scoring import determine_winners
from .state import RoundState
from .timers import call_later


class RoundSettings:
    def __init__(self, round_duration=10.0, reveal_interval=1.0, numbers_per_round=10,
                 cooldown=3.0, start_retry=1.0):
        self.round_duration = round_duration
        self.reveal_interval = reveal_interval
        self.numbers_per_round = numbers_per_round
        self.cooldown = cooldown
        self.start_retry = start_retry

    @classmethod
    def from_config(cls, config):
        return cls(
            round_duration=float(config.get('ROUND_DURATION_SEC', 10)),
            reveal_interval=float(config.get('REVEAL_INTERVAL_SEC', 1)),
            numbers_per_round=int(config.get('NUMBERS_PER_ROUND', 10)),
            cooldown=float(config.get('ROUND_COOLDOWN_SEC', 3)),
            start_retry=float(config.get('ROUND_START_RETRY_SEC', 1)),
        )


class RoundStateMachine:
    """Owns the current round and drives it through its lifecycle.

    Active -> Ended -> (cooldown) -> Active for the next round. ``lock``
    serialises every transition, every reveal tick and the admission and
    commit steps of picks. Timers are background tasks that re-check the
    round they were armed for when they fire.
    """

    def __init__(self, store, broadcaster, settings: RoundSettings, spawn, sleep, logger,
                 number_source=next_number):
        self.store = store
        self.broadcaster = broadcaster
        self.settings = settings
        self.spawn = spawn
        self.sleep = sleep
        self.logger = logger
        self.number_source = number_source

        self.lock = threading.RLock()
        self._settled = threading.Condition(self.lock)
        self._state: Optional[RoundState] = None
        self._scheduler: Optional[RevealScheduler] = None
        self._end_timer = None
        self._start_timer = None
        # round id -> picks admitted but not yet settled
        self._in_flight: Dict[int, int] = {}
        # round id -> ids of picks written after the round ended
        self._voided: Dict[int, Set[str]] = {}
        self._closing = False
        self._stopped = False

    # ---- Introspection (callers hold ``lock``) ----

    @property
    def current_state(self) -> Optional[RoundState]:
        return self._state

    def is_current_scheduler(self, scheduler) -> bool:
        return scheduler is self._scheduler

    def accepting_picks(self, round_id: int) -> bool:
        state = self._state
        return state is not None and state.id == round_id and state.active

    # ---- Reads ----

    def current_round_id(self) -> Optional[int]:
        with self.lock:
            return self._state.id if self._state else None

    def snapshot(self) -> Optional[dict]:
        """Consistent copy of the current round, or None before the first start."""
        with self.lock:
            return self._state.to_dict() if self._state else None

    # ---- Transitions ----

    def start(self) -> Optional[dict]:
        """Start a new round, ending the current one first if it is still active."""
        with self.lock:
            return self._start_locked()

    def _start_after(self, previous_round_id: Optional[int]) -> None:
        with self.lock:
            if self._stopped:
                return
            current = self._state.id if self._state else None
            if current != previous_round_id or (self._state is not None and self._state.active):
                self.logger.info(f"[timer-abort] start timer armed after round={previous_round_id}, now round={current}")
                return
            self._start_locked()

    def _start_locked(self) -> Optional[dict]:
        while self._closing:
            self._settled.wait()
        if self._stopped:
            return None
        if self._state is not None and self._state.active:
            self._end_locked()
        self._cancel_timers()

        start_time = datetime.now(timezone.utc)
        try:
            round_id = self.store.create_round(start_time)
        except StoreError as exc:
            retry = self.settings.start_retry
            self.logger.error(f"[round-start-fail] retry in {retry}s: {exc}")
            self._start_timer = self._call_later(retry, self._start_after, self._state.id if self._state else None)
            return None

        self._state = RoundState(id=round_id, start_time=start_time)
        self.logger.info(
            f"[round-start] round={round_id} duration={self.settings.round_duration}s "
            f"numbers={self.settings.numbers_per_round}"
        )
        self.broadcaster.new_round(self._state.to_dict())

        self._scheduler = RevealScheduler(
            self, round_id, self.settings.reveal_interval, self.settings.numbers_per_round
        )
        self._scheduler.start()
        self._end_timer = self._call_later(self.settings.round_duration, self._end_if_current, round_id)
        return self._state.to_dict()

    def end(self) -> Optional[dict]:
        """End the current round. No-op when it has already ended."""
        with self.lock:
            return self._end_locked()

    def stop(self) -> None:
        """Cancel every timer; no further rounds are started."""
        with self.lock:
            self._stopped = True
            self._cancel_timers()
            self.logger.info("[round-loop-stop]")

    def _end_if_current(self, round_id: int) -> None:
        with self.lock:
            if self._stopped:
                return
            if self._state is None or self._state.id != round_id:
                self.logger.info(f"[timer-abort] end timer for stale round={round_id}")
                return
            self._end_locked()

    def _end_locked(self) -> Optional[dict]:
        state = self._state
        if state is None or not state.active:
            return None
        self._closing = True
        try:
            if self._scheduler is not None:
                self._scheduler.cancel()
                self._scheduler = None
            if self._end_timer is not None:
                self._end_timer.cancel()
                self._end_timer = None

            state.active = False
            state.end_time = datetime.now(timezone.utc)
            # Picks admitted before the flip either commit or roll back first
            while self._in_flight.get(state.id):
                self._settled.wait()
            self._in_flight.pop(state.id, None)

            self._record_outcome(state)
            if state.winners:
                self.logger.info(
                    f"[round-end] round={state.id} winning_number={state.winning_number} "
                    f"winners={state.winner_names}"
                )
            else:
                self.logger.info(f"[round-end] round={state.id} ended with no picks")
            self.broadcaster.round_ended(state.to_dict())

            if not self._stopped:
                self._start_timer = self._call_later(self.settings.cooldown, self._start_after, state.id)
            return state.to_dict()
        finally:
            self._closing = False
            self._settled.notify_all()

    def _record_outcome(self, state: RoundState) -> None:
        winning_number, winners, names = None, [], {}
        voided = self._voided.pop(state.id, set())
        try:
            picks = self.store.get_picks(state.id)
            if voided:
                picks = self._drop_voided(state.id, picks, voided)
            winning_number, winners = determine_winners(picks, state.id)
            names = {p['user_id']: p['username'] for p in picks}
        except RoundInvariantError as exc:
            self.logger.error(f"[round-invariant] round={state.id} ending without winner: {exc}")
        except StoreError as exc:
            self.logger.error(f"[round-end-fail] round={state.id} could not read picks: {exc}")

        state.winning_number = winning_number
        state.winners = winners
        state.winner_names = sorted(names.get(uid) or str(uid) for uid in winners)
        try:
            self.store.update_round(
                state.id, end_time=state.end_time, winning_number=winning_number, winners=winners
            )
        except StoreError as exc:
            self.logger.error(f"[round-end-fail] round={state.id} result not persisted: {exc}")

    def _drop_voided(self, round_id: int, picks: list, voided: Set[str]) -> list:
        kept = []
        for p in picks:
            if p['id'] not in voided:
                kept.append(p)
                continue
            # Its rollback delete failed earlier; try once more
            try:
                self.store.delete_pick(p['id'])
            except StoreError as exc:
                self.logger.error(f"[pick-rollback-fail] round={round_id} pick={p['id']} left in store: {exc}")
        return kept

    # ---- Picks ----

    def void_pick(self, round_id: int, pick_id: str) -> None:
        """Exclude a pick written after its round ended from the round outcome."""
        with self.lock:
            self._voided.setdefault(round_id, set()).add(pick_id)

    def admit_pick(self, round_id: int, number: int) -> Optional[RejectReason]:
        """Check a pick against the current round and mark it in flight.

        Returns the rejection reason, or None after admitting the pick; an
        admitted pick must be released with ``settle_pick``.
        """
        with self.lock:
            state = self._state
            if state is None or state.id != round_id:
                return RejectReason.INVALID_ROUND
            if not state.active:
                return RejectReason.ROUND_NOT_ACTIVE
            if state.latest_number is None or number != state.latest_number:
                return RejectReason.INVALID_NUMBER
            self._in_flight[round_id] = self._in_flight.get(round_id, 0) + 1
            return None

    def settle_pick(self, round_id: int) -> None:
        with self.lock:
            remaining = self._in_flight.get(round_id, 0) - 1
            if remaining > 0:
                self._in_flight[round_id] = remaining
            else:
                self._in_flight.pop(round_id, None)
            self._settled.notify_all()

    # ---- Timers ----

    def _call_later(self, delay, fn, *args):
        return call_later(self.spawn, self.sleep, delay, fn, *args)

    def _cancel_timers(self) -> None:
        for attr in ('_scheduler', '_end_timer', '_start_timer'):
            handle = getattr(self, attr)
            if handle is not None:
                handle.cancel()
                setattr(self, attr, None)
