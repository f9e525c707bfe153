from .errors import StoreError


class RevealScheduler:
    """Reveals the numbers of one round at a fixed cadence.

    - The first number is revealed as soon as the scheduler runs, then one
      per ``interval`` until ``count`` numbers are out
    - Every tick runs under the machine lock and aborts once this scheduler
      is cancelled or no longer the machine's current one
    - A tick whose write fails keeps ``reveal_index`` and the next firing
      retries the same slot
    """

    def __init__(self, machine, round_id: int, interval: float, count: int):
        self.machine = machine
        self.round_id = round_id
        self.interval = interval
        self.count = count
        self.reveal_index = 0
        self.cancelled = False

    def start(self) -> None:
        self.machine.spawn(self._run)

    def cancel(self) -> None:
        self.cancelled = True

    def _run(self) -> None:
        while self.tick():
            self.machine.sleep(self.interval)

    def tick(self) -> bool:
        """Reveal the next number. Returns False once the scheduler is done."""
        m = self.machine
        with m.lock:
            state = m.current_state
            if (
                self.cancelled
                or self.reveal_index >= self.count
                or not m.is_current_scheduler(self)
                or state is None
                or state.id != self.round_id
                or not state.active
            ):
                self.cancelled = True
                return False

            number = m.number_source(set(state.displayed_numbers))
            try:
                m.store.append_revealed_number(self.round_id, number, self.reveal_index)
            except StoreError as exc:
                m.logger.warning(
                    f"[reveal-fail] round={self.round_id} index={self.reveal_index} retry next tick: {exc}"
                )
                return True

            state.displayed_numbers.append(number)
            m.broadcaster.number_revealed(self.round_id, number, self.reveal_index)
            m.logger.debug(f"[reveal] round={self.round_id} index={self.reveal_index} number={number}")
            self.reveal_index += 1
            if self.reveal_index >= self.count:
                self.cancelled = True
                return False
            return True
