class TimerHandle:
    """Cancellation token shared between a timer owner and its worker."""

    def __init__(self):
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


def call_later(spawn, sleep, delay: float, fn, *args) -> TimerHandle:
    """Run ``fn(*args)`` on a background task after ``delay`` seconds.

    The worker checks the handle when it wakes, so a cancelled timer never
    calls ``fn``. Callers still re-check their own state inside ``fn``; a
    cancel racing the wake-up is not caught here.
    """
    handle = TimerHandle()

    def _worker():
        sleep(delay)
        if handle.cancelled:
            return
        fn(*args)

    spawn(_worker)
    return handle
