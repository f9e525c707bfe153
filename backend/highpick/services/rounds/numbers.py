import math
import random
from typing import Collection


def draw_number(rng=random) -> int:
    """Single draw from the exponential-like distribution (mean ~10)."""
    u = 1.0 - rng.random()  # uniform in (0, 1]
    return math.ceil(-math.log(u) / 10 * 100)


def next_number(exclude: Collection[int] = (), rng=random) -> int:
    """Return the first draw that is positive and not in ``exclude``.

    There is no retry cap: an exclusion set covering most of the likely
    outputs makes this loop for a long time.
    """
    while True:
        n = draw_number(rng)
        if n >= 1 and n not in exclude:
            return n
