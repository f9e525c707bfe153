from typing import Iterable, List, Optional, Tuple

from .errors import RoundInvariantError


def determine_winners(picks: Iterable[dict], round_id: int) -> Tuple[Optional[int], List[int]]:
    """Compute the outcome of a round from its complete pick set.

    The highest picked number wins and every user who picked it shares the
    win. No picks means no winning number and no winners.
    """
    seen_users = set()
    best = None
    winners: List[int] = []
    for p in picks:
        if p['round_id'] != round_id:
            raise RoundInvariantError(f"Pick {p['id']} belongs to round {p['round_id']}, not {round_id}")
        if p['user_id'] in seen_users:
            raise RoundInvariantError(f"User {p['user_id']} has more than one pick in round {round_id}")
        seen_users.add(p['user_id'])
        if best is None or p['number'] > best:
            best = p['number']
            winners = [p['user_id']]
        elif p['number'] == best:
            winners.append(p['user_id'])
    return best, sorted(winners)
