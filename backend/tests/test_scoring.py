import pytest

from highpick.services.rounds.errors import RoundInvariantError
from highpick.services.rounds.scoring import determine_winners


def _pick(user_id, number, round_id=1, pick_id=None):
    return {'id': pick_id or f"p{user_id}", 'user_id': user_id, 'round_id': round_id, 'number': number}


def test_highest_pick_wins_and_ties_share():
    picks = [_pick(1, 42), _pick(2, 57), _pick(3, 57)]
    assert determine_winners(picks, 1) == (57, [2, 3])


def test_single_winner():
    assert determine_winners([_pick(1, 4), _pick(2, 19), _pick(3, 7)], 1) == (19, [2])


def test_no_picks_means_no_winner():
    assert determine_winners([], 1) == (None, [])


def test_order_of_picks_does_not_matter():
    picks = [_pick(3, 57), _pick(1, 42), _pick(2, 57)]
    assert determine_winners(picks, 1) == (57, [2, 3])


def test_pick_from_another_round_is_an_invariant_violation():
    with pytest.raises(RoundInvariantError):
        determine_winners([_pick(1, 5), _pick(2, 8, round_id=2)], 1)


def test_two_picks_by_one_user_is_an_invariant_violation():
    with pytest.raises(RoundInvariantError):
        determine_winners([_pick(1, 5, pick_id='a'), _pick(1, 8, pick_id='b')], 1)
