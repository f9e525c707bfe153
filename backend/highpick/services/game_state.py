from typing import Collection


def build_leaderboard(store, connected_ids: Collection[int] = ()) -> list:
    players = store.get_leaderboard()
    for p in players:
        p['connected'] = p['id'] in connected_ids
    return players


def build_game_state(machine, store, connected_ids: Collection[int] = (), history_limit: int = 10) -> dict:
    """Everything a newly connected client needs to render the game.

    ``current_round`` is None until the first round has started.
    """
    return {
        'current_round': machine.snapshot(),
        'players': build_leaderboard(store, connected_ids),
        'round_history': store.get_round_history(history_limit),
    }
