import uuid

from highpick.services.rounds import RoundStore, get_pick_validator
from highpick.services.rounds.sync import apply_pick_changes


def _insert(user_id, round_id, number, pick_id=None, write_id=None):
    return {
        'operation': 'insert',
        'value': {
            'id': pick_id or str(uuid.uuid4()),
            'user_id': user_id,
            'round_id': round_id,
            'number': number,
        },
        'write_id': write_id or str(uuid.uuid4()),
    }


def test_insert_change_is_applied_as_a_pick(flask_app, steady_round, recorder):
    machine, state = steady_round
    user = RoundStore(flask_app).get_or_create_user('offline')
    change = _insert(user['id'], state['id'], state['displayed_numbers'][-1])

    [result] = apply_pick_changes(get_pick_validator(flask_app), [change])

    assert result['accepted'] is True
    assert result['id'] == change['value']['id']
    assert result['write_id'] == change['write_id']
    stored = RoundStore(flask_app).get_user_pick(user['id'], state['id'])
    assert stored['id'] == change['value']['id']
    assert len(recorder.of('number_picked', state['id'])) == 1


def test_resent_change_is_acknowledged_once(flask_app, steady_round, recorder):
    machine, state = steady_round
    user = RoundStore(flask_app).get_or_create_user('offline')
    change = _insert(user['id'], state['id'], state['displayed_numbers'][-1])
    validator = get_pick_validator(flask_app)

    apply_pick_changes(validator, [change])
    [again] = apply_pick_changes(validator, [change])

    assert again['accepted'] is True
    assert len(RoundStore(flask_app).get_picks(state['id'])) == 1
    assert len(recorder.of('number_picked', state['id'])) == 1


def test_second_change_for_same_round_is_a_duplicate(flask_app, steady_round):
    machine, state = steady_round
    user = RoundStore(flask_app).get_or_create_user('offline')
    latest = state['displayed_numbers'][-1]

    results = apply_pick_changes(get_pick_validator(flask_app), [
        _insert(user['id'], state['id'], latest),
        _insert(user['id'], state['id'], latest),
    ])

    assert [r['accepted'] for r in results] == [True, False]
    assert results[1]['reason'] == 'duplicate_pick'


def test_change_validated_like_a_live_pick(flask_app, steady_round):
    machine, state = steady_round
    user = RoundStore(flask_app).get_or_create_user('offline')

    [result] = apply_pick_changes(get_pick_validator(flask_app), [
        _insert(user['id'], state['id'], state['displayed_numbers'][0]),
    ])

    assert result['accepted'] is False
    assert result['reason'] == 'invalid_number'
    assert RoundStore(flask_app).get_picks(state['id']) == []


def test_updates_and_deletes_are_refused(flask_app, steady_round):
    machine, state = steady_round
    change = _insert(1, state['id'], state['displayed_numbers'][-1])
    change['operation'] = 'delete'

    [result] = apply_pick_changes(get_pick_validator(flask_app), [change])

    assert result['accepted'] is False
    assert result['reason'] == 'unsupported_operation'


def test_malformed_change_is_reported(flask_app, steady_round):
    machine, state = steady_round
    changes = [
        _insert('abc', state['id'], 5),
        _insert(1, state['id'], 5, pick_id='not-a-uuid'),
        {'operation': 'insert', 'value': {'user_id': 1}},
    ]

    results = apply_pick_changes(get_pick_validator(flask_app), changes)

    assert [r['reason'] for r in results] == ['malformed_change'] * 3


def test_non_object_changes_are_malformed(flask_app, steady_round):
    machine, state = steady_round
    bad_value = _insert(1, state['id'], 5)
    bad_value['value'] = ['not', 'an', 'object']

    results = apply_pick_changes(get_pick_validator(flask_app), ['oops', 42, None, bad_value])

    assert [r['reason'] for r in results] == ['malformed_change'] * 4
    assert all(r['accepted'] is False for r in results)


def test_pick_id_of_another_users_pick_is_refused_for_good(flask_app, steady_round):
    machine, state = steady_round
    store = RoundStore(flask_app)
    alice = store.get_or_create_user('alice')
    bob = store.get_or_create_user('bob')
    latest = state['displayed_numbers'][-1]
    pick_id = str(uuid.uuid4())
    validator = get_pick_validator(flask_app)

    apply_pick_changes(validator, [_insert(alice['id'], state['id'], latest, pick_id=pick_id)])
    [result] = apply_pick_changes(validator, [_insert(bob['id'], state['id'], latest, pick_id=pick_id)])

    assert result['accepted'] is False
    assert result['reason'] == 'duplicate_pick'
    assert store.get_user_pick(bob['id'], state['id']) is None


def test_changes_are_bound_to_the_submitting_user(flask_app, steady_round):
    machine, state = steady_round
    store = RoundStore(flask_app)
    alice = store.get_or_create_user('alice')
    bob = store.get_or_create_user('bob')
    latest = state['displayed_numbers'][-1]

    results = apply_pick_changes(get_pick_validator(flask_app), [
        _insert(bob['id'], state['id'], latest),
        _insert(alice['id'], state['id'], latest),
    ], user_id=alice['id'])

    assert results[0]['reason'] == 'user_mismatch'
    assert results[1]['accepted'] is True
    assert store.get_user_pick(bob['id'], state['id']) is None
