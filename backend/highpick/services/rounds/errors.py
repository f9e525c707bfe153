"""Round service exceptions.

Validation failures of a pick are not exceptions: they come back as a
``PickResult`` carrying a ``RejectReason``.
"""


class RoundServiceError(Exception):
    """Base class for round service errors."""
    pass


class StoreError(RoundServiceError):
    """The round store could not complete a call (transient)."""
    pass


class PickConflict(StoreError):
    """A pick already exists for this (user, round)."""
    def __init__(self, user_id, round_id, message=None):
        self.user_id = user_id
        self.round_id = round_id
        super().__init__(message or f"User {user_id} already picked in round {round_id}")


class PickIdConflict(PickConflict):
    """The pick id is already taken by a pick of another user or round."""
    def __init__(self, pick_id, user_id, round_id):
        self.pick_id = pick_id
        super().__init__(user_id, round_id, f"Pick id {pick_id} is already used by another pick")


class RoundInvariantError(RoundServiceError):
    """Persisted round data contradicts the round rules."""
    pass
