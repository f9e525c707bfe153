import uuid
from datetime import datetime, timezone
from functools import wraps
from typing import Iterable, List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from highpick import db
from highpick.models import User, Round, RoundNumber, Pick, RoundWinner
from .errors import StoreError, PickConflict, PickIdConflict


def _store_call(func):
    """Run a store method as one short transaction in its own app context.

    Commits on success, rolls back and raises ``StoreError`` on any database
    failure so callers never see SQLAlchemy exceptions.
    """
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        with self.app.app_context():
            try:
                result = func(self, *args, **kwargs)
                db.session.commit()
                return result
            except StoreError:
                db.session.rollback()
                raise
            except SQLAlchemyError as exc:
                db.session.rollback()
                self.app.logger.error(f"[store-error] {func.__name__}: {exc}")
                raise StoreError(f"{func.__name__} failed: {exc}") from exc
    return wrapper


class RoundStore:
    """SQL-backed store for rounds, revealed numbers, picks and users."""

    def __init__(self, app):
        self.app = app

    # ---- Rounds ----

    @_store_call
    def create_round(self, start_time: datetime) -> int:
        rnd = Round(start_time=start_time)
        db.session.add(rnd)
        db.session.flush()
        return rnd.id

    @_store_call
    def update_round(self, round_id: int, end_time: Optional[datetime] = None,
                     winning_number: Optional[int] = None, winners: Optional[Iterable[int]] = None) -> None:
        rnd = db.session.get(Round, round_id)
        if rnd is None:
            raise StoreError(f"Round {round_id} not found")
        if end_time is not None:
            rnd.end_time = end_time
        if winning_number is not None:
            rnd.winning_number = winning_number
        for user_id in winners or ():
            db.session.add(RoundWinner(round_id=round_id, user_id=user_id))
        db.session.add(rnd)

    @_store_call
    def get_round(self, round_id: int) -> Optional[dict]:
        rnd = db.session.get(Round, round_id)
        return rnd.to_dict() if rnd else None

    @_store_call
    def get_round_history(self, limit: int = 10) -> List[dict]:
        """Ended rounds, newest first, each with its picks."""
        rounds = (
            Round.query.filter(Round.end_time.isnot(None))
            .order_by(Round.id.desc())
            .limit(limit)
            .all()
        )
        history = []
        for rnd in rounds:
            data = rnd.to_dict()
            data['picks'] = [p.to_dict() for p in rnd.picks.order_by(Pick.timestamp)]
            history.append(data)
        return history

    # ---- Revealed numbers ----

    @_store_call
    def append_revealed_number(self, round_id: int, number: int, display_index: int) -> None:
        db.session.add(RoundNumber(round_id=round_id, number=number, display_index=display_index))

    @_store_call
    def get_revealed_numbers(self, round_id: int) -> List[int]:
        rows = RoundNumber.query.filter_by(round_id=round_id).order_by(RoundNumber.display_index).all()
        return [r.number for r in rows]

    # ---- Picks ----

    @_store_call
    def create_pick(self, user_id: int, round_id: int, number: int,
                    timestamp: Optional[datetime] = None, pick_id: Optional[str] = None,
                    write_id: Optional[str] = None) -> dict:
        pick = Pick(
            id=pick_id or str(uuid.uuid4()),
            user_id=user_id,
            round_id=round_id,
            number=number,
            timestamp=timestamp or datetime.now(timezone.utc),
            write_id=write_id,
        )
        db.session.add(pick)
        try:
            db.session.flush()
        except IntegrityError as exc:
            db.session.rollback()
            if Pick.query.filter_by(user_id=user_id, round_id=round_id).first():
                raise PickConflict(user_id, round_id) from exc
            if pick_id and db.session.get(Pick, pick_id) is not None:
                raise PickIdConflict(pick_id, user_id, round_id) from exc
            raise
        return pick.to_dict()

    @_store_call
    def delete_pick(self, pick_id: str) -> None:
        Pick.query.filter_by(id=pick_id).delete()

    @_store_call
    def get_picks(self, round_id: int) -> List[dict]:
        return [p.to_dict() for p in Pick.query.filter_by(round_id=round_id).order_by(Pick.timestamp).all()]

    @_store_call
    def get_user_pick(self, user_id: int, round_id: int) -> Optional[dict]:
        pick = Pick.query.filter_by(user_id=user_id, round_id=round_id).first()
        return pick.to_dict() if pick else None

    # ---- Users & leaderboard ----

    @_store_call
    def get_user(self, user_id: int) -> Optional[dict]:
        user = db.session.get(User, user_id)
        return user.to_dict() if user else None

    @_store_call
    def get_or_create_user(self, username: str) -> dict:
        user = User.query.filter_by(username=username).first()
        if not user:
            user = User(username=username)
            db.session.add(user)
            try:
                db.session.flush()
            except IntegrityError:
                # Claimed concurrently by another connection
                db.session.rollback()
                user = User.query.filter_by(username=username).one()
        return user.to_dict()

    @_store_call
    def get_player_stats(self, user_id: int) -> dict:
        wins = RoundWinner.query.filter_by(user_id=user_id).count()
        rounds_played = (
            db.session.query(db.func.count(db.distinct(Pick.round_id)))
            .filter(Pick.user_id == user_id)
            .scalar()
        )
        return {'wins': wins, 'rounds_played': rounds_played or 0}

    @_store_call
    def get_leaderboard(self) -> List[dict]:
        """Every user with wins and rounds played, most wins first.

        A tied round credits a win to each of its winners.
        """
        wins = dict(
            db.session.query(RoundWinner.user_id, db.func.count())
            .group_by(RoundWinner.user_id)
            .all()
        )
        played = dict(
            db.session.query(Pick.user_id, db.func.count(db.distinct(Pick.round_id)))
            .group_by(Pick.user_id)
            .all()
        )
        players = []
        for user in User.query.all():
            players.append({
                'id': user.id,
                'username': user.username,
                'wins': wins.get(user.id, 0),
                'rounds_played': played.get(user.id, 0),
            })
        players.sort(key=lambda p: (-p['wins'], p['username']))
        return players
