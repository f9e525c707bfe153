from highpick import db
from flask_login import UserMixin


def _iso(value):
    return value.isoformat() if value is not None else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(64), unique=True, nullable=False, index=True)
    picks = db.relationship('Pick', back_populates='user', lazy='dynamic')

    def to_dict(self):
        return {
            'id': self.id,
            'username': self.username,
        }


class Round(db.Model):
    __tablename__ = 'round'
    id = db.Column(db.Integer, primary_key=True)
    start_time = db.Column(db.DateTime(timezone=True), nullable=False)
    end_time = db.Column(db.DateTime(timezone=True), nullable=True)  # null while the round is active
    winning_number = db.Column(db.Integer, nullable=True)
    numbers = db.relationship('RoundNumber', back_populates='round', order_by='RoundNumber.display_index')
    picks = db.relationship('Pick', back_populates='round', lazy='dynamic')
    winners = db.relationship('RoundWinner', back_populates='round')

    @property
    def active(self):
        return self.end_time is None

    def to_dict(self):
        return {
            'id': self.id,
            'active': self.active,
            'start_time': _iso(self.start_time),
            'end_time': _iso(self.end_time),
            'winning_number': self.winning_number,
            'winners': sorted(w.user_id for w in self.winners),
            'winner_names': sorted(w.user.username for w in self.winners if w.user),
        }


class RoundNumber(db.Model):
    __tablename__ = 'round_number'
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), primary_key=True)
    display_index = db.Column(db.Integer, primary_key=True)
    number = db.Column(db.Integer, nullable=False)
    round = db.relationship('Round', back_populates='numbers')

    __table_args__ = (
        db.UniqueConstraint('round_id', 'number', name='uq_round_number_value'),
    )

    def to_dict(self):
        return {
            'round_id': self.round_id,
            'number': self.number,
            'display_index': self.display_index,
        }


class Pick(db.Model):
    __tablename__ = 'pick'
    id = db.Column(db.String(36), primary_key=True)  # uuid4, doubles as idempotency key
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), nullable=False, index=True)
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), nullable=False, index=True)
    number = db.Column(db.Integer, nullable=False)
    timestamp = db.Column(db.DateTime(timezone=True), nullable=False)
    write_id = db.Column(db.String(36), nullable=True)
    user = db.relationship('User', back_populates='picks')
    round = db.relationship('Round', back_populates='picks')

    __table_args__ = (
        db.UniqueConstraint('user_id', 'round_id', name='uq_pick_user_round'),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'username': self.user.username if self.user else None,
            'round_id': self.round_id,
            'number': self.number,
            'timestamp': _iso(self.timestamp),
        }


class RoundWinner(db.Model):
    __tablename__ = 'round_winner'
    round_id = db.Column(db.Integer, db.ForeignKey('round.id'), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('user.id'), primary_key=True)
    round = db.relationship('Round', back_populates='winners')
    user = db.relationship('User')
