from latefine import db, bcrypt
from flask_login import UserMixin
from datetime import datetime, timezone
import uuid

INVITE_PENDING = 'pending'
INVITE_ACCEPTED = 'accepted'
INVITE_DECLINED = 'declined'
# Derived only, never stored
INVITE_EXPIRED = 'expired'

ROLE_OWNER = 'owner'
ROLE_MEMBER = 'member'


def utcnow():
    """Naive UTC timestamp, matching what the database hands back."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _new_id():
    return str(uuid.uuid4())


def _iso(dt):
    return dt.isoformat() + 'Z' if dt else None


def _money(value):
    return float(value) if value is not None else 0.0


class Account(UserMixin, db.Model):
    __tablename__ = 'account'
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def set_password(self, password):
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        return bcrypt.check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
        }


class Game(db.Model):
    __tablename__ = 'game'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    name = db.Column(db.String(120), nullable=False)
    season = db.Column(db.String(32), nullable=False, default='S1')
    fine_amount = db.Column(db.Numeric(10, 2), nullable=False, default=10)
    currency = db.Column(db.String(8), nullable=False, default='RM')
    created_by = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    owner = db.relationship('Account', foreign_keys=[created_by])

    def to_dict(self, user_role=None):
        data = {
            'id': self.id,
            'name': self.name,
            'season': self.season,
            'fine_amount': _money(self.fine_amount),
            'currency': self.currency,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        if user_role:
            data['userRole'] = user_role
        return data


class Player(db.Model):
    __tablename__ = 'player'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    name = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'name': self.name,
            'created_at': _iso(self.created_at),
        }


class Event(db.Model):
    __tablename__ = 'event'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    player_id = db.Column(db.String(36), db.ForeignKey('player.id'), nullable=False, index=True)
    reason = db.Column(db.String(255), nullable=False, default='Late')
    amount = db.Column(db.Numeric(10, 2), nullable=False)
    date_iso = db.Column(db.DateTime, nullable=False, default=utcnow)

    player = db.relationship('Player')

    def to_dict(self):
        return {
            'id': self.id,
            'game_id': self.game_id,
            'player_id': self.player_id,
            'player_name': self.player.name if self.player else None,
            'reason': self.reason,
            'amount': _money(self.amount),
            'date_iso': _iso(self.date_iso),
        }


class Invite(db.Model):
    __tablename__ = 'game_invite'
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    invited_email = db.Column(db.String(255), nullable=False, index=True)
    invited_by = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False)
    invite_code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    status = db.Column(db.String(16), nullable=False, default=INVITE_PENDING)
    expires_at = db.Column(db.DateTime, nullable=False)
    accepted_by = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    game = db.relationship('Game')
    inviter = db.relationship('Account', foreign_keys=[invited_by])
    accepter = db.relationship('Account', foreign_keys=[accepted_by])

    def is_expired(self, now=None):
        return self.status == INVITE_PENDING and (now or utcnow()) > self.expires_at

    def display_status(self, now=None):
        if self.status in (INVITE_ACCEPTED, INVITE_DECLINED):
            return self.status
        if self.is_expired(now):
            return INVITE_EXPIRED
        return INVITE_PENDING

    def to_dict(self, include_game=False):
        data = {
            'id': self.id,
            'game_id': self.game_id,
            'invited_email': self.invited_email,
            'invited_by': self.invited_by,
            'invited_by_email': self.inviter.email if self.inviter else None,
            'invite_code': self.invite_code,
            'status': self.status,
            'display_status': self.display_status(),
            'expires_at': _iso(self.expires_at),
            'accepted_by': self.accepted_by,
            'accepted_by_email': self.accepter.email if self.accepter else None,
            'created_at': _iso(self.created_at),
        }
        if include_game and self.game:
            data['game'] = {
                'id': self.game.id,
                'name': self.game.name,
                'season': self.game.season,
                'currency': self.game.currency,
                'fine_amount': _money(self.game.fine_amount),
            }
        return data


class Membership(db.Model):
    """Non-owner access grant. Ownership lives on ``Game.created_by`` only."""
    __tablename__ = 'game_member'
    __table_args__ = (db.UniqueConstraint('game_id', 'user_id', name='uq_game_member_game_user'),)
    id = db.Column(db.String(36), primary_key=True, default=_new_id)
    game_id = db.Column(db.String(36), db.ForeignKey('game.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('account.id'), nullable=False, index=True)
    role = db.Column(db.String(16), nullable=False, default=ROLE_MEMBER)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    account = db.relationship('Account')

    def to_dict(self):
        return {
            'game_id': self.game_id,
            'user_id': self.user_id,
            'email': self.account.email if self.account else None,
            'role': self.role,
            'joined_at': _iso(self.joined_at),
        }
