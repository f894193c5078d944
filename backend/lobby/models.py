from lobby import db
from flask_login import UserMixin
from datetime import datetime, timezone
import string
import random

ROOM_STATE_WAITING = 'waiting'
ROOM_STATE_PLAYING = 'playing'

ROOM_ID_LENGTH = 20


def utcnow() -> datetime:
    """Naive UTC timestamp; every timestamp column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value):
    return value.isoformat() if value else None


class User(UserMixin, db.Model):
    __tablename__ = 'user'
    id = db.Column(db.String(64), primary_key=True)
    display_name = db.Column(db.String(64), nullable=True)
    # Not a foreign key: a room deleted elsewhere can leave this dangling
    active_room_id = db.Column(db.String(32), nullable=True, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    version = db.Column(db.Integer, nullable=False)

    __mapper_args__ = {'version_id_col': version}

    def to_dict(self):
        return {
            'uid': self.id,
            'display_name': self.display_name,
            'active_room_id': self.active_room_id,
        }


def generate_room_id(length=ROOM_ID_LENGTH):
    """Generate a unique, opaque room id."""
    while True:
        code = ''.join(random.choices(string.ascii_letters + string.digits, k=length))
        if not db.session.get(Room, code):
            return code


class Room(db.Model):
    __tablename__ = 'room'
    id = db.Column(db.String(32), primary_key=True)
    host_uid = db.Column(db.String(64), nullable=False, index=True)
    state = db.Column(db.String(16), nullable=False, default=ROOM_STATE_WAITING)  # waiting, playing
    player_count = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_active_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    # Start of the idle window; set whenever the room is down to one player
    waiting_since = db.Column(db.DateTime, nullable=True)
    version = db.Column(db.Integer, nullable=False)
    players = db.relationship(
        'Player',
        back_populates='room',
        order_by='Player.joined_at',
        cascade='all, delete-orphan',
    )

    __table_args__ = (
        db.Index('ix_room_state_created_at', 'state', 'created_at'),
        db.Index('ix_room_player_count_waiting_since', 'player_count', 'waiting_since'),
    )
    __mapper_args__ = {'version_id_col': version}

    def to_summary(self):
        return {
            'id': self.id,
            'host_uid': self.host_uid,
            'state': self.state,
            'player_count': self.player_count,
            'created_at': _iso(self.created_at),
        }

    def to_dict(self):
        data = self.to_summary()
        data['last_active_at'] = _iso(self.last_active_at)
        data['waiting_since'] = _iso(self.waiting_since)
        return data


class Player(db.Model):
    __tablename__ = 'player'
    room_id = db.Column(db.String(32), db.ForeignKey('room.id'), primary_key=True)
    # Equal to the owning user's id: one entry per user per room
    user_id = db.Column(db.String(64), primary_key=True)
    name = db.Column(db.String(64), nullable=False)
    is_host = db.Column(db.Boolean, default=False, nullable=False)
    joined_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_seen_at = db.Column(db.DateTime, nullable=True)
    room = db.relationship('Room', back_populates='players')

    def to_dict(self):
        return {
            'id': self.user_id,
            'name': self.name,
            'is_host': self.is_host,
            'joined_at': _iso(self.joined_at),
        }


class RoomStats(db.Model):
    __tablename__ = 'stats'
    key = db.Column(db.String(32), primary_key=True)
    count = db.Column(db.Integer, nullable=False, default=0)
    updated_at = db.Column(db.DateTime, nullable=True)

    def to_dict(self):
        return {
            'count': self.count,
            'updated_at': _iso(self.updated_at),
        }
