"""Room repository.

Each mutating operation reads and writes inside one transaction
(``run_in_transaction``) and publishes the touched topics once it has
committed. Callers are identified by an explicit ``SessionContext``.
"""

from typing import Callable, List, Optional

from flask import current_app

from lobby import db
from lobby.models import (
    Room,
    Player,
    User,
    ROOM_STATE_WAITING,
    ROOM_STATE_PLAYING,
    generate_room_id,
    utcnow,
)
from .errors import (
    AlreadyInRoom,
    RoomNotFound,
    RoomNotJoinable,
    Forbidden,
    InvalidOperation,
    InvalidDisplayName,
)
from .feed import (
    feed,
    publish_room_changed,
    WAITING_ROOMS_TOPIC,
    room_topic,
    players_topic,
    Subscription,
)
from .session import SessionContext
from .transactions import run_in_transaction


def _clean_display_name(display_name) -> str:
    name = display_name.strip() if isinstance(display_name, str) else ''
    if not name:
        raise InvalidDisplayName()
    max_len = int(current_app.config.get('MAX_DISPLAY_NAME_LENGTH', 64))
    if len(name) > max_len:
        raise InvalidDisplayName(f'Display name must be at most {max_len} characters.')
    return name


def _count_players(room_id: str) -> int:
    # Autoflush makes pending inserts/deletes of this transaction visible
    return Player.query.filter_by(room_id=room_id).count()


def _upsert_user(uid: str, user: Optional[User], **fields) -> User:
    if user is None:
        user = User(id=uid, **fields)
        db.session.add(user)
    else:
        for key, value in fields.items():
            setattr(user, key, value)
    return user


def _remove_player(room: Optional[Room], room_id: str, uid: str) -> None:
    """Drop ``uid`` from the room and detach their user row from it."""
    player = db.session.get(Player, (room_id, uid))
    if player is not None:
        db.session.delete(player)
    if room is not None:
        now = utcnow()
        count = _count_players(room_id)
        room.player_count = count
        room.last_active_at = now
        if count <= 1:
            room.waiting_since = now
    user = db.session.get(User, uid)
    if user is None:
        _upsert_user(uid, None, active_room_id=None)
    elif user.active_room_id == room_id:
        user.active_room_id = None


def create_room(ctx: SessionContext, display_name: str) -> dict:
    uid = ctx.require_uid()
    name = _clean_display_name(display_name)

    def _body():
        user = db.session.get(User, uid)
        if user is not None and user.active_room_id:
            raise AlreadyInRoom()
        now = utcnow()
        room = Room(
            id=generate_room_id(),
            host_uid=uid,
            state=ROOM_STATE_WAITING,
            player_count=1,
            created_at=now,
            last_active_at=now,
            waiting_since=now,
        )
        db.session.add(room)
        db.session.add(Player(
            room_id=room.id,
            user_id=uid,
            name=name,
            is_host=True,
            joined_at=now,
            last_seen_at=now,
        ))
        _upsert_user(uid, user, display_name=name, active_room_id=room.id)
        return {'room_id': room.id, 'is_host': True}

    result = run_in_transaction(_body)
    current_app.logger.info(f"[room-create] room={result['room_id']} host={uid}")
    publish_room_changed(result['room_id'])
    return result


def join_room(ctx: SessionContext, room_id: str, display_name: str) -> dict:
    uid = ctx.require_uid()
    name = _clean_display_name(display_name)

    def _body():
        room = db.session.get(Room, room_id)
        if room is None:
            raise RoomNotFound('Room no longer exists.')
        if room.state != ROOM_STATE_WAITING:
            raise RoomNotJoinable()
        user = db.session.get(User, uid)
        if user is not None and user.active_room_id:
            raise AlreadyInRoom()

        now = utcnow()
        leftover = db.session.get(Player, (room_id, uid))
        if leftover is not None:
            # Row left behind without an active room pointer
            db.session.delete(leftover)
            db.session.flush()
        db.session.add(Player(
            room_id=room_id,
            user_id=uid,
            name=name,
            is_host=False,
            joined_at=now,
            last_seen_at=now,
        ))

        count = _count_players(room_id)
        room.player_count = count
        room.last_active_at = now
        room.waiting_since = now if count <= 1 else None
        _upsert_user(uid, user, display_name=name, active_room_id=room_id)
        return {'room_id': room_id, 'is_host': False}

    result = run_in_transaction(_body)
    current_app.logger.info(f"[room-join] room={room_id} uid={uid}")
    publish_room_changed(room_id)
    return result


def leave_room(ctx: SessionContext, room_id: str) -> None:
    uid = ctx.require_uid()

    def _body():
        _remove_player(db.session.get(Room, room_id), room_id, uid)

    run_in_transaction(_body)
    current_app.logger.info(f"[room-leave] room={room_id} uid={uid}")
    publish_room_changed(room_id)


def kick_player(ctx: SessionContext, room_id: str, target_uid: str) -> None:
    uid = ctx.require_uid()

    def _body():
        room = db.session.get(Room, room_id)
        if room is None:
            raise RoomNotFound()
        if room.host_uid != uid:
            raise Forbidden('Only the host can kick players.')
        if target_uid == uid:
            raise InvalidOperation('Host cannot kick themselves.')
        _remove_player(room, room_id, target_uid)

    run_in_transaction(_body)
    current_app.logger.info(f"[room-kick] room={room_id} host={uid} target={target_uid}")
    publish_room_changed(room_id)


def start_game(ctx: SessionContext, room_id: str) -> dict:
    uid = ctx.require_uid()

    def _body():
        room = db.session.get(Room, room_id)
        if room is None:
            raise RoomNotFound()
        if room.host_uid != uid:
            raise Forbidden('Only the host can start the game.')
        room.state = ROOM_STATE_PLAYING
        room.last_active_at = utcnow()
        return room

    room = run_in_transaction(_body)
    current_app.logger.info(f"[room-start] room={room_id} host={uid}")
    publish_room_changed(room_id)
    return room.to_dict()


def get_active_room_id(ctx: SessionContext) -> Optional[str]:
    uid = ctx.require_uid()
    user = db.session.get(User, uid)
    if user is None:
        return None
    return user.active_room_id


def list_waiting_rooms() -> List[dict]:
    rooms = (
        Room.query.filter_by(state=ROOM_STATE_WAITING)
        .order_by(Room.created_at.desc())
        .all()
    )
    return [room.to_summary() for room in rooms]


def get_room(room_id: str) -> Optional[dict]:
    room = db.session.get(Room, room_id, populate_existing=True)
    return room.to_dict() if room else None


def list_room_players(room_id: str) -> List[dict]:
    players = (
        Player.query.filter_by(room_id=room_id)
        .order_by(Player.joined_at.asc())
        .all()
    )
    return [p.to_dict() for p in players]


def _subscribe(topic: str, deliver: Callable[[], None]) -> Subscription:
    subscription = feed.subscribe(topic, deliver)
    deliver()
    return subscription


def subscribe_waiting_rooms(callback: Callable[[List[dict]], None]) -> Subscription:
    """Call ``callback`` with the full waiting list now and after every change."""
    return _subscribe(WAITING_ROOMS_TOPIC, lambda: callback(list_waiting_rooms()))


def subscribe_room(room_id: str, callback: Callable[[Optional[dict]], None]) -> Subscription:
    """Call ``callback`` with the room dict, or None once it is deleted."""
    return _subscribe(room_topic(room_id), lambda: callback(get_room(room_id)))


def subscribe_room_players(room_id: str, callback: Callable[[List[dict]], None]) -> Subscription:
    return _subscribe(players_topic(room_id), lambda: callback(list_room_players(room_id)))
