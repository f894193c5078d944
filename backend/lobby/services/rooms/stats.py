"""Running room count kept in the ``stats/rooms`` row.

Room inserts and deletes are picked up from session flushes and applied
after the owning transaction commits, each in its own short transaction.
Best effort: a failed adjustment is logged and never compensated, so the
counter can drift from the real number of rooms.
"""

from sqlalchemy import event, update, insert
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from flask import current_app

from lobby import db
from lobby.models import Room, RoomStats, utcnow

STATS_KEY = 'rooms'
_PENDING_KEY = 'room_events'


def on_room_created(room_id: str) -> None:
    _adjust_room_count(1, room_id)


def on_room_deleted(room_id: str) -> None:
    _adjust_room_count(-1, room_id)


def _adjust_room_count(delta: int, room_id: str) -> None:
    table = RoomStats.__table__
    now = utcnow()
    try:
        with db.engine.begin() as conn:
            result = conn.execute(
                update(table)
                .where(table.c.key == STATS_KEY)
                .values(count=table.c.count + delta, updated_at=now)
            )
            if result.rowcount == 0:
                conn.execute(insert(table).values(key=STATS_KEY, count=delta, updated_at=now))
    except SQLAlchemyError as exc:
        current_app.logger.warning(f"[stats] room={room_id} delta={delta} failed: {exc}")
        return
    current_app.logger.debug(f"[stats] room={room_id} delta={delta}")


def get_room_count() -> int:
    stats = db.session.get(RoomStats, STATS_KEY, populate_existing=True)
    return stats.count if stats else 0


@event.listens_for(Session, 'after_flush')
def _collect_room_events(session, flush_context):
    pending = session.info.setdefault(_PENDING_KEY, [])
    for obj in session.new:
        if isinstance(obj, Room):
            pending.append((on_room_created, obj.id))
    for obj in session.deleted:
        if isinstance(obj, Room):
            pending.append((on_room_deleted, obj.id))


@event.listens_for(Session, 'after_commit')
def _fire_room_events(session):
    pending = session.info.pop(_PENDING_KEY, None)
    for handler, room_id in pending or ():
        handler(room_id)


@event.listens_for(Session, 'after_rollback')
def _drop_room_events(session):
    session.info.pop(_PENDING_KEY, None)
