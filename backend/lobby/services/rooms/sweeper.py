from datetime import datetime, timedelta
from typing import List, Optional

from flask import current_app

from lobby import db, socketio
from lobby.models import Room, Player, User, utcnow
from .feed import publish_room_changed
from .transactions import run_in_transaction


def _cutoff(now: Optional[datetime] = None) -> datetime:
    window = int(current_app.config.get('WAITING_WINDOW_SEC', 600))
    return (now or utcnow()) - timedelta(seconds=window)


def _is_stale(room: Room, cutoff: datetime) -> bool:
    max_players = int(current_app.config.get('CLEANUP_MAX_PLAYERS', 1))
    return (
        room.player_count <= max_players
        and room.waiting_since is not None
        and room.waiting_since <= cutoff
    )


def select_stale_rooms(now: Optional[datetime] = None) -> List[Room]:
    """Rooms down to one player whose waiting window has run out."""
    max_players = int(current_app.config.get('CLEANUP_MAX_PLAYERS', 1))
    return Room.query.filter(
        Room.player_count <= max_players,
        Room.waiting_since.isnot(None),
        Room.waiting_since <= _cutoff(now),
    ).all()


def delete_room(room_id: str, cutoff: Optional[datetime] = None) -> bool:
    """Delete a room with all of its players in one transaction.

    With ``cutoff`` the room is re-checked first and kept if someone joined
    since it was selected. Users still pointing at the room are detached.
    """
    def _body():
        room = db.session.get(Room, room_id)
        if room is None:
            return False
        if cutoff is not None and not _is_stale(room, cutoff):
            return False
        for player in Player.query.filter_by(room_id=room_id).all():
            db.session.delete(player)
        for user in User.query.filter_by(active_room_id=room_id).all():
            user.active_room_id = None
        db.session.delete(room)
        return True

    deleted = run_in_transaction(_body)
    if deleted:
        current_app.logger.info(f"[room-delete] room={room_id}")
        publish_room_changed(room_id)
    return deleted


def sweep_stale_rooms(now: Optional[datetime] = None) -> dict:
    """Delete every stale room; rooms are handled independently."""
    cutoff = _cutoff(now)
    room_ids = [room.id for room in select_stale_rooms(now)]
    deleted = 0
    failed = []
    for room_id in room_ids:
        try:
            if delete_room(room_id, cutoff=cutoff):
                deleted += 1
        except Exception as exc:
            failed.append(room_id)
            current_app.logger.error(f"[sweep] room={room_id} delete failed: {exc}")
    current_app.logger.info(f"[sweep] selected={len(room_ids)} deleted={deleted} failed={len(failed)}")
    return {'selected': len(room_ids), 'deleted': deleted, 'failed': failed}


def start_cleanup_scheduler(app):
    """Run the sweep every CLEANUP_INTERVAL_SEC on a background task.

    - No-ops in TESTING mode or when CLEANUP_SCHEDULER_ENABLED is off
      (an external scheduler then runs `flask cleanup-rooms`)
    - A failed sweep is logged and the loop keeps going
    """
    if app.config.get('TESTING') or not app.config.get('CLEANUP_SCHEDULER_ENABLED', True):
        return None
    interval = int(app.config.get('CLEANUP_INTERVAL_SEC', 300))

    def _worker():
        while True:
            socketio.sleep(interval)
            with app.app_context():
                try:
                    sweep_stale_rooms()
                except Exception as exc:
                    app.logger.error(f"[sweep] run failed: {exc}")
                finally:
                    db.session.remove()

    app.logger.info(f"[sweep] scheduler started interval={interval}s")
    return socketio.start_background_task(_worker)
