from flask import request
from flask_socketio import emit
from lobby import socketio
from lobby.services.rooms import repository
from lobby.services.rooms.feed import Subscription
from typing import Dict, List

NAMESPACE = '/ws'
LOBBY_WATCH = 'lobby'

# sid -> watch key -> live feed subscriptions
_sid_watches: Dict[str, Dict[str, List[Subscription]]] = {}


def _get_sid() -> str:
    # type: ignore: request.sid exists in Socket.IO context
    return request.sid  # type: ignore


def _room_watch(room_id: str) -> str:
    return f"room:{room_id}"


def _release(sid: str, key: str) -> bool:
    subscriptions = _sid_watches.get(sid, {}).pop(key, None)
    if not subscriptions:
        return False
    for subscription in subscriptions:
        subscription.unsubscribe()
    return True


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    # Feed subscriptions outlive the socket unless released here
    sid = _get_sid()
    for key in list(_sid_watches.get(sid, {})):
        _release(sid, key)
    _sid_watches.pop(sid, None)


def handle_watch_lobby(data=None):
    sid = _get_sid()
    _release(sid, LOBBY_WATCH)

    def _push(rooms):
        socketio.emit('rooms_waiting', {'rooms': rooms}, to=sid, namespace=NAMESPACE)

    _sid_watches.setdefault(sid, {})[LOBBY_WATCH] = [repository.subscribe_waiting_rooms(_push)]


def handle_unwatch_lobby(data=None):
    _release(_get_sid(), LOBBY_WATCH)
    emit('unwatched', {'watch': LOBBY_WATCH})


def handle_watch_room(data):
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    sid = _get_sid()
    key = _room_watch(room_id)
    _release(sid, key)

    def _push_room(room):
        socketio.emit('room_update', {'room_id': room_id, 'room': room}, to=sid, namespace=NAMESPACE)

    def _push_players(players):
        socketio.emit('room_players', {'room_id': room_id, 'players': players}, to=sid, namespace=NAMESPACE)

    _sid_watches.setdefault(sid, {})[key] = [
        repository.subscribe_room(room_id, _push_room),
        repository.subscribe_room_players(room_id, _push_players),
    ]


def handle_unwatch_room(data):
    room_id = (data or {}).get('room_id')
    if not room_id:
        emit('error', {'message': 'room_id is required'})
        return
    _release(_get_sid(), _room_watch(room_id))
    emit('unwatched', {'watch': _room_watch(room_id)})


def register_socketio_handlers() -> None:
    """Register Socket.IO event handlers on namespace '/ws'."""
    socketio.on_event('connect', handle_connect, namespace=NAMESPACE)
    socketio.on_event('disconnect', handle_disconnect, namespace=NAMESPACE)
    socketio.on_event('watch_lobby', handle_watch_lobby, namespace=NAMESPACE)
    socketio.on_event('unwatch_lobby', handle_unwatch_lobby, namespace=NAMESPACE)
    socketio.on_event('watch_room', handle_watch_room, namespace=NAMESPACE)
    socketio.on_event('unwatch_room', handle_unwatch_room, namespace=NAMESPACE)
