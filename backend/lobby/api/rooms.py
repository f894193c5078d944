from flask import Blueprint, jsonify, request
from lobby.services.rooms import RoomError, RoomNotFound, InvalidOperation, SessionContext
from lobby.services.rooms import repository
from lobby.services.rooms.stats import get_room_count


rooms = Blueprint('rooms', __name__)


@rooms.errorhandler(RoomError)
def handle_room_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


@rooms.route('/', methods=['GET'])
def list_waiting_rooms():
    return jsonify({'rooms': repository.list_waiting_rooms()})


@rooms.route('/', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    result = repository.create_room(SessionContext.from_current_user(), data.get('display_name'))
    return jsonify(result), 201


@rooms.route('/active', methods=['GET'])
def get_active_room():
    room_id = repository.get_active_room_id(SessionContext.from_current_user())
    return jsonify({'room_id': room_id})


@rooms.route('/stats', methods=['GET'])
def get_stats():
    return jsonify({'count': get_room_count()})


@rooms.route('/<string:room_id>', methods=['GET'])
def get_room(room_id):
    room = repository.get_room(room_id)
    if room is None:
        raise RoomNotFound()
    return jsonify(room)


@rooms.route('/<string:room_id>/players', methods=['GET'])
def list_players(room_id):
    return jsonify({'players': repository.list_room_players(room_id)})


@rooms.route('/<string:room_id>/join', methods=['POST'])
def join_room(room_id):
    data = request.get_json(silent=True) or {}
    result = repository.join_room(SessionContext.from_current_user(), room_id, data.get('display_name'))
    return jsonify(result), 201


@rooms.route('/<string:room_id>/leave', methods=['POST'])
def leave_room(room_id):
    repository.leave_room(SessionContext.from_current_user(), room_id)
    return jsonify({'message': 'You have left the room.'})


@rooms.route('/<string:room_id>/kick', methods=['POST'])
def kick_player(room_id):
    data = request.get_json(silent=True) or {}
    target_uid = data.get('uid')
    if not target_uid:
        raise InvalidOperation('Player uid is required.')
    repository.kick_player(SessionContext.from_current_user(), room_id, target_uid)
    return jsonify({'message': 'Player kicked.'})


@rooms.route('/<string:room_id>/start', methods=['POST'])
def start_game(room_id):
    room = repository.start_game(SessionContext.from_current_user(), room_id)
    return jsonify(room)
