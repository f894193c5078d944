class RoomError(Exception):
    """Base class for rejected room operations.

    Nothing is written when one of these is raised: the surrounding
    transaction is rolled back before it reaches the caller.
    """
    code = 'room_error'
    status_code = 400
    message = 'Room operation failed.'

    def __init__(self, message=None):
        super().__init__(message or self.message)

    def to_dict(self):
        return {'error': str(self), 'code': self.code}


class NotSignedIn(RoomError):
    code = 'not_signed_in'
    status_code = 401
    message = 'Not signed in.'


class AlreadyInRoom(RoomError):
    code = 'already_in_room'
    status_code = 409
    message = 'You are already in a room.'


class RoomNotFound(RoomError):
    code = 'room_not_found'
    status_code = 404
    message = 'Room not found.'


class RoomNotJoinable(RoomError):
    code = 'room_not_joinable'
    status_code = 409
    message = 'Room is no longer accepting players.'


class Forbidden(RoomError):
    code = 'forbidden'
    status_code = 403
    message = 'Only the host can do that.'


class InvalidOperation(RoomError):
    code = 'invalid_operation'
    status_code = 400
    message = 'Invalid operation.'


class InvalidDisplayName(InvalidOperation):
    code = 'invalid_display_name'
    message = 'A display name is required.'
