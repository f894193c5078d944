"""Room lifecycle services: repository, cleanup sweeper and stats.

Routes and socket handlers import from here; everything below runs
inside a Flask app context and talks to the store through ``db.session``.
"""

from .errors import (
    RoomError,
    NotSignedIn,
    AlreadyInRoom,
    RoomNotFound,
    RoomNotJoinable,
    Forbidden,
    InvalidOperation,
    InvalidDisplayName,
)
from .session import SessionContext
