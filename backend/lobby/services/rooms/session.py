from dataclasses import dataclass
from typing import Optional

from flask_login import current_user

from .errors import NotSignedIn


@dataclass(frozen=True)
class SessionContext:
    """The caller of a room operation, passed explicitly into every call."""
    uid: Optional[str] = None

    @classmethod
    def from_current_user(cls) -> 'SessionContext':
        if current_user and current_user.is_authenticated:
            return cls(uid=current_user.get_id())
        return cls()

    def require_uid(self) -> str:
        if not self.uid:
            raise NotSignedIn()
        return self.uid
