from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, computed_field

from .user import UserData


SNAPSHOT_VERSION = 1


class SessionStatus(str, Enum):
    UNKNOWN = "unknown"
    GUEST = "guest"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class SessionState(BaseModel):
    user: Optional[UserData] = None
    is_authenticated: bool = False
    is_loading: bool = False
    # Set only while a sign-in or session check is in flight.
    is_authenticating: bool = False
    error: Optional[str] = None
    reconciled: bool = False

    @computed_field
    @property
    def status(self) -> SessionStatus:
        if self.is_authenticating:
            return SessionStatus.AUTHENTICATING
        if not self.reconciled:
            return SessionStatus.UNKNOWN
        if self.user is not None:
            return SessionStatus.AUTHENTICATED
        return SessionStatus.GUEST


class SessionSnapshot(BaseModel):
    """Reduced projection of the session written to on-device storage."""

    model_config = ConfigDict(populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    user: Optional[UserData] = None
    is_authenticated: bool = Field(False, alias="isAuthenticated")
