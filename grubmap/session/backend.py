from typing import Any, Callable, Optional, Protocol

from ..schemas.auth import AuthEvent, AuthResult, AuthUser, ProfileResult


AuthListener = Callable[[AuthEvent, Optional[AuthUser]], None]


class AuthBackend(Protocol):
    """
    The calls the session store makes against the auth platform.

    Rejections come back as a result carrying a `BackendFailure`; only
    unexpected errors (network, bugs) are raised.
    """

    async def request_otp(self, phone: str) -> AuthResult: ...

    async def verify_otp(self, phone: str, token: str) -> AuthResult: ...

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult: ...

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthResult: ...

    async def sign_out(self) -> AuthResult: ...

    async def get_session(self) -> AuthResult: ...

    async def fetch_profile(self, user_id: str) -> ProfileResult: ...

    async def insert_profile(self, row: dict[str, Any]) -> ProfileResult: ...

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> ProfileResult: ...

    def subscribe(self, listener: AuthListener) -> Callable[[], None]: ...
