import logging
from typing import Any, Callable, Optional

from fastapi.concurrency import run_in_threadpool
from postgrest.exceptions import APIError
from supabase import AuthError, Client

from ..schemas.auth import AuthEvent, AuthResult, AuthUser, BackendFailure, ProfileResult
from .backend import AuthListener

logger = logging.getLogger(__name__)


def _failure(exc: Exception) -> BackendFailure:
    code = getattr(exc, "code", None) or getattr(exc, "status", None) or "unknown"
    message = getattr(exc, "message", None) or str(exc)
    return BackendFailure(code=str(code), message=message)


def _to_auth_user(user) -> Optional[AuthUser]:
    if user is None:
        return None
    return AuthUser(
        id=user.id,
        email=user.email or None,
        phone=user.phone or None,
        created_at=user.created_at,
        user_metadata=user.user_metadata or {},
    )


class SupabaseAuthBackend:
    """
    `AuthBackend` over the synchronous supabase client.

    Client calls block on the network, so they run in the threadpool.
    """

    def __init__(self, supabase: Client, profiles_table: str = "profiles"):
        self.supabase = supabase
        self.profiles_table = profiles_table

    async def _auth_call(self, fn, *args) -> AuthResult:
        try:
            res = await run_in_threadpool(fn, *args)
        except AuthError as exc:
            return AuthResult(failure=_failure(exc))
        return AuthResult(user=_to_auth_user(getattr(res, "user", None)))

    async def _profile_call(self, build) -> ProfileResult:
        def run():
            return build().execute()

        try:
            res = await run_in_threadpool(run)
        except APIError as exc:
            return ProfileResult(failure=_failure(exc))
        rows = res.data or []
        return ProfileResult(row=rows[0] if rows else None)

    async def request_otp(self, phone: str) -> AuthResult:
        return await self._auth_call(self.supabase.auth.sign_in_with_otp, {"phone": phone})

    async def verify_otp(self, phone: str, token: str) -> AuthResult:
        return await self._auth_call(
            self.supabase.auth.verify_otp,
            {"phone": phone, "token": token, "type": "sms"},
        )

    async def sign_in_with_password(self, email: str, password: str) -> AuthResult:
        return await self._auth_call(
            self.supabase.auth.sign_in_with_password,
            {"email": email, "password": password},
        )

    async def sign_up(self, email: str, password: str, metadata: dict[str, Any]) -> AuthResult:
        return await self._auth_call(
            self.supabase.auth.sign_up,
            {"email": email, "password": password, "options": {"data": metadata}},
        )

    async def sign_out(self) -> AuthResult:
        try:
            await run_in_threadpool(self.supabase.auth.sign_out)
        except AuthError as exc:
            return AuthResult(failure=_failure(exc))
        return AuthResult()

    async def get_session(self) -> AuthResult:
        try:
            session = await run_in_threadpool(self.supabase.auth.get_session)
        except AuthError as exc:
            return AuthResult(failure=_failure(exc))
        return AuthResult(user=_to_auth_user(session.user if session else None))

    async def fetch_profile(self, user_id: str) -> ProfileResult:
        return await self._profile_call(
            lambda: self.supabase.table(self.profiles_table).select("*").eq("id", user_id).limit(1)
        )

    async def insert_profile(self, row: dict[str, Any]) -> ProfileResult:
        return await self._profile_call(lambda: self.supabase.table(self.profiles_table).insert(row))

    async def update_profile(self, user_id: str, changes: dict[str, Any]) -> ProfileResult:
        return await self._profile_call(
            lambda: self.supabase.table(self.profiles_table).update(changes).eq("id", user_id)
        )

    def subscribe(self, listener: AuthListener) -> Callable[[], None]:
        def on_change(event, session):
            user = _to_auth_user(session.user) if session else None
            listener(AuthEvent.parse(event), user)

        subscription = self.supabase.auth.on_auth_state_change(on_change)
        logger.debug("Subscribed to auth state changes")
        return subscription.unsubscribe
