"""
Pytest config.

Settings are read from the environment when `grubmap.main` is imported, so
the Supabase variables are pinned here before any test module imports it.
The session store is exercised against `FakeAuthBackend`, an in-memory
stand-in for the auth platform.
"""

from __future__ import annotations

import os
from datetime import datetime, timezone

import pytest

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_ANON_KEY", "test-anon-key")

from grubmap.schemas.auth import AuthEvent, AuthResult, AuthUser, BackendFailure, ProfileResult  # noqa: E402
from grubmap.session.storage import MemoryStorage  # noqa: E402
from grubmap.session.store import SessionStore  # noqa: E402

CREATED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeAuthBackend:
    def __init__(self) -> None:
        self.session_user: AuthUser | None = None
        self.accounts: dict[str, tuple[str, AuthUser]] = {}
        self.otp_codes: dict[str, str] = {}
        self.profiles: dict[str, dict] = {}
        self.calls: list[tuple] = []
        self.failures: dict[str, BackendFailure] = {}
        self.errors: dict[str, Exception] = {}
        self.listeners: list = []

    def _enter(self, name: str, *args) -> BackendFailure | None:
        self.calls.append((name, *args))
        if name in self.errors:
            raise self.errors.pop(name)
        return self.failures.pop(name, None)

    def called(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]

    def emit(self, event: AuthEvent, user: AuthUser | None) -> None:
        for listener in list(self.listeners):
            listener(event, user)

    async def request_otp(self, phone):
        failure = self._enter("request_otp", phone)
        if failure:
            return AuthResult(failure=failure)
        self.otp_codes.setdefault(phone, "123456")
        return AuthResult()

    async def verify_otp(self, phone, token):
        failure = self._enter("verify_otp", phone, token)
        if failure:
            return AuthResult(failure=failure)
        if self.otp_codes.get(phone) != token:
            return AuthResult(failure=BackendFailure(code="otp_expired", message="Token has expired or is invalid"))
        self.session_user = AuthUser(id=f"u-{phone}", phone=phone, created_at=CREATED_AT)
        return AuthResult(user=self.session_user)

    async def sign_in_with_password(self, email, password):
        failure = self._enter("sign_in_with_password", email)
        if failure:
            return AuthResult(failure=failure)
        account = self.accounts.get(email)
        if account is None or account[0] != password:
            return AuthResult(failure=BackendFailure(code="invalid_credentials", message="Invalid login credentials"))
        self.session_user = account[1]
        return AuthResult(user=account[1])

    async def sign_up(self, email, password, metadata):
        failure = self._enter("sign_up", email, metadata)
        if failure:
            return AuthResult(failure=failure)
        if email in self.accounts:
            return AuthResult(failure=BackendFailure(code="user_already_exists", message="User already registered"))
        user = AuthUser(id=f"u-{len(self.accounts) + 1}", email=email, created_at=CREATED_AT, user_metadata=metadata)
        self.accounts[email] = (password, user)
        return AuthResult(user=user)

    async def sign_out(self):
        failure = self._enter("sign_out")
        if failure:
            return AuthResult(failure=failure)
        self.session_user = None
        return AuthResult()

    async def get_session(self):
        failure = self._enter("get_session")
        if failure:
            return AuthResult(failure=failure)
        return AuthResult(user=self.session_user)

    async def fetch_profile(self, user_id):
        failure = self._enter("fetch_profile", user_id)
        if failure:
            return ProfileResult(failure=failure)
        return ProfileResult(row=self.profiles.get(user_id))

    async def insert_profile(self, row):
        failure = self._enter("insert_profile", row)
        if failure:
            return ProfileResult(failure=failure)
        self.profiles[row["id"]] = dict(row)
        return ProfileResult(row=dict(row))

    async def update_profile(self, user_id, changes):
        failure = self._enter("update_profile", user_id, changes)
        if failure:
            return ProfileResult(failure=failure)
        self.profiles.setdefault(user_id, {"id": user_id}).update(changes)
        return ProfileResult(row=self.profiles[user_id])

    def subscribe(self, listener):
        self.listeners.append(listener)
        return lambda: self.listeners.remove(listener)


@pytest.fixture
def backend() -> FakeAuthBackend:
    return FakeAuthBackend()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def store(backend: FakeAuthBackend, storage: MemoryStorage) -> SessionStore:
    return SessionStore(backend, storage, clock=lambda: datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))
