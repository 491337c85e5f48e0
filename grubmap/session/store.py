import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from pydantic import ValidationError

from ..schemas.auth import AuthEvent, AuthUser
from ..schemas.session import SNAPSHOT_VERSION, SessionSnapshot, SessionState
from ..schemas.user import ProfileUpdate, UserData
from ..utils.logging import log_action
from .backend import AuthBackend
from .storage import SnapshotStorage

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], None]

_ROLES = ("user", "vendor")


class SessionStore:
    """
    Single source of truth for who is logged in.

    Actions call the auth backend and reconcile the outcome into a
    `SessionState`. They never raise: failures resolve to False (or None)
    with `error` set. Every state change is mirrored into `storage` as a
    `{version, user, isAuthenticated}` snapshot, which seeds the state the
    next time the store is constructed.
    """

    def __init__(
        self,
        backend: AuthBackend,
        storage: SnapshotStorage,
        clock: Callable[[], datetime] | None = None,
    ):
        self.backend = backend
        self.storage = storage
        self._now = clock or (lambda: datetime.now(timezone.utc))
        self._state = SessionState()
        self._listeners: list[StateListener] = []
        # Bumped on every identity write; lets a slow status check detect
        # that it has been superseded.
        self._generation = 0
        self._loop: asyncio.AbstractEventLoop | None = None
        self._unsubscribe: Callable[[], None] | None = None
        self._pending: set[asyncio.Task] = set()
        self._restore()

    # -- state ---------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state.model_copy()

    @property
    def user(self) -> Optional[UserData]:
        return self._state.user

    @property
    def is_authenticated(self) -> bool:
        return self._state.is_authenticated

    @property
    def is_loading(self) -> bool:
        return self._state.is_loading

    @property
    def error(self) -> Optional[str]:
        return self._state.error

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set(self, **changes: Any) -> None:
        if "user" in changes:
            changes["is_authenticated"] = changes["user"] is not None
            self._generation += 1
        self._state = self._state.model_copy(update=changes)
        self._persist()
        state = self.state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Session state listener failed")

    def _persist(self) -> None:
        snapshot = SessionSnapshot(
            version=SNAPSHOT_VERSION,
            user=self._state.user,
            is_authenticated=self._state.is_authenticated,
        )
        try:
            self.storage.save(snapshot.model_dump(mode="json", by_alias=True))
        except OSError as exc:
            logger.warning("Could not persist session snapshot: %s", exc)

    def _restore(self) -> None:
        data = self.storage.load()
        if not data:
            return
        if data.get("version") != SNAPSHOT_VERSION:
            logger.info("Discarding session snapshot with version %r", data.get("version"))
            return
        try:
            snapshot = SessionSnapshot.model_validate(data)
        except ValidationError as exc:
            logger.warning("Discarding unreadable session snapshot: %s", exc)
            return
        # Trust the user, not the stored flag.
        self._state = SessionState(user=snapshot.user, is_authenticated=snapshot.user is not None)

    # -- setters -------------------------------------------------------------

    def set_user(self, user: Optional[UserData]) -> None:
        self._set(user=user)

    def set_loading(self, loading: bool) -> None:
        self._set(is_loading=loading)

    def set_error(self, error: Optional[str]) -> None:
        self._set(error=error)

    def clear_error(self) -> None:
        self._set(error=None)

    def take_error(self) -> Optional[str]:
        """Return the current error and clear it (show-once semantics)."""
        error = self._state.error
        if error is not None:
            self.clear_error()
        return error

    def _begin(self, authenticating: bool = False) -> None:
        if authenticating:
            self._set(is_loading=True, is_authenticating=True, error=None)
        else:
            self._set(is_loading=True, error=None)

    def _fail(self, message: str, **changes: Any) -> None:
        self._set(error=message, is_loading=False, **changes)

    # -- profile helpers -----------------------------------------------------

    def _build_user(self, auth_user: AuthUser, profile: Optional[dict]) -> UserData:
        profile = profile or {}
        metadata = auth_user.user_metadata or {}
        role = profile.get("role")
        return UserData(
            id=auth_user.id,
            email=auth_user.email or profile.get("email"),
            full_name=profile.get("full_name") or metadata.get("full_name"),
            username=profile.get("username") or metadata.get("username"),
            phone=profile.get("phone") or metadata.get("phone") or auth_user.phone,
            bio=profile.get("bio"),
            location=profile.get("location"),
            profile_photo=profile.get("profile_photo") or metadata.get("avatar_url"),
            role=role if role in _ROLES else "user",
            created_at=auth_user.created_at,
            updated_at=profile.get("updated_at"),
        )

    def _user_from(self, auth_user: AuthUser, profile: Optional[dict]) -> UserData:
        """Session user merged with its profile row; a malformed row is skipped."""
        try:
            return self._build_user(auth_user, profile)
        except ValidationError as exc:
            log_action("profile_merge", auth_user.id, exc)
            return self._build_user(auth_user, None)

    async def _fetch_profile(self, user_id: str) -> tuple[bool, Optional[dict]]:
        """Returns `(looked_up, row)`; `row` is None for a missing row or a failed lookup."""
        try:
            found = await self.backend.fetch_profile(user_id)
        except Exception as exc:
            log_action("profile_lookup", user_id, exc)
            return False, None
        if not found.ok:
            log_action("profile_lookup", user_id, found.failure.message)
            return False, None
        return True, found.row

    async def _create_profile(self, row: dict) -> Optional[dict]:
        try:
            created = await self.backend.insert_profile(row)
        except Exception as exc:
            log_action("profile_create", row.get("id"), exc)
            return None
        if not created.ok:
            log_action("profile_create", row.get("id"), created.failure.message)
            return None
        return created.row or row

    # -- actions -------------------------------------------------------------

    async def login_with_phone(self, phone: str) -> bool:
        self._begin()
        try:
            result = await self.backend.request_otp(phone.strip())
        except Exception:
            logger.exception("OTP request failed")
            self._fail("Login failed")
            return False
        if not result.ok:
            self._fail(result.failure.message)
            return False
        self._set(is_loading=False)
        return True

    async def verify_phone_otp(self, phone: str, token: str) -> bool:
        phone = phone.strip()
        self._begin(authenticating=True)
        try:
            result = await self.backend.verify_otp(phone, token.strip())
            if not result.ok:
                self._fail(result.failure.message, is_authenticating=False)
                return False
            auth_user = result.user
            if auth_user is None:
                self._fail("Invalid user", is_authenticating=False)
                return False

            looked_up, profile = await self._fetch_profile(auth_user.id)
            if looked_up and profile is None:
                profile = await self._create_profile({"id": auth_user.id, "phone": phone})

            self._set(
                user=self._user_from(auth_user, profile),
                is_loading=False,
                is_authenticating=False,
                error=None,
                reconciled=True,
            )
            return True
        except Exception:
            logger.exception("OTP verification failed")
            self._fail("OTP verification failed", is_authenticating=False)
            return False

    async def login_with_password(self, email: str, password: str) -> bool:
        self._begin(authenticating=True)
        try:
            result = await self.backend.sign_in_with_password(email.lower().strip(), password)
            if not result.ok:
                self._fail(result.failure.message, is_authenticating=False)
                return False
            if result.user is None:
                self._set(is_loading=False, is_authenticating=False)
                return False
            _, profile = await self._fetch_profile(result.user.id)
            self._set(
                user=self._user_from(result.user, profile),
                is_loading=False,
                is_authenticating=False,
                error=None,
                reconciled=True,
            )
            return True
        except Exception:
            logger.exception("Password login failed")
            self._fail("Login failed", is_authenticating=False)
            return False

    async def register(self, email: str, password: str, additional_data: dict | None = None) -> bool:
        email = email.lower().strip()
        additional_data = additional_data or {}
        metadata = {key: additional_data.get(key) for key in ("full_name", "username", "phone")}
        self._begin()
        try:
            result = await self.backend.sign_up(email, password, metadata)
            if not result.ok:
                self._fail(result.failure.message)
                return False
            if result.user is None:
                self._set(is_loading=False)
                return False

            row = {"id": result.user.id, "email": result.user.email or email}
            row.update({key: value for key, value in metadata.items() if value})
            await self._create_profile(row)

            self._set(is_loading=False, error=None)
            return True
        except Exception:
            logger.exception("Registration failed")
            self._fail("Registration failed")
            return False

    async def logout(self) -> None:
        self._set(is_loading=True)
        try:
            result = await self.backend.sign_out()
        except Exception:
            logger.exception("Logout failed")
            self._fail("Logout failed")
            return
        if not result.ok:
            self._fail(result.failure.message)
            return
        self._set(user=None, is_loading=False, error=None)

    async def update_profile(self, changes: ProfileUpdate | dict) -> bool:
        current = self._state.user
        if current is None:
            self._set(error="No user logged in")
            return False

        try:
            if not isinstance(changes, ProfileUpdate):
                changes = ProfileUpdate.model_validate(changes)
        except ValidationError as exc:
            self._set(error=exc.errors()[0]["msg"])
            return False

        stamp = self._now()
        row = {**changes.profile_row(), "updated_at": stamp.isoformat()}
        self._begin()
        try:
            result = await self.backend.update_profile(current.id, row)
            if not result.ok:
                log_action("profile_update", current.id, result.failure.message)
                self._fail(result.failure.message)
                return False

            latest = self._state.user
            if latest is None or latest.id != current.id:
                # Signed out (or switched account) while the update was in flight.
                self._set(is_loading=False)
                return True
            merged = latest.model_copy(update={**changes.provided(), "updated_at": stamp})
            self._set(user=merged, is_loading=False, error=None)
            return True
        except Exception:
            logger.exception("Profile update failed")
            self._fail("Update failed")
            return False

    async def check_auth_status(self) -> None:
        self._begin(authenticating=True)
        generation = self._generation
        try:
            result = await self.backend.get_session()
            if not result.ok:
                self._fail(result.failure.message, is_authenticating=False)
                return

            user = None
            if result.user is not None:
                _, profile = await self._fetch_profile(result.user.id)
                user = self._user_from(result.user, profile)

            if generation != self._generation:
                logger.info("Discarding auth status superseded by a newer sign-in or sign-out")
                self._set(is_loading=False, is_authenticating=False)
                return
            self._set(user=user, is_loading=False, is_authenticating=False, error=None, reconciled=True)
        except Exception:
            logger.exception("Auth check failed")
            self._fail("Auth check failed", is_authenticating=False)

    # -- lifecycle -----------------------------------------------------------

    async def start(self) -> None:
        """Subscribe to backend session changes and reconcile once."""
        if self._unsubscribe is None:
            self._loop = asyncio.get_running_loop()
            self._unsubscribe = self.backend.subscribe(self._on_auth_event)
        await self.check_auth_status()

    def stop(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        self._loop = None

    def _on_auth_event(self, event: AuthEvent, user: Optional[AuthUser]) -> None:
        # Called from whichever thread the client fired the event on.
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._handle_auth_event, event, user)

    def _handle_auth_event(self, event: AuthEvent, user: Optional[AuthUser]) -> None:
        if self._loop is None:
            return
        if event is AuthEvent.SIGNED_OUT or user is None:
            self.set_user(None)
        elif event in (AuthEvent.SIGNED_IN, AuthEvent.TOKEN_REFRESHED):
            task = self._loop.create_task(self.check_auth_status())
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
