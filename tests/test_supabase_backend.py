from __future__ import annotations

import asyncio
from types import SimpleNamespace
from unittest.mock import MagicMock

from postgrest.exceptions import APIError
from supabase import AuthError

from grubmap.schemas.auth import AuthEvent
from grubmap.session.supabase_backend import SupabaseAuthBackend


class _RejectedAuth(AuthError):
    def __init__(self, message: str, code: str) -> None:
        Exception.__init__(self, message)
        self.message = message
        self.code = code


def _supa_user(**overrides):
    fields = {
        "id": "u1",
        "email": "",
        "phone": "2348000000000",
        "created_at": "2024-01-01T00:00:00Z",
        "user_metadata": None,
    }
    fields.update(overrides)
    return SimpleNamespace(**fields)


def test_verify_otp_sends_sms_type_and_maps_user() -> None:
    client = MagicMock()
    client.auth.verify_otp.return_value = SimpleNamespace(user=_supa_user(), session=object())
    result = asyncio.run(SupabaseAuthBackend(client).verify_otp("+2348000000000", "123456"))

    client.auth.verify_otp.assert_called_once_with({"phone": "+2348000000000", "token": "123456", "type": "sms"})
    assert result.ok
    assert result.user.id == "u1"
    assert result.user.email is None
    assert result.user.user_metadata == {}


def test_auth_rejections_become_failures() -> None:
    client = MagicMock()
    client.auth.sign_in_with_otp.side_effect = _RejectedAuth("Invalid phone number", "validation_failed")
    result = asyncio.run(SupabaseAuthBackend(client).request_otp("abc"))
    assert not result.ok
    assert result.failure.code == "validation_failed"
    assert result.failure.message == "Invalid phone number"


def test_sign_up_passes_metadata_as_options() -> None:
    client = MagicMock()
    client.auth.sign_up.return_value = SimpleNamespace(user=_supa_user(email="a@b.co"), session=None)
    result = asyncio.run(SupabaseAuthBackend(client).sign_up("a@b.co", "secret1", {"username": "ade"}))
    client.auth.sign_up.assert_called_once_with(
        {"email": "a@b.co", "password": "secret1", "options": {"data": {"username": "ade"}}}
    )
    assert result.user.email == "a@b.co"


def test_get_session_without_session() -> None:
    client = MagicMock()
    client.auth.get_session.return_value = None
    result = asyncio.run(SupabaseAuthBackend(client).get_session())
    assert result.ok
    assert result.user is None


def test_sign_out_failure() -> None:
    client = MagicMock()
    client.auth.sign_out.side_effect = _RejectedAuth("Network request failed", "unexpected_failure")
    result = asyncio.run(SupabaseAuthBackend(client).sign_out())
    assert result.failure.message == "Network request failed"


def test_fetch_profile_uses_configured_table() -> None:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = SimpleNamespace(data=[{"id": "u1", "username": "alice"}])

    result = asyncio.run(SupabaseAuthBackend(client, profiles_table="people").fetch_profile("u1"))

    client.table.assert_called_with("people")
    client.table.return_value.select.return_value.eq.assert_called_with("id", "u1")
    assert result.row == {"id": "u1", "username": "alice"}


def test_fetch_profile_missing_row() -> None:
    client = MagicMock()
    query = client.table.return_value.select.return_value.eq.return_value.limit.return_value
    query.execute.return_value = SimpleNamespace(data=[])
    result = asyncio.run(SupabaseAuthBackend(client).fetch_profile("u1"))
    assert result.ok
    assert result.row is None


def test_profile_errors_become_failures() -> None:
    client = MagicMock()
    client.table.return_value.update.return_value.eq.return_value.execute.side_effect = APIError(
        {"message": "permission denied for table profiles", "code": "42501"}
    )
    result = asyncio.run(SupabaseAuthBackend(client).update_profile("u1", {"bio": "x"}))
    assert result.failure.code == "42501"
    assert result.failure.message == "permission denied for table profiles"


def test_subscribe_translates_events() -> None:
    client = MagicMock()
    seen = []
    unsubscribe = SupabaseAuthBackend(client).subscribe(lambda event, user: seen.append((event, user)))

    callback = client.auth.on_auth_state_change.call_args.args[0]
    callback("SIGNED_IN", SimpleNamespace(user=_supa_user()))
    callback("USER_UPDATED", SimpleNamespace(user=_supa_user()))
    callback("SIGNED_OUT", None)

    assert [event for event, _ in seen] == [AuthEvent.SIGNED_IN, AuthEvent.OTHER, AuthEvent.SIGNED_OUT]
    assert seen[0][1].id == "u1"
    assert seen[2][1] is None
    unsubscribe()
    client.auth.on_auth_state_change.return_value.unsubscribe.assert_called_once_with()
