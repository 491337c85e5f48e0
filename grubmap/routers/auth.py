from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_current_user, get_session_store
from ..schemas.auth import OtpVerifyPayload, PasswordLoginPayload, PhoneLoginPayload, RegisterPayload
from ..schemas.session import SessionState
from ..schemas.user import ProfileUpdate, UserData
from ..session.store import SessionStore

router = APIRouter(prefix="/auth", tags=["auth"])


def _raise_store_error(store: SessionStore, fallback: str):
    detail = store.take_error() or fallback
    raise HTTPException(status_code=400, detail=detail)


@router.post("/otp")
async def request_otp(payload: PhoneLoginPayload, store: SessionStore = Depends(get_session_store)):
    if not await store.login_with_phone(payload.phone):
        _raise_store_error(store, "Login failed")
    return {"sent": True, "phone": payload.phone}


@router.post("/otp/verify", response_model=SessionState)
async def verify_otp(payload: OtpVerifyPayload, store: SessionStore = Depends(get_session_store)):
    if not await store.verify_phone_otp(payload.phone, payload.token):
        _raise_store_error(store, "OTP verification failed")
    return store.state


@router.post("/login", response_model=SessionState)
async def login(payload: PasswordLoginPayload, store: SessionStore = Depends(get_session_store)):
    if not await store.login_with_password(payload.email, payload.password):
        _raise_store_error(store, "Invalid credentials")
    return store.state


@router.post("/register", status_code=201)
async def register(payload: RegisterPayload, store: SessionStore = Depends(get_session_store)):
    if not await store.register(payload.email, payload.password, payload.additional_data()):
        _raise_store_error(store, "Unable to sign up")
    return {"registered": True, "email": payload.email}


@router.post("/logout", response_model=SessionState)
async def logout(store: SessionStore = Depends(get_session_store)):
    await store.logout()
    if store.error:
        _raise_store_error(store, "Logout failed")
    return store.state


@router.get("/session", response_model=SessionState)
def session(store: SessionStore = Depends(get_session_store)):
    return store.state


@router.post("/session/refresh", response_model=SessionState)
async def refresh_session(store: SessionStore = Depends(get_session_store)):
    await store.check_auth_status()
    if store.error:
        _raise_store_error(store, "Auth check failed")
    return store.state


@router.get("/me", response_model=UserData)
def me(user: UserData = Depends(get_current_user)):
    return user


@router.patch("/me", response_model=UserData)
async def update_profile(
    payload: ProfileUpdate,
    user: UserData = Depends(get_current_user),
    store: SessionStore = Depends(get_session_store),
):
    if not await store.update_profile(payload):
        _raise_store_error(store, "Update failed")
    return store.user


@router.delete("/error", status_code=204)
def clear_error(store: SessionStore = Depends(get_session_store)):
    store.clear_error()
