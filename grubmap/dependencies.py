from fastapi import Depends, HTTPException, Request

from .schemas.user import UserData
from .session.store import SessionStore


def get_session_store(request: Request) -> SessionStore:
    """
    Returns the session store the application shell created at startup.
    """
    return request.app.state.session_store


def get_current_user(store: SessionStore = Depends(get_session_store)) -> UserData:
    user = store.user
    if user is None:
        raise HTTPException(status_code=401, detail="You need to be logged in")
    return user
