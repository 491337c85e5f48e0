from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .config import get_settings
from .routers import auth, posts
from .session.storage import JsonFileStorage
from .session.store import SessionStore
from .session.supabase_backend import SupabaseAuthBackend
from .supabase_client import get_supabase_client
from .utils.logging import configure_logging


def build_session_store() -> SessionStore:
    settings = get_settings()
    backend = SupabaseAuthBackend(get_supabase_client(), profiles_table=settings.PROFILES_TABLE)
    return SessionStore(backend, JsonFileStorage(settings.SESSION_SNAPSHOT_PATH))


def create_app(session_store: SessionStore | None = None) -> FastAPI:
    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = session_store or build_session_store()
        app.state.session_store = store
        await store.start()
        try:
            yield
        finally:
            store.stop()

    app = FastAPI(title=settings.APP_NAME, redirect_slashes=False, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth.router, prefix=settings.API_PREFIX)
    app.include_router(posts.router, prefix=settings.API_PREFIX)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app()
