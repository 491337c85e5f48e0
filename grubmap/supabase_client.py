from functools import lru_cache
from supabase import Client, create_client
from .config import get_settings


@lru_cache
def get_supabase_client() -> Client:
    """
    Returns a singleton Supabase client configured with the anon key.

    The app acts on behalf of the signed-in user, so row-level security on
    `profiles`, `posts` and the `media` bucket applies to every call.
    """
    settings = get_settings()
    return create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
