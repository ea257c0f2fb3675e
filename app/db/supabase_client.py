"""Service-role Supabase client singleton and query helpers."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

from supabase import Client, ClientOptions, create_client

from app.config import settings
from app.errors import UpstreamDatabaseError

_client: Optional[Client] = None


def _create() -> Client:
    return create_client(
        settings.supabase_url,
        settings.supabase_service_role_key,
        options=ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
            headers={"X-Client-Info": "inklab-backend"},
        ),
    )


def get_supabase() -> Client:
    """Get or create the Supabase client using the service role key."""
    global _client
    if _client is None:
        _client = _create()
    return _client


def session_client() -> Client:
    """Client for password sign-in and sign-up.

    A signed-in session rebinds the client's database headers to that user,
    so these calls never go through the shared service-role client.
    """
    return _create()


async def run_blocking(fn: Callable[..., Any], *args: Any) -> Any:
    """Run a synchronous Supabase call in the default thread executor.

    The supabase client does blocking HTTP, so every call made from a
    coroutine goes through here to keep the event loop free.
    """
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, fn, *args)


async def run_query(description: str, build: Callable[[Client], Any]) -> List[Dict[str, Any]]:
    """Execute a PostgREST query and return its rows.

    Any client error is re-raised as UpstreamDatabaseError carrying the
    operation description, so callers never handle postgrest exceptions.
    """
    try:
        response = await run_blocking(lambda: build(get_supabase()).execute())
    except Exception as exc:
        raise UpstreamDatabaseError(f"Failed to {description}: {exc}") from exc
    return response.data or []
