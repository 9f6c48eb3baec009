"""
Supabase User Directory

Looks up account details that are not carried in the session token,
using the Supabase admin API with the service role key.
"""

import asyncio
import logging
from functools import lru_cache
from typing import Optional

from supabase import Client, create_client
from supabase.lib.client_options import ClientOptions

from postgen.config.settings import Settings, get_settings


logger = logging.getLogger(__name__)


class SupabaseUserDirectory:
    """Read-only access to Supabase Auth users."""

    def __init__(self, settings: Settings):
        self._url = settings.supabase_url
        self._service_role_key = settings.supabase_service_role_key
        self._client: Optional[Client] = None

    @property
    def client(self) -> Client:
        if self._client is None:
            options = ClientOptions(postgrest_client_timeout=30)
            self._client = create_client(self._url, self._service_role_key, options)
            logger.info("Supabase admin client initialized")
        return self._client

    async def get_email(self, user_id: str) -> Optional[str]:
        """
        Email address of a user, or None if it cannot be resolved.

        A lookup failure is not fatal for callers: Stripe customers can be
        created without an email.
        """
        try:
            response = await asyncio.to_thread(self.client.auth.admin.get_user_by_id, user_id)
        except Exception as e:
            logger.warning(f"Email lookup failed for user {user_id}: {e}")
            return None

        user = getattr(response, "user", None)
        return getattr(user, "email", None) or None


@lru_cache
def get_user_directory() -> SupabaseUserDirectory:
    return SupabaseUserDirectory(get_settings())
