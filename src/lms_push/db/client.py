"""
Supabase client initialization.

Provides a configured async Supabase client for database operations.
"""

from typing import Optional

from supabase import AsyncClient, acreate_client

from lms_push.config import get_settings

_client: Optional[AsyncClient] = None


async def get_supabase_client() -> AsyncClient:
    """
    Get a cached async Supabase client instance.
    
    Returns:
        AsyncClient: Configured Supabase client
        
    Raises:
        Exception: If connection fails or credentials are invalid
    """
    global _client
    
    if _client is None:
        settings = get_settings()
        _client = await acreate_client(
            supabase_url=settings.supabase_url,
            supabase_key=settings.supabase_service_role_key,
        )
    
    return _client
