"""
Supabase-backed snapshot store.

Stores the account registry and one JSON snapshot per
(account, resource kind) in Supabase.
"""

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

import httpx
from postgrest.exceptions import APIError
from supabase import AsyncClient

from lms_push.db.base import SnapshotStore
from lms_push.db.client import get_supabase_client
from lms_push.errors import AccountAlreadyExists, DataIsEmpty, StoreError
from lms_push.models import Account, ResourceKind

logger = logging.getLogger(__name__)

# Table names in Supabase
ACCOUNTS_TABLE = "accounts"
SNAPSHOTS_TABLE = "snapshots"

# Postgres unique_violation
UNIQUE_VIOLATION = "23505"

# Errors raised by the postgrest layer for a failed request
STORE_ERRORS = (APIError, httpx.HTTPError)


class SupabaseSnapshotStore(SnapshotStore):
    """
    Snapshot store on top of two Supabase tables.
    
    - accounts: one row per registered token
    - snapshots: one row per (token, kind), upserted on every save
    """
    
    def __init__(self, client: AsyncClient):
        """
        Initialize the store.
        
        Args:
            client: Async Supabase client
        """
        self.client = client
    
    @classmethod
    async def create(cls, client: Optional[AsyncClient] = None) -> "SupabaseSnapshotStore":
        """Build a store using the shared client unless one is given."""
        return cls(client or await get_supabase_client())
    
    async def load_snapshot(self, token: str, kind: ResourceKind) -> Any:
        try:
            result = await (
                self.client.table(SNAPSHOTS_TABLE)
                .select("data")
                .eq("token", token)
                .eq("kind", kind.value)
                .limit(1)
                .execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Error loading {kind.value} snapshot: {e}") from e
        
        if not result.data:
            raise DataIsEmpty(kind.value)
        return result.data[0]["data"]
    
    async def save_snapshot(self, token: str, kind: ResourceKind, data: Any) -> None:
        record = {
            "token": token,
            "kind": kind.value,
            "data": data,
            "updated_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await (
                self.client.table(SNAPSHOTS_TABLE)
                .upsert(record, on_conflict="token,kind")
                .execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Error saving {kind.value} snapshot: {e}") from e
        
        logger.debug(f"Saved {kind.value} snapshot")
    
    async def save_account(self, account: Account) -> None:
        try:
            await (
                self.client.table(ACCOUNTS_TABLE)
                .insert(account.model_dump())
                .execute()
            )
        except APIError as e:
            if e.code == UNIQUE_VIOLATION:
                raise AccountAlreadyExists(account.token) from e
            raise StoreError(f"Error saving account: {e}") from e
        except httpx.HTTPError as e:
            raise StoreError(f"Error saving account: {e}") from e
    
    async def list_accounts(self, limit: int, offset: int) -> List[Account]:
        try:
            result = await (
                self.client.table(ACCOUNTS_TABLE)
                .select("token, device_token")
                .order("token")
                .range(offset, offset + limit - 1)
                .execute()
            )
        except STORE_ERRORS as e:
            raise StoreError(f"Error listing accounts: {e}") from e
        
        return [Account.model_validate(row) for row in result.data or []]
    
    async def delete_account(self, token: str) -> None:
        try:
            await self.client.table(SNAPSHOTS_TABLE).delete().eq("token", token).execute()
            await self.client.table(ACCOUNTS_TABLE).delete().eq("token", token).execute()
        except STORE_ERRORS as e:
            raise StoreError(f"Error deleting account: {e}") from e
        
        logger.info("Deleted account and its snapshots")


# SQL for creating the Supabase tables (run this in Supabase SQL Editor)
CREATE_TABLE_SQL = """
-- Registered accounts
CREATE TABLE IF NOT EXISTS accounts (
    token TEXT PRIMARY KEY,
    device_token TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW()
);

-- One current snapshot per (account, resource kind)
CREATE TABLE IF NOT EXISTS snapshots (
    token TEXT NOT NULL REFERENCES accounts(token) ON DELETE CASCADE,
    kind TEXT NOT NULL,
    data JSONB NOT NULL,
    updated_at TIMESTAMPTZ DEFAULT NOW(),
    PRIMARY KEY (token, kind)
);

-- Enable Row Level Security (optional but recommended)
ALTER TABLE accounts ENABLE ROW LEVEL SECURITY;
ALTER TABLE snapshots ENABLE ROW LEVEL SECURITY;

-- Create policies for service role (full access)
CREATE POLICY "Service role has full access" ON accounts
    FOR ALL
    USING (true)
    WITH CHECK (true);

CREATE POLICY "Service role has full access" ON snapshots
    FOR ALL
    USING (true)
    WITH CHECK (true);
"""
