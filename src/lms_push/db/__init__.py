"""Database module for the LMS push producer - Supabase integration."""

from lms_push.db.base import SnapshotStore
from lms_push.db.client import get_supabase_client
from lms_push.db.snapshot_store import SupabaseSnapshotStore

__all__ = ["SnapshotStore", "get_supabase_client", "SupabaseSnapshotStore"]
