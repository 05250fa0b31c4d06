"""Create the accounts and snapshots tables in Supabase."""

import httpx
from lms_push.config import get_settings
from lms_push.db.snapshot_store import CREATE_TABLE_SQL

settings = get_settings()

# Try the PostgREST rpc endpoint first; it only exists if an exec_sql
# function was created in the project beforehand
url = f"{settings.supabase_url}/rest/v1/rpc/exec_sql"
headers = {
    "apikey": settings.supabase_service_role_key,
    "Authorization": f"Bearer {settings.supabase_service_role_key}",
    "Content-Type": "application/json",
}

print("Trying to create tables via RPC...")
resp = httpx.post(url, headers=headers, json={"query": CREATE_TABLE_SQL}, timeout=30)
print(f"Status: {resp.status_code}")
print(f"Response: {resp.text[:500]}")

if resp.status_code != 200:
    print("\nRPC method didn't work. You need to create the tables manually.")
    print("Go to https://supabase.com/dashboard, select your project,")
    print("go to SQL Editor, and run this SQL:\n")
    print(CREATE_TABLE_SQL)
