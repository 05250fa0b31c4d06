"""Register an account (token + optional device token) and store its first snapshot."""
import asyncio, sys
from lms_push.config import get_settings, setup_logging
from lms_push.db import SupabaseSnapshotStore
from lms_push.errors import ServiceError
from lms_push.provider import MoodleProvider
from lms_push.services import DataService


async def register(token: str, device_token: str = None) -> int:
    store = await SupabaseSnapshotStore.create()
    async with MoodleProvider(get_settings()) as provider:
        service = DataService(provider, store)
        try:
            user = await service.register_account(token, device_token)
        except ServiceError as e:
            print(f"Registration failed: {e}")
            return 1
    print(f"Registered {user.fullname} (id: {user.userid})")
    return 0


if __name__ == "__main__":
    if len(sys.argv) not in (2, 3):
        print("usage: register_account.py <moodle token> [device token]")
        sys.exit(1)
    setup_logging()
    sys.exit(asyncio.run(register(*sys.argv[1:])))
