"""
Paging over the registered accounts.

The caller owns the offset: every call returns the offset to pass next
time, which drops back to 0 once a page comes back empty so the next
call starts a new pass from the first account.
"""

import logging
from typing import List

from pydantic import BaseModel

from lms_push.db.base import SnapshotStore
from lms_push.models import Account

logger = logging.getLogger(__name__)


class TokenPage(BaseModel):
    """
    One page of registered accounts.
    
    Attributes:
        accounts: Accounts in registry order
        offset: Cursor to pass to the next call
    """
    accounts: List[Account]
    offset: int
    
    @property
    def has_more(self) -> bool:
        """False once a pass over all accounts is complete."""
        return bool(self.accounts)


class TokenBatcher:
    """Fetches registered accounts page by page from the snapshot store."""
    
    def __init__(self, store: SnapshotStore):
        self.store = store
    
    async def next(self, limit: int, offset: int) -> TokenPage:
        """
        Get the next page of accounts.
        
        Args:
            limit: Maximum number of accounts in the page
            offset: Cursor returned by the previous call (0 to start)
            
        Returns:
            TokenPage: The accounts and the offset for the next call
        """
        if limit <= 0:
            raise ValueError("limit must be positive")
        
        accounts = await self.store.list_accounts(limit, offset)
        
        if not accounts:
            logger.info("Reached end of account list, restarting from the beginning")
            return TokenPage(accounts=[], offset=0)
        
        return TokenPage(accounts=accounts, offset=offset + len(accounts))
