"""
Snapshot store interface.

Keeps exactly one current value per (account, resource kind). Every save
is a full replace, so the store can only answer "what was the last state",
never "what changed".
"""

from abc import ABC, abstractmethod
from typing import Any, List

from lms_push.models import (
    Account,
    Course,
    Deadline,
    Grade,
    GradeOverview,
    GradesOverview,
    ResourceKind,
    User,
)


class SnapshotStore(ABC):
    """
    Per-account persisted state plus the registry of accounts.
    
    Subclasses provide the raw JSON primitives (load_snapshot and
    save_snapshot) and the account registry; typed accessors are built
    on top of them here.
    """
    
    @abstractmethod
    async def load_snapshot(self, token: str, kind: ResourceKind) -> Any:
        """
        Load the raw JSON snapshot of a resource kind.
        
        Raises:
            DataIsEmpty: If nothing was ever stored for this kind
            StoreError: On persistence failures
        """
    
    @abstractmethod
    async def save_snapshot(self, token: str, kind: ResourceKind, data: Any) -> None:
        """Replace the snapshot of a resource kind."""
    
    @abstractmethod
    async def save_account(self, account: Account) -> None:
        """
        Add an account to the registry.
        
        Raises:
            AccountAlreadyExists: If the token is already registered
        """
    
    @abstractmethod
    async def list_accounts(self, limit: int, offset: int) -> List[Account]:
        """Return up to limit accounts ordered by token, starting at offset."""
    
    @abstractmethod
    async def delete_account(self, token: str) -> None:
        """Remove an account and all of its snapshots."""
    
    # Typed accessors
    
    async def get_user(self, token: str) -> User:
        return User.model_validate(await self.load_snapshot(token, ResourceKind.USER))
    
    async def save_user(self, token: str, user: User) -> None:
        await self.save_snapshot(token, ResourceKind.USER, user.model_dump(mode="json"))
    
    async def get_courses(self, token: str) -> List[Course]:
        data = await self.load_snapshot(token, ResourceKind.COURSES)
        return [Course.model_validate(item) for item in data]
    
    async def save_courses(self, token: str, courses: List[Course]) -> None:
        await self.save_snapshot(
            token, ResourceKind.COURSES, [c.model_dump(mode="json") for c in courses]
        )
    
    async def get_grades(self, token: str) -> List[Grade]:
        data = await self.load_snapshot(token, ResourceKind.GRADES)
        return [Grade.model_validate(item) for item in data]
    
    async def save_grades(self, token: str, grades: List[Grade]) -> None:
        await self.save_snapshot(
            token, ResourceKind.GRADES, [g.model_dump(mode="json") for g in grades]
        )
    
    async def get_grades_overview(self, token: str) -> List[GradeOverview]:
        data = await self.load_snapshot(token, ResourceKind.GRADES_OVERVIEW)
        return GradesOverview.model_validate(data).grades
    
    async def save_grades_overview(self, token: str, overview: GradesOverview) -> None:
        await self.save_snapshot(
            token, ResourceKind.GRADES_OVERVIEW, overview.model_dump(mode="json")
        )
    
    async def get_deadlines(self, token: str) -> List[Deadline]:
        data = await self.load_snapshot(token, ResourceKind.DEADLINES)
        return [Deadline.model_validate(item) for item in data]
    
    async def save_deadlines(self, token: str, deadlines: List[Deadline]) -> None:
        await self.save_snapshot(
            token, ResourceKind.DEADLINES, [d.model_dump(mode="json") for d in deadlines]
        )
