"""
Base class for LMS data providers.

The producer only talks to the LMS through this interface, so a
different LMS (or a fake in tests) can be plugged in.
"""

from abc import ABC, abstractmethod
from typing import List

from lms_push.models import Course, Deadline, Grade, GradesOverview, User


class DataProvider(ABC):
    """
    Read-only access to an account's LMS data, keyed by account token.
    
    Implementations raise InvalidToken when the LMS rejects the token
    and ProviderError for any other failure.
    """
    
    @abstractmethod
    async def validate_token(self, token: str) -> None:
        """Raise InvalidToken unless the LMS accepts the token."""
    
    @abstractmethod
    async def get_user(self, token: str) -> User:
        pass
    
    @abstractmethod
    async def get_courses(self, token: str, userid: int) -> List[Course]:
        pass
    
    @abstractmethod
    async def get_grades_by_course(
        self, token: str, userid: int, courseid: int
    ) -> List[Grade]:
        pass
    
    @abstractmethod
    async def get_grades_overview(self, token: str) -> GradesOverview:
        pass
    
    @abstractmethod
    async def get_deadlines_by_course(self, token: str, courseid: int) -> List[Deadline]:
        pass
