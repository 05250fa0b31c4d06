"""
Account registration and snapshot refresh.

DataService sits between the LMS provider and the snapshot store. It
fetches a resource, annotates it with course names, puts it in canonical
order and (for the update_* operations) overwrites the stored snapshot.
"""

import logging
from typing import List, Optional

from lms_push.comparators import (
    filter_current_courses,
    sort_deadlines,
    sort_grades_overview,
)
from lms_push.db.base import SnapshotStore
from lms_push.errors import (
    AccountNotFound,
    DataIsEmpty,
    InternalError,
    InvalidToken,
    ServiceError,
)
from lms_push.models import (
    Account,
    Course,
    Deadline,
    Grade,
    GradeOverview,
    GradesOverview,
    User,
)
from lms_push.provider.base import DataProvider

logger = logging.getLogger(__name__)


class DataService:
    """
    Registration, lookup and full refresh of per-account snapshots.
    
    The update_* methods always fetch from the LMS and replace the stored
    snapshot; they never merge.
    """
    
    def __init__(self, provider: DataProvider, store: SnapshotStore):
        self.provider = provider
        self.store = store
    
    # Accounts
    
    async def register_account(self, token: str, device_token: Optional[str] = None) -> User:
        """
        Register a new account and store its full initial snapshot.
        
        Args:
            token: LMS web service token
            device_token: Optional push token of the user's device
            
        Returns:
            User: The freshly stored profile
            
        Raises:
            InvalidToken: If the LMS rejects the token
            AccountAlreadyExists: If the token is already registered
            ServiceError: If the initial fetch fails; the account is removed
                again so registration can be retried. Unexpected failures
                are raised as InternalError
        """
        try:
            await self.provider.validate_token(token)
        except ServiceError as e:
            logger.warning(f"Token validation failed: {e}")
            raise InvalidToken() from e
        
        await self.store.save_account(Account(token=token, device_token=device_token))
        
        try:
            user = await self.fetch_and_save_data(token)
        except ServiceError as e:
            logger.error(f"Initial fetch failed, rolling back registration: {e}")
            await self._rollback_registration(token)
            raise
        except Exception as e:
            logger.error(f"Unexpected error during initial fetch: {e}", exc_info=True)
            await self._rollback_registration(token)
            raise InternalError(str(e)) from e
        
        logger.info(f"Registered account for user {user.userid}")
        return user
    
    async def _rollback_registration(self, token: str) -> None:
        """Remove a half-registered account; failures are logged only."""
        try:
            await self.store.delete_account(token)
        except Exception as e:
            logger.error(f"Rollback of registration failed: {e}")
    
    async def get_account(self, token: str) -> User:
        """
        Get the stored profile of a registered account.
        
        Raises:
            AccountNotFound: If no profile is stored for this token
        """
        try:
            return await self.store.get_user(token)
        except DataIsEmpty as e:
            raise AccountNotFound(token) from e
    
    async def delete_account(self, token: str) -> None:
        await self.store.delete_account(token)
    
    async def list_accounts(self, limit: int, offset: int) -> List[Account]:
        return await self.store.list_accounts(limit, offset)
    
    async def fetch_and_save_data(self, token: str) -> User:
        """
        Fetch every resource of an account and overwrite all snapshots.
        
        Used at registration and for accounts without a device token,
        which are kept fresh without being notified. Deadlines are only
        kept for courses that have not ended.
        
        Returns:
            User: The fetched profile
        """
        user = await self.update_user(token)
        courses = await self.update_courses(token, user)
        await self.update_grades(token, user, courses)
        await self.update_grades_overview(token, courses)
        await self.update_deadlines(token, filter_current_courses(courses))
        return user
    
    # Users
    
    async def get_user(self, token: str) -> User:
        return await self.store.get_user(token)
    
    async def save_user(self, token: str, user: User) -> None:
        await self.store.save_user(token, user)
    
    async def update_user(self, token: str) -> User:
        user = await self.provider.get_user(token)
        await self.store.save_user(token, user)
        return user
    
    # Courses
    
    async def get_courses(self, token: str) -> List[Course]:
        return await self.store.get_courses(token)
    
    async def save_courses(self, token: str, courses: List[Course]) -> None:
        await self.store.save_courses(token, courses)
    
    async def update_courses(self, token: str, user: User) -> List[Course]:
        courses = await self.provider.get_courses(token, user.userid)
        await self.store.save_courses(token, courses)
        return courses
    
    # Grades
    
    async def get_grades(self, token: str) -> List[Grade]:
        return await self.store.get_grades(token)
    
    async def save_grades(self, token: str, grades: List[Grade]) -> None:
        await self.store.save_grades(token, grades)
    
    async def fetch_course_grades(
        self, token: str, user: User, course: Course
    ) -> List[Grade]:
        """Fetch the grade reports of one course, tagged with its name."""
        grades = await self.provider.get_grades_by_course(token, user.userid, course.id)
        return [grade.model_copy(update={"coursename": course.fullname}) for grade in grades]
    
    async def fetch_grades(
        self, token: str, user: User, courses: List[Course]
    ) -> List[Grade]:
        grades: List[Grade] = []
        for course in courses:
            grades.extend(await self.fetch_course_grades(token, user, course))
        return grades
    
    async def update_grades(
        self, token: str, user: User, courses: List[Course]
    ) -> List[Grade]:
        grades = await self.fetch_grades(token, user, courses)
        await self.store.save_grades(token, grades)
        return grades
    
    # Grades overview
    
    async def get_grades_overview(self, token: str) -> List[GradeOverview]:
        return sort_grades_overview(await self.store.get_grades_overview(token))
    
    async def save_grades_overview(self, token: str, overview: GradesOverview) -> None:
        await self.store.save_grades_overview(token, overview)
    
    async def fetch_grades_overview(
        self, token: str, courses: List[Course]
    ) -> GradesOverview:
        """
        Fetch the course total grades, named after the account's courses.
        
        Rows for courses the account is not enrolled in keep an empty
        name. The result is in canonical (course name) order.
        """
        overview = await self.provider.get_grades_overview(token)
        names = {course.id: course.fullname for course in courses}
        
        rows = []
        for row in overview.grades:
            if row.courseid in names:
                row = row.model_copy(update={"course_name": names[row.courseid]})
            rows.append(row)
        
        return GradesOverview(grades=sort_grades_overview(rows))
    
    async def update_grades_overview(
        self, token: str, courses: List[Course]
    ) -> GradesOverview:
        overview = await self.fetch_grades_overview(token, courses)
        await self.store.save_grades_overview(token, overview)
        return overview
    
    # Deadlines
    
    async def get_deadlines(self, token: str) -> List[Deadline]:
        return await self.store.get_deadlines(token)
    
    async def save_deadlines(self, token: str, deadlines: List[Deadline]) -> None:
        await self.store.save_deadlines(token, sort_deadlines(deadlines))
    
    async def fetch_course_deadlines(self, token: str, course: Course) -> List[Deadline]:
        """Fetch the deadlines of one course, tagged and sorted."""
        deadlines = await self.provider.get_deadlines_by_course(token, course.id)
        return sort_deadlines(
            d.model_copy(update={"coursename": course.fullname}) for d in deadlines
        )
    
    async def fetch_deadlines(self, token: str, courses: List[Course]) -> List[Deadline]:
        deadlines: List[Deadline] = []
        for course in courses:
            deadlines.extend(await self.fetch_course_deadlines(token, course))
        return sort_deadlines(deadlines)
    
    async def update_deadlines(self, token: str, courses: List[Course]) -> List[Deadline]:
        deadlines = await self.fetch_deadlines(token, courses)
        await self.store.save_deadlines(token, deadlines)
        return deadlines
