"""
Change detection and notification dispatch.

For every account in a batch, fetches each resource from the LMS,
compares it with the stored snapshot, sends one push notification per
new or changed item and then persists the fresh snapshot.

Resources are processed in a fixed order for each account:
1. User profile
2. Courses
3. Grades
4. Grades overview
5. Deadlines (current courses only)

A failure in steps 1-2 skips the rest of the account. Steps 3-5 are
independent and a failure in one does not stop the others. Nothing here
raises past process_batch, so one bad account never stops a batch.
"""

import logging
from typing import Dict, List, Optional

from lms_push.comparators import (
    compare_courses,
    compare_deadlines,
    compare_grades,
    compare_grades_overview,
    filter_current_courses,
)
from lms_push.errors import DataIsEmpty, ServiceError
from lms_push.models import Account, Course, Deadline, Grade, GradeChange, Notification, User
from lms_push.notify.base import NotificationSink
from lms_push.notify.formatters import MessageFormatter
from lms_push.provider.base import DataProvider
from lms_push.services.batcher import TokenBatcher
from lms_push.services.data_service import DataService

logger = logging.getLogger(__name__)


def mask_token(token: str) -> str:
    """Shorten a token for log output."""
    return f"{token[:4]}..." if len(token) > 4 else "***"


class ProducerService:
    """
    Drives the fetch, compare, notify, persist pipeline.
    
    Accounts are processed one at a time and every LMS, store and push
    call is awaited before the next one starts. Running two producers
    against the same store is not supported: both would read the same
    snapshot and notify twice.
    """
    
    def __init__(
        self,
        provider: DataProvider,
        data_service: DataService,
        notifier: NotificationSink,
        formatter: Optional[MessageFormatter] = None,
        timezone: str = "UTC",
    ):
        """
        Initialize the producer.
        
        Args:
            provider: LMS data provider
            data_service: Snapshot access and refresh
            notifier: Push notification sink
            formatter: Message formatter, default MessageFormatter
            timezone: Timezone used to render deadline times
        """
        self.provider = provider
        self.data_service = data_service
        self.notifier = notifier
        self.formatter = formatter or MessageFormatter()
        self.timezone = timezone
        self.batcher = TokenBatcher(data_service.store)
        
        self.stats: Dict[str, int] = self._empty_stats()
    
    @staticmethod
    def _empty_stats() -> Dict[str, int]:
        return {
            "accounts_processed": 0,
            "accounts_resynced": 0,
            "accounts_failed": 0,
            "notifications_sent": 0,
            "notifications_failed": 0,
        }
    
    async def run_batch(self, limit: int, offset: int) -> int:
        """
        Process the next page of accounts.
        
        Args:
            limit: Maximum number of accounts in the batch
            offset: Cursor returned by the previous call (0 to start)
            
        Returns:
            int: Offset to pass to the next call; 0 once a pass is complete
        """
        try:
            page = await self.batcher.next(limit, offset)
        except ServiceError as e:
            logger.error(f"Error fetching accounts at offset {offset}: {e}")
            return offset
        
        if page.has_more:
            await self.process_batch(page.accounts)
        
        return page.offset
    
    async def process_batch(self, batch: List[Account]) -> Dict[str, int]:
        """
        Process every account of a batch in order.
        
        Args:
            batch: Accounts to process
            
        Returns:
            Dict[str, int]: Counters for this batch
        """
        self.stats = self._empty_stats()
        
        for account in batch:
            if account.device_token:
                await self.process_account(account)
            else:
                await self.resync_account(account)
            self.stats["accounts_processed"] += 1
        
        self._log_summary()
        return self.stats
    
    async def resync_account(self, account: Account) -> None:
        """Refresh all snapshots of an account without notifying."""
        try:
            await self.data_service.fetch_and_save_data(account.token)
            self.stats["accounts_resynced"] += 1
        except Exception as e:
            logger.error(f"Error resyncing account {mask_token(account.token)}: {e}")
            self.stats["accounts_failed"] += 1
    
    async def process_account(self, account: Account) -> None:
        """
        Run all resource pipelines for an account with a device token.
        
        Args:
            account: Account to process; device_token must be set
        """
        token = account.token
        device_token = account.device_token
        
        try:
            user = await self.produce_user_info(token, device_token)
        except Exception as e:
            logger.error(f"Error producing user info for {mask_token(token)}: {e}")
            self.stats["accounts_failed"] += 1
            return
        
        try:
            courses = await self.produce_course(token, device_token, user)
        except Exception as e:
            logger.error(f"Error producing courses for {mask_token(token)}: {e}")
            self.stats["accounts_failed"] += 1
            return
        
        try:
            await self.produce_grade(token, device_token, user, courses)
        except Exception as e:
            logger.error(f"Error producing grades for {mask_token(token)}: {e}")
        
        try:
            await self.produce_grade_overview(token, device_token, courses)
        except Exception as e:
            logger.error(f"Error producing grades overview for {mask_token(token)}: {e}")
        
        current_courses = filter_current_courses(courses)
        
        try:
            await self.produce_deadline(token, device_token, current_courses)
        except Exception as e:
            logger.error(f"Error producing deadlines for {mask_token(token)}: {e}")
    
    async def produce_user_info(self, token: str, device_token: str) -> User:
        """
        Notify about a changed profile and store the fresh one.
        
        A missing stored profile is stored without a notification.
        
        Returns:
            User: The profile fetched from the LMS
        """
        external_user = await self.provider.get_user(token)
        
        try:
            user = await self.data_service.get_user(token)
        except DataIsEmpty:
            logger.info(f"No stored profile for {mask_token(token)}, saving baseline")
            await self.data_service.save_user(token, external_user)
            return external_user
        
        if user != external_user:
            await self._notify(
                device_token,
                self.formatter.USER_TITLE,
                self.formatter.format_user(external_user),
            )
            await self.data_service.save_user(token, external_user)
        
        return external_user
    
    async def produce_course(
        self, token: str, device_token: str, user: User
    ) -> List[Course]:
        """
        Notify about newly enrolled courses.
        
        Returns:
            List[Course]: All courses fetched from the LMS, past ones included
        """
        external_courses = await self.provider.get_courses(token, user.userid)
        courses = await self._stored_or_empty(self.data_service.get_courses(token))
        
        new_courses = compare_courses(external_courses, courses)
        for course in new_courses:
            await self._notify(
                device_token,
                self.formatter.COURSE_TITLE,
                self.formatter.format_course(course),
            )
        
        if new_courses:
            await self.data_service.save_courses(token, external_courses)
        
        return external_courses
    
    async def produce_grade(
        self,
        token: str,
        device_token: str,
        user: User,
        courses: List[Course],
    ) -> None:
        """
        Notify about new and changed grade items.
        
        The stored grades read at the start are the baseline for every
        course. The stored list is replaced with the fetched grades when a
        notification was sent, or when it is stale: a course with grades
        has no stored entry, or its item count differs from the stored one.
        """
        stored_grades = await self._stored_or_empty(self.data_service.get_grades(token))
        
        external_grades: List[Grade] = []
        changes: List[GradeChange] = []
        stale = False
        
        for course in courses:
            course_grades = await self.data_service.fetch_course_grades(token, user, course)
            if not course_grades:
                continue
            external_grades.extend(course_grades)
            
            stored_course_grades = [g for g in stored_grades if g.courseid == course.id]
            if not stored_course_grades:
                stale = True
            elif any(
                len(external.gradeitems) != len(stored.gradeitems)
                for external in course_grades
                for stored in stored_course_grades
            ):
                logger.debug(f"Grade item count changed in course {course.id}")
                stale = True
            
            changes.extend(compare_grades(course_grades, stored_course_grades))
        
        for change in changes:
            await self._notify(
                device_token,
                self.formatter.grade_title(change),
                self.formatter.format_grade(change),
            )
        
        if changes or stale:
            await self.data_service.save_grades(token, external_grades)
    
    async def produce_grade_overview(
        self, token: str, device_token: str, courses: List[Course]
    ) -> None:
        """Notify about new and changed course total grades."""
        external_overview = await self.data_service.fetch_grades_overview(token, courses)
        overview = await self._stored_or_empty(self.data_service.get_grades_overview(token))
        
        new_rows = compare_grades_overview(external_overview.grades, overview)
        for row in new_rows:
            await self._notify(
                device_token,
                self.formatter.grade_overview_title(row),
                self.formatter.format_grade_overview(row),
            )
        
        if new_rows:
            await self.data_service.save_grades_overview(token, external_overview)
    
    async def produce_deadline(
        self, token: str, device_token: str, courses: List[Course]
    ) -> None:
        """
        Notify about new deadlines.
        
        Args:
            courses: Current (not past) courses of the account
        """
        deadlines = await self._stored_or_empty(self.data_service.get_deadlines(token))
        
        fetched: List[Deadline] = []
        found_new = False
        
        for course in courses:
            external_deadlines = await self.data_service.fetch_course_deadlines(token, course)
            if not external_deadlines:
                continue
            fetched.extend(external_deadlines)
            
            for deadline in compare_deadlines(external_deadlines, deadlines):
                found_new = True
                await self._notify(
                    device_token,
                    self.formatter.DEADLINE_TITLE,
                    self.formatter.format_deadline(deadline, self.timezone),
                )
        
        if found_new:
            await self.data_service.save_deadlines(token, fetched)
    
    @staticmethod
    async def _stored_or_empty(snapshot) -> list:
        """Await a stored list, treating a missing snapshot as empty."""
        try:
            return await snapshot
        except DataIsEmpty:
            return []
    
    async def _notify(self, device_token: str, title: str, body: str) -> None:
        """Send one notification; delivery errors are logged, not raised."""
        notification = Notification(device_token=device_token, title=title, body=body)
        try:
            sent = await self.notifier.send(notification)
        except Exception as e:
            logger.error(f"Error sending notification '{title}': {e}")
            sent = False
        
        if sent:
            self.stats["notifications_sent"] += 1
        else:
            self.stats["notifications_failed"] += 1
    
    def _log_summary(self) -> None:
        """Log batch summary."""
        logger.info(
            f"Batch complete: {self.stats['accounts_processed']} accounts, "
            f"{self.stats['accounts_resynced']} resynced, "
            f"{self.stats['accounts_failed']} failed, "
            f"{self.stats['notifications_sent']} notifications sent, "
            f"{self.stats['notifications_failed']} not delivered"
        )
