"""
Message formatters for push notifications.

Formats fetched LMS data into short notification titles and bodies.
"""

from datetime import datetime
from typing import Optional

from bs4 import BeautifulSoup
from dateutil.tz import gettz

from lms_push.models import Course, Deadline, GradeChange, GradeOverview, User


class MessageFormatter:
    """
    Formats notification content for mobile push messages.
    
    Push bodies are shown in a notification tray, so everything is kept
    to a few short lines.
    """
    
    USER_TITLE = "New user info"
    COURSE_TITLE = "New course"
    DEADLINE_TITLE = "New deadline"
    
    @staticmethod
    def _truncate(text: str, max_length: int = 200) -> str:
        """Truncate text with ellipsis if too long."""
        if len(text) <= max_length:
            return text
        return text[:max_length - 3].rsplit(" ", 1)[0] + "..."
    
    @staticmethod
    def _format_datetime(timestamp: int, timezone: Optional[str] = None) -> str:
        """Format a unix timestamp for display."""
        if not timestamp:
            return "Not specified"
        dt = datetime.fromtimestamp(timestamp, tz=gettz(timezone or "UTC"))
        return dt.strftime("%a, %b %d, %Y at %H:%M")
    
    @staticmethod
    def _clean_html(html: Optional[str]) -> str:
        """Strip HTML tags and return clean text."""
        if not html:
            return ""
        soup = BeautifulSoup(html, "lxml")
        return soup.get_text(separator=" ", strip=True)
    
    @classmethod
    def format_user(cls, user: User) -> str:
        lines = []
        if user.fullname:
            lines.append(f"Name: {user.fullname}")
        if user.username:
            lines.append(f"Username: {user.username}")
        if user.lang:
            lines.append(f"Language: {user.lang}")
        return "\n".join(lines) or f"User id: {user.userid}"
    
    @classmethod
    def format_course(cls, course: Course) -> str:
        return course.fullname
    
    @classmethod
    def format_grade(cls, change: GradeChange) -> str:
        """
        Format a new or changed grade item.
        
        Args:
            change: The grade item and the stored item it replaces
            
        Returns:
            str: "New grade | item" followed by the "old -> new" percentage
        """
        old = change.old.percentageformatted if change.old else "-"
        return (
            f"New grade | {change.new.display_name}\n"
            f"{old} -> {change.new.percentageformatted}"
        )
    
    @classmethod
    def grade_title(cls, change: GradeChange) -> str:
        return change.coursename or "-"
    
    @classmethod
    def format_grade_overview(cls, row: GradeOverview) -> str:
        return f"New course total grade | {row.grade}"
    
    @classmethod
    def grade_overview_title(cls, row: GradeOverview) -> str:
        return row.course_name or "-"
    
    @classmethod
    def format_deadline(cls, deadline: Deadline, timezone: Optional[str] = None) -> str:
        """
        Format a new deadline.
        
        Args:
            deadline: The deadline to format
            timezone: Timezone name used to render the due time
            
        Returns:
            str: Formatted message string
        """
        lines = [deadline.name]
        
        if deadline.coursename:
            lines.append(deadline.coursename)
        
        lines.append(f"Due: {cls._format_datetime(deadline.due_at, timezone)}")
        
        description = cls._clean_html(deadline.description)
        if description:
            lines.append(cls._truncate(description))
        
        return "\n".join(lines)
