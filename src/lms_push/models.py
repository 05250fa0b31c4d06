"""
Data models for the LMS push producer.

Defines Pydantic models for every resource fetched from Moodle and
persisted as a snapshot:
- Account (registered token + optional device token)
- User
- Course
- Grade / GradeItem
- GradeOverview / GradesOverview
- Deadline
- Notification (outbound only)

Field names follow the Moodle web service payloads so responses
validate directly into these models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class ResourceKind(str, Enum):
    """Kinds of per-account snapshots kept in the store."""
    USER = "user"
    COURSES = "courses"
    GRADES = "grades"
    GRADES_OVERVIEW = "grades_overview"
    DEADLINES = "deadlines"


class Account(BaseModel):
    """
    A registered LMS account.
    
    Attributes:
        token: Moodle web service token, unique per account
        device_token: Push token of the user's device; accounts without
            one are kept fresh but never notified
    """
    model_config = ConfigDict(frozen=True)
    
    token: str
    device_token: Optional[str] = None


class User(BaseModel):
    """Profile returned by core_webservice_get_site_info."""
    userid: int
    username: Optional[str] = None
    fullname: Optional[str] = None
    firstname: Optional[str] = None
    lastname: Optional[str] = None
    lang: Optional[str] = None
    userpictureurl: Optional[str] = None


class Course(BaseModel):
    """
    An enrolled course.
    
    Attributes:
        id: Moodle course id
        shortname: Short course code
        fullname: Display name used in notifications
        startdate: Course start as a unix timestamp (0 if unset)
        enddate: Course end as a unix timestamp (0 if unset)
    """
    id: int
    shortname: Optional[str] = None
    fullname: str = ""
    startdate: int = 0
    enddate: int = 0
    
    @property
    def is_past(self) -> bool:
        """Check if the course has already ended."""
        if not self.enddate:
            return False
        return self.enddate < datetime.now(timezone.utc).timestamp()


class GradeItem(BaseModel):
    """A single row of a user grade report."""
    id: Optional[int] = None
    itemname: Optional[str] = None
    itemtype: Optional[str] = None
    percentageformatted: str = "-"
    gradeformatted: Optional[str] = None
    
    @property
    def display_name(self) -> str:
        if self.itemname:
            return self.itemname
        if self.itemtype == "course":
            return "Course total"
        return "-"


class Grade(BaseModel):
    """
    Grade report of one user in one course.
    
    coursename is not part of the Moodle payload, it is filled in
    after fetching from the owning course.
    """
    courseid: int
    userid: Optional[int] = None
    userfullname: Optional[str] = None
    coursename: Optional[str] = None
    gradeitems: List[GradeItem] = Field(default_factory=list)


class GradeChange(BaseModel):
    """A new or changed grade item, with the stored item it replaces."""
    courseid: int
    coursename: Optional[str] = None
    new: GradeItem
    old: Optional[GradeItem] = None


class GradeOverview(BaseModel):
    """Course total grade row from gradereport_overview_get_course_grades."""
    courseid: int
    course_name: Optional[str] = None
    grade: str = "-"
    rawgrade: Optional[str] = None
    rank: Optional[int] = None


class GradesOverview(BaseModel):
    grades: List[GradeOverview] = Field(default_factory=list)


class Deadline(BaseModel):
    """
    Calendar action event (assignment, quiz, ...) with a due time.
    
    Attributes:
        id: Moodle event id
        name: Event title
        description: HTML description as returned by Moodle
        timestart: Event start as a unix timestamp
        timesort: Timestamp Moodle uses to order action events
        courseid: Owning course id, when provided
        coursename: Owning course name, filled in after fetching
        url: Link to the activity
    """
    id: Optional[int] = None
    name: str
    description: Optional[str] = None
    timestart: int = 0
    timesort: Optional[int] = None
    courseid: Optional[int] = None
    coursename: Optional[str] = None
    url: Optional[str] = None
    
    @property
    def due_at(self) -> int:
        """Due time as a unix timestamp."""
        return self.timesort if self.timesort is not None else self.timestart
    
    @property
    def content_key(self) -> Tuple[str, str, int]:
        """Key used to recognise the same deadline across fetches."""
        return (self.coursename or "", self.name, self.due_at)


class Notification(BaseModel):
    """Outbound push message for one device. Never persisted."""
    device_token: str
    title: str
    body: str
