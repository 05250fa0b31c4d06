"""
Change detection between freshly fetched resources and stored snapshots.

Every comparator takes the external list first and the stored list second
and returns only the external entries that are new or changed. A missing
stored snapshot should be passed as an empty list, which makes every
external entry new.
"""

from collections import defaultdict
from typing import Dict, Iterable, List, Optional, Tuple

from lms_push.models import (
    Course,
    Deadline,
    Grade,
    GradeChange,
    GradeItem,
    GradeOverview,
)


def compare_courses(external: List[Course], stored: List[Course]) -> List[Course]:
    """
    Find courses the account was not enrolled in at the last snapshot.
    
    Args:
        external: Courses just fetched from the LMS
        stored: Courses from the last snapshot
        
    Returns:
        List[Course]: External courses whose id is absent from stored
    """
    stored_ids = {course.id for course in stored}
    return [course for course in external if course.id not in stored_ids]


def _grade_item_key(courseid: int, item: GradeItem) -> Tuple[int, str]:
    return (courseid, item.itemname or "")


def _match_stored_item(
    item: GradeItem, candidates: List[GradeItem], position: int
) -> Optional[GradeItem]:
    """
    Pick the stored item sharing a key with ``item``.
    
    Unnamed totals and duplicate names share a key, so candidates are
    matched on id when both sides have one, otherwise by position among
    the items with that key.
    """
    if item.id is not None:
        for candidate in candidates:
            if candidate.id == item.id:
                return candidate
    if position < len(candidates):
        candidate = candidates[position]
        if item.id is None or candidate.id is None:
            return candidate
    return None


def compare_grades(external: List[Grade], stored: List[Grade]) -> List[GradeChange]:
    """
    Find grade items that are new or whose percentage changed.
    
    Items are matched on (courseid, itemname). Several items can share
    that key (category and course totals have no name), and each external
    item is paired with at most one stored item. An item is reported when
    it has no stored match, or when the stored match has a different
    percentageformatted.
    
    Args:
        external: Grade reports just fetched from the LMS
        stored: Grade reports from the last snapshot
        
    Returns:
        List[GradeChange]: One entry per new or changed item, in external order
    """
    stored_items: Dict[Tuple[int, str], List[GradeItem]] = defaultdict(list)
    for grade in stored:
        for item in grade.gradeitems:
            stored_items[_grade_item_key(grade.courseid, item)].append(item)
    
    positions: Dict[Tuple[int, str], int] = defaultdict(int)
    changes: List[GradeChange] = []
    for grade in external:
        for item in grade.gradeitems:
            key = _grade_item_key(grade.courseid, item)
            old = _match_stored_item(item, stored_items.get(key, []), positions[key])
            positions[key] += 1
            if old is None or old.percentageformatted != item.percentageformatted:
                changes.append(
                    GradeChange(
                        courseid=grade.courseid,
                        coursename=grade.coursename,
                        new=item,
                        old=old,
                    )
                )
    return changes


def sort_grades_overview(grades: Iterable[GradeOverview]) -> List[GradeOverview]:
    """Sort overview rows by course name; rows without a name go last."""
    return sorted(
        grades,
        key=lambda row: (row.course_name is None, row.course_name or "", row.courseid),
    )


def compare_grades_overview(
    external: List[GradeOverview],
    stored: List[GradeOverview],
) -> List[GradeOverview]:
    """
    Find course total grades that are new or changed.
    
    Rows are matched on courseid, never on position.
    
    Returns:
        List[GradeOverview]: External rows in canonical order
    """
    stored_grades = {row.courseid: row.grade for row in stored}
    return [
        row
        for row in sort_grades_overview(external)
        if row.courseid not in stored_grades or stored_grades[row.courseid] != row.grade
    ]


def sort_deadlines(deadlines: Iterable[Deadline]) -> List[Deadline]:
    """Sort deadlines by due time, then by name."""
    return sorted(deadlines, key=lambda d: (d.due_at, d.name, d.coursename or ""))


def compare_deadlines(external: List[Deadline], stored: List[Deadline]) -> List[Deadline]:
    """
    Find deadlines absent from the stored snapshot.
    
    Deadlines are matched on (coursename, name, due time), so a moved
    due date shows up as a new deadline.
    
    Returns:
        List[Deadline]: New deadlines in canonical order
    """
    stored_keys = {deadline.content_key for deadline in stored}
    return [d for d in sort_deadlines(external) if d.content_key not in stored_keys]


def filter_current_courses(courses: Iterable[Course]) -> List[Course]:
    """Drop courses that have already ended."""
    return [course for course in courses if not course.is_past]
