"""List the courses, grades overview and deadlines Moodle returns for a token."""
import asyncio, sys
from lms_push.comparators import filter_current_courses
from lms_push.config import get_settings
from lms_push.provider import MoodleProvider


async def show(token: str) -> None:
    async with MoodleProvider(get_settings()) as provider:
        user = await provider.get_user(token)
        print(f"User: {user.fullname} (id: {user.userid})\n")

        courses = await provider.get_courses(token, user.userid)
        current = {c.id for c in filter_current_courses(courses)}
        print(f"Total: {len(courses)} courses\n")
        for i, course in enumerate(courses):
            marker = "" if course.id in current else " [past]"
            print(f"  {i+1}. {course.fullname} (id: {course.id}){marker}")

        overview = await provider.get_grades_overview(token)
        print(f"\nGrades overview: {len(overview.grades)} rows")
        for row in overview.grades:
            print(f"  course {row.courseid}: {row.grade}")

        for course in courses:
            if course.id not in current:
                continue
            deadlines = await provider.get_deadlines_by_course(token, course.id)
            print(f"\n{course.fullname}: {len(deadlines)} deadlines")
            for d in deadlines:
                print(f"  - {d.name} (due {d.due_at})")


if __name__ == "__main__":
    if len(sys.argv) != 2:
        print("usage: list_courses.py <moodle token>")
        sys.exit(1)
    asyncio.run(show(sys.argv[1]))
