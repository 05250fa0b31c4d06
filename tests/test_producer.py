"""Tests for the change detection and dispatch pipeline."""

from __future__ import annotations

import time

from conftest import DEVICE_TOKEN, VALID_TOKEN, RecordingNotifier, make_grade

from lms_push.errors import ProviderError, StoreError
from lms_push.models import (
    Account,
    Course,
    Deadline,
    Grade,
    GradeItem,
    GradeOverview,
    GradesOverview,
    ResourceKind,
)
from lms_push.services import ProducerService


def titles(notifier):
    return [n.title for n in notifier.sent]


class TestEndToEnd:

    async def test_first_pass_notifies_everything_and_persists_all_kinds(
        self, producer, notifier, store, account
    ):
        await producer.process_batch([account])

        assert titles(notifier).count("New course") == 1
        assert titles(notifier).count("Algebra") == 3  # 2 grades + 1 overview
        assert titles(notifier).count("New deadline") == 1
        assert len(notifier.sent) == 5
        assert all(n.device_token == DEVICE_TOKEN for n in notifier.sent)
        assert store.saved_kinds() == set(ResourceKind)

    async def test_second_pass_with_same_state_is_silent(
        self, producer, notifier, store, account
    ):
        await producer.process_batch([account])
        notifier.sent.clear()
        store.saves.clear()

        stats = await producer.process_batch([account])

        assert notifier.sent == []
        assert store.saves == []
        assert stats["notifications_sent"] == 0

    async def test_grade_change_sends_single_notification(
        self, producer, provider, notifier, account
    ):
        provider.grades = {1: [make_grade(1, ("Quiz 1", "50%"))]}
        await producer.process_batch([account])
        notifier.sent.clear()

        provider.grades = {1: [make_grade(1, ("Quiz 1", "75%"))]}
        await producer.process_batch([account])

        assert len(notifier.sent) == 1
        body = notifier.sent[0].body
        assert "Quiz 1" in body
        assert "50%" in body and "75%" in body
        assert notifier.sent[0].title == "Algebra"


class TestUserInfo:

    async def test_missing_profile_is_stored_without_notification(
        self, producer, notifier, store
    ):
        user = await producer.produce_user_info(VALID_TOKEN, DEVICE_TOKEN)

        assert notifier.sent == []
        assert await store.get_user(VALID_TOKEN) == user

    async def test_changed_profile_is_notified_and_stored(
        self, producer, provider, notifier, store
    ):
        await producer.produce_user_info(VALID_TOKEN, DEVICE_TOKEN)
        provider.user = provider.user.model_copy(update={"fullname": "Ada Lovelace"})

        user = await producer.produce_user_info(VALID_TOKEN, DEVICE_TOKEN)

        assert titles(notifier) == ["New user info"]
        assert "Ada Lovelace" in notifier.sent[0].body
        assert (await store.get_user(VALID_TOKEN)).fullname == "Ada Lovelace"
        assert user.fullname == "Ada Lovelace"


class TestCourses:

    async def test_one_notification_per_new_course(
        self, producer, provider, notifier, store
    ):
        await store.save_courses(VALID_TOKEN, [Course(id=1, fullname="Algebra")])
        provider.courses = [
            Course(id=1, fullname="Algebra"),
            Course(id=2, fullname="Biology"),
            Course(id=3, fullname="Chemistry"),
        ]
        store.saves.clear()

        result = await producer.produce_course(VALID_TOKEN, DEVICE_TOKEN, provider.user)

        assert [n.body for n in notifier.sent] == ["Biology", "Chemistry"]
        assert [c.id for c in await store.get_courses(VALID_TOKEN)] == [1, 2, 3]
        assert result == provider.courses

    async def test_no_new_course_means_no_write(self, producer, provider, store):
        await store.save_courses(VALID_TOKEN, provider.courses)
        store.saves.clear()

        await producer.produce_course(VALID_TOKEN, DEVICE_TOKEN, provider.user)

        assert store.saves == []

    async def test_returns_past_courses_too(self, producer, provider):
        provider.courses = [Course(id=9, fullname="Old", enddate=int(time.time()) - 60)]

        result = await producer.produce_course(VALID_TOKEN, DEVICE_TOKEN, provider.user)

        assert [c.id for c in result] == [9]


class TestGrades:

    async def test_course_without_grades_does_not_force_resync(
        self, producer, provider, store
    ):
        courses = [Course(id=1, fullname="Algebra"), Course(id=2, fullname="Empty")]
        await store.save_grades(VALID_TOKEN, await producer.data_service.fetch_grades(
            VALID_TOKEN, provider.user, courses
        ))
        store.saves.clear()

        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, courses)

        assert store.saves == []

    async def test_item_count_mismatch_forces_resync(
        self, producer, provider, notifier, store
    ):
        stored = make_grade(1, ("Quiz 1", "50.00 %"), ("Quiz 2", "80.00 %"), ("Old", "10 %"))
        await store.save_grades(VALID_TOKEN, [stored.model_copy(update={"coursename": "Algebra"})])
        store.saves.clear()

        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, provider.courses)

        assert notifier.sent == []
        assert store.saves == [(VALID_TOKEN, ResourceKind.GRADES)]
        grades = await store.get_grades(VALID_TOKEN)
        assert len(grades[0].gradeitems) == 2

    async def test_new_grade_body_shows_dash_as_old_value(
        self, producer, provider, notifier
    ):
        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, provider.courses)

        assert notifier.sent[0].body == "New grade | Quiz 1\n- -> 50.00 %"

    async def test_stored_grades_are_tagged_with_course_name(
        self, producer, provider, store
    ):
        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, provider.courses)

        assert (await store.get_grades(VALID_TOKEN))[0].coursename == "Algebra"


class TestGradesOverview:

    async def test_changed_total_is_notified(self, producer, provider, notifier, store):
        await producer.produce_grade_overview(VALID_TOKEN, DEVICE_TOKEN, provider.courses)
        notifier.sent.clear()
        provider.overview = GradesOverview(grades=[GradeOverview(courseid=1, grade="90.00")])

        await producer.produce_grade_overview(VALID_TOKEN, DEVICE_TOKEN, provider.courses)

        assert len(notifier.sent) == 1
        assert notifier.sent[0].title == "Algebra"
        assert notifier.sent[0].body == "New course total grade | 90.00"
        assert (await store.get_grades_overview(VALID_TOKEN))[0].grade == "90.00"

    async def test_row_for_unknown_course_uses_dash_title(
        self, producer, provider, notifier
    ):
        provider.overview = GradesOverview(grades=[GradeOverview(courseid=42, grade="55")])

        await producer.produce_grade_overview(VALID_TOKEN, DEVICE_TOKEN, provider.courses)

        assert titles(notifier) == ["-"]


class TestDeadlines:

    async def test_past_courses_are_skipped(self, producer, provider, account):
        provider.courses.append(
            Course(id=2, fullname="Finished", enddate=int(time.time()) - 3600)
        )
        provider.deadlines[2] = [Deadline(name="Old HW", timestart=100)]

        await producer.process_account(account)

        stored = await producer.data_service.get_deadlines(VALID_TOKEN)
        assert [d.name for d in stored] == ["Homework 1"]

    async def test_empty_external_list_is_skipped(self, producer, provider, store):
        provider.deadlines = {}

        await producer.produce_deadline(VALID_TOKEN, DEVICE_TOKEN, provider.courses)

        assert store.saves == []

    async def test_all_fetched_deadlines_are_stored_when_one_is_new(
        self, producer, provider, notifier, store
    ):
        await producer.produce_deadline(VALID_TOKEN, DEVICE_TOKEN, provider.courses)
        notifier.sent.clear()
        provider.courses.append(Course(id=2, fullname="Biology"))
        provider.deadlines[2] = [Deadline(name="Lab report", timestart=4102444000)]

        await producer.produce_deadline(VALID_TOKEN, DEVICE_TOKEN, provider.courses)

        assert len(notifier.sent) == 1
        assert "Lab report" in notifier.sent[0].body
        stored = await store.get_deadlines(VALID_TOKEN)
        assert [d.name for d in stored] == ["Lab report", "Homework 1"]


class TestFailureIsolation:

    async def test_grade_failure_does_not_stop_other_resources(
        self, producer, provider, notifier, account
    ):
        provider.failures["get_grades_by_course"] = ProviderError("boom")

        await producer.process_batch([account])

        assert "New course" in titles(notifier)
        assert "New deadline" in titles(notifier)
        assert titles(notifier).count("Algebra") == 1  # overview only

    async def test_overview_store_failure_does_not_stop_deadlines(
        self, producer, notifier, store, account
    ):
        store.failures[ResourceKind.GRADES_OVERVIEW] = StoreError("down")

        await producer.process_batch([account])

        assert "New deadline" in titles(notifier)

    async def test_course_failure_aborts_account_but_not_batch(
        self, provider, data_service, notifier, store
    ):
        provider.valid_tokens.add("T2-token")
        producer = ProducerService(provider, data_service, notifier)
        provider.failures["get_courses"] = ProviderError("boom")
        accounts = [
            Account(token=VALID_TOKEN, device_token=DEVICE_TOKEN),
            Account(token="T2-token", device_token="D2"),
        ]

        stats = await producer.process_batch(accounts)

        assert stats["accounts_failed"] == 2
        assert stats["accounts_processed"] == 2
        assert provider.calls.count("get_grades_by_course") == 0
        assert notifier.sent == []

    async def test_user_failure_skips_remaining_account_pipelines(
        self, producer, provider, account
    ):
        provider.failures["get_user"] = ProviderError("boom")

        await producer.process_account(account)

        assert provider.calls == ["get_user"]

    async def test_failing_notifier_does_not_stop_persisting(
        self, provider, data_service, store, account
    ):
        producer = ProducerService(provider, data_service, RecordingNotifier(fail=RuntimeError("fcm")))

        stats = await producer.process_batch([account])

        assert stats["notifications_sent"] == 0
        assert store.saved_kinds() == set(ResourceKind)


class TestResync:

    async def test_account_without_device_token_is_resynced_silently(
        self, producer, notifier, store
    ):
        stats = await producer.process_batch([Account(token=VALID_TOKEN)])

        assert notifier.sent == []
        assert store.saved_kinds() == set(ResourceKind)
        assert stats["accounts_resynced"] == 1

    async def test_resync_failure_is_counted_and_batch_continues(
        self, producer, provider, notifier
    ):
        accounts = [Account(token="bad-token"), Account(token=VALID_TOKEN, device_token=DEVICE_TOKEN)]

        stats = await producer.process_batch(accounts)

        assert stats["accounts_failed"] == 1
        assert len(notifier.sent) == 5


class TestRunBatch:

    async def test_walks_pages_and_wraps(self, producer, provider, store, notifier):
        for i in range(3):
            provider.valid_tokens.add(f"tok-{i}")
            await store.save_account(Account(token=f"tok-{i}"))

        offsets = [await producer.run_batch(2, 0)]
        offsets.append(await producer.run_batch(2, offsets[-1]))
        offsets.append(await producer.run_batch(2, offsets[-1]))

        assert offsets == [2, 3, 0]
        assert notifier.sent == []

    async def test_store_error_keeps_offset(self, producer, store):
        async def broken(limit, offset):
            raise StoreError("down")

        store.list_accounts = broken

        assert await producer.run_batch(10, 4) == 4


class TestSharedGradeKeys:

    async def test_unnamed_totals_do_not_renotify(self, producer, provider, notifier, store):
        provider.grades = {1: [Grade(courseid=1, gradeitems=[
            GradeItem(id=20, itemname=None, itemtype="category", percentageformatted="40.00 %"),
            GradeItem(id=21, itemname=None, itemtype="course", percentageformatted="60.00 %"),
        ])]}
        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, provider.courses)
        notifier.sent.clear()
        store.saves.clear()

        await producer.produce_grade(VALID_TOKEN, DEVICE_TOKEN, provider.user, provider.courses)

        assert notifier.sent == []
        assert store.saves == []


class TestDeliveryCounting:

    async def test_rejected_push_is_counted_as_failed(self, provider, data_service, account):
        producer = ProducerService(provider, data_service, RecordingNotifier(accept=False))

        stats = await producer.process_batch([account])

        assert stats["notifications_sent"] == 0
        assert stats["notifications_failed"] == 5
