"""Shared test fixtures: in-memory LMS, snapshot store and notifier."""

from __future__ import annotations

import copy
from typing import Any, Dict, List, Optional, Tuple

import pytest

from lms_push.config import get_settings
from lms_push.db.base import SnapshotStore
from lms_push.errors import AccountAlreadyExists, DataIsEmpty, InvalidToken
from lms_push.models import (
    Account,
    Course,
    Deadline,
    Grade,
    GradeItem,
    GradeOverview,
    GradesOverview,
    Notification,
    ResourceKind,
    User,
)
from lms_push.notify.base import NotificationSink
from lms_push.provider.base import DataProvider
from lms_push.services import DataService, ProducerService

VALID_TOKEN = "T1-token"
DEVICE_TOKEN = "D1"


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """Minimal environment so get_settings() validates in every test."""
    monkeypatch.setenv("MOODLE_BASE_URL", "https://moodle.test/")
    monkeypatch.setenv("SUPABASE_URL", "https://supabase.test")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "service-key")
    monkeypatch.setenv("FCM_PROJECT_ID", "demo-project")
    monkeypatch.setenv("FCM_ACCESS_TOKEN", "fcm-token")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeProvider(DataProvider):
    """LMS state held in memory; set ``failures[method]`` to make a call raise."""

    def __init__(self) -> None:
        self.user = User(userid=7, username="student", fullname="Ada Student")
        self.courses: List[Course] = []
        self.grades: Dict[int, List[Grade]] = {}
        self.overview = GradesOverview()
        self.deadlines: Dict[int, List[Deadline]] = {}
        self.valid_tokens = {VALID_TOKEN}
        self.failures: Dict[str, Exception] = {}
        self.calls: List[str] = []

    def _call(self, name: str, token: str) -> None:
        self.calls.append(name)
        if token not in self.valid_tokens:
            raise InvalidToken()
        if name in self.failures:
            raise self.failures[name]

    async def validate_token(self, token: str) -> None:
        self._call("validate_token", token)

    async def get_user(self, token: str) -> User:
        self._call("get_user", token)
        return self.user.model_copy(deep=True)

    async def get_courses(self, token: str, userid: int) -> List[Course]:
        self._call("get_courses", token)
        return copy.deepcopy(self.courses)

    async def get_grades_by_course(self, token: str, userid: int, courseid: int) -> List[Grade]:
        self._call("get_grades_by_course", token)
        return copy.deepcopy(self.grades.get(courseid, []))

    async def get_grades_overview(self, token: str) -> GradesOverview:
        self._call("get_grades_overview", token)
        return self.overview.model_copy(deep=True)

    async def get_deadlines_by_course(self, token: str, courseid: int) -> List[Deadline]:
        self._call("get_deadlines_by_course", token)
        return copy.deepcopy(self.deadlines.get(courseid, []))


class InMemorySnapshotStore(SnapshotStore):
    """Snapshot store backed by dicts; records every snapshot write."""

    def __init__(self) -> None:
        self.accounts: Dict[str, Account] = {}
        self.snapshots: Dict[Tuple[str, ResourceKind], Any] = {}
        self.saves: List[Tuple[str, ResourceKind]] = []
        self.failures: Dict[ResourceKind, Exception] = {}

    async def load_snapshot(self, token: str, kind: ResourceKind) -> Any:
        if (token, kind) not in self.snapshots:
            raise DataIsEmpty(kind.value)
        return copy.deepcopy(self.snapshots[(token, kind)])

    async def save_snapshot(self, token: str, kind: ResourceKind, data: Any) -> None:
        if kind in self.failures:
            raise self.failures[kind]
        self.saves.append((token, kind))
        self.snapshots[(token, kind)] = copy.deepcopy(data)

    async def save_account(self, account: Account) -> None:
        if account.token in self.accounts:
            raise AccountAlreadyExists(account.token)
        self.accounts[account.token] = account

    async def list_accounts(self, limit: int, offset: int) -> List[Account]:
        ordered = [self.accounts[t] for t in sorted(self.accounts)]
        return ordered[offset:offset + limit]

    async def delete_account(self, token: str) -> None:
        self.accounts.pop(token, None)
        for key in [k for k in self.snapshots if k[0] == token]:
            del self.snapshots[key]

    def saved_kinds(self) -> set:
        return {kind for _, kind in self.saves}


class RecordingNotifier(NotificationSink):
    def __init__(self, fail: Optional[Exception] = None, accept: bool = True) -> None:
        self.sent: List[Notification] = []
        self.fail = fail
        self.accept = accept

    async def send(self, notification: Notification) -> bool:
        if self.fail is not None:
            raise self.fail
        self.sent.append(notification)
        return self.accept


def make_grade(courseid: int, *items: Tuple[str, str]) -> Grade:
    return Grade(
        courseid=courseid,
        userid=7,
        gradeitems=[
            GradeItem(id=i, itemname=name, percentageformatted=pct)
            for i, (name, pct) in enumerate(items, start=1)
        ],
    )


@pytest.fixture
def provider() -> FakeProvider:
    lms = FakeProvider()
    lms.courses = [Course(id=1, shortname="ALG", fullname="Algebra")]
    lms.grades = {1: [make_grade(1, ("Quiz 1", "50.00 %"), ("Quiz 2", "80.00 %"))]}
    lms.overview = GradesOverview(grades=[GradeOverview(courseid=1, grade="65.00")])
    lms.deadlines = {
        1: [Deadline(id=11, name="Homework 1", timestart=4102444800, courseid=1)]
    }
    return lms


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def data_service(provider, store) -> DataService:
    return DataService(provider, store)


@pytest.fixture
def producer(provider, data_service, notifier) -> ProducerService:
    return ProducerService(provider, data_service, notifier)


@pytest.fixture
def account() -> Account:
    return Account(token=VALID_TOKEN, device_token=DEVICE_TOKEN)
