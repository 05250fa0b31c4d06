"""LMS data providers."""

from lms_push.provider.base import DataProvider
from lms_push.provider.moodle import MoodleProvider

__all__ = ["DataProvider", "MoodleProvider"]
