"""Push notification module for the LMS push producer."""

from lms_push.notify.base import NotificationSink
from lms_push.notify.fcm import FcmNotifier
from lms_push.notify.formatters import MessageFormatter

__all__ = ["NotificationSink", "FcmNotifier", "MessageFormatter"]
