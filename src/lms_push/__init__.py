"""
LMS Push Producer

Polls Moodle for every registered account - profile, courses, grades,
grade overview and deadlines - and sends a push notification to the
account's device for every new or changed item.
"""

__version__ = "1.0.0"
