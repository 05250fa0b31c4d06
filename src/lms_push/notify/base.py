"""Notification sink interface."""

from abc import ABC, abstractmethod

from lms_push.models import Notification


class NotificationSink(ABC):
    """
    Fire-and-forget delivery of a single notification to one device.
    
    Implementations log delivery failures instead of raising them and
    never retry.
    """
    
    @abstractmethod
    async def send(self, notification: Notification) -> bool:
        """
        Deliver a notification.
        
        Returns:
            bool: True if the transport accepted the message
        """
