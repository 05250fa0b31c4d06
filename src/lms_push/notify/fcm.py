"""
Firebase Cloud Messaging client.

Sends push notifications via the FCM HTTP v1 API.
https://firebase.google.com/docs/cloud-messaging/send-message
"""

import logging
from typing import Optional

import httpx

from lms_push.config import get_settings
from lms_push.models import Notification
from lms_push.notify.base import NotificationSink

logger = logging.getLogger(__name__)

# FCM HTTP v1 endpoint
FCM_API_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"


class FcmNotifier(NotificationSink):
    """
    FCM HTTP v1 client for sending push notifications.
    
    Each notification is delivered to the single device identified by
    its device token.
    """
    
    def __init__(
        self,
        project_id: Optional[str] = None,
        access_token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize FCM notifier.
        
        Args:
            project_id: Firebase project ID
            access_token: OAuth2 access token with the firebase.messaging scope
            client: Optional preconfigured httpx client (used in tests)
        """
        settings = get_settings()
        
        self.project_id = project_id or settings.fcm_project_id
        self.access_token = access_token or settings.fcm_access_token
        
        self.api_url = FCM_API_URL.format(project_id=self.project_id)
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(settings.request_timeout)
        )
        self.client.headers.update({
            "Authorization": f"Bearer {self.access_token}",
            "Content-Type": "application/json",
        })
    
    async def send(self, notification: Notification) -> bool:
        """
        Send a push notification.
        
        Args:
            notification: Device token, title and body to deliver
            
        Returns:
            bool: True if FCM accepted the message
        """
        payload = {
            "message": {
                "token": notification.device_token,
                "notification": {
                    "title": notification.title,
                    "body": notification.body,
                },
            },
        }
        
        try:
            response = await self.client.post(self.api_url, json=payload)
        except httpx.TimeoutException:
            logger.error("FCM request timed out")
            return False
        except httpx.HTTPError as e:
            logger.error(f"FCM request failed: {e}")
            return False
        
        if response.status_code != 200:
            logger.error(f"FCM API error: {response.status_code} - {response.text}")
            return False
        
        try:
            message_id = response.json().get("name", "unknown")
        except ValueError:
            message_id = "unknown"
        logger.info(f"Push notification sent successfully: {message_id}")
        return True
    
    async def close(self) -> None:
        await self.client.aclose()
