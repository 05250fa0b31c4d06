"""
Moodle web service client.

Uses the Moodle REST protocol (/webservice/rest/server.php) with a
per-account web service token.
https://docs.moodle.org/dev/Web_service_API_functions
"""

import logging
from typing import Any, List, Optional

import httpx

from lms_push.config import Settings, get_settings
from lms_push.errors import InvalidToken, ProviderError
from lms_push.models import Course, Deadline, Grade, GradesOverview, User
from lms_push.provider.base import DataProvider

logger = logging.getLogger(__name__)

# Moodle error codes that mean the token itself is unusable
INVALID_TOKEN_CODES = {"invalidtoken", "accessexception"}


class MoodleProvider(DataProvider):
    """
    Moodle REST client implementing DataProvider.
    
    One instance is shared by all accounts; the token is sent with
    every call as the wstoken parameter.
    """
    
    def __init__(
        self,
        settings: Optional[Settings] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the provider.
        
        Args:
            settings: Optional settings instance, will use default if not provided
            client: Optional preconfigured httpx client (used in tests)
        """
        self.settings = settings or get_settings()
        self.rest_url = self.settings.moodle_rest_url
        self.client = client or httpx.AsyncClient(
            timeout=httpx.Timeout(self.settings.request_timeout),
            headers={"Accept": "application/json"},
        )
    
    async def call(self, token: str, function: str, **params: Any) -> Any:
        """
        Call a Moodle web service function.
        
        Args:
            token: Account web service token
            function: wsfunction name (e.g. core_webservice_get_site_info)
            **params: Function arguments
            
        Returns:
            Decoded JSON response
            
        Raises:
            InvalidToken: If Moodle rejects the token
            ProviderError: On HTTP, transport or Moodle-side errors
        """
        query = {
            "wstoken": token,
            "wsfunction": function,
            "moodlewsrestformat": "json",
            **params,
        }
        
        try:
            response = await self.client.post(self.rest_url, data=query)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise ProviderError(f"Moodle request {function} timed out") from e
        except httpx.HTTPError as e:
            raise ProviderError(f"Moodle request {function} failed: {e}") from e
        except ValueError as e:
            raise ProviderError(f"Moodle returned invalid JSON for {function}") from e
        
        # Moodle reports errors with HTTP 200 and an exception payload
        if isinstance(data, dict) and "exception" in data:
            errorcode = data.get("errorcode")
            message = data.get("message", "unknown error")
            if errorcode in INVALID_TOKEN_CODES:
                raise InvalidToken(message)
            raise ProviderError(f"Moodle error in {function}: {message}", errorcode)
        
        return data
    
    async def validate_token(self, token: str) -> None:
        await self.get_user(token)
    
    async def get_user(self, token: str) -> User:
        data = await self.call(token, "core_webservice_get_site_info")
        return User.model_validate(data)
    
    async def get_courses(self, token: str, userid: int) -> List[Course]:
        data = await self.call(token, "core_enrol_get_users_courses", userid=userid)
        return [Course.model_validate(item) for item in data or []]
    
    async def get_grades_by_course(
        self, token: str, userid: int, courseid: int
    ) -> List[Grade]:
        data = await self.call(
            token,
            "gradereport_user_get_grade_items",
            userid=userid,
            courseid=courseid,
        )
        return [Grade.model_validate(item) for item in data.get("usergrades", [])]
    
    async def get_grades_overview(self, token: str) -> GradesOverview:
        data = await self.call(token, "gradereport_overview_get_course_grades")
        return GradesOverview.model_validate(data)
    
    async def get_deadlines_by_course(self, token: str, courseid: int) -> List[Deadline]:
        data = await self.call(
            token,
            "core_calendar_get_action_events_by_course",
            courseid=courseid,
        )
        deadlines = []
        for event in data.get("events", []):
            course = event.get("course") or {}
            deadline = Deadline.model_validate(event)
            if deadline.courseid is None and course.get("id") is not None:
                deadline = deadline.model_copy(update={"courseid": course["id"]})
            deadlines.append(deadline)
        return deadlines
    
    async def close(self) -> None:
        await self.client.aclose()
    
    async def __aenter__(self) -> "MoodleProvider":
        return self
    
    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()
