"""Services of the LMS push producer."""

from lms_push.services.batcher import TokenBatcher, TokenPage
from lms_push.services.data_service import DataService
from lms_push.services.producer import ProducerService

__all__ = ["TokenBatcher", "TokenPage", "DataService", "ProducerService"]
