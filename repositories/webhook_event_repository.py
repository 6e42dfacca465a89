"""
WebhookEventRepository - Data access layer for WebhookEvent model
"""

from typing import Optional
from datetime import datetime

from repositories.base_repository import BaseRepository
from crm_database import WebhookEvent


class WebhookEventRepository(BaseRepository):
    """Repository for the inbound webhook ledger"""

    def __init__(self, session):
        super().__init__(session, WebhookEvent)

    def record(self, channel: str, payload: dict, broker_id: Optional[int] = None) -> WebhookEvent:
        return self.create(channel=channel, payload=payload, broker_id=broker_id, processed=False)

    def mark_as_processed(self, event: WebhookEvent, processed_at: datetime) -> WebhookEvent:
        return self.update(event, processed=True, processed_at=processed_at, error_message=None)

    def mark_as_failed(self, event: WebhookEvent, error: str) -> WebhookEvent:
        return self.update(event, processed=False, error_message=error)
