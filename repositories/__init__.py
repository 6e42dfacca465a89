"""
Data access for brokers, leads, conversations, follow-up jobs and tenant settings
"""

from .base_repository import BaseRepository, SortOrder
from .broker_repository import BrokerRepository
from .lead_repository import LeadRepository
from .lead_message_repository import LeadMessageRepository
from .automation_job_repository import AutomationJobRepository
from .webhook_event_repository import WebhookEventRepository
from .tenant_settings_repository import (
    AISettingsRepository,
    AILogRepository,
    WhatsAppSettingsRepository,
    AutomationSettingsRepository,
    FunnelSettingsRepository
)

__all__ = [
    'BaseRepository',
    'SortOrder',
    'BrokerRepository',
    'LeadRepository',
    'LeadMessageRepository',
    'AutomationJobRepository',
    'WebhookEventRepository',
    'AISettingsRepository',
    'AILogRepository',
    'WhatsAppSettingsRepository',
    'AutomationSettingsRepository',
    'FunnelSettingsRepository'
]
