"""
Per-tenant settings repositories

Each settings table holds at most one row per broker. The row whose
broker_id is NULL carries platform-wide values used when a broker has not
saved its own configuration.
"""

from typing import List, Optional, Dict, Any
from sqlalchemy import desc

from repositories.base_repository import BaseRepository
from crm_database import (
    AISettings, AILog, WhatsAppSettings, AutomationSettings, FunnelSettings
)


class TenantSettingsRepository(BaseRepository):
    """Shared lookups for settings keyed by broker_id"""

    def get_for_tenant(self, tenant_id: Optional[int]):
        return self.find_one_by(broker_id=tenant_id)

    def upsert_for_tenant(self, tenant_id: Optional[int], values: Dict[str, Any]):
        """Update the tenant's row, creating it first when missing."""
        row = self.get_for_tenant(tenant_id)
        if row is None:
            return self.create(broker_id=tenant_id, **values)
        return self.update(row, **values)


class AISettingsRepository(TenantSettingsRepository):

    def __init__(self, session):
        super().__init__(session, AISettings)


class WhatsAppSettingsRepository(TenantSettingsRepository):

    def __init__(self, session):
        super().__init__(session, WhatsAppSettings)


class AutomationSettingsRepository(TenantSettingsRepository):

    def __init__(self, session):
        super().__init__(session, AutomationSettings)


class FunnelSettingsRepository(TenantSettingsRepository):

    def __init__(self, session):
        super().__init__(session, FunnelSettings)

    def find_by_slug(self, slug: str) -> Optional[FunnelSettings]:
        return self.find_one_by(funnel_slug=slug)


class AILogRepository(BaseRepository):
    """Append-only audit of model calls"""

    def __init__(self, session):
        super().__init__(session, AILog)

    def get_recent(self, limit: int = 100, broker_id: Optional[int] = None) -> List[AILog]:
        query = self.session.query(self.model_class)
        if broker_id is not None:
            query = query.filter(self.model_class.broker_id == broker_id)
        return query.order_by(desc(self.model_class.created_at), desc(self.model_class.id))\
            .limit(limit)\
            .all()

