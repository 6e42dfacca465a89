"""
LeadMessageRepository - Data access layer for LeadMessage model
"""

from typing import List
from sqlalchemy import desc, asc

from repositories.base_repository import BaseRepository
from crm_database import LeadMessage


class LeadMessageRepository(BaseRepository):
    """Repository for the append-only lead conversation log"""

    def __init__(self, session):
        super().__init__(session, LeadMessage)

    def get_recent(self, lead_id: int, limit: int = 10) -> List[LeadMessage]:
        """
        Most recent messages for a lead, newest first.

        Callers reverse the list to get chronological order.
        """
        return self.session.query(self.model_class)\
            .filter(self.model_class.lead_id == lead_id)\
            .order_by(desc(self.model_class.timestamp), desc(self.model_class.id))\
            .limit(limit)\
            .all()

    def get_conversation(self, lead_id: int) -> List[LeadMessage]:
        return self.session.query(self.model_class)\
            .filter(self.model_class.lead_id == lead_id)\
            .order_by(asc(self.model_class.timestamp), asc(self.model_class.id))\
            .all()
