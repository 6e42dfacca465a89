"""
BrokerRepository - Data access layer for Broker (tenant) model
"""

from typing import Optional

from sqlalchemy import func

from repositories.base_repository import BaseRepository
from crm_database import Broker


class BrokerRepository(BaseRepository):
    """Repository for Broker data access"""

    def __init__(self, session):
        super().__init__(session, Broker)

    def find_by_email(self, email: str) -> Optional[Broker]:
        return self.session.query(self.model_class)\
            .filter(self.model_class.email == email.strip().lower())\
            .first()

    def find_by_slug(self, slug: str) -> Optional[Broker]:
        return self.find_one_by(slug=slug)

    def count(self) -> int:
        return self.session.query(func.count(self.model_class.id)).scalar() or 0
