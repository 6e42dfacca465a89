"""
LeadRepository - Data access layer for Lead model
"""

from datetime import datetime
from typing import Iterable, List, Optional
from sqlalchemy import or_, desc, distinct, func

from repositories.base_repository import BaseRepository
from crm_database import Lead


class LeadRepository(BaseRepository):
    """Repository for Lead data access"""

    def __init__(self, session):
        super().__init__(session, Lead)

    def find_by_phone(self, phone: str) -> Optional[Lead]:
        """Phone is unique across every broker."""
        if not phone:
            return None
        return self.find_one_by(phone=phone)

    def find_by_email(self, email: str, broker_id: Optional[int] = None) -> Optional[Lead]:
        if not email:
            return None
        query = self.session.query(self.model_class)\
            .filter(self.model_class.email == email)
        if broker_id is not None:
            query = query.filter(self.model_class.broker_id == broker_id)
        return query.first()

    def find_by_external_id(self, source: str, external_id: str,
                            broker_id: Optional[int] = None) -> Optional[Lead]:
        """Social channels identify senders by a platform id instead of a phone."""
        if not external_id:
            return None
        query = self.session.query(self.model_class)\
            .filter(self.model_class.source == source)\
            .filter(self.model_class.external_id == external_id)
        if broker_id is not None:
            query = query.filter(self.model_class.broker_id == broker_id)
        return query.first()

    def list_leads(self, broker_id: Optional[int] = None, status: Optional[str] = None,
                   query: Optional[str] = None, limit: int = 200) -> List[Lead]:
        """Dashboard listing, newest first."""
        q = self.session.query(self.model_class)
        if broker_id is not None:
            q = q.filter(self.model_class.broker_id == broker_id)
        if status:
            q = q.filter(self.model_class.status == status)
        if query:
            q = q.filter(self._search_filter(query))
        return q.order_by(desc(self.model_class.created_at)).limit(limit).all()

    def _search_filter(self, query: str):
        return or_(
            self.model_class.name.ilike(f'%{query}%'),
            self.model_class.phone.ilike(f'%{query}%'),
            self.model_class.email.ilike(f'%{query}%'),
            self.model_class.desired_city.ilike(f'%{query}%')
        )

    def count_leads(self, broker_id: Optional[int] = None, statuses: Optional[Iterable[str]] = None,
                    created_since: Optional[datetime] = None) -> int:
        q = self.session.query(func.count(self.model_class.id))
        if broker_id is not None:
            q = q.filter(self.model_class.broker_id == broker_id)
        if statuses is not None:
            q = q.filter(self.model_class.status.in_(list(statuses)))
        if created_since is not None:
            q = q.filter(self.model_class.created_at >= created_since)
        return q.scalar() or 0

    def count_brokers_with_leads(self) -> int:
        return self.session.query(func.count(distinct(self.model_class.broker_id)))\
            .filter(self.model_class.broker_id.isnot(None))\
            .scalar() or 0
