"""
DashboardService - platform and per-realtor counters for the admin screens
"""

from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger
from repositories.automation_job_repository import PENDING, CLAIMED, EXECUTED, FAILED
from services.common.result import Result
from utils.datetime_utils import ensure_utc, utc_now

logger = get_logger(__name__)

QUALIFIED_STATUSES = ('Qualified', 'Hot', 'appointment_set')


def conversion_rate(qualified: int, total: int) -> float:
    """Percentage of leads that reached a qualified status, one decimal."""
    return round(qualified * 100.0 / total, 1) if total else 0.0


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


class DashboardService:

    def __init__(self, lead_repository, broker_repository, automation_job_repository):
        self.lead_repository = lead_repository
        self.broker_repository = broker_repository
        self.automation_job_repository = automation_job_repository

    def _automation_counts(self, broker_id: Optional[int] = None) -> Dict[str, int]:
        by_status = self.automation_job_repository.count_by_status(broker_id=broker_id)
        return {
            'executed': by_status.get(EXECUTED, 0),
            # Claimed jobs are not acked yet
            'pending': by_status.get(PENDING, 0) + by_status.get(CLAIMED, 0),
            'failed': by_status.get(FAILED, 0),
        }

    def get_dashboard_stats(self, now: Optional[datetime] = None) -> Result[Dict[str, Any]]:
        """
        Platform-wide counters.

        Args:
            now: Reference instant; "today" starts at its UTC midnight

        Returns:
            Result with realtors, leads and automations sections
        """
        today = start_of_day(ensure_utc(now) or utc_now())
        try:
            total = self.lead_repository.count_leads()
            qualified = self.lead_repository.count_leads(statuses=QUALIFIED_STATUSES)
            stats = {
                'realtors': {
                    'total': self.broker_repository.count(),
                    'active': self.lead_repository.count_brokers_with_leads(),
                },
                'leads': {
                    'total': total,
                    'today': self.lead_repository.count_leads(created_since=today),
                    'qualified': qualified,
                    'conversion_rate': conversion_rate(qualified, total),
                },
                'automations': self._automation_counts(),
                'system_health': 'healthy',
            }
        except SQLAlchemyError as e:
            logger.error("Failed to compute dashboard stats", error=str(e))
            return Result.failure('Failed to fetch dashboard stats', code='DATABASE_ERROR')
        return Result.success(stats)

    def get_realtor_summary(self, slug: str) -> Result[Dict[str, Any]]:
        broker = self.broker_repository.find_by_slug(slug)
        if broker is None:
            return Result.failure('Realtor not found', code='NOT_FOUND')

        try:
            total = self.lead_repository.count_leads(broker_id=broker.id)
            qualified = self.lead_repository.count_leads(broker_id=broker.id, statuses=QUALIFIED_STATUSES)
            summary = {
                'realtor': {'id': broker.id, 'name': broker.name, 'slug': broker.slug},
                'stats': {
                    'total_leads': total,
                    'new_leads': self.lead_repository.count_leads(broker_id=broker.id, statuses=['New']),
                    'conversion_rate': conversion_rate(qualified, total),
                    'active_automations': self._automation_counts(broker.id)['pending'],
                },
            }
        except SQLAlchemyError as e:
            logger.error("Failed to compute realtor summary", slug=slug, error=str(e))
            return Result.failure('Failed to fetch realtor summary', code='DATABASE_ERROR')
        return Result.success(summary)
