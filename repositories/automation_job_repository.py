"""
AutomationJobRepository - Durable follow-up queue with claim-and-ack semantics

A sweep claims a row with a conditional UPDATE that only succeeds while the
row is still pending (or its previous claim has expired), so two workers
sweeping at once never both own the same job. Claimed rows are acked as
executed or failed; a claim that is never acked becomes claimable again once
its lease runs out, which gives at-least-once delivery. A job claimed
max_attempts times without an ack is failed instead of claimed again.
"""

import logging
from typing import Dict, List, Optional
from datetime import datetime, timedelta
from sqlalchemy import and_, or_, asc, desc, func

from repositories.base_repository import BaseRepository
from crm_database import AutomationJob

logger = logging.getLogger(__name__)

PENDING = 'pending'
CLAIMED = 'claimed'
EXECUTED = 'executed'
FAILED = 'failed'

DEFAULT_MAX_ATTEMPTS = 5


class AutomationJobRepository(BaseRepository):
    """Repository for AutomationJob data access and claiming"""

    def __init__(self, session):
        super().__init__(session, AutomationJob)

    def schedule(self, lead_id: int, job_type: str, scheduled_for: datetime,
                 broker_id: Optional[int] = None, payload: Optional[dict] = None,
                 language: Optional[str] = None) -> AutomationJob:
        return self.create(
            lead_id=lead_id,
            broker_id=broker_id,
            type=job_type,
            status=PENDING,
            scheduled_for=scheduled_for,
            payload=payload or {},
            language=language,
        )

    def _claimable(self, now: datetime, lease_seconds: int):
        expiry = now - timedelta(seconds=lease_seconds)
        return or_(
            and_(self.model_class.status == PENDING,
                 self.model_class.scheduled_for <= now),
            and_(self.model_class.status == CLAIMED,
                 self.model_class.claimed_at <= expiry)
        )

    def find_due(self, now: datetime, lease_seconds: int, limit: int = 50,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> List[AutomationJob]:
        """Jobs a sweep at `now` may claim, oldest schedule first."""
        return self.session.query(self.model_class)\
            .filter(self._claimable(now, lease_seconds))\
            .filter(self.model_class.attempts < max_attempts)\
            .order_by(asc(self.model_class.scheduled_for), asc(self.model_class.id))\
            .limit(limit)\
            .all()

    def fail_exhausted(self, now: datetime, lease_seconds: int,
                       max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> int:
        """Fail claimable jobs that already used up their attempts; returns how many."""
        return self.session.query(self.model_class)\
            .filter(self._claimable(now, lease_seconds))\
            .filter(self.model_class.attempts >= max_attempts)\
            .update({
                'status': FAILED,
                'executed_at': now,
                'last_error': f'Exceeded maximum attempts ({max_attempts})',
            }, synchronize_session=False)

    def claim_due(self, now: datetime, worker_id: str, lease_seconds: int = 300,
                  limit: int = 50, max_attempts: int = DEFAULT_MAX_ATTEMPTS) -> List[AutomationJob]:
        """
        Claim due jobs for one worker and commit the claims.

        Args:
            now: Reference instant for due/lease checks
            worker_id: Identifier recorded on each claimed row
            lease_seconds: How long a claim is honoured without an ack
            limit: Maximum jobs claimed per sweep
            max_attempts: Claims a job gets before it is failed

        Returns:
            The jobs this worker now owns, in schedule order
        """
        exhausted = self.fail_exhausted(now, lease_seconds, max_attempts)
        if exhausted:
            logger.warning(f"Failed {exhausted} automation job(s) after {max_attempts} attempts")

        candidate_ids = [job.id for job in self.find_due(now, lease_seconds, limit, max_attempts)]
        claimed_ids = []

        for job_id in candidate_ids:
            rowcount = self.session.query(self.model_class)\
                .filter(self.model_class.id == job_id)\
                .filter(self._claimable(now, lease_seconds))\
                .filter(self.model_class.attempts < max_attempts)\
                .update({
                    'status': CLAIMED,
                    'claimed_by': worker_id,
                    'claimed_at': now,
                    'attempts': self.model_class.attempts + 1,
                }, synchronize_session=False)
            if rowcount == 1:
                claimed_ids.append(job_id)

        self.commit()

        if not claimed_ids:
            return []

        return self.session.query(self.model_class)\
            .populate_existing()\
            .filter(self.model_class.id.in_(claimed_ids))\
            .order_by(asc(self.model_class.scheduled_for), asc(self.model_class.id))\
            .all()

    def mark_executed(self, job: AutomationJob, executed_at: datetime) -> AutomationJob:
        return self.update(job, status=EXECUTED, executed_at=executed_at, last_error=None)

    def mark_failed(self, job: AutomationJob, error: str, failed_at: datetime) -> AutomationJob:
        return self.update(job, status=FAILED, executed_at=failed_at, last_error=error[:2000])

    def cancel_pending(self, lead_id: int, job_type: str) -> int:
        """Drop not-yet-claimed jobs of one type for a lead."""
        return self.delete_many({'lead_id': lead_id, 'type': job_type, 'status': PENDING})

    def list_jobs(self, status: Optional[str] = None, lead_id: Optional[int] = None,
                  broker_id: Optional[int] = None, limit: int = 200) -> List[AutomationJob]:
        query = self.session.query(self.model_class)
        if status:
            query = query.filter(self.model_class.status == status)
        if lead_id is not None:
            query = query.filter(self.model_class.lead_id == lead_id)
        if broker_id is not None:
            query = query.filter(self.model_class.broker_id == broker_id)
        return query.order_by(desc(self.model_class.scheduled_for)).limit(limit).all()

    def count_by_status(self, broker_id: Optional[int] = None) -> Dict[str, int]:
        """{status: job count}; statuses with no jobs are absent."""
        query = self.session.query(self.model_class.status, func.count(self.model_class.id))
        if broker_id is not None:
            query = query.filter(self.model_class.broker_id == broker_id)
        return dict(query.group_by(self.model_class.status).all())
