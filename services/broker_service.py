"""
BrokerService - tenant administration
"""

import re
from typing import Any, Dict, List

from sqlalchemy.exc import SQLAlchemyError

from crm_database import Broker
from logging_config import get_logger
from repositories.base_repository import SortOrder
from services.common.result import Result
from utils.datetime_utils import format_utc_iso

logger = get_logger(__name__)

LANGUAGES = ('en', 'es', 'pt')
EDITABLE_FIELDS = ('name', 'email', 'slug', 'preferred_language', 'timezone')


def slugify(value: str) -> str:
    slug = re.sub(r'[^a-z0-9]+', '-', (value or '').strip().lower())
    return slug.strip('-') or 'broker'


def serialize_broker(broker: Broker) -> Dict[str, Any]:
    return {
        'id': broker.id,
        'name': broker.name,
        'email': broker.email,
        'slug': broker.slug,
        'preferred_language': broker.preferred_language,
        'timezone': broker.timezone,
        'lead_count': len(broker.leads),
        'created_at': format_utc_iso(broker.created_at),
    }


class BrokerService:

    def __init__(self, broker_repository):
        self.broker_repository = broker_repository

    def list_brokers(self) -> List[Broker]:
        return self.broker_repository.get_all(order_by='created_at', order=SortOrder.DESC)

    def get_broker(self, broker_id: int):
        return self.broker_repository.get_by_id(broker_id)

    def _unique_slug(self, base: str) -> str:
        slug, suffix = base, 2
        while self.broker_repository.find_by_slug(slug):
            slug = f"{base}-{suffix}"
            suffix += 1
        return slug

    def create_broker(self, data: Dict[str, Any]) -> Result[Broker]:
        name = (data.get('name') or '').strip()
        email = (data.get('email') or '').strip().lower()
        if not name or not email:
            return Result.failure('Name and Email are required', code='VALIDATION_ERROR')
        if self.broker_repository.find_by_email(email):
            return Result.failure('Email already in use', code='DUPLICATE_EMAIL')

        language = data.get('preferred_language') or 'es'
        if language not in LANGUAGES:
            return Result.failure(f"Unsupported language: {language}", code='VALIDATION_ERROR')

        try:
            broker = self.broker_repository.create(
                name=name,
                email=email,
                slug=self._unique_slug(slugify(data.get('slug') or name)),
                preferred_language=language,
                timezone=data.get('timezone') or 'America/New_York',
            )
            self.broker_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to create broker", email=email, error=str(e))
            return Result.failure('Failed to create broker', code='DATABASE_ERROR')

        logger.info("Broker created", broker_id=broker.id, slug=broker.slug)
        return Result.success(broker)

    def update_broker(self, broker_id: int, data: Dict[str, Any]) -> Result[Broker]:
        broker = self.broker_repository.get_by_id(broker_id)
        if broker is None:
            return Result.failure('Broker not found', code='NOT_FOUND')

        updates = {k: v for k, v in data.items() if k in EDITABLE_FIELDS and v is not None}
        if 'email' in updates:
            updates['email'] = updates['email'].strip().lower()
            other = self.broker_repository.find_by_email(updates['email'])
            if other is not None and other.id != broker.id:
                return Result.failure('Email already in use', code='DUPLICATE_EMAIL')
        if updates.get('preferred_language', 'es') not in LANGUAGES:
            return Result.failure(f"Unsupported language: {updates['preferred_language']}",
                                  code='VALIDATION_ERROR')

        try:
            self.broker_repository.update(broker, **updates)
            self.broker_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to update broker", broker_id=broker_id, error=str(e))
            return Result.failure('Failed to update broker', code='DATABASE_ERROR')
        return Result.success(broker)

    def delete_broker(self, broker_id: int) -> Result[bool]:
        broker = self.broker_repository.get_by_id(broker_id)
        if broker is None:
            return Result.failure('Broker not found', code='NOT_FOUND')
        if broker.leads:
            return Result.failure('Broker still owns leads', code='HAS_LEADS')

        if not self.broker_repository.delete(broker):
            return Result.failure('Failed to delete broker', code='DATABASE_ERROR')
        self.broker_repository.commit()
        logger.info("Broker deleted", broker_id=broker_id)
        return Result.success(True)
