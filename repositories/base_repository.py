"""
Shared persistence helpers for the lead pipeline repositories.

Repository writes only flush. The owning service commits once its unit of
work (lead + message + scheduled jobs, for example) is complete, so a failure
halfway through an intake leaves nothing behind.
"""

from enum import Enum
from typing import TypeVar, Generic, List, Optional, Dict, Any, Type
import logging

from sqlalchemy import asc, desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, Query

logger = logging.getLogger(__name__)

ModelT = TypeVar('ModelT')


class SortOrder(Enum):
    ASC = "asc"
    DESC = "desc"


class BaseRepository(Generic[ModelT]):
    """Column-equality lookups and flush-only writes for one model."""

    def __init__(self, session: Session, model_class: Type[ModelT]):
        self.session = session
        self.model_class = model_class

    @property
    def _label(self) -> str:
        return self.model_class.__name__

    def _filtered(self, criteria: Optional[Dict[str, Any]] = None) -> Query:
        """
        Query narrowed by a {column: value} mapping.

        A list value matches any of its members, None matches NULL and
        names that are not columns on the model are skipped.
        """
        query = self.session.query(self.model_class)
        for name, wanted in (criteria or {}).items():
            column = getattr(self.model_class, name, None)
            if column is None:
                continue
            if wanted is None:
                query = query.filter(column.is_(None))
            elif isinstance(wanted, (list, tuple, set)):
                query = query.filter(column.in_(list(wanted)))
            else:
                query = query.filter(column == wanted)
        return query

    # Reads

    def get_by_id(self, entity_id: int) -> Optional[ModelT]:
        try:
            return self.session.get(self.model_class, entity_id)
        except SQLAlchemyError as e:
            logger.error(f"Could not load {self._label} #{entity_id}: {e}")
            return None

    def get_all(self, order_by: Optional[str] = None,
                order: SortOrder = SortOrder.ASC) -> List[ModelT]:
        query = self.session.query(self.model_class)
        column = getattr(self.model_class, order_by, None) if order_by else None
        if column is not None:
            query = query.order_by(desc(column) if order is SortOrder.DESC else asc(column))
        try:
            return query.all()
        except SQLAlchemyError as e:
            logger.error(f"Could not list {self._label}: {e}")
            return []

    def find_one_by(self, **criteria) -> Optional[ModelT]:
        try:
            return self._filtered(criteria).first()
        except SQLAlchemyError as e:
            logger.error(f"Lookup on {self._label} by {sorted(criteria)} failed: {e}")
            return None

    # Writes

    def create(self, **values) -> ModelT:
        entity = self.model_class(**values)
        self.session.add(entity)
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Insert into {self._label} failed: {e}")
            self.session.rollback()
            raise
        return entity

    def update(self, entity: ModelT, **changes) -> ModelT:
        """Assign known attributes on entity and flush; unknown keys are dropped."""
        for name, value in changes.items():
            if hasattr(entity, name):
                setattr(entity, name, value)
        try:
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Update of {self._label} #{getattr(entity, 'id', None)} failed: {e}")
            self.session.rollback()
            raise
        return entity

    def delete(self, entity: ModelT) -> bool:
        try:
            self.session.delete(entity)
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Delete of {self._label} failed: {e}")
            self.session.rollback()
            return False
        return True

    def delete_many(self, criteria: Dict[str, Any]) -> int:
        """Bulk delete matching rows and return how many went."""
        try:
            removed = self._filtered(criteria).delete(synchronize_session=False)
            self.session.flush()
        except SQLAlchemyError as e:
            logger.error(f"Bulk delete on {self._label} failed: {e}")
            self.session.rollback()
            return 0
        return removed

    # Transaction boundary, driven by services

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError:
            self.session.rollback()
            raise

    def rollback(self) -> None:
        self.session.rollback()
