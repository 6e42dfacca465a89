"""
LeadService - lead identity, conversation log and qualification updates
"""

import re
from typing import Any, Dict, List, Optional, Tuple
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from crm_database import Lead, LeadMessage
from logging_config import get_logger
from services.common.result import Result
from services.ai_service import AnalysisResult, is_known
from utils.datetime_utils import format_utc_iso

logger = get_logger(__name__)

HISTORY_LIMIT = 10

# Statuses the qualifier may move a lead between; anything else was set by a person
AUTOMATIC_STATUSES = {'New', 'In Qualification', 'Qualified', 'Hot'}

EDITABLE_FIELDS = (
    'name', 'phone', 'email', 'source', 'status', 'intent', 'score', 'budget', 'timeline',
    'property_type', 'desired_city', 'financing', 'urgency', 'recommended_action',
    'ai_summary', 'notes', 'language', 'tags', 'broker_id',
)


def normalize_phone(phone: Optional[str]) -> Optional[str]:
    """Strip formatting characters; keeps a leading '+'."""
    if not phone:
        return None
    phone = str(phone).strip()
    cleaned = re.sub(r'[^\d+]', '', phone)
    if not cleaned:
        return None
    return '+' + cleaned.lstrip('+') if cleaned.startswith('+') else cleaned


class LeadService:

    def __init__(self, lead_repository, message_repository):
        self.lead_repository = lead_repository
        self.message_repository = message_repository

    # --- Identity ---

    def find_lead(self, phone: Optional[str] = None, email: Optional[str] = None,
                  source: Optional[str] = None, external_id: Optional[str] = None,
                  broker_id: Optional[int] = None) -> Optional[Lead]:
        """Phone first (unique system-wide), then email, then channel identity."""
        lead = self.lead_repository.find_by_phone(normalize_phone(phone))
        if lead is None and email:
            lead = self.lead_repository.find_by_email(email.strip().lower(), broker_id)
        if lead is None and source and external_id:
            lead = self.lead_repository.find_by_external_id(source, external_id, broker_id)
        return lead

    def find_or_create(self, broker_id: Optional[int], source: str, name: Optional[str] = None,
                       phone: Optional[str] = None, email: Optional[str] = None,
                       external_id: Optional[str] = None, **extra) -> Tuple[Lead, bool]:
        """
        Returns:
            (lead, created) where created is True for a brand-new lead
        """
        lead = self.find_lead(phone=phone, email=email, source=source,
                              external_id=external_id, broker_id=broker_id)
        if lead is not None:
            return lead, False

        lead = self.lead_repository.create(
            broker_id=broker_id,
            name=name or 'New Lead',
            phone=normalize_phone(phone),
            email=email.strip().lower() if email else None,
            external_id=external_id,
            source=source,
            status=extra.pop('status', None) or 'New',
            score=0,
            tags=extra.pop('tags', None) or [],
            **{k: v for k, v in extra.items() if k in EDITABLE_FIELDS},
        )
        logger.info("Lead created", lead_id=lead.id, broker_id=broker_id, source=source)
        return lead, True

    # --- Conversation ---

    def record_message(self, lead: Lead, content: str, direction: str = 'inbound',
                       sender: str = 'lead', channel: Optional[str] = None,
                       role: Optional[str] = None) -> LeadMessage:
        if role is None:
            role = 'user' if sender == 'lead' else 'assistant'
        return self.message_repository.create(
            lead_id=lead.id,
            content=content,
            direction=direction,
            sender=sender,
            role=role,
            channel=channel,
        )

    def build_history(self, lead_id: int, limit: int = HISTORY_LIMIT) -> str:
        """Last `limit` messages, oldest first, as 'AI: ...' / 'User: ...' lines."""
        recent = list(reversed(self.message_repository.get_recent(lead_id, limit)))
        return '\n'.join(
            f"{'AI' if message.role == 'assistant' else 'User'}: {message.content}"
            for message in recent
        )

    def get_messages(self, lead_id: int) -> List[LeadMessage]:
        return self.message_repository.get_conversation(lead_id)

    # --- Qualification ---

    def apply_qualification(self, lead: Lead, analysis: AnalysisResult) -> Lead:
        """
        Copy an analysis onto the lead.

        The fallback analysis is ignored so a model outage does not wipe a
        previous score.
        """
        if analysis.intent == 'Error Processing':
            logger.warning("Skipping failed qualification", lead_id=lead.id)
            return lead

        extracted = analysis.extracted_data or {}
        updates = {
            'score': analysis.score,
            'intent': analysis.intent,
            'recommended_action': analysis.recommended_action,
            'ai_summary': analysis.ai_summary,
            'urgency': extracted.get('urgency_level'),
        }
        for target, key in (('budget', 'budget'), ('timeline', 'timeline'),
                            ('property_type', 'property_type'), ('desired_city', 'location'),
                            ('financing', 'financing')):
            if is_known(extracted.get(key)):
                updates[target] = str(extracted[key])

        if lead.status in AUTOMATIC_STATUSES:
            updates['status'] = analysis.suggested_status
        if is_known(extracted.get('email')) and not lead.email:
            updates['email'] = str(extracted['email']).strip().lower()
        if is_known(extracted.get('name')) and lead.name in (None, '', 'New Lead'):
            updates['name'] = str(extracted['name'])

        self.lead_repository.update(lead, **updates)
        logger.info("Lead qualified", lead_id=lead.id, score=analysis.score,
                    status=lead.status, intent=analysis.intent)
        return lead

    # --- Dashboard CRUD ---

    def get_lead(self, lead_id: int) -> Optional[Lead]:
        return self.lead_repository.get_by_id(lead_id)

    def list_leads(self, broker_id: Optional[int] = None, status: Optional[str] = None,
                   query: Optional[str] = None) -> List[Lead]:
        return self.lead_repository.list_leads(broker_id=broker_id, status=status, query=query)

    def create_lead(self, data: Dict[str, Any]) -> Result[Lead]:
        if not data.get('name') and not data.get('phone') and not data.get('email'):
            return Result.failure("A lead needs a name, phone or email", code='VALIDATION_ERROR')

        phone = normalize_phone(data.get('phone'))
        if phone and self.lead_repository.find_by_phone(phone):
            return Result.failure(f"A lead with phone {phone} already exists", code='DUPLICATE_PHONE')

        values = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        values['phone'] = phone
        values.setdefault('source', 'manual')
        values.setdefault('status', 'New')
        values.setdefault('tags', [])
        try:
            lead = self.lead_repository.create(**values)
            self.lead_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to create lead", error=str(e))
            return Result.failure("Failed to create lead", code='DATABASE_ERROR')
        return Result.success(lead)

    def update_lead(self, lead_id: int, data: Dict[str, Any]) -> Result[Lead]:
        lead = self.lead_repository.get_by_id(lead_id)
        if lead is None:
            return Result.failure("Lead not found", code='NOT_FOUND')

        updates = {k: v for k, v in data.items() if k in EDITABLE_FIELDS}
        if 'phone' in updates:
            updates['phone'] = normalize_phone(updates['phone'])
        try:
            self.lead_repository.update(lead, **updates)
            self.lead_repository.commit()
        except IntegrityError:
            return Result.failure("Phone number already belongs to another lead", code='DUPLICATE_PHONE')
        except SQLAlchemyError as e:
            logger.error("Failed to update lead", lead_id=lead_id, error=str(e))
            return Result.failure("Failed to update lead", code='DATABASE_ERROR')
        return Result.success(lead)

    def delete_lead(self, lead_id: int) -> Result[bool]:
        lead = self.lead_repository.get_by_id(lead_id)
        if lead is None:
            return Result.failure("Lead not found", code='NOT_FOUND')
        if not self.lead_repository.delete(lead):
            return Result.failure("Failed to delete lead", code='DATABASE_ERROR')
        self.lead_repository.commit()
        logger.info("Lead deleted", lead_id=lead_id)
        return Result.success(True)


def serialize_lead(lead: Lead) -> Dict[str, Any]:
    return {
        'id': lead.id,
        'broker_id': lead.broker_id,
        'name': lead.name,
        'phone': lead.phone,
        'email': lead.email,
        'external_id': lead.external_id,
        'source': lead.source,
        'status': lead.status,
        'intent': lead.intent,
        'score': lead.score,
        'budget': lead.budget,
        'timeline': lead.timeline,
        'property_type': lead.property_type,
        'desired_city': lead.desired_city,
        'financing': lead.financing,
        'urgency': lead.urgency,
        'recommended_action': lead.recommended_action,
        'ai_summary': lead.ai_summary,
        'notes': lead.notes,
        'language': lead.language,
        'tags': lead.tags or [],
        'created_at': format_utc_iso(lead.created_at),
        'updated_at': format_utc_iso(lead.updated_at),
    }


def serialize_message(message: LeadMessage) -> Dict[str, Any]:
    return {
        'id': message.id,
        'lead_id': message.lead_id,
        'role': message.role,
        'sender': message.sender,
        'direction': message.direction,
        'content': message.content,
        'channel': message.channel,
        'timestamp': format_utc_iso(message.timestamp),
    }
