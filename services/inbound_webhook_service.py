"""
InboundWebhookService - lead intake from external channels

Each channel posts its own JSON shape. normalize_payload() reduces it to an
InboundLead, and process() then runs the intake pipeline: identify the lead,
log the message, start automations, qualify with AI and record the raw event.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger
from services.common.result import Result
from services.ai_service import detect_language
from utils.datetime_utils import utc_now, parse_utc_iso

logger = get_logger(__name__)

CHANNELS = ('whatsapp', 'meta', 'tiktok', 'youtube', 'calendar', 'automation')


class UnknownChannelError(ValueError):
    pass


class InvalidPayloadError(ValueError):
    pass


@dataclass
class InboundLead:
    """Channel-independent view of one webhook"""
    source: str
    message: str
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    external_id: Optional[str] = None
    status: Optional[str] = None
    event_status: Optional[str] = None
    event_time: Any = None
    extra: Dict[str, Any] = field(default_factory=dict)


def _mapping(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _text(value: Any) -> Optional[str]:
    """Scalar payload value as stripped text; objects and empty strings become None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    return str(value).strip() or None


def _first(value: Any) -> Dict[str, Any]:
    return _mapping(value[0]) if isinstance(value, list) and value else {}


def calendar_event_time(value: Any) -> datetime:
    """
    Raises:
        InvalidPayloadError: If event_start_time is not an ISO 8601 string
    """
    if value is None or value == '':
        return utc_now()
    if not isinstance(value, str):
        raise InvalidPayloadError(
            f"event_start_time must be an ISO 8601 string, got {type(value).__name__}")
    return parse_utc_iso(value)


def normalize_payload(channel: str, body: Dict[str, Any]) -> InboundLead:
    """
    Map a channel payload to an InboundLead.

    Fields of the wrong JSON type are treated as missing.

    Raises:
        UnknownChannelError: For a channel with no mapping
    """
    body = _mapping(body)

    if channel == 'whatsapp':
        phone = _text(body.get('from')) or _text(body.get('phone'))
        if phone and not phone.startswith('+'):
            phone = f'+{phone}'
        return InboundLead(
            source='whatsapp',
            message=(_text(_mapping(body.get('text')).get('body'))
                     or _text(body.get('message')) or 'Image Attachment'),
            phone=phone,
            name=_text(_mapping(body.get('profile')).get('name')) or 'Unknown WhatsApp User',
        )

    if channel == 'meta':
        messaging = _first(_first(body.get('entry')).get('messaging'))
        sender_id = _text(_mapping(messaging.get('sender')).get('id'))
        return InboundLead(
            source='instagram' if body.get('object') == 'instagram' else 'facebook',
            message=_text(_mapping(messaging.get('message')).get('text')) or 'Interaction',
            name=sender_id or 'Social User',
            external_id=sender_id,
        )

    if channel == 'tiktok':
        user_id = _text(body.get('user_id'))
        return InboundLead(
            source='tiktok',
            message=_text(body.get('message')) or 'TikTok Interaction',
            name=user_id or 'TikTok User',
            external_id=user_id,
        )

    if channel == 'youtube':
        author = _text(body.get('author'))
        return InboundLead(
            source='youtube',
            message=_text(body.get('comment')) or 'New Comment',
            name=author or 'YouTube User',
            external_id=author,
        )

    if channel == 'calendar':
        return InboundLead(
            source='calendar',
            message=f"Appointment: {body.get('event_type')} - {body.get('status')}",
            email=_text(body.get('invitee_email')),
            name=_text(body.get('invitee_name')),
            status='appointment_set',
            event_status=_text(body.get('status')),
            event_time=body.get('event_start_time'),
        )

    if channel == 'automation':
        return InboundLead(
            source='automation',
            message=_text(body.get('message')) or 'Automation Inquiry',
            name=_text(body.get('name')),
            phone=_text(body.get('phone')),
            email=_text(body.get('email')),
        )

    raise UnknownChannelError(f"Unknown webhook channel: {channel}")


class InboundWebhookService:
    """Runs the intake pipeline for a normalized webhook"""

    def __init__(self, webhook_event_repository, lead_service, ai_service, automation_service):
        self.webhook_event_repository = webhook_event_repository
        self.lead_service = lead_service
        self.ai_service = ai_service
        self.automation_service = automation_service

    def process(self, channel: str, tenant_id: Optional[int], body: Dict[str, Any]) -> Result[Dict[str, Any]]:
        """
        Args:
            channel: Path segment naming the sender (whatsapp, meta, ...)
            tenant_id: Broker the webhook was registered for
            body: Raw JSON payload

        Returns:
            Result with {'lead_id', 'created'}; UNKNOWN_CHANNEL or
            PROCESSING_ERROR on failure
        """
        try:
            inbound = normalize_payload(channel, body)
        except UnknownChannelError as e:
            logger.warning("Rejected webhook", channel=channel, tenant_id=tenant_id)
            return Result.failure(str(e), code='UNKNOWN_CHANNEL')

        event = self.webhook_event_repository.record(channel, body, broker_id=tenant_id)
        self.webhook_event_repository.commit()
        event_id = event.id

        try:
            data = self._run_pipeline(channel, tenant_id, inbound)
        except (SQLAlchemyError, ValueError, TypeError) as e:
            self.webhook_event_repository.rollback()
            logger.error("Webhook processing failed", channel=channel, tenant_id=tenant_id,
                         event_id=event_id, error=str(e))
            event = self.webhook_event_repository.get_by_id(event_id)
            if event is not None:
                self.webhook_event_repository.mark_as_failed(event, str(e))
                self.webhook_event_repository.commit()
            return Result.failure('Webhook processing failed', code='PROCESSING_ERROR')

        self.webhook_event_repository.mark_as_processed(event, utc_now())
        self.webhook_event_repository.commit()
        return Result.success(data)

    def _run_pipeline(self, channel: str, tenant_id: Optional[int],
                      inbound: InboundLead) -> Dict[str, Any]:
        event_time = None
        if channel == 'calendar' and inbound.event_status:
            event_time = calendar_event_time(inbound.event_time)

        lead, created = self.lead_service.find_or_create(
            tenant_id,
            inbound.source,
            name=inbound.name,
            phone=inbound.phone,
            email=inbound.email,
            external_id=inbound.external_id,
            status=inbound.status,
        )
        if not created and inbound.status:
            lead.status = inbound.status
        if not lead.language:
            lead.language = detect_language(inbound.message, lead)

        self.lead_service.record_message(lead, inbound.message, channel=inbound.source)
        self.lead_service.lead_repository.commit()

        if created:
            self.automation_service.trigger_welcome_flow(lead)

        if channel == 'calendar':
            if inbound.event_status:
                self.automation_service.trigger_calendar_flow(lead, inbound.event_status, event_time)
        else:
            history = self.lead_service.build_history(lead.id)
            analysis = self.ai_service.qualify_lead(inbound.message, history, tenant_id=lead.broker_id)
            self.lead_service.apply_qualification(lead, analysis)
            self.automation_service.trigger_reactivation_flow(lead)

        self.lead_service.lead_repository.commit()
        logger.info("Webhook lead processed", channel=channel, lead_id=lead.id, created=created)
        return {'lead_id': lead.id, 'created': created}
