"""
ConversationService - two-way chat with a lead

Handles live WhatsApp Cloud API messages and the simulated inbound messages
used from the dashboard during development. Each inbound message is stored,
qualified and answered with an AI reply.
"""

from typing import Any, Dict, List, Optional

from crm_database import Lead
from logging_config import get_logger
from services.ai_service import detect_language
from services.whatsapp_service import WhatsAppError

logger = get_logger(__name__)

MOCK_CHANNEL = 'whatsapp_mock'


class ConversationService:

    def __init__(self, lead_service, ai_service, automation_service, whatsapp_service):
        self.lead_service = lead_service
        self.ai_service = ai_service
        self.automation_service = automation_service
        self.whatsapp_service = whatsapp_service

    def handle_whatsapp_webhook(self, payload: Dict[str, Any],
                                tenant_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Process every message in a Cloud API webhook body."""
        results = []
        for inbound in self.whatsapp_service.extract_inbound_messages(payload):
            results.append(self.handle_inbound_message(
                phone=inbound['from'],
                text=inbound['text'],
                name=inbound['name'],
                tenant_id=tenant_id,
            ))
        return results

    def handle_inbound_message(self, phone: str, text: str, name: Optional[str] = None,
                               tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Store an inbound WhatsApp message, qualify the lead and reply.

        A reply that cannot be delivered stays in the conversation log.
        """
        if phone and not phone.startswith('+'):
            phone = f'+{phone}'

        lead, created = self.lead_service.find_or_create(
            tenant_id, 'whatsapp', name=name, phone=phone
        )
        if not lead.language:
            lead.language = detect_language(text, lead)

        self.lead_service.record_message(lead, text, channel='whatsapp')
        history = self.lead_service.build_history(lead.id)

        analysis = self.ai_service.qualify_lead(text, history, tenant_id=lead.broker_id)
        self.lead_service.apply_qualification(lead, analysis)

        reply = self.ai_service.generate_response(lead, text, history, tenant_id=lead.broker_id)
        self.lead_service.record_message(lead, reply, direction='outbound', sender='ai',
                                         channel='whatsapp')
        self.lead_service.lead_repository.commit()

        delivered = self._deliver(lead, reply)
        self.automation_service.trigger_reactivation_flow(lead)

        logger.info("WhatsApp message handled", lead_id=lead.id, created=created,
                    score=lead.score, delivered=delivered)
        return {'lead_id': lead.id, 'created': created, 'reply': reply, 'delivered': delivered}

    def add_mock_message(self, lead: Lead, text: str, direction: str = 'inbound',
                         sender: str = 'lead', trigger_ai: bool = True) -> Dict[str, Any]:
        """Insert a simulated message and optionally have the AI answer it."""
        message = self.lead_service.record_message(lead, text, direction=direction,
                                                   sender=sender, channel=MOCK_CHANNEL)
        result = {'message': message, 'ai_response': None}

        if direction == 'inbound' and trigger_ai:
            history = self.lead_service.build_history(lead.id)
            reply = self.ai_service.generate_response(lead, text, history)
            self.lead_service.record_message(lead, reply, direction='outbound', sender='ai',
                                             channel=MOCK_CHANNEL)
            result['ai_response'] = reply

        self.lead_service.lead_repository.commit()
        return result

    def _deliver(self, lead: Lead, text: str) -> bool:
        if not lead.phone:
            return False
        try:
            self.whatsapp_service.send_message(lead.phone, text, tenant_id=lead.broker_id)
        except WhatsAppError as e:
            logger.warning("WhatsApp reply not delivered", lead_id=lead.id, error=str(e))
            return False
        return True
