"""
Unit tests for InboundWebhookService - channel mapping and the intake pipeline
"""

import pytest
from datetime import datetime, timezone
from unittest.mock import Mock
from sqlalchemy.exc import OperationalError

from services.inbound_webhook_service import (
    InboundWebhookService, UnknownChannelError, normalize_payload
)
from services.ai_service import AnalysisResult


class TestNormalizePayload:

    def test_whatsapp(self):
        inbound = normalize_payload('whatsapp', {
            'from': '5511999990000',
            'text': {'body': 'Quero comprar'},
            'profile': {'name': 'João'},
        })

        assert inbound.source == 'whatsapp'
        assert inbound.phone == '+5511999990000'
        assert inbound.message == 'Quero comprar'
        assert inbound.name == 'João'

    def test_whatsapp_defaults(self):
        inbound = normalize_payload('whatsapp', {'from': '+15551234567'})

        assert inbound.phone == '+15551234567'
        assert inbound.message == 'Image Attachment'
        assert inbound.name == 'Unknown WhatsApp User'

    def test_whatsapp_plain_string_text(self):
        inbound = normalize_payload('whatsapp', {'from': 15551234567, 'text': 'hello', 'message': 'Hi there'})

        assert inbound.phone == '+15551234567'
        assert inbound.message == 'Hi there'

    def test_mistyped_fields_are_treated_as_missing(self):
        whatsapp = normalize_payload('whatsapp', {'text': 'hello', 'profile': 'Ana'})
        meta = normalize_payload('meta', {'entry': {'messaging': 'x'}})
        nested = normalize_payload('meta', {'entry': [{'messaging': [{'sender': 'psid', 'message': 'Price?'}]}]})

        assert (whatsapp.message, whatsapp.name) == ('Image Attachment', 'Unknown WhatsApp User')
        assert (meta.message, meta.name) == ('Interaction', 'Social User')
        assert (nested.message, nested.external_id) == ('Interaction', None)

    @pytest.mark.parametrize('obj,source', [('instagram', 'instagram'), ('page', 'facebook')])
    def test_meta(self, obj, source):
        inbound = normalize_payload('meta', {
            'object': obj,
            'entry': [{'messaging': [{'sender': {'id': 'psid-1'}, 'message': {'text': 'Price?'}}]}],
        })

        assert inbound.source == source
        assert inbound.message == 'Price?'
        assert inbound.external_id == 'psid-1'
        assert inbound.name == 'psid-1'

    def test_meta_empty_body(self):
        inbound = normalize_payload('meta', {})

        assert inbound.source == 'facebook'
        assert inbound.message == 'Interaction'
        assert inbound.name == 'Social User'
        assert inbound.external_id is None

    def test_tiktok_and_youtube(self):
        tiktok = normalize_payload('tiktok', {'user_id': 'tt_1', 'message': 'Love this house'})
        youtube = normalize_payload('youtube', {})

        assert (tiktok.source, tiktok.name, tiktok.external_id) == ('tiktok', 'tt_1', 'tt_1')
        assert tiktok.message == 'Love this house'
        assert (youtube.name, youtube.message) == ('YouTube User', 'New Comment')

    def test_calendar(self):
        inbound = normalize_payload('calendar', {
            'event_type': 'Discovery Call',
            'status': 'created',
            'invitee_email': 'ana@mail.com',
            'invitee_name': 'Ana',
            'event_start_time': '2026-03-02T20:30:00Z',
        })

        assert inbound.message == 'Appointment: Discovery Call - created'
        assert inbound.email == 'ana@mail.com'
        assert inbound.status == 'appointment_set'
        assert inbound.event_status == 'created'
        assert inbound.event_time == '2026-03-02T20:30:00Z'

    def test_automation(self):
        inbound = normalize_payload('automation', {'name': 'Ana', 'phone': '+15551234567'})
        assert inbound.message == 'Automation Inquiry'
        assert inbound.phone == '+15551234567'

    def test_unknown_channel(self):
        with pytest.raises(UnknownChannelError):
            normalize_payload('myspace', {})


def qualified():
    return AnalysisResult(
        intent='Buying Interest',
        extracted_data={'urgency_level': 'high'},
        score=70,
        suggested_status='In Qualification',
        recommended_action='Follow up',
        ai_summary='Interested',
    )


@pytest.fixture
def lead():
    lead = Mock()
    lead.configure_mock(id=21, broker_id=4, status='New', language=None, phone='+15551234567')
    return lead


@pytest.fixture
def deps(lead):
    event_repository = Mock()
    event_repository.record.return_value = Mock(id=99)
    lead_service = Mock()
    lead_service.find_or_create.return_value = (lead, True)
    lead_service.build_history.return_value = 'User: hi'
    ai_service = Mock()
    ai_service.qualify_lead.return_value = qualified()
    return {
        'webhook_event_repository': event_repository,
        'lead_service': lead_service,
        'ai_service': ai_service,
        'automation_service': Mock(),
    }


@pytest.fixture
def service(deps):
    return InboundWebhookService(**deps)


class TestProcess:

    def test_unknown_channel_is_not_recorded(self, service, deps):
        result = service.process('myspace', 4, {})

        assert result.is_failure
        assert result.error_code == 'UNKNOWN_CHANNEL'
        deps['webhook_event_repository'].record.assert_not_called()

    def test_new_lead_pipeline(self, service, deps, lead):
        body = {'from': '15551234567', 'text': {'body': 'Hola, busco casa'}}

        result = service.process('whatsapp', 4, body)

        assert result.is_success
        assert result.data == {'lead_id': 21, 'created': True}

        deps['webhook_event_repository'].record.assert_called_once_with('whatsapp', body, broker_id=4)
        find_kwargs = deps['lead_service'].find_or_create.call_args
        assert find_kwargs[0] == (4, 'whatsapp')
        assert find_kwargs[1]['phone'] == '+15551234567'
        assert lead.language == 'es'

        deps['lead_service'].record_message.assert_called_once_with(
            lead, 'Hola, busco casa', channel='whatsapp')
        deps['automation_service'].trigger_welcome_flow.assert_called_once_with(lead)
        deps['ai_service'].qualify_lead.assert_called_once_with('Hola, busco casa', 'User: hi', tenant_id=4)
        deps['lead_service'].apply_qualification.assert_called_once()
        deps['automation_service'].trigger_reactivation_flow.assert_called_once_with(lead)
        deps['webhook_event_repository'].mark_as_processed.assert_called_once()

    def test_existing_lead_gets_no_welcome(self, service, deps, lead):
        deps['lead_service'].find_or_create.return_value = (lead, False)
        lead.language = 'en'

        result = service.process('tiktok', 4, {'user_id': 'tt_1'})

        assert result.data['created'] is False
        assert lead.language == 'en'
        deps['automation_service'].trigger_welcome_flow.assert_not_called()

    def test_calendar_schedules_meeting_flow_without_ai(self, service, deps, lead):
        deps['lead_service'].find_or_create.return_value = (lead, False)

        service.process('calendar', 4, {
            'event_type': 'Call',
            'status': 'created',
            'invitee_email': 'ana@mail.com',
            'event_start_time': '2026-03-02T20:30:00Z',
        })

        assert lead.status == 'appointment_set'
        lead_arg, status, meeting = deps['automation_service'].trigger_calendar_flow.call_args[0]
        assert lead_arg is lead
        assert status == 'created'
        assert meeting == datetime(2026, 3, 2, 20, 30, tzinfo=timezone.utc)
        deps['ai_service'].qualify_lead.assert_not_called()
        deps['automation_service'].trigger_reactivation_flow.assert_not_called()

    def test_database_error_marks_event_failed(self, service, deps):
        event = Mock(id=99)
        deps['webhook_event_repository'].get_by_id.return_value = event
        deps['lead_service'].find_or_create.side_effect = OperationalError('INSERT', {}, Exception('locked'))

        result = service.process('youtube', 4, {'author': 'yt_1'})

        assert result.is_failure
        assert result.error_code == 'PROCESSING_ERROR'
        deps['webhook_event_repository'].rollback.assert_called_once()
        marked_event, error = deps['webhook_event_repository'].mark_as_failed.call_args[0]
        assert marked_event is event
        assert 'locked' in error
        deps['webhook_event_repository'].mark_as_processed.assert_not_called()

    def test_non_string_event_time_marks_event_failed(self, service, deps):
        event = Mock(id=99)
        deps['webhook_event_repository'].get_by_id.return_value = event

        result = service.process('calendar', 4, {'status': 'created', 'event_start_time': 1772483400})

        assert result.error_code == 'PROCESSING_ERROR'
        deps['lead_service'].find_or_create.assert_not_called()
        marked_event, error = deps['webhook_event_repository'].mark_as_failed.call_args[0]
        assert marked_event is event
        assert 'event_start_time' in error

    def test_malformed_event_time_marks_event_failed(self, service, deps):
        deps['webhook_event_repository'].get_by_id.return_value = Mock(id=99)

        result = service.process('calendar', 4, {'status': 'created', 'event_start_time': 'next tuesday'})

        assert result.error_code == 'PROCESSING_ERROR'
        deps['webhook_event_repository'].mark_as_failed.assert_called_once()
