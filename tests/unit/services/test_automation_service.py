"""
Unit tests for AutomationService - triggers, settings and the claim/ack sweep
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import Mock, MagicMock

from services.automation_service import (
    AutomationService, TEMPLATES, DEFAULT_AUTOMATION_SETTINGS, FAST_MODEL
)
from services.common.result import Result
from services.gemini_service import GeminiRequestError
from services.whatsapp_service import WhatsAppSendError

NOW = datetime(2026, 3, 2, 15, 0, tzinfo=timezone.utc)


def make_lead(**overrides):
    values = {'id': 11, 'broker_id': 2, 'name': 'Ana', 'phone': '+15551234567', 'language': 'es',
              'broker': Mock(timezone='America/New_York')}
    values.update(overrides)
    mock = Mock()
    mock.configure_mock(**values)
    return mock


def make_job(**overrides):
    values = {'id': 5, 'lead_id': 11, 'broker_id': 2, 'type': 'welcome', 'language': 'en',
              'payload': {'name': 'Ana'}}
    values.update(overrides)
    mock = Mock()
    mock.configure_mock(**values)
    return mock


@pytest.fixture
def repos():
    job_repository = MagicMock()
    job_repository.schedule.side_effect = lambda **kwargs: Mock(id=1, **kwargs)
    job_repository.cancel_pending.return_value = 0
    settings_repository = Mock()
    settings_repository.get_for_tenant.return_value = None
    return {
        'job_repository': job_repository,
        'settings_repository': settings_repository,
        'lead_repository': Mock(),
        'message_repository': Mock(),
    }


@pytest.fixture
def service(repos, mock_gemini, mock_whatsapp):
    return AutomationService(
        gemini_service=mock_gemini,
        whatsapp_service=mock_whatsapp,
        lease_seconds=300,
        batch_size=20,
        max_attempts=3,
        **repos
    )


def scheduled(repos):
    return [c.kwargs for c in repos['job_repository'].schedule.call_args_list]


class TestSettings:

    def test_defaults_without_row(self, service):
        assert service.get_settings(2) == DEFAULT_AUTOMATION_SETTINGS

    def test_update_coerces_types(self, service, repos):
        service.update_settings(2, {'welcome_enabled': 0, 'reactivation_days': '7', 'bogus': 1})

        tenant_id, values = repos['settings_repository'].upsert_for_tenant.call_args[0]
        assert tenant_id == 2
        assert values['welcome_enabled'] is False
        assert values['reactivation_days'] == 7
        assert 'bogus' not in values

    def test_update_rejects_negative_delays(self, service, repos):
        with pytest.raises(ValueError):
            service.update_settings(2, {'reminder_before_minutes': -5})
        repos['settings_repository'].upsert_for_tenant.assert_not_called()


class TestTriggers:

    def test_welcome_uses_configured_delay(self, service, repos):
        repos['settings_repository'].get_for_tenant.return_value = Mock(
            **{**DEFAULT_AUTOMATION_SETTINGS, 'welcome_delay_minutes': 15})

        service.trigger_welcome_flow(make_lead(), now=NOW)

        job = scheduled(repos)[0]
        assert job['job_type'] == 'welcome'
        assert job['scheduled_for'] == NOW + timedelta(minutes=15)
        assert job['payload'] == {'name': 'Ana'}
        assert job['language'] == 'es'
        assert job['broker_id'] == 2
        repos['job_repository'].commit.assert_called_once()

    def test_disabled_welcome_schedules_nothing(self, service, repos):
        repos['settings_repository'].get_for_tenant.return_value = Mock(
            **{**DEFAULT_AUTOMATION_SETTINGS, 'welcome_enabled': False})

        assert service.trigger_welcome_flow(make_lead(), now=NOW) is None
        repos['job_repository'].schedule.assert_not_called()

    def test_language_defaults_to_english(self, service, repos):
        service.trigger_welcome_flow(make_lead(language=None), now=NOW)
        assert scheduled(repos)[0]['language'] == 'en'

    def test_calendar_created_schedules_pre_call_and_reminder(self, service, repos):
        meeting = NOW + timedelta(hours=3)

        jobs = service.trigger_calendar_flow(make_lead(), 'created', meeting.isoformat(), now=NOW)

        assert len(jobs) == 2
        pre_call, reminder = scheduled(repos)
        assert pre_call['job_type'] == 'pre_call'
        assert pre_call['scheduled_for'] == NOW
        assert reminder['job_type'] == 'reminder'
        assert reminder['scheduled_for'] == meeting - timedelta(minutes=60)
        assert reminder['payload']['meeting_time'] == meeting.isoformat()

    def test_reminder_skipped_when_already_past(self, service, repos):
        meeting = NOW + timedelta(minutes=30)

        jobs = service.trigger_calendar_flow(make_lead(), 'created', meeting, now=NOW)

        assert [job['job_type'] for job in scheduled(repos)] == ['pre_call']
        assert len(jobs) == 1

    def test_reminder_at_exactly_now_is_skipped(self, service, repos):
        meeting = NOW + timedelta(minutes=60)
        service.trigger_calendar_flow(make_lead(), 'created', meeting, now=NOW)
        assert [job['job_type'] for job in scheduled(repos)] == ['pre_call']

    def test_calendar_completed_schedules_post_call(self, service, repos):
        service.trigger_calendar_flow(make_lead(), 'completed', now=NOW)

        job = scheduled(repos)[0]
        assert job['job_type'] == 'post_call'
        assert job['scheduled_for'] == NOW + timedelta(minutes=60)

    def test_unknown_calendar_status_schedules_nothing(self, service, repos):
        assert service.trigger_calendar_flow(make_lead(), 'canceled', now=NOW) == []
        repos['job_repository'].schedule.assert_not_called()

    def test_reactivation_replaces_pending_job(self, service, repos):
        repos['job_repository'].cancel_pending.return_value = 1

        service.trigger_reactivation_flow(make_lead(), now=NOW)

        repos['job_repository'].cancel_pending.assert_called_once_with(11, 'reactivation')
        job = scheduled(repos)[0]
        assert job['scheduled_for'] == NOW + timedelta(days=3)

    def test_schedule_rejects_unknown_type(self, service):
        with pytest.raises(ValueError):
            service.schedule_job(make_lead(), 'birthday', NOW)


class TestComposeMessage:

    def test_uses_ai_text(self, service, mock_gemini):
        mock_gemini.run_gemini.return_value = Result.success('  ¡Hola Ana!  ')

        text = service.compose_message(make_job(language='es'), make_lead())

        assert text == '¡Hola Ana!'
        assert mock_gemini.run_gemini.call_args[0][1] == FAST_MODEL

    def test_falls_back_to_template_on_ai_error(self, service, mock_gemini):
        mock_gemini.run_gemini.return_value = Result.failure('AI Error: API Key not configured.')

        text = service.compose_message(make_job(language='pt'), make_lead())

        assert text == TEMPLATES['pt']['welcome'].format(name='Ana')

    def test_falls_back_on_transport_error(self, service, mock_gemini):
        mock_gemini.run_gemini.side_effect = GeminiRequestError('down')

        text = service.compose_message(make_job(payload={}), make_lead())

        assert text.startswith('Hi Customer,')

    def test_reminder_template_shows_local_time(self, service, mock_gemini):
        mock_gemini.run_gemini.return_value = Result.failure('AI Error: x')
        job = make_job(type='reminder', payload={'name': 'Ana', 'meeting_time': '2026-03-02T20:30:00+00:00'})

        text = service.compose_message(job, make_lead())

        assert text == 'Reminder: Your session is today at 3:30 PM.'

    def test_unknown_language_uses_english(self, service, mock_gemini):
        mock_gemini.run_gemini.return_value = Result.failure('AI Error: x')
        text = service.compose_message(make_job(type='post_call', language='fr'), make_lead())
        assert text == TEMPLATES['en']['post_call']


class TestRunScheduler:

    def test_claims_executes_and_acks(self, service, repos, mock_whatsapp):
        jobs = [make_job(id=1), make_job(id=2, type='reactivation')]
        repos['job_repository'].claim_due.return_value = jobs
        repos['lead_repository'].get_by_id.return_value = make_lead()
        mock_whatsapp.is_enabled.return_value = True

        stats = service.run_scheduler(now=NOW, worker_id='worker-1')

        assert stats == {'claimed': 2, 'executed': 2, 'failed': 0}
        repos['job_repository'].claim_due.assert_called_once_with(
            NOW, 'worker-1', lease_seconds=300, limit=20, max_attempts=3)
        assert repos['job_repository'].mark_executed.call_count == 2
        assert repos['message_repository'].create.call_count == 2
        assert mock_whatsapp.send_message.call_count == 2
        message = repos['message_repository'].create.call_args.kwargs
        assert message['sender'] == 'automation'
        assert message['direction'] == 'outbound'

    def test_no_whatsapp_send_when_disabled(self, service, repos, mock_whatsapp):
        repos['job_repository'].claim_due.return_value = [make_job()]
        repos['lead_repository'].get_by_id.return_value = make_lead()

        stats = service.run_scheduler(now=NOW, worker_id='worker-1')

        assert stats['executed'] == 1
        mock_whatsapp.send_message.assert_not_called()
        repos['message_repository'].create.assert_called_once()

    def test_send_failure_marks_job_failed(self, service, repos, mock_whatsapp):
        job = make_job()
        repos['job_repository'].claim_due.return_value = [job]
        repos['lead_repository'].get_by_id.return_value = make_lead()
        mock_whatsapp.is_enabled.return_value = True
        mock_whatsapp.send_message.side_effect = WhatsAppSendError('Invalid token', status_code=401)

        stats = service.run_scheduler(now=NOW, worker_id='worker-1')

        assert stats == {'claimed': 1, 'executed': 0, 'failed': 1}
        repos['job_repository'].rollback.assert_called_once()
        failed_job, error = repos['job_repository'].mark_failed.call_args[0][:2]
        assert failed_job is job
        assert error == 'Invalid token'
        repos['job_repository'].mark_executed.assert_not_called()

    def test_missing_lead_marks_job_failed(self, service, repos):
        repos['job_repository'].claim_due.return_value = [make_job()]
        repos['lead_repository'].get_by_id.return_value = None

        stats = service.run_scheduler(now=NOW, worker_id='worker-1')

        assert stats['failed'] == 1

    def test_empty_sweep(self, service, repos):
        repos['job_repository'].claim_due.return_value = []
        assert service.run_scheduler(now=NOW, limit=5) == {'claimed': 0, 'executed': 0, 'failed': 0}
        assert repos['job_repository'].claim_due.call_args.kwargs['limit'] == 5
