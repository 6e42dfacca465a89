"""
AutomationService - follow-up messages driven by a persisted job queue

Triggers only write AutomationJob rows. A sweep (Celery beat or the
run-automations command) claims due rows, writes the message for each one and
acks it, so a restart loses nothing that was scheduled.
"""

import os
import socket
import time
from datetime import datetime, timedelta
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from crm_database import Lead, AutomationJob
from repositories.automation_job_repository import DEFAULT_MAX_ATTEMPTS
from logging_config import get_logger, performance_logger
from services.gemini_service import GeminiRequestError
from services.whatsapp_service import WhatsAppError
from utils.datetime_utils import (
    utc_now, ensure_utc, utc_in, format_utc_iso, parse_utc_iso, format_local_time
)
from utils.coercion import parse_bool

logger = get_logger(__name__)

FAST_MODEL = 'gemini-2.0-flash'
POST_CALL_DELAY_MINUTES = 60
DEFAULT_LEASE_SECONDS = 300

JOB_TYPES = ('welcome', 'pre_call', 'reminder', 'post_call', 'reactivation')

DEFAULT_AUTOMATION_SETTINGS = {
    'welcome_enabled': True,
    'pre_call_enabled': True,
    'reminder_enabled': True,
    'post_call_enabled': True,
    'reactivation_enabled': True,
    'welcome_delay_minutes': 0,
    'reminder_before_minutes': 60,
    'reactivation_days': 3,
}

TEMPLATES = {
    'en': {
        'welcome': "Hi {name}, I'm the virtual assistant. Thanks for reaching out. "
                   "What type of property are you looking for?",
        'pre_call': "Hi, your session is scheduled. Do you have any specific questions "
                    "to prepare for the meeting?",
        'reminder': "Reminder: Your session is today at {time}.",
        'post_call': "How was the session? Let me know if you want to review next steps.",
        'reactivation': "Hi, are you still interested in buying a home in your area of interest?",
    },
    'es': {
        'welcome': "Hola {name}, soy el asistente virtual. Gracias por escribir. "
                   "¿Qué tipo de propiedad buscas?",
        'pre_call': "Hola, tu sesión está agendada. ¿Tienes alguna duda específica "
                    "para preparar la reunión?",
        'reminder': "Recordatorio: Tu sesión es hoy a las {time}.",
        'post_call': "¿Qué te pareció la sesión? Avísame si quieres revisar siguientes pasos.",
        'reactivation': "Hola, ¿sigues interesado en comprar casa en tu zona de interés?",
    },
    'pt': {
        'welcome': "Olá {name}, sou o assistente virtual. Obrigado pelo contato. "
                   "Que tipo de imóvel você procura?",
        'pre_call': "Olá, sua sessão está agendada. Você tem alguma dúvida específica "
                    "para preparar a reunião?",
        'reminder': "Lembrete: Sua sessão é hoje às {time}.",
        'post_call': "O que achou da sessão? Me avise se quiser revisar os próximos passos.",
        'reactivation': "Olá, você ainda tem interesse em comprar um imóvel na sua área de interesse?",
    },
}


def default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class AutomationService:
    """Schedules, claims and executes automated lead follow-ups"""

    def __init__(self, job_repository, settings_repository, lead_repository,
                 message_repository, gemini_service, whatsapp_service,
                 lease_seconds: int = DEFAULT_LEASE_SECONDS, batch_size: int = 50,
                 max_attempts: int = DEFAULT_MAX_ATTEMPTS):
        self.job_repository = job_repository
        self.settings_repository = settings_repository
        self.lead_repository = lead_repository
        self.message_repository = message_repository
        self.gemini_service = gemini_service
        self.whatsapp_service = whatsapp_service
        self.lease_seconds = lease_seconds
        self.batch_size = batch_size
        self.max_attempts = max_attempts

    # --- Settings ---

    def get_settings(self, tenant_id: Optional[int]) -> Dict[str, Any]:
        try:
            row = self.settings_repository.get_for_tenant(tenant_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load automation settings, using defaults",
                         tenant_id=tenant_id, error=str(e))
            row = None

        if row is None:
            return dict(DEFAULT_AUTOMATION_SETTINGS)

        settings = {}
        for key, default in DEFAULT_AUTOMATION_SETTINGS.items():
            value = getattr(row, key)
            settings[key] = default if value is None else value
        return settings

    def update_settings(self, tenant_id: Optional[int], updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge a partial update into the tenant's settings.

        Raises:
            ValueError: If a delay or day count is not a non-negative integer
        """
        merged = self.get_settings(tenant_id)
        for key, value in updates.items():
            if key not in DEFAULT_AUTOMATION_SETTINGS:
                continue
            if key.endswith('_enabled'):
                merged[key] = parse_bool(value)
            else:
                number = int(value)
                if number < 0:
                    raise ValueError(f"{key} must not be negative")
                merged[key] = number

        self.settings_repository.upsert_for_tenant(tenant_id, {**merged, 'updated_at': utc_now()})
        self.settings_repository.commit()
        logger.info("Automation settings updated", tenant_id=tenant_id)
        return self.get_settings(tenant_id)

    # --- Triggers ---

    def schedule_job(self, lead: Lead, job_type: str, scheduled_for: datetime,
                     payload: Optional[Dict[str, Any]] = None) -> AutomationJob:
        if job_type not in JOB_TYPES:
            raise ValueError(f"Unknown automation type: {job_type}")

        job_payload = {'name': lead.name}
        job_payload.update(payload or {})
        job = self.job_repository.schedule(
            lead_id=lead.id,
            job_type=job_type,
            scheduled_for=ensure_utc(scheduled_for),
            broker_id=lead.broker_id,
            payload=job_payload,
            language=lead.language or 'en',
        )
        logger.info("Automation scheduled", job_id=job.id, lead_id=lead.id,
                    type=job_type, scheduled_for=format_utc_iso(job.scheduled_for))
        return job

    def trigger_welcome_flow(self, lead: Lead, now: Optional[datetime] = None) -> Optional[AutomationJob]:
        settings = self.get_settings(lead.broker_id)
        if not settings['welcome_enabled']:
            return None

        job = self.schedule_job(lead, 'welcome',
                                utc_in(minutes=settings['welcome_delay_minutes'], now=now))
        self.job_repository.commit()
        return job

    def trigger_calendar_flow(self, lead: Lead, event_status: str, event_time: Any = None,
                              now: Optional[datetime] = None) -> list:
        """
        Schedule meeting follow-ups.

        Args:
            event_status: "created" or "completed"
            event_time: Meeting start as datetime or ISO string
        """
        now = ensure_utc(now) or utc_now()
        settings = self.get_settings(lead.broker_id)
        if isinstance(event_time, str):
            event_time = parse_utc_iso(event_time)
        event_time = ensure_utc(event_time)
        jobs = []

        if event_status == 'created':
            if settings['pre_call_enabled']:
                jobs.append(self.schedule_job(lead, 'pre_call', now))

            if settings['reminder_enabled'] and event_time is not None:
                remind_at = event_time - timedelta(minutes=settings['reminder_before_minutes'])
                if remind_at > now:
                    jobs.append(self.schedule_job(
                        lead, 'reminder', remind_at,
                        payload={'meeting_time': format_utc_iso(event_time)}
                    ))

        elif event_status == 'completed':
            if settings['post_call_enabled']:
                jobs.append(self.schedule_job(lead, 'post_call',
                                              now + timedelta(minutes=POST_CALL_DELAY_MINUTES)))
        else:
            logger.warning("Ignoring calendar event", lead_id=lead.id, event_status=event_status)

        self.job_repository.commit()
        return jobs

    def trigger_reactivation_flow(self, lead: Lead, now: Optional[datetime] = None) -> Optional[AutomationJob]:
        settings = self.get_settings(lead.broker_id)
        if not settings['reactivation_enabled']:
            return None

        replaced = self.job_repository.cancel_pending(lead.id, 'reactivation')
        job = self.schedule_job(lead, 'reactivation',
                                utc_in(days=settings['reactivation_days'], now=now))
        self.job_repository.commit()
        if replaced:
            logger.debug("Reactivation pushed back", lead_id=lead.id, replaced=replaced)
        return job

    # --- Sweep ---

    def run_scheduler(self, now: Optional[datetime] = None, worker_id: Optional[str] = None,
                      limit: Optional[int] = None) -> Dict[str, int]:
        """
        Claim every due job and execute it.

        Returns:
            Counts of claimed, executed and failed jobs
        """
        now = ensure_utc(now) or utc_now()
        worker_id = worker_id or default_worker_id()
        started = time.monotonic()

        jobs = self.job_repository.claim_due(now, worker_id, lease_seconds=self.lease_seconds,
                                             limit=limit or self.batch_size,
                                             max_attempts=self.max_attempts)
        stats = {'claimed': len(jobs), 'executed': 0, 'failed': 0}

        for job in jobs:
            try:
                self.execute_job(job)
                self.job_repository.mark_executed(job, utc_now())
                stats['executed'] += 1
            except (WhatsAppError, SQLAlchemyError, ValueError) as e:
                self.job_repository.rollback()
                logger.error("Automation job failed", job_id=job.id, type=job.type, error=str(e))
                self.job_repository.mark_failed(job, str(e), utc_now())
                stats['failed'] += 1
            self.job_repository.commit()

        if jobs:
            logger.info("Automation sweep finished", worker_id=worker_id, **stats)
            performance_logger.log_automation_sweep(worker_id, (time.monotonic() - started) * 1000, len(jobs))
        return stats

    def execute_job(self, job: AutomationJob) -> str:
        """
        Write the message for one job, record it and send it over WhatsApp.

        Raises:
            ValueError: If the job's lead no longer exists
            WhatsAppSendError: If the provider rejects the message
        """
        lead = self.lead_repository.get_by_id(job.lead_id)
        if lead is None:
            raise ValueError(f"Lead {job.lead_id} not found")

        text = self.compose_message(job, lead)
        self.message_repository.create(
            lead_id=lead.id,
            role='assistant',
            sender='automation',
            direction='outbound',
            channel='automation',
            content=text,
        )

        if lead.phone and self.whatsapp_service.is_enabled(lead.broker_id):
            self.whatsapp_service.send_message(lead.phone, text, tenant_id=lead.broker_id)

        logger.info("Automation job executed", job_id=job.id, lead_id=lead.id, type=job.type)
        return text

    def compose_message(self, job: AutomationJob, lead: Optional[Lead] = None) -> str:
        """AI-written text for the job, or the fixed template when the model fails."""
        payload = job.payload or {}
        language = job.language if job.language in TEMPLATES else 'en'
        meeting_time = self._meeting_time_label(payload.get('meeting_time'), lead)
        prompt = self._prompt(job.type, payload.get('name'), language, meeting_time)

        try:
            result = self.gemini_service.run_gemini(prompt, FAST_MODEL, tenant_id=job.broker_id)
        except GeminiRequestError as e:
            logger.warning("Automation AI request failed, using template", job_id=job.id, error=str(e))
            result = None

        if result is not None and result.is_success and result.data.strip():
            return result.data.strip()

        template = TEMPLATES[language][job.type]
        return template.format(name=payload.get('name') or 'Customer', time=meeting_time)

    @staticmethod
    def _meeting_time_label(meeting_time: Optional[str], lead: Optional[Lead]) -> str:
        if not meeting_time:
            return ''
        broker = getattr(lead, 'broker', None)
        try:
            return format_local_time(parse_utc_iso(meeting_time), getattr(broker, 'timezone', None))
        except ValueError:
            return meeting_time

    @staticmethod
    def _prompt(job_type: str, name: Optional[str], language: str, meeting_time: str) -> str:
        if job_type == 'welcome':
            return (f"Write a warm, concise welcome message for a real estate lead named "
                    f"{name or 'there'}. Language: {language}. Ask what they are looking for. Max 200 chars.")
        if job_type == 'pre_call':
            return (f"Write a message confirming a meeting. Language: {language}. "
                    f"Ask if they have specific questions. Max 200 chars.")
        if job_type == 'reminder':
            return (f"Write a friendly reminder for a meeting at {meeting_time}. "
                    f"Language: {language}. Max 160 chars.")
        if job_type == 'post_call':
            return (f"Write a follow-up message after a meeting. Language: {language}. "
                    f"Ask how it went and if they want next steps. Max 200 chars.")
        return (f"Write a re-engagement message for a cold lead. Language: {language}. "
                f"Ask if they are still interested in buying a home. Max 200 chars.")


def serialize_job(job: AutomationJob) -> Dict[str, Any]:
    return {
        'id': job.id,
        'broker_id': job.broker_id,
        'lead_id': job.lead_id,
        'type': job.type,
        'status': job.status,
        'scheduled_for': format_utc_iso(job.scheduled_for),
        'payload': job.payload or {},
        'language': job.language,
        'attempts': job.attempts,
        'claimed_by': job.claimed_by,
        'executed_at': format_utc_iso(job.executed_at),
        'last_error': job.last_error,
    }
