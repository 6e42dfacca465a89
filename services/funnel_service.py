"""
FunnelService - per-broker landing page settings and application intake
"""

from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger
from services.common.result import Result
from utils.datetime_utils import format_utc_iso
from utils.coercion import parse_bool

logger = get_logger(__name__)

FUNNEL_SOURCE = 'funnel_landing'
FUNNEL_TAG = 'funnel_form'

DEFAULT_FUNNEL_SETTINGS = {
    'hero_title': 'Compra inteligente de casa en Florida',
    'hero_subtitle': 'Asesoría experta para compradores internacionales y locales.',
    'target_area': 'Florida',
    'primary_language': 'es',
    'realtor_headline': 'Tu aliado inmobiliario',
    'realtor_bio_short': 'Experto en bienes raíces.',
    'profile_photo_url': None,
    'brand_color': '#000000',
    'calendly_url': '',
    'show_testimonials': False,
}

EDITABLE_FIELDS = ('funnel_slug',) + tuple(DEFAULT_FUNNEL_SETTINGS.keys())


def default_slug(tenant_id: Any) -> str:
    return f"realtor-{str(tenant_id)[:5]}"


def application_summary(form: Dict[str, Any]) -> str:
    return (
        "Formulario Web\n"
        f"Ciudad: {form.get('city')}\n"
        f"Presupuesto: {form.get('budget')}\n"
        f"Tiempo: {form.get('timeline')}\n"
        f"Pre-aprobado: {form.get('preapproved')}\n"
        f"Duda: {form.get('concern')}"
    )


class FunnelService:

    def __init__(self, settings_repository, lead_service, ai_service, automation_service):
        self.settings_repository = settings_repository
        self.lead_service = lead_service
        self.ai_service = ai_service
        self.automation_service = automation_service

    def _to_dict(self, row) -> Dict[str, Any]:
        data = {'tenant_id': row.broker_id, 'funnel_slug': row.funnel_slug}
        for key, default in DEFAULT_FUNNEL_SETTINGS.items():
            value = getattr(row, key)
            data[key] = default if value is None else value
        data['created_at'] = format_utc_iso(row.created_at)
        return data

    def get_settings(self, tenant_id: int) -> Dict[str, Any]:
        row = self.settings_repository.get_for_tenant(tenant_id)
        if row is None:
            return {'tenant_id': tenant_id, 'funnel_slug': default_slug(tenant_id),
                    **DEFAULT_FUNNEL_SETTINGS}
        return self._to_dict(row)

    def update_settings(self, tenant_id: int, updates: Dict[str, Any]) -> Result[Dict[str, Any]]:
        merged = self.get_settings(tenant_id)
        merged.update({k: v for k, v in updates.items() if k in EDITABLE_FIELDS})
        slug = (merged.get('funnel_slug') or default_slug(tenant_id)).strip().lower()

        owner = self.settings_repository.find_by_slug(slug)
        if owner is not None and owner.broker_id != tenant_id:
            return Result.failure(f"Funnel slug '{slug}' is already taken", code='SLUG_TAKEN')

        values = {key: merged[key] for key in DEFAULT_FUNNEL_SETTINGS}
        values['funnel_slug'] = slug
        try:
            values['show_testimonials'] = parse_bool(values['show_testimonials'])
        except ValueError as e:
            return Result.failure(str(e), code='VALIDATION_ERROR')
        try:
            self.settings_repository.upsert_for_tenant(tenant_id, values)
            self.settings_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to save funnel settings", tenant_id=tenant_id, error=str(e))
            return Result.failure("Failed to save funnel settings", code='DATABASE_ERROR')

        logger.info("Funnel settings saved", tenant_id=tenant_id, funnel_slug=slug)
        return Result.success(self.get_settings(tenant_id))

    def get_public_funnel(self, slug: str) -> Optional[Dict[str, Any]]:
        row = self.settings_repository.find_by_slug(slug)
        return self._to_dict(row) if row else None

    def submit_application(self, slug: str, form: Dict[str, Any]) -> Result[Dict[str, Any]]:
        """
        Turn a landing page application into a qualified lead.

        Returns:
            Result with the lead id and the thank-you redirect, or NOT_FOUND
            for an unknown slug
        """
        row = self.settings_repository.find_by_slug(slug)
        if row is None:
            return Result.failure('Realtor not found', code='NOT_FOUND')

        lead, created = self.lead_service.find_or_create(
            row.broker_id,
            FUNNEL_SOURCE,
            name=form.get('name'),
            phone=form.get('phone'),
            email=form.get('email'),
            status='New',
            tags=[FUNNEL_TAG],
            language=row.primary_language or 'es',
            budget=form.get('budget'),
            timeline=form.get('timeline'),
            desired_city=form.get('city'),
        )
        if not created and FUNNEL_TAG not in (lead.tags or []):
            lead.tags = list(lead.tags or []) + [FUNNEL_TAG]

        summary = application_summary(form)
        self.lead_service.record_message(lead, summary, channel=FUNNEL_SOURCE)

        analysis = self.ai_service.qualify_lead(summary, tenant_id=row.broker_id)
        self.lead_service.apply_qualification(lead, analysis)
        self.lead_service.lead_repository.commit()

        self.automation_service.trigger_welcome_flow(lead)

        logger.info("Funnel application received", funnel_slug=slug, lead_id=lead.id, created=created)
        return Result.success({'lead_id': lead.id, 'redirect': f"/f/{slug}/thank-you"})
