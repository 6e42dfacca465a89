"""
AISettingsService - per-tenant AI configuration and the model-call audit log
"""

from typing import Any, Dict, List, Optional
from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger
from utils.datetime_utils import utc_now, format_utc_iso

logger = get_logger(__name__)

DEFAULT_SYSTEM_PROMPT = "You are FlowRealtors AI..."

DEFAULT_AI_SETTINGS = {
    'provider': 'gemini',
    'api_key': '',
    'default_model': 'gemini-flash-latest',
    'strong_model': 'gemini-pro-latest',
    'temperature': 0.2,
    'max_tokens': 600,
    'system_prompt': DEFAULT_SYSTEM_PROMPT,
}

EDITABLE_FIELDS = tuple(DEFAULT_AI_SETTINGS.keys())


class AISettingsService:
    """Reads and writes AISettings rows and appends AILog entries"""

    def __init__(self, settings_repository, log_repository, default_api_key: Optional[str] = None):
        """
        Args:
            settings_repository: AISettingsRepository
            log_repository: AILogRepository
            default_api_key: Platform key used when a tenant has none saved
        """
        self.settings_repository = settings_repository
        self.log_repository = log_repository
        self.default_api_key = default_api_key or ''

    def get_settings(self, tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Effective settings for a tenant.

        Resolution order is the tenant row, then the platform row, then the
        hardcoded defaults. A database failure also yields the defaults so an
        AI call never fails on configuration lookup.
        """
        try:
            row = self.settings_repository.get_for_tenant(tenant_id)
            if row is None and tenant_id is not None:
                row = self.settings_repository.get_for_tenant(None)
        except SQLAlchemyError as e:
            logger.error("Failed to load AI settings, using defaults",
                         tenant_id=tenant_id, error=str(e))
            row = None

        settings = self._defaults(tenant_id) if row is None else self._row_to_dict(row, tenant_id)
        if not settings.get('api_key'):
            settings['api_key'] = self.default_api_key
        return settings

    def update_settings(self, updates: Dict[str, Any], tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """Merge a partial update into the tenant's row and persist it."""
        current = self._current_stored(tenant_id)
        merged = {**current, **{k: v for k, v in updates.items() if k in EDITABLE_FIELDS}}

        if merged.get('temperature') is not None:
            merged['temperature'] = float(merged['temperature'])
        if merged.get('max_tokens') is not None:
            merged['max_tokens'] = int(merged['max_tokens'])

        self.settings_repository.upsert_for_tenant(tenant_id, {**merged, 'updated_at': utc_now()})
        self.settings_repository.commit()
        logger.info("AI settings updated", tenant_id=tenant_id,
                    fields=sorted(k for k in updates if k in EDITABLE_FIELDS))
        return self.get_settings(tenant_id)

    def log_interaction(self, model: str, prompt_preview: str, response_preview: str,
                        success: bool = True, tenant_id: Optional[int] = None) -> None:
        """Append an audit record. Audit failures are logged, never raised."""
        try:
            self.log_repository.create(
                broker_id=tenant_id,
                model=model,
                prompt_preview=prompt_preview,
                response_preview=response_preview,
                success=success,
            )
            self.log_repository.commit()
        except SQLAlchemyError as e:
            logger.error("Failed to write AI log", model=model, error=str(e))

    def get_logs(self, limit: int = 100, tenant_id: Optional[int] = None) -> List[Dict[str, Any]]:
        """Newest-first audit records."""
        try:
            rows = self.log_repository.get_recent(limit=limit, broker_id=tenant_id)
        except SQLAlchemyError as e:
            logger.error("Failed to read AI logs", error=str(e))
            return []
        return [
            {
                'id': row.id,
                'tenant_id': row.broker_id,
                'model': row.model,
                'prompt_preview': row.prompt_preview,
                'response_preview': row.response_preview,
                'success': row.success,
                'created_at': format_utc_iso(row.created_at),
            }
            for row in rows
        ]

    def _current_stored(self, tenant_id: Optional[int]) -> Dict[str, Any]:
        """Values a partial update is merged into; a new tenant row starts from the platform row."""
        row = self.settings_repository.get_for_tenant(tenant_id)
        if row is None and tenant_id is not None:
            row = self.settings_repository.get_for_tenant(None)
        if row is None:
            return dict(DEFAULT_AI_SETTINGS)
        return {field: getattr(row, field) for field in EDITABLE_FIELDS}

    @staticmethod
    def _defaults(tenant_id: Optional[int]) -> Dict[str, Any]:
        return {**DEFAULT_AI_SETTINGS, 'tenant_id': tenant_id, 'updated_at': None}

    @staticmethod
    def _row_to_dict(row, tenant_id: Optional[int]) -> Dict[str, Any]:
        settings = {field: getattr(row, field) for field in EDITABLE_FIELDS}
        for field, default in DEFAULT_AI_SETTINGS.items():
            if settings[field] is None and field != 'system_prompt':
                settings[field] = default
        settings['api_key'] = settings['api_key'] or ''
        settings['tenant_id'] = tenant_id
        settings['updated_at'] = format_utc_iso(row.updated_at)
        return settings
