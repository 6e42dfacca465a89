"""
WhatsAppService - per-tenant WhatsApp Business settings and messaging

Outbound text goes either to the Meta Cloud API or to 360dialog depending on
the tenant's provider. Inbound webhooks are authenticated with the Meta
hub-challenge handshake and the X-Hub-Signature-256 payload signature.
"""

import hmac
import hashlib
import time
from typing import Any, Dict, List, Optional
import requests
from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger, performance_logger
from utils.datetime_utils import utc_now, format_utc_iso
from utils.coercion import parse_bool

logger = get_logger(__name__)

CLOUD_API_URL = 'https://graph.facebook.com/v20.0/{phone_number_id}/messages'
DIALOG_360_URL = 'https://waba.360dialog.io/v1/messages'

DEFAULT_WHATSAPP_SETTINGS = {
    'provider': 'cloud-api',
    'api_token': '',
    'phone_number_id': '',
    'business_account_id': '',
    'verify_token': 'flowrealtors_verify_token',
    'app_secret': '',
    'enabled': False,
}

EDITABLE_FIELDS = tuple(DEFAULT_WHATSAPP_SETTINGS.keys())
PROVIDERS = ('cloud-api', '360dialog')


class WhatsAppError(Exception):
    """Base class for WhatsApp dispatch errors"""
    pass


class WhatsAppDisabledError(WhatsAppError):
    pass


class WhatsAppSendError(WhatsAppError):

    def __init__(self, message: str, status_code: Optional[int] = None, response: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.response = response


class WhatsAppService:
    """Settings persistence, outbound dispatch and webhook verification"""

    def __init__(self, settings_repository, timeout: float = 15):
        self.settings_repository = settings_repository
        self.timeout = timeout

    # --- Settings ---

    def get_settings(self, tenant_id: Optional[int] = None) -> Dict[str, Any]:
        try:
            row = self.settings_repository.get_for_tenant(tenant_id)
        except SQLAlchemyError as e:
            logger.error("Failed to load WhatsApp settings, using defaults",
                         tenant_id=tenant_id, error=str(e))
            row = None

        if row is None:
            return {**DEFAULT_WHATSAPP_SETTINGS, 'tenant_id': tenant_id, 'updated_at': None}

        settings = {field: getattr(row, field) for field in EDITABLE_FIELDS}
        for field, default in DEFAULT_WHATSAPP_SETTINGS.items():
            if settings[field] is None:
                settings[field] = default
        settings['tenant_id'] = tenant_id
        settings['updated_at'] = format_utc_iso(row.updated_at)
        return settings

    def save_settings(self, updates: Dict[str, Any], tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Merge and persist WhatsApp settings.

        Raises:
            ValueError: If the provider is not supported
        """
        current = self.get_settings(tenant_id)
        merged = {field: current[field] for field in EDITABLE_FIELDS}
        merged.update({k: v for k, v in updates.items() if k in EDITABLE_FIELDS})

        if merged['provider'] not in PROVIDERS:
            raise ValueError(f"Unsupported WhatsApp provider: {merged['provider']}")
        merged['enabled'] = parse_bool(merged['enabled'])

        self.settings_repository.upsert_for_tenant(tenant_id, {**merged, 'updated_at': utc_now()})
        self.settings_repository.commit()
        logger.info("WhatsApp settings saved", tenant_id=tenant_id,
                    provider=merged['provider'], enabled=merged['enabled'])
        return self.get_settings(tenant_id)

    def is_enabled(self, tenant_id: Optional[int] = None) -> bool:
        return bool(self.get_settings(tenant_id).get('enabled'))

    # --- Outbound ---

    def send_message(self, to: str, text: str, tenant_id: Optional[int] = None) -> Dict[str, Any]:
        """
        Send a text message through the tenant's provider.

        Raises:
            WhatsAppDisabledError: If WhatsApp is not enabled for the tenant
            WhatsAppSendError: If the provider rejects the message or is unreachable
        """
        settings = self.get_settings(tenant_id)
        if not settings.get('enabled'):
            raise WhatsAppDisabledError('WhatsApp is disabled')

        recipient = (to or '').lstrip('+')
        if settings['provider'] == 'cloud-api':
            return self._send_cloud_api(settings, recipient, text)
        return self._send_360dialog(settings, recipient, text)

    def _send_cloud_api(self, settings: Dict[str, Any], to: str, text: str) -> Dict[str, Any]:
        url = CLOUD_API_URL.format(phone_number_id=settings['phone_number_id'])
        headers = {
            'Authorization': f"Bearer {settings['api_token']}",
            'Content-Type': 'application/json',
        }
        body = {
            'messaging_product': 'whatsapp',
            'to': to,
            'type': 'text',
            'text': {'body': text},
        }
        return self._post('cloud-api', url, headers, body,
                          lambda data: (data.get('error') or {}).get('message'),
                          'Failed to send message via Cloud API')

    def _send_360dialog(self, settings: Dict[str, Any], to: str, text: str) -> Dict[str, Any]:
        headers = {
            'D360-API-KEY': settings['api_token'],
            'Content-Type': 'application/json',
        }
        body = {
            'to': to,
            'type': 'text',
            'text': {'body': text},
        }
        return self._post('360dialog', DIALOG_360_URL, headers, body,
                          lambda data: (data.get('meta') or {}).get('developer_message'),
                          'Failed to send message via 360dialog')

    def _post(self, provider: str, url: str, headers: Dict[str, str], body: Dict[str, Any],
              error_message_from, default_error: str) -> Dict[str, Any]:
        started = time.monotonic()
        try:
            response = requests.post(url, headers=headers, json=body, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            logger.error("WhatsApp request failed", provider=provider, error=str(e))
            raise WhatsAppSendError(str(e)) from e

        performance_logger.log_api_call(f'whatsapp-{provider}', url, (time.monotonic() - started) * 1000,
                                        response.status_code)

        try:
            data = response.json()
        except ValueError:
            data = {}
        if not isinstance(data, dict):
            data = {}

        if not response.ok:
            message = error_message_from(data) or default_error
            logger.error("WhatsApp provider rejected message", provider=provider,
                         status_code=response.status_code, error=message)
            raise WhatsAppSendError(message, status_code=response.status_code, response=data)

        logger.info("WhatsApp message sent", provider=provider, to=body['to'])
        return data

    # --- Inbound ---

    @staticmethod
    def verify_webhook(mode: Optional[str], token: Optional[str], challenge: Optional[str],
                       settings: Any) -> Optional[str]:
        """Meta hub handshake: echo the challenge only for a matching subscribe request."""
        if isinstance(settings, dict):
            verify_token = settings.get('verify_token')
        else:
            verify_token = getattr(settings, 'verify_token', None)

        if mode == 'subscribe' and token is not None and token == verify_token:
            return challenge
        return None

    @staticmethod
    def verify_signature(raw_body: bytes, signature_header: Optional[str],
                         app_secret: Optional[str]) -> bool:
        """
        Check an X-Hub-Signature-256 header ("sha256=<hex>") against the body.

        Without an app secret there is nothing to check against, so the
        payload is accepted.
        """
        if not app_secret:
            return True
        if not signature_header or not signature_header.startswith('sha256='):
            return False

        expected = hmac.new(app_secret.encode('utf-8'), raw_body, hashlib.sha256).hexdigest()
        received = signature_header.split('=', 1)[1]
        return hmac.compare_digest(expected, received)

    @staticmethod
    def extract_inbound_messages(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
        """Flatten a Cloud API webhook into {from, name, text, id} items."""
        messages = []
        for entry in payload.get('entry') or []:
            for change in entry.get('changes') or []:
                value = change.get('value') or {}
                names = {
                    contact.get('wa_id'): (contact.get('profile') or {}).get('name')
                    for contact in value.get('contacts') or []
                }
                for message in value.get('messages') or []:
                    sender = message.get('from')
                    if message.get('type') == 'text':
                        text = (message.get('text') or {}).get('body') or ''
                    else:
                        text = 'Image Attachment'
                    messages.append({
                        'from': sender,
                        'name': names.get(sender) or 'Unknown WhatsApp User',
                        'text': text,
                        'id': message.get('id'),
                    })
        return messages
