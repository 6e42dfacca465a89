"""
WhatsApp routes - settings, test sends and the Cloud API webhook
"""
from functools import wraps
from flask import Blueprint, request, jsonify, current_app, abort

from logging_config import get_logger, security_logger
from services.whatsapp_service import WhatsAppService, WhatsAppDisabledError, WhatsAppSendError
from utils.masking import mask_fields, drop_masked

logger = get_logger(__name__)

whatsapp_bp = Blueprint('whatsapp', __name__)

SECRET_FIELDS = ('api_token', 'app_secret')


def verify_whatsapp_signature(f):
    """Decorator to verify the X-Hub-Signature-256 header against the tenant's app secret."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        tenant_id = kwargs.get('tenant_id')
        settings = current_app.services.get('whatsapp').get_settings(tenant_id)

        if not WhatsAppService.verify_signature(request.get_data(),
                                                request.headers.get('X-Hub-Signature-256'),
                                                settings.get('app_secret')):
            security_logger.log_signature_failure('whatsapp', tenant_id, request.remote_addr)
            abort(403)

        return f(*args, **kwargs)
    return decorated_function


@whatsapp_bp.route('/settings', methods=['GET'])
def get_settings():
    tenant_id = request.args.get('tenant_id', type=int)
    settings = current_app.services.get('whatsapp').get_settings(tenant_id)
    return jsonify(mask_fields(settings, SECRET_FIELDS))


@whatsapp_bp.route('/settings', methods=['POST'])
def save_settings():
    data = request.get_json(silent=True) or {}
    tenant_id = request.args.get('tenant_id', type=int)
    if tenant_id is None:
        tenant_id = data.pop('tenant_id', None)

    try:
        settings = current_app.services.get('whatsapp').save_settings(
            drop_masked(data, SECRET_FIELDS), tenant_id)
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'success': True, 'settings': mask_fields(settings, SECRET_FIELDS)})


@whatsapp_bp.route('/test', methods=['POST'])
def send_test_message():
    data = request.get_json(silent=True) or {}
    to = data.get('to')
    text = data.get('text') or data.get('message')
    if not to or not text:
        return jsonify({'error': 'to and text are required'}), 400

    try:
        result = current_app.services.get('whatsapp').send_message(to, text, tenant_id=data.get('tenant_id'))
    except WhatsAppDisabledError as e:
        return jsonify({'error': str(e)}), 400
    except WhatsAppSendError as e:
        return jsonify({'error': str(e), 'status_code': e.status_code}), 502

    return jsonify({'success': True, 'result': result})


@whatsapp_bp.route('/webhooks/inbound/<int:tenant_id>', methods=['GET'])
def verify_webhook(tenant_id):
    """Meta hub-challenge handshake"""
    settings = current_app.services.get('whatsapp').get_settings(tenant_id)
    challenge = WhatsAppService.verify_webhook(
        request.args.get('hub.mode'),
        request.args.get('hub.verify_token'),
        request.args.get('hub.challenge'),
        settings,
    )
    security_logger.log_webhook_verification('whatsapp', tenant_id, challenge is not None)

    if challenge is None:
        return '', 403
    return challenge, 200, {'Content-Type': 'text/plain'}


@whatsapp_bp.route('/webhooks/inbound/<int:tenant_id>', methods=['POST'])
@verify_whatsapp_signature
def inbound_webhook(tenant_id):
    payload = request.get_json(silent=True) or {}
    if not payload.get('object'):
        return '', 404

    results = current_app.services.get('conversation').handle_whatsapp_webhook(payload, tenant_id)
    logger.info("WhatsApp webhook processed", tenant_id=tenant_id, messages=len(results))
    return 'EVENT_RECEIVED', 200
