"""
AI routes - qualification, translation, settings and the audit log
"""
from flask import Blueprint, request, jsonify, current_app

from logging_config import get_logger
from services.gemini_service import GeminiRequestError
from utils.masking import mask_fields, drop_masked

logger = get_logger(__name__)

ai_bp = Blueprint('ai', __name__)

SECRET_FIELDS = ('api_key',)


@ai_bp.route('/qualify', methods=['POST'])
def qualify():
    """Run lead qualification on a single message"""
    data = request.get_json(silent=True) or {}
    message = data.get('message')
    if not message:
        return jsonify({'error': 'message is required'}), 400

    ai_service = current_app.services.get('ai')
    analysis = ai_service.qualify_lead(message, data.get('history') or '',
                                       tenant_id=data.get('tenant_id'))
    return jsonify(analysis.to_dict())


@ai_bp.route('/translate', methods=['POST'])
def translate():
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    target_language = data.get('target_language')
    if not text or not target_language:
        return jsonify({'error': 'text and target_language are required'}), 400

    ai_service = current_app.services.get('ai')
    return jsonify({'translation': ai_service.translate(text, target_language,
                                                        tenant_id=data.get('tenant_id'))})


@ai_bp.route('/settings', methods=['GET'])
def get_settings():
    """Effective AI settings; the API key is masked"""
    tenant_id = request.args.get('tenant_id', type=int)
    settings = current_app.services.get('ai_settings').get_settings(tenant_id)
    return jsonify(mask_fields(settings, SECRET_FIELDS))


@ai_bp.route('/settings', methods=['POST'])
def update_settings():
    data = request.get_json(silent=True) or {}
    tenant_id = request.args.get('tenant_id', type=int)
    if tenant_id is None:
        tenant_id = data.pop('tenant_id', None)

    try:
        settings = current_app.services.get('ai_settings').update_settings(
            drop_masked(data, SECRET_FIELDS), tenant_id)
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400

    return jsonify({'success': True, 'settings': mask_fields(settings, SECRET_FIELDS)})


@ai_bp.route('/test', methods=['POST'])
def test_connection():
    """Send a prompt straight to Gemini with the tenant's settings"""
    data = request.get_json(silent=True) or {}
    prompt = data.get('prompt') or 'Say hello in one short sentence.'

    try:
        result = current_app.services.get('gemini').run_gemini(prompt, tenant_id=data.get('tenant_id'))
    except GeminiRequestError as e:
        return jsonify({'success': False, 'error': str(e)}), 502

    if result.is_failure:
        return jsonify({'success': False, 'error': result.error, 'code': result.error_code}), 400
    return jsonify({'success': True, 'response': result.data, 'model': (result.metadata or {}).get('model')})


@ai_bp.route('/logs', methods=['GET'])
def get_logs():
    limit = min(request.args.get('limit', 100, type=int), 500)
    tenant_id = request.args.get('tenant_id', type=int)
    logs = current_app.services.get('ai_settings').get_logs(limit=limit, tenant_id=tenant_id)
    return jsonify({'logs': logs})
