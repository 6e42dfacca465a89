"""
Integration routes - inbound webhooks from lead sources
"""
from flask import Blueprint, request, jsonify, current_app

from logging_config import get_logger

logger = get_logger(__name__)

integration_bp = Blueprint('integrations', __name__)


@integration_bp.route('/webhooks/<channel>/<int:tenant_id>', methods=['POST'])
def receive_webhook(channel, tenant_id):
    """Normalize a channel payload and run the lead intake pipeline"""
    payload = request.get_json(silent=True) or {}
    result = current_app.services.get('inbound_webhook').process(channel, tenant_id, payload)

    if result.is_failure:
        logger.warning("Inbound webhook rejected", channel=channel, tenant_id=tenant_id,
                       error_code=result.error_code)
        status = 400 if result.error_code == 'UNKNOWN_CHANNEL' else 500
        return jsonify({'success': False, 'error': result.error}), status

    return jsonify({'success': True, 'lead_id': result.data['lead_id']})
