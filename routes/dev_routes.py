"""
Development routes - simulate inbound WhatsApp traffic from the dashboard
"""
from flask import Blueprint, request, jsonify, current_app, abort

from services.lead_service import serialize_message

dev_bp = Blueprint('dev', __name__)


@dev_bp.before_request
def require_dev_endpoints():
    if not current_app.config.get('DEV_ENDPOINTS_ENABLED'):
        abort(404)


@dev_bp.route('/leads/<int:lead_id>/mock-message', methods=['POST'])
def mock_message(lead_id):
    data = request.get_json(silent=True) or {}
    text = data.get('text')
    if not text:
        return jsonify({'error': 'text is required'}), 400

    lead = current_app.services.get('lead').get_lead(lead_id)
    if lead is None:
        return jsonify({'error': 'Lead not found'}), 404

    result = current_app.services.get('conversation').add_mock_message(
        lead,
        text,
        direction=data.get('direction', 'inbound'),
        sender=data.get('sender', 'lead'),
        trigger_ai=data.get('trigger_ai', True),
    )

    response = {'success': True, 'message': serialize_message(result['message'])}
    if result['ai_response'] is not None:
        response['ai_response'] = result['ai_response']
    return jsonify(response)
