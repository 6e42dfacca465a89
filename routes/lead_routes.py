"""
Lead routes - dashboard CRUD and conversation history
"""
from flask import Blueprint, request, jsonify, current_app

from services.lead_service import serialize_lead, serialize_message

lead_bp = Blueprint('leads', __name__)

ERROR_STATUS = {
    'VALIDATION_ERROR': 400,
    'DUPLICATE_PHONE': 409,
    'NOT_FOUND': 404,
}


def _error_response(result):
    return jsonify({'error': result.error}), ERROR_STATUS.get(result.error_code, 500)


@lead_bp.route('', methods=['GET'])
def list_leads():
    leads = current_app.services.get('lead').list_leads(
        broker_id=request.args.get('tenant_id', type=int),
        status=request.args.get('status'),
        query=request.args.get('q'),
    )
    return jsonify([serialize_lead(lead) for lead in leads])


@lead_bp.route('', methods=['POST'])
def create_lead():
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('lead').create_lead(data)
    if result.is_failure:
        return _error_response(result)
    return jsonify(serialize_lead(result.data)), 201


@lead_bp.route('/<int:lead_id>', methods=['GET'])
def get_lead(lead_id):
    lead = current_app.services.get('lead').get_lead(lead_id)
    if lead is None:
        return jsonify({'error': 'Lead not found'}), 404
    return jsonify(serialize_lead(lead))


@lead_bp.route('/<int:lead_id>', methods=['PUT'])
def update_lead(lead_id):
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('lead').update_lead(lead_id, data)
    if result.is_failure:
        return _error_response(result)
    return jsonify(serialize_lead(result.data))


@lead_bp.route('/<int:lead_id>', methods=['DELETE'])
def delete_lead(lead_id):
    result = current_app.services.get('lead').delete_lead(lead_id)
    if result.is_failure:
        return _error_response(result)
    return jsonify({'success': True})


@lead_bp.route('/<int:lead_id>/messages', methods=['GET'])
def get_messages(lead_id):
    lead_service = current_app.services.get('lead')
    if lead_service.get_lead(lead_id) is None:
        return jsonify({'error': 'Lead not found'}), 404
    return jsonify([serialize_message(message) for message in lead_service.get_messages(lead_id)])
