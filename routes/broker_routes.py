"""
Broker routes - tenant administration
"""
from flask import Blueprint, request, jsonify, current_app

from services.broker_service import serialize_broker

broker_bp = Blueprint('brokers', __name__)

ERROR_STATUS = {
    'VALIDATION_ERROR': 400,
    'DUPLICATE_EMAIL': 400,
    'NOT_FOUND': 404,
    'HAS_LEADS': 409,
}


@broker_bp.route('', methods=['GET'])
def list_brokers():
    brokers = current_app.services.get('broker').list_brokers()
    return jsonify([serialize_broker(broker) for broker in brokers])


@broker_bp.route('', methods=['POST'])
def create_broker():
    result = current_app.services.get('broker').create_broker(request.get_json(silent=True) or {})
    if result.is_failure:
        return jsonify({'error': result.error}), ERROR_STATUS.get(result.error_code, 500)
    return jsonify(serialize_broker(result.data)), 201


@broker_bp.route('/<int:broker_id>', methods=['PUT'])
def update_broker(broker_id):
    result = current_app.services.get('broker').update_broker(broker_id, request.get_json(silent=True) or {})
    if result.is_failure:
        return jsonify({'error': result.error}), ERROR_STATUS.get(result.error_code, 500)
    return jsonify(serialize_broker(result.data))


@broker_bp.route('/<int:broker_id>', methods=['DELETE'])
def delete_broker(broker_id):
    result = current_app.services.get('broker').delete_broker(broker_id)
    if result.is_failure:
        return jsonify({'error': result.error}), ERROR_STATUS.get(result.error_code, 500)
    return jsonify({'success': True, 'message': 'Broker deleted'})
