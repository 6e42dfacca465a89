"""
Admin routes - platform dashboard and realtor summaries
"""
from flask import Blueprint, jsonify, current_app

admin_bp = Blueprint('admin', __name__)
realtor_bp = Blueprint('realtors', __name__)

ERROR_STATUS = {'NOT_FOUND': 404}


@admin_bp.route('/dashboard', methods=['GET'])
def dashboard_stats():
    result = current_app.services.get('dashboard').get_dashboard_stats()
    if result.is_failure:
        return jsonify({'error': result.error}), 500
    return jsonify(result.data)


@realtor_bp.route('/<slug>/summary', methods=['GET'])
def realtor_summary(slug):
    result = current_app.services.get('dashboard').get_realtor_summary(slug)
    if result.is_failure:
        return jsonify({'error': result.error}), ERROR_STATUS.get(result.error_code, 500)
    return jsonify(result.data)
