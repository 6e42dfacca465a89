"""
Funnel routes - broker landing page settings and the public application form
"""
from flask import Blueprint, request, jsonify, current_app
from sqlalchemy.exc import SQLAlchemyError

from logging_config import get_logger

logger = get_logger(__name__)

funnel_bp = Blueprint('funnel', __name__)


@funnel_bp.route('/funnel/settings/<int:tenant_id>', methods=['GET'])
def get_settings(tenant_id):
    return jsonify(current_app.services.get('funnel').get_settings(tenant_id))


@funnel_bp.route('/funnel/settings/<int:tenant_id>', methods=['POST'])
def update_settings(tenant_id):
    data = request.get_json(silent=True) or {}
    result = current_app.services.get('funnel').update_settings(tenant_id, data)
    if result.is_failure:
        status = {'SLUG_TAKEN': 409, 'VALIDATION_ERROR': 400}.get(result.error_code, 500)
        return jsonify({'error': result.error}), status
    return jsonify(result.data)


@funnel_bp.route('/public/funnel/<slug>', methods=['GET'])
def get_public_funnel(slug):
    settings = current_app.services.get('funnel').get_public_funnel(slug)
    if settings is None:
        return jsonify({'error': 'Funnel not found'}), 404
    return jsonify(settings)


@funnel_bp.route('/public/funnel/<slug>/apply', methods=['POST'])
def apply(slug):
    """Landing page application form"""
    form = request.get_json(silent=True) or {}
    if not (form.get('phone') or form.get('email')):
        return jsonify({'error': 'phone or email is required'}), 400

    try:
        result = current_app.services.get('funnel').submit_application(slug, form)
    except SQLAlchemyError as e:
        logger.error("Funnel application failed", funnel_slug=slug, error=str(e))
        return jsonify({'error': 'Processing failed'}), 500

    if result.is_failure:
        return jsonify({'error': result.error}), 404
    return jsonify({'success': True, 'redirect': result.data['redirect']})
