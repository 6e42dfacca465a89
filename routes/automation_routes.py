"""
Automation routes - per-tenant settings, manual triggers and the job queue
"""
from flask import Blueprint, request, jsonify, current_app

from logging_config import get_logger
from services.automation_service import JOB_TYPES, serialize_job

logger = get_logger(__name__)

automation_bp = Blueprint('automation', __name__)


@automation_bp.route('/settings/<int:tenant_id>', methods=['GET'])
def get_settings(tenant_id):
    return jsonify(current_app.services.get('automation').get_settings(tenant_id))


@automation_bp.route('/settings/<int:tenant_id>', methods=['POST'])
def update_settings(tenant_id):
    data = request.get_json(silent=True) or {}
    try:
        settings = current_app.services.get('automation').update_settings(tenant_id, data)
    except (TypeError, ValueError) as e:
        return jsonify({'error': str(e)}), 400
    return jsonify(settings)


@automation_bp.route('/trigger', methods=['POST'])
def trigger():
    """
    Start an automation flow for a lead.

    Body: {lead_id, type: welcome|calendar_created|calendar_completed|reactivation, event_time?}
    """
    data = request.get_json(silent=True) or {}
    lead = current_app.services.get('lead').get_lead(data.get('lead_id') or 0)
    if lead is None:
        return jsonify({'error': 'Lead not found'}), 404

    automation = current_app.services.get('automation')
    flow = data.get('type')
    try:
        if flow == 'welcome':
            jobs = [automation.trigger_welcome_flow(lead)]
        elif flow == 'reactivation':
            jobs = [automation.trigger_reactivation_flow(lead)]
        elif flow in ('calendar_created', 'calendar_completed'):
            jobs = automation.trigger_calendar_flow(lead, flow.split('_', 1)[1], data.get('event_time'))
        else:
            return jsonify({'error': f"Unknown automation type: {flow}"}), 400
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    scheduled = [serialize_job(job) for job in jobs if job is not None]
    return jsonify({'success': True, 'scheduled': scheduled}), 201 if scheduled else 200


@automation_bp.route('/run', methods=['POST'])
def run_scheduler():
    """Run one scheduler sweep in this process"""
    stats = current_app.services.get('automation').run_scheduler()
    return jsonify({'success': True, **stats})


@automation_bp.route('/jobs', methods=['GET'])
def list_jobs():
    status = request.args.get('status')
    job_type = request.args.get('type')
    if job_type and job_type not in JOB_TYPES:
        return jsonify({'error': f"Unknown automation type: {job_type}"}), 400

    job_repository = current_app.services.get('automation_job_repository')
    jobs = job_repository.list_jobs(
        status=status,
        lead_id=request.args.get('lead_id', type=int),
        broker_id=request.args.get('tenant_id', type=int),
    )
    if job_type:
        jobs = [job for job in jobs if job.type == job_type]
    return jsonify({'jobs': [serialize_job(job) for job in jobs]})
