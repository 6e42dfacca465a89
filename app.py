# app.py

from flask import Flask, g, request, jsonify
from config import get_config
from extensions import db, migrate
import os
import uuid
from werkzeug.middleware.proxy_fix import ProxyFix
from logging_config import setup_logging, get_logger

# Configure logging as early as possible
setup_logging(app_name="flowrealtors-api", log_level="INFO")
logger = get_logger(__name__)


# Configure Sentry for production error tracking
def init_sentry():
    """Initialize Sentry error tracking in production."""
    sentry_dsn = os.environ.get('SENTRY_DSN')
    if sentry_dsn and os.environ.get('FLASK_ENV') == 'production':
        import sentry_sdk
        from sentry_sdk.integrations.flask import FlaskIntegration
        from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration
        from sentry_sdk.integrations.celery import CeleryIntegration

        sentry_sdk.init(
            dsn=sentry_dsn,
            integrations=[
                FlaskIntegration(transaction_style='endpoint'),
                SqlalchemyIntegration(),
                CeleryIntegration()
            ],
            traces_sample_rate=0.1,
            environment=os.environ.get('FLASK_ENV', 'development'),
            release=os.environ.get('GIT_SHA', 'unknown')
        )
        logger.info("Sentry error tracking initialized")


init_sentry()


def create_app(config_name=None, test_config=None):
    """Create and configure an instance of the Flask application."""
    app = Flask(__name__)

    config_class = get_config(config_name)
    app.config.from_object(config_class)
    config_class.init_app(app)

    if test_config:
        app.config.update(test_config)

    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    db.init_app(app)
    migrate.init_app(app, db)

    app.services = _build_registry(app)

    # Add request tracking middleware
    @app.before_request
    def before_request():
        g.request_id = request.headers.get('X-Request-ID') or str(uuid.uuid4())
        logger.info("Request started",
                    request_id=g.request_id,
                    method=request.method,
                    path=request.path)

    @app.after_request
    def after_request(response):
        response.headers['X-Request-ID'] = getattr(g, 'request_id', '')
        logger.info("Request completed",
                    request_id=getattr(g, 'request_id', None),
                    status_code=response.status_code)
        return response

    @app.teardown_appcontext
    def shutdown_session(exception=None):
        if exception is not None:
            db.session.rollback()

    # Global error handlers
    @app.errorhandler(500)
    def internal_error(error):
        logger.error("Internal server error",
                     request_id=getattr(g, 'request_id', None),
                     error=str(error))
        return jsonify({'error': 'Internal server error'}), 500

    @app.errorhandler(404)
    def not_found_error(error):
        logger.warning("Resource not found",
                       request_id=getattr(g, 'request_id', None),
                       path=request.path)
        return jsonify({'error': 'Not found'}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({'error': 'Method not allowed'}), 405

    @app.route('/health')
    def health_check():
        """Health check endpoint for monitoring"""
        from sqlalchemy import text
        from sqlalchemy.exc import SQLAlchemyError
        health_status = {
            'status': 'healthy',
            'service': 'flowrealtors-api'
        }

        try:
            db.session.execute(text('SELECT 1'))
            health_status['database'] = 'connected'
        except SQLAlchemyError as e:
            health_status['database'] = 'error'
            health_status['status'] = 'degraded'
            logger.error("Health check database error", error=str(e))

        return jsonify(health_status), 200 if health_status['status'] == 'healthy' else 503

    # Register blueprints for routes
    from routes.ai_routes import ai_bp
    from routes.automation_routes import automation_bp
    from routes.whatsapp_routes import whatsapp_bp
    from routes.integration_routes import integration_bp
    from routes.funnel_routes import funnel_bp
    from routes.lead_routes import lead_bp
    from routes.broker_routes import broker_bp
    from routes.dev_routes import dev_bp
    from routes.admin_routes import admin_bp, realtor_bp

    app.register_blueprint(ai_bp, url_prefix='/api/ai')
    app.register_blueprint(automation_bp, url_prefix='/api/automation')
    app.register_blueprint(whatsapp_bp, url_prefix='/api/whatsapp')
    app.register_blueprint(integration_bp, url_prefix='/api/integrations')
    app.register_blueprint(funnel_bp, url_prefix='/api')
    app.register_blueprint(lead_bp, url_prefix='/api/leads')
    app.register_blueprint(broker_bp, url_prefix='/api/brokers')
    app.register_blueprint(dev_bp, url_prefix='/api/dev')
    app.register_blueprint(admin_bp, url_prefix='/api/admin')
    app.register_blueprint(realtor_bp, url_prefix='/api/realtors')

    # Register CLI commands
    from scripts import commands
    commands.init_app(app)

    return app


def _build_registry(app):
    """Register repositories and services; nothing is built until first use."""
    from services.service_registry_enhanced import create_enhanced_registry, ServiceLifecycle
    registry = create_enhanced_registry()
    config = app.config

    # db.session is the request-scoped session proxy
    registry.register_factory(
        'db_session',
        lambda: db.session,
        lifecycle=ServiceLifecycle.SCOPED
    )

    # Repositories
    for name, factory in (
        ('broker_repository', _create_broker_repository),
        ('lead_repository', _create_lead_repository),
        ('lead_message_repository', _create_lead_message_repository),
        ('automation_job_repository', _create_automation_job_repository),
        ('webhook_event_repository', _create_webhook_event_repository),
        ('ai_settings_repository', _create_ai_settings_repository),
        ('ai_log_repository', _create_ai_log_repository),
        ('whatsapp_settings_repository', _create_whatsapp_settings_repository),
        ('automation_settings_repository', _create_automation_settings_repository),
        ('funnel_settings_repository', _create_funnel_settings_repository),
    ):
        registry.register_factory(name, factory, dependencies=['db_session'])

    # Services
    registry.register_factory(
        'ai_settings',
        lambda ai_settings_repository, ai_log_repository: _create_ai_settings_service(
            ai_settings_repository, ai_log_repository, config.get('GEMINI_API_KEY')),
        dependencies=['ai_settings_repository', 'ai_log_repository']
    )

    registry.register_factory(
        'gemini',
        lambda ai_settings: _create_gemini_service(
            ai_settings, config.get('GEMINI_API_BASE'), config.get('GEMINI_TIMEOUT', 30)),
        dependencies=['ai_settings']
    )

    registry.register_factory(
        'ai',
        lambda gemini, ai_settings: _create_ai_service(gemini, ai_settings),
        dependencies=['gemini', 'ai_settings']
    )

    registry.register_factory(
        'whatsapp',
        lambda whatsapp_settings_repository: _create_whatsapp_service(
            whatsapp_settings_repository, config.get('WHATSAPP_TIMEOUT', 15)),
        dependencies=['whatsapp_settings_repository']
    )

    registry.register_factory(
        'lead',
        lambda lead_repository, lead_message_repository: _create_lead_service(
            lead_repository, lead_message_repository),
        dependencies=['lead_repository', 'lead_message_repository']
    )

    registry.register_factory(
        'automation',
        lambda automation_job_repository, automation_settings_repository, lead_repository,
        lead_message_repository, gemini, whatsapp: _create_automation_service(
            automation_job_repository, automation_settings_repository, lead_repository,
            lead_message_repository, gemini, whatsapp,
            config.get('AUTOMATION_LEASE_SECONDS', 300), config.get('AUTOMATION_BATCH_SIZE', 50),
            config.get('AUTOMATION_MAX_ATTEMPTS', 5)),
        dependencies=['automation_job_repository', 'automation_settings_repository', 'lead_repository',
                      'lead_message_repository', 'gemini', 'whatsapp']
    )

    registry.register_factory(
        'conversation',
        lambda lead, ai, automation, whatsapp: _create_conversation_service(lead, ai, automation, whatsapp),
        dependencies=['lead', 'ai', 'automation', 'whatsapp']
    )

    registry.register_factory(
        'inbound_webhook',
        lambda webhook_event_repository, lead, ai, automation: _create_inbound_webhook_service(
            webhook_event_repository, lead, ai, automation),
        dependencies=['webhook_event_repository', 'lead', 'ai', 'automation']
    )

    registry.register_factory(
        'funnel',
        lambda funnel_settings_repository, lead, ai, automation: _create_funnel_service(
            funnel_settings_repository, lead, ai, automation),
        dependencies=['funnel_settings_repository', 'lead', 'ai', 'automation']
    )

    registry.register_factory(
        'broker',
        lambda broker_repository: _create_broker_service(broker_repository),
        dependencies=['broker_repository']
    )

    registry.register_factory(
        'dashboard',
        lambda lead_repository, broker_repository, automation_job_repository: _create_dashboard_service(
            lead_repository, broker_repository, automation_job_repository),
        dependencies=['lead_repository', 'broker_repository', 'automation_job_repository']
    )

    # Validate all dependencies are registered
    errors = registry.validate_dependencies()
    if errors:
        for error in errors:
            logger.error("Service dependency error", error=error)
        raise RuntimeError(f"Service dependency errors: {errors}")

    if app.debug:
        logger.debug("Service initialization order", order=registry.get_initialization_order())

    return registry


# Service Factory Functions
# These are only called when the service is first requested

def _create_broker_repository(db_session):
    from repositories.broker_repository import BrokerRepository
    return BrokerRepository(session=db_session)


def _create_lead_repository(db_session):
    from repositories.lead_repository import LeadRepository
    return LeadRepository(session=db_session)


def _create_lead_message_repository(db_session):
    from repositories.lead_message_repository import LeadMessageRepository
    return LeadMessageRepository(session=db_session)


def _create_automation_job_repository(db_session):
    from repositories.automation_job_repository import AutomationJobRepository
    return AutomationJobRepository(session=db_session)


def _create_webhook_event_repository(db_session):
    from repositories.webhook_event_repository import WebhookEventRepository
    return WebhookEventRepository(session=db_session)


def _create_ai_settings_repository(db_session):
    from repositories.tenant_settings_repository import AISettingsRepository
    return AISettingsRepository(session=db_session)


def _create_ai_log_repository(db_session):
    from repositories.tenant_settings_repository import AILogRepository
    return AILogRepository(session=db_session)


def _create_whatsapp_settings_repository(db_session):
    from repositories.tenant_settings_repository import WhatsAppSettingsRepository
    return WhatsAppSettingsRepository(session=db_session)


def _create_automation_settings_repository(db_session):
    from repositories.tenant_settings_repository import AutomationSettingsRepository
    return AutomationSettingsRepository(session=db_session)


def _create_funnel_settings_repository(db_session):
    from repositories.tenant_settings_repository import FunnelSettingsRepository
    return FunnelSettingsRepository(session=db_session)


def _create_ai_settings_service(ai_settings_repository, ai_log_repository, default_api_key):
    from services.ai_settings_service import AISettingsService
    return AISettingsService(ai_settings_repository, ai_log_repository, default_api_key=default_api_key)


def _create_gemini_service(ai_settings, api_base, timeout):
    from services.gemini_service import GeminiService
    return GeminiService(ai_settings, api_base=api_base, timeout=timeout)


def _create_ai_service(gemini, ai_settings):
    from services.ai_service import AIService
    return AIService(gemini, ai_settings)


def _create_whatsapp_service(whatsapp_settings_repository, timeout):
    from services.whatsapp_service import WhatsAppService
    return WhatsAppService(whatsapp_settings_repository, timeout=timeout)


def _create_lead_service(lead_repository, lead_message_repository):
    from services.lead_service import LeadService
    return LeadService(lead_repository, lead_message_repository)


def _create_automation_service(job_repository, settings_repository, lead_repository,
                               message_repository, gemini, whatsapp, lease_seconds, batch_size,
                               max_attempts):
    from services.automation_service import AutomationService
    return AutomationService(
        job_repository=job_repository,
        settings_repository=settings_repository,
        lead_repository=lead_repository,
        message_repository=message_repository,
        gemini_service=gemini,
        whatsapp_service=whatsapp,
        lease_seconds=lease_seconds,
        batch_size=batch_size,
        max_attempts=max_attempts,
    )


def _create_conversation_service(lead, ai, automation, whatsapp):
    from services.conversation_service import ConversationService
    return ConversationService(lead, ai, automation, whatsapp)


def _create_inbound_webhook_service(webhook_event_repository, lead, ai, automation):
    from services.inbound_webhook_service import InboundWebhookService
    return InboundWebhookService(webhook_event_repository, lead, ai, automation)


def _create_funnel_service(funnel_settings_repository, lead, ai, automation):
    from services.funnel_service import FunnelService
    return FunnelService(funnel_settings_repository, lead, ai, automation)


def _create_broker_service(broker_repository):
    from services.broker_service import BrokerService
    return BrokerService(broker_repository)


def _create_dashboard_service(lead_repository, broker_repository, automation_job_repository):
    from services.dashboard_service import DashboardService
    return DashboardService(lead_repository, broker_repository, automation_job_repository)


if __name__ == '__main__':
    create_app().run(host='0.0.0.0', port=int(os.environ.get('PORT', 5000)))
