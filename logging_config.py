# logging_config.py

import logging
import structlog
import sys
from typing import Any, Dict, Optional
from flask import has_request_context, request, g

NOISY_LIBRARIES = ("urllib3", "requests", "werkzeug", "celery.beat")


def add_request_context(logger: logging.Logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    """Stamp entries emitted inside a Flask request with its id, route and caller"""
    if has_request_context():
        event_dict.setdefault("request_id", getattr(g, 'request_id', None))
        event_dict["method"] = request.method
        event_dict["path"] = request.path
        event_dict["remote_addr"] = request.remote_addr
        event_dict["user_agent"] = request.headers.get('User-Agent', '')[:100]
    return event_dict


def setup_logging(app_name: str = "flowrealtors-api", log_level: str = "INFO") -> None:
    """
    Send structlog and stdlib logging to stdout as one JSON object per line.

    Args:
        app_name: Name of the application's root stdlib logger
        log_level: DEBUG, INFO, WARNING, ERROR or CRITICAL
    """
    level = getattr(logging, log_level.upper(), logging.INFO)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_request_context,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    logging.getLogger(app_name).setLevel(level)

    for library in NOISY_LIBRARIES:
        logging.getLogger(library).setLevel(logging.WARNING)


def get_logger(name: str = None) -> structlog.BoundLogger:
    return structlog.get_logger(name or __name__)


class SecurityLogger:
    """Webhook handshakes and rejected signatures, kept apart for auditing"""

    def __init__(self):
        self.logger = get_logger("security")

    def log_webhook_verification(self, channel: str, tenant_id: Optional[int], success: bool):
        log = self.logger.info if success else self.logger.warning
        log("Webhook verification", channel=channel, tenant_id=tenant_id,
            success=success, event_type="webhook_verification")

    def log_signature_failure(self, channel: str, tenant_id: Optional[int], ip_address: str = None):
        self.logger.warning("Webhook signature rejected", channel=channel, tenant_id=tenant_id,
                            ip_address=ip_address, event_type="signature_failure")


class PerformanceLogger:
    """Timings for Gemini and WhatsApp calls and for scheduler sweeps"""

    def __init__(self):
        self.logger = get_logger("performance")

    def log_api_call(self, service: str, endpoint: str, duration_ms: float, status_code: Optional[int]):
        self.logger.info("External API call", service=service, endpoint=endpoint,
                         duration_ms=round(duration_ms, 1), status_code=status_code,
                         event_type="api_call")

    def log_automation_sweep(self, worker_id: str, duration_ms: float, claimed: int):
        self.logger.info("Automation sweep", worker_id=worker_id,
                         duration_ms=round(duration_ms, 1), claimed=claimed,
                         event_type="automation_sweep")


security_logger = SecurityLogger()
performance_logger = PerformanceLogger()
