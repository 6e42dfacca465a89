# celery_worker.py
from app import create_app
from celery_config import create_celery_app

flask_app = create_app()

celery = create_celery_app(
    __name__,
    broker_url=flask_app.config.get('CELERY_BROKER_URL'),
    result_backend_url=flask_app.config.get('CELERY_RESULT_BACKEND'),
)
celery.conf.task_always_eager = flask_app.config.get('CELERY_TASK_ALWAYS_EAGER', False)


# Tasks run inside the Flask app context so the service registry is available.
class ContextTask(celery.Task):
    def __call__(self, *args, **kwargs):
        with flask_app.app_context():
            return self.run(*args, **kwargs)


celery.Task = ContextTask

# --- Celery Beat Schedule ---
celery.conf.beat_schedule = {
    'run-automation-scheduler': {
        'task': 'tasks.automation_tasks.run_automation_scheduler',
        # Sweeps due automation jobs every minute
        'schedule': 60.0,
    },
}
celery.conf.timezone = 'UTC'

# Registered after the Flask app exists
import tasks.automation_tasks  # noqa: E402,F401
