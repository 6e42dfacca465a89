# tests/conftest.py
"""
Shared fixtures for the pytest suite.

The app fixture builds one Flask app per test module on an in-memory SQLite
database. Tests that touch the database request db_session, which empties
every table and drops cached service instances so each test starts clean.
"""
import os
import pytest
from unittest.mock import MagicMock

# Modules that build an app at import time (celery_worker) pick this up
os.environ.setdefault('FLASK_ENV', 'testing')

from app import create_app
from extensions import db
from services.common.result import Result


@pytest.fixture(scope='module')
def app():
    """A Flask app with all tables created, shared by one test module."""
    os.environ['FLASK_ENV'] = 'testing'

    app = create_app(config_name='testing', test_config={
        'SERVER_NAME': 'localhost.localdomain'
    })

    with app.app_context():
        db.create_all()

        yield app

        db.session.remove()
        db.drop_all()


@pytest.fixture(scope='module')
def client(app):
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """
    Empty every table before the test and rebuild services on next lookup.

    Tables are cleared rather than rolled back because route tests commit
    through their own request-scoped sessions.
    """
    db.session.rollback()
    # Drop the identity map left by the previous test
    db.session.remove()
    for table in reversed(db.metadata.sorted_tables):
        db.session.execute(table.delete())
    db.session.commit()

    app.services.reset_all()

    yield db.session

    db.session.rollback()
    db.session.remove()


@pytest.fixture
def mock_gemini():
    """GeminiService double that answers every prompt with a fixed text."""
    gemini = MagicMock()
    gemini.run_gemini.return_value = Result.success("Thanks! What area are you looking in?")
    return gemini


@pytest.fixture
def mock_whatsapp():
    """WhatsAppService double with sending disabled."""
    whatsapp = MagicMock()
    whatsapp.is_enabled.return_value = False
    whatsapp.send_message.return_value = {'messages': [{'id': 'wamid.TEST'}]}
    return whatsapp
