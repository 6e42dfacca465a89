"""
Integration tests for the AI endpoints
"""

import json
from unittest.mock import Mock, patch

from services.common.result import Result
from services.gemini_service import GeminiService, GeminiRequestError
from tests.fixtures.factories import BrokerFactory


class TestQualify:

    def test_requires_message(self, client, db_session):
        assert client.post('/api/ai/qualify', json={}).status_code == 400

    def test_without_api_key_returns_fallback(self, client, db_session):
        response = client.post('/api/ai/qualify', json={'message': 'I want a condo'})

        assert response.status_code == 200
        assert response.json['intent'] == 'Error Processing'
        assert response.json['score'] == 0

    def test_scores_model_output(self, client, db_session):
        body = json.dumps({'intent': 'Buying Interest', 'location': 'Tampa', 'urgency': 'Low'})

        with patch.object(GeminiService, 'run_gemini', return_value=Result.success(body)):
            response = client.post('/api/ai/qualify', json={'message': 'Buying in Tampa'})

        assert response.json['score'] == 50
        assert response.json['suggested_status'] == 'In Qualification'


def test_translate(client, db_session):
    with patch.object(GeminiService, 'run_gemini', return_value=Result.success('Hello')):
        response = client.post('/api/ai/translate', json={'text': 'Hola', 'target_language': 'English'})

    assert response.json == {'translation': 'Hello'}
    assert client.post('/api/ai/translate', json={'text': 'Hola'}).status_code == 400


class TestSettings:

    def test_api_key_is_masked(self, client, db_session):
        broker = BrokerFactory()

        response = client.post(f'/api/ai/settings?tenant_id={broker.id}',
                               json={'api_key': 'AIza-secret-9999', 'temperature': 0.4})

        assert response.status_code == 200
        assert response.json['settings']['api_key'] == '****9999'
        settings = client.get(f'/api/ai/settings?tenant_id={broker.id}').json
        assert settings['api_key'] == '****9999'
        assert settings['temperature'] == 0.4

    def test_partial_update_keeps_platform_values(self, client, db_session, app):
        broker = BrokerFactory()
        client.post('/api/ai/settings', json={'api_key': 'AIza-platform-7777', 'default_model': 'platform-model'})

        response = client.post(f'/api/ai/settings?tenant_id={broker.id}', json={'temperature': 0.9})

        assert response.status_code == 200
        stored = app.services.get('ai_settings').get_settings(broker.id)
        assert stored['api_key'] == 'AIza-platform-7777'
        assert stored['default_model'] == 'platform-model'
        assert stored['temperature'] == 0.9

    def test_tenants_are_isolated(self, client, db_session):
        first, second = BrokerFactory(), BrokerFactory()

        client.post(f'/api/ai/settings?tenant_id={first.id}', json={'default_model': 'gemini-2.0-flash'})

        assert client.get(f'/api/ai/settings?tenant_id={second.id}').json['default_model'] != 'gemini-2.0-flash'


class TestConnection:

    def test_missing_key(self, client, db_session):
        response = client.post('/api/ai/test', json={})

        assert response.status_code == 400
        assert response.json['code'] == 'API_KEY_MISSING'

    def test_success_is_logged(self, client, db_session):
        client.post('/api/ai/settings', json={'api_key': 'AIza-platform-1111'})
        gemini_reply = Mock(status_code=200)
        gemini_reply.json.return_value = {'candidates': [{'content': {'parts': [{'text': 'Hello!'}]}}]}

        with patch('services.gemini_service.requests.post', return_value=gemini_reply):
            response = client.post('/api/ai/test', json={'prompt': 'Say hello'})

        assert response.json['success'] is True
        assert response.json['response'] == 'Hello!'

        logs = client.get('/api/ai/logs').json['logs']
        assert len(logs) == 1
        assert logs[0]['success'] is True

    def test_network_error(self, client, db_session):
        with patch.object(GeminiService, 'run_gemini', side_effect=GeminiRequestError('timeout')):
            response = client.post('/api/ai/test', json={})

        assert response.status_code == 502
