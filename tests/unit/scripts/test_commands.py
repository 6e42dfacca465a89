"""
Tests for the Flask CLI commands
"""

from unittest.mock import Mock

import pytest

from services.common.result import Result


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def test_run_automations_reports_sweep(runner, app, mocker):
    automation = Mock()
    automation.run_scheduler.return_value = {'success': True, 'claimed': 3, 'executed': 2, 'failed': 1}
    real_get = app.services.get
    mocker.patch.object(app.services, 'get',
                        side_effect=lambda name, *args: automation if name == 'automation' else real_get(name, *args))

    result = runner.invoke(args=['run-automations', '--limit', '5'])

    assert result.exit_code == 0
    assert 'Claimed 3, executed 2, failed 1' in result.output
    automation.run_scheduler.assert_called_once_with(limit=5)


def test_create_broker(runner, app, mocker):
    broker = Mock(id=7, email='ana@realty.com', slug='ana-realty')
    broker_service = Mock()
    broker_service.create_broker.return_value = Result.success(broker)
    mocker.patch.object(app.services, 'get', return_value=broker_service)

    result = runner.invoke(args=['create-broker', '--name', 'Ana Realty', '--email', 'ana@realty.com'])

    assert 'Broker created: ana@realty.com (id 7, slug ana-realty)' in result.output
    broker_service.create_broker.assert_called_once_with({
        'name': 'Ana Realty',
        'email': 'ana@realty.com',
        'timezone': 'America/New_York',
    })


def test_create_broker_failure(runner, app, mocker):
    broker_service = Mock()
    broker_service.create_broker.return_value = Result.failure('Email already registered', code='DUPLICATE_EMAIL')
    mocker.patch.object(app.services, 'get', return_value=broker_service)

    result = runner.invoke(args=['create-broker', '--name', 'Ana', '--email', 'ana@realty.com'])

    assert 'Failed to create broker: Email already registered' in result.output
