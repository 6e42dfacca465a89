"""
Unit tests for BrokerService
"""

import pytest
from unittest.mock import Mock

from services.broker_service import BrokerService, slugify


@pytest.fixture
def repository():
    repository = Mock()
    repository.find_by_email.return_value = None
    repository.find_by_slug.return_value = None
    repository.create.side_effect = lambda **kwargs: make_broker(id=1, **kwargs)
    return repository


@pytest.fixture
def service(repository):
    return BrokerService(repository)


def make_broker(**overrides):
    values = {'id': 5, 'email': 'maria@realty.com', 'leads': []}
    values.update(overrides)
    broker = Mock()
    broker.configure_mock(**values)
    return broker


@pytest.mark.parametrize('value,expected', [
    ('Maria Lopez', 'maria-lopez'),
    ('  Ação Imóveis!! ', 'a-o-im-veis'),
    ('***', 'broker'),
])
def test_slugify(value, expected):
    assert slugify(value) == expected


class TestCreateBroker:

    @pytest.mark.parametrize('data', [{}, {'name': 'Maria'}, {'email': 'maria@realty.com'},
                                      {'name': '  ', 'email': 'maria@realty.com'}])
    def test_requires_name_and_email(self, service, data):
        result = service.create_broker(data)
        assert result.error_code == 'VALIDATION_ERROR'
        assert result.error == 'Name and Email are required'

    def test_duplicate_email(self, service, repository):
        repository.find_by_email.return_value = make_broker()

        result = service.create_broker({'name': 'Maria', 'email': 'Maria@Realty.com'})

        assert result.error_code == 'DUPLICATE_EMAIL'
        repository.find_by_email.assert_called_once_with('maria@realty.com')

    def test_unsupported_language(self, service):
        result = service.create_broker({'name': 'Maria', 'email': 'm@r.com', 'preferred_language': 'fr'})
        assert result.error_code == 'VALIDATION_ERROR'

    def test_defaults_and_unique_slug(self, service, repository):
        repository.find_by_slug.side_effect = [make_broker(), make_broker(), None]

        result = service.create_broker({'name': 'Maria Lopez', 'email': 'maria@realty.com'})

        assert result.is_success
        kwargs = repository.create.call_args.kwargs
        assert kwargs['slug'] == 'maria-lopez-3'
        assert kwargs['preferred_language'] == 'es'
        assert kwargs['timezone'] == 'America/New_York'
        repository.commit.assert_called_once()


class TestUpdateBroker:

    def test_missing(self, service, repository):
        repository.get_by_id.return_value = None
        assert service.update_broker(5, {'name': 'x'}).error_code == 'NOT_FOUND'

    def test_email_taken_by_other_broker(self, service, repository):
        repository.get_by_id.return_value = make_broker()
        repository.find_by_email.return_value = make_broker(id=6)

        result = service.update_broker(5, {'email': 'other@realty.com'})

        assert result.error_code == 'DUPLICATE_EMAIL'
        repository.update.assert_not_called()

    def test_updates_editable_fields(self, service, repository):
        broker = make_broker()
        repository.get_by_id.return_value = broker
        repository.find_by_email.return_value = broker

        result = service.update_broker(5, {'email': ' Maria@Realty.com', 'timezone': 'America/Sao_Paulo',
                                           'id': 77, 'name': None})

        assert result.is_success
        repository.update.assert_called_once_with(broker, email='maria@realty.com',
                                                  timezone='America/Sao_Paulo')


class TestDeleteBroker:

    def test_broker_with_leads_is_kept(self, service, repository):
        repository.get_by_id.return_value = make_broker(leads=[Mock()])

        result = service.delete_broker(5)

        assert result.error_code == 'HAS_LEADS'
        repository.delete.assert_not_called()

    def test_delete(self, service, repository):
        repository.get_by_id.return_value = make_broker()
        repository.delete.return_value = True

        assert service.delete_broker(5).is_success
        repository.commit.assert_called_once()
