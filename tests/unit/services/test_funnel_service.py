"""
Unit tests for FunnelService - landing page settings and applications
"""

import pytest
from unittest.mock import Mock

from services.funnel_service import (
    FunnelService, DEFAULT_FUNNEL_SETTINGS, FUNNEL_SOURCE, FUNNEL_TAG, application_summary, default_slug
)


def funnel_row(**overrides):
    values = {**DEFAULT_FUNNEL_SETTINGS, 'broker_id': 3, 'funnel_slug': 'maria-miami',
              'primary_language': 'pt', 'created_at': None}
    values.update(overrides)
    row = Mock()
    row.configure_mock(**values)
    return row


@pytest.fixture
def settings_repository():
    repository = Mock()
    repository.get_for_tenant.return_value = None
    repository.find_by_slug.return_value = None
    return repository


@pytest.fixture
def lead():
    lead = Mock()
    lead.configure_mock(id=40, tags=[])
    return lead


@pytest.fixture
def lead_service(lead):
    service = Mock()
    service.find_or_create.return_value = (lead, True)
    return service


@pytest.fixture
def deps(settings_repository, lead_service):
    return {
        'settings_repository': settings_repository,
        'lead_service': lead_service,
        'ai_service': Mock(),
        'automation_service': Mock(),
    }


@pytest.fixture
def service(deps):
    return FunnelService(**deps)


class TestSettings:

    def test_defaults_without_row(self, service):
        settings = service.get_settings(12345678)

        assert settings['funnel_slug'] == 'realtor-12345'
        assert settings['hero_title'] == DEFAULT_FUNNEL_SETTINGS['hero_title']
        assert settings['tenant_id'] == 12345678

    def test_default_slug(self):
        assert default_slug(7) == 'realtor-7'

    def test_null_columns_fall_back_to_defaults(self, service, settings_repository):
        settings_repository.get_for_tenant.return_value = funnel_row(brand_color=None)
        assert service.get_settings(3)['brand_color'] == '#000000'

    def test_update_normalizes_slug(self, service, settings_repository):
        result = service.update_settings(3, {'funnel_slug': '  Maria-Miami ', 'show_testimonials': 1,
                                             'bogus': 'x'})

        assert result.is_success
        tenant_id, values = settings_repository.upsert_for_tenant.call_args[0]
        assert tenant_id == 3
        assert values['funnel_slug'] == 'maria-miami'
        assert values['show_testimonials'] is True
        assert 'bogus' not in values
        settings_repository.commit.assert_called_once()

    def test_slug_owned_by_another_broker(self, service, settings_repository):
        settings_repository.find_by_slug.return_value = funnel_row(broker_id=99)

        result = service.update_settings(3, {'funnel_slug': 'maria-miami'})

        assert result.error_code == 'SLUG_TAKEN'
        settings_repository.upsert_for_tenant.assert_not_called()

    def test_own_slug_can_be_saved_again(self, service, settings_repository):
        settings_repository.find_by_slug.return_value = funnel_row(broker_id=3)
        assert service.update_settings(3, {'funnel_slug': 'maria-miami'}).is_success


class TestPublicFunnel:

    def test_unknown_slug(self, service):
        assert service.get_public_funnel('nobody') is None

    def test_known_slug(self, service, settings_repository):
        settings_repository.find_by_slug.return_value = funnel_row()

        funnel = service.get_public_funnel('maria-miami')

        assert funnel['tenant_id'] == 3
        assert funnel['primary_language'] == 'pt'


FORM = {
    'name': 'Ana',
    'phone': '+1 555 000 1111',
    'email': 'ana@mail.com',
    'city': 'Orlando',
    'budget': '350k',
    'timeline': '3 months',
    'preapproved': 'yes',
    'concern': 'Closing costs',
}


class TestSubmitApplication:

    def test_unknown_slug(self, service, lead_service):
        result = service.submit_application('nobody', FORM)

        assert result.error_code == 'NOT_FOUND'
        lead_service.find_or_create.assert_not_called()

    def test_creates_qualified_lead(self, service, deps, settings_repository, lead_service, lead):
        settings_repository.find_by_slug.return_value = funnel_row()

        result = service.submit_application('maria-miami', FORM)

        assert result.data == {'lead_id': 40, 'redirect': '/f/maria-miami/thank-you'}
        args, kwargs = lead_service.find_or_create.call_args
        assert args == (3, FUNNEL_SOURCE)
        assert kwargs['tags'] == [FUNNEL_TAG]
        assert kwargs['language'] == 'pt'
        assert kwargs['desired_city'] == 'Orlando'

        summary = application_summary(FORM)
        assert summary.startswith('Formulario Web\nCiudad: Orlando')
        lead_service.record_message.assert_called_once_with(lead, summary, channel=FUNNEL_SOURCE)
        deps['ai_service'].qualify_lead.assert_called_once_with(summary, tenant_id=3)
        lead_service.apply_qualification.assert_called_once()
        deps['automation_service'].trigger_welcome_flow.assert_called_once_with(lead)

    def test_existing_lead_is_tagged_once(self, service, settings_repository, lead_service, lead):
        settings_repository.find_by_slug.return_value = funnel_row()
        lead.tags = ['vip']
        lead_service.find_or_create.return_value = (lead, False)

        service.submit_application('maria-miami', FORM)
        service.submit_application('maria-miami', FORM)

        assert lead.tags == ['vip', FUNNEL_TAG]
