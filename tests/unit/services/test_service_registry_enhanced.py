"""
Tests for the lazy service registry
"""

import pytest
from unittest.mock import Mock

from services.service_registry_enhanced import (
    ServiceRegistryEnhanced,
    ServiceLifecycle,
    create_enhanced_registry,
)


class TestServiceRegistryEnhanced:
    """Test suite for the service registry"""

    @pytest.fixture
    def registry(self):
        return create_enhanced_registry()

    def test_register_instance(self, registry):
        instance = Mock()
        registry.register('whatsapp', service=instance)

        assert registry.has('whatsapp')
        assert registry.get('whatsapp') is instance

    def test_register_requires_instance_or_factory(self, registry):
        with pytest.raises(ValueError):
            registry.register('broken')

    def test_factory_is_lazy_and_cached(self, registry):
        factory = Mock(return_value='gemini')
        registry.register_factory('gemini', factory)

        factory.assert_not_called()
        assert registry.get('gemini') == 'gemini'
        assert registry.get('gemini') == 'gemini'
        factory.assert_called_once()

    def test_transient_builds_each_time(self, registry):
        registry.register_factory('job', lambda: object(), lifecycle=ServiceLifecycle.TRANSIENT)
        assert registry.get('job') is not registry.get('job')

    def test_scoped_instances(self, registry):
        registry.register_factory('session', lambda: object(), lifecycle=ServiceLifecycle.SCOPED)

        first = registry.get('session', scope_id='request-1')
        assert registry.get('session', scope_id='request-1') is first
        assert registry.get('session', scope_id='request-2') is not first

    def test_dependencies_passed_as_keywords(self, registry):
        repository = Mock()
        registry.register('lead_repository', service=repository)
        registry.register_factory(
            'lead_service',
            lambda lead_repository: {'repo': lead_repository},
            dependencies=['lead_repository'],
        )

        assert registry.get('lead_service') == {'repo': repository}

    def test_unknown_service(self, registry):
        with pytest.raises(ValueError, match="not registered"):
            registry.get('missing')

    def test_circular_dependency(self, registry):
        registry.register_factory('a', lambda b: 'a', dependencies=['b'])
        registry.register_factory('b', lambda a: 'b', dependencies=['a'])

        with pytest.raises(RuntimeError, match="Circular dependency"):
            registry.get('a')

        # The failed resolution must not leave names on the stack
        registry.register('b', service='b')
        assert registry.get('a') == 'a'

    def test_reset_all_rebuilds_factories_and_keeps_instances(self, registry):
        instance = Mock()
        registry.register('settings', service=instance)
        registry.register_factory('ai', lambda: object())

        before = registry.get('ai')
        registry.reset_all()

        assert registry.get('ai') is not before
        assert registry.get('settings') is instance

    def test_register_replaces_existing_service(self, registry):
        registry.register_factory('ai', lambda: 'real')
        registry.get('ai')

        registry.register('ai', service='mock')

        assert registry.get('ai') == 'mock'

    def test_validate_dependencies(self, registry):
        registry.register_factory('conversation', lambda lead_service: None,
                                  dependencies=['lead_service'])
        assert registry.validate_dependencies() == [
            "Service 'conversation' depends on unregistered service 'lead_service'"
        ]

    def test_initialization_order(self, registry):
        registry.register_factory('conversation', lambda lead: None, dependencies=['lead'])
        registry.register_factory('lead', lambda repo: None, dependencies=['repo'])
        registry.register_factory('repo', lambda: None)

        order = registry.get_initialization_order()

        assert order.index('repo') < order.index('lead') < order.index('conversation')

    def test_list_services(self, registry):
        registry.register('b', service=1)
        registry.register('a', service=2)
        assert registry.list_services() == ['a', 'b']


def test_registry_is_attached_to_app(app):
    assert isinstance(app.services, ServiceRegistryEnhanced)
    assert app.services.validate_dependencies() == []
