"""
Test data factories for FlowRealtors

Usage:
    from tests.fixtures.factories import BrokerFactory, LeadFactory

    lead = LeadFactory.create(status='Qualified')
    jobs = AutomationJobFactory.create_batch(3, lead=lead)
"""

from .base import BaseFactory
from .broker_factory import BrokerFactory
from .lead_factory import LeadFactory, LeadMessageFactory, AutomationJobFactory

__all__ = [
    'BaseFactory',
    'BrokerFactory',
    'LeadFactory',
    'LeadMessageFactory',
    'AutomationJobFactory',
]
