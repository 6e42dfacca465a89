"""
Lead, LeadMessage and AutomationJob factories
"""

from datetime import timedelta

import factory

from crm_database import Lead, LeadMessage, AutomationJob
from utils.datetime_utils import utc_now
from .base import BaseFactory
from .broker_factory import BrokerFactory


class LeadFactory(BaseFactory):

    class Meta:
        model = Lead

    broker = factory.SubFactory(BrokerFactory)
    name = factory.Sequence(lambda n: f"Lead {n}")
    phone = factory.Sequence(lambda n: f"+1555{n:07d}")
    email = None
    source = 'manual'
    status = 'New'
    score = 0
    language = 'en'
    tags = factory.LazyFunction(list)

    class Params:
        hot = factory.Trait(status='Hot', score=95, intent='Highly Motivated')


class LeadMessageFactory(BaseFactory):

    class Meta:
        model = LeadMessage

    lead = factory.SubFactory(LeadFactory)
    role = 'user'
    sender = 'lead'
    direction = 'inbound'
    channel = 'whatsapp'
    content = factory.Sequence(lambda n: f"Message {n}")
    timestamp = factory.LazyFunction(utc_now)


class AutomationJobFactory(BaseFactory):

    class Meta:
        model = AutomationJob

    lead = factory.SubFactory(LeadFactory)
    broker_id = factory.SelfAttribute('lead.broker_id')
    type = 'welcome'
    status = 'pending'
    scheduled_for = factory.LazyFunction(lambda: utc_now() - timedelta(minutes=1))
    payload = factory.LazyAttribute(lambda job: {'name': job.lead.name})
    language = 'en'
    attempts = 0
