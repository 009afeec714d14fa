"""Unit tests for EventBridge buses and rules."""

import json
from unittest.mock import MagicMock

import boto3
import pytest
from botocore.stub import Stubber
from pydantic import ValidationError

from cumulus_aws.resources.eventbridge import (
    EventBusFinder,
    EventBusResource,
    EventBusSpec,
    EventRuleFinder,
    EventRuleResource,
    EventRuleSpec,
    RuleTargetSpec,
    TargetRetryPolicySpec,
)
from cumulus_aws.utils.errors import ProvisioningError

PATTERN = json.dumps({'source': ['app.orders']})


def bus(aws, name='orders', **fields):
    return EventBusResource(aws, EventBusSpec(name=name, **fields))


def rule(aws, event_bus=None, **fields):
    fields.setdefault('event_pattern', PATTERN)
    return EventRuleResource(aws, EventRuleSpec(name='on-order', **fields), event_bus=event_bus)


@pytest.fixture
def queue_arn(aws):
    client = aws.get_client('sqs')
    url = client.create_queue(QueueName='orders')['QueueUrl']
    return client.get_queue_attributes(QueueUrl=url, AttributeNames=['QueueArn'])['Attributes']['QueueArn']


class TestSpecs:
    """Test bus and rule validation."""

    def test_default_bus_not_managed(self):
        with pytest.raises(ValidationError, match="default event bus"):
            EventBusSpec(name='default')

    def test_pattern_or_schedule_required(self):
        with pytest.raises(ValidationError, match="One of event-pattern or schedule-expression"):
            EventRuleSpec(name='r')

    def test_pattern_conflicts_with_schedule(self):
        with pytest.raises(ValidationError, match="conflicts with schedule-expression"):
            EventRuleSpec(name='r', event_pattern=PATTERN, schedule_expression='rate(1 hour)')

    def test_target_ids_unique(self):
        targets = [RuleTargetSpec(id='t', arn='arn:1'), RuleTargetSpec(id='t', arn='arn:2')]
        with pytest.raises(ValidationError, match="Target ids must be unique"):
            EventRuleSpec(name='r', event_pattern=PATTERN, targets=targets)

    def test_at_most_five_targets(self):
        targets = [RuleTargetSpec(id=str(i), arn='arn:x') for i in range(6)]
        with pytest.raises(ValidationError):
            EventRuleSpec(name='r', event_pattern=PATTERN, targets=targets)

    def test_target_retry_policy_fields_map_straight_through(self):
        policy = TargetRetryPolicySpec(maximum_retry_attempts=3, maximum_event_age_in_seconds=120)

        assert policy.to_api() == {'MaximumRetryAttempts': 3, 'MaximumEventAgeInSeconds': 120}
        assert TargetRetryPolicySpec.from_api(policy.to_api()) == policy

    def test_target_retry_policy_bounds(self):
        with pytest.raises(ValidationError):
            TargetRetryPolicySpec(maximum_event_age_in_seconds=30)


class TestEventBus:
    """Test bus lifecycle against moto."""

    def test_create_refresh_delete(self, aws, state):
        resource = bus(aws, tags={'Team': 'x'})
        resource.create(None, state)

        found = bus(aws)
        assert found.refresh() is True
        assert found.physical_id == resource.physical_id
        assert found.spec.tags == {'Team': 'x'}

        resource.delete(None, state)
        assert bus(aws).refresh() is False

    def test_finder_skips_default_bus(self, aws, state):
        bus(aws, name='orders').create(None, state)
        bus(aws, name='payments').create(None, state)

        assert sorted(r.name for r in EventBusFinder(aws).find_all()) == ['orders', 'payments']
        assert [r.name for r in EventBusFinder(aws).find({'name-prefix': 'pay'})] == ['payments']


class TestEventRule:
    """Test rule lifecycle against moto."""

    def test_create_with_targets_and_refresh(self, aws, state, queue_arn):
        parent = bus(aws)
        parent.create(None, state)
        target = RuleTargetSpec(id='queue', arn=queue_arn, input='{"a": 1}')
        resource = rule(aws, event_bus=parent, targets=[target], tags={'Team': 'x'})

        resource.create(None, state)

        assert resource.key == 'aws::event-rule::orders/on-order'
        assert resource.to_record().parents == ['aws::event-bus::orders']

        found = rule(aws, event_bus=parent)
        assert found.refresh() is True
        assert found.spec.targets == [target]
        assert found.spec.event_pattern == '{"source":["app.orders"]}'
        assert found.spec.tags == {'Team': 'x'}

    def test_refresh_of_unchanged_rule_has_no_changes(self, aws, state, queue_arn):
        target = RuleTargetSpec(id='queue', arn=queue_arn)
        resource = rule(aws, description='Order events', targets=[target], tags={'Team': 'x'})
        resource.create(None, state)

        found = rule(aws)
        assert found.refresh() is True

        assert resource.changed_fields(found) == set()

    def test_reconcile_targets(self, aws, state, queue_arn):
        first = RuleTargetSpec(id='first', arn=queue_arn)
        second = RuleTargetSpec(id='second', arn=queue_arn)
        previous = rule(aws, targets=[first, second])
        previous.create(None, state)

        third = RuleTargetSpec(id='third', arn=queue_arn)
        current = rule(aws, targets=[second, third])
        current.update(None, state, previous, current.changed_fields(previous))

        targets = aws.get_client('events').list_targets_by_rule(Rule='on-order')['Targets']
        assert sorted(t['Id'] for t in targets) == ['second', 'third']

    def test_disable(self, aws, state):
        previous = rule(aws)
        previous.create(None, state)

        current = rule(aws, state='DISABLED')
        current.update(None, state, previous, {'state'})

        assert current.describe()['State'] == 'DISABLED'

    def test_delete_removes_targets_first(self, aws, state, queue_arn):
        resource = rule(aws, targets=[RuleTargetSpec(id='queue', arn=queue_arn)])
        resource.create(None, state)

        resource.delete(None, state)

        assert rule(aws).refresh() is False

    def test_finder_by_bus(self, aws, state):
        parent = bus(aws)
        parent.create(None, state)
        rule(aws, event_bus=parent).create(None, state)
        rule(aws).create(None, state)

        found = EventRuleFinder(aws).find({'event-bus-name': 'orders'})

        assert [r.key for r in found] == ['aws::event-rule::orders/on-order']
        assert found[0].event_bus.name == 'orders'
        assert len(EventRuleFinder(aws).find_all()) == 2


class TestRuleUpdateCalls:
    """Test the exact calls issued by rule updates."""

    @pytest.fixture
    def client(self):
        return boto3.client('events', region_name='us-east-1')

    @pytest.fixture
    def clients(self, client):
        clients = MagicMock()
        clients.get_client.return_value = client
        return clients

    def test_description_change_is_one_put_rule_and_no_tag_calls(self, clients, client):
        previous = rule(clients, description='old', tags={'Team': 'x'})
        previous.physical_id = 'arn:aws:events:us-east-1:123456789012:rule/on-order'
        current = rule(clients, description='new', tags={'Team': 'x'})

        with Stubber(client) as stubber:
            stubber.add_response(
                'put_rule',
                {'RuleArn': previous.physical_id},
                {
                    'Name': 'on-order',
                    'EventBusName': 'default',
                    'State': 'ENABLED',
                    'Description': 'new',
                    'EventPattern': '{"source":["app.orders"]}',
                },
            )

            current.update(None, MagicMock(), previous, current.changed_fields(previous))

            stubber.assert_no_pending_responses()

    def test_failed_target_entries_raise(self, clients, client):
        resource = rule(clients, targets=[RuleTargetSpec(id='t', arn='arn:aws:sqs:us-east-1:123456789012:q')])

        with Stubber(client) as stubber:
            stubber.add_response('put_rule', {'RuleArn': 'arn:rule'})
            stubber.add_response('put_targets', {
                'FailedEntryCount': 1,
                'FailedEntries': [{'TargetId': 't', 'ErrorCode': 'AccessDenied', 'ErrorMessage': 'no'}],
            })

            with pytest.raises(ProvisioningError, match="Failed to put targets"):
                resource.create(None, MagicMock())
