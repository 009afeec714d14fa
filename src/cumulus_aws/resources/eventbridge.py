"""EventBridge event buses and rules."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import Field, model_validator

from cumulus_aws.resources.base import ResourceSpec, TaggableResource, TaggableSpec, updatable
from cumulus_aws.resources.finder import AwsFinder
from cumulus_aws.tagging.taggers import EventsTagger
from cumulus_aws.utils.documents import JsonDocument
from cumulus_aws.utils.errors import ProvisioningError

DEFAULT_EVENT_BUS = 'default'

# Rule fields sent together in a single PutRule call
RULE_FIELDS = frozenset(['description', 'event_pattern', 'schedule_expression', 'role_arn'])


class EventBusSpec(TaggableSpec):
    name: str = Field(..., min_length=1, max_length=256)
    event_source_name: Optional[str] = None

    @model_validator(mode='after')
    def _not_default(self):
        if self.name == DEFAULT_EVENT_BUS:
            raise ValueError("The default event bus always exists and cannot be managed")
        return self


class EventBusResource(TaggableResource):
    """A custom event bus; physical id is its ARN."""

    resource_type = 'aws::event-bus'
    service_name = 'events'
    spec_class = EventBusSpec
    key_field = 'name'
    tagger_class = EventsTagger

    def describe(self):
        return self.client.describe_event_bus(Name=self.spec.name)

    @classmethod
    def spec_from_model(cls, client, model):
        return EventBusSpec(name=model['Name'])

    @classmethod
    def physical_id_from_model(cls, model):
        return model['Arn']

    @classmethod
    def outputs_from_model(cls, model):
        return {'arn': model['Arn'], 'policy': model.get('Policy')}

    def _create(self, ui, state):
        params = {'Name': self.spec.name}
        if self.spec.event_source_name:
            params['EventSourceName'] = self.spec.event_source_name
        self.physical_id = self.client.create_event_bus(**params)['EventBusArn']
        self.outputs = {'arn': self.physical_id}
        state.save()

    def _update(self, ui, state, previous, changed):
        # Only tags are updatable on a bus; they are reconciled by the template
        pass

    def _delete(self, ui, state):
        self.client.delete_event_bus(Name=self.spec.name)


class TargetRetryPolicySpec(ResourceSpec):
    maximum_retry_attempts: Optional[int] = Field(None, ge=0, le=185)
    maximum_event_age_in_seconds: Optional[int] = Field(None, ge=60, le=86400)

    def to_api(self) -> Dict[str, int]:
        policy = {}
        if self.maximum_retry_attempts is not None:
            policy['MaximumRetryAttempts'] = self.maximum_retry_attempts
        if self.maximum_event_age_in_seconds is not None:
            policy['MaximumEventAgeInSeconds'] = self.maximum_event_age_in_seconds
        return policy

    @classmethod
    def from_api(cls, policy: Dict[str, int]) -> "TargetRetryPolicySpec":
        return cls(
            maximum_retry_attempts=policy.get('MaximumRetryAttempts'),
            maximum_event_age_in_seconds=policy.get('MaximumEventAgeInSeconds'),
        )


class RuleTargetSpec(ResourceSpec):
    id: str = Field(..., min_length=1, max_length=64)
    arn: str = Field(..., min_length=1)
    role_arn: Optional[str] = None
    input: JsonDocument = None
    input_path: Optional[str] = None
    retry_policy: Optional[TargetRetryPolicySpec] = None

    @model_validator(mode='after')
    def _single_input(self):
        if self.input is not None and self.input_path is not None:
            raise ValueError("input conflicts with input-path")
        return self

    def to_api(self) -> Dict[str, Any]:
        target: Dict[str, Any] = {'Id': self.id, 'Arn': self.arn}
        if self.role_arn:
            target['RoleArn'] = self.role_arn
        if self.input is not None:
            target['Input'] = self.input
        if self.input_path is not None:
            target['InputPath'] = self.input_path
        if self.retry_policy is not None:
            target['RetryPolicy'] = self.retry_policy.to_api()
        return target

    @classmethod
    def from_api(cls, target: Dict[str, Any]) -> "RuleTargetSpec":
        retry_policy = target.get('RetryPolicy')
        return cls(
            id=target['Id'],
            arn=target['Arn'],
            role_arn=target.get('RoleArn'),
            input=target.get('Input'),
            input_path=target.get('InputPath'),
            retry_policy=TargetRetryPolicySpec.from_api(retry_policy) if retry_policy else None,
        )


class EventRuleSpec(TaggableSpec):
    name: str = Field(..., min_length=1, max_length=64)
    description: Optional[str] = updatable(max_length=512)
    event_pattern: JsonDocument = updatable()
    schedule_expression: Optional[str] = updatable()
    role_arn: Optional[str] = updatable()
    state: Literal['ENABLED', 'DISABLED'] = updatable('ENABLED')
    targets: List[RuleTargetSpec] = updatable(default_factory=list, max_length=5)

    @model_validator(mode='after')
    def _pattern_or_schedule(self):
        if self.event_pattern is None and self.schedule_expression is None:
            raise ValueError("One of event-pattern or schedule-expression is required")
        if self.event_pattern is not None and self.schedule_expression is not None:
            raise ValueError("event-pattern conflicts with schedule-expression")
        ids = [target.id for target in self.targets]
        if len(ids) != len(set(ids)):
            raise ValueError("Target ids must be unique within a rule")
        return self


class EventRuleResource(TaggableResource):
    """An EventBridge rule and its targets.

    The rule lives on its parent bus, referenced directly; without one it
    lives on the default bus. Physical id is the rule ARN.
    """

    resource_type = 'aws::event-rule'
    service_name = 'events'
    spec_class = EventRuleSpec
    key_field = 'name'
    tagger_class = EventsTagger

    def __init__(self, clients, spec, client_configuration=None, event_bus: Optional[EventBusResource] = None):
        super().__init__(clients, spec, client_configuration=client_configuration)
        self.event_bus = event_bus

    @property
    def event_bus_name(self) -> str:
        return self.event_bus.name if self.event_bus is not None else DEFAULT_EVENT_BUS

    @property
    def name(self) -> str:
        return f"{self.event_bus_name}/{self.spec.name}"

    def parents(self):
        return [self.event_bus] if self.event_bus is not None else []

    def describe(self):
        return self.client.describe_rule(Name=self.spec.name, EventBusName=self.event_bus_name)

    @classmethod
    def references_from_model(cls, clients, model):
        bus_name = model.get('EventBusName', DEFAULT_EVENT_BUS)
        if bus_name == DEFAULT_EVENT_BUS:
            return {'event_bus': None}
        return {'event_bus': EventBusResource(clients, EventBusSpec(name=bus_name))}

    @classmethod
    def spec_from_model(cls, client, model):
        targets = list_targets(client, model['Name'], model.get('EventBusName', DEFAULT_EVENT_BUS))
        return EventRuleSpec(
            name=model['Name'],
            description=model.get('Description'),
            event_pattern=model.get('EventPattern'),
            schedule_expression=model.get('ScheduleExpression'),
            role_arn=model.get('RoleArn'),
            state=model.get('State', 'ENABLED'),
            targets=[RuleTargetSpec.from_api(target) for target in targets],
        )

    @classmethod
    def physical_id_from_model(cls, model):
        return model['Arn']

    @classmethod
    def outputs_from_model(cls, model):
        return {'arn': model['Arn'], 'managed_by': model.get('ManagedBy')}

    def _rule_params(self) -> Dict[str, Any]:
        params = {
            'Name': self.spec.name,
            'EventBusName': self.event_bus_name,
            'State': self.spec.state,
        }
        if self.spec.description is not None:
            params['Description'] = self.spec.description
        if self.spec.event_pattern is not None:
            params['EventPattern'] = self.spec.event_pattern
        if self.spec.schedule_expression is not None:
            params['ScheduleExpression'] = self.spec.schedule_expression
        if self.spec.role_arn is not None:
            params['RoleArn'] = self.spec.role_arn
        return params

    def _create(self, ui, state):
        self.physical_id = self.client.put_rule(**self._rule_params())['RuleArn']
        self.outputs = {'arn': self.physical_id}
        state.save()

        if self.spec.targets:
            self._put_targets(self.spec.targets)
            state.save()

    def _update(self, ui, state, previous, changed):
        if changed & RULE_FIELDS:
            # PutRule replaces the whole rule definition, state included
            self.client.put_rule(**self._rule_params())
            state.save()
        elif 'state' in changed:
            if self.spec.state == 'ENABLED':
                self.client.enable_rule(Name=self.spec.name, EventBusName=self.event_bus_name)
            else:
                self.client.disable_rule(Name=self.spec.name, EventBusName=self.event_bus_name)
            state.save()

        if 'targets' in changed:
            self._reconcile_targets(previous.spec.targets)
            state.save()

    def _reconcile_targets(self, previous_targets: List[RuleTargetSpec]) -> None:
        previous_by_id = {target.id: target for target in previous_targets}
        desired_ids = {target.id for target in self.spec.targets}

        stale = sorted(set(previous_by_id) - desired_ids)
        if stale:
            self._remove_targets(stale)

        changed = [target for target in self.spec.targets if previous_by_id.get(target.id) != target]
        if changed:
            self._put_targets(changed)

    def _put_targets(self, targets: List[RuleTargetSpec]) -> None:
        response = self.client.put_targets(
            Rule=self.spec.name,
            EventBusName=self.event_bus_name,
            Targets=[target.to_api() for target in targets],
        )
        _raise_failed_entries(response, 'put targets', self.key)

    def _remove_targets(self, target_ids: List[str]) -> None:
        response = self.client.remove_targets(
            Rule=self.spec.name, EventBusName=self.event_bus_name, Ids=target_ids
        )
        _raise_failed_entries(response, 'remove targets', self.key)

    def _delete(self, ui, state):
        # A rule cannot be deleted while it still has targets
        target_ids = [
            target['Id'] for target in list_targets(self.client, self.spec.name, self.event_bus_name)
        ]
        if target_ids:
            self._remove_targets(target_ids)
            state.save()
        self.client.delete_rule(Name=self.spec.name, EventBusName=self.event_bus_name)


def list_targets(client, rule_name: str, event_bus_name: str) -> List[Dict[str, Any]]:
    targets = []
    paginator = client.get_paginator('list_targets_by_rule')
    for page in paginator.paginate(Rule=rule_name, EventBusName=event_bus_name):
        targets.extend(page.get('Targets', []))
    return targets


def _raise_failed_entries(response, operation: str, key: str) -> None:
    if response.get('FailedEntryCount'):
        failures = ", ".join(
            f"{entry.get('TargetId')}: {entry.get('ErrorCode')} {entry.get('ErrorMessage')}"
            for entry in response.get('FailedEntries', [])
        )
        raise ProvisioningError(f"Failed to {operation} for {key}: {failures}")


def _list_event_buses(client, name_prefix: Optional[str] = None) -> List[Dict[str, Any]]:
    kwargs = {'NamePrefix': name_prefix} if name_prefix else {}
    buses = []
    while True:
        response = client.list_event_buses(**kwargs)
        buses.extend(response.get('EventBuses', []))
        if not response.get('NextToken'):
            return buses
        kwargs['NextToken'] = response['NextToken']


class EventBusFinder(AwsFinder):
    """Query custom event buses by exact name or name prefix."""

    resource_class = EventBusResource
    filter_names = frozenset(['name', 'name-prefix'])

    def find_all_aws(self, client):
        return [bus for bus in _list_event_buses(client) if bus['Name'] != DEFAULT_EVENT_BUS]

    def find_aws(self, client, filters):
        buses = self.find_all_aws(client)
        if 'name' in filters:
            buses = [bus for bus in buses if bus['Name'] == filters['name']]
        if 'name-prefix' in filters:
            buses = [bus for bus in buses if bus['Name'].startswith(filters['name-prefix'])]
        return buses


class EventRuleFinder(AwsFinder):
    """Query rules across buses, by bus, rule name or rule name prefix."""

    resource_class = EventRuleResource
    filter_names = frozenset(['event-bus-name', 'name', 'name-prefix'])

    def find_all_aws(self, client):
        rules = []
        for bus in _list_event_buses(client):
            rules.extend(self._rules(client, bus['Name']))
        return rules

    def find_aws(self, client, filters):
        if 'event-bus-name' in filters:
            rules = self._rules(client, filters['event-bus-name'], filters.get('name-prefix'))
        else:
            rules = self.find_all_aws(client)
        if 'name' in filters:
            rules = [rule for rule in rules if rule['Name'] == filters['name']]
        if 'name-prefix' in filters:
            rules = [rule for rule in rules if rule['Name'].startswith(filters['name-prefix'])]
        return rules

    def _rules(self, client, event_bus_name: str, name_prefix: Optional[str] = None):
        kwargs = {'EventBusName': event_bus_name}
        if name_prefix:
            kwargs['NamePrefix'] = name_prefix
        rules = []
        for page in client.get_paginator('list_rules').paginate(**kwargs):
            for rule in page.get('Rules', []):
                rules.append({'EventBusName': event_bus_name, **rule})
        return rules
