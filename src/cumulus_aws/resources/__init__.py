"""Managed AWS resources and their finders."""

from cumulus_aws.resources.base import ManagedResource, ResourceSpec, TaggableResource, TaggableSpec
from cumulus_aws.resources.dynamodb import TableFinder, TableResource, TableSpec
from cumulus_aws.resources.eventbridge import (
    EventBusFinder,
    EventBusResource,
    EventBusSpec,
    EventRuleFinder,
    EventRuleResource,
    EventRuleSpec,
)
from cumulus_aws.resources.logs import LogGroupFinder, LogGroupResource, LogGroupSpec
from cumulus_aws.resources.sns import TopicFinder, TopicResource, TopicSpec
from cumulus_aws.resources.sqs import QueueFinder, QueueResource, QueueSpec

# Finder per resource type name, as used on the command line
FINDERS = {
    'cloudwatch-log-group': LogGroupFinder,
    'sns-topic': TopicFinder,
    'sqs-queue': QueueFinder,
    'event-bus': EventBusFinder,
    'event-rule': EventRuleFinder,
    'dynamodb-table': TableFinder,
}

__all__ = [
    "FINDERS",
    "ManagedResource",
    "ResourceSpec",
    "TaggableResource",
    "TaggableSpec",
    "TableFinder",
    "TableResource",
    "TableSpec",
    "EventBusFinder",
    "EventBusResource",
    "EventBusSpec",
    "EventRuleFinder",
    "EventRuleResource",
    "EventRuleSpec",
    "LogGroupFinder",
    "LogGroupResource",
    "LogGroupSpec",
    "TopicFinder",
    "TopicResource",
    "TopicSpec",
    "QueueFinder",
    "QueueResource",
    "QueueSpec",
]
