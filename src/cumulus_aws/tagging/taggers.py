"""Service-specific tagging calls.

Every AWS service exposes its own tagging API with its own identifier and tag
shapes. A tagger hides those differences behind load/add/remove on a plain
``Dict[str, str]``.
"""

from abc import ABC, abstractmethod
from typing import Dict, List

from cumulus_aws.constants import RESERVED_TAG_PREFIX
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


def to_tag_list(tags: Dict[str, str]) -> List[Dict[str, str]]:
    """Convert a tag mapping into the [{'Key': ..., 'Value': ...}] shape."""
    return [{'Key': key, 'Value': value} for key, value in tags.items()]


def from_tag_list(tag_list: List[Dict[str, str]]) -> Dict[str, str]:
    return {tag['Key']: tag['Value'] for tag in tag_list or []}


class Tagger(ABC):
    """Base class for service taggers."""

    def __init__(self, client):
        """Initialize tagger.

        Args:
            client: boto3 client for the service owning the resource
        """
        self.client = client

    def load(self, resource_id: str) -> Dict[str, str]:
        """Load the tags of a resource, excluding tags reserved by AWS."""
        tags = self._list(resource_id)
        return {key: value for key, value in tags.items() if not key.startswith(RESERVED_TAG_PREFIX)}

    @abstractmethod
    def _list(self, resource_id: str) -> Dict[str, str]:
        pass

    @abstractmethod
    def add(self, resource_id: str, tags: Dict[str, str]) -> None:
        pass

    @abstractmethod
    def remove(self, resource_id: str, keys: List[str]) -> None:
        pass


class LogsTagger(Tagger):
    """CloudWatch Logs; identified by log group ARN (without the trailing ':*')."""

    def _list(self, resource_id):
        return self.client.list_tags_for_resource(resourceArn=resource_id).get('tags', {})

    def add(self, resource_id, tags):
        self.client.tag_resource(resourceArn=resource_id, tags=tags)

    def remove(self, resource_id, keys):
        self.client.untag_resource(resourceArn=resource_id, tagKeys=list(keys))


class SnsTagger(Tagger):
    """SNS; identified by topic ARN."""

    def _list(self, resource_id):
        return from_tag_list(self.client.list_tags_for_resource(ResourceArn=resource_id).get('Tags'))

    def add(self, resource_id, tags):
        self.client.tag_resource(ResourceArn=resource_id, Tags=to_tag_list(tags))

    def remove(self, resource_id, keys):
        self.client.untag_resource(ResourceArn=resource_id, TagKeys=list(keys))


class SqsTagger(Tagger):
    """SQS; identified by queue URL."""

    def _list(self, resource_id):
        return self.client.list_queue_tags(QueueUrl=resource_id).get('Tags', {})

    def add(self, resource_id, tags):
        self.client.tag_queue(QueueUrl=resource_id, Tags=tags)

    def remove(self, resource_id, keys):
        self.client.untag_queue(QueueUrl=resource_id, TagKeys=list(keys))


class EventsTagger(Tagger):
    """EventBridge; identified by event bus or rule ARN."""

    def _list(self, resource_id):
        return from_tag_list(self.client.list_tags_for_resource(ResourceARN=resource_id).get('Tags'))

    def add(self, resource_id, tags):
        self.client.tag_resource(ResourceARN=resource_id, Tags=to_tag_list(tags))

    def remove(self, resource_id, keys):
        self.client.untag_resource(ResourceARN=resource_id, TagKeys=list(keys))


class DynamoDBTagger(Tagger):
    """DynamoDB; identified by table ARN. Tag listing is paginated by NextToken."""

    def _list(self, resource_id):
        tags: Dict[str, str] = {}
        kwargs = {'ResourceArn': resource_id}
        while True:
            response = self.client.list_tags_of_resource(**kwargs)
            tags.update(from_tag_list(response.get('Tags')))
            if not response.get('NextToken'):
                return tags
            kwargs['NextToken'] = response['NextToken']

    def add(self, resource_id, tags):
        self.client.tag_resource(ResourceArn=resource_id, Tags=to_tag_list(tags))

    def remove(self, resource_id, keys):
        self.client.untag_resource(ResourceArn=resource_id, TagKeys=list(keys))
