"""SQS queues."""

from typing import Optional

from pydantic import Field, model_validator

from cumulus_aws.resources.base import TaggableResource, TaggableSpec, updatable
from cumulus_aws.resources.finder import AwsFinder
from cumulus_aws.tagging.taggers import SqsTagger
from cumulus_aws.utils.documents import JsonDocument

# Spec field -> queue attribute
QUEUE_ATTRIBUTES = {
    'delay_seconds': 'DelaySeconds',
    'maximum_message_size': 'MaximumMessageSize',
    'message_retention_period': 'MessageRetentionPeriod',
    'visibility_timeout': 'VisibilityTimeout',
    'receive_message_wait_time_seconds': 'ReceiveMessageWaitTimeSeconds',
    'policy': 'Policy',
    'kms_master_key_id': 'KmsMasterKeyId',
    'content_based_deduplication': 'ContentBasedDeduplication',
    'fifo_queue': 'FifoQueue',
}

INTEGER_ATTRIBUTES = frozenset([
    'delay_seconds',
    'maximum_message_size',
    'message_retention_period',
    'visibility_timeout',
    'receive_message_wait_time_seconds',
])


def queue_name(queue_url: str) -> str:
    return queue_url.rstrip('/').rsplit('/', 1)[-1]


def _attribute_value(value) -> str:
    if value is None:
        return ''
    if isinstance(value, bool):
        return 'true' if value else 'false'
    return str(value)


class QueueSpec(TaggableSpec):
    name: str = Field(..., min_length=1, max_length=80)
    delay_seconds: Optional[int] = updatable(ge=0, le=900)
    maximum_message_size: Optional[int] = updatable(ge=1024, le=1048576)
    message_retention_period: Optional[int] = updatable(ge=60, le=1209600)
    visibility_timeout: Optional[int] = updatable(ge=0, le=43200)
    receive_message_wait_time_seconds: Optional[int] = updatable(ge=0, le=20)
    policy: JsonDocument = updatable()
    kms_master_key_id: Optional[str] = updatable()
    fifo_queue: bool = False
    content_based_deduplication: Optional[bool] = updatable()

    @model_validator(mode='after')
    def _fifo_naming(self):
        if self.fifo_queue != self.name.endswith('.fifo'):
            raise ValueError("FIFO queue names must end with '.fifo' and only FIFO queue names may")
        if self.content_based_deduplication and not self.fifo_queue:
            raise ValueError("content-based-deduplication requires fifo-queue")
        return self


class QueueResource(TaggableResource):
    """An SQS queue; physical id is the queue URL."""

    resource_type = 'aws::sqs-queue'
    service_name = 'sqs'
    spec_class = QueueSpec
    key_field = 'name'
    tagger_class = SqsTagger

    def describe(self):
        queue_url = self.client.get_queue_url(QueueName=self.spec.name)['QueueUrl']
        return _queue_model(self.client, queue_url)

    @classmethod
    def spec_from_model(cls, client, model):
        values = {}
        for field_name, attribute in QUEUE_ATTRIBUTES.items():
            value = model.get(attribute) or None
            if value is not None and field_name in INTEGER_ATTRIBUTES:
                value = int(value)
            values[field_name] = value
        values['fifo_queue'] = values['fifo_queue'] == 'true'
        if values['content_based_deduplication'] is not None:
            values['content_based_deduplication'] = values['content_based_deduplication'] == 'true'
        return QueueSpec(name=queue_name(model['QueueUrl']), **values)

    @classmethod
    def physical_id_from_model(cls, model):
        return model['QueueUrl']

    @classmethod
    def outputs_from_model(cls, model):
        return {
            'url': model['QueueUrl'],
            'arn': model.get('QueueArn'),
        }

    def _create(self, ui, state):
        attributes = {
            attribute: _attribute_value(getattr(self.spec, field_name))
            for field_name, attribute in QUEUE_ATTRIBUTES.items()
            if getattr(self.spec, field_name) is not None and getattr(self.spec, field_name) is not False
        }
        response = self.client.create_queue(QueueName=self.spec.name, Attributes=attributes)
        self.physical_id = response['QueueUrl']
        state.save()

        arn = self.client.get_queue_attributes(
            QueueUrl=self.physical_id, AttributeNames=['QueueArn']
        )['Attributes']['QueueArn']
        self.outputs = {'url': self.physical_id, 'arn': arn}
        state.save()

    def _update(self, ui, state, previous, changed):
        # SetQueueAttributes takes any subset of attributes; send only the changed ones
        attributes = {
            QUEUE_ATTRIBUTES[field_name]: _attribute_value(getattr(self.spec, field_name))
            for field_name in sorted(changed)
        }
        self.client.set_queue_attributes(QueueUrl=self.physical_id, Attributes=attributes)
        state.save()

    def _delete(self, ui, state):
        queue_url = self.physical_id or self.client.get_queue_url(QueueName=self.spec.name)['QueueUrl']
        self.client.delete_queue(QueueUrl=queue_url)


def _queue_model(client, queue_url):
    attributes = client.get_queue_attributes(QueueUrl=queue_url, AttributeNames=['All'])
    return {**attributes.get('Attributes', {}), 'QueueUrl': queue_url}


class QueueFinder(AwsFinder):
    """Query queues by exact name or name prefix."""

    resource_class = QueueResource
    filter_names = frozenset(['name', 'name-prefix'])

    def find_all_aws(self, client):
        return [_queue_model(client, url) for url in self._queue_urls(client)]

    def find_aws(self, client, filters):
        prefix = filters.get('name') or filters.get('name-prefix')
        urls = self._queue_urls(client, prefix)
        if 'name' in filters:
            urls = [url for url in urls if queue_name(url) == filters['name']]
        if 'name-prefix' in filters:
            urls = [url for url in urls if queue_name(url).startswith(filters['name-prefix'])]
        return [_queue_model(client, url) for url in urls]

    def _queue_urls(self, client, prefix: Optional[str] = None):
        kwargs = {'QueueNamePrefix': prefix} if prefix else {}
        urls = []
        for page in client.get_paginator('list_queues').paginate(**kwargs):
            urls.extend(page.get('QueueUrls', []))
        return urls
