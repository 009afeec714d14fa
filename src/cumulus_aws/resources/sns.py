"""SNS topics."""

from typing import Optional

from pydantic import Field, model_validator

from cumulus_aws.resources.base import TaggableResource, TaggableSpec, updatable
from cumulus_aws.resources.finder import AwsFinder
from cumulus_aws.tagging.taggers import SnsTagger
from cumulus_aws.utils.documents import JsonDocument

# Spec field -> topic attribute
TOPIC_ATTRIBUTES = {
    'display_name': 'DisplayName',
    'policy': 'Policy',
    'delivery_policy': 'DeliveryPolicy',
    'kms_master_key_id': 'KmsMasterKeyId',
    'content_based_deduplication': 'ContentBasedDeduplication',
    'fifo_topic': 'FifoTopic',
}

BOOLEAN_ATTRIBUTES = frozenset(['content_based_deduplication', 'fifo_topic'])


def topic_name(topic_arn: str) -> str:
    return topic_arn.split(':')[-1]


def _attribute_value(field_name, value) -> str:
    if value is None:
        return ''
    if field_name in BOOLEAN_ATTRIBUTES:
        return 'true' if value else 'false'
    return str(value)


class TopicSpec(TaggableSpec):
    name: str = Field(..., min_length=1, max_length=256)
    display_name: Optional[str] = updatable(max_length=100)
    policy: JsonDocument = updatable()
    delivery_policy: JsonDocument = updatable()
    kms_master_key_id: Optional[str] = updatable()
    fifo_topic: bool = False
    content_based_deduplication: Optional[bool] = updatable()

    @model_validator(mode='after')
    def _fifo_naming(self):
        if self.fifo_topic != self.name.endswith('.fifo'):
            raise ValueError("FIFO topic names must end with '.fifo' and only FIFO topic names may")
        if self.content_based_deduplication and not self.fifo_topic:
            raise ValueError("content-based-deduplication requires fifo-topic")
        return self


class TopicResource(TaggableResource):
    """An SNS topic; physical id is the topic ARN."""

    resource_type = 'aws::sns-topic'
    service_name = 'sns'
    spec_class = TopicSpec
    key_field = 'name'
    tagger_class = SnsTagger

    def describe(self):
        topic_arn = self.physical_id or self._find_arn()
        if topic_arn is None:
            return None
        return self.client.get_topic_attributes(TopicArn=topic_arn)['Attributes']

    def _find_arn(self) -> Optional[str]:
        for page in self.client.get_paginator('list_topics').paginate():
            for topic in page.get('Topics', []):
                if topic_name(topic['TopicArn']) == self.spec.name:
                    return topic['TopicArn']
        return None

    @classmethod
    def spec_from_model(cls, client, model):
        values = {
            field_name: model.get(attribute) or None
            for field_name, attribute in TOPIC_ATTRIBUTES.items()
        }
        values['fifo_topic'] = values['fifo_topic'] == 'true'
        if values['content_based_deduplication'] is not None:
            values['content_based_deduplication'] = values['content_based_deduplication'] == 'true'
        return TopicSpec(name=topic_name(model['TopicArn']), **values)

    @classmethod
    def physical_id_from_model(cls, model):
        return model['TopicArn']

    @classmethod
    def outputs_from_model(cls, model):
        return {
            'arn': model['TopicArn'],
            'owner': model.get('Owner'),
            'subscriptions_confirmed': int(model.get('SubscriptionsConfirmed', 0)),
        }

    def _create(self, ui, state):
        attributes = {
            attribute: _attribute_value(field_name, getattr(self.spec, field_name))
            for field_name, attribute in TOPIC_ATTRIBUTES.items()
            if getattr(self.spec, field_name)
        }
        response = self.client.create_topic(Name=self.spec.name, Attributes=attributes)
        self.physical_id = response['TopicArn']
        self.outputs = {'arn': self.physical_id}
        state.save()

    def _update(self, ui, state, previous, changed):
        for field_name in sorted(changed):
            self.client.set_topic_attributes(
                TopicArn=self.physical_id,
                AttributeName=TOPIC_ATTRIBUTES[field_name],
                AttributeValue=_attribute_value(field_name, getattr(self.spec, field_name)),
            )
            state.save()

    def _delete(self, ui, state):
        self.client.delete_topic(TopicArn=self.physical_id or self._find_arn())


class TopicFinder(AwsFinder):
    """Query topics by ARN or name."""

    resource_class = TopicResource
    filter_names = frozenset(['arn', 'name'])

    def find_all_aws(self, client):
        return [self._attributes(client, arn) for arn in self._topic_arns(client)]

    def find_aws(self, client, filters):
        arns = self._topic_arns(client)
        if 'arn' in filters:
            arns = [arn for arn in arns if arn == filters['arn']]
        if 'name' in filters:
            arns = [arn for arn in arns if topic_name(arn) == filters['name']]
        return [self._attributes(client, arn) for arn in arns]

    def _topic_arns(self, client):
        arns = []
        for page in client.get_paginator('list_topics').paginate():
            arns.extend(topic['TopicArn'] for topic in page.get('Topics', []))
        return arns

    def _attributes(self, client, arn):
        return client.get_topic_attributes(TopicArn=arn)['Attributes']
