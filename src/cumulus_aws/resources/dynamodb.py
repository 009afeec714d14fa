"""DynamoDB tables."""

from typing import Any, Dict, Literal, Optional

from pydantic import Field, model_validator

from cumulus_aws.resources.base import ResourceSpec, TaggableResource, TaggableSpec, updatable
from cumulus_aws.resources.finder import AwsFinder
from cumulus_aws.tagging.taggers import DynamoDBTagger

BILLING_FIELDS = frozenset(['billing_mode', 'read_capacity_units', 'write_capacity_units'])


class KeyAttributeSpec(ResourceSpec):
    name: str = Field(..., min_length=1, max_length=255)
    type: Literal['S', 'N', 'B'] = 'S'


class TableSpec(TaggableSpec):
    table_name: str = Field(..., min_length=3, max_length=255)
    hash_key: KeyAttributeSpec
    range_key: Optional[KeyAttributeSpec] = None
    billing_mode: Literal['PAY_PER_REQUEST', 'PROVISIONED'] = updatable('PAY_PER_REQUEST')
    read_capacity_units: Optional[int] = updatable(ge=1)
    write_capacity_units: Optional[int] = updatable(ge=1)

    @model_validator(mode='after')
    def _capacity_matches_billing_mode(self):
        capacities = (self.read_capacity_units, self.write_capacity_units)
        if self.billing_mode == 'PROVISIONED' and None in capacities:
            raise ValueError("PROVISIONED billing requires read-capacity-units and write-capacity-units")
        if self.billing_mode == 'PAY_PER_REQUEST' and capacities != (None, None):
            raise ValueError("read/write capacity units are only allowed with PROVISIONED billing")
        return self


class TableResource(TaggableResource):
    """A DynamoDB table; physical id is the table ARN.

    Creation and billing changes wait for the table to become ACTIVE;
    deletion waits until the table is gone.
    """

    resource_type = 'aws::dynamodb-table'
    service_name = 'dynamodb'
    spec_class = TableSpec
    key_field = 'table_name'
    tagger_class = DynamoDBTagger

    def describe(self):
        return self.client.describe_table(TableName=self.spec.table_name)['Table']

    @classmethod
    def spec_from_model(cls, client, model):
        types = {
            attribute['AttributeName']: attribute['AttributeType']
            for attribute in model.get('AttributeDefinitions', [])
        }
        keys = {key['KeyType']: key['AttributeName'] for key in model['KeySchema']}
        range_key = keys.get('RANGE')

        billing_mode = model.get('BillingModeSummary', {}).get('BillingMode', 'PROVISIONED')
        throughput = model.get('ProvisionedThroughput', {})
        provisioned = billing_mode == 'PROVISIONED'

        return TableSpec(
            table_name=model['TableName'],
            hash_key=KeyAttributeSpec(name=keys['HASH'], type=types.get(keys['HASH'], 'S')),
            range_key=KeyAttributeSpec(name=range_key, type=types.get(range_key, 'S')) if range_key else None,
            billing_mode=billing_mode,
            read_capacity_units=throughput.get('ReadCapacityUnits') if provisioned else None,
            write_capacity_units=throughput.get('WriteCapacityUnits') if provisioned else None,
        )

    @classmethod
    def physical_id_from_model(cls, model):
        return model['TableArn']

    @classmethod
    def outputs_from_model(cls, model):
        return {
            'arn': model['TableArn'],
            'status': model.get('TableStatus'),
            'stream_arn': model.get('LatestStreamArn'),
        }

    def _create(self, ui, state):
        key_schema = [{'AttributeName': self.spec.hash_key.name, 'KeyType': 'HASH'}]
        attributes = [{'AttributeName': self.spec.hash_key.name, 'AttributeType': self.spec.hash_key.type}]
        if self.spec.range_key is not None:
            key_schema.append({'AttributeName': self.spec.range_key.name, 'KeyType': 'RANGE'})
            attributes.append({'AttributeName': self.spec.range_key.name, 'AttributeType': self.spec.range_key.type})

        response = self.client.create_table(
            TableName=self.spec.table_name,
            KeySchema=key_schema,
            AttributeDefinitions=attributes,
            **self._billing_params(),
        )
        self.physical_id = response['TableDescription']['TableArn']
        self.outputs = self.outputs_from_model(response['TableDescription'])
        state.save()

        self._wait_until_active(ui)
        state.save()

    def _update(self, ui, state, previous, changed):
        if changed & BILLING_FIELDS:
            self.client.update_table(TableName=self.spec.table_name, **self._billing_params())
            state.save()
            self._wait_until_active(ui)

    def _delete(self, ui, state):
        self.client.delete_table(TableName=self.spec.table_name)
        self._report(ui, f"Waiting for {self.key} to be deleted")
        self._wait_for_deletion(self.describe)

    def _billing_params(self) -> Dict[str, Any]:
        params: Dict[str, Any] = {'BillingMode': self.spec.billing_mode}
        if self.spec.billing_mode == 'PROVISIONED':
            params['ProvisionedThroughput'] = {
                'ReadCapacityUnits': self.spec.read_capacity_units,
                'WriteCapacityUnits': self.spec.write_capacity_units,
            }
        return params

    def _wait_until_active(self, ui) -> None:
        self._report(ui, f"Waiting for {self.key} to become ACTIVE")

        def active() -> bool:
            model = self.describe()
            self.outputs = self.outputs_from_model(model)
            return model.get('TableStatus') == 'ACTIVE'

        self._wait(active, f"{self.key} to become ACTIVE")


class TableFinder(AwsFinder):
    """Query tables by exact name or name prefix."""

    resource_class = TableResource
    filter_names = frozenset(['table-name', 'table-name-prefix'])

    def find_all_aws(self, client):
        return [self._describe(client, name) for name in self._table_names(client)]

    def find_aws(self, client, filters):
        names = self._table_names(client)
        if 'table-name' in filters:
            names = [name for name in names if name == filters['table-name']]
        if 'table-name-prefix' in filters:
            names = [name for name in names if name.startswith(filters['table-name-prefix'])]
        return [self._describe(client, name) for name in names]

    def _table_names(self, client):
        names = []
        for page in client.get_paginator('list_tables').paginate():
            names.extend(page.get('TableNames', []))
        return names

    def _describe(self, client, name: str):
        return client.describe_table(TableName=name)['Table']
