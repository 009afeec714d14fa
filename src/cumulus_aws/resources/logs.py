"""CloudWatch Logs log groups."""

from typing import Literal, Optional

from pydantic import Field, field_validator

from cumulus_aws.resources.base import TaggableResource, TaggableSpec, updatable
from cumulus_aws.resources.finder import AwsFinder
from cumulus_aws.tagging.taggers import LogsTagger

# Retention periods accepted by PutRetentionPolicy
VALID_RETENTION_DAYS = frozenset([
    1, 3, 5, 7, 14, 30, 60, 90, 120, 150, 180, 365, 400, 545,
    731, 1096, 1827, 2192, 2557, 2922, 3288, 3653,
])


def log_group_arn(model) -> str:
    """ARN of a log group without the ':*' suffix describe_log_groups appends."""
    arn = model.get('logGroupArn') or model['arn']
    return arn[:-2] if arn.endswith(':*') else arn


class LogGroupSpec(TaggableSpec):
    log_group_name: str = Field(..., min_length=1, max_length=512)
    retention_in_days: Optional[int] = updatable()
    kms_key_id: Optional[str] = updatable()
    log_group_class: Optional[Literal['STANDARD', 'INFREQUENT_ACCESS']] = None

    @field_validator('retention_in_days')
    @classmethod
    def _valid_retention(cls, value):
        if value is not None and value not in VALID_RETENTION_DAYS:
            raise ValueError(
                f"retention-in-days must be one of {sorted(VALID_RETENTION_DAYS)}, got {value}"
            )
        return value


class LogGroupResource(TaggableResource):
    """A CloudWatch Logs log group, identified by name; physical id is its ARN."""

    resource_type = 'aws::cloudwatch-log-group'
    service_name = 'logs'
    spec_class = LogGroupSpec
    key_field = 'log_group_name'
    tagger_class = LogsTagger

    def describe(self):
        paginator = self.client.get_paginator('describe_log_groups')
        for page in paginator.paginate(logGroupNamePrefix=self.spec.log_group_name):
            for group in page.get('logGroups', []):
                if group['logGroupName'] == self.spec.log_group_name:
                    return group
        return None

    @classmethod
    def spec_from_model(cls, client, model):
        return LogGroupSpec(
            log_group_name=model['logGroupName'],
            retention_in_days=model.get('retentionInDays'),
            kms_key_id=model.get('kmsKeyId'),
            log_group_class=model.get('logGroupClass'),
        )

    @classmethod
    def physical_id_from_model(cls, model):
        return log_group_arn(model)

    @classmethod
    def outputs_from_model(cls, model):
        return {
            'arn': log_group_arn(model),
            'creation_time': model.get('creationTime'),
            'stored_bytes': model.get('storedBytes'),
        }

    def _create(self, ui, state):
        params = {'logGroupName': self.spec.log_group_name}
        if self.spec.kms_key_id:
            params['kmsKeyId'] = self.spec.kms_key_id
        if self.spec.log_group_class:
            params['logGroupClass'] = self.spec.log_group_class

        self.client.create_log_group(**params)

        model = self.describe()
        self.physical_id = log_group_arn(model)
        self.outputs = self.outputs_from_model(model)
        state.save()

        if self.spec.retention_in_days is not None:
            self._put_retention()
            state.save()

    def _update(self, ui, state, previous, changed):
        if 'retention_in_days' in changed:
            self._put_retention()
            state.save()

        if 'kms_key_id' in changed:
            if self.spec.kms_key_id:
                self.client.associate_kms_key(
                    logGroupName=self.spec.log_group_name, kmsKeyId=self.spec.kms_key_id
                )
            else:
                self.client.disassociate_kms_key(logGroupName=self.spec.log_group_name)
            state.save()

    def _put_retention(self):
        if self.spec.retention_in_days is None:
            self.client.delete_retention_policy(logGroupName=self.spec.log_group_name)
        else:
            self.client.put_retention_policy(
                logGroupName=self.spec.log_group_name,
                retentionInDays=self.spec.retention_in_days,
            )

    def _delete(self, ui, state):
        self.client.delete_log_group(logGroupName=self.spec.log_group_name)


class LogGroupFinder(AwsFinder):
    """Query log groups by exact name or name prefix."""

    resource_class = LogGroupResource
    filter_names = frozenset(['log-group-name', 'log-group-name-prefix'])

    def find_all_aws(self, client):
        return self._describe(client)

    def find_aws(self, client, filters):
        prefix = filters.get('log-group-name') or filters.get('log-group-name-prefix')
        groups = self._describe(client, prefix)
        if 'log-group-name' in filters:
            groups = [g for g in groups if g['logGroupName'] == filters['log-group-name']]
        if 'log-group-name-prefix' in filters:
            groups = [g for g in groups if g['logGroupName'].startswith(filters['log-group-name-prefix'])]
        return groups

    def _describe(self, client, prefix: Optional[str] = None):
        kwargs = {'logGroupNamePrefix': prefix} if prefix else {}
        groups = []
        for page in client.get_paginator('describe_log_groups').paginate(**kwargs):
            groups.extend(page.get('logGroups', []))
        return groups
