"""Unit tests for the managed resource lifecycle template."""

from typing import Optional
from unittest.mock import MagicMock, call

import pytest
from botocore.exceptions import ClientError

from cumulus_aws.resources.base import TaggableResource, TaggableSpec, updatable
from cumulus_aws.utils.errors import ConfigurationError, WaitTimeoutError


def client_error(code, operation='DescribeWidget'):
    return ClientError({'Error': {'Code': code, 'Message': code}}, operation)


class WidgetSpec(TaggableSpec):
    name: str
    size: Optional[int] = updatable()
    color: str = 'red'


class WidgetResource(TaggableResource):
    """A resource whose service calls all go to a mock client."""

    resource_type = 'aws::widget'
    service_name = 'widgets'
    spec_class = WidgetSpec
    key_field = 'name'
    tagger_class = MagicMock()

    def describe(self):
        return self.client.describe_widget(Name=self.spec.name)

    @classmethod
    def spec_from_model(cls, client, model):
        return WidgetSpec(name=model['Name'], size=model.get('Size'), color=model.get('Color', 'red'))

    @classmethod
    def physical_id_from_model(cls, model):
        return model['Arn']

    @classmethod
    def outputs_from_model(cls, model):
        return {'arn': model['Arn'], 'status': model.get('Status')}

    def _create(self, ui, state):
        self.physical_id = self.client.create_widget(Name=self.spec.name)['Arn']
        state.save()

    def _update(self, ui, state, previous, changed):
        for field_name in sorted(changed):
            self.client.update_widget(Name=self.spec.name, Field=field_name)
        state.save()

    def _delete(self, ui, state):
        self.client.delete_widget(Name=self.spec.name)


@pytest.fixture
def client():
    return MagicMock()


@pytest.fixture
def tagger():
    tagger = MagicMock()
    tagger.load.return_value = {}
    WidgetResource.tagger_class = MagicMock(return_value=tagger)
    return tagger


@pytest.fixture
def clients(client):
    clients = MagicMock()
    clients.get_client.return_value = client
    return clients


@pytest.fixture
def state():
    return MagicMock()


def widget(clients, physical_id=None, **fields):
    resource = WidgetResource(clients, WidgetSpec(name='w1', **fields))
    resource.physical_id = physical_id
    return resource


class TestSpec:
    """Test spec metadata and diffing."""

    def test_updatable_fields(self):
        assert WidgetSpec.updatable_fields() == frozenset({'size', 'tags'})

    def test_changed_fields(self):
        old = WidgetSpec(name='w1', size=1, tags={'A': '1'})
        new = WidgetSpec(name='w1', size=2, tags={'A': '1'})

        assert new.changed_fields(old) == {'size'}

    def test_unset_fields_are_not_changes(self):
        refreshed = WidgetSpec(name='w1', size=5, color='blue', tags={'aws-default': 'y'})
        desired = WidgetSpec(name='w1')

        assert desired.changed_fields(refreshed) == set()

    def test_explicit_none_is_a_change(self):
        refreshed = WidgetSpec(name='w1', size=5)
        desired = WidgetSpec.model_validate({'name': 'w1', 'size': None})

        assert desired.changed_fields(refreshed) == {'size'}

    def test_refreshed_snapshot_matches_configuration(self, clients, client, tagger):
        client.describe_widget.return_value = {'Name': 'w1', 'Arn': 'arn:w1', 'Size': 3, 'Color': 'red'}
        tagger.load.return_value = {'Team': 'x'}
        desired = widget(clients, size=3, tags={'Team': 'x'})

        found = widget(clients)
        assert found.refresh() is True

        assert desired.changed_fields(found) == set()

    def test_hyphenated_aliases(self):
        spec = WidgetSpec.model_validate({'name': 'w1', 'size': 3, 'tags': {'Team': 'x'}})
        assert spec.model_dump(by_alias=True)['tags'] == {'Team': 'x'}

    def test_reserved_tag_prefix_rejected(self):
        with pytest.raises(ValueError, match="reserved"):
            WidgetSpec(name='w1', tags={'aws:owner': 'me'})


class TestRefresh:
    """Test re-reading remote state."""

    def test_replaces_spec_identity_and_outputs(self, clients, client, tagger):
        client.describe_widget.return_value = {'Name': 'w1', 'Size': 4, 'Arn': 'arn:w1', 'Status': 'OK'}
        tagger.load.return_value = {'Team': 'x'}
        resource = widget(clients)

        assert resource.refresh() is True

        assert resource.spec == WidgetSpec(name='w1', size=4, tags={'Team': 'x'})
        assert resource.physical_id == 'arn:w1'
        assert resource.outputs == {'arn': 'arn:w1', 'status': 'OK'}
        tagger.load.assert_called_once_with('arn:w1')

    def test_not_found_leaves_resource_untouched(self, clients, client, tagger):
        client.describe_widget.side_effect = client_error('ResourceNotFoundException')
        resource = widget(clients, physical_id='arn:old', size=1)
        resource.outputs = {'arn': 'arn:old'}
        spec = resource.spec

        assert resource.refresh() is False

        assert resource.spec is spec
        assert resource.physical_id == 'arn:old'
        assert resource.outputs == {'arn': 'arn:old'}

    def test_not_found_while_loading_tags_leaves_resource_untouched(self, clients, client, tagger):
        client.describe_widget.return_value = {'Name': 'w1', 'Size': 9, 'Arn': 'arn:w1'}
        tagger.load.side_effect = client_error('ResourceNotFoundException', 'ListTags')
        resource = widget(clients, physical_id='arn:old', size=1)

        assert resource.refresh() is False

        assert resource.spec.size == 1
        assert resource.physical_id == 'arn:old'
        assert resource.outputs == {}

    def test_missing_model_is_not_found(self, clients, client, tagger):
        client.describe_widget.return_value = None

        assert widget(clients).refresh() is False

    def test_other_errors_propagate(self, clients, client, tagger):
        client.describe_widget.side_effect = client_error('AccessDeniedException')

        with pytest.raises(ClientError):
            widget(clients).refresh()


class TestCreate:
    """Test creation and the tagging step that follows it."""

    def test_create_then_tag(self, clients, client, tagger, state):
        client.create_widget.return_value = {'Arn': 'arn:w1'}
        resource = widget(clients, tags={'Team': 'x'})

        resource.create(None, state)

        assert resource.physical_id == 'arn:w1'
        client.create_widget.assert_called_once_with(Name='w1')
        tagger.remove.assert_not_called()
        tagger.add.assert_called_once_with('arn:w1', {'Team': 'x'})
        assert state.save.call_count == 2

    def test_create_without_tags(self, clients, client, tagger, state):
        client.create_widget.return_value = {'Arn': 'arn:w1'}

        widget(clients).create(None, state)

        assert tagger.mock_calls == []
        assert state.save.call_count == 1

    def test_progress_is_reported(self, clients, client, tagger, state):
        client.create_widget.return_value = {'Arn': 'arn:w1'}
        ui = MagicMock()

        widget(clients).create(ui, state)

        ui.print.assert_called_once_with("Creating aws::widget::w1")


class TestUpdate:
    """Test diff-driven updates."""

    def test_single_field_issues_one_call_and_no_tag_calls(self, clients, client, tagger, state):
        previous = widget(clients, physical_id='arn:w1', size=1, tags={'Team': 'x'})
        previous.outputs = {'arn': 'arn:w1'}
        current = widget(clients, size=2, tags={'Team': 'x'})

        current.update(None, state, previous, current.changed_fields(previous))

        assert client.update_widget.call_args_list == [call(Name='w1', Field='size')]
        assert tagger.mock_calls == []
        assert current.physical_id == 'arn:w1'
        assert current.outputs == {'arn': 'arn:w1'}

    def test_tags_only(self, clients, client, tagger, state):
        previous = widget(clients, physical_id='arn:w1', tags={'Env': 'dev'})
        current = widget(clients, tags={'Env': 'prod', 'Team': 'x'})

        current.update(None, state, previous, {'tags'})

        client.update_widget.assert_not_called()
        assert tagger.mock_calls == [
            call.remove('arn:w1', ['Env']),
            call.add('arn:w1', {'Env': 'prod', 'Team': 'x'}),
        ]
        state.save.assert_called_once()

    def test_fields_before_tags(self, clients, client, tagger, state):
        calls = MagicMock()
        calls.attach_mock(client.update_widget, 'update_widget')
        calls.attach_mock(tagger.add, 'add')
        previous = widget(clients, physical_id='arn:w1', size=1)
        current = widget(clients, size=2, tags={'Team': 'x'})

        current.update(None, state, previous, {'size', 'tags'})

        assert [name for name, _, _ in calls.mock_calls] == ['update_widget', 'add']

    def test_non_updatable_field_rejected(self, clients, client, tagger, state):
        previous = widget(clients, physical_id='arn:w1')
        current = widget(clients, color='blue')

        with pytest.raises(ConfigurationError, match=r"\['color'\]"):
            current.update(None, state, previous, {'color'})

        assert client.mock_calls == []
        state.save.assert_not_called()

    def test_no_changes_no_calls(self, clients, client, tagger, state):
        previous = widget(clients, physical_id='arn:w1')
        current = widget(clients)

        current.update(None, state, previous, set())

        assert client.mock_calls == []
        assert tagger.mock_calls == []


class TestDelete:
    """Test deletion."""

    def test_delete(self, clients, client, tagger, state):
        widget(clients, physical_id='arn:w1').delete(None, state)

        client.delete_widget.assert_called_once_with(Name='w1')

    def test_already_deleted_is_success(self, clients, client, tagger, state):
        client.delete_widget.side_effect = client_error('ResourceNotFoundException', 'DeleteWidget')

        widget(clients, physical_id='arn:w1').delete(None, state)

    def test_other_errors_propagate(self, clients, client, tagger, state):
        client.delete_widget.side_effect = client_error('ResourceInUseException', 'DeleteWidget')

        with pytest.raises(ClientError):
            widget(clients).delete(None, state)


class TestWaitForDeletion:
    """Test polling until a resource is gone."""

    def test_returns_once_not_found(self, clients, client, tagger):
        resource = widget(clients)
        resource.wait_interval = 0
        describe = MagicMock(side_effect=[{'Status': 'DELETING'}, client_error('ResourceNotFoundException')])

        resource._wait_for_deletion(describe)

        assert describe.call_count == 2

    def test_times_out(self, clients, client, tagger):
        resource = widget(clients)
        resource.wait_interval = 0
        resource.wait_timeout = 0

        with pytest.raises(WaitTimeoutError, match="deletion of aws::widget::w1"):
            resource._wait_for_deletion(MagicMock(return_value={'Status': 'DELETING'}))

    def test_other_errors_propagate(self, clients, client, tagger):
        resource = widget(clients)
        resource.wait_interval = 0

        with pytest.raises(ClientError):
            resource._wait_for_deletion(MagicMock(side_effect=client_error('AccessDeniedException')))


class TestRecord:
    """Test state records."""

    def test_to_record(self, clients, tagger):
        resource = widget(clients, physical_id='arn:w1', size=2)
        resource.outputs = {'arn': 'arn:w1'}

        record = resource.to_record()

        assert record.key == 'aws::widget::w1'
        assert record.type == 'aws::widget'
        assert record.physical_id == 'arn:w1'
        assert record.spec == {'name': 'w1', 'size': 2, 'color': 'red', 'tags': {}}
        assert record.outputs == {'arn': 'arn:w1'}
        assert record.parents == []
