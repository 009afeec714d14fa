"""Unit tests for the command line interface."""

import pytest
from click.testing import CliRunner

from cumulus_aws.cli.main import cli, parse_filters
from cumulus_aws.utils.errors import ConfigurationError

VALID_CONFIG = """
client-configurations:
  default:
    http-client-configuration:
      socket-timeout: 30s
  throttle-aware:
    retry-policy:
      retry-count: 4
      retry-condition:
        retry-on-throttling-condition: {}
"""

CONFLICTING_CONFIG = """
client-configurations:
  default:
    retry-policy:
      retry-condition:
        max-number-of-retry-condition:
          max-number-of-retries: 3
        retry-on-throttling-condition: {}
"""


@pytest.fixture
def runner():
    return CliRunner(env={'COLUMNS': '200'})


def invoke(runner, *args):
    return runner.invoke(cli, ['--log-dir', '', '--region', 'us-east-1', *args])


@pytest.fixture
def config_file(tmp_path):
    def write(text):
        path = tmp_path / 'cumulus.yaml'
        path.write_text(text)
        return str(path)
    return write


class TestValidateConfig:
    """Test the validate-config command."""

    def test_valid(self, runner, config_file):
        result = invoke(runner, 'validate-config', config_file(VALID_CONFIG))

        assert result.exit_code == 0, result.output
        assert 'throttle-aware' in result.output
        assert 'throttling' in result.output
        assert '2 client configuration(s) are valid' in result.output

    def test_conflicting_variants(self, runner, config_file):
        result = invoke(runner, 'validate-config', config_file(CONFLICTING_CONFIG))

        assert result.exit_code == 1
        assert 'Only one of' in result.output

    def test_missing_file(self, runner, tmp_path):
        result = invoke(runner, 'validate-config', str(tmp_path / 'missing.yaml'))

        assert result.exit_code == 1
        assert 'Configuration file not found' in result.output


class TestFind:
    """Test the find command against moto."""

    def test_find_queues(self, runner, aws):
        client = aws.get_client('sqs')
        client.create_queue(QueueName='jobs', tags={'Team': 'x'})
        client.create_queue(QueueName='mail')

        result = invoke(runner, 'find', 'sqs-queue', '--filter', 'name-prefix=jobs')

        assert result.exit_code == 0, result.output
        assert 'aws::sqs-queue::jobs' in result.output
        assert 'Team=x' in result.output
        assert 'mail' not in result.output

    def test_nothing_found(self, runner, aws):
        result = invoke(runner, 'find', 'sns-topic')

        assert result.exit_code == 0, result.output
        assert 'No sns-topic resources found' in result.output

    def test_unknown_filter(self, runner, aws):
        result = invoke(runner, 'find', 'sqs-queue', '--filter', 'color=red')

        assert result.exit_code == 1
        assert 'Unknown filter' in result.output

    def test_unknown_client_configuration(self, runner, aws, config_file):
        result = invoke(
            runner, 'find', 'sqs-queue', '--config', config_file(VALID_CONFIG), '--client-config', 'other'
        )

        assert result.exit_code == 1
        assert "Client configuration 'other' is not defined" in result.output

    def test_unknown_type(self, runner):
        result = invoke(runner, 'find', 'lambda-function')

        assert result.exit_code == 2


class TestParseFilters:
    """Test key=value parsing."""

    def test_pairs(self):
        assert parse_filters(('name=a', 'name-prefix = b=c')) == {'name': 'a', 'name-prefix': 'b=c'}

    def test_missing_separator(self):
        with pytest.raises(ConfigurationError, match="expected key=value"):
            parse_filters(('name',))
