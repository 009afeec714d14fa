"""Unit tests for loading client configurations from YAML."""

import pytest

from cumulus_aws.clientconfig.parser import (
    ConfigValidationError,
    load_client_configurations,
    parse_client_configurations,
)
from cumulus_aws.utils.errors import ConfigurationError

VALID_CONFIG = """
client-configurations:
  default:
    http-client-configuration:
      connection-timeout: 2s
      socket-timeout: 30s
  throttle-aware:
    retry-policy:
      retry-count: 5
      max-backoff: 10s
      retry-condition:
        or-retry-condition:
          retry-conditions:
            - retry-on-throttling-condition: {}
            - retry-on-status-codes-condition:
                status-codes: [500, 503]
            - token-bucket-retry-condition:
                bucket-size: 100
                throttling-exception-cost: 1
"""


@pytest.fixture
def write_config(tmp_path):
    def write(text):
        path = tmp_path / "cumulus.yaml"
        path.write_text(text)
        return str(path)
    return write


class TestLoadClientConfigurations:
    """Test reading configuration files."""

    def test_valid_file(self, write_config):
        configurations = load_client_configurations(write_config(VALID_CONFIG))

        assert sorted(configurations) == ['default', 'throttle-aware']
        assert configurations['default'].http_client_configuration.socket_timeout == 30.0
        assert configurations['throttle-aware'].retry_policy.retry_count == 5

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigurationError, match="Configuration file not found"):
            load_client_configurations(str(tmp_path / "missing.yaml"))

    def test_invalid_yaml(self, write_config):
        with pytest.raises(ConfigurationError, match="Failed to parse YAML"):
            load_client_configurations(write_config("client-configurations: [unclosed"))

    def test_top_level_must_be_mapping(self, write_config):
        with pytest.raises(ConfigurationError, match="Expected a mapping"):
            load_client_configurations(write_config("- just\n- a list\n"))

    def test_missing_section(self, write_config):
        assert load_client_configurations(write_config("other: 1\n")) == {}


class TestParseClientConfigurations:
    """Test validation of the client-configurations section."""

    def test_empty_name_is_default(self):
        configurations = parse_client_configurations({'': {}})
        assert list(configurations) == ['default']

    def test_schema_errors_are_collected(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            parse_client_configurations({
                'a': {'retry-policy': {'retry-count': 'many'}},
                'b': {'unknown-setting': True},
            })

        error = exc_info.value
        assert len(error.errors) == 2
        assert error.errors[0]['loc'][:2] == ['client-configurations', 'a']
        assert "client-configurations -> b -> unknown-setting" in str(error)

    def test_semantic_errors_name_the_configuration(self):
        with pytest.raises(ConfigurationError) as exc_info:
            parse_client_configurations({
                'strict': {
                    'retry-policy': {
                        'retry-condition': {
                            'max-number-of-retry-condition': {'max-number-of-retries': 3},
                            'retry-on-throttling-condition': {},
                        },
                    },
                },
            })

        assert exc_info.value.message.startswith("Client configuration 'strict': Only one of ")

    def test_and_condition_at_top_level(self):
        configurations = parse_client_configurations({
            'default': {
                'retry-policy': {
                    'retry-condition': {
                        'and-retry-condition': {
                            'retry-conditions': [
                                {'retry-on-throttling-condition': {}},
                                {'token-bucket-retry-condition': {'bucket-size': 10}},
                            ],
                        },
                    },
                },
            },
        })

        retry_condition = configurations['default'].retry_policy.retry_condition
        assert retry_condition.configured_variants() == ['and-retry-condition']

    def test_section_must_be_mapping(self):
        with pytest.raises(ConfigurationError, match="must be a mapping"):
            parse_client_configurations(['default'])

    def test_null_block_uses_defaults(self):
        configurations = parse_client_configurations({'default': None})
        assert configurations['default'].retry_policy is None
