"""
Pytest Configuration and Shared Fixtures
=========================================

Common fixtures used across all test modules.

All AWS calls are served by moto; the fake credentials below keep botocore
from ever looking for real ones.
"""

import logging
import os

import pytest
from moto import mock_aws

from cumulus_aws.state.manager import StateManager
from cumulus_aws.utils.aws_client import AWSClientManager

# Set at module load time so clients built during collection never see real credentials
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_SECURITY_TOKEN"] = "testing"
os.environ["AWS_SESSION_TOKEN"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ.pop("AWS_PROFILE", None)


@pytest.fixture
def aws():
    """
    AWSClientManager whose clients talk to moto.

    Everything created through it disappears when the test ends.
    """
    with mock_aws():
        yield AWSClientManager(region="us-east-1")


@pytest.fixture
def state(tmp_path):
    """StateManager writing to a temporary state file."""
    return StateManager(str(tmp_path / "state.json"))


@pytest.fixture(autouse=True)
def restore_root_logger():
    """Undo setup_logging() calls made by a test."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers[:] = handlers
    root.setLevel(level)
