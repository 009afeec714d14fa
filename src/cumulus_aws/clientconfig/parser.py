"""YAML loader for named client configurations."""

from pathlib import Path
from typing import Dict, List, Optional

import yaml
from pydantic import ValidationError

from cumulus_aws.clientconfig.models import ClientConfiguration
from cumulus_aws.constants import DEFAULT_CLIENT_CONFIGURATION
from cumulus_aws.utils.errors import ConfigurationError, ErrorContext

SECTION = "client-configurations"


class ConfigValidationError(ConfigurationError):
    """Raised when a configuration block fails schema validation."""

    def __init__(self, message: str, errors: Optional[List[Dict]] = None):
        self.errors = errors or []
        super().__init__(message, context=ErrorContext(additional_info={"errors": self.errors}))

    def __str__(self) -> str:
        """Format validation errors for display."""
        if not self.errors:
            return self.message

        error_lines = [self.message, ""]
        for error in self.errors:
            location = " -> ".join(str(loc) for loc in error.get("loc", []))
            msg = error.get("msg", "Unknown error")
            error_lines.append(f"  - {location}: {msg}")

        return "\n".join(error_lines)


def parse_client_configurations(data: Optional[Dict]) -> Dict[str, ClientConfiguration]:
    """Validate the client-configurations section of an already-loaded document.

    Args:
        data: Mapping of configuration name to configuration block. A block
            under an empty name is registered as the default configuration.

    Returns:
        Mapping of configuration name to checked ClientConfiguration

    Raises:
        ConfigValidationError: If a block does not match the schema
        ConfigurationError: If a block is structurally valid but semantically wrong
    """
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"'{SECTION}' must be a mapping of name to client configuration.")

    configurations: Dict[str, ClientConfiguration] = {}
    errors: List[Dict] = []

    for name, block in data.items():
        name = str(name).strip() if name else DEFAULT_CLIENT_CONFIGURATION
        try:
            configurations[name] = ClientConfiguration.model_validate(block or {})
        except ValidationError as e:
            for error in e.errors():
                errors.append({"loc": [SECTION, name] + list(error["loc"]), "msg": error["msg"]})

    if errors:
        raise ConfigValidationError(
            f"Client configuration validation failed with {len(errors)} error(s)", errors
        )

    for name, configuration in configurations.items():
        try:
            configuration.check()
        except ConfigurationError as e:
            raise ConfigurationError(f"Client configuration '{name}': {e.message}", cause=e)

    return configurations


def load_client_configurations(config_path: str) -> Dict[str, ClientConfiguration]:
    """Load named client configurations from a YAML file.

    Raises:
        ConfigurationError: If the file is missing, is not valid YAML or fails validation
    """
    path = Path(config_path)
    if not path.exists():
        raise ConfigurationError(f"Configuration file not found: {path}")

    try:
        with open(path, "r") as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse YAML: {e}", cause=e)

    if not isinstance(document, dict):
        raise ConfigurationError(f"Expected a mapping at the top of {path}")

    return parse_client_configurations(document.get(SECTION))
