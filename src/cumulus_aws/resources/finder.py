"""Finders: read-only queries over remote resources, outside the managed lifecycle."""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, FrozenSet, List, Optional, Type

from cumulus_aws.utils.errors import ConfigurationError
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


class AwsFinder(ABC):
    """Lists or searches one resource type.

    Subclasses implement the raw queries returning API models;
    ``find_all()`` and ``find()`` wrap the results as managed resources.
    """

    resource_class: ClassVar[Type]
    filter_names: ClassVar[FrozenSet[str]] = frozenset()

    def __init__(self, clients, client_configuration: Optional[str] = None):
        """Initialize finder.

        Args:
            clients: AWSClientManager used to build the service client
            client_configuration: Name of the client configuration to use
        """
        self.clients = clients
        self.client_configuration = client_configuration

    @property
    def client(self):
        return self.clients.get_client(self.resource_class.service_name, self.client_configuration)

    @abstractmethod
    def find_all_aws(self, client) -> List[Dict[str, Any]]:
        """Return the API model of every resource of this type."""

    @abstractmethod
    def find_aws(self, client, filters: Dict[str, str]) -> List[Dict[str, Any]]:
        """Return the API models matching filters (already checked against filter_names)."""

    def check_filters(self, filters: Dict[str, str]) -> None:
        unknown = sorted(set(filters) - self.filter_names)
        if unknown:
            valid = ", ".join(f"'{name}'" for name in sorted(self.filter_names)) or "none"
            raise ConfigurationError(
                f"Unknown filter(s) {unknown} for {self.resource_class.resource_type} (valid: {valid})."
            )

    def find_all(self) -> List[Any]:
        return [self._to_resource(model) for model in self.find_all_aws(self.client)]

    def find(self, filters: Dict[str, str]) -> List[Any]:
        """Query resources matching every filter; no filters means all resources.

        Raises:
            ConfigurationError: If a filter name is not supported
        """
        if not filters:
            return self.find_all()
        self.check_filters(filters)
        return [self._to_resource(model) for model in self.find_aws(self.client, filters)]

    def _to_resource(self, model: Dict[str, Any]):
        return self.resource_class.from_model(self.clients, model, self.client_configuration)
