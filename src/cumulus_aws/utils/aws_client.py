"""AWS client management and session handling."""

import boto3
from typing import Optional, Dict, Any

from cumulus_aws.clientconfig.models import ClientConfiguration
from cumulus_aws.clientconfig.policy import compile_retry_policy
from cumulus_aws.constants import DEFAULT_CLIENT_CONFIGURATION
from cumulus_aws.utils.errors import ConfigurationError
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


class AWSClientManager:
    """Manages the boto3 session and the clients built from named client configurations."""

    def __init__(
        self,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        client_configurations: Optional[Dict[str, ClientConfiguration]] = None,
    ):
        """Initialize AWS client manager.

        Args:
            profile: AWS profile name to use
            region: AWS region to use
            client_configurations: Named client configurations; clients use
                'default' unless another name is requested
        """
        self.profile = profile
        self.region = region
        self.client_configurations = dict(client_configurations or {})
        self._session: Optional[boto3.Session] = None
        self._clients: Dict[str, Any] = {}

    @property
    def session(self) -> boto3.Session:
        """Get or create boto3 session."""
        if self._session is None:
            kwargs = {}
            if self.profile:
                kwargs['profile_name'] = self.profile
            if self.region:
                kwargs['region_name'] = self.region

            self._session = boto3.Session(**kwargs)
            logger.info(f"Created AWS session - Region: {self._session.region_name}, "
                        f"Profile: {self.profile or 'default'}")

        return self._session

    def get_configuration(self, name: Optional[str] = None) -> ClientConfiguration:
        """Look up a named client configuration.

        The default configuration may be omitted, in which case botocore's
        standard settings apply. Any other name must exist.

        Raises:
            ConfigurationError: If a non-default name is not configured
        """
        name = name or DEFAULT_CLIENT_CONFIGURATION
        if name in self.client_configurations:
            return self.client_configurations[name]
        if name == DEFAULT_CLIENT_CONFIGURATION:
            return ClientConfiguration()

        valid = ", ".join(f"'{key}'" for key in sorted(self.client_configurations)) or "none"
        raise ConfigurationError(
            f"Client configuration '{name}' is not defined (defined: {valid})."
        )

    def get_client(self, service_name: str, configuration: Optional[str] = None):
        """Get a boto3 client for a service.

        The client is built with the HTTP settings of the named configuration
        and its retry policy installed. Clients are cached per service and
        configuration name.

        Args:
            service_name: AWS service name (e.g., 'logs', 'sqs')
            configuration: Client configuration name, 'default' when omitted

        Returns:
            Boto3 client for the service
        """
        configuration = configuration or DEFAULT_CLIENT_CONFIGURATION
        cache_key = f"{service_name}:{configuration}"

        if cache_key in self._clients:
            return self._clients[cache_key]

        client_configuration = self.get_configuration(configuration)
        client = self.session.client(service_name, config=client_configuration.to_botocore_config())

        if client_configuration.retry_policy is not None:
            compile_retry_policy(client_configuration.retry_policy).install(client)

        self._clients[cache_key] = client
        logger.debug(f"Created {service_name} client (cached: {cache_key})")

        return client

    def get_region(self) -> str:
        """Get the AWS region."""
        return self.session.region_name

    def clear_cache(self):
        """Clear cached clients and sessions."""
        self._clients.clear()
        self._session = None
        logger.debug("Cleared AWS client cache")
