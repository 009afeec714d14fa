"""Managed resource base classes and the create/refresh/update/delete template.

A managed resource pairs an immutable spec (what the configuration asks for)
with the identity AWS assigned to it (``physical_id``) and the read-only values
AWS reports about it (``outputs``). The orchestration engine drives it through
four lifecycle calls:

* ``refresh()`` re-reads the remote resource and reports whether it exists.
* ``create(ui, state)`` creates it, checkpointing ``state`` after every side effect.
* ``update(ui, state, previous, changed_fields)`` sends only the changed fields.
* ``delete(ui, state)`` removes it, treating "already gone" as success.

Subclasses implement the service calls through a small set of hooks; the
public lifecycle methods below are not meant to be overridden.
"""

from abc import ABC, abstractmethod
from typing import Any, ClassVar, Dict, FrozenSet, Iterable, List, NamedTuple, Optional, Set, Type

from botocore.exceptions import ClientError
from pydantic import BaseModel, ConfigDict, Field

from cumulus_aws.constants import DEFAULT_WAIT_INTERVAL, DEFAULT_WAIT_TIMEOUT, NOT_FOUND_ERROR_CODES
from cumulus_aws.state.models import ResourceRecord
from cumulus_aws.tagging.diff import apply_tag_diff, reconcile
from cumulus_aws.tagging.validation import TagSet
from cumulus_aws.utils.errors import ConfigurationError, is_not_found
from cumulus_aws.utils.logging import LogContext, get_logger
from cumulus_aws.utils.wait import wait_until

logger = get_logger(__name__)


def updatable(*args: Any, **kwargs: Any) -> Any:
    """Declare a spec field that can be changed in place after creation.

    Takes the same arguments as pydantic.Field; the default is None.
    """
    if not args and "default_factory" not in kwargs:
        args = (None,)
    return Field(*args, json_schema_extra={"updatable": True}, **kwargs)


class ResourceSpec(BaseModel):
    """Immutable configured state of a resource.

    Fields use hyphenated aliases. Fields declared with ``updatable()`` may
    change between applies; changing any other field requires replacement,
    which is decided by the engine, not here.
    """

    model_config = ConfigDict(
        alias_generator=lambda name: name.replace("_", "-"),
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )

    @classmethod
    def updatable_fields(cls) -> FrozenSet[str]:
        return frozenset(
            name for name, field in cls.model_fields.items()
            if isinstance(field.json_schema_extra, dict) and field.json_schema_extra.get("updatable")
        )

    def changed_fields(self, previous: "ResourceSpec") -> Set[str]:
        """Names of the configured fields whose value differs from previous.

        Fields this spec leaves unset are not managed: a refreshed snapshot
        carries the server's defaults for them, which must not read as a change.
        """
        return {
            name for name in self.model_fields_set
            if getattr(self, name) != getattr(previous, name)
        }


class TaggableSpec(ResourceSpec):
    tags: TagSet = updatable(default_factory=dict)


class ResourceSnapshot(NamedTuple):
    """Everything refresh() replaces, built before any of it is assigned."""

    spec: ResourceSpec
    physical_id: Optional[str]
    outputs: Dict[str, Any]


class ManagedResource(ABC):
    """Base class for a single remote AWS resource."""

    resource_type: ClassVar[str]
    service_name: ClassVar[str]
    spec_class: ClassVar[Type[ResourceSpec]]
    key_field: ClassVar[str]
    not_found_codes: ClassVar[FrozenSet[str]] = NOT_FOUND_ERROR_CODES

    wait_timeout: float = DEFAULT_WAIT_TIMEOUT
    wait_interval: float = DEFAULT_WAIT_INTERVAL

    def __init__(self, clients, spec: ResourceSpec, client_configuration: Optional[str] = None):
        """Initialize resource.

        Args:
            clients: AWSClientManager used to build service clients
            spec: Configured state of the resource
            client_configuration: Name of the client configuration to use
        """
        self.clients = clients
        self.spec = spec
        self.client_configuration = client_configuration
        self.physical_id: Optional[str] = None
        self.outputs: Dict[str, Any] = {}

    @property
    def client(self):
        return self.clients.get_client(self.service_name, self.client_configuration)

    @property
    def name(self) -> str:
        return getattr(self.spec, self.key_field)

    @property
    def key(self) -> str:
        return f"{self.resource_type}::{self.name}"

    def parents(self) -> List["ManagedResource"]:
        """Resources this one references (non-owning)."""
        return []

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.key!r}, physical_id={self.physical_id!r})"

    # --- lifecycle (template methods) --------------------------------------

    def refresh(self) -> bool:
        """Re-read the remote resource.

        Returns:
            False if AWS reports the resource does not exist (nothing local is
            changed), True after spec, physical id and outputs are replaced
        """
        try:
            model = self.describe()
            if model is None:
                return False
            snapshot = self.snapshot_from(self.client, model)
        except ClientError as e:
            if is_not_found(e, self.not_found_codes):
                logger.debug(f"{self.key} not found during refresh")
                return False
            raise

        self._apply_snapshot(snapshot)
        return True

    def create(self, ui, state) -> None:
        """Create the remote resource.

        Args:
            ui: Console for progress output, may be None
            state: Checkpoint target; save() is called once the identifier is
                known and after each later side-effecting step
        """
        with LogContext(logger, resource_id=self.key, resource_type=self.resource_type, operation='create'):
            self._report(ui, f"Creating {self.key}")
            self._create(ui, state)
            self._after_create(ui, state)
            logger.info(f"Created {self.physical_id}")

    def update(self, ui, state, previous: "ManagedResource", changed_fields: Iterable[str]) -> None:
        """Apply changed fields to the remote resource.

        Args:
            ui: Console for progress output, may be None
            state: Checkpoint target
            previous: The resource as last applied; identity and outputs are taken from it
            changed_fields: Names of spec fields that differ from previous

        Raises:
            ConfigurationError: If a changed field cannot be updated in place
        """
        changed = set(changed_fields)
        fixed = changed - self.spec_class.updatable_fields()
        if fixed:
            raise ConfigurationError(
                f"Field(s) {sorted(fixed)} of {self.key} cannot be updated in place."
            )

        self.physical_id = previous.physical_id
        self.outputs = dict(previous.outputs)

        with LogContext(logger, resource_id=self.key, resource_type=self.resource_type, operation='update'):
            self._report(ui, f"Updating {self.key}: {', '.join(sorted(changed))}")
            self._update_fields(ui, state, previous, changed)

    def delete(self, ui, state) -> None:
        """Delete the remote resource; a resource that is already gone counts as deleted."""
        with LogContext(logger, resource_id=self.key, resource_type=self.resource_type, operation='delete'):
            self._report(ui, f"Deleting {self.key}")
            try:
                self._delete(ui, state)
            except ClientError as e:
                if not is_not_found(e, self.not_found_codes):
                    raise
                logger.info(f"{self.key} was already deleted")

    def changed_fields(self, previous: "ManagedResource") -> Set[str]:
        return self.spec.changed_fields(previous.spec)

    def to_record(self) -> ResourceRecord:
        return ResourceRecord(
            key=self.key,
            type=self.resource_type,
            physical_id=self.physical_id,
            spec=self.spec.model_dump(by_alias=True, mode="json"),
            outputs=self.outputs,
            parents=[parent.key for parent in self.parents()],
        )

    @classmethod
    def from_model(cls, clients, model: Dict[str, Any], client_configuration: Optional[str] = None):
        """Build a resource from an API model returned by a finder."""
        client = clients.get_client(cls.service_name, client_configuration)
        snapshot = cls.snapshot_from(client, model)
        resource = cls(
            clients,
            snapshot.spec,
            client_configuration=client_configuration,
            **cls.references_from_model(clients, model),
        )
        resource._apply_snapshot(snapshot)
        return resource

    # --- helpers -----------------------------------------------------------

    @classmethod
    def snapshot_from(cls, client, model: Dict[str, Any]) -> ResourceSnapshot:
        return ResourceSnapshot(
            spec=cls.spec_from_model(client, model),
            physical_id=cls.physical_id_from_model(model),
            outputs=cls.outputs_from_model(model),
        )

    def _apply_snapshot(self, snapshot: ResourceSnapshot) -> None:
        self.spec = snapshot.spec
        self.physical_id = snapshot.physical_id
        self.outputs = snapshot.outputs

    def _update_fields(self, ui, state, previous, changed: Set[str]) -> None:
        if changed:
            self._update(ui, state, previous, changed)

    def _after_create(self, ui, state) -> None:
        pass

    def _report(self, ui, message: str) -> None:
        logger.info(message)
        if ui is not None:
            ui.print(message)

    def _wait(self, check, operation: str) -> None:
        wait_until(check, operation, timeout=self.wait_timeout, interval=self.wait_interval)

    def _wait_for_deletion(self, describe) -> None:
        """Poll describe() until AWS reports not-found; other errors are fatal."""
        def gone() -> bool:
            try:
                describe()
            except ClientError as e:
                if is_not_found(e, self.not_found_codes):
                    return True
                raise
            return False

        self._wait(gone, f"deletion of {self.key}")

    # --- hooks -------------------------------------------------------------

    @classmethod
    def references_from_model(cls, clients, model: Dict[str, Any]) -> Dict[str, Any]:
        """Constructor keyword arguments for parent references found in an API model."""
        return {}

    @abstractmethod
    def describe(self) -> Optional[Dict[str, Any]]:
        """Fetch the API model, None (or a not-found ClientError) if absent."""

    @classmethod
    @abstractmethod
    def spec_from_model(cls, client, model: Dict[str, Any]) -> ResourceSpec:
        """Translate an API model into a spec."""

    @classmethod
    @abstractmethod
    def physical_id_from_model(cls, model: Dict[str, Any]) -> Optional[str]:
        pass

    @classmethod
    def outputs_from_model(cls, model: Dict[str, Any]) -> Dict[str, Any]:
        return {}

    @abstractmethod
    def _create(self, ui, state) -> None:
        """Issue the create call(s); set physical_id and call state.save() once it is known."""

    @abstractmethod
    def _update(self, ui, state, previous, changed: Set[str]) -> None:
        """Issue only the call(s) mutating the changed fields."""

    @abstractmethod
    def _delete(self, ui, state) -> None:
        pass


class TaggableResource(ManagedResource):
    """A managed resource whose tags are reconciled through a service tagger.

    Tags are loaded on refresh, applied as the last step of create and
    reconciled against the previous tags on update.
    """

    tagger_class: ClassVar[type]

    @property
    def tagger(self):
        return self.tagger_class(self.client)

    def tag_identifier(self) -> str:
        """Identifier the tagging API expects; the physical id unless overridden."""
        return self.physical_id

    @classmethod
    def tag_identifier_from_model(cls, model: Dict[str, Any]) -> str:
        return cls.physical_id_from_model(model)

    @classmethod
    def snapshot_from(cls, client, model: Dict[str, Any]) -> ResourceSnapshot:
        tags = cls.tagger_class(client).load(cls.tag_identifier_from_model(model))
        snapshot = super().snapshot_from(client, model)
        return snapshot._replace(spec=snapshot.spec.model_copy(update={"tags": tags}))

    def _after_create(self, ui, state) -> None:
        diff = reconcile({}, self.spec.tags)
        if not diff.is_empty:
            apply_tag_diff(self.tagger, self.tag_identifier(), diff)
            state.save()

    def _update_fields(self, ui, state, previous, changed: Set[str]) -> None:
        super()._update_fields(ui, state, previous, changed - {"tags"})

        if "tags" in changed:
            diff = reconcile(previous.spec.tags, self.spec.tags)
            if not diff.is_empty:
                apply_tag_diff(self.tagger, self.tag_identifier(), diff)
                state.save()
