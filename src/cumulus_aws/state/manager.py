"""State manager: the checkpoint target of resource lifecycle operations."""

import json
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import ValidationError

from cumulus_aws.state.models import ResourceRecord, State
from cumulus_aws.utils.errors import StateError
from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


class StateManager:
    """Persists the records of tracked resources.

    Resources being created or updated are tracked by the caller; each call
    to save() writes a fresh record of every tracked resource, so a process
    that dies mid-operation leaves the latest known identifiers on disk.
    """

    def __init__(self, state_path: str):
        """
        Initialize StateManager.

        Args:
            state_path: Path to the state file
        """
        self.state_path = Path(state_path)
        self._state = State()
        self._tracked: Dict[str, object] = {}

    def exists(self) -> bool:
        """Check if state file exists."""
        return self.state_path.exists()

    def load(self) -> State:
        """
        Load state from file. A missing file yields an empty state.

        Raises:
            StateError: If state file is corrupted or invalid
        """
        if not self.exists():
            self._state = State()
            return self._state

        try:
            with open(self.state_path, "r") as f:
                self._state = State.model_validate(json.load(f))
        except json.JSONDecodeError as e:
            raise StateError(f"Failed to parse state file {self.state_path}: {e}", cause=e)
        except ValidationError as e:
            raise StateError(f"Invalid state file {self.state_path}: {e}", cause=e)

        return self._state

    def track(self, resource) -> None:
        """Include a resource in every following save()."""
        self._tracked[resource.key] = resource

    def untrack(self, resource) -> None:
        """Stop tracking a resource and drop its record."""
        self._tracked.pop(resource.key, None)
        self._state.remove_resource(resource.key)

    def records(self) -> List[ResourceRecord]:
        return list(self._state.resources.values())

    def get_record(self, key: str) -> Optional[ResourceRecord]:
        return self._state.get_resource(key)

    def save(self) -> None:
        """
        Checkpoint: refresh the records of tracked resources and write the state file.

        Raises:
            StateError: If state cannot be saved
        """
        for resource in self._tracked.values():
            self._state.add_resource(resource.to_record())
        self._state.timestamp = State().timestamp

        self.state_path.parent.mkdir(parents=True, exist_ok=True)
        temp_path = self.state_path.with_suffix(".tmp")
        try:
            with open(temp_path, "w") as f:
                f.write(self._state.model_dump_json(indent=2))

            # Atomic rename
            temp_path.replace(self.state_path)
        except OSError as e:
            raise StateError(f"Failed to save state file {self.state_path}: {e}", cause=e)

        logger.debug(f"Saved state with {len(self._state.resources)} resource(s)")
