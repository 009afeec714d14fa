"""Persisted state for managed resources."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ResourceRecord(BaseModel):
    """Snapshot of one managed resource as last known."""

    key: str = Field(..., description="Unique resource key (<type>::<name>)")
    type: str = Field(..., description="Resource type (e.g., aws::sqs-queue)")
    physical_id: Optional[str] = Field(None, description="Server-assigned identifier (ARN, URL, ...)")
    spec: Dict[str, Any] = Field(default_factory=dict, description="Configured fields, keyed by alias")
    outputs: Dict[str, Any] = Field(default_factory=dict, description="Read-only fields reported by AWS")
    parents: List[str] = Field(default_factory=list, description="Keys of referenced parent resources")


class State(BaseModel):
    """All resource records of one state file."""

    version: str = Field("1.0", description="State file format version")
    timestamp: datetime = Field(default_factory=_utcnow, description="Last update timestamp")
    resources: Dict[str, ResourceRecord] = Field(
        default_factory=dict, description="Records keyed by resource key"
    )

    def add_resource(self, record: ResourceRecord) -> None:
        self.resources[record.key] = record

    def remove_resource(self, key: str) -> Optional[ResourceRecord]:
        return self.resources.pop(key, None)

    def get_resource(self, key: str) -> Optional[ResourceRecord]:
        return self.resources.get(key)
