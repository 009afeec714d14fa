"""Tag reconciliation between the tags a resource has and the tags it should have."""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Mapping

from cumulus_aws.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class TagDiff:
    """Tags to add and tag keys to remove to turn one tag set into another.

    A key whose value changes appears in both: it is removed under the old
    value and then added with the new one.
    """

    to_add: Dict[str, str] = field(default_factory=dict)
    to_remove: FrozenSet[str] = frozenset()

    @property
    def is_empty(self) -> bool:
        return not self.to_add and not self.to_remove


def reconcile(current: Mapping[str, str], desired: Mapping[str, str]) -> TagDiff:
    """Compute the tag changes needed to turn current into desired.

    Args:
        current: Tags the resource has now
        desired: Tags the resource should have

    Returns:
        TagDiff whose to_remove holds keys that are stale or changed, and
        whose to_add holds keys that are new or changed (with desired values)
    """
    to_remove = frozenset(
        key for key, value in current.items()
        if key not in desired or desired[key] != value
    )
    to_add = {
        key: value for key, value in desired.items()
        if key not in current or current[key] != value
    }
    return TagDiff(to_add=to_add, to_remove=to_remove)


def apply_tag_diff(tagger, resource_id: str, diff: TagDiff) -> None:
    """Apply a TagDiff through a service tagger.

    Removes run before adds so a key changing value never exists under its old
    value once the new one is applied. Empty calls are skipped. Errors from
    either call propagate unchanged; a failure between the two leaves the
    resource partially tagged until the next update.

    Args:
        tagger: Object with remove(resource_id, keys) and add(resource_id, tags)
        resource_id: Identifier the service's tagging API expects
        diff: Changes to apply
    """
    if diff.to_remove:
        logger.debug(f"Removing tags {sorted(diff.to_remove)} from {resource_id}")
        tagger.remove(resource_id, sorted(diff.to_remove))

    if diff.to_add:
        logger.debug(f"Adding tags {sorted(diff.to_add)} to {resource_id}")
        tagger.add(resource_id, dict(diff.to_add))
