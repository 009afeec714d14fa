"""Tag reconciliation and service taggers."""

from cumulus_aws.tagging.diff import TagDiff, apply_tag_diff, reconcile
from cumulus_aws.tagging.validation import TagSet, validate_tags

__all__ = ["TagDiff", "apply_tag_diff", "reconcile", "TagSet", "validate_tags"]
