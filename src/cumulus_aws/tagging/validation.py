"""Tag constraints enforced on configured tag sets."""

from typing import Annotated, Dict, List

from pydantic import AfterValidator

from cumulus_aws.constants import MAX_TAGS_PER_RESOURCE, RESERVED_TAG_PREFIX


def validate_tags(tags: Dict[str, str]) -> List[str]:
    """Validate tags against AWS requirements.

    Args:
        tags: Dictionary of tags to validate

    Returns:
        List of validation error messages (empty if valid)
    """
    errors = []

    for key, value in tags.items():
        if not key:
            errors.append("Tag key cannot be empty")
        elif len(key) > 128:
            errors.append(f"Tag key exceeds 128 characters: {key}")
        elif key.startswith(RESERVED_TAG_PREFIX):
            errors.append(f"Tag key cannot start with '{RESERVED_TAG_PREFIX}' (reserved): {key}")

        if not isinstance(value, str):
            errors.append(f"Tag value must be a string for key '{key}': {value}")
        elif len(value) > 256:
            errors.append(f"Tag value exceeds 256 characters for key '{key}'")

    if len(tags) > MAX_TAGS_PER_RESOURCE:
        errors.append(f"Too many tags: {len(tags)} (AWS limit is {MAX_TAGS_PER_RESOURCE} per resource)")

    return errors


def _check_tag_set(tags: Dict[str, str]) -> Dict[str, str]:
    errors = validate_tags(tags)
    if errors:
        raise ValueError("; ".join(errors))
    return tags


# Tag mapping field for resource specs
TagSet = Annotated[Dict[str, str], AfterValidator(_check_tag_set)]
