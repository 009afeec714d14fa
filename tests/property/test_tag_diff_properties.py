"""Property tests for tag reconciliation invariants."""

from hypothesis import given, settings
from hypothesis import strategies as st

from cumulus_aws.tagging.diff import reconcile

tag_keys = st.text(alphabet='abcdefgh', min_size=1, max_size=3)
tag_values = st.text(alphabet='xyz', max_size=2)
tag_sets = st.dictionaries(tag_keys, tag_values, max_size=8)


def apply(current, diff):
    """Apply a TagDiff the way a tagger would: remove, then add."""
    tags = {key: value for key, value in current.items() if key not in diff.to_remove}
    tags.update(diff.to_add)
    return tags


class TestReconcileProperties:
    """Tests for reconcile() invariants."""

    @settings(max_examples=200)
    @given(current=tag_sets, desired=tag_sets)
    def test_applying_diff_reaches_desired(self, current, desired):
        """Applying the diff turns current into desired."""
        assert apply(current, reconcile(current, desired)) == desired

    @settings(max_examples=200)
    @given(current=tag_sets, desired=tag_sets)
    def test_idempotent(self, current, desired):
        """Reconciling again after applying the diff yields nothing to do."""
        result = apply(current, reconcile(current, desired))

        assert reconcile(result, desired).is_empty

    @settings(max_examples=200)
    @given(current=tag_sets, desired=tag_sets)
    def test_keys_in_both_only_when_value_changed(self, current, desired):
        """A key is both removed and added only if its value changed."""
        diff = reconcile(current, desired)

        for key in diff.to_remove & set(diff.to_add):
            assert key in current and key in desired
            assert current[key] != desired[key]

    @settings(max_examples=100)
    @given(tags=tag_sets)
    def test_equal_sets_need_no_calls(self, tags):
        """Identical tag sets produce an empty diff."""
        assert reconcile(tags, dict(tags)).is_empty

    @settings(max_examples=200)
    @given(current=tag_sets, desired=tag_sets)
    def test_additions_carry_desired_values(self, current, desired):
        """Every added tag has its desired value."""
        diff = reconcile(current, desired)

        assert all(desired[key] == value for key, value in diff.to_add.items())
        assert diff.to_remove <= set(current)
