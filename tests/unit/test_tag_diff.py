"""Unit tests for tag reconciliation."""

from unittest.mock import MagicMock, call

import pytest

from cumulus_aws.tagging.diff import TagDiff, apply_tag_diff, reconcile


class TestReconcile:
    """Test computing tag differences."""

    def test_changed_and_new_keys(self):
        diff = reconcile({'Env': 'dev'}, {'Env': 'prod', 'Team': 'x'})

        assert diff.to_remove == frozenset({'Env'})
        assert diff.to_add == {'Env': 'prod', 'Team': 'x'}

    def test_identical_tags(self):
        diff = reconcile({'Name': 'a'}, {'Name': 'a'})

        assert diff.to_remove == frozenset()
        assert diff.to_add == {}
        assert diff.is_empty

    def test_stale_keys_are_removed(self):
        diff = reconcile({'Name': 'a', 'Old': 'b'}, {'Name': 'a'})

        assert diff.to_remove == frozenset({'Old'})
        assert diff.to_add == {}

    def test_from_nothing(self):
        diff = reconcile({}, {'Name': 'a'})

        assert diff == TagDiff(to_add={'Name': 'a'}, to_remove=frozenset())

    def test_to_nothing(self):
        diff = reconcile({'Name': 'a'}, {})

        assert diff == TagDiff(to_add={}, to_remove=frozenset({'Name'}))

    def test_inputs_not_modified(self):
        current = {'Env': 'dev'}
        desired = {'Env': 'prod'}

        reconcile(current, desired)

        assert current == {'Env': 'dev'}
        assert desired == {'Env': 'prod'}


class TestApplyTagDiff:
    """Test issuing tagging calls."""

    def test_removes_before_adds(self):
        tagger = MagicMock()

        apply_tag_diff(tagger, 'arn:1', reconcile({'Env': 'dev', 'Old': 'x'}, {'Env': 'prod', 'Team': 'x'}))

        assert tagger.mock_calls == [
            call.remove('arn:1', ['Env', 'Old']),
            call.add('arn:1', {'Env': 'prod', 'Team': 'x'}),
        ]

    def test_empty_diff_issues_no_calls(self):
        tagger = MagicMock()

        apply_tag_diff(tagger, 'arn:1', reconcile({'Name': 'a'}, {'Name': 'a'}))

        assert tagger.mock_calls == []

    def test_add_only(self):
        tagger = MagicMock()

        apply_tag_diff(tagger, 'arn:1', reconcile({}, {'Name': 'a'}))

        tagger.remove.assert_not_called()
        tagger.add.assert_called_once_with('arn:1', {'Name': 'a'})

    def test_remove_failure_skips_add(self):
        tagger = MagicMock()
        tagger.remove.side_effect = RuntimeError("boom")

        with pytest.raises(RuntimeError):
            apply_tag_diff(tagger, 'arn:1', reconcile({'Env': 'dev'}, {'Env': 'prod'}))

        tagger.add.assert_not_called()
