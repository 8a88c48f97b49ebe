"""Unit tests for layered send option merging."""

from __future__ import annotations

from push_dispatch.core.options import is_truthy_option, merge_options


class TestMergeOptions:
    def test_later_layers_win(self) -> None:
        assert merge_options({"priority": "normal", "retries": 5}, {"priority": "high"}) == {
            "priority": "high",
            "retries": 5,
        }

    def test_none_and_empty_layers_are_skipped(self) -> None:
        assert merge_options(None, {"a": 1}, {}, None) == {"a": 1}

    def test_nested_mappings_are_merged(self) -> None:
        merged = merge_options({"headers": {"a": "1"}}, {"headers": {"b": "2"}})

        assert merged == {"headers": {"a": "1", "b": "2"}}

    def test_inputs_are_not_modified(self) -> None:
        base = {"headers": {"a": "1"}, "tags": ["x"]}
        override = {"headers": {"a": "2"}}

        merged = merge_options(base, override)
        merged["tags"].append("y")  # pyright: ignore[reportAttributeAccessIssue, reportUnknownMemberType]

        assert base == {"headers": {"a": "1"}, "tags": ["x"]}
        assert override == {"headers": {"a": "2"}}

    def test_no_layers(self) -> None:
        assert merge_options() == {}


class TestIsTruthyOption:
    def test_truthy_and_falsy_values(self) -> None:
        assert is_truthy_option({"fake": True}, "fake")
        assert not is_truthy_option({"fake": False}, "fake")
        assert not is_truthy_option({}, "fake")
        assert not is_truthy_option(None, "fake")
