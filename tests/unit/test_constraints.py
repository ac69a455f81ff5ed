"""Tests for Version and Constraint parsing and matching."""

from __future__ import annotations

import pytest

from larder.core.constraints import Constraint, Version, sort_versions


class TestVersion:
    def test_two_part_version_pads_patch(self):
        assert Version.parse("1.2") == Version(1, 2, 0)
        assert str(Version.parse("1.2")) == "1.2.0"

    def test_ordering_is_numeric(self):
        assert Version.parse("1.10.0") > Version.parse("1.9.9")
        assert Version.parse("2.0") > Version.parse("1.99.99")

    @pytest.mark.parametrize("raw", ["", "abc", "1", "1.2.3.4", "v1.0"])
    def test_invalid_versions_rejected(self, raw):
        with pytest.raises(ValueError):
            Version.parse(raw)

    def test_sort_versions(self):
        assert sort_versions(["1.10.0", "1.2.0", "1.9"]) == ["1.2.0", "1.9", "1.10.0"]


class TestConstraint:
    def test_empty_means_any_version(self):
        for raw in (None, "", "*"):
            constraint = Constraint.parse(raw)
            assert str(constraint) == ">= 0.0.0"
            assert constraint.satisfies("0.0.1")

    def test_bare_version_is_exact(self):
        constraint = Constraint.parse("1.2.0")
        assert constraint.satisfies("1.2")
        assert not constraint.satisfies("1.2.1")

    @pytest.mark.parametrize(
        ("raw", "version", "expected"),
        [
            (">= 1.0", "1.0.0", True),
            (">= 1.0", "0.9.9", False),
            ("> 1.0", "1.0.0", False),
            ("< 2.0", "1.99.0", True),
            ("<= 2.0", "2.0.0", True),
            ("!= 1.5.0", "1.5.0", False),
            ("= 1.5", "1.5.0", True),
        ],
    )
    def test_comparison_operators(self, raw, version, expected):
        assert Constraint.parse(raw).satisfies(version) is expected

    def test_pessimistic_two_components(self):
        constraint = Constraint.parse("~> 1.2")
        assert constraint.satisfies("1.2.0")
        assert constraint.satisfies("1.9.0")
        assert not constraint.satisfies("2.0.0")
        assert not constraint.satisfies("1.1.9")

    def test_pessimistic_three_components(self):
        constraint = Constraint.parse("~> 1.2.3")
        assert constraint.satisfies("1.2.9")
        assert not constraint.satisfies("1.3.0")
        assert not constraint.satisfies("1.2.2")

    def test_pessimistic_needs_minor(self):
        with pytest.raises(ValueError):
            Constraint.parse("~> 1")

    def test_conjunction(self):
        constraint = Constraint.parse(">= 1.0, < 2.0")
        assert constraint.satisfies("1.5.0")
        assert not constraint.satisfies("2.0.0")
        assert str(constraint) == ">= 1.0, < 2.0"

    def test_equality_ignores_spacing(self):
        assert Constraint.parse(">=1.0") == Constraint.parse(">= 1.0")
        assert hash(Constraint.parse(">=1.0")) == hash(Constraint.parse(">= 1.0"))
        assert Constraint.parse(">= 1.0") != Constraint.parse(">= 1.1")

    def test_garbage_rejected(self):
        with pytest.raises(ValueError):
            Constraint.parse(">= one")
