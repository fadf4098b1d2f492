# tests/unit/core/test_canonical.py
"""Tests for canonical JSON serialization."""

import math

import pytest

from strata.contracts.reference import Reference
from strata.core.canonical import canonical_json


class TestCanonicalJson:
    def test_keys_sorted_without_whitespace(self) -> None:
        assert canonical_json({"b": 1, "a": [True, None]}) == b'{"a":[true,null],"b":1}'

    def test_references_serialized_canonically(self) -> None:
        assert canonical_json([Reference.parse("/x?b=2&a=1"), 7]) == b'["/x?a=1&b=2",7]'

    def test_tuples_are_arrays(self) -> None:
        assert canonical_json(("a", 1)) == canonical_json(["a", 1])

    def test_deterministic_across_dict_order(self) -> None:
        assert canonical_json({"x": 1, "y": 2}) == canonical_json({"y": 2, "x": 1})

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_floats_rejected(self, value: float) -> None:
        with pytest.raises(ValueError, match="non-finite"):
            canonical_json({"v": [value]})
