"""快照路径解析与结构比较测试"""

import pytest

from bizsignal.core.exceptions import DetectionError
from bizsignal.core.snapshot import (
    MISSING,
    as_number,
    ensure_snapshot,
    fingerprint,
    resolve_path,
    structurally_equal,
    values_differ,
)


class TestResolvePath:
    def test_nested_path(self):
        snapshot = {"ragStatus": {"design": {"status": "red"}}}
        assert resolve_path(snapshot, "ragStatus.design.status") == "red"

    def test_missing_segment_returns_missing(self):
        assert resolve_path({"a": {"b": 1}}, "a.c") is MISSING
        assert resolve_path({"a": 1}, "a.b") is MISSING

    def test_null_is_not_missing(self):
        assert resolve_path({"a": None}, "a") is None

    def test_missing_is_falsy(self):
        assert not MISSING


class TestStructuralComparison:
    def test_dict_key_order_ignored(self):
        assert structurally_equal({"a": 1, "b": [1, 2]}, {"b": [1, 2], "a": 1})

    def test_list_order_matters(self):
        assert values_differ([1, 2], [2, 1])

    def test_bool_and_int_differ(self):
        assert values_differ(True, 1)

    def test_integral_float_equals_int(self):
        assert structurally_equal(8, 8.0)
        assert structurally_equal({"qty": [1.0, {"n": 2}]}, {"qty": [1, {"n": 2.0}]})
        assert values_differ(8, 8.5)

    def test_bool_and_float_differ(self):
        assert values_differ(True, 1.0)
        assert values_differ(False, 0.0)

    def test_missing_differs_from_null(self):
        assert values_differ(MISSING, None)
        assert not values_differ(MISSING, MISSING)


class TestEnsureSnapshot:
    def test_accepts_mapping(self):
        assert ensure_snapshot({"a": [1, {"b": None}]}) == {"a": [1, {"b": None}]}

    def test_none_allowed_only_when_requested(self):
        assert ensure_snapshot(None, allow_none=True) is None
        with pytest.raises(DetectionError):
            ensure_snapshot(None)

    def test_rejects_non_mapping(self):
        with pytest.raises(DetectionError, match="must be a mapping"):
            ensure_snapshot([1, 2])

    def test_rejects_non_json_values(self):
        with pytest.raises(DetectionError, match="not JSON-compatible"):
            ensure_snapshot({"at": object()})


def test_fingerprint_is_order_insensitive_for_dicts():
    assert fingerprint("m", {"a": 1, "b": 2}) == fingerprint("m", {"b": 2, "a": 1})
    assert fingerprint("m", None) != fingerprint("m", {})


@pytest.mark.parametrize(
    "value,expected",
    [(3, 3.0), (2.5, 2.5), (True, None), ("7", None), (None, None), (MISSING, None)],
)
def test_as_number(value, expected):
    assert as_number(value) == expected


def test_fingerprint_ignores_int_float_representation():
    assert fingerprint("m", {"stockLevel": 8}) == fingerprint("m", {"stockLevel": 8.0})
