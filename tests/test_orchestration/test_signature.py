"""Tests for call signatures."""

from chatops_orchestrator.orchestration.signature import MISSING, canonicalize, sign


class TestCanonicalize:
    def test_primitives_are_json_encoded(self):
        assert canonicalize("a") == '"a"'
        assert canonicalize(1) == "1"
        assert canonicalize(1.5) == "1.5"
        assert canonicalize(True) == "true"
        assert canonicalize(False) == "false"

    def test_missing_differs_from_null(self):
        assert canonicalize(None) == "null"
        assert canonicalize(MISSING) == "undefined"
        assert canonicalize() == "undefined"

    def test_sequences_keep_order(self):
        assert canonicalize([1, 2]) != canonicalize([2, 1])
        assert canonicalize((1, 2)) == canonicalize([1, 2])

    def test_nested_keys_sorted(self):
        left = {"b": {"y": 1, "x": [1, {"d": 1, "c": 2}]}, "a": None}
        right = {"a": None, "b": {"x": [1, {"c": 2, "d": 1}], "y": 1}}
        assert canonicalize(left) == canonicalize(right)

    def test_bool_not_confused_with_int(self):
        assert canonicalize(True) != canonicalize(1)


class TestSign:
    def test_key_order_independent(self):
        assert sign("createRole", {"a": 1, "b": 2}) == sign("createRole", {"b": 2, "a": 1})

    def test_name_is_prefix(self):
        assert sign("search", {"query": "x"}).startswith("search:")

    def test_different_values_differ(self):
        assert sign("search", {"query": "x"}) != sign("search", {"query": "y"})

    def test_different_names_differ(self):
        assert sign("a", {}) != sign("b", {})

    def test_missing_args_differ_from_null_args(self):
        assert sign("ping") != sign("ping", None)
        assert sign("ping", {}) != sign("ping")
