import gc

import pytest

from dashcore.compiler import MatcherCache, compile_filter
from dashcore.filters import And, FilterError, Leaf, Operator, Or, parse_filter


def compiled(raw, **kwargs):
    return compile_filter(parse_filter(raw), cache=MatcherCache(**kwargs))


def test_equals_ignores_case_and_whitespace():
    match = compiled({"column": "status", "equals": "Active"})
    assert match({"status": " active "}) is True
    assert match({"status": "inactive"}) is False


def test_equals_numeric():
    match = compiled({"column": "total_available", "equals": 0})
    assert match({"total_available": 0})
    assert not match({"total_available": 5})


def test_equals_keeps_booleans_apart_from_numbers():
    match = compiled({"column": "flag", "equals": True})
    assert match({"flag": True})
    assert not match({"flag": 1})


def test_not_equals():
    match = compiled({"column": "warehouse", "notEquals": "Main"})
    assert match({"warehouse": "Secondary"})
    assert not match({"warehouse": "main"})


def test_ordering_operators():
    row = {"total_available": 8}
    assert compiled({"column": "total_available", "gt": 5})(row)
    assert compiled({"column": "total_available", "lt": 10})(row)
    assert not compiled({"column": "total_available", "gte": 10})(row)
    assert not compiled({"column": "total_available", "lte": 5})(row)


def test_ordering_uses_raw_string_order():
    # "10" sorts before "9" as text.
    assert compiled({"column": "qty", "lt": "9"})({"qty": "10"})


def test_ordering_on_incomparable_values_does_not_match():
    match = compiled({"column": "qty", "lt": 5})
    assert not match({"qty": "10"})
    assert not match({"qty": None})
    assert not match({})


def test_contains_requires_string_value():
    match = compiled({"column": "description", "contains": "Special"})
    assert match({"description": "Special Item"})
    assert not match({"description": "Test Item 1"})
    assert not match({"description": 123})

    negated = compiled({"column": "description", "notContains": "special"})
    assert negated({"description": "Test Item 1"})
    assert not negated({"description": "SPECIAL item"})
    assert not negated({"description": None})


def test_matches_uses_raw_value():
    regex = compiled({"column": "status", "matches": "^Active$"})
    equals = compiled({"column": "status", "equals": "Active"})
    assert regex({"status": "Active"})
    assert not regex({"status": "active"})
    assert equals({"status": "active"})

    negated = compiled({"column": "status", "notMatches": "^Active$"})
    assert negated({"status": "active"})
    assert not negated({"status": "Active"})


def test_in_and_not_in():
    match = compiled({"column": "warehouse", "in": ["Main", "Secondary"]})
    assert match({"warehouse": "main "})
    assert not match({"warehouse": "Other"})

    negated = compiled({"column": "warehouse", "notIn": ["Main", "Secondary"]})
    assert negated({"warehouse": "Other"})
    assert not negated({"warehouse": "Main"})


def test_null_checks():
    is_null = compiled({"column": "warehouse", "isNull": True})
    assert is_null({"warehouse": None})
    assert is_null({})
    assert not is_null({"warehouse": "Main"})
    assert not is_null({"warehouse": ""})

    not_null = compiled({"column": "warehouse", "isNotNull": True})
    assert not_null({"warehouse": "Main"})
    assert not not_null({"warehouse": None})

    inverted = compiled({"column": "warehouse", "isNull": False})
    assert inverted({"warehouse": "Main"})
    assert not inverted({"warehouse": None})


def test_empty_groups():
    assert compile_filter(And(()), cache=MatcherCache())({"a": 1}) is True
    assert compile_filter(Or(()), cache=MatcherCache())({"a": 1}) is False


def test_nested_groups():
    match = compiled(
        {
            "and": [
                {"column": "warehouse", "equals": "Main"},
                {"or": [{"column": "qty", "gt": 10}, {"column": "status", "equals": "hold"}]},
            ]
        }
    )
    assert match({"warehouse": "Main", "qty": 20, "status": "ok"})
    assert match({"warehouse": "Main", "qty": 1, "status": "HOLD"})
    assert not match({"warehouse": "Main", "qty": 1, "status": "ok"})
    assert not match({"warehouse": "Other", "qty": 20})


def test_first_operator_in_precedence_wins():
    node = parse_filter({"column": "a", "equals": "x", "isNull": True})
    assert node.op is Operator.IS_NULL
    match = compile_filter(node, cache=MatcherCache())
    assert not match({"a": "x"})
    assert match({"a": None})


def test_unknown_operator_matches_everything():
    match = compiled({"column": "status", "startsWith": "A"})
    assert match({"status": "zzz"})
    assert match({})


def test_unknown_operator_fails_in_strict_mode():
    with pytest.raises(FilterError):
        compiled({"column": "status", "startsWith": "A"}, strict=True)


def test_invalid_regex():
    match = compiled({"column": "status", "matches": "("})
    assert not match({"status": "("})
    with pytest.raises(FilterError):
        compiled({"column": "status", "matches": "("}, strict=True)


def test_matcher_is_deterministic():
    match = compiled({"column": "status", "equals": "open"})
    row = {"status": "OPEN"}
    assert [match(row) for _ in range(3)] == [True, True, True]
    assert row == {"status": "OPEN"}


def test_same_node_hits_cache():
    cache = MatcherCache()
    node = Leaf(column="status", op=Operator.EQUALS, operand="open")
    first = compile_filter(node, cache=cache)
    second = compile_filter(node, cache=cache)
    assert first is second
    assert len(cache) == 1
    assert node in cache


def test_equal_but_distinct_nodes_compile_separately():
    cache = MatcherCache()
    a = Leaf(column="status", op=Operator.EQUALS, operand="open")
    b = Leaf(column="status", op=Operator.EQUALS, operand="open")
    ma = compile_filter(a, cache=cache)
    mb = compile_filter(b, cache=cache)
    assert ma is not mb
    assert len(cache) == 2
    assert ma({"status": "Open"}) and mb({"status": "Open"})


def test_cache_entries_follow_node_lifetime():
    cache = MatcherCache()
    node = Leaf(column="status", op=Operator.EQUALS, operand="open")
    match = compile_filter(node, cache=cache)
    assert len(cache) == 1
    del node
    gc.collect()
    assert len(cache) == 0
    assert match({"status": "open"})


def test_raw_dicts_are_not_cached():
    cache = MatcherCache()
    match = compile_filter({"column": "status", "equals": "open"}, cache=cache)
    assert match({"status": "open"})
    assert len(cache) == 0


def test_contains_with_null_operand_never_matches():
    assert not compiled({"column": "note", "contains": None})({"note": "None available"})
    assert not compiled({"column": "note", "notContains": None})({"note": "in stock"})
