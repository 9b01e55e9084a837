"""Tests for fsmkit.guard — evaluator, tracer and formatter."""

import pytest

from fsmkit.errors import ConfigurationError
from fsmkit.guard import (
    And,
    Leaf,
    Not,
    Or,
    and_,
    evaluate,
    format_trace,
    guard_names,
    leaf,
    not_,
    or_,
    render,
    trace,
)


# ── Helpers ────────────────────────────────────────────────────────────────────

def _check(guards, guard, params=None):
    """Return (production result, trace, formatted lines)."""
    result = trace(guards, guard, params)
    return evaluate(guards, guard, params), result, format_trace(result).split("\n")


def _counting(**values):
    """Registry of constant predicates that records every call by name."""
    calls = []

    def make(name, value):
        def predicate(params):
            calls.append(name)
            return value
        return predicate

    return {name: make(name, value) for name, value in values.items()}, calls


ALWAYS = {"isOk": lambda p: True}
NEVER = {"isOk": lambda p: False}


# ── Combinators ────────────────────────────────────────────────────────────────

class TestCombinators:
    def test_leaf(self):
        assert leaf("isOk") == Leaf("isOk")

    def test_strings_become_leaves(self):
        assert and_("a", "b") == And((Leaf("a"), Leaf("b")))
        assert or_("a", "b") == Or((Leaf("a"), Leaf("b")))
        assert not_("a") == Not(Leaf("a"))

    def test_nesting_keeps_expressions(self):
        inner = or_("a", not_("b"))
        assert and_(inner, "c") == And((inner, Leaf("c")))

    def test_rejects_non_guards(self):
        with pytest.raises(TypeError):
            and_(42)

    def test_expressions_are_immutable(self):
        g = leaf("a")
        with pytest.raises(AttributeError):
            g.name = "b"

    def test_guard_names_in_order(self):
        g = and_("a", or_("b", not_("a")), "c")
        assert guard_names(g) == ("a", "b", "a", "c")


# ── Evaluator ──────────────────────────────────────────────────────────────────

class TestEvaluate:
    def test_leaf_passes_params(self):
        seen = []
        evaluate({"p": lambda params: seen.append(params) or True}, leaf("p"), {"x": 1})
        assert seen == [{"x": 1}]

    def test_result_is_bool(self):
        assert evaluate({"p": lambda params: 1}, leaf("p"), None) is True
        assert evaluate({"p": lambda params: None}, leaf("p"), None) is False

    def test_empty_and_is_true(self):
        assert evaluate({}, and_(), None) is True

    def test_empty_or_is_false(self):
        assert evaluate({}, or_(), None) is False

    def test_and_stops_at_first_false(self):
        guards, calls = _counting(a=True, b=False, c=True)
        assert evaluate(guards, and_("a", "b", "c"), None) is False
        assert calls == ["a", "b"]

    def test_or_stops_at_first_true(self):
        guards, calls = _counting(a=False, b=True, c=False)
        assert evaluate(guards, or_("a", "b", "c"), None) is True
        assert calls == ["a", "b"]

    def test_not(self):
        assert evaluate(ALWAYS, not_("isOk"), None) is False
        assert evaluate(NEVER, not_("isOk"), None) is True

    def test_missing_guard_raises(self):
        with pytest.raises(ConfigurationError, match="missing"):
            evaluate({}, leaf("missing"), None)


# ── Tracer: single operators ───────────────────────────────────────────────────

class TestTraceLeaf:
    def test_pass(self):
        prd, dev, fmt = _check(ALWAYS, leaf("isOk"))
        assert prd is True
        assert dev.allow is True
        assert dev.cause is False
        assert fmt == ["isOk"]

    def test_fail(self):
        prd, dev, fmt = _check(NEVER, leaf("isOk"))
        assert prd is False
        assert dev.allow is False
        assert dev.cause is True
        assert fmt == ["isOk", "^^^^"]


class TestTraceAnd:
    def test_all_pass(self):
        prd, dev, fmt = _check(ALWAYS, and_("isOk", "isOk"))
        assert prd is True
        assert [c.allow for c in dev.children] == [True, True]
        assert fmt == ["(isOk && isOk)"]

    def test_first_failure_is_cause(self):
        prd, dev, fmt = _check(NEVER, and_("isOk", "isOk"))
        assert prd is False
        assert dev.allow is False
        assert [c.allow for c in dev.children] == [False, None]
        assert [c.cause for c in dev.children] == [True, False]
        assert fmt == ["(isOk && isOk)", " ^^^^         "]

    def test_nesting(self):
        prd, dev, fmt = _check(ALWAYS, and_("isOk", and_("isOk", and_("isOk", "isOk"))))
        assert prd is True
        assert dev.children[1].children[1].children[1].allow is True
        assert fmt == ["(isOk && (isOk && (isOk && isOk)))"]


class TestTraceOr:
    def test_first_pass_skips_rest(self):
        prd, dev, fmt = _check(ALWAYS, or_("isOk", "isOk"))
        assert prd is True
        assert [c.allow for c in dev.children] == [True, None]
        assert fmt == ["(isOk || isOk)"]

    def test_all_fail(self):
        prd, dev, fmt = _check(NEVER, or_("isOk", "isOk"))
        assert prd is False
        assert [c.allow for c in dev.children] == [False, False]
        assert dev.cause is True
        assert all(c.cause for c in dev.children)
        assert fmt == ["(isOk || isOk)", "^^^^^^^^^^^^^^"]

    def test_nesting(self):
        prd, dev, fmt = _check(ALWAYS, or_(or_(or_("isOk", "isOk"))))
        assert prd is True
        innermost = dev.children[0].children[0]
        assert [c.allow for c in innermost.children] == [True, None]
        assert fmt == ["(((isOk || isOk)))"]


class TestTraceNot:
    def test_inner_fails(self):
        prd, dev, fmt = _check(NEVER, not_("isOk"))
        assert prd is True
        assert dev.children[0].allow is False
        assert dev.children[0].cause is False
        assert fmt == ["!isOk"]

    def test_inner_passes(self):
        prd, dev, fmt = _check(ALWAYS, not_("isOk"))
        assert prd is False
        assert dev.cause is True
        assert fmt == ["!isOk", "^^^^^"]

    def test_nesting(self):
        prd, dev, fmt = _check(ALWAYS, not_(not_(not_("isOk"))))
        assert prd is False
        assert dev.allow is False
        assert dev.children[0].allow is True
        assert dev.children[0].children[0].allow is False
        assert fmt == ["!!!isOk", "^^^^^^^"]


# ── Tracer: combinations ───────────────────────────────────────────────────────

class TestTraceComplex:
    def test_failing_branch_inside_passing_or_is_not_a_cause(self):
        prd, dev, fmt = _check(ALWAYS, or_(and_(not_("isOk")), "isOk"))
        assert prd is True
        assert dev.children[0].allow is False
        assert dev.children[0].children[0].cause is False
        assert fmt == ["((!isOk) || isOk)"]

    def test_failing_or_inside_and(self):
        prd, dev, fmt = _check(ALWAYS, and_("isOk", or_(not_("isOk"), not_("isOk")), "isOk"))
        assert prd is False
        assert [c.allow for c in dev.children] == [True, False, None]
        assert [c.cause for c in dev.children] == [False, True, False]
        assert fmt == [
            "(isOk && (!isOk || !isOk) && isOk)",
            "         ^^^^^^^^^^^^^^^^         ",
        ]

    def test_failing_not_after_passing_or(self):
        guards = {
            "isReady": lambda p: True,
            "isStopped": lambda p: True,
            "isDestroyed": lambda p: True,
        }
        prd, dev, fmt = _check(guards, and_(or_("isReady", "isStopped"), not_("isDestroyed")))
        assert prd is False
        assert [c.allow for c in dev.children[0].children] == [True, None]
        assert dev.children[1].allow is False
        assert fmt == [
            "((isReady || isStopped) && !isDestroyed)",
            "                           ^^^^^^^^^^^^ ",
        ]

    def test_failing_not_skips_following_or(self):
        guards = {
            "isReady": lambda p: True,
            "isStopped": lambda p: True,
            "isDestroyed": lambda p: True,
        }
        prd, dev, fmt = _check(guards, and_(not_("isDestroyed"), or_("isReady", "isStopped")))
        assert prd is False
        skipped = dev.children[1]
        assert skipped.allow is None
        assert [c.allow for c in skipped.children] == [None, None]
        assert fmt == [
            "(!isDestroyed && (isReady || isStopped))",
            " ^^^^^^^^^^^^                           ",
        ]


class TestMultipleFailures:
    """Several independently failing branches: only the deciding one is blamed."""

    def test_and_of_failing_ors_blames_the_first(self):
        guards, calls = _counting(a=False, b=False, c=False, d=False)
        prd, dev, fmt = _check(guards, and_(or_("a", "b"), or_("c", "d")))
        assert prd is False
        assert dev.children[0].cause is True
        assert dev.children[1].allow is None
        assert dev.children[1].cause is False
        assert fmt == ["((a || b) && (c || d))", " ^^^^^^^^             "]

    def test_or_of_failing_ands_blames_the_whole_or(self):
        guards, calls = _counting(a=False, b=False, c=False, d=False)
        prd, dev, fmt = _check(guards, or_(and_("a", "b"), and_("c", "d")))
        assert prd is False
        assert calls == ["a", "c", "a", "c"]
        assert [c.cause for c in dev.children] == [True, True]
        # only the Or's direct children are flagged
        assert dev.children[0].children[0].cause is False
        assert fmt == ["((a && b) || (c && d))", "^" * 22]

    def test_and_of_failing_nots_blames_the_first(self):
        guards = {"a": lambda p: True, "b": lambda p: True}
        prd, dev, fmt = _check(guards, and_(not_("a"), not_("b")))
        assert prd is False
        assert dev.children[1].allow is None
        assert fmt == ["(!a && !b)", " ^^       "]

    def test_nested_and_blame_descends(self):
        guards = {"a": lambda p: True, "b": lambda p: False, "c": lambda p: False}
        prd, dev, fmt = _check(guards, and_("a", and_("b", "c")))
        assert prd is False
        assert dev.children[1].cause is False
        assert dev.children[1].children[0].cause is True
        assert fmt == ["(a && (b && c))", "       ^       "]

    def test_passing_root_has_no_causes(self):
        guards = {"a": lambda p: True}
        _, dev, fmt = _check(guards, not_(and_(not_("a"))))
        assert dev.allow is True
        assert len(fmt) == 1


# ── Rendering ──────────────────────────────────────────────────────────────────

class TestRender:
    @pytest.mark.parametrize("guard, expected", [
        (leaf("a"), "a"),
        (not_("a"), "!a"),
        (and_("a", "b"), "(a && b)"),
        (or_("a", "b"), "(a || b)"),
        (and_("a"), "(a)"),
        (and_(), "()"),
        (not_(or_("a", not_("b"))), "!(a || !b)"),
    ])
    def test_canonical_source(self, guard, expected):
        assert render(guard) == expected

    def test_caret_line_aligns_with_code(self):
        guards = {"alpha": lambda p: True, "beta": lambda p: False}
        lines = format_trace(trace(guards, and_("alpha", not_("alpha"), "beta"), None)).split("\n")
        assert len(lines) == 2
        assert len(lines[0]) == len(lines[1])
        start = lines[0].index("!alpha")
        assert lines[1][start:start + len("!alpha")] == "^^^^^^"
        assert lines[1].count("^") == len("!alpha")
