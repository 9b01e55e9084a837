"""
Guard expressions.

A guard is a boolean formula over named predicates:

    Leaf("isReady")                 isReady
    Not(Leaf("isBusy"))             !isBusy
    And((a, b))                     (a && b)     empty => True
    Or((a, b))                      (a || b)     empty => False

Two interpreters walk the same tree:

- ``evaluate`` is the production path: a plain short-circuit reduction.
- ``trace`` is the diagnostic path. It makes exactly the same predicate calls
  in the same order, and returns a ``TraceNode`` mirror of the expression
  where skipped nodes have ``allow=None`` and the nodes that explain a False
  result have ``cause=True``.

``format_trace`` renders a trace as the infix source with a line of ``^``
under the cause nodes:

    (isOk && (!isOk || !isOk) && isOk)
             ^^^^^^^^^^^^^^^^
"""

from dataclasses import dataclass, replace
from typing import Any, Callable, Mapping, Optional, Tuple, Union

from fsmkit.errors import ConfigurationError

Predicate = Callable[[Any], bool]


# ------------------------------------------------------------------
# Expression
# ------------------------------------------------------------------

@dataclass(frozen=True)
class Leaf:
    """Reference to a named predicate in the guard registry."""

    name: str


@dataclass(frozen=True)
class Not:
    """Logical negation of ``inner``."""

    inner: "GuardExpr"


@dataclass(frozen=True)
class And:
    """True iff every child is True. Evaluated left to right."""

    children: Tuple["GuardExpr", ...] = ()


@dataclass(frozen=True)
class Or:
    """True iff any child is True. Evaluated left to right."""

    children: Tuple["GuardExpr", ...] = ()


GuardExpr = Union[Leaf, Not, And, Or]
GuardLike = Union[str, GuardExpr]


def _coerce(guard: GuardLike) -> GuardExpr:
    if isinstance(guard, str):
        return Leaf(guard)
    if isinstance(guard, (Leaf, Not, And, Or)):
        return guard
    raise TypeError(f"Not a guard expression: {guard!r}")


def leaf(name: str) -> Leaf:
    """Reference the predicate registered as ``name``."""
    return Leaf(name)


def not_(guard: GuardLike) -> Not:
    """Invert ``guard``. Strings are treated as leaf names."""
    return Not(_coerce(guard))


def and_(*guards: GuardLike) -> And:
    """Combine ``guards`` with ``&&``. Strings are treated as leaf names."""
    return And(tuple(_coerce(g) for g in guards))


def or_(*guards: GuardLike) -> Or:
    """Combine ``guards`` with ``||``. Strings are treated as leaf names."""
    return Or(tuple(_coerce(g) for g in guards))


def guard_names(guard: GuardExpr) -> Tuple[str, ...]:
    """Return every leaf name in ``guard``, left to right, duplicates kept."""
    if isinstance(guard, Leaf):
        return (guard.name,)
    if isinstance(guard, Not):
        return guard_names(guard.inner)
    names: Tuple[str, ...] = ()
    for child in guard.children:
        names += guard_names(child)
    return names


def _call(registry: Mapping[str, Predicate], name: str, params: Any) -> bool:
    try:
        predicate = registry[name]
    except KeyError:
        raise ConfigurationError(f"Guard '{name}' is not defined in the configuration") from None
    return bool(predicate(params))


# ------------------------------------------------------------------
# Production evaluator
# ------------------------------------------------------------------

def evaluate(registry: Mapping[str, Predicate], guard: GuardExpr, params: Any) -> bool:
    """
    Evaluate ``guard`` against ``params``.

    And / Or stop at the first child that fixes the result; predicates of
    later children are not called.

    Raises:
        ConfigurationError: If a leaf name has no predicate in ``registry``.
    """
    if isinstance(guard, Leaf):
        return _call(registry, guard.name, params)
    if isinstance(guard, Not):
        return not evaluate(registry, guard.inner, params)
    if isinstance(guard, And):
        return all(evaluate(registry, g, params) for g in guard.children)
    if isinstance(guard, Or):
        return any(evaluate(registry, g, params) for g in guard.children)
    raise TypeError(f"Not a guard expression: {guard!r}")


# ------------------------------------------------------------------
# Diagnostic tracer
# ------------------------------------------------------------------

@dataclass(frozen=True)
class TraceNode:
    """
    Traced mirror of one guard node.

    Attributes:
        source: The expression node this result belongs to.
        allow: Outcome of the node, or None if it was skipped.
        cause: True if this node explains why the guard failed.
        children: Traced operands (one for Not, none for Leaf).
    """

    source: GuardExpr
    allow: Optional[bool]
    cause: bool = False
    children: Tuple["TraceNode", ...] = ()


def _skipped(guard: GuardExpr) -> TraceNode:
    if isinstance(guard, Leaf):
        return TraceNode(guard, None)
    if isinstance(guard, Not):
        return TraceNode(guard, None, children=(_skipped(guard.inner),))
    return TraceNode(guard, None, children=tuple(_skipped(g) for g in guard.children))


def _trace(registry: Mapping[str, Predicate], guard: GuardExpr, params: Any) -> TraceNode:
    if isinstance(guard, Leaf):
        return TraceNode(guard, _call(registry, guard.name, params))

    if isinstance(guard, Not):
        inner = _trace(registry, guard.inner, params)
        return TraceNode(guard, not inner.allow, children=(inner,))

    if isinstance(guard, (And, Or)):
        # And stops at the first False, Or at the first True.
        stop_on = isinstance(guard, Or)
        decided: Optional[bool] = None
        children = []
        for child in guard.children:
            if decided is not None:
                children.append(_skipped(child))
                continue
            result = _trace(registry, child, params)
            children.append(result)
            if result.allow is stop_on:
                decided = stop_on
        allow = decided if decided is not None else not stop_on
        return TraceNode(guard, allow, children=tuple(children))

    raise TypeError(f"Not a guard expression: {guard!r}")


def _blame(node: TraceNode) -> TraceNode:
    """Flag the nodes that explain why the failing ``node`` failed."""
    if isinstance(node.source, And):
        children = list(node.children)
        for i, child in enumerate(children):
            if child.allow is False:
                children[i] = _blame(child)
                break
        return replace(node, children=tuple(children))

    if isinstance(node.source, Or):
        children = tuple(replace(c, cause=True) for c in node.children)
        return replace(node, cause=True, children=children)

    # Leaf, or Not whose operand passed.
    return replace(node, cause=True)


def trace(registry: Mapping[str, Predicate], guard: GuardExpr, params: Any) -> TraceNode:
    """
    Evaluate ``guard`` like ``evaluate`` and return the annotated result tree.

    The root ``allow`` always equals ``evaluate(registry, guard, params)``,
    and predicates are called the same number of times in the same order.

    Cause flags are only set when the root fails: a failing Leaf or Not is
    flagged itself, a failing Or is flagged together with all its children,
    and a failing And hands the blame to its first failing child.

    Raises:
        ConfigurationError: If a leaf name has no predicate in ``registry``.
    """
    result = _trace(registry, guard, params)
    return _blame(result) if result.allow is False else result


# ------------------------------------------------------------------
# Formatter
# ------------------------------------------------------------------

def _render(node: TraceNode, caret: bool) -> Tuple[str, str]:
    caret = caret or node.cause
    source = node.source

    if isinstance(source, Leaf):
        code = source.name
        return code, ("^" if caret else " ") * len(code)

    if isinstance(source, Not):
        inner_code, inner_marks = _render(node.children[0], caret)
        return "!" + inner_code, ("^" if caret else " ") + inner_marks

    join = " && " if isinstance(source, And) else " || "
    fill = "^" if caret else " "
    code_parts, mark_parts = [], []
    for child in node.children:
        child_code, child_marks = _render(child, caret)
        code_parts.append(child_code)
        mark_parts.append(child_marks)
    code = "(" + join.join(code_parts) + ")"
    marks = fill + (fill * len(join)).join(mark_parts) + fill
    return code, marks


def render(guard: GuardExpr) -> str:
    """Return the canonical infix source of ``guard``."""
    return _render(_skipped(guard), False)[0]


def format_trace(result: TraceNode) -> str:
    """
    Render a trace as source code, plus a caret line if any node is a cause.

    Example:
        (isOk && isOk)
         ^^^^
    """
    code, marks = _render(result, False)
    if "^" not in marks:
        return code
    return f"{code}\n{marks}"
