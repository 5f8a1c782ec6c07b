"""
Filter expressions for partitioned reads.

================================================================================
DATA FLOW - FILTER TO PARTITION DECISION + PUSHDOWN
================================================================================

Filters are built from columns and combined with ``&``, ``|`` and ``~``:

    (col("year") == 2021) & (col("score") > 10)

A filter is used in two ways.

1. BIND TO A PARTITION
--------------------------------------------------------------------------------

Predicates on partition columns are evaluated against the partition's values
(raw directory strings, coerced to the literal's type). The filter collapses to
a constant or to the residual over stored columns:

    partition year=2020:  (False) & (score > 10)  ->  FALSE      (drop partition)
    partition year=2021:  (True)  & (score > 10)  ->  score > 10 (residual)

2. COMPILE THE RESIDUAL
--------------------------------------------------------------------------------

The residual becomes a ``pyarrow.compute`` expression that the reader applies
per batch:

    score > 10  ->  pc.field("score") > 10

The no-op filter (``NOOP_FILTER``) admits every partition and contributes no
pushdown predicate.

NULL SEMANTICS
--------------------------------------------------------------------------------
A partition value of ``__HIVE_DEFAULT_PARTITION__`` is null. Against a null
value, ``== None`` is true, ``!= value`` is true, every other comparison is
false. Use ``is_null()`` / ``is_valid()`` for explicit null tests.
================================================================================
"""

import operator
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, Mapping, Optional, Tuple

import pyarrow.compute as pc

from hivestream.errors import DecodeError, FilterCompilationError
from hivestream.schema.codec import ValueCodecConfiguration
from hivestream.schema.types import infer_type

PartitionValues = Mapping[str, Optional[str]]

OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


def _field(column: str) -> pc.Expression:
    return pc.field(*column.split("."))


def _top_level(column: str) -> str:
    return column.split(".", 1)[0]


def _coerce(column: str, value: Any, like: Any, codec: ValueCodecConfiguration) -> Any:
    if value is None or like is None:
        return value
    try:
        return infer_type(type(like)).decode(value, codec)
    except (TypeError, DecodeError) as exc:
        raise FilterCompilationError(
            f"cannot compare value {value!r} of column {column!r} with {like!r}: {exc}"
        ) from exc


def _compare(column: str, op: str, actual: Any, expected: Any) -> bool:
    if actual is None or expected is None:
        if op == "==":
            return actual is None and expected is None
        if op == "!=":
            return not (actual is None and expected is None)
        return False
    try:
        return bool(OPERATORS[op](actual, expected))
    except TypeError as exc:
        raise FilterCompilationError(
            f"cannot compare {actual!r} {op} {expected!r} on column {column!r}: {exc}"
        ) from exc


class Filter:
    """Base class of filter expressions."""

    def columns(self) -> FrozenSet[str]:
        """Top-level columns this filter references."""
        raise NotImplementedError

    def bind(self, values: PartitionValues, codec: ValueCodecConfiguration) -> "Filter":
        """
        Evaluate predicates on the given partition columns.

        Returns ``TRUE``/``FALSE`` when the partition values decide the filter,
        otherwise the residual filter over the remaining columns.
        """
        raise NotImplementedError

    def to_expression(self) -> pc.Expression:
        raise NotImplementedError

    def __and__(self, other: "Filter") -> "Filter":
        return And(self, other)

    def __or__(self, other: "Filter") -> "Filter":
        return Or(self, other)

    def __invert__(self) -> "Filter":
        return Not(self)

    def __bool__(self) -> bool:
        raise TypeError("filters cannot be used as booleans; combine them with &, | and ~")


@dataclass(frozen=True, eq=False)
class Constant(Filter):
    value: bool

    def columns(self) -> FrozenSet[str]:
        return frozenset()

    def bind(self, values, codec):
        return self

    def to_expression(self) -> pc.Expression:
        return pc.scalar(self.value)

    def __repr__(self) -> str:
        return "TRUE" if self.value else "FALSE"


TRUE = Constant(True)
FALSE = Constant(False)

# Admits everything, contributes no pushdown predicate
NOOP_FILTER = TRUE


def _constant(value: bool) -> Constant:
    return TRUE if value else FALSE


@dataclass(frozen=True, eq=False)
class Comparison(Filter):
    column: str
    op: str
    value: Any

    def columns(self) -> FrozenSet[str]:
        return frozenset({_top_level(self.column)})

    def bind(self, values, codec):
        if self.column not in values:
            return self
        actual = _coerce(self.column, values[self.column], self.value, codec)
        expected = _coerce(self.column, self.value, self.value, codec)
        return _constant(_compare(self.column, self.op, actual, expected))

    def to_expression(self) -> pc.Expression:
        field = _field(self.column)
        if self.value is None:
            if self.op == "==":
                return field.is_null()
            if self.op == "!=":
                return field.is_valid()
            raise FilterCompilationError(f"cannot compile {self!r}: ordering against None")
        return OPERATORS[self.op](field, pc.scalar(self.value))

    def __repr__(self) -> str:
        return f"({self.column} {self.op} {self.value!r})"


@dataclass(frozen=True, eq=False)
class In(Filter):
    column: str
    values: Tuple[Any, ...]

    def columns(self) -> FrozenSet[str]:
        return frozenset({_top_level(self.column)})

    def bind(self, values, codec):
        if self.column not in values:
            return self
        raw = values[self.column]
        return _constant(
            any(
                _compare(
                    self.column,
                    "==",
                    _coerce(self.column, raw, candidate, codec),
                    _coerce(self.column, candidate, candidate, codec),
                )
                for candidate in self.values
            )
        )

    def to_expression(self) -> pc.Expression:
        present = [value for value in self.values if value is not None]
        expression = _field(self.column).isin(present)
        if len(present) < len(self.values):
            expression = expression | _field(self.column).is_null()
        return expression

    def __repr__(self) -> str:
        return f"({self.column} in {list(self.values)!r})"


@dataclass(frozen=True, eq=False)
class IsNull(Filter):
    column: str
    null: bool = True

    def columns(self) -> FrozenSet[str]:
        return frozenset({_top_level(self.column)})

    def bind(self, values, codec):
        if self.column not in values:
            return self
        return _constant((values[self.column] is None) == self.null)

    def to_expression(self) -> pc.Expression:
        field = _field(self.column)
        return field.is_null() if self.null else field.is_valid()

    def __repr__(self) -> str:
        return f"({self.column} is {'null' if self.null else 'not null'})"


@dataclass(frozen=True, eq=False)
class And(Filter):
    left: Filter
    right: Filter

    def columns(self) -> FrozenSet[str]:
        return self.left.columns() | self.right.columns()

    def bind(self, values, codec):
        left = self.left.bind(values, codec)
        right = self.right.bind(values, codec)
        if left is FALSE or right is FALSE:
            return FALSE
        if left is TRUE:
            return right
        if right is TRUE:
            return left
        return And(left, right)

    def to_expression(self) -> pc.Expression:
        return self.left.to_expression() & self.right.to_expression()

    def __repr__(self) -> str:
        return f"({self.left!r} & {self.right!r})"


@dataclass(frozen=True, eq=False)
class Or(Filter):
    left: Filter
    right: Filter

    def columns(self) -> FrozenSet[str]:
        return self.left.columns() | self.right.columns()

    def bind(self, values, codec):
        left = self.left.bind(values, codec)
        right = self.right.bind(values, codec)
        if left is TRUE or right is TRUE:
            return TRUE
        if left is FALSE:
            return right
        if right is FALSE:
            return left
        return Or(left, right)

    def to_expression(self) -> pc.Expression:
        return self.left.to_expression() | self.right.to_expression()

    def __repr__(self) -> str:
        return f"({self.left!r} | {self.right!r})"


@dataclass(frozen=True, eq=False)
class Not(Filter):
    operand: Filter

    def columns(self) -> FrozenSet[str]:
        return self.operand.columns()

    def bind(self, values, codec):
        operand = self.operand.bind(values, codec)
        if isinstance(operand, Constant):
            return _constant(not operand.value)
        return Not(operand)

    def to_expression(self) -> pc.Expression:
        return ~self.operand.to_expression()

    def __repr__(self) -> str:
        return f"~{self.operand!r}"


class Column:
    """
    Column reference used to build filters.

    Example:
        >>> (col("year") >= 2020) & col("country").isin(["PL", "US"])
        ((year >= 2020) & (country in ['PL', 'US']))
    """

    __slots__ = ("name",)

    def __init__(self, name: str):
        self.name = name

    def __eq__(self, value: Any) -> Filter:  # type: ignore[override]
        return Comparison(self.name, "==", value)

    def __ne__(self, value: Any) -> Filter:  # type: ignore[override]
        return Comparison(self.name, "!=", value)

    def __lt__(self, value: Any) -> Filter:
        return Comparison(self.name, "<", value)

    def __le__(self, value: Any) -> Filter:
        return Comparison(self.name, "<=", value)

    def __gt__(self, value: Any) -> Filter:
        return Comparison(self.name, ">", value)

    def __ge__(self, value: Any) -> Filter:
        return Comparison(self.name, ">=", value)

    __hash__ = None

    def isin(self, values: Iterable[Any]) -> Filter:
        return In(self.name, tuple(values))

    def is_null(self) -> Filter:
        return IsNull(self.name, True)

    def is_valid(self) -> Filter:
        return IsNull(self.name, False)

    def __repr__(self) -> str:
        return f"col({self.name!r})"


def col(name: str) -> Column:
    return Column(name)
