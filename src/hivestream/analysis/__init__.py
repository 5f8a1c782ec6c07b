"""
Filter analysis.

This module provides filter expressions and the partition filter that turns a
user filter into per-partition admission decisions and pushdown predicates.
"""

from hivestream.analysis.filters import (
    FALSE,
    NOOP_FILTER,
    TRUE,
    And,
    Column,
    Comparison,
    Constant,
    Filter,
    In,
    IsNull,
    Not,
    Or,
    col,
)
from hivestream.analysis.partition_filter import (
    compile_predicate,
    filter_partitions,
)

__all__ = [
    # filters - expressions
    "Filter",
    "Column",
    "col",
    "Comparison",
    "In",
    "IsNull",
    "And",
    "Or",
    "Not",
    "Constant",
    # filters - constants
    "TRUE",
    "FALSE",
    "NOOP_FILTER",
    # partition_filter
    "filter_partitions",
    "compile_predicate",
]
