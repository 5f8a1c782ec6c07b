"""
Partition pruning and pushdown predicate compilation.

For every discovered partition the filter is bound to the partition's values:

    filter: (year == 2021) & (score > 10)

    year=2020  ->  FALSE          -> partition dropped, its files never opened
    year=2021  ->  score > 10     -> kept, predicate pushed into the reader

The result keeps discovery order, which is the order records are streamed in.
"""

import logging
from typing import List, Tuple

import pyarrow as pa

from hivestream.analysis.filters import FALSE, NOOP_FILTER, TRUE, Filter
from hivestream.errors import FilterCompilationError
from hivestream.schema.codec import ValueCodecConfiguration
from hivestream.storage.discovery import PartitionedDirectory, PartitionedPath
from hivestream.storage.reader import ACCEPT_ALL, PushdownPredicate

logger = logging.getLogger(__name__)


def compile_predicate(residual: Filter) -> PushdownPredicate:
    """Compile a residual filter into a reader predicate."""
    if residual is TRUE:
        return ACCEPT_ALL
    try:
        expression = residual.to_expression()
    except (pa.ArrowException, TypeError) as exc:
        raise FilterCompilationError(f"cannot compile {residual!r}: {exc}") from exc
    return PushdownPredicate(expression=expression, columns=residual.columns())


def _check_columns(filter: Filter, directory: PartitionedDirectory) -> None:
    if not directory.stored_columns:
        # no data file to learn stored columns from
        return
    known = set(directory.schema.names) | set(directory.partition_columns)
    unknown = filter.columns() - known
    if unknown:
        raise FilterCompilationError(
            f"filter references unknown column(s) {sorted(unknown)}; available: {sorted(known)}"
        )


def filter_partitions(
    filter: Filter,
    codec: ValueCodecConfiguration,
    directory: PartitionedDirectory,
) -> List[Tuple[PushdownPredicate, PartitionedPath]]:
    """
    Select the partitions that may satisfy ``filter``.

    Args:
        filter: User filter; ``NOOP_FILTER`` keeps every partition
        codec: Value codec used to coerce raw partition values
        directory: Discovered dataset

    Returns:
        (predicate, partition) pairs in discovery order

    Raises:
        FilterCompilationError: unknown column, or a partition value that
            cannot be compared with the filter's literal
    """
    if filter is NOOP_FILTER:
        return [(ACCEPT_ALL, partitioned_path) for partitioned_path in directory.partitions]

    _check_columns(filter, directory)

    selected: List[Tuple[PushdownPredicate, PartitionedPath]] = []
    for partitioned_path in directory.partitions:
        values = {
            column: codec.encode_partition_value(raw)
            for column, raw in partitioned_path.values().items()
        }
        residual = filter.bind(values, codec)
        if residual is FALSE:
            logger.debug("Pruned partition %s", partitioned_path.path)
            continue
        selected.append((compile_predicate(residual), partitioned_path))

    logger.info(
        "Filter %r admitted %d of %d partition(s)",
        filter,
        len(selected),
        len(directory.partitions),
    )
    return selected
