"""
Reader lifecycle for one partition.

A partition's reader is acquired when its records are first pulled and released
exactly once: on exhaustion, on error, or when the consumer abandons the
stream (closing the generator runs the ``finally`` below).
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import pyarrow as pa

from hivestream.constants import DEFAULT_BATCH_SIZE
from hivestream.storage.discovery import PartitionedPath
from hivestream.storage.reader import ParquetFileReader, PushdownPredicate
from hivestream.storage.record import RowRecord

logger = logging.getLogger(__name__)


def stored_columns(projected_schema: Optional[pa.Schema], partitioned_path: PartitionedPath) -> Optional[List[str]]:
    """Projected columns that are read from files (partition columns are injected)."""
    if projected_schema is None:
        return None
    partition_columns = set(partitioned_path.columns)
    return [name for name in projected_schema.names if name not in partition_columns]


@contextmanager
def open_partition_reader(
    filesystem,
    predicate: PushdownPredicate,
    partitioned_path: PartitionedPath,
    projected_schema: Optional[pa.Schema] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[ParquetFileReader]:
    """
    Open the reader of one partition for the duration of a ``with`` block.

    Raises:
        ReaderOpenError: the partition's files cannot be opened; nothing is
            retried and the partition is not skipped
    """
    reader = ParquetFileReader(
        filesystem,
        partitioned_path.path,
        predicate=predicate,
        columns=stored_columns(projected_schema, partitioned_path),
        batch_size=batch_size,
    )
    try:
        yield reader
    finally:
        reader.close()


def iter_partition_records(
    filesystem,
    predicate: PushdownPredicate,
    partitioned_path: PartitionedPath,
    projected_schema: Optional[pa.Schema] = None,
    batch_size: int = DEFAULT_BATCH_SIZE,
) -> Iterator[RowRecord]:
    """Lazily yield the raw records of one partition, in file row order."""
    logger.debug("Streaming partition %s with %r", partitioned_path.path, predicate)
    with open_partition_reader(filesystem, predicate, partitioned_path, projected_schema, batch_size) as reader:
        record = reader.read()
        while record is not None:
            yield record
            record = reader.read()
