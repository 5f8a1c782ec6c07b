"""
Stream execution: reader lifecycle, partition value injection and assembly of
the partitioned record stream.
"""

from hivestream.execution.lifecycle import iter_partition_records, open_partition_reader
from hivestream.execution.source import Builder, ParquetSource
from hivestream.execution.stream import (
    ParquetStream,
    StreamState,
    concat,
    inject_partition_values,
)

__all__ = [
    "Builder",
    "ParquetSource",
    "ParquetStream",
    "StreamState",
    "concat",
    "inject_partition_values",
    "iter_partition_records",
    "open_partition_reader",
]
