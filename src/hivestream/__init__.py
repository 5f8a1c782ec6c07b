"""
hivestream - lazy streaming reads of Hive-style partitioned Parquet datasets.

Example:
    >>> from hivestream import ParquetSource, col
    >>> for record in ParquetSource.generic().filter(col("year") == 2021).read("data/sales"):
    ...     print(record)
"""

from hivestream.analysis import NOOP_FILTER, Filter, col
from hivestream.errors import (
    DecodeError,
    DiscoveryError,
    FilterCompilationError,
    HivestreamError,
    ReadError,
    ReaderOpenError,
    SchemaResolutionError,
    format_error,
)
from hivestream.execution import Builder, ParquetSource, ParquetStream, StreamState
from hivestream.options import ReadOptions
from hivestream.schema import Schema, Types, ValueCodecConfiguration
from hivestream.storage import PartitionedDirectory, PartitionedPath, RowRecord

__version__ = "0.1.0"

__all__ = [
    "Builder",
    "DecodeError",
    "DiscoveryError",
    "Filter",
    "FilterCompilationError",
    "HivestreamError",
    "NOOP_FILTER",
    "ParquetSource",
    "ParquetStream",
    "PartitionedDirectory",
    "PartitionedPath",
    "ReadError",
    "ReadOptions",
    "ReaderOpenError",
    "RowRecord",
    "Schema",
    "SchemaResolutionError",
    "StreamState",
    "Types",
    "ValueCodecConfiguration",
    "col",
    "format_error",
]
