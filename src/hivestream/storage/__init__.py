"""
Storage layer: filesystem access, partition discovery and the low-level
Parquet reader.
"""

from .discovery import PartitionedDirectory, PartitionedPath, find_partitioned_paths
from .filesystem import list_data_files, resolve_filesystem
from .reader import ACCEPT_ALL, ParquetFileReader, PushdownPredicate
from .record import RowRecord

__all__ = [
    "ACCEPT_ALL",
    "ParquetFileReader",
    "PartitionedDirectory",
    "PartitionedPath",
    "PushdownPredicate",
    "RowRecord",
    "find_partitioned_paths",
    "list_data_files",
    "resolve_filesystem",
]
