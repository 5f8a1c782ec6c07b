"""
Partition discovery for Hive-style partitioned Parquet datasets.

DIRECTORY LAYOUT
================

A dataset root is either a single Parquet file or a directory tree whose
subdirectories encode partition values as ``column=value`` segments:

    data/users/
        year=2020/
            country=PL/part-0000.parquet
            country=US/part-0000.parquet
        year=2021/
            country=PL/part-0000.parquet
        _SUCCESS                       <- hidden, ignored

Discovery walks the tree depth first, in name order, and produces one
``PartitionedPath`` per leaf directory:

    PartitionedPath("data/users/year=2020/country=PL", (("year", "2020"), ("country", "PL")))
    PartitionedPath("data/users/year=2020/country=US", (("year", "2020"), ("country", "US")))
    PartitionedPath("data/users/year=2021/country=PL", (("year", "2021"), ("country", "PL")))

RULES
-----
- Names starting with ``_`` or ``.`` are hidden and skipped.
- A directory containing both data files and subdirectories is invalid.
- A directory without ``column=value`` subdirectories is a leaf; all of its
  direct files are its data files.
- Every leaf must carry the same partition columns in the same order.
- Partition values are URL-unquoted (``a%3Db`` -> ``a=b``).

The directory schema is the schema of the first data file found, extended with
each partition column as a ``string`` field. Partition columns are not stored
in the files; their values are injected into records while streaming.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import unquote

import pyarrow as pa
import pyarrow.fs as pafs
import pyarrow.parquet as pq

from hivestream.constants import PARTITION_SEPARATOR
from hivestream.errors import DiscoveryError
from hivestream.storage.filesystem import list_children, list_data_files

logger = logging.getLogger(__name__)

Partition = Tuple[str, str]


@dataclass(frozen=True)
class PartitionedPath:
    """A leaf file or directory plus the partition values encoded in its location."""

    path: str
    partitions: Tuple[Partition, ...] = ()

    @property
    def columns(self) -> Tuple[str, ...]:
        return tuple(column for column, _ in self.partitions)

    def values(self) -> Dict[str, str]:
        """Partition values by column; a repeated column keeps its last value."""
        return dict(self.partitions)


@dataclass(frozen=True)
class PartitionedDirectory:
    """Discovered dataset: base schema plus ordered partitioned paths."""

    schema: pa.Schema
    partitions: Tuple[PartitionedPath, ...]

    @property
    def partition_columns(self) -> Tuple[str, ...]:
        return self.partitions[0].columns if self.partitions else ()

    @property
    def stored_columns(self) -> Tuple[str, ...]:
        """Columns physically present in data files."""
        partition_columns = set(self.partition_columns)
        return tuple(name for name in self.schema.names if name not in partition_columns)


def _match_partition(name: str) -> Optional[Partition]:
    column, separator, value = name.partition(PARTITION_SEPARATOR)
    if not separator or not column:
        return None
    return unquote(column), unquote(value)


def _walk(filesystem: pafs.FileSystem, path: str, partitions: Tuple[Partition, ...]) -> List[PartitionedPath]:
    children = list_children(filesystem, path)
    directories = [child for child in children if child.type == pafs.FileType.Directory]
    files = [child for child in children if child.type == pafs.FileType.File]

    if directories and files:
        raise DiscoveryError(f"directory contains both files and subdirectories: {path}")

    matched = []
    for directory in directories:
        partition = _match_partition(directory.base_name)
        if partition is not None:
            matched.append((directory.path, partition))

    if not matched:
        return [PartitionedPath(path, partitions)]

    leaves: List[PartitionedPath] = []
    for subpath, partition in matched:
        leaves.extend(_walk(filesystem, subpath, partitions + (partition,)))
    return leaves


def _check_consistency(paths: List[PartitionedPath]) -> None:
    expected = paths[0].columns
    for partitioned_path in paths[1:]:
        if partitioned_path.columns != expected:
            raise DiscoveryError(
                f"inconsistent partitioning: {partitioned_path.path} has columns "
                f"{list(partitioned_path.columns)}, expected {list(expected)}"
            )


def _infer_schema(filesystem: pafs.FileSystem, paths: List[PartitionedPath]) -> pa.Schema:
    stored = pa.schema([])
    for partitioned_path in paths:
        data_files = list_data_files(filesystem, partitioned_path.path)
        if not data_files:
            continue
        try:
            with filesystem.open_input_file(data_files[0]) as handle:
                stored = pq.read_schema(handle)
        except (OSError, pa.ArrowException) as exc:
            raise DiscoveryError(f"cannot read schema of {data_files[0]}: {exc}") from exc
        break

    for column in paths[0].columns:
        if stored.get_field_index(column) == -1:
            stored = stored.append(pa.field(column, pa.string()))
    return stored


def find_partitioned_paths(path: str, filesystem: pafs.FileSystem) -> PartitionedDirectory:
    """
    Discover the partition structure under ``path``.

    Args:
        path: Root file or directory, as ``filesystem`` expects it
        filesystem: Filesystem to list and read through

    Returns:
        PartitionedDirectory with the base schema and leaves in name order

    Raises:
        DiscoveryError: the root does not exist, or the tree is inconsistently
            partitioned
    """
    try:
        info = filesystem.get_file_info(path)
        if info.type == pafs.FileType.NotFound:
            raise DiscoveryError(f"path does not exist: {path}")
        if info.type == pafs.FileType.File:
            paths = [PartitionedPath(path)]
        else:
            paths = _walk(filesystem, path, ())
        _check_consistency(paths)
        schema = _infer_schema(filesystem, paths)
    except DiscoveryError:
        raise
    except (OSError, pa.ArrowException) as exc:
        raise DiscoveryError(f"cannot list {path}: {exc}") from exc

    logger.info(
        "Discovered %d partition(s) under %s (partition columns: %s)",
        len(paths),
        path,
        list(paths[0].columns) or "none",
    )
    return PartitionedDirectory(schema=schema, partitions=tuple(paths))
