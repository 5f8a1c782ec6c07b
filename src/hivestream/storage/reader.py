"""
Low-level Parquet reader for one partition.

This module reads the data files of a single discovered leaf (one file, or the
files of one partition directory) and hands them out one record at a time.

DATA FLOW
=========

STEP 1: LIST THE LEAF'S DATA FILES
----------------------------------
A leaf is either a single file or a partition directory:

    data/users/year=2021/
        part-0000.parquet
        part-0001.parquet
        _SUCCESS                 <- hidden, skipped

Files are read one after another, in name order. Only one file handle is open
at any time.


STEP 2: READ BATCHES
--------------------
Each file is read with ``ParquetFile.iter_batches``, restricted to the
projected columns (plus any column the pushdown predicate needs):

    columns=["id", "score"]  + predicate columns ["score"]
    -> reads only id, score


STEP 3: APPLY THE PUSHDOWN PREDICATE
------------------------------------
The predicate is a ``pyarrow.compute`` expression evaluated per batch, so
non-matching rows are dropped before they are turned into Python objects:

    predicate: score > 10
    batch:  id=[1, 2, 3], score=[5, 12, 30]
    kept:   id=[2, 3],    score=[12, 30]

Columns read only for the predicate are dropped again afterwards.


STEP 4: ROWS TO RECORDS
-----------------------
Each surviving row becomes a ``RowRecord``:

    {"id": 2, "score": 12}

``read()`` returns ``None`` once every file is exhausted. End of data is not an
error.
"""

import logging
from dataclasses import dataclass
from typing import FrozenSet, Iterator, List, Optional, Sequence

import pyarrow as pa
import pyarrow.compute as pc
import pyarrow.fs as pafs
import pyarrow.parquet as pq

from hivestream.constants import DEFAULT_BATCH_SIZE
from hivestream.errors import FilterCompilationError, ReadError, ReaderOpenError
from hivestream.storage.filesystem import list_data_files
from hivestream.storage.record import RowRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class PushdownPredicate:
    """
    Compiled filter handed to a reader.

    Attributes:
        expression: Arrow expression rows must satisfy; ``None`` accepts all
        columns: Stored columns the expression reads
    """

    expression: Optional[pc.Expression] = None
    columns: FrozenSet[str] = frozenset()

    @property
    def accepts_all(self) -> bool:
        return self.expression is None

    def apply(self, table: pa.Table) -> pa.Table:
        if self.accepts_all:
            return table
        try:
            return table.filter(self.expression)
        except pa.ArrowException as exc:
            raise FilterCompilationError(f"cannot apply filter {self.expression}: {exc}") from exc

    def __repr__(self) -> str:
        return f"PushdownPredicate({self.expression})"


ACCEPT_ALL = PushdownPredicate()


class ParquetFileReader:
    """
    Reads the records of one leaf, one at a time.

    Opening the reader opens the leaf's first data file, so a missing or
    corrupt file fails immediately. The reader must be closed; ``close()`` is
    idempotent.

    Example:
        >>> reader = ParquetFileReader(LocalFileSystem(), "data/users/year=2021")
        >>> try:
        ...     record = reader.read()
        ...     while record is not None:
        ...         process(record)
        ...         record = reader.read()
        ... finally:
        ...     reader.close()
    """

    def __init__(
        self,
        filesystem: pafs.FileSystem,
        path: str,
        predicate: PushdownPredicate = ACCEPT_ALL,
        columns: Optional[Sequence[str]] = None,
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        """
        Open the reader.

        Args:
            filesystem: Filesystem holding the data files
            path: Leaf file or directory
            predicate: Row filter evaluated per batch
            columns: Stored columns to read; ``None`` reads every column
            batch_size: Rows per Arrow batch

        Raises:
            ReaderOpenError: the leaf cannot be listed or its first file opened
        """
        self.filesystem = filesystem
        self.path = path
        self.predicate = predicate
        self.columns = list(columns) if columns is not None else None
        self.batch_size = batch_size
        self.closed = False

        self._handle: Optional[pa.NativeFile] = None
        self._batches: Optional[Iterator[pa.RecordBatch]] = None
        self._rows: Iterator[dict] = iter(())

        try:
            self._files = list_data_files(filesystem, path)
        except (OSError, pa.ArrowException) as exc:
            raise ReaderOpenError(f"cannot list {path}: {exc}") from exc
        self._file_index = 0
        if self._files:
            self._open(self._files[0])

    def _read_columns(self, file_path: str, schema: pa.Schema) -> Optional[List[str]]:
        if self.columns is None:
            return None
        missing = [name for name in self.columns if schema.get_field_index(name) == -1]
        if missing:
            raise ReaderOpenError(f"{file_path} lacks projected column(s) {missing}")
        extra = [
            name
            for name in sorted(self.predicate.columns)
            if name not in self.columns and schema.get_field_index(name) != -1
        ]
        return self.columns + extra

    def _open(self, file_path: str) -> None:
        try:
            handle = self.filesystem.open_input_file(file_path)
        except (OSError, pa.ArrowException) as exc:
            raise ReaderOpenError(f"cannot open {file_path}: {exc}") from exc
        try:
            parquet_file = pq.ParquetFile(handle)
            read_columns = self._read_columns(file_path, parquet_file.schema_arrow)
            self._batches = parquet_file.iter_batches(batch_size=self.batch_size, columns=read_columns)
        except (OSError, pa.ArrowException) as exc:
            handle.close()
            raise ReaderOpenError(f"cannot open {file_path}: {exc}") from exc
        except Exception:
            handle.close()
            raise
        self._handle = handle
        logger.debug("Opened %s", file_path)

    def _close_file(self) -> None:
        self._batches = None
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _next_rows(self) -> bool:
        while self._batches is not None:
            try:
                batch = next(self._batches, None)
            except (OSError, pa.ArrowException) as exc:
                raise ReadError(f"failed reading {self._files[self._file_index]}: {exc}") from exc

            if batch is None:
                self._close_file()
                self._file_index += 1
                if self._file_index < len(self._files):
                    self._open(self._files[self._file_index])
                continue

            table = self.predicate.apply(pa.Table.from_batches([batch]))
            if self.columns is not None and table.num_columns > len(self.columns):
                table = table.select(self.columns)
            if table.num_rows:
                self._rows = iter(table.to_pylist())
                return True
        return False

    def read(self) -> Optional[RowRecord]:
        """
        Return the next record, or ``None`` at end of data.

        Raises:
            ReadError: the reader is closed or a batch could not be read
            ReaderOpenError: a subsequent file of the leaf could not be opened
            FilterCompilationError: the predicate does not fit the data
        """
        if self.closed:
            raise ReadError(f"reader for {self.path} is closed")
        while True:
            row = next(self._rows, None)
            if row is not None:
                return RowRecord(row)
            if not self._next_rows():
                return None

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._close_file()
        logger.debug("Closed reader for %s", self.path)

    def __enter__(self) -> "ParquetFileReader":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
