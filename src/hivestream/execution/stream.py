"""
Assembly of the partitioned record stream.

================================================================================
ARCHITECTURE - ONE LAZY STREAM OVER MANY PARTITIONS
================================================================================

Nothing happens until the consumer pulls the first record. Then:

    1. DISCOVER     root path -> PartitionedDirectory (schema + leaves)
                    failure -> DiscoveryError, zero records
    2. PROJECT      optional resolver narrows the schema
                    failure -> SchemaResolutionError, no reader opened
    3. FILTER       filter -> [(predicate, partition), ...] in discovery order
    4. EMPTY?       no partition left -> stream ends normally, no error
    5. PER PARTITION, in order, only after the previous one is exhausted:

        open reader ──> RowRecord ──> inject partition values ──> decode ──> T
             │                                                              │
             └──────────── closed on exhaustion, error or abandonment ──────┘

At most one reader is open at any time. Any error ends the whole stream;
records delivered before it stay valid, nothing after it is produced.

STATES
--------------------------------------------------------------------------------

    NOT_STARTED ──> DISCOVERY_FAILED
    NOT_STARTED ──> STREAMING ──> EXHAUSTED
                        │
                        └──────> FAILED
    NOT_STARTED / STREAMING ──close()──> CLOSED

Terminal states never change; pulling from them raises StopIteration.
================================================================================
"""

import enum
import logging
from contextlib import closing
from functools import partial
from typing import Callable, Generic, Iterable, Iterator, Optional, Sequence, Tuple, TypeVar

import pyarrow as pa

from hivestream.analysis.filters import Filter
from hivestream.analysis.partition_filter import filter_partitions
from hivestream.errors import DiscoveryError
from hivestream.execution.lifecycle import iter_partition_records
from hivestream.options import ReadOptions
from hivestream.schema.codec import ValueCodecConfiguration
from hivestream.schema.decoder import RecordDecoder
from hivestream.schema.schema import SchemaResolver
from hivestream.storage.discovery import PartitionedPath, find_partitioned_paths
from hivestream.storage.filesystem import PathLike, resolve_filesystem
from hivestream.storage.reader import PushdownPredicate
from hivestream.storage.record import RowRecord

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StreamState(enum.Enum):
    NOT_STARTED = "not_started"
    STREAMING = "streaming"
    EXHAUSTED = "exhausted"
    FAILED = "failed"
    DISCOVERY_FAILED = "discovery_failed"
    CLOSED = "closed"


TERMINAL_STATES = frozenset(
    {StreamState.EXHAUSTED, StreamState.FAILED, StreamState.DISCOVERY_FAILED, StreamState.CLOSED}
)


def inject_partition_values(
    partitions: Sequence[Tuple[str, str]],
    record: RowRecord,
    codec: ValueCodecConfiguration,
) -> RowRecord:
    """
    Set each partition column on ``record``, in order; a repeated column keeps
    its last value. Returns a new record; ``record`` itself is not modified.
    """
    for column, raw in partitions:
        record = record.updated(column, codec.encode_partition_value(raw))
    return record


def concat(factories: Iterable[Callable[[], Iterator[T]]]) -> Iterator[T]:
    """
    Chain lazily built iterators.

    Each factory is called only once the previous iterator is exhausted.
    Closing the result closes the iterator currently being drained.
    """
    for factory in factories:
        yield from factory()


class ParquetStream(Generic[T]):
    """
    Lazy, single-consumer iterator over the records of a partitioned dataset.

    Created by ``Builder.read()``. Use it as an iterator, ideally inside a
    ``with`` block so that an early exit releases the open reader at once:

        >>> with ParquetSource.typed(Sale).filter(col("year") == 2021).read("data/sales") as sales:
        ...     for sale in sales:
        ...         process(sale)
    """

    def __init__(
        self,
        path: PathLike,
        options: ReadOptions,
        filter: Filter,
        decoder: RecordDecoder[T],
        resolver: Optional[SchemaResolver] = None,
    ):
        self.path = path
        self.options = options
        self.filter = filter
        self.decoder = decoder
        self.resolver = resolver
        self.state = StreamState.NOT_STARTED
        self._records: Optional[Iterator[T]] = None

    def __iter__(self) -> "ParquetStream[T]":
        return self

    def __next__(self) -> T:
        if self.state in TERMINAL_STATES:
            raise StopIteration
        if self._records is None:
            self._records = self._generate()
            self.state = StreamState.STREAMING
        try:
            return next(self._records)
        except StopIteration:
            self.state = StreamState.EXHAUSTED
            raise
        except DiscoveryError:
            self.state = StreamState.DISCOVERY_FAILED
            raise
        except Exception:
            self.state = StreamState.FAILED
            raise

    def close(self) -> None:
        """Release the open reader, if any. Further pulls yield nothing."""
        if self._records is not None:
            self._records.close()
        if self.state not in TERMINAL_STATES:
            self.state = StreamState.CLOSED

    def __enter__(self) -> "ParquetStream[T]":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"ParquetStream(path={self.path!r}, filter={self.filter!r}, state={self.state.value})"

    def _generate(self) -> Iterator[T]:
        codec = ValueCodecConfiguration.from_options(self.options)
        try:
            filesystem, root = resolve_filesystem(self.path, self.options)
        except (pa.ArrowException, OSError, ValueError) as exc:
            raise DiscoveryError(f"cannot resolve filesystem for {self.path}: {exc}") from exc

        directory = find_partitioned_paths(root, filesystem)

        projected_schema = None
        if self.resolver is not None:
            projected_schema = self.resolver.resolve(directory.schema)
            logger.debug("Projected schema for %s: %s", root, projected_schema.names)

        selected = filter_partitions(self.filter, codec, directory)
        if not selected:
            logger.info("No partition of %s matches %r; stream is empty", root, self.filter)
            return

        yield from concat(
            partial(self._partition_records, filesystem, predicate, partitioned_path, projected_schema, codec)
            for predicate, partitioned_path in selected
        )

    def _partition_records(
        self,
        filesystem,
        predicate: PushdownPredicate,
        partitioned_path: PartitionedPath,
        projected_schema: Optional[pa.Schema],
        codec: ValueCodecConfiguration,
    ) -> Iterator[T]:
        records = iter_partition_records(
            filesystem, predicate, partitioned_path, projected_schema, self.options.batch_size
        )
        with closing(records):
            for record in records:
                record = inject_partition_values(partitioned_path.partitions, record, codec)
                yield self.decoder.decode(record, codec)
