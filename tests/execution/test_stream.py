"""
Tests for execution/stream.py - the assembled partitioned stream.

STREAM CONTRACT
===============

1. ORDERING
   Records arrive in partition discovery order, and in file row order within a
   partition.

2. LAZINESS
   read() touches nothing. Discovery runs on the first pull; a partition's
   reader is opened only when the previous partition is exhausted.

3. RESOURCE SAFETY
   Every opened reader is closed exactly once: on exhaustion, on error, and
   when the consumer abandons the stream. At most one reader is open at a time.

4. FAILURES
   Any error ends the stream. Records already delivered stay valid; nothing is
   skipped or retried. An empty result after filtering is not an error, a
   missing root is.

Reader activity is observed by swapping the reader class used by the lifecycle
module for a subclass that records open/close events.
"""

from dataclasses import dataclass

import pyarrow as pa
import pyarrow.parquet as pq
import pytest

from hivestream import (
    DecodeError,
    DiscoveryError,
    FilterCompilationError,
    ParquetSource,
    ReadError,
    ReaderOpenError,
    ReadOptions,
    RowRecord,
    SchemaResolutionError,
    StreamState,
    col,
)
from hivestream.execution import concat, inject_partition_values
from hivestream.execution import lifecycle
from hivestream.schema import ValueCodecConfiguration
from hivestream.storage import ParquetFileReader


@dataclass
class Sale:
    id: int
    amount: float
    year: int


@dataclass
class CodedSale:
    id: int
    code: int


@pytest.fixture
def reader_events(monkeypatch):
    """List of ("open" | "close", path) events, in the order they happen."""
    events = []

    class RecordingReader(ParquetFileReader):
        def __init__(self, filesystem, path, *args, **kwargs):
            super().__init__(filesystem, path, *args, **kwargs)
            events.append(("open", path.rsplit("/", 1)[-1]))

        def close(self):
            events.append(("close", self.path.rsplit("/", 1)[-1]))
            super().close()

    monkeypatch.setattr(lifecycle, "ParquetFileReader", RecordingReader)
    return events


def open_readers(events):
    opened = [path for kind, path in events if kind == "open"]
    closed = [path for kind, path in events if kind == "close"]
    return [path for path in opened if opened.count(path) > closed.count(path)]


class TestOrderingAndContent:
    def test_unfiltered_partitioned_read_concatenates_in_discovery_order(self, sales_dir):
        ids = [record["id"] for record in ParquetSource.generic().read(sales_dir)]

        assert ids == [1, 2, 3, 4, 5]

    def test_flat_file_yields_every_row_once_in_order(self, tmp_path, write_parquet):
        path = write_parquet(tmp_path / "flat.parquet", [{"id": i} for i in range(7)])

        assert [r["id"] for r in ParquetSource.generic().read(path)] == list(range(7))

    def test_small_batches_keep_row_order(self, sales_dir):
        builder = ParquetSource.generic().options(ReadOptions(batch_size=1))

        assert [r["id"] for r in builder.read(sales_dir)] == [1, 2, 3, 4, 5]

    def test_nested_partitions_order_and_injection(self, regions_dir):
        records = list(ParquetSource.generic().read(regions_dir))

        assert [(r["id"], r["year"], r["country"]) for r in records] == [
            (1, "2020", "PL"),
            (2, "2020", "PL"),
            (3, "2020", "US"),
            (4, "2021", "PL"),
        ]

    def test_generic_records_carry_raw_partition_strings(self, sales_dir):
        first = next(iter(ParquetSource.generic().read(sales_dir)))

        assert isinstance(first, RowRecord)
        assert first == {"id": 1, "amount": 10.0, "code": "1", "year": "2020"}

    def test_uri_path(self, sales_dir):
        assert len(list(ParquetSource.generic().read(sales_dir.as_uri()))) == 5

    def test_reading_twice_yields_identical_sequences(self, sales_dir):
        builder = ParquetSource.typed(Sale).filter(col("amount") > 15)

        assert list(builder.read(sales_dir)) == list(builder.read(sales_dir))


class TestFiltering:
    def test_partition_filter_yields_typed_partition_values(self, sales_dir):
        sales = list(ParquetSource.typed(Sale).filter(col("year") == 2021).read(sales_dir))

        assert sales == [Sale(4, 40.0, 2021), Sale(5, 50.0, 2021)]
        assert all(isinstance(sale.year, int) for sale in sales)

    def test_pruned_partition_is_never_opened(self, sales_dir, reader_events):
        list(ParquetSource.generic().filter(col("year") == 2021).read(sales_dir))

        assert reader_events == [("open", "year=2021"), ("close", "year=2021")]

    def test_mixed_partition_and_row_filter(self, sales_dir):
        f = (col("year") == 2020) & (col("id") >= 2)

        assert [r["id"] for r in ParquetSource.generic().filter(f).read(sales_dir)] == [2, 3]

    def test_row_filter_spans_partitions(self, sales_dir):
        f = col("amount").isin([20.0, 50.0])

        assert [r["id"] for r in ParquetSource.generic().filter(f).read(sales_dir)] == [2, 5]

    def test_injected_values_match_source_partition(self, regions_dir):
        f = col("country") == "PL"

        records = list(ParquetSource.generic().filter(f).read(regions_dir))

        assert [r["id"] for r in records] == [1, 2, 4]
        assert {r["country"] for r in records} == {"PL"}

    def test_filter_excluding_everything_is_empty_not_error(self, sales_dir, reader_events):
        stream = ParquetSource.generic().filter(col("year") == 1999).read(sales_dir)

        assert list(stream) == []
        assert stream.state is StreamState.EXHAUSTED
        assert reader_events == []


class TestLazinessAndResources:
    def test_read_does_not_touch_the_filesystem(self, tmp_path, reader_events):
        stream = ParquetSource.generic().read(tmp_path / "not-yet-there")

        assert stream.state is StreamState.NOT_STARTED
        assert reader_events == []

    def test_drain_opens_and_closes_each_reader_once_sequentially(self, sales_dir, reader_events):
        list(ParquetSource.generic().read(sales_dir))

        assert reader_events == [
            ("open", "year=2020"),
            ("close", "year=2020"),
            ("open", "year=2021"),
            ("close", "year=2021"),
        ]

    def test_next_partition_opens_only_after_previous_is_exhausted(self, sales_dir, reader_events):
        stream = ParquetSource.generic().read(sales_dir)

        for _ in range(3):
            next(stream)
        assert reader_events == [("open", "year=2020")]

        next(stream)
        assert reader_events == [("open", "year=2020"), ("close", "year=2020"), ("open", "year=2021")]
        assert open_readers(reader_events) == ["year=2021"]

    def test_abandoned_stream_closes_current_reader_and_opens_no_more(self, sales_dir, reader_events):
        with ParquetSource.generic().read(sales_dir) as stream:
            next(stream)

        assert reader_events == [("open", "year=2020"), ("close", "year=2020")]
        assert stream.state is StreamState.CLOSED
        assert list(stream) == []
        assert len(reader_events) == 2

    def test_close_before_start(self, sales_dir, reader_events):
        stream = ParquetSource.generic().read(sales_dir)

        stream.close()

        assert stream.state is StreamState.CLOSED
        assert list(stream) == []
        assert reader_events == []

    def test_consumer_error_releases_reader(self, sales_dir, reader_events):
        with pytest.raises(RuntimeError):
            with ParquetSource.generic().read(sales_dir) as stream:
                for _ in stream:
                    raise RuntimeError("downstream failure")

        assert open_readers(reader_events) == []


class TestFailures:
    def test_missing_root_fails_on_first_pull(self, tmp_path, reader_events):
        stream = ParquetSource.generic().read(tmp_path / "missing")

        with pytest.raises(DiscoveryError):
            next(stream)

        assert stream.state is StreamState.DISCOVERY_FAILED
        assert list(stream) == []
        assert reader_events == []

    def test_inconsistent_partitioning_fails_before_any_record(self, tmp_path, write_parquet):
        write_parquet(tmp_path / "a" / "year=2020" / "p.parquet", [{"id": 1}])
        write_parquet(tmp_path / "a" / "month=1" / "p.parquet", [{"id": 2}])

        with pytest.raises(DiscoveryError, match="inconsistent"):
            list(ParquetSource.generic().read(tmp_path / "a"))

    def test_empty_flat_file_is_empty_stream(self, tmp_path, write_parquet):
        write_parquet(tmp_path / "empty" / "part.parquet", [], pa.schema([("id", pa.int64())]))
        stream = ParquetSource.generic().read(tmp_path / "empty")

        assert list(stream) == []
        assert stream.state is StreamState.EXHAUSTED

    def test_projection_of_absent_column_fails_before_any_reader(self, sales_dir, reader_events):
        stream = ParquetSource.projected_generic(["id", "discount"]).read(sales_dir)

        with pytest.raises(SchemaResolutionError, match="discount"):
            next(stream)

        assert stream.state is StreamState.FAILED
        assert reader_events == []

    def test_decode_error_ends_stream_after_valid_records(self, sales_dir, reader_events):
        stream = ParquetSource.typed(CodedSale).read(sales_dir)
        delivered = []

        with pytest.raises(DecodeError, match="field 'code'"):
            for sale in stream:
                delivered.append(sale)

        assert delivered == [CodedSale(1, 1), CodedSale(2, 2), CodedSale(3, 3)]
        assert stream.state is StreamState.FAILED
        assert list(stream) == []
        assert open_readers(reader_events) == []

    def test_corrupt_partition_fails_after_earlier_partitions(self, sales_dir):
        (sales_dir / "year=2021" / "part-0000.parquet").write_bytes(b"corrupted")
        stream = ParquetSource.generic().read(sales_dir)
        delivered = []

        with pytest.raises(ReaderOpenError):
            for record in stream:
                delivered.append(record["id"])

        assert delivered == [1, 2, 3]
        assert stream.state is StreamState.FAILED

    def test_read_failure_ends_stream_after_delivered_records(self, sales_dir, reader_events, monkeypatch):
        iter_batches = pq.ParquetFile.iter_batches

        def failing_after_first_batch(self, *args, **kwargs):
            batches = iter_batches(self, *args, **kwargs)
            yield next(batches)
            raise OSError("disk read failed")

        monkeypatch.setattr(pq.ParquetFile, "iter_batches", failing_after_first_batch)
        stream = ParquetSource.generic().read(sales_dir)
        delivered = []

        with pytest.raises(ReadError, match="disk read failed"):
            for record in stream:
                delivered.append(record["id"])

        assert delivered == [1, 2, 3]
        assert stream.state is StreamState.FAILED
        assert list(stream) == []
        assert reader_events == [("open", "year=2020"), ("close", "year=2020")]
        assert open_readers(reader_events) == []

    def test_predicate_rejected_by_data_fails_stream(self, sales_dir, reader_events):
        stream = ParquetSource.generic().filter(col("code") > 5).read(sales_dir)

        with pytest.raises(FilterCompilationError, match="code > 5"):
            next(stream)

        assert stream.state is StreamState.FAILED
        assert open_readers(reader_events) == []


class TestBuildingBlocks:
    def test_inject_is_last_write_wins_and_copy_on_write(self):
        record = RowRecord({"id": 1})

        injected = inject_partition_values(
            (("year", "2020"), ("year", "2021")), record, ValueCodecConfiguration()
        )

        assert injected == {"id": 1, "year": "2021"}
        assert record == {"id": 1}

    def test_inject_null_partition(self):
        injected = inject_partition_values(
            (("year", "__HIVE_DEFAULT_PARTITION__"),), RowRecord(), ValueCodecConfiguration()
        )

        assert injected == {"year": None}

    def test_concat_builds_each_iterator_lazily(self):
        built = []

        def factory(values):
            def build():
                built.append(values)
                return iter(values)

            return build

        chained = concat([factory([1, 2]), factory([]), factory([3])])

        assert built == []
        assert next(chained) == 1
        assert built == [[1, 2]]
        assert list(chained) == [2, 3]
        assert built == [[1, 2], [], [3]]
