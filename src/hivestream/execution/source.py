"""
Builders of partitioned Parquet streams.

Usage:
    >>> from hivestream import ParquetSource, ReadOptions, col
    >>>
    >>> @dataclass
    ... class Sale:
    ...     id: int
    ...     amount: float
    ...     year: int          # partition column, injected from year=... dirs
    >>>
    >>> sales = (
    ...     ParquetSource.typed(Sale)
    ...     .options(ReadOptions(batch_size=5_000))
    ...     .filter(col("year") == 2021)
    ...     .read("file:///data/sales")
    ... )
    >>> for sale in sales:
    ...     print(sale)

Builders are immutable; every ``read()`` returns a new, independent stream.
"""

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, Sequence, Type, TypeVar, Union

import pyarrow as pa

from hivestream.analysis.filters import NOOP_FILTER, Filter
from hivestream.execution.stream import ParquetStream
from hivestream.options import ReadOptions
from hivestream.schema import types as Types
from hivestream.schema.decoder import DataclassDecoder, GenericRecordDecoder, RecordDecoder
from hivestream.schema.schema import Schema, SchemaResolver
from hivestream.storage.filesystem import PathLike
from hivestream.storage.record import RowRecord

T = TypeVar("T")


@dataclass(frozen=True, eq=False)
class Builder(Generic[T]):
    """Configures and creates a ``ParquetStream`` of ``T``."""

    decoder: RecordDecoder[T]
    resolver: Optional[SchemaResolver] = None
    read_options: ReadOptions = field(default_factory=ReadOptions)
    read_filter: Filter = NOOP_FILTER

    def options(self, options: Optional[ReadOptions] = None, **changes: Any) -> "Builder[T]":
        """
        Set how files are read; defaults to ``ReadOptions()``.

        Keyword changes are applied on top of ``options``, or of the current
        options when none are given:

            >>> builder.options(batch_size=1_000)
        """
        base = options if options is not None else self.read_options
        return dataclasses.replace(self, read_options=base.replace(**changes))

    def filter(self, filter: Filter) -> "Builder[T]":
        """Set a filter; none is applied by default."""
        return dataclasses.replace(self, read_filter=filter)

    def read(self, path: PathLike) -> ParquetStream[T]:
        """
        Create a lazy stream over the dataset at ``path``.

        Args:
            path: Parquet file or (partitioned) directory, local path or URI
                such as ``file:///data/users``
        """
        return ParquetStream(path, self.read_options, self.read_filter, self.decoder, self.resolver)


class ParquetSource:
    """Entry points for building partitioned Parquet streams."""

    @staticmethod
    def typed(record_type: Type[T]) -> Builder[T]:
        """Stream instances of the dataclass ``record_type``; every column is read."""
        return Builder(DataclassDecoder(record_type))

    @staticmethod
    def projected(record_type: Type[T]) -> Builder[T]:
        """
        Stream instances of ``record_type``, reading only the columns it declares.

        Fails with ``SchemaResolutionError`` when a declared field is absent from
        the dataset.
        """
        return Builder(DataclassDecoder(record_type), resolver=Schema.from_dataclass(record_type))

    @staticmethod
    def generic() -> Builder[RowRecord]:
        """Stream generic ``RowRecord`` objects."""
        return Builder(GenericRecordDecoder())

    @staticmethod
    def projected_generic(schema: Union[Schema, pa.Schema, Sequence[str]]) -> Builder[RowRecord]:
        """Stream generic records restricted to the columns of ``schema``."""
        if isinstance(schema, pa.Schema):
            schema = Schema.from_arrow(schema)
        elif not isinstance(schema, Schema):
            schema = Schema({name: Types.Any() for name in schema})
        return Builder(GenericRecordDecoder(), resolver=schema)

    @staticmethod
    def custom(decoder: RecordDecoder[T], resolver: Optional[SchemaResolver] = None) -> Builder[T]:
        """Stream records decoded by an explicit decoder (and optional resolver)."""
        return Builder(decoder, resolver=resolver)
