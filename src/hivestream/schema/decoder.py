"""
Record decoders: convert a generic ``RowRecord`` into the caller's type.

The decoder is an explicit parameter of a source builder, chosen by the caller
when the source is built. ``ParquetSource.typed(cls)`` wires a
``DataclassDecoder``; ``ParquetSource.generic()`` wires the identity decoder.
"""

import dataclasses
from typing import Generic, Protocol, Type, TypeVar

from hivestream.schema import types as Types
from hivestream.schema.codec import ValueCodecConfiguration
from hivestream.storage.record import RowRecord

T = TypeVar("T")
T_co = TypeVar("T_co", covariant=True)


class RecordDecoder(Protocol[T_co]):
    def decode(self, record: RowRecord, codec: ValueCodecConfiguration) -> T_co:
        ...


class GenericRecordDecoder:
    """Returns records unchanged."""

    def decode(self, record: RowRecord, codec: ValueCodecConfiguration) -> RowRecord:
        return record


class DataclassDecoder(Generic[T]):
    """
    Decodes records into instances of a dataclass.

    Columns map to fields by name. Extra columns are ignored; a missing column
    takes the field default, or ``None`` for an ``Optional`` field, and is a
    ``DecodeError`` otherwise.

    Example:
        >>> @dataclass
        ... class Sale:
        ...     id: int
        ...     year: int
        >>> DataclassDecoder(Sale).decode(RowRecord({"id": 1, "year": "2021"}), codec)
        Sale(id=1, year=2021)
    """

    def __init__(self, record_type: Type[T]):
        if not (dataclasses.is_dataclass(record_type) and isinstance(record_type, type)):
            raise TypeError(f"{record_type!r} is not a dataclass")
        self.record_type = record_type
        self._struct = Types.Struct(
            Types.dataclass_fields(record_type), target=record_type, nullable=False
        )

    def decode(self, record: RowRecord, codec: ValueCodecConfiguration) -> T:
        return self._struct.decode(record, codec)
