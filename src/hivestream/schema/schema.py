"""
Schema definitions and projection resolution.

A ``Schema`` is an ordered mapping of column name to field type. It doubles as
the schema resolver for projected reads: ``resolve()`` narrows the dataset's
base Arrow schema to the requested columns, so only those columns are
physically read.

Example:
    >>> from hivestream.schema import Schema, Types
    >>> requested = Schema({"id": Types.Int(), "year": Types.Int()})
    >>> requested.resolve(base).names      # base: id, name, score, year
    ['id', 'year']
"""

from typing import Dict, List, Mapping, Protocol

import pyarrow as pa

from hivestream.errors import SchemaResolutionError
from hivestream.schema import types as Types


class SchemaResolver(Protocol):
    """Resolves a requested projection against a dataset's base schema."""

    def resolve(self, base: pa.Schema) -> pa.Schema:
        ...


def _from_arrow_type(data_type: pa.DataType, nullable: bool) -> Types.BaseType:
    if pa.types.is_boolean(data_type):
        return Types.Bool(nullable)
    if pa.types.is_integer(data_type):
        return Types.Int(nullable)
    if pa.types.is_floating(data_type) or pa.types.is_decimal(data_type):
        return Types.Float(nullable)
    if pa.types.is_string(data_type) or pa.types.is_large_string(data_type):
        return Types.String(nullable)
    if pa.types.is_binary(data_type) or pa.types.is_large_binary(data_type):
        return Types.Binary(nullable)
    if pa.types.is_timestamp(data_type):
        return Types.Timestamp(nullable)
    if pa.types.is_date(data_type):
        return Types.Date(nullable)
    if pa.types.is_list(data_type) or pa.types.is_large_list(data_type):
        element = data_type.value_field
        return Types.List(_from_arrow_type(element.type, element.nullable), nullable)
    if pa.types.is_struct(data_type):
        fields = {
            data_type.field(i).name: _from_arrow_type(data_type.field(i).type, data_type.field(i).nullable)
            for i in range(data_type.num_fields)
        }
        return Types.Struct(fields, nullable=nullable)
    return Types.Any(nullable)


class Schema:
    """Ordered column name -> field type mapping."""

    def __init__(self, fields: Mapping[str, Types.BaseType]):
        self.fields: Dict[str, Types.BaseType] = dict(fields)

    @classmethod
    def from_dataclass(cls, record_type: type) -> "Schema":
        return cls(Types.dataclass_fields(record_type))

    @classmethod
    def from_arrow(cls, schema: pa.Schema) -> "Schema":
        return cls({f.name: _from_arrow_type(f.type, f.nullable) for f in schema})

    @property
    def names(self) -> List[str]:
        return list(self.fields)

    def resolve(self, base: pa.Schema) -> pa.Schema:
        """
        Narrow ``base`` to the columns of this schema, in this schema's order.

        Nested struct fields are checked for presence; the returned schema keeps
        the base (on-disk) Arrow types.

        Raises:
            SchemaResolutionError: a requested column or nested field is absent.
        """
        resolved = []
        for name, field_type in self.fields.items():
            index = base.get_field_index(name)
            if index == -1:
                raise SchemaResolutionError(
                    f"column {name!r} is absent from dataset schema {base.names}"
                )
            field = base.field(index)
            _check_struct(name, field_type, field.type)
            resolved.append(field)
        return pa.schema(resolved, metadata=base.metadata)

    def __eq__(self, other: object) -> bool:
        return isinstance(other, Schema) and self.fields == other.fields

    def __repr__(self) -> str:
        return f"Schema({self.fields!r})"


def _check_struct(path: str, field_type: Types.BaseType, data_type: pa.DataType) -> None:
    if isinstance(field_type, Types.List) and (pa.types.is_list(data_type) or pa.types.is_large_list(data_type)):
        _check_struct(path, field_type.element, data_type.value_type)
        return
    if not isinstance(field_type, Types.Struct):
        return
    if not pa.types.is_struct(data_type):
        raise SchemaResolutionError(f"column {path!r} is not a struct in dataset schema ({data_type})")
    available = {data_type.field(i).name: data_type.field(i).type for i in range(data_type.num_fields)}
    for name, nested in field_type.fields.items():
        if name not in available:
            raise SchemaResolutionError(f"field {path}.{name} is absent from dataset schema")
        _check_struct(f"{path}.{name}", nested, available[name])
