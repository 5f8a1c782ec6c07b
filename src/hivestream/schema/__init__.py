"""
Schema system for hivestream.

Provides field types, schemas (and projection resolution), the value codec
configuration and record decoders.
"""

from .types import (
    BaseType,
    String,
    Int,
    Float,
    Bool,
    Timestamp,
    Date,
    Binary,
    Any,
    Struct,
    List,
    infer_type,
)

# Import types module for Types.X syntax
from . import types as Types
from .codec import ValueCodecConfiguration
from .decoder import DataclassDecoder, GenericRecordDecoder, RecordDecoder
from .schema import Schema, SchemaResolver

__all__ = [
    # Types module for Types.X syntax
    "Types",
    # Individual type classes
    "BaseType",
    "String",
    "Int",
    "Float",
    "Bool",
    "Timestamp",
    "Date",
    "Binary",
    "Any",
    "Struct",
    "List",
    "infer_type",
    # Schema
    "Schema",
    "SchemaResolver",
    # Decoding
    "ValueCodecConfiguration",
    "RecordDecoder",
    "GenericRecordDecoder",
    "DataclassDecoder",
]
