"""
Field types for hivestream schemas.

Each type knows how to decode a raw value (as produced by the Parquet reader or
injected from a partition directory name) into the Python value of a typed
record field:

    Types.Int().decode("2021", codec)            -> 2021
    Types.Bool().decode("true", codec)           -> True
    Types.Timestamp().decode("2024-01-15", codec) -> datetime(2024, 1, 15, tzinfo=UTC)

Partition values always arrive as strings, so every scalar type accepts its
string form as well as its native form.

Types can be inferred from Python annotations, which is how typed records
(dataclasses) get their schema:

    infer_type(int)               -> Int(nullable=False)
    infer_type(Optional[str])     -> String(nullable=True)
    infer_type(List[float])       -> List(Float(nullable=False), nullable=False)
    infer_type(SomeDataclass)     -> Struct({...}, target=SomeDataclass)
"""

import copy
import dataclasses
import typing
from collections import abc
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from types import UnionType
from typing import Any as AnyValue
from typing import Dict, Optional, Union

from hivestream.errors import DecodeError
from hivestream.schema.codec import ValueCodecConfiguration


class BaseType:
    """Base class for all field types."""

    def __init__(self, nullable: bool = True):
        self.nullable = nullable

    def decode(self, value: AnyValue, codec: ValueCodecConfiguration) -> AnyValue:
        """
        Decode ``value`` into this type's Python representation.

        Raises:
            DecodeError: value is null for a non-nullable type, or cannot be
                coerced.
        """
        if value is None:
            if self.nullable:
                return None
            raise DecodeError(f"null value for non-nullable {self!r}")
        try:
            return self._decode(value, codec)
        except DecodeError:
            raise
        except (TypeError, ValueError, ArithmeticError) as exc:
            raise DecodeError(f"cannot decode {value!r} as {self!r}: {exc}") from exc

    def _decode(self, value: AnyValue, codec: ValueCodecConfiguration) -> AnyValue:
        raise NotImplementedError

    def with_nullable(self, nullable: bool) -> "BaseType":
        clone = copy.copy(self)
        clone.nullable = nullable
        return clone

    def __eq__(self, other: object) -> bool:
        return type(self) is type(other) and self.__dict__ == other.__dict__

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(nullable={self.nullable})"


class String(BaseType):
    def _decode(self, value, codec):
        if isinstance(value, str):
            return value
        if isinstance(value, (bytes, bytearray)):
            return bytes(value).decode("utf-8")
        raise TypeError(f"expected str, got {type(value).__name__}")


class Int(BaseType):
    def _decode(self, value, codec):
        if isinstance(value, int):
            return int(value)
        if isinstance(value, float) and value.is_integer():
            return int(value)
        if isinstance(value, Decimal) and value == value.to_integral_value():
            return int(value)
        if isinstance(value, (float, Decimal)):
            raise ValueError("value has a fractional part")
        if isinstance(value, str):
            return int(value.strip())
        raise TypeError(f"expected int, got {type(value).__name__}")


class Float(BaseType):
    def _decode(self, value, codec):
        if isinstance(value, bool):
            raise TypeError("expected float, got bool")
        if isinstance(value, (int, float, Decimal)):
            return float(value)
        if isinstance(value, str):
            return float(value.strip())
        raise TypeError(f"expected float, got {type(value).__name__}")


class Bool(BaseType):
    _TRUE = frozenset({"true", "t", "1", "yes"})
    _FALSE = frozenset({"false", "f", "0", "no"})

    def _decode(self, value, codec):
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in self._TRUE:
                return True
            if lowered in self._FALSE:
                return False
            raise ValueError(f"not a boolean literal: {value!r}")
        raise TypeError(f"expected bool, got {type(value).__name__}")


class Timestamp(BaseType):
    """Timestamps are timezone-aware; naive values get the codec timezone."""

    def _decode(self, value, codec):
        if isinstance(value, datetime):
            parsed = value
        elif isinstance(value, date):
            parsed = datetime(value.year, value.month, value.day)
        elif isinstance(value, str):
            text = value.strip()
            if text.endswith("Z"):
                text = text[:-1] + "+00:00"
            parsed = datetime.fromisoformat(text)
        else:
            raise TypeError(f"expected datetime, got {type(value).__name__}")
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=codec.timezone)
        return parsed


class Date(BaseType):
    def _decode(self, value, codec):
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            return date.fromisoformat(value.strip())
        raise TypeError(f"expected date, got {type(value).__name__}")


class Binary(BaseType):
    def _decode(self, value, codec):
        if isinstance(value, (bytes, bytearray)):
            return bytes(value)
        if isinstance(value, str):
            return value.encode("utf-8")
        raise TypeError(f"expected bytes, got {type(value).__name__}")


class Any(BaseType):
    """Pass-through type: values are returned exactly as read."""

    def _decode(self, value, codec):
        return value


class List(BaseType):
    def __init__(self, element: Optional[BaseType] = None, nullable: bool = True):
        super().__init__(nullable)
        self.element = element if element is not None else Any()

    def _decode(self, value, codec):
        if isinstance(value, (str, bytes, Mapping)):
            raise TypeError(f"expected a sequence, got {type(value).__name__}")
        return [self.element.decode(item, codec) for item in value]

    def __repr__(self) -> str:
        return f"List({self.element!r}, nullable={self.nullable})"


class Struct(BaseType):
    """
    Nested record type.

    Without a ``target`` a struct decodes to a plain dict. With a dataclass
    ``target`` it decodes to an instance of that class; fields missing from the
    value fall back to the dataclass default, then to ``None`` when nullable.
    """

    def __init__(
        self,
        fields: Dict[str, BaseType],
        target: Optional[type] = None,
        nullable: bool = True,
    ):
        super().__init__(nullable)
        self.fields = dict(fields)
        self.target = target
        self._defaulted = frozenset(
            f.name
            for f in (dataclasses.fields(target) if target is not None else ())
            if f.default is not dataclasses.MISSING
            or f.default_factory is not dataclasses.MISSING
        )

    def _decode(self, value, codec):
        if not isinstance(value, Mapping):
            raise TypeError(f"expected a mapping, got {type(value).__name__}")
        decoded: Dict[str, AnyValue] = {}
        for name, field_type in self.fields.items():
            if name in value:
                try:
                    decoded[name] = field_type.decode(value[name], codec)
                except DecodeError as exc:
                    raise DecodeError(f"field {name!r}: {exc}") from exc
            elif name in self._defaulted:
                continue
            elif field_type.nullable:
                decoded[name] = None
            else:
                raise DecodeError(f"missing required field {name!r}")
        if self.target is None:
            return decoded
        return self.target(**decoded)

    def __repr__(self) -> str:
        target = self.target.__name__ if self.target is not None else None
        return f"Struct({list(self.fields)}, target={target}, nullable={self.nullable})"


# Order matters: bool is a subclass of int, datetime of date
_SCALARS = (
    (bool, Bool),
    (int, Int),
    (float, Float),
    (str, String),
    (datetime, Timestamp),
    (date, Date),
    (bytes, Binary),
)


def _is_optional(origin) -> bool:
    return origin is Union or origin is UnionType


def infer_type(annotation: AnyValue) -> BaseType:
    """
    Map a Python annotation (or a Python class) to a field type.

    Raises:
        TypeError: the annotation has no field type counterpart.
    """
    if annotation is AnyValue or annotation is object:
        return Any()

    origin = typing.get_origin(annotation)
    args = typing.get_args(annotation)

    if _is_optional(origin):
        present = [arg for arg in args if arg is not type(None)]
        if len(present) == 1:
            return infer_type(present[0]).with_nullable(True)
        return Any()

    if origin in (list, tuple, abc.Sequence):
        element = infer_type(args[0]) if args else Any()
        return List(element, nullable=False)

    if dataclasses.is_dataclass(annotation) and isinstance(annotation, type):
        return Struct(dataclass_fields(annotation), target=annotation, nullable=False)

    for python_type, field_type in _SCALARS:
        if annotation is python_type:
            return field_type(nullable=False)

    raise TypeError(f"unsupported field annotation: {annotation!r}")


def dataclass_fields(cls: type) -> Dict[str, BaseType]:
    """Field types of a dataclass, in declaration order (init fields only)."""
    hints = typing.get_type_hints(cls)
    return {
        f.name: infer_type(hints[f.name])
        for f in dataclasses.fields(cls)
        if f.init
    }
