"""
Generic intermediate record.

A ``RowRecord`` holds one decoded row keyed by column name, before it is
converted to the caller's type. Records are immutable: ``updated()`` returns a
new record and leaves the original (and anything sharing it) untouched.
"""

import copy
from typing import Any, Dict, Iterator, Mapping


class RowRecord(Mapping[str, Any]):
    """
    Immutable mapping of column name to value.

    Nested struct columns are plain dicts; ``updated()`` addresses their fields
    with dotted column paths.

    Example:
        >>> record = RowRecord({"id": 1, "meta": {"source": "a"}})
        >>> record.updated("year", "2021")["year"]
        '2021'
        >>> record.updated("meta.source", "b")["meta"]
        {'source': 'b'}
        >>> record["meta"]
        {'source': 'a'}
    """

    __slots__ = ("_values",)

    def __init__(self, values: Mapping[str, Any] = ()):
        self._values: Dict[str, Any] = dict(values)

    def __getitem__(self, column: str) -> Any:
        return self._values[column]

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def updated(self, column_path: str, value: Any) -> "RowRecord":
        """Return a copy of this record with ``column_path`` set to ``value``."""
        head, _, rest = column_path.partition(".")
        values = dict(self._values)
        if not rest:
            values[head] = value
        else:
            nested = values.get(head)
            nested = dict(nested) if isinstance(nested, Mapping) else {}
            values[head] = dict(RowRecord(nested).updated(rest, value)._values)
        return RowRecord(values)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._values)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, RowRecord):
            return self._values == other._values
        if isinstance(other, Mapping):
            return self._values == dict(other)
        return NotImplemented

    __hash__ = None

    def __repr__(self) -> str:
        return f"RowRecord({self._values!r})"
