"""
Value codec configuration.

Derived once per ``read()`` call from ``ReadOptions`` and shared, read-only, by
every partition of that call.
"""

from dataclasses import dataclass
from datetime import timezone as dt_timezone, tzinfo
from typing import Optional

from hivestream.constants import HIVE_DEFAULT_PARTITION


@dataclass(frozen=True)
class ValueCodecConfiguration:
    """Controls how raw values (partition strings, naive timestamps) are encoded."""

    timezone: tzinfo = dt_timezone.utc

    @classmethod
    def from_options(cls, options) -> "ValueCodecConfiguration":
        return cls(timezone=options.timezone)

    def encode_partition_value(self, raw: str) -> Optional[str]:
        """
        Turn a raw partition directory value into the value stored in a record.

        Partition values are kept as strings; the record decoder coerces them to
        the target field type. Hive's null marker becomes ``None``.
        """
        if raw == HIVE_DEFAULT_PARTITION:
            return None
        return raw
