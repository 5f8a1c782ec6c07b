"""
Per-call read configuration.

A ``ReadOptions`` bundle is immutable and applies uniformly to every partition
read by one ``read()`` call.
"""

import dataclasses
from dataclasses import dataclass
from datetime import timezone as dt_timezone, tzinfo
from typing import Any, Optional

from hivestream.constants import DEFAULT_BATCH_SIZE


@dataclass(frozen=True)
class ReadOptions:
    """
    How Parquet files should be read.

    Attributes:
        filesystem: ``pyarrow.fs.FileSystem`` to read through. When ``None`` the
            filesystem is inferred from the path (local path or URI scheme).
        timezone: Timezone applied to naive timestamps while decoding values.
        batch_size: Rows pulled from a file per Arrow batch.

    Example:
        >>> options = ReadOptions(batch_size=1_000)
        >>> options.replace(timezone=dt_timezone.utc).batch_size
        1000
    """

    filesystem: Optional[Any] = None
    timezone: tzinfo = dt_timezone.utc
    batch_size: int = DEFAULT_BATCH_SIZE

    def __post_init__(self) -> None:
        if self.batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")

    def replace(self, **changes: Any) -> "ReadOptions":
        return dataclasses.replace(self, **changes)
