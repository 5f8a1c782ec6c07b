"""Static defaults shared across hivestream."""

# Rows pulled from a Parquet file per Arrow batch
DEFAULT_BATCH_SIZE = 10_000

# Files and directories starting with these are never data (_SUCCESS, .crc, ...)
HIDDEN_PREFIXES = ("_", ".")

# Hive-style partition directory segment: column=value
PARTITION_SEPARATOR = "="

# Directory value Hive writes for a null partition value
HIVE_DEFAULT_PARTITION = "__HIVE_DEFAULT_PARTITION__"
