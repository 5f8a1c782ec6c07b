"""
Typed error taxonomy for hivestream.

Every failure surfaced by a stream is one of these classes. Errors coming from
pyarrow or the operating system are wrapped (``raise ... from exc``) so the
original cause stays attached.
"""

__all__ = [
    "HivestreamError",
    "DiscoveryError",
    "SchemaResolutionError",
    "ReaderOpenError",
    "ReadError",
    "DecodeError",
    "FilterCompilationError",
    "format_error",
]


class HivestreamError(Exception):
    """Base class for all errors raised by hivestream."""


class DiscoveryError(HivestreamError):
    """Root path missing, or the directory tree is inconsistently partitioned."""


class SchemaResolutionError(HivestreamError):
    """Requested projection is not a narrowing of the dataset schema."""


class ReaderOpenError(HivestreamError):
    """A partition's file could not be opened (missing, corrupt, incompatible)."""


class ReadError(HivestreamError):
    """Pulling the next record from an open reader failed."""


class DecodeError(HivestreamError):
    """A value could not be coerced to the requested target type."""


class FilterCompilationError(HivestreamError):
    """A filter could not be evaluated against partitions or pushed to a reader."""


def format_error(e: BaseException) -> str:
    """Return a short, uniform message like 'DiscoveryError: detail'."""
    name = e.__class__.__name__
    msg = str(e).strip()
    return f"{name}: {msg}" if msg else name


__all__ = sorted(__all__)
