"""
Filesystem resolution and listing helpers.

Paths may be plain local paths or URIs understood by ``pyarrow.fs``
(``file:///data/users``, ``s3://bucket/users``, ...). An explicit filesystem in
``ReadOptions`` takes precedence over the one implied by the URI.
"""

import logging
import os
from typing import List, Tuple, Union
from urllib.parse import urlparse

import pyarrow.fs as pafs

from hivestream.constants import HIDDEN_PREFIXES

logger = logging.getLogger(__name__)

PathLike = Union[str, "os.PathLike[str]"]


def _is_uri(path: str) -> bool:
    scheme = urlparse(path).scheme
    # single letter schemes are Windows drive letters
    return len(scheme) > 1


def resolve_filesystem(path: PathLike, options) -> Tuple[pafs.FileSystem, str]:
    """
    Return the filesystem to read ``path`` through and the path as that
    filesystem expects it.

    Args:
        path: Local path or URI
        options: ``ReadOptions`` of the current read call

    Raises:
        pyarrow.ArrowInvalid: the URI scheme is not supported by pyarrow
    """
    raw = os.fspath(path)
    if options.filesystem is not None:
        if _is_uri(raw):
            parsed = urlparse(raw)
            raw = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
        return options.filesystem, raw.rstrip("/") or "/"
    if _is_uri(raw):
        filesystem, fs_path = pafs.FileSystem.from_uri(raw)
        logger.debug("Resolved %s to %s filesystem", raw, filesystem.type_name)
        return filesystem, fs_path.rstrip("/") or "/"
    return pafs.LocalFileSystem(), os.path.abspath(raw)


def is_hidden(name: str) -> bool:
    return name.startswith(HIDDEN_PREFIXES)


def list_children(filesystem: pafs.FileSystem, path: str) -> List[pafs.FileInfo]:
    """Non-hidden direct children of ``path``, sorted by name."""
    infos = filesystem.get_file_info(pafs.FileSelector(path, recursive=False))
    return sorted((info for info in infos if not is_hidden(info.base_name)), key=lambda i: i.base_name)


def list_data_files(filesystem: pafs.FileSystem, path: str) -> List[str]:
    """
    Data files making up a leaf: ``[path]`` when it is a file, otherwise its
    non-hidden direct child files in name order.
    """
    info = filesystem.get_file_info(path)
    if info.type == pafs.FileType.File:
        return [path]
    if info.type == pafs.FileType.NotFound:
        raise FileNotFoundError(f"path not found: {path}")
    return [child.path for child in list_children(filesystem, path) if child.type == pafs.FileType.File]
