"""
Document files behind the key-value store.

Every store key is one JSON file, and replacing it is all-or-nothing: a
reader (or the next process start) finds either the previous preset table
or the new one, never a truncated file.

- The document is serialized before any file is touched, so an
  unserializable payload leaves the disk exactly as it was.
- The bytes go to a uniquely named hidden sibling, so two writers of the
  same key never share a temp file.
- The sibling is fsynced and renamed over the target, then the directory
  is fsynced so the rename itself survives a power cut.

read_json keeps "no document yet" (default) apart from "document is
corrupt" (ValueError) so the store can log the second.
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Optional, Union

logger = logging.getLogger(__name__)


def atomic_json_write(path: Union[str, Path], data: Any, *, indent: Optional[int] = None) -> None:
    """Replace the JSON document at path. Raises on serialization or I/O failure."""
    path = Path(path)
    text = json.dumps(data, indent=indent)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
    _sync_directory(path.parent)


def _sync_directory(directory: Path) -> None:
    # Some platforms cannot open a directory for fsync; the rename has still happened
    try:
        fd = os.open(directory, os.O_RDONLY)
    except OSError as e:
        logger.debug("[Store] Directory sync skipped for %s: %s", directory, e)
        return
    try:
        os.fsync(fd)
    except OSError as e:
        logger.debug("[Store] Directory sync failed for %s: %s", directory, e)
    finally:
        os.close(fd)


def read_json(path: Union[str, Path], default: Any = None) -> Any:
    """The document at path, or default if there is none. Corrupt JSON raises ValueError."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            return json.load(f)
    except FileNotFoundError:
        return default
