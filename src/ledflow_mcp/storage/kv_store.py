"""
Key-value store - one JSON document per key, replaced atomically.

Keys are namespaced with a slash ("presets/color", "scenes/all"); each
namespace is a directory under the store root and each key a .json file.

A write failure (disk full, permissions) is logged and disables the store
for the rest of the session: the engine keeps working from memory and
nothing keeps hammering a broken disk.
"""

import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Union

from .atomic import atomic_json_write, read_json

logger = logging.getLogger(__name__)

_KEY_PART = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStore:
    """Namespaced JSON documents on disk."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).expanduser()
        self._disabled = False

    @property
    def disabled(self) -> bool:
        return self._disabled

    def _path_for(self, key: str) -> Path:
        parts = key.split("/")
        if not parts or any(not _KEY_PART.match(p) or p in (".", "..") for p in parts):
            raise ValueError(f"invalid store key: {key!r}")
        return self.root.joinpath(*parts[:-1], parts[-1] + ".json")

    def get(self, key: str, default: Any = None) -> Any:
        """Read a document. Missing or unreadable documents return default."""
        path = self._path_for(key)
        try:
            return read_json(path, default)
        except (OSError, ValueError) as e:
            logger.warning("[Store] Could not read %s: %s", key, e)
            return default

    def set(self, key: str, value: Any) -> bool:
        """Replace a document. Returns False when the store is (or becomes) disabled."""
        path = self._path_for(key)
        if self._disabled:
            return False
        try:
            atomic_json_write(path, value, indent=2)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error("[Store] Write of %s failed, persistence disabled for this session: %s", key, e)
            self._disabled = True
            return False

    def delete(self, key: str) -> bool:
        path = self._path_for(key)
        if self._disabled:
            return False
        try:
            path.unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.error("[Store] Delete of %s failed, persistence disabled for this session: %s", key, e)
            self._disabled = True
            return False

    def keys(self, namespace: Optional[str] = None) -> List[str]:
        """Keys under a namespace (or all keys), sorted."""
        base = self._path_for(namespace + "/x").parent if namespace else self.root
        if not base.exists():
            return []
        found = []
        for path in base.rglob("*.json"):
            rel = path.relative_to(self.root).with_suffix("")
            found.append("/".join(rel.parts))
        return sorted(found)
