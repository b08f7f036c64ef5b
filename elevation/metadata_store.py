from __future__ import annotations

"""
Cache metadata index.

Layout on disk:

    <cache_dir>/
      ├─ dem_cache.json           {cache_key: CacheEntry} for every key
      ├─ dem_<key>.png            elevation-only thumbnail
      ├─ dem_roads_<key>.png      elevation + roads composite
      └─ roads_<key>_roads.png    roads-only thumbnail

The whole map is rewritten on every mutation. There is no eviction.

One MetadataStore instance owns the map for a process; all reads and writes go
through it. Mutation + save run under the instance lock, so two updates to the
same entry merge instead of overwriting each other. Nothing coordinates
separate processes sharing a cache_dir (last writer wins).
"""

import dataclasses
import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Generic, Iterable, Optional, TypeVar

from common.types import CacheEntry
from common.utils import now_ms
from elevation.errors import PersistenceError

log = logging.getLogger(__name__)

METADATA_FILENAME = "dem_cache.json"

T = TypeVar("T")


@dataclass
class Computed(Generic[T]):
    """
    Result of a cache-miss computation.

    value:    returned to the caller
    fields:   CacheEntry attributes to merge into the entry
    drop:     CacheEntry attributes to clear (e.g. a stale composite filename)
    defaults: CacheEntry attributes set only when the entry is created
    """
    value: T
    fields: Dict[str, Any] = field(default_factory=dict)
    drop: Iterable[str] = ()
    defaults: Dict[str, Any] = field(default_factory=dict)


class MetadataStore:
    def __init__(self, cache_dir: str | Path):
        self.cache_dir = Path(cache_dir)
        self.path = self.cache_dir / METADATA_FILENAME
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.RLock()
        self.load()

    # -------- persistence --------

    def load(self) -> Dict[str, CacheEntry]:
        """
        Read the index from disk, creating cache_dir if needed.
        Missing file -> empty map. Unreadable/malformed file -> warning + empty map.
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        entries: Dict[str, CacheEntry] = {}
        if self.path.exists():
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                if not isinstance(raw, dict):
                    raise ValueError(f"expected a JSON object, got {type(raw).__name__}")
                entries = {str(k): CacheEntry.from_dict(v) for k, v in raw.items()}
            except (OSError, ValueError, TypeError, KeyError, AttributeError) as e:
                log.warning("Failed to load cache metadata, starting with empty cache: %s", e)
                entries = {}
        with self._lock:
            self._entries = entries
        return dict(entries)

    def save(self) -> bool:
        """
        Rewrite the whole index. A failure is logged and swallowed; the
        in-memory map is kept as is, so memory and disk may diverge.
        """
        try:
            self._write()
            return True
        except PersistenceError as e:
            log.error("Failed to save cache metadata: %s", e)
            return False

    def _write(self) -> None:
        with self._lock:
            doc = {k: e.to_dict() for k, e in self._entries.items()}
        try:
            self.path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceError(f"{self.path}: {e}") from e

    # -------- entries --------

    def get(self, key: str) -> Optional[CacheEntry]:
        """Snapshot of the entry for `key` (mutating it does not touch the store)."""
        with self._lock:
            entry = self._entries.get(key)
            return dataclasses.replace(entry) if entry is not None else None

    def update(
        self,
        key: str,
        fields: Dict[str, Any],
        drop: Iterable[str] = (),
        defaults: Optional[Dict[str, Any]] = None,
    ) -> CacheEntry:
        """
        Merge `fields` into the entry, clear `drop`, stamp, and save.
        `defaults` seed the entry only when this call creates it.
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                entry = CacheEntry()
                entry.update(**(defaults or {}))
                self._entries[key] = entry
            entry.update(**fields)
            entry.update(**{name: None for name in drop})
            entry.timestamp = now_ms()
            snapshot = dataclasses.replace(entry)
            self.save()
        return snapshot

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # -------- artifacts --------

    def artifact_path(self, filename: str) -> Path:
        return self.cache_dir / filename

    def has_artifact(self, filename: Optional[str]) -> bool:
        """True when `filename` is set and the file is still on disk."""
        if not filename:
            return False
        return self.artifact_path(filename).is_file()

    # -------- get-or-compute --------

    def get_or_compute(
        self,
        key: str,
        *,
        lookup: Callable[[CacheEntry], Optional[T]],
        compute: Callable[[], Computed[T]],
        skip_cache: bool = False,
    ) -> T:
        """
        Return `lookup(entry)` when it yields a value, otherwise run `compute`
        and persist its fields under `key`.

        skip_cache bypasses both sides: the existing entry is not consulted and
        the computed fields are not written back.

        `compute` runs outside the lock; concurrent misses for one key each
        compute, and their field updates are merged in arrival order.
        """
        if not skip_cache:
            entry = self.get(key)
            if entry is not None:
                hit = lookup(entry)
                if hit is not None:
                    return hit

        result = compute()
        if not skip_cache:
            self.update(key, result.fields, result.drop, result.defaults)
        return result.value
