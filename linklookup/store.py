"""In-memory lookup store with atomic table swap."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Any

from linklookup.table import LoadInfo, load_table, normalize_key

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Snapshot:
    table: Mapping[str, str]
    path: str | None
    count: int
    generation: int
    loaded_at: float = 0.0
    mtime: float = 0.0


_EMPTY = Snapshot(table=MappingProxyType({}), path=None, count=0, generation=0)


class TableStore:
    """Holds the active table behind a single swappable reference.

    Readers never lock: they grab the current Snapshot in one attribute
    read and work on that. Writers serialize on ``_lock`` so the generation
    counter stays consistent and the last install to finish wins.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._current: Snapshot = _EMPTY

    @property
    def loaded(self) -> bool:
        return self._current.generation > 0

    def snapshot(self) -> Snapshot:
        return self._current

    def install(self, table: Mapping[str, str], info: LoadInfo) -> Snapshot:
        """Make a fully built table the active one."""
        with self._lock:
            snap = Snapshot(
                table=table,
                path=info.source_path,
                count=len(table),
                generation=self._current.generation + 1,
                loaded_at=info.loaded_at,
                mtime=info.mtime,
            )
            self._current = snap
        log.debug("Installed table generation %d from %s", snap.generation, snap.path)
        return snap

    def lookup(self, key: str | None) -> str | None:
        """O(1) lookup by normalized key against the active table."""
        return self._current.table.get(normalize_key(key))

    def reload(self, path: Path | str, **load_kwargs: Any) -> LoadInfo:
        """Load ``path`` and install it. Raises LoadError, leaving state as is."""
        table, info = load_table(path, **load_kwargs)
        self.install(table, info)
        return info

    def reload_if_changed(self, **load_kwargs: Any) -> LoadInfo | None:
        """Reload the active source if its mtime moved since the last install."""
        snap = self._current
        if snap.path is None:
            return None
        try:
            current_mtime = Path(snap.path).stat().st_mtime
        except OSError:
            log.warning("CSV file not accessible: %s", snap.path)
            return None
        if current_mtime == snap.mtime:
            return None
        log.info("CSV file changed, reloading: %s", snap.path)
        return self.reload(snap.path, **load_kwargs)
