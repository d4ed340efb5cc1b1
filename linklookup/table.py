"""CSV table loading: row streaming, key normalization, duplicate policy."""

from __future__ import annotations

import csv
import enum
import logging
import time
from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType

log = logging.getLogger(__name__)

DEFAULT_KEY_COLUMN = "Email"
DEFAULT_VALUE_COLUMN = "Login Link"


class LoadError(Exception):
    """Base for failures while building a table from a source file."""


class SourceNotFound(LoadError):
    def __init__(self, path: Path | str) -> None:
        super().__init__(f"CSV not found: {path}")
        self.path = str(path)


class ParseError(LoadError):
    """The source exists but its rows could not be read."""


class DuplicatePolicy(enum.Enum):
    FIRST = "first"
    LAST = "last"


@dataclass(frozen=True)
class LoadInfo:
    record_count: int
    source_path: str
    duplicates_dropped: int = 0
    rows_skipped: int = 0
    mtime: float = 0.0
    loaded_at: float = 0.0


def normalize_key(value: object) -> str:
    """Trim and lowercase a lookup key. ``None`` becomes an empty string."""
    if value is None:
        return ""
    return str(value).strip().lower()


def iter_rows(
    path: Path, key_column: str, value_column: str
) -> Iterator[tuple[str, str]]:
    """Yield raw (key, value) cell pairs from a CSV file, one row at a time.

    Columns other than the two named ones are ignored. Raises ParseError
    when the header is absent or lacks either column, or when the reader
    rejects a row.
    """
    try:
        with open(path, newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f, strict=True)
            if reader.fieldnames is None:
                raise ParseError(f"Empty or invalid CSV: {path}")
            missing = {key_column, value_column} - set(reader.fieldnames)
            if missing:
                raise ParseError(f"CSV missing required columns: {sorted(missing)}")
            for row in reader:
                yield row.get(key_column) or "", row.get(value_column) or ""
    except csv.Error as exc:
        raise ParseError(f"Malformed CSV {path}: {exc}") from exc
    except UnicodeDecodeError as exc:
        raise ParseError(f"CSV is not valid UTF-8: {path}") from exc


def _check_source(path: Path) -> float:
    """Return the source mtime, or raise SourceNotFound."""
    try:
        st = path.stat()
    except OSError as exc:
        raise SourceNotFound(path) from exc
    if not path.is_file():
        raise SourceNotFound(path)
    return st.st_mtime


def load_table(
    path: Path | str,
    key_column: str = DEFAULT_KEY_COLUMN,
    value_column: str = DEFAULT_VALUE_COLUMN,
    duplicates: DuplicatePolicy = DuplicatePolicy.FIRST,
) -> tuple[Mapping[str, str], LoadInfo]:
    """Build an immutable key -> link table from a CSV file.

    Keys are normalized with normalize_key, values are stripped, and rows
    where either ends up empty are skipped. When a normalized key repeats,
    ``duplicates`` decides whether the first or the last occurrence is
    kept. Nothing is returned unless the whole file was read.
    """
    path = Path(path)
    mtime = _check_source(path)

    entries: dict[str, str] = {}
    dropped = 0
    skipped = 0
    try:
        for raw_key, raw_value in iter_rows(path, key_column, value_column):
            key = normalize_key(raw_key)
            value = raw_value.strip()
            if not key or not value:
                skipped += 1
                continue
            if key in entries:
                dropped += 1
                if duplicates is DuplicatePolicy.FIRST:
                    continue
            entries[key] = value
    except OSError as exc:
        raise SourceNotFound(path) from exc

    info = LoadInfo(
        record_count=len(entries),
        source_path=str(path),
        duplicates_dropped=dropped,
        rows_skipped=skipped,
        mtime=mtime,
        loaded_at=time.time(),
    )
    log.info(
        "Loaded %d records from %s (%d duplicates dropped, %d rows skipped)",
        info.record_count,
        info.source_path,
        dropped,
        skipped,
    )
    return MappingProxyType(entries), info
