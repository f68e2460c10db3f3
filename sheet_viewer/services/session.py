"""
Session state for the viewer.

Holds the loaded table, its facet mapping and the current filters. The state
only changes through four transitions: begin_load, commit, fail and reset.
Each load takes a token when it starts and its result is kept only if no
newer load or reset has started since.
"""

import json
import logging
import threading
from pathlib import Path

from sheet_viewer.schemas import (
    ALL,
    FilterColumnMap,
    FilterState,
    SheetView,
    Table,
)
from sheet_viewer.services import filters as row_filters

logger = logging.getLogger(__name__)


class SessionState:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._generation = 0
        self._source_url = ""
        self._table = Table()
        self._facets = FilterColumnMap()
        self._filters = FilterState()

    def begin_load(self) -> int:
        """Start a load and return its token."""
        with self._lock:
            self._generation += 1
            return self._generation

    def commit(self, token: int, source_url: str, table: Table, facets: FilterColumnMap) -> bool:
        """Replace the table if this load is still the latest one."""
        with self._lock:
            if token != self._generation:
                logger.info("Discarding stale load %d (latest is %d)", token, self._generation)
                return False
            self._source_url = source_url
            self._table = table
            self._facets = facets
            self._filters = FilterState()
            return True

    def fail(self, token: int) -> bool:
        """Clear the table after a failed load, unless a newer load started."""
        with self._lock:
            if token != self._generation:
                logger.info("Ignoring failure of stale load %d", token)
                return False
            self._clear()
            return True

    def reset(self) -> None:
        with self._lock:
            self._generation += 1
            self._clear()

    def set_filters(self, system: str | None, milestone: str | None, search: str | None) -> FilterState:
        with self._lock:
            self._filters = FilterState(
                system=system or ALL,
                milestone=milestone or ALL,
                search=search or "",
            )
            return self._filters

    def view(self) -> SheetView:
        """Snapshot of the current table with the active filters applied."""
        with self._lock:
            table = self._table
            facets = self._facets
            active = self._filters
            source_url = self._source_url

        filtered = row_filters.apply_filters(table.rows, facets, active)
        fallback_key = table.columns[0].key if table.columns else ""
        return SheetView(
            source_url=source_url,
            columns=list(table.columns),
            rows=filtered,
            filter_columns=facets,
            filters=active,
            options=row_filters.build_options(table.rows, facets),
            summary=row_filters.summarize(filtered, facets, fallback_key),
        )

    def _clear(self) -> None:
        self._source_url = ""
        self._table = Table()
        self._facets = FilterColumnMap()
        self._filters = FilterState()


class LinkStore:
    """Persists the last loaded link as a single value under one key."""

    def __init__(self, path: str | Path, key: str) -> None:
        self._path = Path(path).expanduser()
        self._key = key
        self._lock = threading.Lock()

    def load(self) -> str:
        with self._lock:
            if not self._path.exists():
                return ""
            try:
                data = json.loads(self._path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as exc:
                logger.warning("Could not read saved link from %s: %s", self._path, exc)
                return ""
        if not isinstance(data, dict):
            return ""
        return str(data.get(self._key) or "")

    def save(self, link: str) -> None:
        with self._lock:
            if not self._path.parent.exists():
                self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps({self._key: link}), encoding="utf-8")

    def clear(self) -> None:
        with self._lock:
            self._path.unlink(missing_ok=True)
