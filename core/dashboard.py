"""Dashboard controller: directory tree, active selection, loaded records and table state."""

from __future__ import annotations

from concurrent.futures import Executor, Future
from dataclasses import dataclass
import logging
from pathlib import Path
import threading
from typing import Iterable

from config.settings import DATA_DIR, MASTER_DIRECTORY
from core.data_loader import load_many, load_single
from core.directory_scanner import DirectoryNode, DirectoryScanError, find_master, scan_directories
from core.models import StockRecord
from core.picks import PicksRegistry
from core.table_engine import ALL_SIGNALS, TableState, TableView, build_view

LOGGER = logging.getLogger("signalboard.dashboard")


@dataclass(frozen=True)
class Selection:
    """One data file chosen from the sidebar."""

    directory: str
    file: str

    @property
    def source(self) -> str:
        return f"{self.directory}/{self.file}"


@dataclass(frozen=True)
class LoadRequest:
    """Snapshot of what to load, tagged with the generation that asked for it."""

    token: int
    selection: Selection | None
    master: DirectoryNode | None


class DashboardController:
    """
    Owns the data side of the dashboard.

    Every load is tagged with a generation token taken when it starts. A
    result is applied only if no newer load has started since, so a slow
    response for an old selection can never overwrite a fresher one.
    Caches are swapped wholesale under the lock, never edited in place.
    """

    def __init__(
        self,
        picks: PicksRegistry,
        data_dir: str | Path = DATA_DIR,
        master_name: str = MASTER_DIRECTORY,
    ) -> None:
        self.picks = picks
        self.data_dir = Path(data_dir)
        self.master_name = master_name
        self.state = TableState()
        self._lock = threading.RLock()
        self._directories: tuple[DirectoryNode, ...] = ()
        self._master: DirectoryNode | None = None
        self._selection: Selection | None = None
        self._records: tuple[StockRecord, ...] = ()
        self._generation = 0
        self._loading = False

    @property
    def directories(self) -> tuple[DirectoryNode, ...]:
        with self._lock:
            return self._directories

    @property
    def master(self) -> DirectoryNode | None:
        with self._lock:
            return self._master

    @property
    def selection(self) -> Selection | None:
        with self._lock:
            return self._selection

    @property
    def records(self) -> tuple[StockRecord, ...]:
        with self._lock:
            return self._records

    @property
    def loading(self) -> bool:
        with self._lock:
            return self._loading

    def refresh_directories(self) -> bool:
        """Rescan the data tree; a failed scan leaves an empty tree."""
        try:
            nodes = tuple(scan_directories(self.data_dir))
        except DirectoryScanError as exc:
            LOGGER.warning("Error loading directories: %s", exc)
            nodes = ()
            ok = False
        else:
            ok = True

        master = find_master(nodes, self.master_name)
        with self._lock:
            self._directories = nodes
            self._master = master if master is not None and master.files else None
        LOGGER.info(
            "Scanned %d top-level directories (master: %s)",
            len(nodes),
            master.path if master is not None else "none",
        )
        return ok

    def _change_selection(self, selection: Selection | None) -> None:
        with self._lock:
            if selection == self._selection:
                return
            self._selection = selection
            self.state.set_signal_type(ALL_SIGNALS)

    def select_file(self, directory: str, file: str) -> Selection | None:
        """Select a file; choosing the active file again returns to All Data."""
        candidate = Selection(directory, file)
        with self._lock:
            self._change_selection(None if candidate == self._selection else candidate)
            return self._selection

    def select_all_data(self) -> None:
        self._change_selection(None)

    def begin_load(self) -> LoadRequest:
        with self._lock:
            self._generation += 1
            self._loading = True
            return LoadRequest(self._generation, self._selection, self._master)

    def fetch(self, request: LoadRequest) -> list[StockRecord]:
        if request.selection is not None:
            return load_single(request.selection.directory, request.selection.file, self.data_dir)
        if request.master is not None and request.master.files:
            return load_many(request.master.files, request.master.path, self.data_dir)
        return []

    def complete_load(self, token: int, records: Iterable[StockRecord]) -> bool:
        """Apply a finished load unless a newer one has started since."""
        with self._lock:
            if token != self._generation:
                LOGGER.info("Discarding stale load %d (current %d)", token, self._generation)
                return False
            self._records = tuple(records)
            self.state.reset_for_data(self._records)
            self._loading = False
        LOGGER.info("Loaded %d records for %s", len(self._records), self.describe_selection())
        return True

    def load(self) -> bool:
        request = self.begin_load()
        try:
            records = self.fetch(request)
        except Exception as exc:
            LOGGER.warning("Error loading data: %s", exc)
            records = []
        return self.complete_load(request.token, records)

    def submit_load(self, executor: Executor) -> Future:
        """Run the fetch on `executor`; the future resolves to whether the result was applied."""
        request = self.begin_load()

        def _run() -> bool:
            try:
                records = self.fetch(request)
            except Exception as exc:
                LOGGER.warning("Error loading data: %s", exc)
                records = []
            return self.complete_load(request.token, records)

        return executor.submit(_run)

    def refresh(self) -> bool:
        self.refresh_directories()
        return self.load()

    def describe_selection(self) -> str:
        with self._lock:
            selection, master = self._selection, self._master
        if selection is not None:
            return f"Viewing: {selection.source}"
        if master is not None:
            count = len(master.files)
            return f"Viewing: All Data ({count} {'file' if count == 1 else 'files'})"
        return "No data available"

    def update_filters(
        self,
        signal_type: str | None = None,
        search: str | None = None,
        dates: Iterable[str] | None = None,
        price_range: tuple[float, float] | None = None,
    ) -> None:
        with self._lock:
            if price_range is not None:
                self.state.set_price_range(*price_range)
            if signal_type is not None:
                self.state.set_signal_type(signal_type)
            if search is not None:
                self.state.set_search(search)
            if dates is not None:
                self.state.set_dates(dates)

    def toggle_sort(self, field_name: str) -> None:
        with self._lock:
            self.state.toggle_sort(field_name)

    def go_to_page(self, page: int) -> None:
        with self._lock:
            self.state.go_to_page(page)

    def view(self) -> TableView:
        with self._lock:
            return build_view(self._records, self.state, self.picks.is_picked)
