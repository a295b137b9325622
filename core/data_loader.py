"""Load signal records from the JSON files of the data tree."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Iterable, Sequence

from config.settings import DATA_DIR
from core.directory_scanner import DirectoryNode, iter_nodes
from core.models import StockRecord

LOGGER = logging.getLogger("signalboard.loader")


def _resolve_under_root(relative_path: str, data_dir: str | Path | None) -> Path | None:
    """Resolve a slash-joined path inside the data root; None if it escapes."""
    root = Path(data_dir if data_dir is not None else DATA_DIR).resolve()
    candidate = (root / relative_path).resolve()
    if candidate != root and root not in candidate.parents:
        LOGGER.warning("Rejected data path outside data root: %s", relative_path)
        return None
    return candidate


def records_from_payload(payload: Any, origin: str) -> list[StockRecord]:
    """Treat a lone object as a one-element list and skip non-object entries."""
    items = payload if isinstance(payload, list) else [payload]
    records: list[StockRecord] = []
    skipped = 0
    for item in items:
        if not isinstance(item, dict):
            skipped += 1
            continue
        records.append(StockRecord.from_payload(item))
    if skipped:
        LOGGER.warning("Skipped %d non-object entries in %s", skipped, origin)
    return records


def load_file(path: str | Path) -> list[StockRecord]:
    """
    Read one JSON data file.

    Never raises: a missing, unreadable or malformed file is logged and
    contributes no records.
    """
    file_path = Path(path)
    try:
        raw = file_path.read_text(encoding="utf-8")
        payload = json.loads(raw)
    except Exception as exc:
        LOGGER.warning("Error loading file %s: %s", file_path, exc)
        return []
    return records_from_payload(payload, str(file_path))


def _load_relative(relative_path: str, data_dir: str | Path | None) -> list[StockRecord]:
    resolved = _resolve_under_root(relative_path, data_dir)
    if resolved is None:
        return []
    return load_file(resolved)


def load_single(directory: str, file: str, data_dir: str | Path | None = None) -> list[StockRecord]:
    """Load one file and stamp each record with `<directory>/<file>`."""
    source = f"{directory}/{file}"
    return [record.with_source(source) for record in _load_relative(source, data_dir)]


def load_many(
    files: Iterable[str],
    base_path: str = "master",
    data_dir: str | Path | None = None,
) -> list[StockRecord]:
    """
    Load a batch of files under `base_path` in the given order.

    Records keep whatever `sourceFile` the file itself carries; the aggregate
    view does not stamp provenance.
    """
    records: list[StockRecord] = []
    for file in files:
        records.extend(_load_relative(f"{base_path}/{file}", data_dir))
    return records


def load_tree(nodes: Sequence[DirectoryNode], data_dir: str | Path | None = None) -> list[StockRecord]:
    """Load every file of every node in pre-order, stamped with provenance."""
    records: list[StockRecord] = []
    for node in iter_nodes(nodes):
        for file in node.files:
            records.extend(load_single(node.path, file, data_dir))
    return records
