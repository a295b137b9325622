"""Scan the signal data folder into a nested directory tree."""

from __future__ import annotations

from dataclasses import dataclass
import logging
from pathlib import Path
from typing import Any, Iterator, Sequence

from config.settings import DATA_FILE_EXTENSION, MASTER_DIRECTORY

LOGGER = logging.getLogger("signalboard.scanner")


class DirectoryScanError(RuntimeError):
    """Raised when part of the data tree cannot be read."""


@dataclass(frozen=True)
class DirectoryNode:
    """One folder that holds data files itself or somewhere below it."""

    name: str
    path: str
    files: tuple[str, ...]
    subdirectories: tuple["DirectoryNode", ...]

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "files": list(self.files),
            "subdirectories": [child.to_dict() for child in self.subdirectories],
        }


def _name_key(name: str) -> tuple[str, str]:
    """Case-insensitive ordering with a case-sensitive tie-break."""
    return (name.casefold(), name)


def _scan_level(directory: Path, relative: str, extension: str) -> list[DirectoryNode]:
    try:
        children = [child for child in directory.iterdir() if child.is_dir()]
    except OSError as exc:
        raise DirectoryScanError(f"Failed to read directory {directory}: {exc}") from exc

    nodes: list[DirectoryNode] = []
    for child in children:
        child_path = f"{relative}/{child.name}" if relative else child.name
        subdirectories = _scan_level(child, child_path, extension)
        try:
            files = sorted(
                entry.name
                for entry in child.iterdir()
                if entry.name.endswith(extension) and entry.is_file()
            )
        except OSError as exc:
            raise DirectoryScanError(f"Failed to list files in {child}: {exc}") from exc

        if files or subdirectories:
            nodes.append(
                DirectoryNode(
                    name=child.name,
                    path=child_path,
                    files=tuple(files),
                    subdirectories=tuple(subdirectories),
                )
            )

    nodes.sort(key=lambda node: _name_key(node.name))
    return nodes


def scan_directories(root: str | Path, extension: str = DATA_FILE_EXTENSION) -> list[DirectoryNode]:
    """
    Walk `root` and return its data-bearing subdirectories as a tree.

    Directories without data files anywhere below them are pruned. A missing
    root yields an empty list; unreadable folders raise DirectoryScanError
    instead of returning a partial tree.
    """
    root_path = Path(root)
    if not root_path.exists():
        LOGGER.info("Data root %s does not exist; returning empty tree", root_path)
        return []
    if not root_path.is_dir():
        raise DirectoryScanError(f"Data root is not a directory: {root_path}")

    return _scan_level(root_path, "", extension)


def iter_nodes(nodes: Sequence[DirectoryNode]) -> Iterator[DirectoryNode]:
    """Yield nodes in pre-order: each node before its subdirectories."""
    for node in nodes:
        yield node
        yield from iter_nodes(node.subdirectories)


def find_master(nodes: Sequence[DirectoryNode], name: str = MASTER_DIRECTORY) -> DirectoryNode | None:
    """Return the first node named `name` in pre-order, or None."""
    for node in iter_nodes(nodes):
        if node.name == name:
            return node
    return None
