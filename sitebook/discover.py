"""Find the HTML documents of a mirrored tree in reading order."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

CONTENT_EXTENSIONS = (".html", ".htm")


@dataclass(frozen=True)
class DiscoveredDocument:
    path: Path
    relative_path: str


def is_document(name: str, extensions=CONTENT_EXTENSIONS) -> bool:
    return name.lower().endswith(tuple(ext.lower() for ext in extensions))


def is_index(name: str, extensions=CONTENT_EXTENSIONS) -> bool:
    lower = name.lower()
    return any(lower == "index" + ext.lower() for ext in extensions)


def _scan(directory: Path) -> list[os.DirEntry] | None:
    try:
        with os.scandir(directory) as it:
            return sorted(it, key=lambda entry: entry.name)
    except OSError as exc:
        logger.warning("Skipping unreadable directory %s: %s", directory, exc)
        return None


def _find_index(entries: list[os.DirEntry], extensions) -> os.DirEntry | None:
    by_name = {entry.name.lower(): entry for entry in entries}
    for ext in extensions:
        entry = by_name.get("index" + ext.lower())
        if entry is not None and entry.is_file():
            return entry
    return None


def find_documents(root: str | Path, extensions=CONTENT_EXTENSIONS) -> list[DiscoveredDocument]:
    """Walk ``root`` depth-first in name order.

    A subdirectory holding an index document is represented by that document
    alone; its other children are not visited. The root's own index comes
    first and the rest of the root is still enumerated.
    """
    root = Path(root).expanduser().resolve()
    if not root.is_dir():
        raise ConfigurationError(f"Input directory not found: {root}")

    documents: list[DiscoveredDocument] = []

    def emit(path: Path) -> None:
        rel = path.relative_to(root).as_posix()
        logger.debug("Found document %s", rel)
        documents.append(DiscoveredDocument(path=path, relative_path=rel))

    def walk(directory: Path, at_root: bool) -> None:
        entries = _scan(directory)
        if entries is None:
            return

        index = _find_index(entries, extensions)
        if index is not None:
            emit(Path(index.path))
            if not at_root:
                return

        for entry in entries:
            try:
                if entry.is_dir(follow_symlinks=False):
                    walk(Path(entry.path), at_root=False)
                    continue
                if not entry.is_file():
                    continue
            except OSError as exc:
                logger.warning("Skipping %s: %s", entry.path, exc)
                continue
            if not is_document(entry.name, extensions):
                continue
            if is_index(entry.name, extensions):
                if index is None or entry.name != index.name:
                    logger.debug("Ignoring extra index document %s", entry.path)
                continue
            emit(Path(entry.path))

    walk(root, at_root=True)
    return documents
