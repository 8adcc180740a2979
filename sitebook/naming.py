from __future__ import annotations

import os
from pathlib import PurePath

from .discover import CONTENT_EXTENSIONS

DELIMITER = " → "


def _posix(value) -> str:
    if isinstance(value, PurePath):
        return value.as_posix()
    text = str(value)
    if os.sep != "/":
        text = text.replace(os.sep, "/")
    return text


def section_title(path, root="") -> str:
    """Readable chapter title for a document, e.g. ``docs/api/index.html`` -> ``docs → api``."""
    text = _posix(path)
    root_text = _posix(root).rstrip("/") if root else ""

    if root_text and text.startswith(root_text):
        rest = text[len(root_text):]
        if not rest or rest.startswith("/"):
            text = rest
    text = text.lstrip("/")

    lower = text.lower()
    for ext in CONTENT_EXTENSIONS:
        suffix = "/index" + ext
        if lower.endswith(suffix):
            text = text[: -len(suffix)]
            break
    else:
        for ext in CONTENT_EXTENSIONS:
            if lower.endswith(ext):
                text = text[: -len(ext)]
                break

    title = text.replace("/", DELIMITER).strip()
    if title:
        return title
    stem = PurePath(_posix(path)).stem
    return stem or "Untitled"
