"""Give extension-less HTML pages in a mirrored tree a ``.html`` suffix.

Run as the post-download transform: ``python -m sitebook.normalize <root>``.
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

HTML_SUFFIXES = (".html", ".htm")
SNIFF_BYTES = 2048
HTML_MARKERS = (b"<!doctype html", b"<html", b"<head", b"<body")


def looks_like_html(path: Path) -> bool:
    try:
        with path.open("rb") as f:
            head = f.read(SNIFF_BYTES)
    except OSError as exc:
        logger.warning("Cannot read %s: %s", path, exc)
        return False
    head = head.lstrip(b"\xef\xbb\xbf \t\r\n").lower()
    return any(marker in head for marker in HTML_MARKERS)


def normalize_tree(root: Path) -> list[Path]:
    renamed: list[Path] = []
    for dirpath, _dirnames, filenames in os.walk(root):
        for name in filenames:
            if name.lower().endswith(HTML_SUFFIXES):
                continue
            path = Path(dirpath) / name
            if not looks_like_html(path):
                continue
            target = path.with_name(name + ".html")
            if target.exists():
                logger.warning("Cannot rename %s to %s: target already exists", path, target.name)
                continue
            path.rename(target)
            logger.info("Renamed %s -> %s", path, target.name)
            renamed.append(target)
    return renamed


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Add a .html extension to HTML files that lack one.")
    parser.add_argument("root", nargs="?", default=".", help="Directory to process")
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    root = Path(args.root).expanduser()
    if not root.is_dir():
        print(f"error: directory '{root}' not found", file=sys.stderr)
        return 1

    renamed = normalize_tree(root)
    print(f"Renamed {len(renamed)} file(s) under {root}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
