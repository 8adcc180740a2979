"""Combine sanitized pages into one HTML book with a table of contents."""

from __future__ import annotations

import html
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from pathlib import Path

from .discover import DiscoveredDocument
from .naming import section_title
from .sanitize import sanitize_markup

logger = logging.getLogger(__name__)

PAGE_BREAK = '<div class="page-break"></div>'


@dataclass
class Section:
    title: str
    body: str
    source: str = ""


@dataclass(frozen=True)
class AggregatedDocument:
    title: str
    entries: tuple[str, ...]
    blocks: tuple[str, ...]

    def __post_init__(self):
        if len(self.entries) != len(self.blocks):
            raise ValueError("table of contents and content blocks are out of step")

    def to_html(self) -> str:
        parts = [html_preamble(self.title), table_of_contents(self.entries)]
        for idx, (entry, block) in enumerate(zip(self.entries, self.blocks), start=1):
            parts.append(chapter_block(idx, entry, block))
        parts.append("</body>\n</html>\n")
        return "".join(parts)


def html_preamble(title: str) -> str:
    title = html.escape(title)
    return f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>{title}</title>
<style>
body {{
    font-family: Arial, sans-serif;
    max-width: 800px;
    margin: 0 auto;
    padding: 20px;
}}
.page-break {{
    page-break-after: always;
    height: 1px;
}}
.chapter {{
    margin-top: 30px;
}}
pre {{
    background-color: #f5f5f5;
    padding: 10px;
    border-radius: 5px;
    overflow-x: auto;
}}
code {{
    font-family: monospace;
}}
</style>
</head>
<body>
<h1>{title}</h1>
{PAGE_BREAK}
"""


def table_of_contents(entries) -> str:
    items = [
        f'<li><a href="#section-{idx}">{html.escape(entry)}</a></li>'
        for idx, entry in enumerate(entries, start=1)
    ]
    return "<h2>Table of Contents</h2>\n<ul class=\"toc\">\n" + "\n".join(items) + f"\n</ul>\n{PAGE_BREAK}\n"


def chapter_block(idx: int, title: str, body_html: str) -> str:
    return (
        f'<div class="chapter" id="section-{idx}">\n'
        f"<h2>{html.escape(title)}</h2>\n"
        f"{body_html}\n"
        f"{PAGE_BREAK}\n"
        "</div>\n"
    )


def read_section(document: DiscoveredDocument, root: str | Path) -> Section | None:
    try:
        markup = document.path.read_bytes()
    except OSError as exc:
        logger.warning("Skipping %s: %s", document.relative_path, exc)
        return None

    try:
        body = sanitize_markup(markup)
    except Exception as exc:
        # Parser failures differ between lxml, html5lib and html.parser.
        logger.warning("Skipping %s: cannot parse markup: %s", document.relative_path, exc)
        return None

    if body is None:
        logger.warning("Skipping %s: no body content", document.relative_path)
        return None

    # Sections carry serialized markup, not the parsed tree.
    try:
        body_html = body.decode_contents()
    except (RecursionError, ValueError, TypeError, UnicodeError) as exc:
        logger.warning("Dropping %s: cannot serialize body: %s", document.relative_path, exc)
        return None

    return Section(
        title=section_title(document.path, root),
        body=body_html,
        source=document.relative_path,
    )


def load_sections(documents: list[DiscoveredDocument], root: str | Path, workers: int = 1) -> list[Section]:
    """Read and sanitize every document, keeping traversal order.

    With ``workers > 1`` the reads run on a thread pool; results are put back
    in traversal order by their index, never by completion order.
    """
    root = Path(root).expanduser().resolve()
    if workers <= 1:
        results = [(idx, read_section(doc, root)) for idx, doc in enumerate(documents)]
    else:
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(read_section, doc, root): idx for idx, doc in enumerate(documents)}
            results = [(futures[future], future.result()) for future in as_completed(futures)]
        results.sort(key=lambda item: item[0])

    sections = []
    for idx, section in results:
        if section is not None:
            logger.debug("Section %d: %s", idx, section.title)
            sections.append(section)
    return sections


def aggregate(sections: list[Section], title: str = "Documentation") -> AggregatedDocument:
    entries = tuple(section.title for section in sections)
    blocks = tuple(section.body for section in sections)
    return AggregatedDocument(title=title, entries=entries, blocks=blocks)


def write_combined(document: AggregatedDocument, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(document.to_html(), encoding="utf-8")
    return path
