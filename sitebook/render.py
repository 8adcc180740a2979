"""Hand the combined HTML to wkhtmltopdf and check what comes back."""

from __future__ import annotations

import io
import logging
import subprocess
from dataclasses import dataclass
from pathlib import Path

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from .config import LayoutConfig
from .errors import RenderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RenderResult:
    path: Path
    pages: int


def build_render_argv(html_path: Path, output_path: Path, layout: LayoutConfig, title: str = "") -> list[str]:
    argv = [
        layout.binary,
        "--dpi", str(layout.dpi),
        "--margin-top", f"{layout.margin_top}mm",
        "--margin-bottom", f"{layout.margin_bottom}mm",
        "--margin-left", f"{layout.margin_left}mm",
        "--margin-right", f"{layout.margin_right}mm",
        "--orientation", layout.orientation,
        "--page-size", layout.page_size,
    ]
    if title:
        argv += ["--title", title]
    argv += ["page", str(html_path)]
    if layout.enable_local_file_access:
        argv.append("--enable-local-file-access")
    if layout.ignore_load_errors:
        argv += ["--load-error-handling", "ignore", "--load-media-error-handling", "ignore"]
    if layout.footer_template:
        argv += ["--footer-right", layout.footer_template]
    argv += list(layout.extra_args)
    argv.append(str(output_path))
    return argv


def stamp_pdf(pdf_path: Path, title: str) -> int:
    """Open the rendered PDF, set its title metadata and return the page count."""
    try:
        data = pdf_path.read_bytes()
        reader = PdfReader(io.BytesIO(data))
        pages = len(reader.pages)
    except (OSError, ValueError, PdfReadError) as exc:
        raise RenderError(f"Renderer produced an unreadable PDF at {pdf_path}: {exc}") from exc
    if pages == 0:
        raise RenderError(f"Renderer produced an empty PDF at {pdf_path}")

    if title:
        writer = PdfWriter(clone_from=reader)
        writer.add_metadata({"/Title": title})
        with pdf_path.open("wb") as f:
            writer.write(f)
    return pages


def render_pdf(html_path: Path, output_path: Path, layout: LayoutConfig, title: str = "") -> RenderResult:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    argv = build_render_argv(html_path, output_path, layout, title=title)
    logger.info("Generating PDF with %s", layout.binary)
    try:
        subprocess.run(argv, check=True)
    except FileNotFoundError as exc:
        raise RenderError(f"{layout.binary} is not installed or not on PATH") from exc
    except subprocess.CalledProcessError as exc:
        raise RenderError(f"{layout.binary} exited with status {exc.returncode}") from exc

    if not output_path.is_file():
        raise RenderError(f"{layout.binary} did not write {output_path}")

    pages = stamp_pdf(output_path, title)
    logger.info("Wrote %d pages to %s", pages, output_path)
    return RenderResult(path=output_path, pages=pages)
