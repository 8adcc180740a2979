from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from .acquire import run_acquisition
from .aggregate import aggregate, load_sections, write_combined
from .config import (
    DEFAULT_OUTPUT,
    DEFAULT_TITLE,
    LayoutConfig,
    build_bind_options,
    build_layout,
    build_request,
    resolve_settings,
)
from .discover import find_documents
from .errors import ConfigurationError, NoDocumentsError, SitebookError
from .render import RenderResult, render_pdf

logger = logging.getLogger("sitebook")

COMBINED_NAME = "combined.html"
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def setup_logging(verbose: bool = False) -> None:
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("sitebook")
    root.handlers[:] = [handler]
    root.setLevel(logging.DEBUG if verbose else logging.INFO)


def bind_tree(
    input_root: Path,
    output_path: Path,
    layout: LayoutConfig,
    title: str = DEFAULT_TITLE,
    workers: int = 1,
    keep_html: bool = False,
) -> RenderResult:
    """Discover, sanitize and combine the pages under ``input_root`` and render them to ``output_path``."""
    documents = find_documents(input_root)
    if not documents:
        raise NoDocumentsError(f"No HTML files found in {input_root}")
    logger.info("Found %d HTML files to process", len(documents))

    sections = load_sections(documents, input_root, workers=workers)
    if not sections:
        raise NoDocumentsError(f"None of the {len(documents)} HTML files under {input_root} had body content")

    book = aggregate(sections, title=title)
    combined = write_combined(book, output_path.parent / COMBINED_NAME)
    logger.info("Combined %d sections into %s", len(book.entries), combined)

    result = render_pdf(combined, output_path, layout, title=title)
    if not keep_html:
        combined.unlink(missing_ok=True)
    return result


def _add_fetch_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("url", nargs="?", help="Documentation root URL to mirror")
    p.add_argument("--output-root", help="Directory wget downloads into (default ./site-mirror)")
    p.add_argument("--max-depth", type=int, help="Recursion depth limit (default 3)")
    p.add_argument("--wait", dest="wait_seconds", type=int, help="Seconds between requests (default 1)")
    p.add_argument("--rate-limit", help="Transfer rate cap, e.g. 200k")
    p.add_argument("--deadline-minutes", type=float, help="Give up on the download after this long (default 30)")
    p.add_argument("--domain", help="Restrict the crawl to this domain (default: URL host)")
    p.add_argument("--include", dest="include_directories", help="Comma-separated path prefixes to crawl")
    p.add_argument("--exclude", dest="exclude_directories", help="Comma-separated path prefixes to skip")
    p.add_argument("--reject", dest="reject_patterns", help="Comma-separated file name patterns to skip")
    p.add_argument(
        "--transform",
        help="Command run on the downloaded tree afterwards; 'none' disables (default: sitebook-normalize)",
    )
    p.add_argument("--no-preflight", dest="preflight", action="store_false", default=None,
                   help="Skip the reachability check before starting wget")


def _add_bind_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--output", help=f"PDF to write (default {DEFAULT_OUTPUT})")
    p.add_argument("--title", help=f"Book title (default {DEFAULT_TITLE!r})")
    p.add_argument("--page-size", help="Paper size (default A4)")
    p.add_argument("--orientation", choices=["portrait", "landscape"], help="Page orientation")
    p.add_argument("--dpi", type=int, help="Render DPI (default 96)")
    p.add_argument("--margin", type=int, help="Page margins in millimetres (default 20)")
    p.add_argument("--workers", type=int, help="Threads used to read pages (default 1)")
    p.add_argument("--keep-html", action="store_true", default=None, help=f"Keep {COMBINED_NAME} after rendering")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Mirror a documentation site and bind it into a single PDF.")
    parser.add_argument("--profile", help="Site profile with default settings")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="cmd", required=True)

    fetch = sub.add_parser("fetch", help="Download a documentation site")
    _add_fetch_arguments(fetch)

    bind = sub.add_parser("bind", help="Render an already-downloaded tree to PDF")
    bind.add_argument("input", help="Directory holding the HTML tree")
    _add_bind_arguments(bind)

    run = sub.add_parser("run", help="Download a site and render it to PDF")
    _add_fetch_arguments(run)
    _add_bind_arguments(run)
    return parser


def _settings(args: argparse.Namespace) -> dict:
    cli = {key: value for key, value in vars(args).items() if key not in ("cmd", "profile", "verbose")}
    return resolve_settings(cli, profile=args.profile)


def _bind(settings: dict, input_root: Path) -> int:
    layout = build_layout(settings)
    options = build_bind_options(settings)
    result = bind_tree(
        input_root,
        options.output,
        layout,
        title=options.title,
        workers=options.workers,
        keep_html=options.keep_html,
    )
    print(f"Wrote {result.path} ({result.pages} pages)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.verbose)

    try:
        settings = _settings(args)
        if args.cmd == "bind":
            return _bind(settings, Path(args.input).expanduser().resolve())

        request = build_request(settings)
        outcome = asyncio.run(run_acquisition(request))
        if not outcome.ok:
            logger.error("Download %s: %s", outcome.status.value, outcome.cause)
            return outcome.exit_code
        print(f"Downloaded {request.url} into {outcome.root}")

        if args.cmd == "run":
            return _bind(settings, outcome.root)
        return 0
    except ConfigurationError as exc:
        logger.error("Configuration error: %s", exc)
        return 2
    except SitebookError as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    sys.exit(main())
