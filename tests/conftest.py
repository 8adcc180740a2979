"""
Shared fixtures: throwaway HTML trees, stand-in command line tools and a fake renderer.
"""
import logging
import subprocess
import sys
import textwrap
from pathlib import Path

import pytest
from pypdf import PdfWriter

from sitebook.config import AcquisitionRequest


@pytest.fixture
def html_page():
    """Wrap a body fragment in a full page carrying the usual head clutter."""

    def page(body: str, title: str = "Page") -> str:
        return (
            "<!DOCTYPE html><html><head>"
            f"<title>{title}</title>"
            '<meta charset="utf-8"><link rel="stylesheet" href="site.css">'
            "<script>var tracking = 1;</script><style>p { color: red; }</style>"
            f"</head><body>{body}</body></html>"
        )

    return page


@pytest.fixture
def site_tree(tmp_path):
    """Build a directory tree from ``{relative path: content}`` and return its root."""

    def build(files: dict, root_name: str = "site") -> Path:
        root = tmp_path / root_name
        root.mkdir(parents=True, exist_ok=True)
        for rel, content in files.items():
            path = root / rel
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return root

    return build


@pytest.fixture
def make_tool(tmp_path):
    """Write an executable Python script that stands in for wget or a transform command."""

    def build(name: str, body: str) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)
        path = bin_dir / name
        path.write_text(f"#!{sys.executable}\n" + textwrap.dedent(body), encoding="utf-8")
        path.chmod(0o755)
        return path

    return build


@pytest.fixture
def mirror_request(tmp_path):
    def build(wget: Path, **overrides) -> AcquisitionRequest:
        params = dict(
            url="https://docs.example.org/guide",
            output_root=tmp_path / "mirror",
            domain="docs.example.org",
            include_directories=("/guide",),
            deadline=30.0,
            transform_command=None,
            preflight=False,
            wget=str(wget),
        )
        params.update(overrides)
        return AcquisitionRequest(**params)

    return build


# Writes a partial mirror, then optionally sleeps and exits with a chosen status.
FAKE_WGET = """
import os, sys, time
os.makedirs("docs.example.org/guide/install", exist_ok=True)
with open("docs.example.org/guide/index.html", "w") as f:
    f.write("<html><body><p>Guide</p></body></html>")
with open("docs.example.org/guide/install/index.html", "w") as f:
    f.write("<html><body><p>Install</p></body></html>")
with open("docs.example.org/guide/faq.html.tmp", "w") as f:
    f.write("partial")
with open("docs.example.org/guide/install/setup.wget", "w") as f:
    f.write("partial")
time.sleep({sleep})
sys.exit({status})
"""


@pytest.fixture
def fake_wget(make_tool):
    def build(sleep: float = 0, status: int = 0) -> Path:
        return make_tool("wget", FAKE_WGET.format(sleep=sleep, status=status))

    return build


@pytest.fixture
def fake_renderer(monkeypatch):
    """Replace the wkhtmltopdf call with one that writes a blank two-page PDF."""
    calls = []

    def run(argv, check=False, **kwargs):
        calls.append(list(argv))
        writer = PdfWriter()
        writer.add_blank_page(width=595, height=842)
        writer.add_blank_page(width=595, height=842)
        with open(argv[-1], "wb") as f:
            writer.write(f)
        return subprocess.CompletedProcess(argv, 0)

    monkeypatch.setattr("sitebook.render.subprocess.run", run)
    return calls


@pytest.fixture(autouse=True)
def _reset_cli_logging():
    """main() installs a stderr handler bound to the capture of the test that called it."""
    yield
    logger = logging.getLogger("sitebook")
    logger.handlers[:] = []
    logger.setLevel(logging.NOTSET)
