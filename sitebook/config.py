"""Run settings: defaults, site profiles, environment and CLI overrides."""

from __future__ import annotations

import os
import re
import shlex
import sys
from dataclasses import dataclass, field
from pathlib import Path
from urllib.parse import urlparse

from .errors import ConfigurationError

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/121.0.0.0 Safari/537.36"
    )
}

DEFAULT_TRANSFORM = (sys.executable, "-m", "sitebook.normalize")

_RATE_RE = re.compile(r"^\d+(\.\d+)?[kKmM]?$")
_ORIENTATIONS = {"portrait": "Portrait", "landscape": "Landscape"}

DEFAULT_OUTPUT = "documentation.pdf"
DEFAULT_TITLE = "Documentation"

# Environment variable -> setting name. Applied after the profile, before CLI flags.
ENV_SETTINGS = {
    "SITEBOOK_URL": "url",
    "SITEBOOK_OUTPUT_ROOT": "output_root",
    "SITEBOOK_DEADLINE_MINUTES": "deadline_minutes",
    "SITEBOOK_WGET": "wget",
    "SITEBOOK_WKHTMLTOPDF": "wkhtmltopdf",
}


@dataclass(frozen=True)
class AcquisitionRequest:
    url: str
    output_root: Path
    max_depth: int = 3
    wait_seconds: int = 1
    rate_limit: str = "200k"
    deadline: float = 30 * 60.0
    domain: str = ""
    include_directories: tuple[str, ...] = ()
    exclude_directories: tuple[str, ...] = ()
    reject_patterns: tuple[str, ...] = ()
    transform_command: tuple[str, ...] | None = DEFAULT_TRANSFORM
    preflight: bool = True
    wget: str = "wget"

    @property
    def acquired_root(self) -> Path:
        return self.output_root / self.domain


@dataclass(frozen=True)
class LayoutConfig:
    dpi: int = 96
    margin_top: int = 20
    margin_bottom: int = 20
    margin_left: int = 20
    margin_right: int = 20
    orientation: str = "Portrait"
    page_size: str = "A4"
    enable_local_file_access: bool = True
    ignore_load_errors: bool = True
    footer_template: str = "[page]/[toPage]"
    binary: str = "wkhtmltopdf"
    extra_args: tuple[str, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class BindOptions:
    output: Path
    title: str = DEFAULT_TITLE
    workers: int = 1
    keep_html: bool = False


def parse_profile(path: Path) -> dict[str, str]:
    """Parse the ``---`` fenced ``key: value`` block at the top of a site profile."""
    with path.open("r", encoding="utf-8") as handle:
        first = handle.readline()
        if first.strip() != "---":
            raise ValueError("Profile must start with '---'.")

        data: dict[str, str] = {}
        for line in handle:
            stripped = line.strip()
            if stripped == "---":
                return data
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in line:
                raise ValueError(f"Invalid profile line: {line.rstrip()}")
            key, value = line.split(":", 1)
            key = key.strip().replace("-", "_")
            value = value.strip()
            if value and len(value) >= 2 and value[0] == value[-1] and value[0] in ('"', "'"):
                value = value[1:-1]
            data[key] = value

    raise ValueError("Profile must end with '---'.")


def load_profile(path: str | Path | None) -> dict[str, str]:
    if not path:
        return {}
    profile_path = Path(path).expanduser()
    try:
        return parse_profile(profile_path)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Cannot read profile {profile_path}: {exc}") from exc


def env_settings(environ=None) -> dict[str, str]:
    environ = os.environ if environ is None else environ
    settings: dict[str, str] = {}
    for var, key in ENV_SETTINGS.items():
        value = environ.get(var)
        if value:
            settings[key] = value
    return settings


def merge_settings(*layers: dict) -> dict:
    merged: dict = {}
    for layer in layers:
        for key, value in layer.items():
            if value is not None:
                merged[key] = value
    return merged


def split_list(value) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        items = value.split(",")
    else:
        items = list(value)
    return tuple(item.strip() for item in items if item and item.strip())


def _as_int(settings: dict, key: str, default: int, minimum: int = 0) -> int:
    raw = settings.get(key, default)
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ConfigurationError(f"{key} must be an integer, got {raw!r}") from None
    if value < minimum:
        raise ConfigurationError(f"{key} must be at least {minimum}, got {value}")
    return value


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


def validate_url(url: str) -> str:
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.hostname:
        raise ConfigurationError(f"Source URL must be an absolute http(s) URL, got {url!r}")
    return url


def parse_transform(value) -> tuple[str, ...] | None:
    if value is None:
        return DEFAULT_TRANSFORM
    if isinstance(value, (list, tuple)):
        return tuple(value) or None
    text = str(value).strip()
    if not text or text.lower() in ("none", "off"):
        return None
    return tuple(shlex.split(text))


def build_request(settings: dict) -> AcquisitionRequest:
    url = validate_url(settings.get("url", ""))
    parsed = urlparse(url)

    output_root = Path(settings.get("output_root") or "./site-mirror").expanduser().resolve()

    rate_limit = str(settings.get("rate_limit", "200k")).strip()
    if not _RATE_RE.match(rate_limit):
        raise ConfigurationError(f"rate_limit must look like 200k or 1.5m, got {rate_limit!r}")

    try:
        deadline = float(settings.get("deadline_minutes", 30)) * 60.0
    except (TypeError, ValueError):
        raise ConfigurationError("deadline_minutes must be a number") from None
    if deadline <= 0:
        raise ConfigurationError("deadline_minutes must be positive")

    include = split_list(settings.get("include_directories"))
    if not include and parsed.path.strip("/"):
        include = ("/" + parsed.path.strip("/"),)

    return AcquisitionRequest(
        url=url,
        output_root=output_root,
        max_depth=_as_int(settings, "max_depth", 3),
        wait_seconds=_as_int(settings, "wait_seconds", 1),
        rate_limit=rate_limit,
        deadline=deadline,
        domain=(settings.get("domain") or parsed.hostname or "").strip().lower(),
        include_directories=include,
        exclude_directories=split_list(settings.get("exclude_directories")),
        reject_patterns=split_list(settings.get("reject_patterns")),
        transform_command=parse_transform(settings.get("transform")),
        preflight=_as_bool(settings.get("preflight", True)),
        wget=str(settings.get("wget") or "wget"),
    )


def build_layout(settings: dict) -> LayoutConfig:
    margin = _as_int(settings, "margin", 20)
    orientation = str(settings.get("orientation", "portrait")).strip().lower()
    if orientation not in _ORIENTATIONS:
        raise ConfigurationError(f"orientation must be portrait or landscape, got {orientation!r}")
    return LayoutConfig(
        dpi=_as_int(settings, "dpi", 96, minimum=1),
        margin_top=margin,
        margin_bottom=margin,
        margin_left=margin,
        margin_right=margin,
        orientation=_ORIENTATIONS[orientation],
        page_size=str(settings.get("page_size") or "A4"),
        footer_template=str(settings.get("footer") or "[page]/[toPage]"),
        binary=str(settings.get("wkhtmltopdf") or "wkhtmltopdf"),
    )


def build_bind_options(settings: dict) -> BindOptions:
    return BindOptions(
        output=Path(settings.get("output") or DEFAULT_OUTPUT).expanduser().resolve(),
        title=str(settings.get("title") or DEFAULT_TITLE),
        workers=_as_int(settings, "workers", 1, minimum=1),
        keep_html=_as_bool(settings.get("keep_html", False)),
    )


def resolve_settings(cli: dict, profile: str | Path | None = None, environ=None) -> dict:
    return merge_settings(load_profile(profile), env_settings(environ), cli)


def ensure_output_root(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        raise ConfigurationError(f"Cannot create output directory {path}: {exc}") from exc
    if not os.access(path, os.W_OK):
        raise ConfigurationError(f"Output directory {path} is not writable")
    return path
