"""Mirror the remote site with wget, racing the download against SIGINT/SIGTERM."""

from __future__ import annotations

import asyncio
import enum
import logging
import os
import signal
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from pathlib import Path

import requests

from .config import HEADERS, AcquisitionRequest, ensure_output_root
from .errors import AcquisitionError, DeadlineExceeded, Interrupted, SitebookError
from .runner import run_command

logger = logging.getLogger(__name__)

# Names wget leaves behind for transfers that never finished.
PARTIAL_SUFFIXES = (".tmp", ".wget")
PROBE_TIMEOUT = 30.0


class AcquisitionStatus(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    INTERRUPTED = "interrupted"


@dataclass(frozen=True)
class AcquisitionOutcome:
    status: AcquisitionStatus
    cause: BaseException | None = None
    root: Path | None = None

    @property
    def ok(self) -> bool:
        return self.status is AcquisitionStatus.SUCCESS

    @property
    def exit_code(self) -> int:
        return 0 if self.ok else 1


class InterruptListener:
    """Turn SIGINT/SIGTERM into an asyncio.Event while installed."""

    SIGNALS = (signal.SIGINT, signal.SIGTERM)

    def __init__(self):
        self.event = asyncio.Event()
        self.received: int | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._previous: dict[int, object] = {}

    def _on_signal(self, signum: int) -> None:
        logger.warning("Received %s; cleaning up", signal.Signals(signum).name)
        self.received = signum
        self.event.set()

    def install(self) -> None:
        self._loop = asyncio.get_running_loop()
        for sig in self.SIGNALS:
            try:
                self._loop.add_signal_handler(sig, self._on_signal, sig)
            except NotImplementedError:
                loop = self._loop
                self._previous[sig] = signal.signal(
                    sig, lambda signum, frame: loop.call_soon_threadsafe(self._on_signal, signum)
                )

    def remove(self) -> None:
        if self._loop is None:
            return
        for sig in self.SIGNALS:
            if sig in self._previous:
                signal.signal(sig, self._previous.pop(sig))
            else:
                self._loop.remove_signal_handler(sig)
        self._loop = None

    def __enter__(self) -> "InterruptListener":
        self.install()
        return self

    def __exit__(self, *exc_info) -> None:
        self.remove()


def build_fetch_argv(request: AcquisitionRequest) -> list[str]:
    argv = [
        request.wget,
        "--recursive",
        "--no-clobber",
        "--page-requisites",
        "--html-extension",
        "--convert-links",
        "--restrict-file-names=windows",
        "--domains", request.domain,
        "--no-parent",
    ]
    if request.include_directories:
        argv.append("--include-directories=" + ",".join(request.include_directories))
    if request.exclude_directories:
        argv.append("--exclude-directories=" + ",".join(request.exclude_directories))
    if request.reject_patterns:
        argv.append("--reject=" + ",".join(request.reject_patterns))
    argv += [
        f"--wait={request.wait_seconds}",
        f"--limit-rate={request.rate_limit}",
        f"--level={request.max_depth}",
        f"--user-agent={HEADERS['User-Agent']}",
        request.url,
    ]
    return argv


def probe_source(url: str, timeout: float = PROBE_TIMEOUT) -> int:
    try:
        resp = requests.head(url, headers=HEADERS, timeout=timeout, allow_redirects=True)
        if resp.status_code == 405:
            resp = requests.get(url, headers=HEADERS, timeout=timeout, stream=True)
            resp.close()
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise AcquisitionError(f"Source {url} is not reachable: {exc}") from exc
    return resp.status_code


def cleanup_partial_downloads(root: Path) -> list[Path]:
    """Delete unfinished wget transfers under ``root``. Errors are logged, never raised."""
    removed: list[Path] = []
    if not root.is_dir():
        return removed

    def on_walk_error(exc: OSError) -> None:
        logger.warning("Cleanup could not read %s: %s", exc.filename, exc)

    for dirpath, _dirnames, filenames in os.walk(root, onerror=on_walk_error):
        for name in filenames:
            if not name.endswith(PARTIAL_SUFFIXES):
                continue
            path = Path(dirpath) / name
            try:
                path.unlink()
            except OSError as exc:
                logger.warning("Cleanup could not remove %s: %s", path, exc)
                continue
            removed.append(path)

    logger.info("Cleanup removed %d partial file(s) from %s", len(removed), root)
    return removed


async def preflight(url: str, deadline: float, cancel: asyncio.Event) -> int:
    """Run ``probe_source`` on a worker thread, racing it against the deadline and ``cancel``.

    requests cannot be interrupted, so a probe that loses the race is left to
    finish on its own thread and its result is discarded.
    """
    loop = asyncio.get_running_loop()
    remaining = deadline - loop.time()
    if remaining <= 0:
        raise DeadlineExceeded("deadline passed before the source could be checked")
    if cancel.is_set():
        raise Interrupted("cancelled before the source could be checked")

    pool = ThreadPoolExecutor(max_workers=1)
    probe = loop.run_in_executor(pool, probe_source, url, min(PROBE_TIMEOUT, remaining))
    stopper = asyncio.ensure_future(cancel.wait())
    try:
        done, _ = await asyncio.wait({probe, stopper}, timeout=remaining, return_when=asyncio.FIRST_COMPLETED)
    finally:
        stopper.cancel()
        if not probe.done():
            probe.cancel()
        pool.shutdown(wait=False)

    if probe in done:
        return probe.result()
    if stopper in done:
        raise Interrupted("cancelled while checking the source")
    raise DeadlineExceeded(f"{url} did not answer before the deadline")


async def retrieve(request: AcquisitionRequest, deadline: float, cancel: asyncio.Event) -> Path:
    if request.preflight:
        status = await preflight(request.url, deadline, cancel)
        logger.info("Source %s answered %d", request.url, status)

    logger.info("Starting wget download of %s", request.url)
    await run_command(build_fetch_argv(request), cwd=request.output_root, deadline=deadline, cancel=cancel)

    root = request.acquired_root
    if not root.is_dir():
        raise AcquisitionError(f"Downloaded directory not found: {root}")

    if request.transform_command:
        logger.info("Running post-download transform on %s", root)
        await run_command([*request.transform_command, str(root)], deadline=deadline, cancel=cancel)
    return root


async def acquire(request: AcquisitionRequest, interrupt: asyncio.Event | None = None) -> AcquisitionOutcome:
    """Download the site, letting whichever of completion, deadline or interrupt comes first decide.

    Non-success outcomes always leave the output root free of partial
    transfers. A ConfigurationError for the output root is raised directly.
    """
    ensure_output_root(request.output_root)
    loop = asyncio.get_running_loop()
    deadline = loop.time() + request.deadline
    cancel = asyncio.Event()
    if interrupt is None:
        interrupt = asyncio.Event()

    unit = asyncio.create_task(retrieve(request, deadline, cancel))
    listener = asyncio.create_task(interrupt.wait())
    try:
        done, _ = await asyncio.wait({unit, listener}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        cancel.set()
        await asyncio.gather(unit, return_exceptions=True)
        cleanup_partial_downloads(request.output_root)
        raise
    finally:
        listener.cancel()
        await asyncio.gather(listener, return_exceptions=True)

    if unit in done:
        try:
            root = unit.result()
        except Interrupted as exc:
            outcome = AcquisitionOutcome(AcquisitionStatus.INTERRUPTED, cause=exc)
        except (SitebookError, OSError) as exc:
            logger.error("Download failed: %s", exc)
            outcome = AcquisitionOutcome(AcquisitionStatus.FAILURE, cause=exc)
        except Exception:
            cleanup_partial_downloads(request.output_root)
            raise
        else:
            logger.info("Download completed: %s", root)
            return AcquisitionOutcome(AcquisitionStatus.SUCCESS, root=root)
    else:
        cancel.set()
        try:
            await unit
        except (SitebookError, OSError) as exc:
            logger.debug("Download stopped: %s", exc)
        except Exception:
            cleanup_partial_downloads(request.output_root)
            raise
        outcome = AcquisitionOutcome(AcquisitionStatus.INTERRUPTED, cause=Interrupted("interrupted by signal"))

    cleanup_partial_downloads(request.output_root)
    return outcome


async def run_acquisition(request: AcquisitionRequest) -> AcquisitionOutcome:
    with InterruptListener() as listener:
        return await acquire(request, listener.event)
