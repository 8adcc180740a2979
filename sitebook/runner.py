"""Run an external command with a working directory, deadline and cancellation token."""

from __future__ import annotations

import asyncio
import logging
import shlex
from pathlib import Path

from .errors import AcquisitionError, CommandFailed, DeadlineExceeded, Interrupted

logger = logging.getLogger(__name__)

TERMINATE_GRACE = 10.0


async def _terminate(proc: asyncio.subprocess.Process, waiter: asyncio.Future, grace: float) -> None:
    if proc.returncode is None:
        try:
            proc.terminate()
        except ProcessLookupError:
            pass
    try:
        await asyncio.wait_for(asyncio.shield(waiter), timeout=grace)
    except asyncio.TimeoutError:
        logger.warning("%d did not exit %.0fs after SIGTERM; killing it", proc.pid, grace)
        try:
            proc.kill()
        except ProcessLookupError:
            pass
        await waiter


async def run_command(
    argv: list[str],
    cwd: str | Path | None = None,
    deadline: float | None = None,
    cancel: asyncio.Event | None = None,
    grace: float = TERMINATE_GRACE,
) -> int:
    """Run ``argv`` to completion, inheriting stdout and stderr.

    ``deadline`` is an absolute time on the running loop's clock. When it
    passes, or ``cancel`` is set, the child is sent SIGTERM and is only
    killed if it is still alive ``grace`` seconds later.

    Raises CommandFailed on a non-zero exit, DeadlineExceeded or Interrupted
    when stopped early, and AcquisitionError when the command cannot start.
    """
    loop = asyncio.get_running_loop()
    argv = [str(arg) for arg in argv]
    logger.info("Running %s%s", shlex.join(argv), f" in {cwd}" if cwd else "")

    if deadline is not None and deadline <= loop.time():
        raise DeadlineExceeded(f"deadline passed before {argv[0]} could start")
    if cancel is not None and cancel.is_set():
        raise Interrupted(f"cancelled before {argv[0]} could start")

    try:
        proc = await asyncio.create_subprocess_exec(*argv, cwd=str(cwd) if cwd else None)
    except OSError as exc:
        raise AcquisitionError(f"Cannot start {argv[0]}: {exc}") from exc

    waiter = asyncio.ensure_future(proc.wait())
    watched = {waiter}
    stopper = None
    if cancel is not None:
        stopper = asyncio.ensure_future(cancel.wait())
        watched.add(stopper)
    timeout = None if deadline is None else max(0.0, deadline - loop.time())

    try:
        done, _ = await asyncio.wait(watched, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        await _terminate(proc, waiter, grace)
        raise
    finally:
        if stopper is not None:
            stopper.cancel()

    if waiter in done:
        returncode = waiter.result()
        if returncode != 0:
            raise CommandFailed(argv, returncode)
        return returncode

    await _terminate(proc, waiter, grace)
    if stopper is not None and stopper in done:
        raise Interrupted(f"{argv[0]} was cancelled")
    raise DeadlineExceeded(f"{argv[0]} did not finish before the deadline")
