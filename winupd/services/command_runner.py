from __future__ import annotations

import logging
import subprocess
import threading
from datetime import datetime
from queue import Empty, Queue
from typing import Callable, Sequence

from PyQt5 import QtCore

COMMAND_TIMEOUT_EXIT_CODE = -124
DEFAULT_LISTING_TIMEOUT_SEC = 120
DEFAULT_UPGRADE_TIMEOUT_SEC = 1200

logger = logging.getLogger(__name__)


class CommandUnavailableError(OSError):
    """Raised when the external command could not be started at all."""


def run_command_with_options(
    args: Sequence[str],
    *,
    timeout_sec: float | None = None,
    on_output: Callable[[str], None] | None = None,
    poll_interval_sec: float = 0.2,
) -> tuple[int, str]:
    """Run command and return (return_code, combined stdout/stderr).

    A running command is never interrupted except on timeout, in which case
    COMMAND_TIMEOUT_EXIT_CODE is returned with the output captured so far.
    """
    argv = list(args)
    logger.debug("Starting %s", format_command(argv))
    try:
        proc = subprocess.Popen(
            argv,
            shell=False,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            encoding="utf-8",
            errors="ignore",
            newline="\n",
        )
    except OSError as exc:
        raise CommandUnavailableError(f"Unable to start {argv[0]}: {exc}") from exc

    output_chunks: list[str] = []
    output_queue: Queue[str | None] = Queue()

    def enqueue_output() -> None:
        if proc.stdout is None:
            output_queue.put(None)
            return
        for line in proc.stdout:
            output_queue.put(line)
        output_queue.put(None)

    reader = threading.Thread(target=enqueue_output, daemon=True)
    reader.start()

    deadline = None if timeout_sec is None else datetime.now().timestamp() + timeout_sec
    stream_finished = False
    while True:
        while True:
            try:
                chunk = output_queue.get_nowait()
            except Empty:
                break

            if chunk is None:
                stream_finished = True
                continue

            # \r is kept so spinner redraws can be collapsed by the sanitizer.
            output_chunks.append(chunk)
            if on_output:
                on_output(chunk.rstrip("\n"))

        if deadline is not None and datetime.now().timestamp() >= deadline:
            proc.terminate()
            try:
                proc.wait(timeout=5)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
            reader.join(timeout=1)
            logger.warning("Timed out after %ss: %s", timeout_sec, format_command(argv))
            return COMMAND_TIMEOUT_EXIT_CODE, "".join(output_chunks)

        rc = proc.poll()
        if rc is not None and stream_finished:
            reader.join(timeout=1)
            logger.debug("Exit %s: %s", rc, format_command(argv))
            return rc, "".join(output_chunks)

        QtCore.QThread.msleep(max(1, int(poll_interval_sec * 1000)))


def format_command(args: Sequence[str]) -> str:
    """Create a readable command line string for logging."""
    return subprocess.list2cmdline(list(args))
