from __future__ import annotations

import logging
from typing import Callable, Sequence

from winupd.domain.models import UpdateResult
from winupd.services.command_runner import (
    COMMAND_TIMEOUT_EXIT_CODE,
    format_command,
    run_command_with_options,
)
from winupd.services.sanitizer import collapse_redraws
from winupd.services.settings_store import UpdaterSettings
from winupd.services.winget import build_upgrade_command

FAILURE_MESSAGE_MAX_LEN = 100

logger = logging.getLogger(__name__)


def _find_marker_line(lines: Sequence[str], markers: Sequence[str]) -> str | None:
    lowered_markers = [marker.lower() for marker in markers]
    for line in lines:
        lowered = line.lower()
        if any(marker in lowered for marker in lowered_markers):
            return line.strip()
    return None


def as_dword(code: int) -> int:
    """Exit code as the unsigned 32-bit value Windows reports (0x8A15002B, not -1978335189)."""
    return code & 0xFFFFFFFF


def failure_tail(lines: Sequence[str], rc: int) -> str:
    for line in reversed(lines):
        text = line.strip()
        if text:
            return text[:FAILURE_MESSAGE_MAX_LEN]
    return f"Update failed (exit {rc})"


def classify_upgrade_output(rc: int, output: str, settings: UpdaterSettings) -> UpdateResult:
    """Classify one upgrade run by its text, since winget exit codes do not
    separate warnings from hard failures."""
    lines = collapse_redraws(output)

    needs_close = _find_marker_line(lines, settings.needs_close_markers)
    if needs_close is not None:
        return UpdateResult.needs_app_closed(needs_close)

    not_applicable = {as_dword(code) for code in settings.not_applicable_exit_codes}
    if rc == 0 or as_dword(rc) in not_applicable:
        up_to_date = _find_marker_line(lines, settings.already_up_to_date_markers)
        if up_to_date is not None:
            return UpdateResult.already_up_to_date(up_to_date)

    if rc == 0:
        return UpdateResult.success("Updated successfully")
    if rc == COMMAND_TIMEOUT_EXIT_CODE:
        return UpdateResult.failure(f"Timed out after {settings.upgrade_timeout_sec}s")
    return UpdateResult.failure(failure_tail(lines, rc))


class UpgradeExecutor:
    def __init__(self, settings: UpdaterSettings) -> None:
        self._settings = settings

    def execute(self, app_id: str, on_output: Callable[[str], None] | None = None) -> UpdateResult:
        """Upgrade one package by id.

        CommandUnavailableError propagates when winget cannot be started.
        """
        cmd = build_upgrade_command(self._settings, app_id)
        logger.info("Running %s", format_command(cmd))
        rc, output = run_command_with_options(
            cmd,
            timeout_sec=self._settings.upgrade_timeout_sec,
            on_output=on_output,
        )
        result = classify_upgrade_output(rc, output, self._settings)
        logger.info("%s -> %s (exit %s)", app_id, result.kind.value, rc)
        return result
