from __future__ import annotations

import logging
from typing import Callable

from winupd.domain.models import UpdatableApp
from winupd.services.command_runner import (
    COMMAND_TIMEOUT_EXIT_CODE,
    CommandUnavailableError,
    run_command_with_options,
)
from winupd.services.sanitizer import sanitize_output
from winupd.services.settings_store import UpdaterSettings
from winupd.services.table_parser import find_header, parse_table

logger = logging.getLogger(__name__)


class ListingUnavailableError(RuntimeError):
    """The upgrade listing could not be produced."""


def build_listing_command(settings: UpdaterSettings) -> list[str]:
    return [settings.winget_executable, "upgrade", "--include-unknown", "--accept-source-agreements"]


def build_upgrade_command(settings: UpdaterSettings, app_id: str) -> list[str]:
    # Always by id: names are not unique.
    return [
        settings.winget_executable,
        "upgrade",
        "--id",
        app_id,
        "--exact",
        "--accept-source-agreements",
        "--accept-package-agreements",
        "--disable-interactivity",
        "-h",
    ]


def fetch_updatable_apps(
    settings: UpdaterSettings,
    on_output: Callable[[str], None] | None = None,
) -> list[UpdatableApp]:
    """Run the upgrade listing and parse it. An empty list means no updates."""
    try:
        rc, output = run_command_with_options(
            build_listing_command(settings),
            timeout_sec=settings.listing_timeout_sec,
            on_output=on_output,
        )
    except CommandUnavailableError as exc:
        raise ListingUnavailableError(str(exc)) from exc

    if rc == COMMAND_TIMEOUT_EXIT_CODE:
        raise ListingUnavailableError(f"winget timed out after {settings.listing_timeout_sec}s")

    lines = sanitize_output(output, wrap_width=settings.wrap_width)
    if rc != 0:
        if find_header(lines) is None:
            detail = lines[-1] if lines else "no output"
            raise ListingUnavailableError(f"winget exited with code {rc}: {detail}")
        logger.warning("winget listing exited with code %s, parsing output anyway", rc)

    apps = parse_table(lines)
    logger.info("Found %d updatable app(s)", len(apps))
    return apps
