from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path

from winupd.services.command_runner import DEFAULT_LISTING_TIMEOUT_SEC, DEFAULT_UPGRADE_TIMEOUT_SEC

SETTINGS_ENV_VAR = "WINUPD_SETTINGS"
DEFAULT_SETTINGS_FILE = Path(__file__).resolve().parents[2] / "settings.json"

# winget wording, revisit when the tool changes its messages.
ALREADY_UP_TO_DATE_MARKERS: tuple[str, ...] = (
    "No applicable update found",
    "No available upgrade found",
    "No newer package versions are available",
)
NEEDS_CLOSE_MARKERS: tuple[str, ...] = (
    "application must be closed",
    "Close the application",
    "currently in use",
    "close all instances",
)
# APPINSTALLER_CLI_ERROR_UPDATE_NOT_APPLICABLE; compared as unsigned 32-bit values.
NOT_APPLICABLE_EXIT_CODES: tuple[int, ...] = (0x8A15002B,)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UpdaterSettings:
    winget_executable: str = "winget"
    listing_timeout_sec: float = DEFAULT_LISTING_TIMEOUT_SEC
    upgrade_timeout_sec: float = DEFAULT_UPGRADE_TIMEOUT_SEC
    wrap_width: int | None = None
    already_up_to_date_markers: tuple[str, ...] = ALREADY_UP_TO_DATE_MARKERS
    needs_close_markers: tuple[str, ...] = NEEDS_CLOSE_MARKERS
    not_applicable_exit_codes: tuple[int, ...] = NOT_APPLICABLE_EXIT_CODES


def settings_path() -> Path:
    override = os.environ.get(SETTINGS_ENV_VAR, "").strip()
    return Path(override) if override else DEFAULT_SETTINGS_FILE


def _coerce(name: str, value: object, default: object) -> object:
    if isinstance(default, tuple):
        if isinstance(value, list) and all(isinstance(entry, type(default[0]) if default else str) for entry in value):
            return tuple(value)
        return default
    if name == "wrap_width":
        return value if value is None or (isinstance(value, int) and not isinstance(value, bool) and value > 0) else default
    if isinstance(default, (int, float)) and isinstance(value, (int, float)) and not isinstance(value, bool):
        return value if value > 0 else default
    if isinstance(default, str) and isinstance(value, str) and value.strip():
        return value.strip()
    return default


def load_settings(path: Path | None = None) -> UpdaterSettings:
    path = path or settings_path()
    defaults = UpdaterSettings()
    if not path.exists():
        return defaults

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable settings file %s: %s", path, exc)
        return defaults
    if not isinstance(raw, dict):
        return defaults

    values: dict[str, object] = {}
    for setting in fields(UpdaterSettings):
        default = getattr(defaults, setting.name)
        if setting.name in raw:
            values[setting.name] = _coerce(setting.name, raw[setting.name], default)
    return UpdaterSettings(**values)


def save_settings(path: Path, settings: UpdaterSettings) -> None:
    payload = {key: list(value) if isinstance(value, tuple) else value for key, value in asdict(settings).items()}
    path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
