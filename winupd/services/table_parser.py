from __future__ import annotations

import logging
from typing import Iterable, Sequence

from winupd.domain.models import UNKNOWN_PLACEHOLDER, UpdatableApp
from winupd.services.columns import (
    HEADER_LABELS,
    REQUIRED_FIELDS,
    ColumnOffsets,
    extract_fields,
    has_key_fields,
    header_offsets,
    is_header_line,
    slice_row,
)
from winupd.services.sanitizer import sanitize_output

__all__ = [
    "HEADER_LABELS",
    "REQUIRED_FIELDS",
    "ColumnOffsets",
    "find_header",
    "header_offsets",
    "is_header_line",
    "parse_table",
    "parse_upgrade_listing",
    "slice_row",
]

logger = logging.getLogger(__name__)


def find_header(lines: Sequence[str]) -> int | None:
    for idx, line in enumerate(lines):
        if is_header_line(line):
            return idx
    return None


def _build_app(fields: dict[str, str]) -> UpdatableApp | None:
    if not has_key_fields(fields):
        return None
    return UpdatableApp(
        name=fields["name"],
        id=fields["id"],
        current_version=fields.get("version") or UNKNOWN_PLACEHOLDER,
        available_version=fields.get("available") or UNKNOWN_PLACEHOLDER,
        source=fields.get("source") or UNKNOWN_PLACEHOLDER,
    )


def parse_table(lines: Iterable[str]) -> list[UpdatableApp]:
    """Build apps from sanitized lines, in the order the tool printed them.

    Every header line (winget prints a second table for packages that need
    explicit targeting) resets the column offsets for the rows below it.
    Rows are cut at the header's display columns; a row the header does not
    line up with is split on its own wide gaps instead.
    """
    apps: list[UpdatableApp] = []
    offsets: ColumnOffsets | None = None
    for line in lines:
        if is_header_line(line):
            offsets = header_offsets(line)
            continue
        if offsets is None:
            continue
        app = _build_app(extract_fields(line, offsets))
        if app is None:
            logger.debug("Skipping row: %r", line)
            continue
        apps.append(app)
    return apps


def parse_upgrade_listing(raw: str, *, wrap_width: int | None = None) -> list[UpdatableApp]:
    return parse_table(sanitize_output(raw, wrap_width=wrap_width))
