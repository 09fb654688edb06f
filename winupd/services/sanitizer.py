from __future__ import annotations

import re

from winupd.services.columns import (
    ColumnOffsets,
    display_width,
    header_offsets,
    is_aligned,
    is_header_line,
    is_row_start,
    split_cells,
)

_ESCAPE_SEQUENCE_RE = re.compile(
    r"\x1b\[[0-?]*[ -/]*[@-~]"  # CSI
    r"|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"  # OSC
    r"|\x1b[@-Z\\-_]"
)
_CONTROL_CHARS_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")
_SPINNER_RE = re.compile(r"^\s*[-\\|/]\s*$")
_PROGRESS_BAR_RE = re.compile(r"^\s*[█▓▒░]+")
_SEPARATOR_RE = re.compile(r"^\s*[-─]{3,}[\s\-─]*$")

FOOTER_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^\d+\s+upgrades?\s+available",
        r"^\d+\s+packages?(?:\(s\))?\s+ha(?:s|ve)\s+version numbers that cannot be determined",
        r"^\d+\s+packages?(?:\(s\))?\s+ha(?:s|ve)\s+pins?\s+that prevent",
        r"^the following packages have an upgrade available, but require explicit targeting",
    )
)


def collapse_redraws(raw: str) -> list[str]:
    """Return physical lines with escape codes removed and in-place redraws collapsed.

    For every line only the last non-blank carriage-return frame is kept, and
    lines whose final frame is a spinner glyph or a progress bar are dropped.
    Blank lines are preserved.
    """
    text = _ESCAPE_SEQUENCE_RE.sub("", raw)
    lines: list[str] = []
    for physical in text.split("\n"):
        frames = [frame for frame in physical.split("\r") if frame.strip()]
        if not frames:
            lines.append("")
            continue
        final = _CONTROL_CHARS_RE.sub("", frames[-1]).rstrip()
        if _SPINNER_RE.match(final) or _PROGRESS_BAR_RE.match(final):
            continue
        lines.append(final)
    return lines


def is_footer_line(line: str) -> bool:
    stripped = line.strip()
    return any(pattern.match(stripped) for pattern in FOOTER_PATTERNS)


def is_separator_line(line: str) -> bool:
    return bool(_SEPARATOR_RE.match(line))


def _lacks_trailing_column(previous: str, offsets: ColumnOffsets) -> bool:
    if is_aligned(previous, offsets):
        return display_width(previous) < offsets[-1][1]
    return len(split_cells(previous)) < len(offsets)


def _join_continuation(previous: str, tail: str, offsets: ColumnOffsets | None) -> str:
    # A tail on a row that stops short of the header fills the first missing column.
    if offsets is not None:
        if is_aligned(previous, offsets):
            width = display_width(previous)
            for _field, start in offsets:
                if start > width:
                    return previous + " " * (start - width) + tail
        elif len(split_cells(previous)) < len(offsets):
            return f"{previous}  {tail}"
    return f"{previous} {tail}"


def sanitize_output(raw: str, *, wrap_width: int | None = None) -> list[str]:
    """Turn raw CLI output into logical lines suitable for table parsing.

    A line is a continuation when it starts with whitespace, when the
    previous logical line filled the terminal exactly (``wrap_width``), or,
    below a table header, when it does not begin a row with a name and an id
    and the previous row stops short of the last column.
    Continuations are appended to the previous logical line.
    """
    logical: list[str] = []
    offsets: ColumnOffsets | None = None
    previous_is_header = False
    previous_width = 0
    for line in collapse_redraws(raw):
        if not line.strip() or is_separator_line(line) or is_footer_line(line):
            continue

        if is_header_line(line):
            offsets = header_offsets(line)
            logical.append(line)
            previous_is_header = True
            previous_width = display_width(line)
            continue

        wrapped = wrap_width is not None and previous_width == wrap_width
        tail = (
            offsets is not None
            and bool(logical)
            and not is_row_start(line, offsets)
            and _lacks_trailing_column(logical[-1], offsets)
        )
        if logical and not previous_is_header and (line[0].isspace() or wrapped or tail):
            logical[-1] = _join_continuation(logical[-1], line.strip(), offsets)
        else:
            logical.append(line.lstrip())
        previous_is_header = False
        # Measured on the logical line so a second pass makes the same decisions.
        previous_width = display_width(logical[-1])
    return logical
