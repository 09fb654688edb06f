from __future__ import annotations

import re
import unicodedata

# Field -> header labels accepted for it (lower case).
HEADER_LABELS: dict[str, tuple[str, ...]] = {
    "name": ("name",),
    "id": ("id",),
    "version": ("version",),
    "available": ("available",),
    "source": ("source",),
}
REQUIRED_FIELDS: tuple[str, ...] = ("name", "id", "version", "available")

# (field, starting display column), ordered by column.
ColumnOffsets = tuple[tuple[str, int], ...]

_TOKEN_RE = re.compile(r"\S+")
_CELL_GAP_RE = re.compile(r"\s{2,}")
_FIELD_BY_LABEL = {label: field for field, labels in HEADER_LABELS.items() for label in labels}


def char_width(char: str) -> int:
    """Terminal cells taken by ``char``; winget pads columns by this width."""
    if unicodedata.combining(char):
        return 0
    return 2 if unicodedata.east_asian_width(char) in ("W", "F") else 1


def display_width(text: str) -> int:
    return sum(char_width(char) for char in text)


def _header_tokens(line: str) -> list[tuple[str, int]] | None:
    tokens: list[tuple[str, int]] = []
    for match in _TOKEN_RE.finditer(line):
        field = _FIELD_BY_LABEL.get(match.group().lower())
        if field is None:
            return None
        tokens.append((field, display_width(line[: match.start()])))
    return tokens


def is_header_line(line: str) -> bool:
    tokens = _header_tokens(line)
    if not tokens:
        return False
    fields = {field for field, _offset in tokens}
    return all(field in fields for field in REQUIRED_FIELDS)


def header_offsets(header_line: str) -> ColumnOffsets:
    """Map each column label of ``header_line`` to its starting column, ordered by column."""
    tokens = _header_tokens(header_line)
    if tokens is None:
        raise ValueError(f"Not a header line: {header_line!r}")
    first_offsets: dict[str, int] = {}
    for field, offset in tokens:
        first_offsets.setdefault(field, offset)
    return tuple(sorted(first_offsets.items(), key=lambda item: item[1]))


def _cells_by_column(line: str) -> list[str]:
    cells: list[str] = []
    for char in line:
        cells.extend([char] * char_width(char))
    return cells


def _column_slice(line: str, start: int, end: int | None) -> str:
    chars: list[str] = []
    column = 0
    for char in line:
        if column >= start and (end is None or column < end):
            chars.append(char)
        column += char_width(char)
    return "".join(chars)


def slice_row(line: str, offsets: ColumnOffsets) -> dict[str, str]:
    """Cut ``line`` at the header columns; each field runs to the next column's start."""
    fields: dict[str, str] = {}
    for idx, (field, start) in enumerate(offsets):
        end = offsets[idx + 1][1] if idx + 1 < len(offsets) else None
        fields[field] = _column_slice(line, start, end).strip()
    return fields


def is_aligned(line: str, offsets: ColumnOffsets) -> bool:
    """True when no column boundary falls inside a word of ``line``."""
    cells = _cells_by_column(line)
    for _field, start in offsets[1:]:
        if 0 < start < len(cells) and not cells[start - 1].isspace():
            return False
    return True


def split_cells(line: str) -> list[str]:
    return [cell for cell in _CELL_GAP_RE.split(line.strip()) if cell]


def extract_fields(line: str, offsets: ColumnOffsets) -> dict[str, str]:
    """Fields of a data row, by position.

    When the header does not line up with the row (a boundary would cut a
    word), the row's own gaps of two or more spaces delimit the cells, which
    are then assigned to the header columns in order.
    """
    if not is_aligned(line, offsets):
        cells = split_cells(line)
        if len(cells) >= 2:
            fields = {field: "" for field, _start in offsets}
            for (field, _start), cell in zip(offsets, cells):
                fields[field] = cell
            return fields
    return slice_row(line, offsets)


def has_key_fields(fields: dict[str, str]) -> bool:
    app_id = fields.get("id", "")
    return bool(fields.get("name")) and bool(app_id) and not any(char.isspace() for char in app_id)


def is_row_start(line: str, offsets: ColumnOffsets) -> bool:
    return bool(line) and not line[0].isspace() and has_key_fields(extract_fields(line, offsets))

