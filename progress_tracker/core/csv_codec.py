"""CSV encoding for entity collections.

Layout written by :func:`encode`:
- header line from ``columns``, then one line per record in collection order
- lines joined with ``\\n``; no trailing line break unless the collection is
  empty, in which case the output is ``header + "\\n"``
- a field is quoted iff it contains a comma, a double quote or a line break,
  with inner quotes doubled

Output is byte-stable for a given input so blobs diff cleanly in the store.
"""

from __future__ import annotations

import csv
import io
from typing import Any, Mapping, Sequence

_SPECIAL = (",", '"', "\n", "\r")
_BOM = "\ufeff"


def _to_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def escape_field(value: Any) -> str:
    text = _to_text(value)
    if any(ch in text for ch in _SPECIAL):
        return '"' + text.replace('"', '""') + '"'
    return text


def encode(records: Sequence[Mapping[str, Any]], columns: Sequence[str]) -> str:
    header = ",".join(columns)
    if not records:
        return header + "\n"
    lines = [header]
    for record in records:
        lines.append(",".join(escape_field(record.get(col)) for col in columns))
    return "\n".join(lines)


def decode(text: str) -> list[dict[str, str]]:
    """Parse CSV text into records keyed by the header row.

    Tolerates ``\\n`` and ``\\r\\n`` line endings, quoted fields spanning
    commas/quotes/line breaks, a leading BOM and blank lines. Short rows are
    padded with ``""``; cells beyond the header are ignored.
    """

    if not text:
        return []
    if text.startswith(_BOM):
        text = text[len(_BOM):]

    reader = csv.reader(io.StringIO(text, newline=""))
    header: list[str] | None = None
    out: list[dict[str, str]] = []
    for row in reader:
        if header is None:
            header = row
            continue
        if not row or row == [""]:
            continue
        out.append({name: (row[i] if i < len(row) else "") for i, name in enumerate(header)})
    return out


def header_of(text: str) -> list[str]:
    """Column names from the first row of ``text`` (empty if there is none)."""

    if not text:
        return []
    if text.startswith(_BOM):
        text = text[len(_BOM):]
    for row in csv.reader(io.StringIO(text, newline="")):
        return row
    return []
