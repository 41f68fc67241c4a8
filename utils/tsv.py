# utils/tsv.py
from __future__ import annotations

import csv
import re
from typing import IO, Iterable, List

# mysql --batch escapes these in field values
_ESCAPES = {"n": "\n", "t": "\t", "0": "\0", "\\": "\\"}
_escape_re = re.compile(r"\\(.)", flags=re.DOTALL)

NULL_TOKEN = "NULL"


def _unescape(field: str) -> str:
    if field == NULL_TOKEN:
        return ""
    if "\\" not in field:
        return field
    return _escape_re.sub(lambda m: _ESCAPES.get(m.group(1), m.group(0)), field)


def split_row(line: str) -> List[str]:
    """One line of `mysql --batch` output -> list of field values."""
    line = line.replace("\r", "").rstrip("\n")
    return [_unescape(f) for f in line.split("\t")]


def tsv_to_csv(lines: Iterable[str], out: IO[str]) -> int:
    """
    Convert `mysql --batch` output (header + tab separated rows) to CSV.

    - carriage returns are dropped, batch escapes are decoded
    - NULL becomes an empty field
    - minimal quoting, "\\n" line terminator; identical input gives identical bytes

    Returns the number of data rows written (header excluded).
    """
    writer = csv.writer(out, lineterminator="\n")
    rows = -1
    for line in lines:
        if not line.strip("\r\n"):
            continue
        writer.writerow(split_row(line))
        rows += 1
    return max(rows, 0)
