"""Match ingredient names against the shopping list's status column."""

from __future__ import annotations

from typing import Dict, Iterable, Mapping, Sequence

UNKNOWN_STATUS = "Unknown"


def build_status_table(rows: Iterable[Sequence[str]]) -> Dict[str, str]:
    """Map lower-cased item name to status from ``(name, status, ...)`` rows.

    Rows without a name or a status are skipped. The first row for a name
    wins, the same row the add-item path would update.
    """
    table: Dict[str, str] = {}
    for row in rows:
        name = row[0].strip().lower() if len(row) > 0 and row[0] else ""
        status = row[1].strip() if len(row) > 1 and row[1] else ""
        if not name or not status:
            continue
        table.setdefault(name, status)
    return table


def normalize(name: str, status_table: Mapping[str, str]) -> str:
    """Return the shopping-list status for ``name`` or ``"Unknown"``.

    Tries the name as-is, then a single trailing ``s`` removed (when present)
    or added (when absent), then the same with ``es``. No other plural forms
    are attempted, so ``berries`` never matches ``berry``.
    """
    key = name.lower()
    if key in status_table:
        return status_table[key]
    if key.endswith("s"):
        variants = [key[:-1]]
        if key.endswith("es"):
            variants.append(key[:-2])
    else:
        variants = [key + "s", key + "es"]
    for variant in variants:
        if variant in status_table:
            return status_table[variant]
    return UNKNOWN_STATUS
