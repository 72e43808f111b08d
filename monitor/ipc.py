"""Interim Payment Certificate statuses.

The six certificates live in fixed cells (row 2, columns Y..AD by default) and
are read by position, not by header name. A missing worksheet yields no
records at all rather than six unknown ones.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Sequence

from monitor.config import DEFAULT_IPC_FIRST_COLUMN, DEFAULT_IPC_ROW
from monitor.normalize import cell_text
from monitor.sheets import Worksheet


logger = logging.getLogger(__name__)

IPCStatus = Literal["not submitted", "submitted", "in process", "released", "unknown"]
IPC_UNKNOWN: IPCStatus = "unknown"

IPC_LABELS = ("IPC 1", "IPC 2", "IPC 3", "IPC 4", "IPC 5", "IPC 6")

_VOCABULARY: Dict[str, IPCStatus] = {
    "not submitted": "not submitted",
    "submitted": "submitted",
    "in process": "in process",
    "released": "released",
}


@dataclass(frozen=True)
class IPCRecord:
    label: str
    status: IPCStatus


def parse_ipc_status(value: object) -> IPCStatus:
    return _VOCABULARY.get(cell_text(value).lower(), IPC_UNKNOWN)  # type: ignore[arg-type]


def ipc_from_cells(cells: Sequence[object]) -> List[IPCRecord]:
    """Map six raw cells, in column order, onto IPC 1..IPC 6."""
    if len(cells) != len(IPC_LABELS):
        raise ValueError(f"expected {len(IPC_LABELS)} IPC cells, got {len(cells)}")
    return [IPCRecord(label=label, status=parse_ipc_status(value)) for label, value in zip(IPC_LABELS, cells)]


def extract_ipc(
    sheet: Optional[Worksheet],
    *,
    row: int = DEFAULT_IPC_ROW,
    first_column: int = DEFAULT_IPC_FIRST_COLUMN,
) -> List[IPCRecord]:
    if sheet is None:
        logger.warning("IPC worksheet not found; no IPC records")
        return []
    cells = [sheet.cell(row, first_column + offset) for offset in range(len(IPC_LABELS))]
    records = ipc_from_cells(cells)
    logger.info(
        "Extracted IPC records from %r: %d known",
        sheet.name,
        sum(1 for r in records if r.status != IPC_UNKNOWN),
    )
    return records


def summarize_ipc(records: Sequence[IPCRecord]) -> Dict[str, int]:
    summary = {"released": 0, "in_process": 0, "submitted": 0, "not_submitted": 0, "unknown": 0}
    for record in records:
        summary[record.status.replace(" ", "_")] += 1
    return summary
