"""Pytest configuration and fixtures."""
import asyncio
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
import pytest

from monitor.config import Settings, Source
from monitor.errors import SheetFetchError
from monitor.sheets import Workbook, Worksheet


HEADERS = [
    "District",
    "Site ID",
    "Site Name",
    "Discipline",
    "Task Name",
    "Planned Start",
    "Planned Finish",
    "Planned Duration (Days)",
    "Actual Start",
    "Actual Finish",
    "Progress %",
    "Variance",
    "Delay Flag",
    "Last Updated",
    "Remarks",
    "Photo Folder",
    "Cover Photo",
    "Before Photo",
    "After Photo",
    "No_of_Staff_RFB",
    "CESMPS_Submitted",
    "OHS_Measures",
]
IPC_COLUMN = 24


def make_sheet(
    rows: Sequence[Dict[str, Any]],
    name: str = "Data_Entry",
    ipc: Optional[Sequence[Any]] = None,
) -> Worksheet:
    """Build a worksheet with the standard header row, data rows and optional IPC cells (Y2:AD2)."""
    width = IPC_COLUMN + 6
    header = HEADERS + [None] * (IPC_COLUMN - len(HEADERS)) + [f"IPC {i}" for i in range(1, 7)]
    grid: List[List[Any]] = [header]
    for row in rows:
        grid.append([row.get(h) if h else None for h in header[:IPC_COLUMN]] + [None] * 6)
    if ipc is not None:
        if len(grid) < 2:
            grid.append([None] * width)
        grid[1][IPC_COLUMN:IPC_COLUMN + 6] = list(ipc)
    return Worksheet(name=name, grid=pd.DataFrame(grid, dtype=object))


def make_workbook(*sheets: Worksheet) -> Workbook:
    return Workbook(sheets={s.name: s for s in sheets})


def task_row(site_id: str = "S-001", **overrides: Any) -> Dict[str, Any]:
    row = {
        "District": "Kabul",
        "Site ID": site_id,
        "Site Name": f"Site {site_id}",
        "Discipline": "Civil",
        "Task Name": "Foundation",
        "Planned Start": "01/02/2024",
        "Planned Finish": "15/03/2024",
        "Planned Duration (Days)": "43",
        "Actual Start": "03/02/2024",
        "Actual Finish": None,
        "Progress %": "40",
        "Variance": "-2",
        "Delay Flag": "On Track",
        "Last Updated": "10/03/2024",
        "Remarks": "",
        "No_of_Staff_RFB": "Yes",
        "CESMPS_Submitted": "Yes",
        "OHS_Measures": "Yes",
    }
    row.update(overrides)
    return row


class FakeFetcher:
    """In-memory stand-in for SheetFetcher keyed by package id."""

    def __init__(self, responses: Dict[str, Any], delays: Optional[Dict[str, float]] = None):
        self.responses = responses
        self.delays = delays or {}
        self.calls: List[str] = []

    async def fetch(self, source: Source) -> Workbook:
        self.calls.append(source.package_id)
        delay = self.delays.get(source.package_id)
        if delay:
            await asyncio.sleep(delay)
        response = self.responses.get(source.package_id)
        if isinstance(response, Exception):
            raise response
        if response is None:
            raise SheetFetchError(source.package_id, "HTTP 404 Not Found", status=404)
        return response


@pytest.fixture
def sources() -> List[Source]:
    return [
        Source(package_id="PKG-1", package_name="Package One", export_url="https://example.test/p1.xlsx"),
        Source(package_id="PKG-2", package_name="Package Two", export_url="https://example.test/p2.xlsx"),
        Source(package_id="PKG-3", package_name="Package Three", export_url="https://example.test/p3.xlsx"),
    ]


@pytest.fixture
def settings(sources) -> Settings:
    return Settings(sources=tuple(sources))


@pytest.fixture
def ipc_cells() -> List[Any]:
    return ["released", "in process", "submitted", "not submitted", None, "released"]
