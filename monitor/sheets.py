"""Published-export fetching and the in-memory workbook model."""

from __future__ import annotations

import asyncio
import io
import logging
import math
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Dict, List, Optional, Tuple

import aiohttp
import numpy as np
import pandas as pd

from monitor.config import DEFAULT_FETCH_TIMEOUT_SECONDS, DEFAULT_TAB_NAME, Source
from monitor.errors import SheetDecodeError, SheetFetchError
from monitor.normalize import CellValue, is_blank


logger = logging.getLogger(__name__)

_A1 = re.compile(r"^([A-Za-z]{1,3})(\d+)$")


def to_cell_value(value: object) -> CellValue:
    """Collapse whatever pandas/openpyxl produced into the boundary cell type."""
    if value is None:
        return None
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        out = float(value)
        return None if math.isnan(out) else out
    if isinstance(value, int):
        return value
    if isinstance(value, datetime):
        if pd.isna(value):
            return None
        return value.strftime("%d/%m/%Y")
    if isinstance(value, date):
        return value.strftime("%d/%m/%Y")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if isinstance(value, str):
        return value
    if is_blank(value):
        return None
    return str(value)


def column_index(letters: str) -> int:
    """``"A"`` -> 0, ``"Y"`` -> 24, ``"AD"`` -> 29."""
    idx = 0
    for ch in letters.upper():
        idx = idx * 26 + (ord(ch) - ord("A") + 1)
    return idx - 1


@dataclass(frozen=True)
class Worksheet:
    """One tab of a workbook as a sparse, 0-indexed grid (row 0 is the header row)."""

    name: str
    grid: pd.DataFrame = field(repr=False, compare=False)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.grid.shape

    def cell(self, row: int, col: int) -> CellValue:
        n_rows, n_cols = self.grid.shape
        if row < 0 or col < 0 or row >= n_rows or col >= n_cols:
            return None
        return to_cell_value(self.grid.iat[row, col])

    def cell_a1(self, ref: str) -> CellValue:
        match = _A1.match(ref.strip())
        if not match:
            raise ValueError(f"not an A1 reference: {ref!r}")
        return self.cell(int(match.group(2)) - 1, column_index(match.group(1)))

    def headers(self) -> List[Optional[str]]:
        """Header names by column, ``None`` for blank header cells.

        Repeated names get ``_1``, ``_2``... suffixes so every column keeps a key.
        """
        if self.grid.empty:
            return []
        out: List[Optional[str]] = []
        seen: Dict[str, int] = {}
        for col in range(self.grid.shape[1]):
            raw = self.cell(0, col)
            if is_blank(raw):
                out.append(None)
                continue
            name = str(int(raw)) if isinstance(raw, float) and raw.is_integer() else str(raw)
            if name in seen:
                seen[name] += 1
                name = f"{name}_{seen[name]}"
            else:
                seen[name] = 0
            out.append(name)
        return out

    def records(self) -> List[Dict[str, CellValue]]:
        """Data rows keyed by header name; fully blank rows are skipped."""
        headers = self.headers()
        rows: List[Dict[str, CellValue]] = []
        for row_idx in range(1, self.grid.shape[0]):
            record: Dict[str, CellValue] = {}
            for col_idx, name in enumerate(headers):
                if name is None:
                    continue
                record[name] = self.cell(row_idx, col_idx)
            if record and not all(is_blank(v) for v in record.values()):
                rows.append(record)
        return rows


@dataclass(frozen=True)
class Workbook:
    sheets: Dict[str, Worksheet] = field(default_factory=dict)

    @property
    def sheet_names(self) -> List[str]:
        return list(self.sheets.keys())

    def get(self, name: str) -> Optional[Worksheet]:
        return self.sheets.get(name)

    def select(self, preferred: str = DEFAULT_TAB_NAME) -> Optional[Worksheet]:
        """The preferred tab if present, else the first tab, else ``None``."""
        sheet = self.sheets.get(preferred)
        if sheet is not None:
            return sheet
        for first in self.sheets.values():
            return first
        return None


def is_csv_export(url: str, content_type: str = "") -> bool:
    lowered = url.lower()
    return "output=csv" in lowered or "format=csv" in lowered or "text/csv" in content_type.lower()


def decode_workbook(payload: bytes, *, csv: bool = False, csv_sheet_name: str = DEFAULT_TAB_NAME) -> Workbook:
    """Decode an XLSX (or CSV) export body into a ``Workbook``."""
    if not payload:
        raise SheetDecodeError("empty export payload")
    try:
        if csv:
            frames = {
                csv_sheet_name: pd.read_csv(
                    io.BytesIO(payload), header=None, dtype=object, keep_default_na=False, na_values=[""]
                )
            }
        else:
            frames = pd.read_excel(io.BytesIO(payload), sheet_name=None, header=None, engine="openpyxl")
    except Exception as exc:
        raise SheetDecodeError(f"could not decode export: {type(exc).__name__}: {exc}") from exc
    return Workbook(sheets={str(name): Worksheet(name=str(name), grid=df) for name, df in frames.items()})


class SheetFetcher:
    """Downloads published exports over one shared ``aiohttp`` session."""

    def __init__(self, timeout_seconds: float = DEFAULT_FETCH_TIMEOUT_SECONDS, csv_sheet_name: str = DEFAULT_TAB_NAME):
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self.csv_sheet_name = csv_sheet_name
        self._session: Optional[aiohttp.ClientSession] = None

    async def open(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "SheetFetcher":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def download(self, source: Source) -> Tuple[bytes, str]:
        session = await self.open()
        logger.info("Fetching export for %s", source.package_id)
        try:
            async with session.get(source.export_url) as resp:
                if resp.status < 200 or resp.status >= 300:
                    raise SheetFetchError(source.package_id, f"HTTP {resp.status} {resp.reason or ''}".strip(), status=resp.status)
                body = await resp.read()
                content_type = resp.headers.get("Content-Type", "")
        except SheetFetchError:
            raise
        except asyncio.TimeoutError as exc:
            raise SheetFetchError(source.package_id, f"timed out after {self.timeout.total}s") from exc
        except aiohttp.ClientError as exc:
            raise SheetFetchError(source.package_id, f"{type(exc).__name__}: {exc}") from exc
        logger.info("Fetched %s: %d bytes", source.package_id, len(body))
        return body, content_type

    async def fetch(self, source: Source) -> Workbook:
        body, content_type = await self.download(source)
        workbook = decode_workbook(
            body,
            csv=is_csv_export(source.export_url, content_type),
            csv_sheet_name=self.csv_sheet_name,
        )
        logger.info("Decoded %s: sheets=%s", source.package_id, workbook.sheet_names)
        return workbook
