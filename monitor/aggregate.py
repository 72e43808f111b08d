"""One refresh run: fetch every source concurrently and merge into a Snapshot."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Protocol, Tuple

from monitor.compliance import ComplianceRecord, extract_compliance, unavailable_compliance
from monitor.config import Settings, Source
from monitor.ipc import IPCRecord, extract_ipc
from monitor.sheets import Workbook
from monitor.tasks import TaskRecord, map_rows


logger = logging.getLogger(__name__)


class WorkbookFetcher(Protocol):
    async def fetch(self, source: Source) -> Workbook: ...


@dataclass(frozen=True)
class SourceOutcome:
    package_id: str
    package_name: str
    ok: bool
    error: Optional[str] = None
    worksheet: Optional[str] = None
    row_count: int = 0
    task_count: int = 0


@dataclass(frozen=True)
class Snapshot:
    tasks: Tuple[TaskRecord, ...] = ()
    compliance_by_package: Mapping[str, ComplianceRecord] = field(default_factory=lambda: MappingProxyType({}))
    ipc: Tuple[IPCRecord, ...] = ()
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sources: Tuple[SourceOutcome, ...] = ()


@dataclass(frozen=True)
class _SourceResult:
    source: Source
    outcome: SourceOutcome
    tasks: Tuple[TaskRecord, ...] = ()
    compliance: ComplianceRecord = field(default_factory=unavailable_compliance)
    workbook: Optional[Workbook] = None


def _failed(source: Source, error: BaseException) -> _SourceResult:
    message = f"{type(error).__name__}: {error}"
    logger.warning("Source %s degraded: %s", source.package_id, message)
    return _SourceResult(
        source=source,
        outcome=SourceOutcome(package_id=source.package_id, package_name=source.package_name, ok=False, error=message),
    )


async def _ingest_source(source: Source, fetcher: WorkbookFetcher, settings: Settings) -> _SourceResult:
    workbook = await fetcher.fetch(source)
    sheet = workbook.select(settings.tab_name)
    rows = sheet.records() if sheet is not None else []
    if sheet is None:
        logger.warning("Source %s: workbook has no worksheets", source.package_id)
    elif sheet.name != settings.tab_name:
        logger.info("Source %s: tab %r missing, using %r", source.package_id, settings.tab_name, sheet.name)

    compliance = extract_compliance(sheet, settings.compliance_headers, rows=rows)
    tasks = map_rows(rows, source, settings.task_headers, settings.site_id_headers)
    outcome = SourceOutcome(
        package_id=source.package_id,
        package_name=source.package_name,
        ok=True,
        worksheet=sheet.name if sheet is not None else None,
        row_count=len(rows),
        task_count=len(tasks),
    )
    return _SourceResult(source=source, outcome=outcome, tasks=tuple(tasks), compliance=compliance, workbook=workbook)


def _ipc_for(results: List[_SourceResult], settings: Settings) -> Tuple[IPCRecord, ...]:
    designated = settings.ipc_source()
    if designated is None:
        return ()
    for result in results:
        if result.source.package_id != designated.package_id:
            continue
        if result.workbook is None:
            return ()
        return tuple(
            extract_ipc(
                result.workbook.get(settings.tab_name),
                row=settings.ipc_row,
                first_column=settings.ipc_first_column,
            )
        )
    return ()


async def build_snapshot(settings: Settings, fetcher: WorkbookFetcher) -> Snapshot:
    """Run every configured source and combine the results.

    A failing source contributes no tasks and an unavailable compliance record;
    it never fails the run.
    """
    sources = list(settings.sources)
    if not sources:
        logger.warning("No sheet sources configured; returning empty snapshot")
        return Snapshot()

    raw = await asyncio.gather(
        *(_ingest_source(source, fetcher, settings) for source in sources),
        return_exceptions=True,
    )
    results: List[_SourceResult] = []
    for source, item in zip(sources, raw):
        if isinstance(item, BaseException):
            if not isinstance(item, Exception):
                raise item
            results.append(_failed(source, item))
        else:
            results.append(item)

    tasks: List[TaskRecord] = []
    compliance: Dict[str, ComplianceRecord] = {}
    for result in results:
        tasks.extend(result.tasks)
        compliance[result.source.package_id] = result.compliance

    snapshot = Snapshot(
        tasks=tuple(tasks),
        compliance_by_package=MappingProxyType(compliance),
        ipc=_ipc_for(results, settings),
        fetched_at=datetime.now(timezone.utc),
        sources=tuple(r.outcome for r in results),
    )
    logger.info(
        "Snapshot built: %d task(s), %d package(s), %d IPC record(s), %d failed source(s)",
        len(snapshot.tasks),
        len(snapshot.compliance_by_package),
        len(snapshot.ipc),
        sum(1 for o in snapshot.sources if not o.ok),
    )
    return snapshot


def _jsonable(value: Any) -> Any:
    if isinstance(value, (date, datetime)):
        return value.isoformat()
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    return value


def snapshot_to_dict(snapshot: Snapshot) -> Dict[str, Any]:
    """Plain JSON-ready form of a snapshot, as served to the dashboard."""
    return {
        "tasks": [_jsonable(asdict(t)) for t in snapshot.tasks],
        "compliance_by_package": {k: _jsonable(asdict(v)) for k, v in snapshot.compliance_by_package.items()},
        "ipc": [asdict(r) for r in snapshot.ipc],
        "fetched_at": snapshot.fetched_at.isoformat(),
        "sources": [asdict(o) for o in snapshot.sources],
    }
