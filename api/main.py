from __future__ import annotations

from contextlib import asynccontextmanager
from dataclasses import asdict
import logging
import math
from typing import List

import numpy as np
import pandas as pd
from fastapi import Depends, FastAPI, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.responses import Response
from fastapi.encoders import jsonable_encoder

from api.schemas import MetaListResponse, TaskFiltersModel
from monitor.aggregate import Snapshot, build_snapshot, snapshot_to_dict
from monitor.cache import SnapshotCache
from monitor.config import Settings, load_settings
from monitor.filters import TaskFilters, filter_tasks, normalize_filters
from monitor.ipc import summarize_ipc
from monitor.log import configure_logging
from monitor.metrics_debug import compute_debug
from monitor.metrics_overview import compute_overview, tasks_frame
from monitor.sheets import SheetFetcher


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = load_settings()
    configure_logging(settings.log_level)
    fetcher = SheetFetcher(timeout_seconds=settings.fetch_timeout_seconds, csv_sheet_name=settings.tab_name)
    await fetcher.open()
    cache = SnapshotCache(lambda: build_snapshot(settings, fetcher), ttl_seconds=settings.cache_ttl_seconds)
    app.state.settings = settings
    app.state.cache = cache
    await cache.start()
    try:
        yield
    finally:
        await cache.close()
        await fetcher.close()


app = FastAPI(title="Construction Monitoring API", version="0.1.0", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:3000", "http://127.0.0.1:3000"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_cache(request: Request) -> SnapshotCache:
    return request.app.state.cache


def _filters_from_model(model: TaskFiltersModel) -> TaskFilters:
    return normalize_filters(model.model_dump())


def _json(data: object) -> JSONResponse:
    """Return JSON with safe encoding for pandas/numpy objects."""

    def _safe_float(value: object) -> float | None:
        try:
            out = float(value)  # type: ignore[arg-type]
        except Exception:
            return None
        if math.isnan(out) or math.isinf(out):
            return None
        return out

    return JSONResponse(
        content=jsonable_encoder(
            data,
            custom_encoder={
                type(pd.NA): lambda _: None,
                np.integer: int,
                float: _safe_float,
                np.floating: _safe_float,
                np.bool_: bool,
                pd.Timestamp: lambda ts: ts.isoformat(),
            },
        )
    )


def _error(name: str, exc: Exception) -> JSONResponse:
    logger.exception("%s failed", name)
    return JSONResponse(status_code=500, content={"error": str(exc), "type": type(exc).__name__})


def _distinct(snapshot: Snapshot, attr: str) -> List[str]:
    return sorted({getattr(t, attr) for t in snapshot.tasks if getattr(t, attr)})


@app.get("/data")
async def data(refresh: bool = Query(default=False), cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get(force=refresh)
        return _json(snapshot_to_dict(snapshot))
    except Exception as exc:
        return _error("data", exc)


@app.post("/refresh")
async def refresh(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get(force=True)
        return _json(
            {
                "fetched_at": snapshot.fetched_at.isoformat(),
                "tasks": len(snapshot.tasks),
                "failed_sources": [o.package_id for o in snapshot.sources if not o.ok],
            }
        )
    except Exception as exc:
        return _error("refresh", exc)


@app.get("/meta/packages", response_model=MetaListResponse)
async def meta_packages(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json({"values": [o.package_id for o in snapshot.sources]})
    except Exception as exc:
        return _error("meta_packages", exc)


@app.get("/meta/districts", response_model=MetaListResponse)
async def meta_districts(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json({"values": _distinct(snapshot, "district")})
    except Exception as exc:
        return _error("meta_districts", exc)


@app.get("/meta/disciplines", response_model=MetaListResponse)
async def meta_disciplines(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json({"values": _distinct(snapshot, "discipline")})
    except Exception as exc:
        return _error("meta_disciplines", exc)


@app.post("/tasks")
async def tasks(filters: TaskFiltersModel, cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        selected = filter_tasks(snapshot.tasks, _filters_from_model(filters))
        return _json({"tasks": [asdict(t) for t in selected], "count": len(selected)})
    except Exception as exc:
        return _error("tasks", exc)


@app.post("/overview")
async def overview(filters: TaskFiltersModel, cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json(compute_overview(snapshot, _filters_from_model(filters)))
    except Exception as exc:
        return _error("overview", exc)


@app.get("/compliance")
async def compliance(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json({k: asdict(v) for k, v in snapshot.compliance_by_package.items()})
    except Exception as exc:
        return _error("compliance", exc)


@app.get("/ipc")
async def ipc(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json({"records": [asdict(r) for r in snapshot.ipc], "summary": summarize_ipc(snapshot.ipc)})
    except Exception as exc:
        return _error("ipc", exc)


@app.get("/debug")
async def debug(cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        return _json(compute_debug(snapshot, cache))
    except Exception as exc:
        return _error("debug", exc)


@app.post("/export/tasks")
async def export_tasks(filters: TaskFiltersModel, cache: SnapshotCache = Depends(get_cache)):
    try:
        snapshot = await cache.get()
        export_df = tasks_frame(snapshot, _filters_from_model(filters)).drop(columns=["delayed"], errors="ignore")
        csv_bytes = export_df.to_csv(index=False).encode("utf-8")
        return Response(
            content=csv_bytes, media_type="text/csv", headers={"Content-Disposition": "attachment; filename=tasks.csv"}
        )
    except Exception as exc:
        return _error("export_tasks", exc)
