from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, List, Optional

import pandas as pd

from monitor.aggregate import Snapshot
from monitor.filters import TaskFilters, filter_tasks, is_delayed
from monitor.ipc import summarize_ipc


def _metric_value(value: Optional[float]) -> Optional[float]:
    if value is None or pd.isna(value):
        return None
    return round(float(value), 1)


def tasks_frame(snapshot: Snapshot, filters: Optional[TaskFilters] = None) -> pd.DataFrame:
    tasks = list(snapshot.tasks) if filters is None else filter_tasks(snapshot.tasks, filters)
    if not tasks:
        return pd.DataFrame(columns=["package_id", "package_name", "site_id", "progress_pct", "delay_flag", "actual_finish"])
    df = pd.DataFrame([asdict(t) for t in tasks])
    df["delayed"] = [is_delayed(t) for t in tasks]
    df["progress_pct"] = pd.to_numeric(df["progress_pct"], errors="coerce")
    return df


def compute_overview(snapshot: Snapshot, filters: Optional[TaskFilters] = None) -> Dict[str, Any]:
    df = tasks_frame(snapshot, filters)
    compliance = snapshot.compliance_by_package

    if df.empty:
        totals = {"tasks": 0, "sites": 0, "avg_progress_pct": None, "completed_tasks": 0, "delayed_tasks": 0}
        delay_flags: Dict[str, int] = {}
        packages: List[Dict[str, Any]] = []
    else:
        totals = {
            "tasks": int(len(df)),
            "sites": int(df[["package_id", "site_id"]].drop_duplicates().shape[0]),
            "avg_progress_pct": _metric_value(df["progress_pct"].mean()),
            "completed_tasks": int(df["actual_finish"].notna().sum()),
            "delayed_tasks": int(df["delayed"].sum()),
        }
        flags = df["delay_flag"].astype(str).str.strip()
        flags = flags[flags != ""]
        delay_flags = {str(k): int(v) for k, v in flags.value_counts().items()}

        grouped = (
            df.groupby(["package_id", "package_name"], sort=False)
            .agg(
                tasks=("site_id", "size"),
                sites=("site_id", "nunique"),
                avg_progress_pct=("progress_pct", "mean"),
                completed_tasks=("actual_finish", "count"),
                delayed_tasks=("delayed", "sum"),
            )
            .reset_index()
        )
        packages = []
        for row in grouped.itertuples(index=False):
            record = compliance.get(row.package_id)
            packages.append(
                {
                    "package_id": row.package_id,
                    "package_name": row.package_name,
                    "tasks": int(row.tasks),
                    "sites": int(row.sites),
                    "avg_progress_pct": _metric_value(row.avg_progress_pct),
                    "completed_tasks": int(row.completed_tasks),
                    "delayed_tasks": int(row.delayed_tasks),
                    "compliance_status": record.status if record is not None else None,
                }
            )

    # Packages that produced no tasks still show up with their compliance.
    listed = {p["package_id"] for p in packages}
    wanted = set(filters.package_ids) if filters is not None and filters.package_ids else None
    for outcome in snapshot.sources:
        if outcome.package_id in listed or (wanted is not None and outcome.package_id not in wanted):
            continue
        record = compliance.get(outcome.package_id)
        packages.append(
            {
                "package_id": outcome.package_id,
                "package_name": outcome.package_name,
                "tasks": 0,
                "sites": 0,
                "avg_progress_pct": None,
                "completed_tasks": 0,
                "delayed_tasks": 0,
                "compliance_status": record.status if record is not None else None,
            }
        )

    compliance_counts = {"COMPLIANT": 0, "NON_COMPLIANT": 0, "UNKNOWN": 0}
    for record in compliance.values():
        compliance_counts[record.status] += 1

    return {
        "fetched_at": snapshot.fetched_at.isoformat(),
        "totals": totals,
        "delay_flags": delay_flags,
        "packages": packages,
        "compliance_counts": compliance_counts,
        "ipc_summary": summarize_ipc(snapshot.ipc),
    }
