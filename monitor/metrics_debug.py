from __future__ import annotations

from dataclasses import asdict
from typing import Any, Dict, Optional

from monitor.aggregate import Snapshot
from monitor.cache import SnapshotCache


def compute_debug(snapshot: Snapshot, cache: Optional[SnapshotCache] = None) -> Dict[str, Any]:
    outcomes = [asdict(o) for o in snapshot.sources]
    payload: Dict[str, Any] = {
        "fetched_at": snapshot.fetched_at.isoformat(),
        "row_counts": {
            "sources": len(outcomes),
            "failed_sources": sum(1 for o in outcomes if not o["ok"]),
            "rows": sum(o["row_count"] for o in outcomes),
            "tasks": len(snapshot.tasks),
            "ipc_records": len(snapshot.ipc),
        },
        "sources": outcomes,
        "cache": {},
    }
    if cache is not None:
        payload["cache"] = {
            "ttl_seconds": cache.ttl_seconds,
            "stale": cache.is_stale(),
            "refreshing": cache.refreshing,
            "refresh_count": cache.refresh_count,
        }
    return payload
