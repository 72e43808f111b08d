"""Construction monitoring ingestion (UI-agnostic).

This package contains:
- sheet fetching (published XLSX/CSV export -> Workbook)
- cell normalization and the compliance / IPC / task extractors
- aggregation into an immutable Snapshot, held by SnapshotCache
- dashboard compute functions (JSON-serializable payloads)
"""
