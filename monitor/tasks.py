from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from typing import Iterable, List, Mapping, Optional, Sequence

from monitor.config import SITE_ID_HEADERS, TASK_HEADERS, Source
from monitor.normalize import Row, cell_text, first_present, parse_dmy, parse_number


logger = logging.getLogger(__name__)

TEXT_FIELDS = (
    "district",
    "site_id",
    "site_name",
    "discipline",
    "task_name",
    "delay_flag",
    "remarks",
    "photo_folder_url",
    "cover_photo_url",
    "before_photo_url",
    "after_photo_url",
)
NUMBER_FIELDS = ("planned_duration_days", "progress_pct", "variance")
DATE_FIELDS = ("planned_start", "planned_finish", "actual_start", "actual_finish", "last_updated")

DRIVE_DIRECT_URL = "https://drive.google.com/uc?export=view&id={file_id}"
_DRIVE_PATTERNS = (
    re.compile(r"drive\.google\.com/file/d/([A-Za-z0-9_-]{10,})"),
    re.compile(r"drive\.google\.com/(?:open|uc)\?(?:.*&)?id=([A-Za-z0-9_-]{10,})"),
    re.compile(r"docs\.google\.com/uc\?(?:.*&)?id=([A-Za-z0-9_-]{10,})"),
)


@dataclass(frozen=True)
class TaskRecord:
    package_id: str
    package_name: str
    district: str = ""
    site_id: str = ""
    site_name: str = ""
    discipline: str = ""
    task_name: str = ""
    planned_start: Optional[date] = None
    planned_finish: Optional[date] = None
    planned_duration_days: Optional[float] = None
    actual_start: Optional[date] = None
    actual_finish: Optional[date] = None
    progress_pct: Optional[float] = None
    variance: Optional[float] = None
    delay_flag: str = ""
    last_updated: Optional[date] = None
    remarks: str = ""
    photo_folder_url: str = ""
    cover_photo_url: str = ""
    before_photo_url: str = ""
    after_photo_url: str = ""
    cover_photo_direct_url: Optional[str] = None
    before_photo_direct_url: Optional[str] = None
    after_photo_direct_url: Optional[str] = None


def drive_direct_url(share_url: str) -> Optional[str]:
    """Turn a Google Drive share link into an embeddable image URL."""
    if not share_url:
        return None
    for pattern in _DRIVE_PATTERNS:
        match = pattern.search(share_url)
        if match:
            return DRIVE_DIRECT_URL.format(file_id=match.group(1))
    return None


def map_row_to_task(
    row: Row,
    package_id: str,
    package_name: str,
    headers: Optional[Mapping[str, Sequence[str]]] = None,
    site_id_headers: Sequence[str] = SITE_ID_HEADERS,
) -> Optional[TaskRecord]:
    """Map one sheet row to a task, or ``None`` when the row has no site id.

    Every other field is optional; unreadable numbers and dates become ``None``.
    """
    headers = headers or TASK_HEADERS
    site_id = cell_text(first_present(row, site_id_headers))
    if not site_id:
        return None

    def keys(name: str) -> Sequence[str]:
        return headers.get(name) or TASK_HEADERS[name]

    values = {name: cell_text(first_present(row, keys(name))) for name in TEXT_FIELDS}
    values["site_id"] = site_id
    for name in NUMBER_FIELDS:
        values[name] = parse_number(first_present(row, keys(name)))
    for name in DATE_FIELDS:
        values[name] = parse_dmy(first_present(row, keys(name)))

    return TaskRecord(
        package_id=package_id,
        package_name=package_name,
        cover_photo_direct_url=drive_direct_url(values["cover_photo_url"]),
        before_photo_direct_url=drive_direct_url(values["before_photo_url"]),
        after_photo_direct_url=drive_direct_url(values["after_photo_url"]),
        **values,
    )


def map_rows(
    rows: Iterable[Row],
    source: Source,
    headers: Optional[Mapping[str, Sequence[str]]] = None,
    site_id_headers: Sequence[str] = SITE_ID_HEADERS,
) -> List[TaskRecord]:
    tasks: List[TaskRecord] = []
    skipped = 0
    for row in rows:
        task = map_row_to_task(row, source.package_id, source.package_name, headers, site_id_headers)
        if task is None:
            skipped += 1
            continue
        tasks.append(task)
    if skipped:
        logger.info("%s: skipped %d row(s) without a site id", source.package_id, skipped)
    return tasks
