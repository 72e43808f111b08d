from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from monitor.tasks import TaskRecord


@dataclass(frozen=True)
class TaskFilters:
    package_ids: List[str] = field(default_factory=list)
    districts: List[str] = field(default_factory=list)
    disciplines: List[str] = field(default_factory=list)
    query: str = ""
    delayed_only: bool = False


def _as_str_list(values: Optional[Iterable[object]]) -> List[str]:
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    out: List[str] = []
    for v in values:
        if v is None:
            continue
        s = str(v).strip()
        if s and s not in out:
            out.append(s)
    return out


def normalize_filters(raw: Optional[dict]) -> TaskFilters:
    raw = raw or {}
    return TaskFilters(
        package_ids=_as_str_list(raw.get("package_ids")),
        districts=[d for d in _as_str_list(raw.get("districts")) if d != "All Districts"],
        disciplines=[d for d in _as_str_list(raw.get("disciplines")) if d != "All Disciplines"],
        query=(raw.get("query") or "").strip(),
        delayed_only=bool(raw.get("delayed_only", False)),
    )


def is_delayed(task: TaskRecord) -> bool:
    flag = task.delay_flag.strip().lower()
    return "delay" in flag and "no delay" not in flag and "not delayed" not in flag


def filter_tasks(tasks: Sequence[TaskRecord], filters: TaskFilters) -> List[TaskRecord]:
    packages = set(filters.package_ids)
    districts = {d.lower() for d in filters.districts}
    disciplines = {d.lower() for d in filters.disciplines}
    q = filters.query.lower()

    out: List[TaskRecord] = []
    for task in tasks:
        if packages and task.package_id not in packages:
            continue
        if districts and task.district.lower() not in districts:
            continue
        if disciplines and task.discipline.lower() not in disciplines:
            continue
        if q and not any(q in text.lower() for text in (task.site_id, task.site_name, task.task_name)):
            continue
        if filters.delayed_only and not is_delayed(task):
            continue
        out.append(task)
    return out
