from __future__ import annotations

from typing import List

from pydantic import BaseModel, Field


class TaskFiltersModel(BaseModel):
    package_ids: List[str] = Field(default_factory=list)
    districts: List[str] = Field(default_factory=list)
    disciplines: List[str] = Field(default_factory=list)
    query: str = ""
    delayed_only: bool = False


class MetaListResponse(BaseModel):
    values: List[str]
