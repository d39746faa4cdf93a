from __future__ import annotations

from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, Field


class RangeModel(BaseModel):
    min: Optional[float] = None
    max: Optional[float] = None


FilterValueModel = Union[RangeModel, List[Any], bool, int, float, str, None]


class QueryModel(BaseModel):
    filters: Dict[str, FilterValueModel] = Field(default_factory=dict)
    sort_field: Optional[str] = None
    sort_desc: bool = False
    page: int = Field(default=0, ge=0)
    page_size: Optional[int] = Field(default=None, ge=1, le=500)


class MetaValuesResponse(BaseModel):
    field: str
    values: List[str]


class RevisionResponse(BaseModel):
    revision: int
    state: str
    count: int
    last_error: Optional[str] = None
