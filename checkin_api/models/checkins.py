from typing import Any, List, Optional

from pydantic import BaseModel, field_validator


class CheckinRequest(BaseModel):
    name: str = ""

    @field_validator("name", mode="before")
    @classmethod
    def coerce_name(cls, value: Any) -> str:
        if not value:
            return ""
        return str(value).strip()


class CheckinResponse(BaseModel):
    ok: bool = True
    name: str
    created_at_utc: str
    created_at_nz: str
    quote: Optional[str] = None


class RangeInfo(BaseModel):
    from_utc: str
    to_utc: str
    from_nz: str
    to_nz: str


class NamedCount(BaseModel):
    name: str
    count: int


class RecentCheckin(BaseModel):
    name: str
    created_at_utc: str
    created_at_nz: str


class StatsResponse(BaseModel):
    range: RangeInfo
    all_time_total: int
    all_time_per_name: List[NamedCount]
    range_total: int
    range_per_name: List[NamedCount]
    recent: List[RecentCheckin]


class BucketCount(BaseModel):
    bucket_utc: str
    label_nz: str
    count: int


class NameBucketCount(BaseModel):
    name: str
    bucket_utc: str
    count: int


class TimeseriesResponse(BaseModel):
    bucket: str
    range: RangeInfo
    top_names: List[str]
    total: List[BucketCount]
    by_name: List[NameBucketCount]
