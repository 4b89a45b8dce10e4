import uuid
from datetime import date, datetime, time
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from callrecon.services.status_mapper import Disposition

CdrSortField = Literal["id", "call_id", "start_time", "duration_seconds", "disposition", "created_at"]


class CdrFilters(BaseModel):
    from_number: str | None = Field(default=None, max_length=255)
    to_number: str | None = Field(default=None, max_length=255)
    disposition: Disposition | None = None
    token: str | None = Field(default=None, max_length=255)
    start_date: date | None = None
    end_date: date | None = None
    start_time: time | None = None
    end_time: time | None = None
    sort_by: CdrSortField = "start_time"
    sort_order: Literal["asc", "desc"] = "desc"
    page: int = Field(default=1, ge=1)
    # Upper bound is enforced by the router from settings.cdr_max_page_size.
    per_page: int = Field(default=50, ge=1)

    def applied(self) -> dict[str, str]:
        names = {
            "from_number": "from",
            "to_number": "to",
            "disposition": "disposition",
            "token": "token",
            "start_date": "start_date",
            "end_date": "end_date",
            "start_time": "start_time",
            "end_time": "end_time",
        }
        applied: dict[str, str] = {}
        for field, label in names.items():
            value = getattr(self, field)
            if value in (None, ""):
                continue
            applied[label] = value.strftime("%H:%M") if isinstance(value, time) else str(value)
        return applied


class CdrLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    call_id: str
    session_token: str | None
    from_number: str | None
    to_number: str | None
    direction: str
    disposition: str
    start_time: datetime | None
    answer_time: datetime | None
    end_time: datetime | None
    duration_seconds: int | None
    billsec: int | None
    domain: str | None
    subscriber: str | None
    cx_trunk_id: str | None
    application: str | None
    route: str | None
    vapp_server: str | None
    raw_cdr: dict
    created_at: datetime
    updated_at: datetime


class PageMeta(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    current_page: int
    per_page: int
    total: int
    last_page: int
    first_item: int | None = Field(default=None, alias="from")
    last_item: int | None = Field(default=None, alias="to")


class CdrPage(BaseModel):
    data: list[CdrLogResponse]
    meta: PageMeta
    filters_applied: dict[str, str]


class CdrDetail(BaseModel):
    data: CdrLogResponse


class ActiveCall(BaseModel):
    id: uuid.UUID
    session_id: str
    token: str | None
    domain: str | None
    caller_id: str | None
    destination: str | None
    direction: str
    status: str
    duration_seconds: int
    call_start_time: datetime | None
    created_at: datetime


class ActiveCallsMeta(BaseModel):
    total: int
    active_count: int


class ActiveCallsResponse(BaseModel):
    data: list[ActiveCall]
    meta: ActiveCallsMeta


class CallStatistics(BaseModel):
    active_calls: int
    total_today: int
    avg_duration: float
    completed_today: int
    failed_today: int
