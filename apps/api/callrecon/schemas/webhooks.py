from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

# Last millisecond of 9999-12-31 UTC, the largest instant a datetime can hold.
MAX_EPOCH_MS = 253402300799999

EpochMillis = Annotated[int, Field(ge=0, le=MAX_EPOCH_MS)]
Seconds = Annotated[int, Field(ge=0, le=2**31 - 1)]


class InboundWebhook(BaseModel):
    """A provider callback as received, before any validation."""

    url: str
    payload: dict = Field(default_factory=dict)
    headers: dict[str, str] = Field(default_factory=dict)
    body: str = ""
    is_form: bool = False


class SessionUpdatePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: int
    domain: str = Field(min_length=1)
    token: str = Field(min_length=1)
    status: str = Field(min_length=1)
    caller_id: str | None = Field(default=None, alias="callerId")
    destination: str | None = None
    direction: str | None = None
    created_at: datetime | None = Field(default=None, alias="createdAt")
    modified_at: datetime | None = Field(default=None, alias="modifiedAt")
    call_start_time: EpochMillis | None = Field(default=None, alias="callStartTime")
    answer_time: datetime | None = Field(default=None, alias="answerTime")
    vapp_server: str | None = Field(default=None, alias="vappServer")


class CdrSessionInfo(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    token: str | None = None
    call_start_time: EpochMillis | None = Field(default=None, alias="callStartTime")
    call_answer_time: EpochMillis | None = Field(default=None, alias="callAnswerTime")
    call_end_time: EpochMillis | None = Field(default=None, alias="callEndTime")
    vapp_server: str | None = Field(default=None, alias="vappServer")


class CdrPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    call_id: str = Field(min_length=1)
    domain: str = Field(min_length=1)
    disposition: str = Field(min_length=1)
    from_number: str | None = Field(default=None, alias="from")
    to_number: str | None = Field(default=None, alias="to")
    duration: Seconds | None = None
    billsec: Seconds | None = None
    timestamp: int | None = None
    subscriber: str | None = None
    cx_trunk_id: str | None = None
    application: str | None = None
    route: str | None = None
    vapp_server: str | None = None
    session: CdrSessionInfo | None = None
