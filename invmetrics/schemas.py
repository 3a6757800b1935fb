from __future__ import annotations
from typing import Any, Dict, Literal, Optional
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, model_validator
from invmetrics.dates import format_instant, is_valid_day

Status = Literal["ok"]

class Invitation(BaseModel):
    external_id: str
    sender_id: str
    received_at: datetime

class RawInvitation(BaseModel):
    model_config = ConfigDict(frozen=True)

    tenant_id: str
    account_id: str
    external_id: str
    received_at: datetime

    def to_document(self) -> Dict[str, Any]:
        return {
            "tenant_id": self.tenant_id,
            "account_id": self.account_id,
            "external_id": self.external_id,
            "received_at": format_instant(self.received_at),
        }

class DailyCount(BaseModel):
    date: str
    count: int = Field(ge=0)

class DailyRollup(BaseModel):
    tenant_id: str
    account_id: str
    date: str
    invitations_count: int = Field(ge=0)
    status: Status = "ok"
    updated_at: str

class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: str
    end: str

    @model_validator(mode="after")
    def _ordered(self):
        if not (is_valid_day(self.start) and is_valid_day(self.end)):
            raise ValueError("range bounds must be YYYY-MM-DD calendar days")
        if self.start > self.end:
            raise ValueError("range start must be on or before its end")
        return self

class MetricsQuery(BaseModel):
    tenant_id: str
    account_id: str
    window: DateRange

class MetricDataPoint(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    date: str
    value: int
    status: Status = "ok"
    previous_period_comparison: Optional[int] = Field(default=None, alias="previousPeriodComparison")

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None
