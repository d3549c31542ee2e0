from datetime import date, datetime

from pydantic import BaseModel, Field

from app.models.availability import AvailabilityOverrideCreate, RecurringRulePublic


class SlotInfo(BaseModel):
    start_utc: datetime
    end_utc: datetime
    local_time: str  # e.g. "9:30 AM" in the business timezone


class AvailableSlotsResponse(BaseModel):
    date: str  # YYYY-MM-DD
    timezone: str
    slots: list[SlotInfo]


class UnavailableDaysResponse(BaseModel):
    start: date
    end: date
    unavailable_dates: list[date]


class ReplaceRulesRequest(BaseModel):
    rules: list[RecurringRulePublic]


class OverrideBatchRequest(BaseModel):
    overrides_to_add: list[AvailabilityOverrideCreate] = Field(default_factory=list)
    ids_to_delete: list[int] = Field(default_factory=list)


class OverrideBatchResponse(BaseModel):
    deleted: int
    added: int
