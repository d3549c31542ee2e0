from datetime import datetime
from typing import Literal

from pydantic import BaseModel, model_validator

from app.models.booking import BookingPublic


class AdminBookingsResponse(BaseModel):
    bookings: list[BookingPublic]
    business_email: str


class BookingUpdateRequest(BaseModel):
    """Either a status change or a reschedule, not both."""

    status: Literal["confirmed", "cancelled"] | None = None
    new_slot_time: datetime | None = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "BookingUpdateRequest":
        if (self.status is None) == (self.new_slot_time is None):
            raise ValueError("Provide exactly one of 'status' or 'new_slot_time'")
        return self
