from app.models.user import User, UserPublic
from app.models.refresh_token import RefreshToken
from app.models.availability import (
    AvailabilityOverride,
    AvailabilityOverrideCreate,
    AvailabilityOverridePublic,
    OverrideType,
    RecurringRule,
    RecurringRulePublic,
)
from app.models.booking import (
    ACTIVE_STATUSES,
    Booking,
    BookingCreate,
    BookingPublic,
    BookingStatus,
    ClientDetails,
)

__all__ = [
    "User",
    "UserPublic",
    "RefreshToken",
    "AvailabilityOverride",
    "AvailabilityOverrideCreate",
    "AvailabilityOverridePublic",
    "OverrideType",
    "RecurringRule",
    "RecurringRulePublic",
    "ACTIVE_STATUSES",
    "Booking",
    "BookingCreate",
    "BookingPublic",
    "BookingStatus",
    "ClientDetails",
]
