"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Literal, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, Field, field_validator, model_validator

from ...config import DEFAULT_TIMEZONE
from ...shared.time_utils import utcnow


class BookingCreate(BaseModel):
    """Schema for booking a session with a mentor"""

    humanMentorId: int = Field(gt=0)
    scheduledDate: datetime
    duration: Optional[int] = Field(default=None, ge=1, le=180)
    sessionGoals: str
    timezone: Optional[str] = None
    meetingType: Literal["video", "in_person"] = "video"

    @field_validator("sessionGoals")
    @classmethod
    def validate_session_goals(cls, v):
        v = v.strip()
        if len(v) < 10:
            raise ValueError("sessionGoals must be at least 10 characters long")
        return v

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, v):
        if v is None:
            return v
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v

    @model_validator(mode="after")
    def localize_and_check_future(self):
        # Naive datetimes are wall-clock times in the booking's timezone
        if self.scheduledDate.tzinfo is None:
            self.scheduledDate = self.scheduledDate.replace(
                tzinfo=ZoneInfo(self.timezone or DEFAULT_TIMEZONE)
            )
        if self.scheduledDate <= utcnow():
            raise ValueError("scheduledDate must be in the future")
        return self


class BookingResponse(BaseModel):
    """Schema for booking response"""

    id: int
    menteeId: int
    humanMentorId: Optional[int]
    sessionType: str
    scheduledDate: datetime
    duration: int
    timezone: str
    meetingType: str
    sessionGoals: Optional[str]
    status: str
    externalEventId: Optional[str] = None
    externalProvider: Optional[str] = None
    cancelledAt: Optional[datetime] = None
    createdAt: Optional[datetime] = None
