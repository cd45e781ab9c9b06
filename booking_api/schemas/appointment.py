"""Pydantic schemas for appointment bookings."""

from __future__ import annotations

import re
from datetime import date, datetime, timezone
from typing import Any, List, Literal

from pydantic import BaseModel, EmailStr, Field, field_validator

_NAME_PATTERN = r"^[a-zA-Z\s'-]+$"
_URL_RE = re.compile(r"^https?://[^\s/$.?#][^\s]*$", re.IGNORECASE)

AppointmentStatus = Literal["pending", "confirmed", "completed", "cancelled"]


def _utc_today() -> date:
    return datetime.now(timezone.utc).date()


class BookingRequest(BaseModel):
    """Booking form payload submitted by the marketing site."""

    # Personal information
    first_name: str = Field(..., min_length=2, max_length=255, pattern=_NAME_PATTERN)
    last_name: str = Field(..., min_length=2, max_length=255, pattern=_NAME_PATTERN)
    email: EmailStr
    phone: str = Field(..., min_length=1, max_length=50)
    company_name: str = Field(..., min_length=1, max_length=255)
    industry: str = Field(..., min_length=1)
    industry_other: str | None = Field(default=None, max_length=255)
    website_url: str | None = Field(default=None, max_length=500)
    current_website: bool

    # Project details
    project_type: str = Field(..., min_length=1)
    project_description: str = Field(..., min_length=20, max_length=2000)
    features: List[str] = Field(..., min_length=1, max_length=15)
    additional_notes: str | None = Field(default=None, max_length=1000)
    referral_source: str | None = None

    # Scheduling
    preferred_date: date
    preferred_time: str = Field(..., min_length=1)
    timezone: str = Field(..., min_length=1)
    video_call_platform: str = Field(..., min_length=1)
    video_call_platform_other: str | None = Field(default=None, max_length=255)

    # Honeypot: hidden from people, filled in by bots
    website: str | None = Field(default=None, max_length=0)

    @field_validator("email", mode="before")
    @classmethod
    def _strip_email(cls, value: Any) -> Any:
        return value.strip() if isinstance(value, str) else value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        if len(value) > 255:
            raise ValueError("Email must be at most 255 characters")
        return value.lower()

    @field_validator("website_url")
    @classmethod
    def _validate_website_url(cls, value: str | None) -> str | None:
        if not value:
            return None
        if not _URL_RE.match(value):
            raise ValueError("Please enter a valid URL")
        return value

    @field_validator(
        "industry_other", "additional_notes", "referral_source", "video_call_platform_other"
    )
    @classmethod
    def _empty_to_none(cls, value: str | None) -> str | None:
        return value or None

    @field_validator("preferred_date")
    @classmethod
    def _validate_preferred_date(cls, value: date) -> date:
        if value < _utc_today():
            raise ValueError("Date must be today or in the future")
        return value

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"

    @property
    def resolved_industry(self) -> str:
        if self.industry == "other":
            return self.industry_other or "Other"
        return self.industry

    @property
    def resolved_video_call_platform(self) -> str:
        if self.video_call_platform == "other":
            return self.video_call_platform_other or "Other"
        return self.video_call_platform


class Appointment(BaseModel):
    """A stored appointment record."""

    id: str
    created_at: datetime
    full_name: str
    email: str
    phone: str
    company_name: str
    industry: str
    website_url: str | None = None
    current_website: bool
    project_type: str
    project_description: str
    features: List[str]
    additional_notes: str | None = None
    referral_source: str | None = None
    preferred_date: date
    preferred_time: str
    timezone: str
    video_call_platform: str
    status: AppointmentStatus = "pending"
    ip_address: str | None = None
    user_agent: str | None = None


class BookingSummary(BaseModel):
    """Subset of the appointment echoed back to the client."""

    id: str
    email: str
    preferred_date: date
    preferred_time: str


class BookingResponse(BaseModel):
    """Response body for a successful booking."""

    success: bool = True
    message: str = Field(
        "Appointment booked successfully",
        description="Human-readable confirmation message.",
    )
    data: BookingSummary

    @classmethod
    def from_appointment(cls, appointment: Appointment) -> "BookingResponse":
        summary = appointment.model_dump(
            include={"id", "email", "preferred_date", "preferred_time"}
        )
        return cls(data=BookingSummary(**summary))


def method_not_allowed_body() -> dict[str, Any]:
    return {
        "success": False,
        "error": "Method not allowed",
        "message": "This endpoint only accepts POST requests",
    }
