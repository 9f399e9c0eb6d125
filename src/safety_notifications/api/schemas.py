"""Pydantic request/response models for the Safety Notifications API.

API schemas are separate from Protean commands (anti-corruption pattern).
"""

from datetime import datetime

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request Models
# ---------------------------------------------------------------------------
class UpdateGuardianPreferencesRequest(BaseModel):
    family_id: str | None = None
    child_id: str | None = None
    critical_flags_enabled: bool | None = None
    medium_flags_mode: str | None = Field(None, examples=["digest"])
    low_flags_enabled: bool | None = None
    time_limit_warnings_enabled: bool | None = None
    limit_reached_enabled: bool | None = None
    extension_requests_enabled: bool | None = None
    sync_alerts_enabled: bool | None = None
    sync_threshold_hours: int | None = Field(None, examples=[4])
    device_status_enabled: bool | None = None
    device_sync_recovery_enabled: bool | None = None
    status_changes_enabled: bool | None = None
    location_alerts_enabled: bool | None = None


class SetQuietHoursRequest(BaseModel):
    child_id: str | None = None
    start: str = Field(..., pattern=r"^\d{2}:\d{2}$", examples=["22:00"])
    end: str = Field(..., pattern=r"^\d{2}:\d{2}$", examples=["07:00"])
    weekend_start: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", examples=["23:00"])
    weekend_end: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", examples=["08:00"])
    timezone: str | None = Field(None, examples=["America/New_York"])


class UpdateChannelRequest(BaseModel):
    push: bool | None = None
    email: bool | None = None
    sms: bool | None = None


class VerifiedContactsRequest(BaseModel):
    verified_email: str | None = None
    verified_phone: str | None = None


class UpdateChildPreferencesRequest(BaseModel):
    time_limit_warnings_enabled: bool | None = None
    agreement_changes_enabled: bool | None = None
    trust_score_changes_enabled: bool | None = None
    weekly_summary_enabled: bool | None = None
    quiet_hours_enabled: bool | None = None
    quiet_hours_start: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", examples=["21:00"])
    quiet_hours_end: str | None = Field(None, pattern=r"^\d{2}:\d{2}$", examples=["07:00"])


class RegisterEndpointRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=512)
    platform: str | None = Field(None, examples=["ios"])


class ActivateStealthRequest(BaseModel):
    ticket_id: str = Field(..., min_length=1, max_length=100)
    affected_user_ids: list[str] = Field(..., min_length=1)
    actor: str = Field(..., min_length=1, max_length=255)
    duration_hours: int = Field(72, examples=[72])


class ClearStealthRequest(BaseModel):
    actor: str = Field(..., min_length=1, max_length=255)


class SchedulerRunRequest(BaseModel):
    as_of: datetime | None = None


# ---------------------------------------------------------------------------
# Response Models
# ---------------------------------------------------------------------------
class StatusResponse(BaseModel):
    status: str = "ok"


class IdResponse(BaseModel):
    status: str = "ok"
    id: str


class QuietHoursResponse(BaseModel):
    enabled: bool
    start: str
    end: str
    weekend_different: bool
    weekend_start: str
    weekend_end: str
    timezone: str


class GuardianPreferencesResponse(BaseModel):
    guardian_id: str
    child_id: str | None = None
    critical_flags_enabled: bool
    medium_flags_mode: str
    low_flags_enabled: bool
    time_limit_warnings_enabled: bool
    limit_reached_enabled: bool
    extension_requests_enabled: bool
    sync_alerts_enabled: bool
    sync_threshold_hours: int
    device_status_enabled: bool
    device_sync_recovery_enabled: bool
    status_changes_enabled: bool
    location_alerts_enabled: bool
    quiet_hours: QuietHoursResponse


class ChannelSettingsResponse(BaseModel):
    user_id: str
    channel_type: str
    push: bool
    email: bool
    sms: bool
    forced: bool = False


class StealthWindowResponse(BaseModel):
    status: str = "ok"
    window_end: datetime | None = None


class SchedulerRunResponse(BaseModel):
    status: str = "ok"
    summary: dict = Field(default_factory=dict)
