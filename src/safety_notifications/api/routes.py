"""FastAPI routes for the Safety Notifications domain.

Thin adapters that translate HTTP requests into domain commands.
No business logic, just schema to command to response translation.

Stealth endpoints are admin-only; authentication sits in front of this
router and is not handled here.
"""

import json

from fastapi import APIRouter, HTTPException
from protean.utils.globals import current_domain

from safety_notifications.api.schemas import (
    ActivateStealthRequest,
    ChannelSettingsResponse,
    ClearStealthRequest,
    GuardianPreferencesResponse,
    IdResponse,
    QuietHoursResponse,
    RegisterEndpointRequest,
    SchedulerRunRequest,
    SchedulerRunResponse,
    SetQuietHoursRequest,
    StatusResponse,
    StealthWindowResponse,
    UpdateChannelRequest,
    UpdateChildPreferencesRequest,
    UpdateGuardianPreferencesRequest,
    VerifiedContactsRequest,
)
from safety_notifications.categories import ChannelType, is_security_channel_type
from safety_notifications.context import current_context
from safety_notifications.delivery.endpoint import RegisterPushEndpoint, UnregisterPushEndpoint
from safety_notifications.preference.channel import ChannelPreference
from safety_notifications.preference.loader import PreferenceLoader
from safety_notifications.preference.management import (
    ClearGuardianQuietHours,
    SetGuardianQuietHours,
    SetVerifiedContacts,
    UpdateChannelPreference,
    UpdateChildPreferences,
    UpdateGuardianPreferences,
)
from safety_notifications.preference.settings import merge_channel_settings, merge_guardian_settings
from safety_notifications.scheduler import (
    ExpireStealthWindows,
    ProcessDelayedQueue,
    RunDailyDigest,
    RunHourlyDigest,
)
from safety_notifications.stealth.management import ActivateStealthWindow, ClearStealthWindow

router = APIRouter(prefix="/notifications", tags=["notifications"])
admin_router = APIRouter(prefix="/admin", tags=["admin"])


# ---------------------------------------------------------------------------
# Guardian preferences
# ---------------------------------------------------------------------------
@router.get("/preferences/{guardian_id}", response_model=GuardianPreferencesResponse)
async def get_guardian_preferences(guardian_id: str, child_id: str | None = None) -> GuardianPreferencesResponse:
    """Resolved preferences: child-specific record, family default, then built-in defaults."""
    loader = PreferenceLoader(current_context().store, current_context().policy)
    settings = merge_guardian_settings(loader.guardian_record(guardian_id, child_id))
    quiet = settings.quiet_hours
    return GuardianPreferencesResponse(
        guardian_id=guardian_id,
        child_id=child_id,
        critical_flags_enabled=settings.critical_flags_enabled,
        medium_flags_mode=settings.medium_flags_mode.value,
        low_flags_enabled=settings.low_flags_enabled,
        time_limit_warnings_enabled=settings.time_limit_warnings_enabled,
        limit_reached_enabled=settings.limit_reached_enabled,
        extension_requests_enabled=settings.extension_requests_enabled,
        sync_alerts_enabled=settings.sync_alerts_enabled,
        sync_threshold_hours=settings.sync_threshold_hours,
        device_status_enabled=settings.device_status_enabled,
        device_sync_recovery_enabled=settings.device_sync_recovery_enabled,
        status_changes_enabled=settings.status_changes_enabled,
        location_alerts_enabled=settings.location_alerts_enabled,
        quiet_hours=QuietHoursResponse(
            enabled=quiet.enabled,
            start=quiet.start,
            end=quiet.end,
            weekend_different=quiet.weekend_different,
            weekend_start=quiet.weekend_start,
            weekend_end=quiet.weekend_end,
            timezone=quiet.timezone,
        ),
    )


@router.put("/preferences/{guardian_id}", response_model=IdResponse)
async def update_guardian_preferences(guardian_id: str, body: UpdateGuardianPreferencesRequest) -> IdResponse:
    command = UpdateGuardianPreferences(guardian_id=guardian_id, **body.model_dump())
    preference_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=preference_id)


@router.put("/preferences/{guardian_id}/quiet-hours", response_model=IdResponse)
async def set_quiet_hours(guardian_id: str, body: SetQuietHoursRequest) -> IdResponse:
    command = SetGuardianQuietHours(guardian_id=guardian_id, **body.model_dump())
    preference_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=preference_id)


@router.delete("/preferences/{guardian_id}/quiet-hours", response_model=StatusResponse)
async def clear_quiet_hours(guardian_id: str, child_id: str | None = None) -> StatusResponse:
    command = ClearGuardianQuietHours(guardian_id=guardian_id, child_id=child_id)
    current_domain.process(command, asynchronous=False)
    return StatusResponse()


@router.put("/children/{child_id}/preferences", response_model=IdResponse)
async def update_child_preferences(child_id: str, body: UpdateChildPreferencesRequest) -> IdResponse:
    """Required safety fields are not part of the request; they cannot be switched off."""
    command = UpdateChildPreferences(child_id=child_id, **body.model_dump())
    preference_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=preference_id)


# ---------------------------------------------------------------------------
# Channels
# ---------------------------------------------------------------------------
@router.put("/channels/{user_id}/contacts", response_model=IdResponse)
async def set_verified_contacts(user_id: str, body: VerifiedContactsRequest) -> IdResponse:
    command = SetVerifiedContacts(user_id=user_id, **body.model_dump())
    preference_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=preference_id)


@router.get("/channels/{user_id}/{channel_type}", response_model=ChannelSettingsResponse)
async def get_channel_settings(user_id: str, channel_type: ChannelType) -> ChannelSettingsResponse:
    """Channel settings as delivery will see them; security types report their forced values."""
    record = current_context().store.first(ChannelPreference, user_id=user_id)
    settings = record.settings_for(channel_type) if record else merge_channel_settings(channel_type, None)
    return ChannelSettingsResponse(
        user_id=user_id,
        channel_type=channel_type.value,
        push=settings.push,
        email=settings.email,
        sms=settings.sms,
        forced=is_security_channel_type(channel_type),
    )


@router.put("/channels/{user_id}/{channel_type}", response_model=IdResponse)
async def update_channel_settings(user_id: str, channel_type: ChannelType, body: UpdateChannelRequest) -> IdResponse:
    command = UpdateChannelPreference(user_id=user_id, channel_type=channel_type.value, **body.model_dump())
    preference_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=preference_id)


@router.post("/endpoints/{user_id}", status_code=201, response_model=IdResponse)
async def register_endpoint(user_id: str, body: RegisterEndpointRequest) -> IdResponse:
    command = RegisterPushEndpoint(user_id=user_id, token=body.token, platform=body.platform)
    endpoint_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=endpoint_id)


@router.delete("/endpoints/{user_id}/{token}", response_model=StatusResponse)
async def unregister_endpoint(user_id: str, token: str) -> StatusResponse:
    current_domain.process(UnregisterPushEndpoint(user_id=user_id, token=token), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Admin: stealth windows
# ---------------------------------------------------------------------------
@admin_router.post("/families/{family_id}/stealth", response_model=StealthWindowResponse)
async def activate_stealth(family_id: str, body: ActivateStealthRequest) -> StealthWindowResponse:
    command = ActivateStealthWindow(
        family_id=family_id,
        ticket_id=body.ticket_id,
        affected_user_ids=json.dumps(body.affected_user_ids),
        actor=body.actor,
        duration_hours=body.duration_hours,
    )
    window_end = current_domain.process(command, asynchronous=False)
    return StealthWindowResponse(window_end=window_end)


@admin_router.delete("/families/{family_id}/stealth", response_model=StatusResponse)
async def clear_stealth(family_id: str, body: ClearStealthRequest) -> StatusResponse:
    current_domain.process(ClearStealthWindow(family_id=family_id, actor=body.actor), asynchronous=False)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Maintenance: periodic background job endpoints
# ---------------------------------------------------------------------------
_SCHEDULER_COMMANDS = {
    "hourly-digest": RunHourlyDigest,
    "daily-digest": RunDailyDigest,
    "delayed-queue": ProcessDelayedQueue,
    "expire-stealth": ExpireStealthWindows,
}


@admin_router.post("/maintenance/{job}", response_model=SchedulerRunResponse)
async def run_scheduled_job(job: str, body: SchedulerRunRequest | None = None) -> SchedulerRunResponse:
    """Trigger one scheduler job. Designed to be called periodically; every job is idempotent."""
    command_cls = _SCHEDULER_COMMANDS.get(job)
    if command_cls is None:
        raise HTTPException(status_code=404, detail=f"Unknown job: {job}")
    summary = current_domain.process(command_cls(as_of=body.as_of if body else None), asynchronous=False)
    return SchedulerRunResponse(summary=summary or {})
