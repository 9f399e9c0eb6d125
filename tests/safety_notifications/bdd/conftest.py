"""Shared BDD fixtures and step definitions for notification scenarios."""

from datetime import datetime

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then, when
from safety_notifications.categories import Severity
from safety_notifications.pipeline import DispatchStatus
from safety_notifications.preference.management import SetGuardianQuietHours, UpdateGuardianPreferences
from safety_notifications.reasons import Reason


@pytest.fixture()
def clock(now):
    return {"now": now}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a family with guardians "{first}" and "{second}"'),
    target_fixture="family",
)
def family_with_two_guardians(first, second, make_family, add_endpoint):
    add_endpoint(first)
    add_endpoint(second)
    return make_family(guardians=(first, second), children=("child-1",))


@given(parsers.cfparse('the time is "{moment}"'))
def the_time_is(moment, clock):
    clock["now"] = datetime.fromisoformat(moment)


@given(parsers.cfparse('guardian "{guardian_id}" has quiet hours from "{start}" to "{end}"'))
def guardian_quiet_hours(guardian_id, start, end):
    current_domain.process(SetGuardianQuietHours(guardian_id=guardian_id, start=start, end=end), asynchronous=False)


@given(parsers.cfparse('guardian "{guardian_id}" wants medium flags "{mode}"'))
def guardian_medium_mode(guardian_id, mode):
    current_domain.process(
        UpdateGuardianPreferences(guardian_id=guardian_id, medium_flags_mode=mode),
        asynchronous=False,
    )


@given(parsers.cfparse('guardian "{guardian_id}" has turned off critical flags'))
def guardian_critical_off(guardian_id):
    current_domain.process(
        UpdateGuardianPreferences(guardian_id=guardian_id, critical_flags_enabled=False),
        asynchronous=False,
    )


@given(parsers.cfparse('support has shielded "{guardian_id}" under ticket "{ticket_id}"'))
def shield_guardian(guardian_id, ticket_id, pipeline, family, clock):
    pipeline.stealth.activate(family.id, ticket_id, [guardian_id], actor="support@example.com", now=clock["now"])


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(
    parsers.cfparse('a "{severity}" content flag is raised for "{child_name}"'),
    target_fixture="result",
)
def content_flag_raised(severity, child_name, pipeline, family, clock):
    return pipeline.notify_content_flag(
        family.id, "child-1", Severity(severity), "flag-bdd", child_name=child_name, now=clock["now"]
    )


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('guardian "{guardian_id}" is {status}'))
def guardian_status(result, guardian_id, status):
    assert result.for_recipient(guardian_id).status == DispatchStatus(status)


@then(parsers.cfparse('guardian "{guardian_id}" was skipped because "{reason}"'))
def guardian_skipped_because(result, guardian_id, reason):
    outcome = result.for_recipient(guardian_id)
    assert outcome.status == DispatchStatus.SKIPPED
    assert outcome.reason == Reason(reason)


@then(parsers.cfparse("push messages sent: {count:d}"))
def push_count(count, channels):
    assert len(channels.push.sent_pushes) == count
