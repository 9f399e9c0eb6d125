"""Application tests for the per-recipient notification sequence."""

from datetime import UTC, datetime, timedelta

import pytest
from protean.exceptions import ValidationError
from safety_notifications.categories import NotificationCategory, Severity
from safety_notifications.delivery.delayed import DelayedNotification
from safety_notifications.delivery.log import NotificationHistory, Outcome
from safety_notifications.digest.item import DigestQueueItem
from safety_notifications.pipeline import DispatchStatus
from safety_notifications.reasons import Reason
from safety_notifications.routing.engine import Route
from safety_notifications.utils.timeutil import as_utc


@pytest.fixture()
def family(make_family, add_endpoint):
    add_endpoint("guardian-1")
    add_endpoint("guardian-2")
    return make_family(guardians=("guardian-1", "guardian-2"), children=("child-1",))


def _history(store, recipient_id):
    return store.filter(NotificationHistory, recipient_id=recipient_id)


class TestContentFlags:
    def test_critical_flag_reaches_every_guardian(self, pipeline, family, channels, now):
        result = pipeline.notify_content_flag(
            family.id, "child-1", Severity.CRITICAL, "flag-1", child_name="Sam", now=now
        )

        assert result.sent_count == 2
        assert {push["device_token"] for push in channels.push.sent_pushes} == {"token-guardian-1", "token-guardian-2"}

    def test_each_guardian_routed_with_own_preferences(self, pipeline, family, guardian_prefs, channels, store, now):
        guardian_prefs("guardian-2", critical_flags_enabled=False)

        result = pipeline.notify_content_flag(family.id, "child-1", Severity.CRITICAL, "flag-1", now=now)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT
        skipped = result.for_recipient("guardian-2")
        assert skipped.status == DispatchStatus.SKIPPED
        assert skipped.reason == Reason.CRITICAL_DISABLED
        assert len(channels.push.sent_pushes) == 1
        history = _history(store, "guardian-2")
        assert [(h.outcome, h.reason) for h in history] == [(Outcome.SKIPPED.value, Reason.CRITICAL_DISABLED.value)]

    def test_skipped_recipient_gets_history(self, pipeline, family, store, now):
        pipeline.notify_content_flag(family.id, "child-1", Severity.LOW, "flag-1", now=now)

        history = _history(store, "guardian-1")
        assert [(h.outcome, h.reason) for h in history] == [(Outcome.SKIPPED.value, Reason.LOW_DISABLED.value)]

    def test_medium_flag_queued_for_hourly_digest(self, pipeline, family, store, channels, now):
        result = pipeline.notify_content_flag(
            family.id, "child-1", Severity.MEDIUM, "flag-1", child_name="Sam", now=now
        )

        outcome = result.for_recipient("guardian-1")
        assert outcome.status == DispatchStatus.QUEUED
        assert outcome.route == Route.HOURLY_DIGEST
        assert channels.push.calls == 0
        items = store.filter(DigestQueueItem, recipient_id="guardian-1")
        assert [(i.digest_type, i.child_name, i.source_event_id) for i in items] == [("hourly", "Sam", "flag-1")]

    def test_quiet_hours_park_until_window_ends(self, pipeline, family, store, channels, guardian_prefs, now):
        guardian_prefs("guardian-1", medium_flags_mode="immediate", quiet_hours={"start": "14:00", "end": "18:00"})

        result = pipeline.notify_content_flag(family.id, "child-1", Severity.MEDIUM, "flag-1", now=now)

        outcome = result.for_recipient("guardian-1")
        assert outcome.status == DispatchStatus.DELAYED
        assert outcome.deliver_at == datetime(2026, 3, 4, 18, 0, tzinfo=UTC)
        delayed = store.filter(DelayedNotification, recipient_id="guardian-1")
        assert len(delayed) == 1
        assert as_utc(delayed[0].deliver_at) == datetime(2026, 3, 4, 18, 0, tzinfo=UTC)
        assert channels.push.calls == 0
        assert [h.outcome for h in _history(store, "guardian-1")] == [Outcome.DELAYED.value]

    def test_critical_flag_ignores_quiet_hours(self, pipeline, family, guardian_prefs, now):
        guardian_prefs("guardian-1", quiet_hours={"start": "14:00", "end": "18:00"})

        result = pipeline.notify_content_flag(family.id, "child-1", Severity.CRITICAL, "flag-1", now=now)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT

    def test_undeliverable_recipient_recorded_as_failed(self, pipeline, make_family, store, now):
        family = make_family(guardians=("guardian-9",))

        result = pipeline.notify_content_flag(family.id, "child-1", Severity.CRITICAL, "flag-1", now=now)

        outcome = result.for_recipient("guardian-9")
        assert outcome.status == DispatchStatus.FAILED
        assert outcome.reason == Reason.NO_TOKENS
        assert [h.outcome for h in _history(store, "guardian-9")] == [Outcome.FAILED.value]

    def test_missing_family_has_no_recipients(self, pipeline, now):
        result = pipeline.notify_content_flag("no-such-family", "child-1", Severity.CRITICAL, "flag-1", now=now)

        assert result.outcomes == []
        assert result.reason == Reason.NO_RECIPIENTS

    def test_failure_for_one_recipient_does_not_stop_others(self, pipeline, family, monkeypatch, store, now):
        original = pipeline.orchestrator.deliver

        def flaky(request, at=None):
            if request.recipient_id == "guardian-1":
                raise RuntimeError("provider exploded")
            return original(request, at)

        monkeypatch.setattr(pipeline.orchestrator, "deliver", flaky)
        result = pipeline.notify_content_flag(family.id, "child-1", Severity.CRITICAL, "flag-1", now=now)

        failed = result.for_recipient("guardian-1")
        assert failed.status == DispatchStatus.FAILED
        assert failed.error == "provider exploded"
        assert result.for_recipient("guardian-2").status == DispatchStatus.SENT


class TestStealthSuppression:
    @pytest.fixture()
    def shielded(self, pipeline, family, now):
        pipeline.stealth.activate(family.id, "T-100", ["guardian-1"], actor="support@example.com", now=now)
        return family

    def test_affected_guardian_is_suppressed_silently(self, pipeline, shielded, store, channels, now):
        result = pipeline.notify_content_flag(shielded.id, "child-1", Severity.CRITICAL, "flag-1", now=now)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SUPPRESSED
        assert _history(store, "guardian-1") == []
        assert result.for_recipient("guardian-2").status == DispatchStatus.SENT
        assert [p["device_token"] for p in channels.push.sent_pushes] == ["token-guardian-2"]

    def test_critical_safety_bypasses_window(self, pipeline, shielded, now):
        result = pipeline.notify_critical_safety(
            shielded.id, NotificationCategory.SELF_HARM, child_id="child-1", child_name="Sam", now=now
        )

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT

    def test_window_over_means_delivery_resumes(self, pipeline, shielded, now):
        later = now + timedelta(hours=73)

        result = pipeline.notify_content_flag(shielded.id, "child-1", Severity.CRITICAL, "flag-1", now=later)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT


class TestLoginAlerts:
    def test_sent_with_location(self, pipeline, family, channels, now):
        result = pipeline.notify_login(
            "guardian-1", family.id, "fp-1", device_name="Pixel 8", location="Austin", now=now
        )

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT
        assert channels.push.sent_pushes[0]["body"].startswith("Your account was signed in on Pixel 8 near Austin.")

    def test_repeat_fingerprint_absorbed(self, pipeline, family, now):
        pipeline.notify_login("guardian-1", family.id, "fp-1", now=now)

        repeat = pipeline.notify_login("guardian-1", family.id, "fp-1", now=now + timedelta(minutes=2))
        other = pipeline.notify_login("guardian-1", family.id, "fp-2", now=now + timedelta(minutes=2))
        later = pipeline.notify_login("guardian-1", family.id, "fp-1", now=now + timedelta(minutes=6))

        assert repeat.for_recipient("guardian-1").reason == Reason.THROTTLED
        assert other.for_recipient("guardian-1").status == DispatchStatus.SENT
        assert later.for_recipient("guardian-1").status == DispatchStatus.SENT

    def test_fleeing_mode_withholds_location(self, pipeline, family, store, channels, now):
        family.activate_fleeing_mode(now)
        store.add(family)

        pipeline.notify_login("guardian-1", family.id, "fp-1", device_name="Pixel 8", location="Austin", now=now)

        assert "Austin" not in channels.push.sent_pushes[0]["body"]

    def test_ignores_quiet_hours(self, pipeline, family, guardian_prefs, now):
        guardian_prefs("guardian-1", quiet_hours={"start": "14:00", "end": "18:00"})

        result = pipeline.notify_login("guardian-1", family.id, "fp-1", now=now)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT


class TestDeviceSignals:
    def test_sync_timeout_below_guardian_threshold(self, pipeline, family, now):
        result = pipeline.notify_sync_timeout(family.id, "device-1", 1, child_id="child-1", now=now)

        assert result.for_recipient("guardian-1").reason == Reason.BELOW_THRESHOLD

    def test_sync_timeout_once_per_threshold(self, pipeline, family, now):
        first = pipeline.notify_sync_timeout(family.id, "device-1", 4, child_id="child-1", now=now)
        repeat = pipeline.notify_sync_timeout(
            family.id, "device-1", 4, child_id="child-1", now=now + timedelta(hours=1)
        )
        larger = pipeline.notify_sync_timeout(
            family.id, "device-1", 12, child_id="child-1", now=now + timedelta(hours=8)
        )

        assert first.sent_count == 2
        assert repeat.for_recipient("guardian-1").reason == Reason.THROTTLED
        assert larger.sent_count == 2

    def test_sync_timeout_parked_once_during_quiet_hours(self, pipeline, family, guardian_prefs, store, now):
        guardian_prefs("guardian-1", quiet_hours={"start": "14:00", "end": "18:00"})

        results = [
            pipeline.notify_sync_timeout(family.id, "device-1", 4, child_id="child-1", now=now + timedelta(minutes=m))
            for m in (0, 15, 30, 45)
        ]

        assert results[0].for_recipient("guardian-1").status == DispatchStatus.DELAYED
        assert [r.for_recipient("guardian-1").reason for r in results[1:]] == [Reason.THROTTLED] * 3
        assert len(store.filter(DelayedNotification, recipient_id="guardian-1")) == 1

    def test_sync_threshold_follows_guardian_setting(self, pipeline, family, guardian_prefs, now):
        guardian_prefs("guardian-2", sync_threshold_hours=12)

        result = pipeline.notify_sync_timeout(family.id, "device-1", 4, now=now)

        assert result.for_recipient("guardian-1").status == DispatchStatus.SENT
        assert result.for_recipient("guardian-2").reason == Reason.BELOW_THRESHOLD

    def test_permission_revoked_cools_down(self, pipeline, family, now):
        pipeline.notify_permission_revoked(family.id, "device-1", "screen_time", now=now)

        repeat = pipeline.notify_permission_revoked(
            family.id, "device-1", "screen_time", now=now + timedelta(minutes=10)
        )

        assert repeat.for_recipient("guardian-1").reason == Reason.THROTTLED


class TestStatusTransitions:
    def test_throttled_within_the_hour(self, pipeline, family, now):
        first = pipeline.notify_status_transition(family.id, "child-1", "good", "attention", now=now)
        second = pipeline.notify_status_transition(
            family.id, "child-1", "attention", "good", now=now + timedelta(minutes=20)
        )

        assert first.sent_count == 2
        assert second.for_recipient("guardian-1").reason == Reason.THROTTLED

    def test_action_always_delivered(self, pipeline, family, now):
        pipeline.notify_status_transition(family.id, "child-1", "good", "attention", now=now)

        urgent = pipeline.notify_status_transition(
            family.id, "child-1", "attention", "action", now=now + timedelta(minutes=5)
        )

        assert urgent.sent_count == 2

    def test_unknown_status_rejected(self, pipeline, family, now):
        with pytest.raises(ValidationError) as exc:
            pipeline.notify_status_transition(family.id, "child-1", "good", "panic", now=now)

        assert "new_status" in exc.value.messages


class TestScreenTime:
    def test_limit_reached_once_per_day(self, pipeline, family, now):
        first = pipeline.notify_limit_reached(family.id, "child-1", child_name="Sam", now=now)
        again = pipeline.notify_limit_reached(family.id, "child-1", child_name="Sam", now=now + timedelta(hours=2))
        tomorrow = pipeline.notify_limit_reached(family.id, "child-1", child_name="Sam", now=now + timedelta(days=1))

        assert first.sent_count == 2
        assert again.for_recipient("guardian-1").reason == Reason.ALREADY_SENT_TODAY
        assert tomorrow.sent_count == 2

    def test_time_limit_warning_reaches_child_and_guardians(self, pipeline, family, add_endpoint, channels, now):
        add_endpoint("child-1")

        result = pipeline.notify_time_limit_warning(family.id, "child-1", 10, child_name="Sam", now=now)

        assert {o.recipient_id for o in result.outcomes if o.sent} == {"guardian-1", "guardian-2", "child-1"}
        child_push = next(p for p in channels.push.sent_pushes if p["device_token"] == "token-child-1")
        assert child_push["title"] == "Screen time reminder"


class TestCriticalSafety:
    def test_rejects_non_safety_category(self, pipeline, family, now):
        with pytest.raises(ValidationError):
            pipeline.notify_critical_safety(family.id, NotificationCategory.CONTENT_FLAG, now=now)

    def test_single_recipient(self, pipeline, family, now):
        result = pipeline.notify_critical_safety(
            family.id, NotificationCategory.CRISIS_RESOURCE, recipient_id="guardian-2", now=now
        )

        assert [o.recipient_id for o in result.outcomes] == ["guardian-2"]
        assert result.sent_count == 1
