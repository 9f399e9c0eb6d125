"""Tests for quiet-hours window arithmetic."""

from datetime import UTC, datetime, time

from safety_notifications.preference.settings import QuietHours
from safety_notifications.routing.quiet_hours import in_window, is_quiet, quiet_hours_end_after, window_for


class TestInWindow:
    def test_wrapping_window_covers_both_sides_of_midnight(self):
        start, end = time(22, 0), time(7, 0)
        assert in_window(time(23, 0), start, end)
        assert in_window(time(3, 0), start, end)
        assert not in_window(time(12, 0), start, end)

    def test_end_is_exclusive(self):
        assert not in_window(time(7, 0), time(22, 0), time(7, 0))
        assert in_window(time(22, 0), time(22, 0), time(7, 0))

    def test_same_day_window(self):
        assert in_window(time(13, 30), time(13, 0), time(14, 0))
        assert not in_window(time(14, 0), time(13, 0), time(14, 0))

    def test_empty_window_is_never_quiet(self):
        assert not in_window(time(9, 0), time(9, 0), time(9, 0))


class TestIsQuiet:
    def test_disabled_is_never_quiet(self):
        assert not is_quiet(QuietHours(enabled=False), datetime(2026, 3, 4, 23, 30, tzinfo=UTC))

    def test_enabled_inside_window(self):
        assert is_quiet(QuietHours(enabled=True), datetime(2026, 3, 4, 23, 30, tzinfo=UTC))

    def test_naive_timestamps_are_treated_as_utc(self):
        assert is_quiet(QuietHours(enabled=True), datetime(2026, 3, 4, 23, 30))

    def test_recipient_timezone_is_used(self):
        qh = QuietHours(enabled=True, timezone="America/New_York")
        # 03:30 UTC is 22:30 the previous evening in New York (EST).
        assert is_quiet(qh, datetime(2026, 3, 5, 3, 30, tzinfo=UTC))
        # 23:30 UTC is 18:30 in New York.
        assert not is_quiet(qh, datetime(2026, 3, 4, 23, 30, tzinfo=UTC))

    def test_unknown_timezone_falls_back_to_utc(self):
        qh = QuietHours(enabled=True, timezone="Mars/Olympus_Mons")
        assert is_quiet(qh, datetime(2026, 3, 4, 23, 30, tzinfo=UTC))


class TestWeekendOverride:
    QH = QuietHours(enabled=True, weekend_different=True, weekend_start="23:00", weekend_end="08:00")

    def test_weekday_uses_weekday_window(self):
        wednesday = datetime(2026, 3, 4, 22, 30, tzinfo=UTC)
        assert window_for(self.QH, wednesday) == (time(22, 0), time(7, 0))
        assert is_quiet(self.QH, wednesday)

    def test_saturday_uses_weekend_window(self):
        saturday = datetime(2026, 3, 7, 22, 30, tzinfo=UTC)
        assert window_for(self.QH, saturday) == (time(23, 0), time(8, 0))
        assert not is_quiet(self.QH, saturday)
        assert is_quiet(self.QH, datetime(2026, 3, 7, 23, 30, tzinfo=UTC))

    def test_override_ignored_when_not_configured(self):
        qh = QuietHours(enabled=True, weekend_start="23:00", weekend_end="08:00")
        assert is_quiet(qh, datetime(2026, 3, 7, 22, 30, tzinfo=UTC))


class TestQuietHoursEnd:
    def test_before_midnight_delivers_next_morning(self):
        deliver_at = quiet_hours_end_after(QuietHours(enabled=True), datetime(2026, 3, 4, 23, 30, tzinfo=UTC))
        assert deliver_at == datetime(2026, 3, 5, 7, 0, tzinfo=UTC)

    def test_after_midnight_delivers_same_morning(self):
        deliver_at = quiet_hours_end_after(QuietHours(enabled=True), datetime(2026, 3, 5, 3, 0, tzinfo=UTC))
        assert deliver_at == datetime(2026, 3, 5, 7, 0, tzinfo=UTC)

    def test_weekend_end_is_used_on_weekends(self):
        qh = QuietHours(enabled=True, weekend_different=True, weekend_start="23:00", weekend_end="08:00")
        deliver_at = quiet_hours_end_after(qh, datetime(2026, 3, 7, 23, 30, tzinfo=UTC))
        assert deliver_at == datetime(2026, 3, 8, 8, 0, tzinfo=UTC)

    def test_sunday_night_ends_with_monday_window(self):
        qh = QuietHours(enabled=True, weekend_different=True, weekend_start="23:00", weekend_end="10:00")
        deliver_at = quiet_hours_end_after(qh, datetime(2026, 3, 8, 23, 30, tzinfo=UTC))
        assert deliver_at == datetime(2026, 3, 9, 7, 0, tzinfo=UTC)

    def test_friday_night_ends_with_saturday_window(self):
        qh = QuietHours(enabled=True, weekend_different=True, weekend_start="23:00", weekend_end="10:00")
        deliver_at = quiet_hours_end_after(qh, datetime(2026, 3, 6, 22, 30, tzinfo=UTC))
        assert deliver_at == datetime(2026, 3, 7, 10, 0, tzinfo=UTC)

    def test_end_is_computed_in_recipient_timezone(self):
        qh = QuietHours(enabled=True, timezone="America/New_York")
        deliver_at = quiet_hours_end_after(qh, datetime(2026, 3, 5, 3, 30, tzinfo=UTC))
        # 07:00 EST
        assert deliver_at == datetime(2026, 3, 5, 12, 0, tzinfo=UTC)
        assert deliver_at.tzinfo is not None
