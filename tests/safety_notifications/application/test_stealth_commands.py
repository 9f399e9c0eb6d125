import json
from datetime import timedelta

import pytest
from protean import current_domain
from protean.exceptions import ObjectNotFoundError, ValidationError
from safety_notifications.family.family import Family
from safety_notifications.stealth.audit import AdminAuditEntry
from safety_notifications.stealth.management import ActivateStealthWindow, ClearStealthWindow
from safety_notifications.utils.timeutil import as_utc


def _activate(family_id, **overrides):
    fields = {
        "family_id": family_id,
        "ticket_id": "T-42",
        "affected_user_ids": json.dumps(["guardian-1"]),
        "actor": "support@example.com",
    }
    fields.update(overrides)
    return current_domain.process(ActivateStealthWindow(**fields), asynchronous=False)


class TestStealthCommands:
    def test_activate_returns_window_end(self, make_family, store):
        family = make_family()

        window_end = _activate(family.id, duration_hours=48)

        stored = store.get(Family, family.id)
        assert stored.stealth_active is True
        assert as_utc(window_end) == as_utc(stored.stealth_window_end)
        assert as_utc(stored.stealth_window_end) - as_utc(stored.stealth_window_start) == timedelta(hours=48)

    def test_duration_out_of_bounds(self, make_family):
        family = make_family()

        with pytest.raises(ValidationError):
            _activate(family.id, duration_hours=200)

    def test_unknown_family(self):
        with pytest.raises(ObjectNotFoundError):
            _activate("no-such-family")

    def test_clear_records_audit(self, make_family, store):
        family = make_family()
        _activate(family.id)

        current_domain.process(ClearStealthWindow(family_id=family.id, actor="support@example.com"), asynchronous=False)

        assert store.get(Family, family.id).stealth_active is False
        actions = sorted(entry.action for entry in store.filter(AdminAuditEntry, family_id=str(family.id)))
        assert actions == ["activated", "cleared"]
