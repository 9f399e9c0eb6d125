from datetime import UTC, datetime

import pytest
from protean.integrations.pytest import DomainFixture

# Wednesday afternoon, outside any default quiet hours.
NOW = datetime(2026, 3, 4, 15, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def safety_bed():
    from safety_notifications.domain import safety_notifications

    bed = DomainFixture(safety_notifications)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(safety_bed):
    from protean import current_domain
    from safety_notifications.context import NotificationContext, bind_context, unbind_context

    with safety_bed.domain_context():
        bind_context(NotificationContext())
        yield

        unbind_context()
        for _, provider in current_domain.providers.items():
            provider._data_reset()
        current_domain.event_store.store._data_reset()


@pytest.fixture()
def now():
    return NOW


@pytest.fixture()
def context():
    from safety_notifications.context import current_context

    return current_context()


@pytest.fixture()
def store(context):
    return context.store


@pytest.fixture()
def channels(context):
    return context.channels


@pytest.fixture()
def pipeline(context):
    from safety_notifications.pipeline import NotificationPipeline

    return NotificationPipeline(context)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_family(store):
    from safety_notifications.family.family import Family

    def _make(guardians=("guardian-1",), children=("child-1",), **kwargs):
        return store.add(Family.create(list(guardians), list(children), **kwargs))

    return _make


@pytest.fixture()
def make_child(store):
    from safety_notifications.family.family import Child

    def _make(family_id, name="Sam", birth_date=None, child_id=None):
        kwargs = {"id": child_id} if child_id else {}
        return store.add(Child(family_id=family_id, name=name, birth_date=birth_date, **kwargs))

    return _make


@pytest.fixture()
def add_endpoint(store):
    from safety_notifications.delivery.endpoint import PushEndpoint

    def _add(user_id, token=None, platform="ios"):
        return store.add(
            PushEndpoint(user_id=user_id, token=token or f"token-{user_id}", platform=platform, registered_at=NOW)
        )

    return _add


@pytest.fixture()
def set_contacts(store):
    from safety_notifications.preference.channel import ChannelPreference

    def _set(user_id, email=None, phone=None, **channel_updates):
        preference = store.first(ChannelPreference, user_id=user_id) or ChannelPreference(user_id=user_id)
        preference.verified_email = email
        preference.verified_phone = phone
        for channel_type, values in channel_updates.items():
            preference.update_channel(channel_type, **values)
        return store.add(preference)

    return _set


@pytest.fixture()
def guardian_prefs(store):
    from safety_notifications.preference.guardian import GuardianPreference

    def _set(guardian_id, child_id=None, quiet_hours=None, **changes):
        preference = GuardianPreference(guardian_id=guardian_id, child_id=child_id)
        if changes:
            preference.update_categories(**changes)
        if quiet_hours:
            preference.set_quiet_hours(**quiet_hours)
        return store.add(preference)

    return _set
