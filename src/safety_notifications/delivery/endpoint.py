"""PushEndpoint aggregate + registration commands: a user's push device tokens."""

import structlog
from protean.fields import DateTime, Identifier, String
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from safety_notifications.domain import safety_notifications
from safety_notifications.store import Store
from safety_notifications.utils.timeutil import utc_now

logger = structlog.get_logger(__name__)


@safety_notifications.aggregate
class PushEndpoint:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=512, unique=True)
    platform: String(max_length=20)
    registered_at: DateTime()


def tokens_for(store: Store, user_id) -> list[PushEndpoint]:
    return store.filter(PushEndpoint, user_id=str(user_id))


@safety_notifications.command(part_of="PushEndpoint")
class RegisterPushEndpoint:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=512)
    platform: String(max_length=20)


@safety_notifications.command(part_of="PushEndpoint")
class UnregisterPushEndpoint:
    user_id: Identifier(required=True)
    token: String(required=True, max_length=512)


@safety_notifications.command_handler(part_of=PushEndpoint)
class PushEndpointHandler:
    @handle(RegisterPushEndpoint)
    def register(self, command: RegisterPushEndpoint):
        store = Store(current_domain)
        existing = store.first(PushEndpoint, token=command.token)
        if existing is not None:
            if str(existing.user_id) == str(command.user_id):
                return str(existing.id)
            # Token moved to another account on the same device.
            store.delete(existing)

        endpoint = PushEndpoint(
            user_id=command.user_id,
            token=command.token,
            platform=command.platform,
            registered_at=utc_now(),
        )
        store.add(endpoint)
        logger.info("Push endpoint registered", user_id=str(command.user_id), platform=command.platform)
        return str(endpoint.id)

    @handle(UnregisterPushEndpoint)
    def unregister(self, command: UnregisterPushEndpoint):
        store = Store(current_domain)
        existing = store.first(PushEndpoint, token=command.token)
        if existing is not None and str(existing.user_id) == str(command.user_id):
            store.delete(existing)
