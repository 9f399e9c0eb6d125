"""Admin commands + handlers for stealth windows.

Activation and clearing are support-staff actions; they return the new
window end so the admin console can display it.
"""

import json

from protean.fields import Identifier, Integer, String, Text
from protean.utils.globals import current_domain
from protean.utils.mixins import handle

from safety_notifications.domain import safety_notifications
from safety_notifications.family.family import Family
from safety_notifications.stealth.window import DEFAULT_DURATION_HOURS, StealthWindowManager
from safety_notifications.store import Store


@safety_notifications.command(part_of="Family")
class ActivateStealthWindow:
    family_id: Identifier(required=True)
    ticket_id: String(required=True, max_length=100)
    affected_user_ids: Text(required=True)  # JSON list
    actor: String(required=True, max_length=255)
    duration_hours: Integer(default=DEFAULT_DURATION_HOURS)


@safety_notifications.command(part_of="Family")
class ClearStealthWindow:
    family_id: Identifier(required=True)
    actor: String(required=True, max_length=255)


@safety_notifications.command_handler(part_of=Family)
class StealthWindowHandler:
    @handle(ActivateStealthWindow)
    def activate(self, command: ActivateStealthWindow):
        manager = StealthWindowManager(Store(current_domain))
        family = manager.activate(
            command.family_id,
            command.ticket_id,
            json.loads(command.affected_user_ids),
            command.actor,
            duration_hours=command.duration_hours,
        )
        return family.stealth_window_end

    @handle(ClearStealthWindow)
    def clear(self, command: ClearStealthWindow):
        StealthWindowManager(Store(current_domain)).clear(command.family_id, command.actor)
