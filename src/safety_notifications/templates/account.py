"""Account templates: login alerts, child status and location changes."""

from safety_notifications.categories import NotificationCategory

STATUS_LABELS = {
    "good": "doing well",
    "attention": "may need attention",
    "action": "needs your action",
}


class LoginAlertTemplate:
    category = NotificationCategory.LOGIN_ALERT

    @staticmethod
    def render(context: dict) -> dict:
        device = context.get("device_name", "a new device")
        location = context.get("location")
        body = f"Your account was signed in on {device}"
        body += f" near {location}." if location else "."
        body += " If this wasn't you, secure your account now."
        return {
            "title": "New sign-in to your account",
            "body": body,
            "data": {
                "type": "login_alert",
                "fingerprint": context.get("fingerprint"),
                "action_url": "/security",
            },
        }


class StatusChangeTemplate:
    category = NotificationCategory.STATUS_CHANGE

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        status = context.get("new_status", "attention")
        return {
            "title": f"{child_name}'s status changed",
            "body": f"{child_name} {STATUS_LABELS.get(status, 'has a new status')}.",
            "data": {
                "type": "status_change",
                "child_id": context.get("child_id"),
                "previous_status": context.get("previous_status"),
                "new_status": status,
            },
        }


class LocationTransitionTemplate:
    category = NotificationCategory.LOCATION_TRANSITION

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        place = context.get("place_name", "a saved place")
        verb = "arrived at" if context.get("transition") == "arrived" else "left"
        return {
            "title": f"{child_name} {verb} {place}",
            "body": f"{child_name} {verb} {place}.",
            "data": {
                "type": "location_transition",
                "child_id": context.get("child_id"),
                "place_id": context.get("place_id"),
                "transition": context.get("transition"),
            },
        }
