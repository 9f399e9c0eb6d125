"""Screen time templates: warnings, limit reached and extension requests."""

from safety_notifications.categories import NotificationCategory


class TimeLimitWarningTemplate:
    category = NotificationCategory.TIME_LIMIT_WARNING

    @staticmethod
    def render(context: dict) -> dict:
        minutes = context.get("minutes_remaining", 15)
        if context.get("for_child"):
            title = "Screen time reminder"
            body = f"You have {minutes} minutes of screen time left today."
        else:
            child_name = context.get("child_name", "Your child")
            title = f"{child_name} is almost out of screen time"
            body = f"{child_name} has {minutes} minutes of screen time left today."
        return {
            "title": title,
            "body": body,
            "data": {"type": "time_limit_warning", "child_id": context.get("child_id"), "minutes": minutes},
        }


class LimitReachedTemplate:
    category = NotificationCategory.LIMIT_REACHED

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        return {
            "title": f"{child_name} reached today's limit",
            "body": f"{child_name} has used all of today's screen time.",
            "data": {"type": "limit_reached", "child_id": context.get("child_id")},
        }


class ExtensionRequestTemplate:
    category = NotificationCategory.EXTENSION_REQUEST

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        minutes = context.get("minutes_requested", 30)
        return {
            "title": f"{child_name} is asking for more time",
            "body": f"{child_name} requested {minutes} more minutes. Tap to approve or deny.",
            "data": {
                "type": "extension_request",
                "child_id": context.get("child_id"),
                "request_id": context.get("request_id"),
                "action_url": f"/requests/{context.get('request_id', '')}",
            },
        }
