"""Content flag template: a monitored child's content was flagged."""

from safety_notifications.categories import NotificationCategory

FLAG_LABELS = {
    "critical": "Urgent",
    "medium": "Needs review",
    "low": "FYI",
}


class ContentFlagTemplate:
    category = NotificationCategory.CONTENT_FLAG

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        severity = context.get("severity", "medium")
        flag_type = context.get("flag_type", "content")
        return {
            "title": f"{FLAG_LABELS.get(severity, 'Needs review')}: {child_name}",
            "body": f"{child_name}'s activity was flagged for {flag_type}. Open the app to review.",
            "data": {
                "type": "content_flag",
                "child_id": context.get("child_id"),
                "flag_id": context.get("flag_id"),
                "severity": severity,
                "action_url": f"/flags/{context.get('flag_id', '')}",
            },
        }
