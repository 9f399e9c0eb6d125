"""Flag digest template: one consolidated message per recipient."""

from safety_notifications.categories import NotificationCategory

BADGES = {"critical": "Urgent", "medium": "Review", "low": "FYI"}


class FlagDigestTemplate:
    category = NotificationCategory.FLAG_DIGEST

    @staticmethod
    def render(context: dict) -> dict:
        names = context.get("child_names") or []
        count = context.get("total_count", 0)
        severity = context.get("max_severity", "low")
        who = names[0] if len(names) == 1 else ", ".join(names)
        noun = "item" if count == 1 else "items"
        return {
            "title": f"[{BADGES.get(severity, 'FYI')}] {count} flagged {noun} to review",
            "body": f"{count} flagged {noun} for {who}.",
            "data": {
                "type": "flag_digest",
                "digest_type": context.get("digest_type"),
                "count": count,
                "max_severity": severity,
                "action_url": "/flags",
            },
        }
