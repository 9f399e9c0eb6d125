"""Safety templates: crisis resources, self-harm, mandatory reports, emergency unlock.

Copy is deliberately plain and never includes flagged content.
"""

from safety_notifications.categories import NotificationCategory


class CrisisResourceTemplate:
    category = NotificationCategory.CRISIS_RESOURCE

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Support is available",
            "body": "If you or someone you know needs help, support resources are available 24/7.",
            "data": {"type": "crisis_resource", "action_url": "/help"},
        }


class SelfHarmTemplate:
    category = NotificationCategory.SELF_HARM

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        return {
            "title": f"Urgent: check in with {child_name}",
            "body": f"We detected content suggesting {child_name} may be at risk. Please check in now.",
            "data": {"type": "self_harm", "child_id": context.get("child_id"), "action_url": "/help"},
        }


class MandatoryReportTemplate:
    category = NotificationCategory.MANDATORY_REPORT

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Important safety notice",
            "body": "A safety report was filed for your family. Open the app for details.",
            "data": {"type": "mandatory_report", "report_id": context.get("report_id")},
        }


class EmergencyUnlockTemplate:
    category = NotificationCategory.EMERGENCY_UNLOCK

    @staticmethod
    def render(context: dict) -> dict:
        child_name = context.get("child_name", "Your child")
        return {
            "title": f"{child_name} used emergency unlock",
            "body": f"{child_name}'s device was unlocked for an emergency.",
            "data": {"type": "emergency_unlock", "child_id": context.get("child_id")},
        }
