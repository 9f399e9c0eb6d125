"""Device templates: sync timeouts, recovery, revoked permissions and removal."""

from safety_notifications.categories import NotificationCategory


def _device_label(context: dict) -> str:
    child_name = context.get("child_name", "Your child")
    device_name = context.get("device_name", "device")
    return f"{child_name}'s {device_name}"


class SyncTimeoutTemplate:
    category = NotificationCategory.SYNC_TIMEOUT

    @staticmethod
    def render(context: dict) -> dict:
        hours = context.get("threshold_hours", 4)
        unit = "hour" if hours == 1 else "hours"
        return {
            "title": "Device hasn't synced",
            "body": f"{_device_label(context)} hasn't checked in for over {hours} {unit}.",
            "data": {"type": "sync_timeout", "device_id": context.get("device_id"), "threshold_hours": hours},
        }


class SyncRestoredTemplate:
    category = NotificationCategory.SYNC_RESTORED

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Device back online",
            "body": f"{_device_label(context)} is syncing again.",
            "data": {"type": "sync_restored", "device_id": context.get("device_id")},
        }


class PermissionRevokedTemplate:
    category = NotificationCategory.PERMISSION_REVOKED

    @staticmethod
    def render(context: dict) -> dict:
        permission = context.get("permission", "monitoring")
        return {
            "title": "Monitoring permission turned off",
            "body": f"The {permission} permission was turned off on {_device_label(context)}.",
            "data": {"type": "permission_revoked", "device_id": context.get("device_id"), "permission": permission},
        }


class DeviceRemovedTemplate:
    category = NotificationCategory.DEVICE_REMOVED

    @staticmethod
    def render(context: dict) -> dict:
        return {
            "title": "Device removed",
            "body": f"{_device_label(context)} was removed from your family.",
            "data": {"type": "device_removed", "device_id": context.get("device_id")},
        }
