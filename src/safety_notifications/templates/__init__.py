"""Template registry: maps a notification category to its template class.

Templates turn event parameters into ``{title, body, data}``; the decision
pipeline never looks inside them.
"""

from safety_notifications.categories import NotificationCategory
from safety_notifications.templates.account import (
    LocationTransitionTemplate,
    LoginAlertTemplate,
    StatusChangeTemplate,
)
from safety_notifications.templates.content_flag import ContentFlagTemplate
from safety_notifications.templates.device import (
    DeviceRemovedTemplate,
    PermissionRevokedTemplate,
    SyncRestoredTemplate,
    SyncTimeoutTemplate,
)
from safety_notifications.templates.digest import FlagDigestTemplate
from safety_notifications.templates.safety import (
    CrisisResourceTemplate,
    EmergencyUnlockTemplate,
    MandatoryReportTemplate,
    SelfHarmTemplate,
)
from safety_notifications.templates.time_limits import (
    ExtensionRequestTemplate,
    LimitReachedTemplate,
    TimeLimitWarningTemplate,
)

TEMPLATE_REGISTRY: dict[NotificationCategory, type] = {
    template.category: template
    for template in (
        ContentFlagTemplate,
        TimeLimitWarningTemplate,
        LimitReachedTemplate,
        ExtensionRequestTemplate,
        SyncTimeoutTemplate,
        SyncRestoredTemplate,
        PermissionRevokedTemplate,
        DeviceRemovedTemplate,
        LoginAlertTemplate,
        StatusChangeTemplate,
        LocationTransitionTemplate,
        FlagDigestTemplate,
        CrisisResourceTemplate,
        SelfHarmTemplate,
        MandatoryReportTemplate,
        EmergencyUnlockTemplate,
    )
}


def get_template(category: NotificationCategory):
    """Look up a template class by category."""
    template_cls = TEMPLATE_REGISTRY.get(category)
    if template_cls is None:
        raise ValueError(f"No template registered for category: {category.value}")
    return template_cls


def build_content(category: NotificationCategory, params: dict | None = None) -> dict:
    return get_template(category).render(params or {})
