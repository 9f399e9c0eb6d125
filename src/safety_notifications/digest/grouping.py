"""Pure digest consolidation: group queued items by child and summarise."""

from dataclasses import dataclass

from safety_notifications.categories import Severity, max_severity


@dataclass
class ChildGroup:
    child_id: str | None
    child_name: str
    count: int = 0
    max_severity: Severity = Severity.LOW


@dataclass(frozen=True)
class DigestSummary:
    child_names: list[str]
    total_count: int
    max_severity: Severity

    def as_context(self, digest_type: str) -> dict:
        return {
            "child_names": self.child_names,
            "total_count": self.total_count,
            "max_severity": self.max_severity.value,
            "digest_type": digest_type,
        }


def group_digest_items(items) -> list[ChildGroup]:
    """Partition items by child, in order of first appearance."""
    groups: dict[str, ChildGroup] = {}
    for item in items:
        key = str(item.child_id) if item.child_id else ""
        group = groups.get(key)
        if group is None:
            group = groups[key] = ChildGroup(child_id=key or None, child_name=item.child_name or "Your child")
        group.count += 1
        group.max_severity = max_severity(group.max_severity, Severity(item.severity))
    return list(groups.values())


def build_digest_summary(groups: list[ChildGroup]) -> DigestSummary:
    if not groups:
        return DigestSummary(child_names=[], total_count=0, max_severity=Severity.LOW)
    return DigestSummary(
        child_names=[group.child_name for group in groups],
        total_count=sum(group.count for group in groups),
        max_severity=max_severity(*(group.max_severity for group in groups)),
    )
