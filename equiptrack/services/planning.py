"""Read-only helpers that walk a technician through building a system.

The checkout screen resolves a system in three steps: pick a computer color,
pick a bag color at that computer's location, then verify each bag item and
pick stand-ins for the ones that cannot go. Nothing here writes; the final
list of ids goes to :func:`checkout_group`, which re-checks everything.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..core.errors import NoMatchError, ValidationError
from ..core.locations import normalize_location
from ..models.equipment import STATUS_AVAILABLE, Equipment
from .eligibility import SubstituteConstraints, ineligibility_reason, is_computer


@dataclass
class ComponentCheck:
    item: Equipment
    reason: str | None = None

    @property
    def ok(self) -> bool:
        return self.reason is None


@dataclass
class GroupPlan:
    anchor: Equipment
    anchor_color: str
    bag_color: str
    location: str
    components: list[ComponentCheck] = field(default_factory=list)
    candidates: dict[str, list[Equipment]] = field(default_factory=dict)

    @property
    def ready_ids(self) -> list[str]:
        return [self.anchor.id] + [c.item.id for c in self.components if c.ok]


def _all(db: Session) -> list[Equipment]:
    return db.execute(select(Equipment).order_by(Equipment.id)).scalars().all()


def computer_colors(db: Session) -> list[str]:
    """Systems that have a computer ready to go out."""

    colors = {
        item.effective_system_color
        for item in _all(db)
        if is_computer(item) and item.effective_system_color and ineligibility_reason(item) is None
    }
    return sorted(colors)


def bag_colors(db: Session, location: str) -> list[str]:
    """Colors with at least one available bag item at ``location``."""

    where = normalize_location(location)
    colors = {
        item.effective_system_color
        for item in _all(db)
        if not is_computer(item)
        and item.effective_system_color
        and item.location == where
        and item.status == STATUS_AVAILABLE
    }
    return sorted(colors)


def plan_group(db: Session, anchor_color: str, bag_color: str | None = None) -> GroupPlan:
    anchor_color = (anchor_color or "").strip()
    if not anchor_color:
        raise ValidationError("system_color is required")
    bag_color = (bag_color or "").strip() or anchor_color

    items = _all(db)
    computers = [i for i in items if is_computer(i) and i.effective_system_color == anchor_color]
    if not computers:
        raise NoMatchError("System", anchor_color, message=f"No computer is assigned to {anchor_color} System")
    ready = [c for c in computers if ineligibility_reason(c, SubstituteConstraints(serving_color=anchor_color)) is None]
    anchor = (ready or computers)[0]

    plan = GroupPlan(anchor=anchor, anchor_color=anchor_color, bag_color=bag_color, location=anchor.location)
    constraints = SubstituteConstraints(serving_color=anchor_color, location=anchor.location)
    bag = [i for i in items if not is_computer(i) and i.effective_system_color == bag_color]
    bag_ids = {i.id for i in bag}
    for item in bag:
        plan.components.append(ComponentCheck(item=item, reason=ineligibility_reason(item, constraints)))

    for check in plan.components:
        if check.ok or check.item.category in plan.candidates:
            continue
        wanted = SubstituteConstraints(
            category=check.item.category,
            location=anchor.location,
            serving_color=anchor_color,
        )
        plan.candidates[check.item.category] = [
            i for i in items if i.id not in bag_ids and not is_computer(i) and ineligibility_reason(i, wanted) is None
        ]
    return plan
