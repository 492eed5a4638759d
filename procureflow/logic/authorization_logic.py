"""Authorization policy for every workflow transition.

A single pure decision function answers "may this actor perform this
action on this entity". Transition services build an ``EntityFacts`` from
the record they loaded and ask ``LogicService.decide``; nothing here
touches the database or any request state.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Literal

DecisionStatus = Literal["allow", "deny"]
EntityKind = Literal["service_request", "job_order", "purchase_order", "receiving_report"]
ApprovalRoleValue = Literal["department_head", "operations", "finance", "management", "purchasing"]

ROLE_REQUESTER = "requester"
ROLE_APPROVER = "approver"
ROLE_FINANCE = "finance"
ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ADMIN_ROLES = frozenset({ROLE_ADMIN, ROLE_SUPER_ADMIN})
HEAD_ROLES = frozenset({ROLE_APPROVER, ROLE_ADMIN, ROLE_SUPER_ADMIN})

DEPT_PRESIDENT = "president"
DEPT_FINANCE = "finance"
DEPT_PURCHASING = "purchasing"
DEPT_OPERATIONS = "operations"

SERVICE_CATEGORY_DEPARTMENTS: dict[str, tuple[str, ...]] = {
    "technical_support": ("it",),
    "facility_maintenance": ("maintenance",),
    "account_billing_inquiry": ("accounting",),
    "general_inquiry": ("general services",),
    "other": (DEPT_OPERATIONS,),
}
DEFAULT_HANDLING_DEPARTMENTS: tuple[str, ...] = (DEPT_OPERATIONS,)

_DEPARTMENT_SUFFIX = re.compile(r"\s+department$")


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: str
    department: str | None = None


@dataclass(frozen=True)
class EntityFacts:
    kind: EntityKind
    department: str | None = None
    service_category: str | None = None
    requester_id: str | None = None


@dataclass(frozen=True)
class AuthorizationDecision:
    status: DecisionStatus
    reason: str | None = None
    approval_role: ApprovalRoleValue | None = None

    @property
    def allowed(self) -> bool:
        return self.status == "allow"


def normalize_department(department: str | None) -> str:
    if not department:
        return ""
    return _DEPARTMENT_SUFFIX.sub("", department.strip().lower()).strip()


def _category_key(service_category) -> str | None:
    if service_category is None:
        return None
    return getattr(service_category, "value", service_category)


def handling_departments(service_category) -> tuple[str, ...]:
    key = _category_key(service_category)
    return SERVICE_CATEGORY_DEPARTMENTS.get(key or "", DEFAULT_HANDLING_DEPARTMENTS)


def _role(actor: Actor) -> str:
    return (getattr(actor.role, "value", actor.role) or "").lower()


def is_admin(actor: Actor) -> bool:
    return _role(actor) in ADMIN_ROLES


def is_president(actor: Actor) -> bool:
    return normalize_department(actor.department) == DEPT_PRESIDENT


def is_management(actor: Actor) -> bool:
    return is_admin(actor) or is_president(actor)


def is_finance(actor: Actor) -> bool:
    role = _role(actor)
    if role == ROLE_FINANCE:
        return True
    return role == ROLE_APPROVER and normalize_department(actor.department) == DEPT_FINANCE


def is_purchasing(actor: Actor) -> bool:
    if is_admin(actor):
        return True
    return _role(actor) == ROLE_APPROVER and normalize_department(actor.department) == DEPT_PURCHASING


def is_operations(actor: Actor) -> bool:
    return normalize_department(actor.department) == DEPT_OPERATIONS


def is_handling_department(actor: Actor, service_category) -> bool:
    department = normalize_department(actor.department)
    if department == DEPT_PRESIDENT:
        return True
    return department in handling_departments(service_category)


def is_department_head(actor: Actor, department: str | None) -> bool:
    if _role(actor) not in HEAD_ROLES:
        return False
    return bool(department) and normalize_department(actor.department) == normalize_department(department)


def approval_role_for(actor: Actor) -> ApprovalRoleValue | None:
    """Role recorded when ``actor`` signs a budget approval or rejection."""
    if is_finance(actor):
        return "finance"
    if is_management(actor):
        return "management"
    return None


def _allow(approval_role: ApprovalRoleValue | None = None) -> AuthorizationDecision:
    return AuthorizationDecision(status="allow", approval_role=approval_role)


def _deny(reason: str) -> AuthorizationDecision:
    return AuthorizationDecision(status="deny", reason=reason)


class LogicService:
    """Pure authorization decisions for workflow transitions."""

    def decide(self, actor: Actor, entity: EntityFacts, action: str) -> AuthorizationDecision:
        handler = getattr(self, f"_decide_{entity.kind}", None)
        if handler is None:
            return _deny(f"Unknown entity kind: {entity.kind}")
        return handler(actor, entity, action)

    # ── Service requests ──────────────────────────────────────────

    def _decide_service_request(self, actor: Actor, entity: EntityFacts, action: str) -> AuthorizationDecision:
        if action == "create":
            return _allow()
        if action in ("update", "submit"):
            if actor.id == entity.requester_id or is_admin(actor):
                return _allow()
            return _deny("Only the requester can edit or submit this service request")
        if action in ("approve", "reject"):
            if is_department_head(actor, entity.department):
                return _allow("department_head")
            if is_management(actor):
                return _allow("management")
            return _deny(f"Only the {entity.department} department head can {action} this service request")
        return _deny(f"Unknown service request action: {action}")

    # ── Job orders ────────────────────────────────────────────────

    def _decide_job_order(self, actor: Actor, entity: EntityFacts, action: str) -> AuthorizationDecision:
        category = entity.service_category
        if action in ("create", "update"):
            if is_handling_department(actor, category):
                return _allow("department_head")
            departments = ", ".join(d.title() for d in handling_departments(category))
            return _deny(f"Only {departments} or the President can {action} job orders for this category")
        if action == "canvass":
            if is_purchasing(actor) or normalize_department(actor.department) == DEPT_PURCHASING:
                return _allow("purchasing")
            return _deny("Only Purchasing can complete the canvass")
        if action in ("budget_approve", "budget_reject"):
            role = approval_role_for(actor)
            if role is None:
                return _deny("Only Finance or the President can act on the budget")
            return _allow(role)
        if action in ("approve", "reject"):
            if is_management(actor):
                return _allow("management")
            return _deny(f"Only the President can {action} job orders")
        if action in ("start", "complete"):
            if (
                is_handling_department(actor, category)
                or actor.id == entity.requester_id
                or is_operations(actor)
                or is_admin(actor)
            ):
                return _allow("operations")
            return _deny("Only the handling department, the requester, or Operations can update fulfillment")
        if action == "transfer":
            if is_operations(actor) or is_handling_department(actor, category) or is_admin(actor):
                return _allow("operations")
            return _deny("Only Operations or the handling department can record material transfers")
        if action == "accept":
            if is_department_head(actor, entity.department) or is_admin(actor):
                return _allow("department_head")
            if _role(actor) in HEAD_ROLES and is_handling_department(actor, category):
                return _allow("department_head")
            return _deny("Only a department head can accept the completed service")
        if action == "close":
            if is_admin(actor):
                return _allow("management")
            return _deny("Only administrators can close job orders directly")
        return _deny(f"Unknown job order action: {action}")

    # ── Purchase orders ───────────────────────────────────────────

    def _decide_purchase_order(self, actor: Actor, entity: EntityFacts, action: str) -> AuthorizationDecision:
        if action in ("create", "update", "submit", "purchase", "receive", "close"):
            if is_purchasing(actor):
                return _allow("purchasing")
            return _deny(f"Only Purchasing can {action} purchase orders")
        if action == "review":
            if is_finance(actor):
                return _allow("finance")
            return _deny("Only Finance can review purchase orders")
        if action in ("approve", "reject"):
            if is_management(actor):
                return _allow("management")
            return _deny(f"Only the President can {action} purchase orders")
        return _deny(f"Unknown purchase order action: {action}")

    # ── Receiving reports ─────────────────────────────────────────

    def _decide_receiving_report(self, actor: Actor, entity: EntityFacts, action: str) -> AuthorizationDecision:
        if action in ("create", "update", "submit", "complete"):
            if is_purchasing(actor):
                return _allow("purchasing")
            return _deny("Only Purchasing can manage receiving reports")
        return _deny(f"Unknown receiving report action: {action}")


_policy = LogicService()


def can_perform(actor: Actor, entity: EntityFacts, action: str) -> bool:
    return _policy.decide(actor, entity, action).allowed
