"""Helpers shared by every transition service."""

import logging
from contextlib import contextmanager

from procureflow.errors import DuplicateApproval, Unauthorized, ValidationFailed
from procureflow.logic.authorization_logic import Actor, AuthorizationDecision, EntityFacts, LogicService
from procureflow.models.approval import ApprovalAction, ApprovalRole
from procureflow.services.common import utcnow
from procureflow.telemetry import get_tracer

logger = logging.getLogger(__name__)

_policy = LogicService()


def authorize(actor: Actor, facts: EntityFacts, action: str) -> AuthorizationDecision:
    decision = _policy.decide(actor, facts, action)
    if not decision.allowed:
        logger.info("Denied %s.%s for actor %s: %s", facts.kind, action, actor.id, decision.reason)
        raise Unauthorized(decision.reason or "Not permitted")
    return decision


def service_request_facts(sr) -> EntityFacts:
    return EntityFacts(
        kind="service_request",
        department=sr.department,
        service_category=sr.category.value,
        requester_id=sr.requester_id,
    )


def job_order_facts(jo) -> EntityFacts:
    return EntityFacts(
        kind="job_order",
        department=jo.department,
        service_category=jo.service_category.value,
        requester_id=jo.requester_id,
    )


def require_comments(comments: str | None, what: str) -> str:
    if not comments or not comments.strip():
        raise ValidationFailed(f"Comments are required to {what}")
    return comments.strip()


def has_entry(approvals, role: ApprovalRole | None = None, action: ApprovalAction | None = None, actor_id=None) -> bool:
    for entry in approvals:
        if role is not None and entry.role != role:
            continue
        if action is not None and entry.action != action:
            continue
        if actor_id is not None and entry.actor_id != actor_id:
            continue
        return True
    return False


def ensure_not_recorded(approvals, role: ApprovalRole, action: ApprovalAction, label: str) -> None:
    if has_entry(approvals, role=role, action=action):
        raise DuplicateApproval(f"{role.value.replace('_', ' ').title()} has already {label}")


def record_approval(entity, approval_cls, role: ApprovalRole, action: ApprovalAction, actor: Actor, comments=None):
    """Append to the entity's approval log and touch the entity row.

    Touching ``updated_at`` forces an UPDATE of the parent so its version
    counter is checked even when the status does not change.
    """
    entry = approval_cls(
        role=role,
        action=action,
        actor_id=actor.id,
        actor_name=actor.name,
        comments=comments,
        created_at=utcnow(),
    )
    entity.approvals.append(entry)
    entity.updated_at = utcnow()
    return entry


@contextmanager
def traced(kind: str, action: str, entity_id, actor: Actor):
    tracer = get_tracer(__name__)
    with tracer.start_as_current_span(
        f"{kind}.{action}",
        attributes={
            "workflow.entity": kind,
            "workflow.action": action,
            "workflow.entity_id": str(entity_id) if entity_id else "",
            "workflow.actor_id": actor.id,
        },
    ) as span:
        yield span


def log_transition(kind: str, number, previous, current, actor: Actor) -> None:
    logger.info(
        "%s %s: %s -> %s by %s",
        kind,
        number,
        getattr(previous, "value", previous),
        getattr(current, "value", current),
        actor.id,
    )
