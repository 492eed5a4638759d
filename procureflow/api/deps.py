from fastapi import Header, HTTPException

from procureflow.db import get_db  # noqa: F401
from procureflow.logic.authorization_logic import Actor


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
    x_actor_role: str | None = Header(default=None),
    x_actor_department: str | None = Header(default=None),
) -> Actor:
    """Resolve the acting user from headers set by the upstream identity proxy."""
    if not x_actor_id or not x_actor_role:
        raise HTTPException(status_code=401, detail="Actor headers are required")
    return Actor(
        id=x_actor_id,
        name=x_actor_name or x_actor_id,
        role=x_actor_role.strip().lower(),
        department=x_actor_department,
    )
