import enum
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from fastapi import HTTPException
from sqlalchemy.orm import Session

from procureflow.errors import ValidationFailed
from procureflow.logic.workflow_logic import round_money as _round_money


def utcnow() -> datetime:
    return datetime.now(UTC)


def coerce_uuid(value) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise HTTPException(status_code=404, detail="Not found") from exc


def get_or_404(db: Session, model, item_id, detail: str | None = None, options=None):
    query = db.query(model)
    if options:
        query = query.options(*options)
    obj = query.filter(model.id == coerce_uuid(item_id)).first()
    if not obj:
        raise HTTPException(status_code=404, detail=detail or f"{model.__name__} not found")
    return obj


def validate_enum(value, enum_cls: type[enum.Enum], field: str):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        raise ValidationFailed(f"Invalid {field}: {value}") from exc


def apply_ordering(query, order_by: str, order_dir: str, allowed: dict):
    if order_by not in allowed:
        raise ValidationFailed(f"Invalid order_by. Allowed: {', '.join(sorted(allowed))}")
    column = allowed[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit: int, offset: int):
    return query.limit(limit).offset(offset)


def round_money(value) -> Decimal:
    return _round_money(value)
