from datetime import UTC, datetime

from sqlalchemy.orm import Session

from procureflow.config import settings
from procureflow.models.sequence import DocumentSequence

SEQUENCE_PREFIXES = {
    "service_request_number": lambda: settings.sr_number_prefix,
    "job_order_number": lambda: settings.jo_number_prefix,
    "purchase_order_number": lambda: settings.po_number_prefix,
    "receiving_report_number": lambda: settings.rr_number_prefix,
}


def _format_number(prefix: str | None, padding: int | None, value: int) -> str:
    prefix_value = prefix or ""
    pad = max(int(padding or 0), 0)
    if pad > 0:
        return f"{prefix_value}{value:0{pad}d}"
    return f"{prefix_value}{value}"


def _resolve_dynamic_prefix(prefix: str | None, now: datetime | None = None) -> tuple[str, bool]:
    if not prefix:
        return "", False
    now = now or datetime.now(UTC)
    tokens = {
        "{YYYYMMDD}": now.strftime("%Y%m%d"),
        "{YYYYMM}": now.strftime("%Y%m"),
        "{YYYY}": now.strftime("%Y"),
        "{MM}": now.strftime("%m"),
        "{DD}": now.strftime("%d"),
    }
    rendered = prefix
    dynamic = False
    for token, value in tokens.items():
        if token in rendered:
            rendered = rendered.replace(token, value)
            dynamic = True
    return rendered, dynamic


def _next_sequence_value(db: Session, key: str, start_value: int) -> int:
    sequence = db.query(DocumentSequence).filter(DocumentSequence.key == key).with_for_update().first()
    if not sequence:
        sequence = DocumentSequence(key=key, next_value=start_value)
        db.add(sequence)
        db.flush()
    value = sequence.next_value
    sequence.next_value = value + 1
    db.flush()
    return value


def generate_number(
    db: Session,
    sequence_key: str,
    prefix_template: str | None = None,
    padding: int | None = None,
    start_value: int | None = None,
) -> str:
    if prefix_template is None:
        prefix_template = SEQUENCE_PREFIXES[sequence_key]()
    if padding is None:
        padding = settings.document_number_padding
    if start_value is None:
        start_value = settings.document_number_start
    prefix, has_dynamic_prefix = _resolve_dynamic_prefix(prefix_template)
    effective_sequence_key = f"{sequence_key}:{prefix}" if has_dynamic_prefix else sequence_key
    value = _next_sequence_value(db, effective_sequence_key, start_value)
    return _format_number(prefix, padding, value)

