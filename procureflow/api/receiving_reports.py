from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from procureflow.api.deps import get_actor, get_db
from procureflow.logic.authorization_logic import Actor
from procureflow.schemas.common import ListResponse
from procureflow.schemas.receiving_report import ReceivingReportCreate, ReceivingReportRead, ReceivingReportUpdate
from procureflow.services.receiving_reports import receiving_reports
from procureflow.services.response import list_response

router = APIRouter(prefix="/receiving-reports", tags=["receiving-reports"])


@router.post("", response_model=ReceivingReportRead, status_code=status.HTTP_201_CREATED)
def create_receiving_report(
    payload: ReceivingReportCreate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return receiving_reports.create(db, payload, actor)


@router.get("", response_model=ListResponse[ReceivingReportRead])
def list_receiving_reports(
    status_filter: str | None = Query(default=None, alias="status"),
    purchase_order_id: str | None = None,
    order_by: str = Query(default="created_at"),
    order_dir: str = Query(default="desc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = receiving_reports.list(
        db,
        status=status_filter,
        purchase_order_id=purchase_order_id,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/{report_id}", response_model=ReceivingReportRead)
def get_receiving_report(report_id: str, db: Session = Depends(get_db)):
    return receiving_reports.get(db, report_id)


@router.patch("/{report_id}", response_model=ReceivingReportRead)
def update_receiving_report(
    report_id: str,
    payload: ReceivingReportUpdate,
    db: Session = Depends(get_db),
    actor: Actor = Depends(get_actor),
):
    return receiving_reports.update(db, report_id, payload, actor)


@router.post("/{report_id}/submit", response_model=ReceivingReportRead)
def submit_receiving_report(report_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return receiving_reports.submit(db, report_id, actor)


@router.post("/{report_id}/complete", response_model=ReceivingReportRead)
def complete_receiving_report(report_id: str, db: Session = Depends(get_db), actor: Actor = Depends(get_actor)):
    return receiving_reports.complete(db, report_id, actor)
