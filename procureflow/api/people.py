from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from procureflow.api.deps import get_db
from procureflow.schemas.common import ListResponse
from procureflow.schemas.person import PersonCreate, PersonRead, PersonUpdate
from procureflow.services.people import people
from procureflow.services.response import list_response

router = APIRouter(prefix="/people", tags=["people"])


@router.post("", response_model=PersonRead, status_code=status.HTTP_201_CREATED)
def create_person(payload: PersonCreate, db: Session = Depends(get_db)):
    return people.create(db, payload)


@router.get("", response_model=ListResponse[PersonRead])
def list_people(
    role: str | None = None,
    department: str | None = None,
    is_active: bool | None = None,
    order_by: str = Query(default="name"),
    order_dir: str = Query(default="asc", pattern="^(asc|desc)$"),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: Session = Depends(get_db),
):
    items = people.list(
        db,
        role=role,
        department=department,
        is_active=is_active,
        order_by=order_by,
        order_dir=order_dir,
        limit=limit,
        offset=offset,
    )
    return list_response(items, limit, offset)


@router.get("/{person_id}", response_model=PersonRead)
def get_person(person_id: str, db: Session = Depends(get_db)):
    return people.get(db, person_id)


@router.patch("/{person_id}", response_model=PersonRead)
def update_person(person_id: str, payload: PersonUpdate, db: Session = Depends(get_db)):
    return people.update(db, person_id, payload)
