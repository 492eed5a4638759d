from sqlalchemy.orm import Session

from procureflow.errors import InvalidState, commit_or_conflict
from procureflow.models.person import Person, PersonRole
from procureflow.schemas.person import PersonCreate, PersonUpdate
from procureflow.services.common import apply_ordering, apply_pagination, get_or_404, validate_enum
from procureflow.services.response import ListResponseMixin


class People(ListResponseMixin):
    @staticmethod
    def create(db: Session, payload: PersonCreate) -> Person:
        email = payload.email.strip().lower()
        if db.query(Person.id).filter(Person.email == email).first():
            raise InvalidState(f"A person with email {email} already exists")
        person = Person(
            name=payload.name.strip(),
            email=email,
            role=payload.role,
            department=payload.department,
        )
        db.add(person)
        commit_or_conflict(db)
        db.refresh(person)
        return person

    @staticmethod
    def get(db: Session, person_id: str) -> Person:
        return get_or_404(db, Person, person_id, detail="Person not found")

    @staticmethod
    def list(
        db: Session,
        role: str | None = None,
        department: str | None = None,
        is_active: bool | None = None,
        order_by: str = "name",
        order_dir: str = "asc",
        limit: int = 50,
        offset: int = 0,
    ):
        query = db.query(Person)
        if role:
            query = query.filter(Person.role == validate_enum(role, PersonRole, "role"))
        if department:
            query = query.filter(Person.department == department)
        if is_active is not None:
            query = query.filter(Person.is_active.is_(is_active))
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"name": Person.name, "created_at": Person.created_at, "department": Person.department},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def update(db: Session, person_id: str, payload: PersonUpdate) -> Person:
        person = People.get(db, person_id)
        for key, value in payload.model_dump(exclude_unset=True).items():
            if value is None and key in ("name", "role", "is_active"):
                continue
            setattr(person, key, value)
        commit_or_conflict(db)
        db.refresh(person)
        return person


people = People()
