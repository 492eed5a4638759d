import os
import sqlite3
import uuid
from dataclasses import dataclass, field

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

load_dotenv(os.path.join(os.getcwd(), ".env"))

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))

# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes  # noqa: E402

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


sqltypes.Uuid.bind_processor = _sqlite_uuid_bind_processor
sqltypes.Uuid.result_processor = _sqlite_uuid_result_processor

from procureflow import models  # noqa: F401,E402
from procureflow.container import container  # noqa: E402
from procureflow.db import Base  # noqa: E402
from procureflow.logic.authorization_logic import Actor  # noqa: E402
from procureflow.models.person import Person, PersonRole  # noqa: E402
from procureflow.models.service_request import ServiceCategory  # noqa: E402
from procureflow.schemas.job_order import (  # noqa: E402
    BudgetApprove,
    CanvassLine,
    CanvassSubmit,
    JobOrderCreate,
    MaterialCreate,
)
from procureflow.schemas.purchase_order import (  # noqa: E402
    PurchaseOrderCreate,
    PurchaseOrderItemCreate,
    PurchaseOrderReceive,
)
from procureflow.schemas.service_request import ServiceRequestCreate  # noqa: E402
from procureflow.services.job_orders import job_orders  # noqa: E402
from procureflow.services.purchase_orders import purchase_orders  # noqa: E402
from procureflow.services.service_requests import service_requests  # noqa: E402


def _resolve_test_database_url() -> str | None:
    raw_url = os.getenv("TEST_DATABASE_URL")
    if not raw_url:
        return None
    url = make_url(raw_url)
    if url.drivername.startswith("postgresql") and url.database != "procureflow_test":
        url = url.set(database="procureflow_test")
    return url.render_as_string(hide_password=False)


@pytest.fixture(scope="session")
def engine():
    database_url = _resolve_test_database_url()
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _configure_sqlite(dbapi_connection, _connection_record):
            # Let SQLAlchemy emit BEGIN itself so SAVEPOINTs work
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _begin_sqlite(conn):
            conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


# ── Notifications ───────────────────────────────────────────────


@dataclass
class RecordingDispatcher:
    calls: list[dict] = field(default_factory=list)

    def notify(self, target_user_ids, type, title, message, link, related_entity_type, related_entity_id):
        self.calls.append(
            {
                "target_user_ids": list(target_user_ids),
                "type": type,
                "title": title,
                "message": message,
                "link": link,
                "related_entity_type": related_entity_type,
                "related_entity_id": related_entity_id,
            }
        )

    def of_type(self, notification_type: str) -> list[dict]:
        return [call for call in self.calls if call["type"] == notification_type]


@pytest.fixture(autouse=True)
def dispatcher():
    recorder = RecordingDispatcher()
    with container.notification_dispatcher.override(recorder):
        yield recorder


# ── Actors ──────────────────────────────────────────────────────


@pytest.fixture()
def requester():
    return Actor(id="user-requester", name="Rita Requester", role="requester", department="IT")


@pytest.fixture()
def it_head():
    return Actor(id="user-it-head", name="Ivan IT Head", role="approver", department="IT")


@pytest.fixture()
def maintenance_head():
    return Actor(id="user-maint-head", name="Mia Maintenance", role="approver", department="Maintenance")


@pytest.fixture()
def operations():
    return Actor(id="user-ops", name="Omar Operations", role="requester", department="Operations")


@pytest.fixture()
def finance_approver():
    return Actor(id="user-finance", name="Fay Finance", role="approver", department="Finance")


@pytest.fixture()
def president():
    return Actor(id="user-president", name="Pat President", role="approver", department="President")


@pytest.fixture()
def purchasing_approver():
    return Actor(id="user-purchasing", name="Paula Purchasing", role="approver", department="Purchasing")


@pytest.fixture()
def admin():
    return Actor(id="user-admin", name="Ada Admin", role="admin", department="Administration")


def _unique_email() -> str:
    return f"test-{uuid.uuid4().hex}@example.com"


@pytest.fixture()
def directory(db_session):
    """People the notification recipient rules resolve against."""
    entries = {
        "it_head": ("Ivan IT Head", PersonRole.approver, "IT"),
        "finance": ("Fay Finance", PersonRole.approver, "Finance"),
        "president": ("Pat President", PersonRole.approver, "President"),
        "purchasing": ("Paula Purchasing", PersonRole.approver, "Purchasing"),
    }
    people = {}
    for key, (name, role, department) in entries.items():
        person = Person(name=name, email=_unique_email(), role=role, department=department)
        db_session.add(person)
        people[key] = person
    db_session.commit()
    return {key: str(person.id) for key, person in people.items()}


# ── Workflow builders ───────────────────────────────────────────


@pytest.fixture()
def make_service_request(db_session, requester):
    def _make(category=ServiceCategory.technical_support, department="IT", submit=True, actor=None):
        return service_requests.create(
            db_session,
            ServiceRequestCreate(
                department=department,
                category=category,
                description="Replace the failing core switch",
                location="Server room",
                submit=submit,
            ),
            actor or requester,
        )

    return _make


@pytest.fixture()
def approved_service_request(db_session, make_service_request, it_head):
    sr = make_service_request()
    return service_requests.approve(db_session, sr.id, it_head)


def _material_lines():
    return [
        MaterialCreate(item="Network switch", quantity=2, unit="pcs"),
        MaterialCreate(item="Patch cable", quantity=10, unit="pcs"),
    ]


@pytest.fixture()
def requisition(db_session, approved_service_request, it_head):
    """Material requisition waiting for canvass."""
    return job_orders.create(
        db_session,
        JobOrderCreate(
            service_request_id=approved_service_request.id,
            type="material_requisition",
            materials=_material_lines(),
        ),
        it_head,
    )


@pytest.fixture()
def canvassed_requisition(db_session, requisition, purchasing_approver):
    prices = {"Network switch": "1250.00", "Patch cable": "4.50"}
    lines = [CanvassLine(material_id=m.id, unit_price=prices[m.item]) for m in requisition.materials]
    return job_orders.submit_canvass(db_session, requisition.id, CanvassSubmit(lines=lines), purchasing_approver)


@pytest.fixture()
def budget_cleared_requisition(db_session, canvassed_requisition, finance_approver, president):
    job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(budget_source="Capex"), finance_approver)
    return job_orders.approve_budget(db_session, canvassed_requisition.id, BudgetApprove(), president)


@pytest.fixture()
def approved_requisition(db_session, budget_cleared_requisition, president):
    return job_orders.approve(db_session, budget_cleared_requisition.id, president)


def _purchase_lines():
    return [
        PurchaseOrderItemCreate(item="Network switch", quantity=2, unit_price="1250.00", supplier_name="Acme Supply"),
        PurchaseOrderItemCreate(item="Patch cable", quantity=10, unit_price="4.50", supplier_name="Acme Supply"),
    ]


@pytest.fixture()
def draft_purchase_order(db_session, approved_requisition, purchasing_approver):
    return purchase_orders.create(
        db_session,
        PurchaseOrderCreate(job_order_id=approved_requisition.id, tax="150.00", items=_purchase_lines()),
        purchasing_approver,
    )


@pytest.fixture()
def purchase_lines():
    return _purchase_lines


@pytest.fixture()
def received_purchase_order(db_session, draft_purchase_order, purchasing_approver, president):
    po_id = draft_purchase_order.id
    purchase_orders.submit(db_session, po_id, purchasing_approver)
    purchase_orders.approve(db_session, po_id, president)
    purchase_orders.mark_purchased(db_session, po_id, purchasing_approver)
    return purchase_orders.mark_received(db_session, po_id, PurchaseOrderReceive(), purchasing_approver)
