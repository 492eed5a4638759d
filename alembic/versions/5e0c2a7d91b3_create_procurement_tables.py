"""create procurement tables

Revision ID: 5e0c2a7d91b3
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = "5e0c2a7d91b3"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    enum_type = postgresql.ENUM(*values, name=name, create_type=False)
    enum_type.create(op.get_bind(), checkfirst=True)
    return enum_type


def _approval_log(table: str, parent_column: str, parent_table: str, role, action) -> None:
    op.create_table(
        table,
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column(parent_column, postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("role", role, nullable=False),
        sa.Column("action", action, nullable=False),
        sa.Column("actor_id", sa.String(120), nullable=False),
        sa.Column("actor_name", sa.String(160), nullable=False),
        sa.Column("comments", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint([parent_column], [f"{parent_table}.id"]),
        sa.UniqueConstraint(parent_column, "role", "action", name=f"uq_{table}_role_action"),
    )
    op.create_index(f"ix_{table}_{parent_column}", table, [parent_column])


def upgrade() -> None:
    person_role = _enum("personrole", "requester", "approver", "finance", "admin", "super_admin")
    category = _enum(
        "servicecategory",
        "technical_support", "facility_maintenance", "account_billing_inquiry", "general_inquiry", "other",
    )
    priority = _enum("priority", "low", "medium", "high", "urgent")
    sr_status = _enum("servicerequeststatus", "draft", "submitted", "approved", "rejected")
    jo_type = _enum("jobordertype", "service", "material_requisition")
    jo_status = _enum(
        "joborderstatus",
        "draft", "pending_canvass", "budget_cleared", "approved", "in_progress", "completed", "closed", "rejected",
    )
    material_source = _enum("materialsource", "purchase", "in_house")
    transfer_status = _enum("transferitemstatus", "pending", "partial", "completed")
    po_status = _enum(
        "purchaseorderstatus", "draft", "submitted", "approved", "rejected", "purchased", "received", "closed"
    )
    rr_status = _enum("receivingreportstatus", "draft", "submitted", "completed")
    approval_role = _enum(
        "approvalrole", "department_head", "operations", "finance", "management", "purchasing", "supplier"
    )
    approval_action = _enum(
        "approvalaction",
        "prepared", "reviewed", "noted", "submitted", "approved", "rejected",
        "budget_approved", "budget_rejected", "canvass_completed",
    )
    notification_type = _enum(
        "notificationtype",
        "service_request_submitted", "service_request_approved", "service_request_rejected",
        "job_order_created", "job_order_needs_approval", "job_order_approved", "job_order_rejected",
        "job_order_status_changed", "job_order_budget_approved", "job_order_budget_rejected",
        "purchase_order_created", "purchase_order_needs_approval", "purchase_order_approved",
        "purchase_order_rejected", "purchase_order_status_changed", "receiving_report_created",
        "receiving_report_status_changed", "job_order_transfer_updated", "job_order_transfer_completed",
    )
    related_entity = _enum(
        "relatedentitytype", "service_request", "job_order", "purchase_order", "receiving_report"
    )

    op.create_table(
        "document_sequences",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("key", sa.String(120), nullable=False, unique=True),
        sa.Column("next_value", sa.Integer(), nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "people",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("name", sa.String(160), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("role", person_role, nullable=False, server_default=sa.text("'requester'")),
        sa.Column("department", sa.String(120), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_people_role_department", "people", ["role", "department"])

    op.create_table(
        "service_requests",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("number", sa.String(40), nullable=False),
        sa.Column("requester_id", sa.String(120), nullable=False),
        sa.Column("requester_name", sa.String(160), nullable=False),
        sa.Column("requester_email", sa.String(255), nullable=True),
        sa.Column("contact_number", sa.String(40), nullable=True),
        sa.Column("department", sa.String(120), nullable=False),
        sa.Column("category", category, nullable=False),
        sa.Column("priority", priority, nullable=False, server_default=sa.text("'medium'")),
        sa.Column("status", sr_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("requested_completion_date", sa.Date(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.UniqueConstraint("number", name="uq_service_requests_number"),
    )
    op.create_index("ix_service_requests_status", "service_requests", ["status"])
    op.create_index("ix_service_requests_department", "service_requests", ["department"])

    op.create_table(
        "job_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("number", sa.String(40), nullable=False),
        sa.Column("service_request_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", jo_type, nullable=False),
        sa.Column("status", jo_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("department", sa.String(120), nullable=False),
        sa.Column("service_category", category, nullable=False),
        sa.Column("priority", priority, nullable=False, server_default=sa.text("'medium'")),
        sa.Column("requester_id", sa.String(120), nullable=False),
        sa.Column("requester_name", sa.String(160), nullable=False),
        sa.Column("contact_person", sa.String(160), nullable=True),
        sa.Column("work_description", sa.Text(), nullable=False),
        sa.Column("location", sa.String(255), nullable=True),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("target_start_date", sa.Date(), nullable=True),
        sa.Column("target_completion_date", sa.Date(), nullable=True),
        sa.Column("created_by_id", sa.String(120), nullable=False),
        sa.Column("created_by_name", sa.String(160), nullable=False),
        sa.Column("assigned_unit", sa.String(160), nullable=True),
        sa.Column("supervisor_in_charge", sa.String(160), nullable=True),
        sa.Column("supervisor_department", sa.String(120), nullable=True),
        sa.Column("outsource", sa.String(160), nullable=True),
        sa.Column("outsource_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("estimated_total_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("budget_source", sa.String(160), nullable=True),
        sa.Column("cost_center", sa.String(120), nullable=True),
        sa.Column("transfer_completed", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("transfer_completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transfer_completed_by", sa.String(160), nullable=True),
        sa.Column("transfer_notes", sa.Text(), nullable=True),
        sa.Column("actual_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_completion_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("work_completion_notes", sa.Text(), nullable=True),
        sa.Column("service_accepted_by", sa.String(160), nullable=True),
        sa.Column("date_accepted", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["service_request_id"], ["service_requests.id"]),
        sa.UniqueConstraint("number", name="uq_job_orders_number"),
        sa.UniqueConstraint("service_request_id", name="uq_job_orders_service_request_id"),
    )
    op.create_index("ix_job_orders_status", "job_orders", ["status"])
    op.create_index("ix_job_orders_department", "job_orders", ["department"])

    op.create_table(
        "job_order_materials",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("job_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("estimated_cost", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("source", material_source, nullable=False, server_default=sa.text("'purchase'")),
        sa.ForeignKeyConstraint(["job_order_id"], ["job_orders.id"]),
    )
    op.create_index("ix_job_order_materials_job_order_id", "job_order_materials", ["job_order_id"])

    op.create_table(
        "job_order_milestones",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("job_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("activity", sa.String(200), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=True),
        sa.Column("end_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["job_order_id"], ["job_orders.id"]),
    )

    op.create_table(
        "purchase_orders",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("number", sa.String(40), nullable=False),
        sa.Column("job_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", po_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("department", sa.String(120), nullable=False),
        sa.Column("requested_by", sa.String(160), nullable=False),
        sa.Column("created_by_id", sa.String(120), nullable=False),
        sa.Column("created_by_name", sa.String(160), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("tax", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivery_notes", sa.Text(), nullable=True),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("purchased_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("received_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["job_order_id"], ["job_orders.id"]),
        sa.UniqueConstraint("number", name="uq_purchase_orders_number"),
        sa.UniqueConstraint("job_order_id", name="uq_purchase_orders_job_order_id"),
    )
    op.create_index("ix_purchase_orders_status", "purchase_orders", ["status"])

    op.create_table(
        "purchase_order_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("purchase_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("supplier_name", sa.String(200), nullable=False),
        sa.Column("supplier_contact", sa.String(160), nullable=True),
        sa.Column("supplier_address", sa.Text(), nullable=True),
        sa.Column("expected_delivery_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
    )
    op.create_index("ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"])

    op.create_table(
        "job_order_transfer_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("job_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("purchase_order_item_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("transferred_quantity", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("status", transfer_status, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("transfer_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transferred_by", sa.String(160), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["job_order_id"], ["job_orders.id"]),
        sa.ForeignKeyConstraint(["purchase_order_item_id"], ["purchase_order_items.id"]),
    )

    op.create_table(
        "receiving_reports",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("number", sa.String(40), nullable=False),
        sa.Column("purchase_order_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", rr_status, nullable=False, server_default=sa.text("'draft'")),
        sa.Column("supplier_name", sa.String(200), nullable=True),
        sa.Column("received_by_id", sa.String(120), nullable=False),
        sa.Column("received_by", sa.String(160), nullable=False),
        sa.Column("actual_delivery_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("delivery_notes", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("submitted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["purchase_order_id"], ["purchase_orders.id"]),
        sa.UniqueConstraint("number", name="uq_receiving_reports_number"),
        sa.UniqueConstraint("purchase_order_id", name="uq_receiving_reports_purchase_order_id"),
    )

    op.create_table(
        "receiving_report_items",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("receiving_report_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("purchase_order_item_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("item", sa.String(200), nullable=False),
        sa.Column("unit", sa.String(40), nullable=True),
        sa.Column("ordered_quantity", sa.Integer(), nullable=False),
        sa.Column("received_quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False, server_default=sa.text("0")),
        sa.Column("condition_notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["receiving_report_id"], ["receiving_reports.id"]),
        sa.ForeignKeyConstraint(["purchase_order_item_id"], ["purchase_order_items.id"]),
    )

    _approval_log("service_request_approvals", "service_request_id", "service_requests", approval_role, approval_action)
    _approval_log("job_order_approvals", "job_order_id", "job_orders", approval_role, approval_action)
    _approval_log(
        "purchase_order_approvals", "purchase_order_id", "purchase_orders", approval_role, approval_action
    )

    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text("gen_random_uuid()")),
        sa.Column("recipient_id", sa.String(120), nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("link", sa.String(500), nullable=True),
        sa.Column("related_entity_type", related_entity, nullable=True),
        sa.Column("related_entity_id", sa.String(120), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "is_read"])
    op.create_index(
        "ix_notifications_related_entity", "notifications", ["related_entity_type", "related_entity_id"]
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_related_entity", table_name="notifications")
    op.drop_index("ix_notifications_recipient_read", table_name="notifications")
    op.drop_table("notifications")
    for table, parent_column in (
        ("purchase_order_approvals", "purchase_order_id"),
        ("job_order_approvals", "job_order_id"),
        ("service_request_approvals", "service_request_id"),
    ):
        op.drop_index(f"ix_{table}_{parent_column}", table_name=table)
        op.drop_table(table)
    op.drop_table("receiving_report_items")
    op.drop_table("receiving_reports")
    op.drop_table("job_order_transfer_items")
    op.drop_index("ix_purchase_order_items_purchase_order_id", table_name="purchase_order_items")
    op.drop_table("purchase_order_items")
    op.drop_index("ix_purchase_orders_status", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_table("job_order_milestones")
    op.drop_index("ix_job_order_materials_job_order_id", table_name="job_order_materials")
    op.drop_table("job_order_materials")
    op.drop_index("ix_job_orders_department", table_name="job_orders")
    op.drop_index("ix_job_orders_status", table_name="job_orders")
    op.drop_table("job_orders")
    op.drop_index("ix_service_requests_department", table_name="service_requests")
    op.drop_index("ix_service_requests_status", table_name="service_requests")
    op.drop_table("service_requests")
    op.drop_index("ix_people_role_department", table_name="people")
    op.drop_table("people")
    op.drop_table("document_sequences")

    for type_name in (
        "relatedentitytype",
        "notificationtype",
        "approvalaction",
        "approvalrole",
        "receivingreportstatus",
        "purchaseorderstatus",
        "transferitemstatus",
        "materialsource",
        "joborderstatus",
        "jobordertype",
        "servicerequeststatus",
        "priority",
        "servicecategory",
        "personrole",
    ):
        op.execute(f"DROP TYPE IF EXISTS {type_name}")
