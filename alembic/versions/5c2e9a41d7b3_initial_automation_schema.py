"""initial automation schema

Revision ID: 5c2e9a41d7b3
Revises:
Create Date: 2026-10-19 09:12:40.511203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '5c2e9a41d7b3'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def base_columns():
    return [
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
    ]


def tenant_column():
    return sa.Column("tenant_id", sa.String(36), sa.ForeignKey("tenants.id"), nullable=False)


def base_indexes(table: str, with_tenant: bool = True):
    columns = ["id", "created_at", "is_deleted"] + (["tenant_id"] if with_tenant else [])
    for column in columns:
        op.create_index(f"ix_{table}_{column}", table, [column])


def upgrade() -> None:
    op.create_table(
        "tenants",
        *base_columns(),
        sa.Column("school_code", sa.String(10), nullable=False, unique=True),
        sa.Column("school_name", sa.String(200), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    base_indexes("tenants", with_tenant=False)
    op.create_index("ix_tenants_school_code", "tenants", ["school_code"])
    op.create_index("ix_tenants_school_name", "tenants", ["school_name"])
    op.create_index("idx_tenant_active_code", "tenants", ["is_active", "school_code"])

    op.create_table(
        "parents",
        *base_columns(),
        tenant_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100)),
        sa.Column("phone", sa.String(20)),
        sa.Column("children_ids", sa.JSON(), nullable=False),
    )
    base_indexes("parents")
    op.create_index("ix_parents_name", "parents", ["name"])
    op.create_index("ix_parents_email", "parents", ["email"])

    op.create_table(
        "classes",
        *base_columns(),
        tenant_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("maximum_students", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("classroom", sa.String(50)),
        sa.Column("is_active", sa.Boolean(), server_default=sa.true()),
        sa.Column("subject_ids", sa.JSON(), nullable=False),
        sa.UniqueConstraint("tenant_id", "name", name="uq_class_identity"),
    )
    base_indexes("classes")
    op.create_index("ix_classes_name", "classes", ["name"])

    op.create_table(
        "subjects",
        *base_columns(),
        tenant_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("code", sa.String(20)),
        sa.UniqueConstraint("tenant_id", "name", name="uq_subject_name"),
    )
    base_indexes("subjects")
    op.create_index("ix_subjects_name", "subjects", ["name"])

    op.create_table(
        "teachers",
        *base_columns(),
        tenant_column(),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100)),
        sa.Column("subject", sa.String(100)),
        sa.Column("experience_years", sa.Integer()),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("class_ids", sa.JSON(), nullable=False),
    )
    base_indexes("teachers")
    for column in ("name", "email", "subject"):
        op.create_index(f"ix_teachers_{column}", "teachers", [column])

    op.create_table(
        "students",
        *base_columns(),
        tenant_column(),
        sa.Column("class_id", sa.String(36), sa.ForeignKey("classes.id"), nullable=True),
        sa.Column("parent_id", sa.String(36), sa.ForeignKey("parents.id"), nullable=True),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(100)),
        sa.Column("age", sa.Integer()),
        sa.Column("grade_level", sa.Integer()),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
    )
    base_indexes("students")
    for column in ("class_id", "parent_id", "name", "email"):
        op.create_index(f"ix_students_{column}", "students", [column])

    op.create_table(
        "automation_suggestions",
        *base_columns(),
        tenant_column(),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("target_entity_type", sa.String(20)),
        sa.Column("suggestion_type", sa.String(30), nullable=False),
        sa.Column("suggestion_data", sa.JSON(), nullable=False),
        sa.Column("confidence_score", sa.Float(), nullable=False),
        sa.Column("accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("applied_at", sa.DateTime(timezone=True)),
    )
    base_indexes("automation_suggestions")
    op.create_index(
        "idx_suggestion_entity", "automation_suggestions",
        ["tenant_id", "entity_type", "entity_id", "suggestion_type"],
    )
    op.create_index(
        "idx_suggestion_confidence", "automation_suggestions",
        ["tenant_id", "accepted", "confidence_score"],
    )

    op.create_table(
        "workflow_executions",
        *base_columns(),
        tenant_column(),
        sa.Column("workflow_type", sa.String(30), nullable=False),
        sa.Column("trigger_data", sa.JSON(), nullable=False),
        sa.Column("execution_status", sa.String(20), nullable=False, server_default="running"),
        sa.Column("steps_completed", sa.JSON(), nullable=False),
        sa.Column("result_data", sa.JSON()),
        sa.Column("error_message", sa.Text()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    base_indexes("workflow_executions")
    op.create_index("ix_workflow_executions_workflow_type", "workflow_executions", ["workflow_type"])
    op.create_index("ix_workflow_executions_execution_status", "workflow_executions", ["execution_status"])

    op.create_table(
        "bulk_operations",
        *base_columns(),
        tenant_column(),
        sa.Column("operation_type", sa.String(50), nullable=False),
        sa.Column("entity_type", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending"),
        sa.Column("total_records", sa.Integer(), nullable=False),
        sa.Column("successful_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("failed_records", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("operation_data", sa.JSON()),
        sa.Column("created_by", sa.String(36)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
    )
    base_indexes("bulk_operations")
    for column in ("operation_type", "status", "created_by"):
        op.create_index(f"ix_bulk_operations_{column}", "bulk_operations", [column])


def downgrade() -> None:
    for table in (
        "bulk_operations", "workflow_executions", "automation_suggestions",
        "students", "teachers", "subjects", "classes", "parents", "tenants",
    ):
        op.drop_table(table)
