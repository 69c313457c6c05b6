"""create subjects, recurrence_rules and occurrences

Revision ID: 0001_create_schedule_tables
Revises:
"""
from alembic import op
import sqlalchemy as sa

from classtrack.db.base import GUID, JSONB

revision = "0001_create_schedule_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "subjects",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("color", sa.String(7), nullable=False, server_default="#3B82F6"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_subjects"),
        sa.UniqueConstraint("user_id", "name", name="uq_subjects_user_name"),
        comment="Subjects a user attends classes for.",
    )
    op.create_index("ix_subjects_user_id", "subjects", ["user_id"])

    op.create_table(
        "recurrence_rules",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("subject_id", GUID(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("weekdays", JSONB(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_recurrence_rules"),
        sa.ForeignKeyConstraint(
            ["subject_id"], ["subjects.id"],
            name="fk_recurrence_rules_subject_id_subjects", ondelete="CASCADE",
        ),
        sa.UniqueConstraint("user_id", "subject_id", "position", name="uq_recurrence_rules_slot"),
        comment="Weekly recurrence of one time slot of a subject.",
    )
    op.create_index("ix_recurrence_rules_user_id", "recurrence_rules", ["user_id"])
    op.create_index("ix_recurrence_rules_subject_id", "recurrence_rules", ["subject_id"])

    op.create_table(
        "occurrences",
        sa.Column("id", GUID(), nullable=False),
        sa.Column("user_id", GUID(), nullable=False),
        sa.Column("subject_id", GUID(), nullable=False),
        sa.Column("rule_id", GUID(), nullable=True),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(5), nullable=False),
        sa.Column("end_time", sa.String(5), nullable=False),
        sa.Column("status", sa.String(16), nullable=False, server_default="pending"),
        sa.Column("marked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name="pk_occurrences"),
        sa.ForeignKeyConstraint(
            ["subject_id"], ["subjects.id"],
            name="fk_occurrences_subject_id_subjects", ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["rule_id"], ["recurrence_rules.id"],
            name="fk_occurrences_rule_id_recurrence_rules", ondelete="SET NULL",
        ),
        sa.UniqueConstraint("user_id", "subject_id", "date", "start_time", name="uq_occurrences_slot"),
        sa.CheckConstraint(
            "status IN ('pending', 'attended', 'missed', 'cancelled')",
            name="ck_occurrences_status_valid",
        ),
        comment="Materialized, dated class instances.",
    )
    op.create_index("ix_occurrences_subject_id", "occurrences", ["subject_id"])
    op.create_index("ix_occurrences_user_date", "occurrences", ["user_id", "date"])
    op.create_index("ix_occurrences_rule_date_status", "occurrences", ["rule_id", "date", "status"])


def downgrade() -> None:
    op.drop_index("ix_occurrences_rule_date_status", table_name="occurrences")
    op.drop_index("ix_occurrences_user_date", table_name="occurrences")
    op.drop_index("ix_occurrences_subject_id", table_name="occurrences")
    op.drop_table("occurrences")
    op.drop_index("ix_recurrence_rules_subject_id", table_name="recurrence_rules")
    op.drop_index("ix_recurrence_rules_user_id", table_name="recurrence_rules")
    op.drop_table("recurrence_rules")
    op.drop_index("ix_subjects_user_id", table_name="subjects")
    op.drop_table("subjects")
