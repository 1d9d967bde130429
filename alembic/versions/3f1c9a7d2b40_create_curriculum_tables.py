"""create curriculum tables

Revision ID: 3f1c9a7d2b40
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f1c9a7d2b40"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Create careers, career_plans, subjects, career_subjects and prerequisites."""
    op.create_table(
        "careers",
        sa.Column("careerid", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("facultyid", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("careerid", name="pk_careers"),
    )
    op.create_index("ix_careers_facultyid", "careers", ["facultyid"], unique=False)

    op.create_table(
        "career_plans",
        sa.Column("careerid", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("plan_id", sa.String(length=50), nullable=False),
        sa.Column("plan_year", sa.String(length=10), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["careerid"],
            ["careers.careerid"],
            name="fk_career_plans_careerid",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("careerid", name="pk_career_plans"),
    )

    op.create_table(
        "subjects",
        sa.Column("subjectid", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("code", sa.String(length=50), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("subjectid", name="pk_subjects"),
        sa.UniqueConstraint("code", name="uq_subjects_code"),
    )

    op.create_table(
        "career_subjects",
        sa.Column("careerid", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("subjectid", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column("suggested_year", sa.Integer(), nullable=False),
        sa.Column("suggested_quarter", sa.Integer(), nullable=False),
        sa.Column("is_optional", sa.Boolean(), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["careerid"],
            ["careers.careerid"],
            name="fk_career_subjects_careerid",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["subjectid"],
            ["subjects.subjectid"],
            name="fk_career_subjects_subjectid",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("careerid", "subjectid", name="pk_career_subjects"),
    )

    op.create_table(
        "prerequisites",
        sa.Column("subjectid", sa.Integer(), autoincrement=False, nullable=False),
        sa.Column(
            "prerequisite_subjectid", sa.Integer(), autoincrement=False, nullable=False
        ),
        sa.Column("careerid", sa.Integer(), autoincrement=False, nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(
            ["subjectid"],
            ["subjects.subjectid"],
            name="fk_prerequisites_subjectid",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["prerequisite_subjectid"],
            ["subjects.subjectid"],
            name="fk_prerequisites_prerequisite_subjectid",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["careerid"],
            ["careers.careerid"],
            name="fk_prerequisites_careerid",
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint(
            "subjectid",
            "prerequisite_subjectid",
            "careerid",
            name="pk_prerequisites",
        ),
        sa.CheckConstraint(
            "subjectid <> prerequisite_subjectid", name="ck_prerequisites_not_self"
        ),
    )


def downgrade() -> None:
    """Drop the curriculum tables."""
    # Link tables first due to foreign keys
    op.drop_table("prerequisites")
    op.drop_table("career_subjects")
    op.drop_table("subjects")
    op.drop_table("career_plans")
    op.drop_index("ix_careers_facultyid", table_name="careers")
    op.drop_table("careers")
