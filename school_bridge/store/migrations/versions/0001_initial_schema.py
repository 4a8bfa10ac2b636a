"""Initial schema — create the five school tables.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Tables created (parents first):
  teachers
  classes
  subjects
  students
  enrollments

Foreign keys have no ON DELETE action; the dependency resolver applies
delete policy.
"""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # ── teachers ──────────────────────────────────────────────
    op.create_table(
        "teachers",
        sa.Column("teacher_id",   sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name",   sa.String(100), nullable=False),
        sa.Column("last_name",    sa.String(100), nullable=False),
        sa.Column("email",        sa.String(255), nullable=True, unique=True),
        sa.Column("phone_number", sa.String(32),  nullable=True),
        sa.Column("hire_date",    sa.Date(),      nullable=True),
    )

    # ── classes ───────────────────────────────────────────────
    op.create_table(
        "classes",
        sa.Column("class_id",    sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("class_name",  sa.String(100), nullable=False),
        sa.Column("teacher_id",  sa.Integer(),
                  sa.ForeignKey("teachers.teacher_id"), nullable=True),
        sa.Column("room_number", sa.String(32), nullable=True),
    )
    op.create_index("ix_classes_teacher_id", "classes", ["teacher_id"])

    # ── subjects ──────────────────────────────────────────────
    op.create_table(
        "subjects",
        sa.Column("subject_id",   sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("subject_name", sa.String(100), nullable=False),
        sa.Column("credits",      sa.Integer(),   nullable=True),
        sa.Column("teacher_id",   sa.Integer(),
                  sa.ForeignKey("teachers.teacher_id"), nullable=True),
    )
    op.create_index("ix_subjects_teacher_id", "subjects", ["teacher_id"])

    # ── students ──────────────────────────────────────────────
    op.create_table(
        "students",
        sa.Column("student_id",    sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("first_name",    sa.String(100), nullable=False),
        sa.Column("last_name",     sa.String(100), nullable=False),
        sa.Column("date_of_birth", sa.Date(),      nullable=True),
        sa.Column("gender",        sa.String(1),   nullable=True),
        sa.Column("email",         sa.String(255), nullable=True, unique=True),
        sa.Column("phone_number",  sa.String(32),  nullable=True),
        sa.Column("class_id",      sa.Integer(),
                  sa.ForeignKey("classes.class_id"), nullable=True),
    )
    op.create_index("ix_students_class_id", "students", ["class_id"])

    # ── enrollments ───────────────────────────────────────────
    op.create_table(
        "enrollments",
        sa.Column("enrollment_id",   sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("student_id",      sa.Integer(),
                  sa.ForeignKey("students.student_id"), nullable=False),
        sa.Column("subject_id",      sa.Integer(),
                  sa.ForeignKey("subjects.subject_id"), nullable=False),
        sa.Column("enrollment_date", sa.Date(),     nullable=True),
        sa.Column("grade",           sa.String(4),  nullable=True),
    )
    op.create_index("ix_enrollments_student_id", "enrollments", ["student_id"])
    op.create_index("ix_enrollments_subject_id", "enrollments", ["subject_id"])


def downgrade() -> None:
    for table in ("enrollments", "students", "subjects", "classes", "teachers"):
        op.drop_table(table)
