"""
school-bridge tabular schema.

Table design principles:

  1. Integer identity columns assigned by the store (serial in Postgres,
     rowid in SQLite). The column is named <entity>_id, matching the
     identity field the document store uses for the same entity type.

  2. Foreign keys are declared but carry NO ON DELETE action. Deleting a
     referenced row is always routed through the dependency resolver,
     which applies the caller's block / cascade / reassign / nullify
     policy explicitly. A bare DELETE against a referenced row fails.

  3. Foreign keys into teachers and classes are nullable so dependents
     can be detached. Enrollment foreign keys are NOT NULL.

Schema overview:

  teachers      — teaching staff
  classes       — class groups, each with an owning teacher
  subjects      — taught subjects, each with an owning teacher
  students      — students, each in one class
  enrollments   — student ↔ subject, with grade
"""

from __future__ import annotations

from sqlalchemy import (
    Column,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
)
from sqlalchemy.orm import DeclarativeBase


# ─────────────────────────────────────────────────────────────
# Base
# ─────────────────────────────────────────────────────────────

class Base(DeclarativeBase):
    pass


# ─────────────────────────────────────────────────────────────
# Staff and groups
# ─────────────────────────────────────────────────────────────

class DBTeacher(Base):
    __tablename__ = "teachers"

    teacher_id   = Column(Integer, primary_key=True, autoincrement=True)
    first_name   = Column(String(100), nullable=False)
    last_name    = Column(String(100), nullable=False)
    email        = Column(String(255), nullable=True, unique=True)
    phone_number = Column(String(32),  nullable=True)
    hire_date    = Column(Date, nullable=True)

    def __repr__(self) -> str:
        return f"<DBTeacher {self.teacher_id} {self.first_name} {self.last_name}>"


class DBClass(Base):
    """A class group. teacher_id is the owning teacher."""
    __tablename__ = "classes"

    class_id    = Column(Integer, primary_key=True, autoincrement=True)
    class_name  = Column(String(100), nullable=False)
    teacher_id  = Column(Integer, ForeignKey("teachers.teacher_id"), nullable=True)
    room_number = Column(String(32), nullable=True)

    __table_args__ = (
        Index("ix_classes_teacher_id", "teacher_id"),
    )

    def __repr__(self) -> str:
        return f"<DBClass {self.class_id} {self.class_name!r}>"


class DBSubject(Base):
    __tablename__ = "subjects"

    subject_id   = Column(Integer, primary_key=True, autoincrement=True)
    subject_name = Column(String(100), nullable=False)
    credits      = Column(Integer, nullable=True)
    teacher_id   = Column(Integer, ForeignKey("teachers.teacher_id"), nullable=True)

    __table_args__ = (
        Index("ix_subjects_teacher_id", "teacher_id"),
    )

    def __repr__(self) -> str:
        return f"<DBSubject {self.subject_id} {self.subject_name!r}>"


# ─────────────────────────────────────────────────────────────
# Students and enrollments
# ─────────────────────────────────────────────────────────────

class DBStudent(Base):
    __tablename__ = "students"

    student_id    = Column(Integer, primary_key=True, autoincrement=True)
    first_name    = Column(String(100), nullable=False)
    last_name     = Column(String(100), nullable=False)
    date_of_birth = Column(Date, nullable=True)
    gender        = Column(String(1),   nullable=True)
    email         = Column(String(255), nullable=True, unique=True)
    phone_number  = Column(String(32),  nullable=True)
    class_id      = Column(Integer, ForeignKey("classes.class_id"), nullable=True)

    __table_args__ = (
        Index("ix_students_class_id", "class_id"),
    )

    def __repr__(self) -> str:
        return f"<DBStudent {self.student_id} {self.first_name} {self.last_name}>"


class DBEnrollment(Base):
    """A student taking a subject. Both references are required."""
    __tablename__ = "enrollments"

    enrollment_id   = Column(Integer, primary_key=True, autoincrement=True)
    student_id      = Column(Integer, ForeignKey("students.student_id"), nullable=False)
    subject_id      = Column(Integer, ForeignKey("subjects.subject_id"), nullable=False)
    enrollment_date = Column(Date, nullable=True)
    grade           = Column(String(4), nullable=True)

    __table_args__ = (
        Index("ix_enrollments_student_id", "student_id"),
        Index("ix_enrollments_subject_id", "subject_id"),
    )

    def __repr__(self) -> str:
        return f"<DBEnrollment {self.enrollment_id} s={self.student_id} sub={self.subject_id}>"


def get_table(name: str):
    """Return the Table object for a table name.

    Raises:
        KeyError: If the name is not a table in the schema.
    """
    return Base.metadata.tables[name]
