"""
school-bridge bulk reset.

Truncates and re-populates one or both stores from the fixed seed set
below. The two stores are reset independently; "all" resets the tabular
store first and the document store second.

The tabular reset runs in a single transaction: every table is wiped
(children first) and the seed rows are inserted parents first, so a
failure anywhere leaves the previous contents in place. Seed rows carry
no explicit identities — the store assigns 1..N in insertion order, and
the foreign keys below rely on that.

The document reset has no transaction: each collection is emptied and
refilled in turn.
"""

from __future__ import annotations

import logging
from datetime import datetime

from school_bridge.core.errors import InvalidView
from school_bridge.core.registry import SchemaRegistry, Store
from school_bridge.store.tabular import TabularStore

logger = logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────
# Seed data
# ─────────────────────────────────────────────────────────────

TABULAR_SEED: dict[str, list[dict]] = {
    "teachers": [
        {"first_name": "John",    "last_name": "Smith",   "email": "john.smith@school.com",    "phone_number": "555-0101", "hire_date": "2020-01-15"},
        {"first_name": "Sarah",   "last_name": "Johnson", "email": "sarah.johnson@school.com", "phone_number": "555-0102", "hire_date": "2019-03-20"},
        {"first_name": "Michael", "last_name": "Brown",   "email": "michael.brown@school.com", "phone_number": "555-0103", "hire_date": "2021-09-01"},
        {"first_name": "Emily",   "last_name": "Davis",   "email": "emily.davis@school.com",   "phone_number": "555-0104", "hire_date": "2018-05-10"},
        {"first_name": "David",   "last_name": "Wilson",  "email": "david.wilson@school.com",  "phone_number": "555-0105", "hire_date": "2022-01-15"},
    ],
    "classes": [
        {"class_name": "Mathematics 101",    "teacher_id": 1, "room_number": "A101"},
        {"class_name": "English Literature", "teacher_id": 2, "room_number": "B205"},
        {"class_name": "Physics 201",        "teacher_id": 3, "room_number": "C301"},
        {"class_name": "History 101",        "teacher_id": 4, "room_number": "D102"},
        {"class_name": "Chemistry 101",      "teacher_id": 5, "room_number": "E201"},
    ],
    "subjects": [
        {"subject_name": "Algebra",           "credits": 4, "teacher_id": 1},
        {"subject_name": "Literature",        "credits": 3, "teacher_id": 2},
        {"subject_name": "Mechanics",         "credits": 4, "teacher_id": 3},
        {"subject_name": "World History",     "credits": 3, "teacher_id": 4},
        {"subject_name": "Organic Chemistry", "credits": 4, "teacher_id": 5},
    ],
    "students": [
        {"first_name": "Alice",  "last_name": "Anderson", "date_of_birth": "2005-03-15", "gender": "F", "email": "alice.anderson@student.com", "phone_number": "555-1001", "class_id": 1},
        {"first_name": "Bob",    "last_name": "Baker",    "date_of_birth": "2005-07-22", "gender": "M", "email": "bob.baker@student.com",      "phone_number": "555-1002", "class_id": 1},
        {"first_name": "Carol",  "last_name": "Clark",    "date_of_birth": "2005-11-08", "gender": "F", "email": "carol.clark@student.com",    "phone_number": "555-1003", "class_id": 2},
        {"first_name": "Daniel", "last_name": "Evans",    "date_of_birth": "2005-01-30", "gender": "M", "email": "daniel.evans@student.com",   "phone_number": "555-1004", "class_id": 2},
        {"first_name": "Eva",    "last_name": "Foster",   "date_of_birth": "2005-09-12", "gender": "F", "email": "eva.foster@student.com",     "phone_number": "555-1005", "class_id": 3},
    ],
    "enrollments": [
        {"student_id": 1, "subject_id": 1, "enrollment_date": "2024-09-01", "grade": "A"},
        {"student_id": 1, "subject_id": 3, "enrollment_date": "2024-09-01", "grade": "B+"},
        {"student_id": 2, "subject_id": 1, "enrollment_date": "2024-09-01", "grade": "B"},
        {"student_id": 3, "subject_id": 2, "enrollment_date": "2024-09-02", "grade": "A-"},
        {"student_id": 4, "subject_id": 4, "enrollment_date": "2024-09-02", "grade": "C+"},
        {"student_id": 5, "subject_id": 5, "enrollment_date": "2024-09-03", "grade": "A"},
    ],
}

# Parents first. The wipe runs in reverse.
TABULAR_LOAD_ORDER = ["teachers", "classes", "subjects", "students", "enrollments"]


DOCUMENT_SEED: dict[str, list[dict]] = {
    "Teachers": [
        {"teacher_id": 1, "first_name": "John",    "last_name": "Smith",   "email": "john.smith@school.com",    "phone_number": "555-0101", "hire_date": datetime(2020, 1, 15), "department": "Mathematics"},
        {"teacher_id": 2, "first_name": "Sarah",   "last_name": "Johnson", "email": "sarah.johnson@school.com", "phone_number": "555-0102", "hire_date": datetime(2019, 3, 20), "department": "English"},
        {"teacher_id": 3, "first_name": "Michael", "last_name": "Brown",   "email": "michael.brown@school.com", "phone_number": "555-0103", "hire_date": datetime(2021, 9, 1),  "department": "Science"},
        {"teacher_id": 4, "first_name": "Emily",   "last_name": "Davis",   "email": "emily.davis@school.com",   "phone_number": "555-0104", "hire_date": datetime(2018, 5, 10), "department": "History"},
        {"teacher_id": 5, "first_name": "David",   "last_name": "Wilson",  "email": "david.wilson@school.com",  "phone_number": "555-0105", "hire_date": datetime(2022, 1, 15), "department": "Science"},
    ],
    "Classes": [
        {"class_id": 1, "class_name": "Mathematics 101",    "teacher_id": 1, "room_number": "A101", "schedule": "Mon/Wed 09:00"},
        {"class_id": 2, "class_name": "English Literature", "teacher_id": 2, "room_number": "B205", "schedule": "Tue/Thu 10:00"},
        {"class_id": 3, "class_name": "Physics 201",        "teacher_id": 3, "room_number": "C301", "schedule": "Mon/Fri 13:00"},
        {"class_id": 4, "class_name": "History 101",        "teacher_id": 4, "room_number": "D102", "schedule": "Wed 14:00"},
        {"class_id": 5, "class_name": "Chemistry 101",      "teacher_id": 5, "room_number": "E201", "schedule": "Thu 08:30"},
    ],
    "Students": [
        {"student_id": 1, "first_name": "Alice",  "last_name": "Anderson", "date_of_birth": datetime(2005, 3, 15),  "gender": "F", "email": "alice.anderson@student.com", "phone_number": "555-1001", "class_id": 1, "enrollment_year": 2024},
        {"student_id": 2, "first_name": "Bob",    "last_name": "Baker",    "date_of_birth": datetime(2005, 7, 22),  "gender": "M", "email": "bob.baker@student.com",      "phone_number": "555-1002", "class_id": 1, "enrollment_year": 2024},
        {"student_id": 3, "first_name": "Carol",  "last_name": "Clark",    "date_of_birth": datetime(2005, 11, 8),  "gender": "F", "email": "carol.clark@student.com",    "phone_number": "555-1003", "class_id": 2, "enrollment_year": 2024},
        {"student_id": 4, "first_name": "Daniel", "last_name": "Evans",    "date_of_birth": datetime(2005, 1, 30),  "gender": "M", "email": "daniel.evans@student.com",   "phone_number": "555-1004", "class_id": 2, "enrollment_year": 2024},
        {"student_id": 5, "first_name": "Eva",    "last_name": "Foster",   "date_of_birth": datetime(2005, 9, 12),  "gender": "F", "email": "eva.foster@student.com",     "phone_number": "555-1005", "class_id": 3, "enrollment_year": 2024},
    ],
    "LibraryBooks": [
        {"book_id": 1, "title": "Introduction to Algorithms",             "author": "Thomas H. Cormen",    "isbn": "978-0262046305", "available": True,  "borrower_id": None, "due_date": None},
        {"book_id": 2, "title": "The Great Gatsby",                       "author": "F. Scott Fitzgerald", "isbn": "978-0743273565", "available": False, "borrower_id": 3,    "due_date": datetime(2024, 12, 31)},
        {"book_id": 3, "title": "A Brief History of Time",                "author": "Stephen Hawking",     "isbn": "978-0553380163", "available": True,  "borrower_id": None, "due_date": None},
        {"book_id": 4, "title": "Sapiens: A Brief History of Humankind",  "author": "Yuval Noah Harari",   "isbn": "978-0062316097", "available": True,  "borrower_id": None, "due_date": None},
        {"book_id": 5, "title": "Organic Chemistry Textbook",             "author": "David Klein",         "isbn": "978-1118452288", "available": False, "borrower_id": 5,    "due_date": datetime(2024, 12, 20)},
    ],
    "Events": [
        {"event_id": 1, "event_name": "Science Fair",           "event_date": datetime(2024, 12, 15), "location": "Main Hall",   "organizer_id": 3, "participants": [1, 2, 5], "status": "upcoming"},
        {"event_id": 2, "event_name": "Literary Festival",      "event_date": datetime(2024, 11, 20), "location": "Library",     "organizer_id": 2, "participants": [3, 4],    "status": "completed"},
        {"event_id": 3, "event_name": "Math Competition",       "event_date": datetime(2025, 1, 10),  "location": "Room A101",   "organizer_id": 1, "participants": [1, 2],    "status": "upcoming"},
        {"event_id": 4, "event_name": "History Exhibition",     "event_date": datetime(2024, 12, 5),  "location": "Museum Wing", "organizer_id": 4, "participants": [4, 7],    "status": "upcoming"},
        {"event_id": 5, "event_name": "Chemistry Lab Open Day", "event_date": datetime(2025, 2, 1),   "location": "Lab E201",    "organizer_id": 5, "participants": [5, 8],    "status": "upcoming"},
    ],
}


# ─────────────────────────────────────────────────────────────
# Reset
# ─────────────────────────────────────────────────────────────

RESET_TARGETS = ("tabular", "document", "all")


def parse_target(target: str | None) -> str:
    """Normalize a reset target, accepting backend names (postgres, mongodb)."""
    if target is None or str(target).lower() == "all":
        return "all"
    try:
        return Store.from_string(target).value
    except ValueError:
        raise InvalidView(
            f"Unknown reset target {target!r}. Valid: {', '.join(RESET_TARGETS)}"
        ) from None


async def reset_tabular(tabular: TabularStore) -> dict[str, int]:
    counts: dict[str, int] = {}
    async with tabular.transaction() as repo:
        await repo.wipe(list(reversed(TABULAR_LOAD_ORDER)))
        for table in TABULAR_LOAD_ORDER:
            counts[table] = await repo.insert_many(table, TABULAR_SEED[table])
    logger.info(f"Tabular store reseeded: {counts}")
    return counts


async def reset_documents(documents, registry: SchemaRegistry) -> dict[str, int]:
    counts: dict[str, int] = {}
    collections = [s.collection for s in registry.all() if s.in_document]
    for name in collections:
        await documents.delete_many(name, {})
        counts[name] = await documents.insert_many(name, DOCUMENT_SEED.get(name, []))
    logger.info(f"Document store reseeded: {counts}")
    return counts


async def bulk_reset(
    target: str | None,
    tabular: TabularStore,
    documents,
    registry: SchemaRegistry,
) -> dict:
    """Truncate and reseed. Returns per-store row/document counts.

    Raises:
        InvalidView:      Unknown target.
        StoreUnavailable: A targeted store is not connected.
    """
    which = parse_target(target)
    report: dict = {"target": which}
    if which in ("tabular", "all"):
        report["tabular"] = await reset_tabular(tabular)
    if which in ("document", "all"):
        report["document"] = await reset_documents(documents, registry)
    return report
