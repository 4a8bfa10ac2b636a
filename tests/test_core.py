"""
Tests for school-bridge core: registry, identity reconciliation, merging,
error kinds, and the in-memory document store's matching rules.

Run with: pytest tests/test_core.py -v
"""

import pytest
from bson import ObjectId

from school_bridge.core import (
    EntitySchema, HasDependents, IdentifierReconciler, NoUpdatableFields,
    SchemaRegistry, Store, StoreUnavailable, UnknownEntityType,
    get_default_registry, identity_candidates, merge,
)
from school_bridge.core.merger import document_view
from school_bridge.server.protocol import Message, entity_delete, ok
from school_bridge.store.memory import MemoryDocumentStore


# ─────────────────────────────────────────────────────────────
# Store tag
# ─────────────────────────────────────────────────────────────

class TestStore:
    def test_canonical(self):
        assert Store.from_string("tabular") is Store.TABULAR
        assert Store.from_string("document") is Store.DOCUMENT

    def test_backend_aliases(self):
        assert Store.from_string("postgres") is Store.TABULAR
        assert Store.from_string("MongoDB") is Store.DOCUMENT

    def test_passthrough(self):
        assert Store.from_string(Store.DOCUMENT) is Store.DOCUMENT

    def test_unknown_raises(self):
        with pytest.raises(ValueError):
            Store.from_string("redis")


# ─────────────────────────────────────────────────────────────
# Schema registry
# ─────────────────────────────────────────────────────────────

class TestRegistry:
    def setup_method(self):
        self.reg = SchemaRegistry.default()

    def test_seven_types(self):
        assert sorted(self.reg.names()) == [
            "enrollment", "event", "library-book",
            "party-class", "party-student", "party-teacher", "subject",
        ]

    def test_aliases_resolve(self):
        assert self.reg.get("teachers").name == "party-teacher"
        assert self.reg.get("Teacher").name == "party-teacher"
        assert self.reg.get("classes").name == "party-class"
        assert self.reg.get("librarybooks").name == "library-book"

    def test_unknown_raises(self):
        with pytest.raises(UnknownEntityType) as exc:
            self.reg.get("janitor")
        assert exc.value.code == "UNKNOWN_ENTITY_TYPE"
        assert "janitor" in str(exc.value)

    def test_unknown_is_a_key_error(self):
        with pytest.raises(KeyError):
            self.reg.get("janitor")

    def test_contains(self):
        assert "students" in self.reg
        assert "janitor" not in self.reg

    def test_store_partition(self):
        dual = [s.name for s in self.reg.all() if s.is_dual_store]
        assert sorted(dual) == ["party-class", "party-student", "party-teacher"]
        assert not self.reg.get("subject").in_document
        assert not self.reg.get("event").in_tabular

    def test_document_only_fields(self):
        assert self.reg.get("teacher").document_fields == {"department"}
        assert self.reg.get("class").document_fields == {"schedule"}
        assert self.reg.get("student").document_fields == {"enrollment_year"}

    def test_strip_document_fields(self):
        schema = self.reg.get("teacher")
        assert schema.strip_document_fields(
            {"first_name": "Ada", "department": "Math"}
        ) == {"first_name": "Ada"}

    def test_supports(self):
        assert self.reg.get("subject").supports(Store.TABULAR)
        assert not self.reg.get("subject").supports(Store.DOCUMENT)

    def test_teacher_dependents(self):
        tables = {e.child_table for e in self.reg.dependents_of("teacher")}
        assert tables == {"classes", "subjects"}

    def test_student_dependents_not_reassignable(self):
        edges = self.reg.dependents_of("student")
        assert [e.child_table for e in edges] == ["enrollments"]
        assert not edges[0].reassignable

    def test_leaf_types_have_no_dependents(self):
        assert self.reg.dependents_of("enrollment") == []
        assert self.reg.dependents_of("event") == []

    def test_duplicate_register_raises(self):
        with pytest.raises(ValueError):
            self.reg.register(EntitySchema(name="x", aliases=("teacher",)))

    def test_edge_requires_tables(self):
        with pytest.raises(ValueError):
            self.reg.add_edge("event", "organizer_id", "party-teacher")

    def test_summary_shape(self):
        s = self.reg.summary()
        assert s["entity_types"]["party-teacher"]["stores"] == ["tabular", "document"]
        assert s["entity_types"]["event"]["stores"] == ["document"]
        assert len(s["edges"]) == 5

    def test_default_registry_is_shared(self):
        assert get_default_registry() is get_default_registry()


# ─────────────────────────────────────────────────────────────
# Identity candidates
# ─────────────────────────────────────────────────────────────

class TestIdentityCandidates:
    def test_numeric_text(self):
        assert identity_candidates("7") == [7, "7"]

    def test_int(self):
        assert identity_candidates(7) == [7, "7"]

    def test_padded(self):
        assert identity_candidates(" 7 ") == [7, " 7 "]

    def test_non_numeric(self):
        assert identity_candidates("abc") == ["abc"]

    def test_fraction_is_string_only(self):
        assert identity_candidates("7.5") == ["7.5"]

    def test_bool_is_not_numeric(self):
        assert identity_candidates(True) == ["True"]


@pytest.mark.asyncio
class TestIdentifierReconciler:

    async def test_string_stored_found_by_int(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Teachers", {"teacher_id": "7", "first_name": "Ada"})
        rec = IdentifierReconciler(docs)
        found = await rec.find("Teachers", "teacher_id", 7)
        assert found["first_name"] == "Ada"

    async def test_int_stored_found_by_string(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Teachers", {"teacher_id": 7, "first_name": "Ada"})
        rec = IdentifierReconciler(docs)
        found = await rec.find("Teachers", "teacher_id", "7")
        assert found["first_name"] == "Ada"

    async def test_numeric_match_wins(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Teachers", {"teacher_id": "7", "first_name": "Text"})
        await docs.insert_one("Teachers", {"teacher_id": 7, "first_name": "Number"})
        rec = IdentifierReconciler(docs)
        updated = await rec.update("Teachers", "teacher_id", "7", {"department": "Art"})
        assert updated["first_name"] == "Number"
        text = await docs.find_one("Teachers", {"teacher_id": "7"})
        assert "department" not in text

    async def test_delete_miss(self):
        rec = IdentifierReconciler(MemoryDocumentStore())
        assert await rec.delete("Teachers", "teacher_id", 7) is None

    async def test_update_never_inserts(self):
        docs = MemoryDocumentStore()
        rec = IdentifierReconciler(docs)
        assert await rec.update("Teachers", "teacher_id", 7, {"x": 1}) is None
        assert await docs.find("Teachers") == []


# ─────────────────────────────────────────────────────────────
# Merger
# ─────────────────────────────────────────────────────────────

class TestMerge:
    def test_combined_is_concatenation(self):
        rows = [{"teacher_id": 1}, {"teacher_id": 2}]
        docs = [{"_id": ObjectId(), "teacher_id": 1}]
        view = merge(rows, docs)
        assert len(view.combined) == 3
        assert [r["origin"] for r in view.combined] == ["tabular", "tabular", "document"]

    def test_same_identity_not_deduplicated(self):
        view = merge([{"teacher_id": 1}], [{"_id": ObjectId(), "teacher_id": 1}])
        assert [r["teacher_id"] for r in view.combined] == [1, 1]

    def test_internal_id_confined_to_document_view(self):
        oid = ObjectId()
        view = merge([], [{"_id": oid, "teacher_id": 1}])
        assert view.document[0]["_id"] == str(oid)
        assert "_id" not in view.combined[0]

    def test_tabular_unchanged(self):
        rows = [{"teacher_id": 1, "first_name": "John"}]
        view = merge(rows, [])
        assert view.tabular == rows
        assert "origin" not in rows[0]

    def test_to_dict(self):
        assert set(merge([], []).to_dict()) == {"tabular", "document", "combined"}

    def test_origin_tag_wins_over_record_field(self):
        view = merge([{"teacher_id": 1, "origin": "imported"}], [])
        assert view.combined[0]["origin"] == "tabular"
        assert view.tabular[0]["origin"] == "imported"

    def test_document_view_without_id(self):
        assert document_view({"a": 1}) == {"a": 1}


# ─────────────────────────────────────────────────────────────
# Error kinds
# ─────────────────────────────────────────────────────────────

class TestErrors:
    def test_has_dependents_message_names_tables(self):
        e = HasDependents("party-teacher", 1, {"classes": 1, "subjects": 2})
        assert "1 row in classes" in e.message
        assert "2 rows in subjects" in e.message
        assert e.details["dependents"] == {"classes": 1, "subjects": 2}
        assert "reassign_to" in e.message

    def test_not_reassignable_offers_cascade_only(self):
        e = HasDependents("party-student", 1, {"enrollments": 2}, reassignable=False)
        assert "cascade" in e.message
        assert "reassign_to" not in e.message

    def test_codes(self):
        assert StoreUnavailable("document").code == "STORE_UNAVAILABLE"
        assert NoUpdatableFields("party-teacher", ["department"]).code == "NO_UPDATABLE_FIELDS"


# ─────────────────────────────────────────────────────────────
# In-memory document store
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestMemoryDocumentStore:

    async def test_filter_is_type_strict(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Teachers", {"teacher_id": "7"})
        assert await docs.find_one("Teachers", {"teacher_id": 7}) is None
        assert await docs.find_one("Teachers", {"teacher_id": "7"}) is not None

    async def test_insert_assigns_object_id(self):
        docs = MemoryDocumentStore()
        stored = await docs.insert_one("Events", {"event_id": 1})
        assert isinstance(stored["_id"], ObjectId)

    async def test_returned_documents_are_copies(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Events", {"event_id": 1, "participants": [1]})
        found = await docs.find_one("Events", {"event_id": 1})
        found["participants"].append(2)
        again = await docs.find_one("Events", {"event_id": 1})
        assert again["participants"] == [1]

    async def test_list_field_matches_scalar(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("Events", {"event_id": 1, "participants": [1, 2]})
        assert len(await docs.find("Events", {"participants": 2})) == 1

    async def test_none_matches_missing(self):
        docs = MemoryDocumentStore()
        await docs.insert_one("LibraryBooks", {"book_id": 1})
        assert len(await docs.find("LibraryBooks", {"borrower_id": None})) == 1

    async def test_disconnected_raises(self):
        docs = MemoryDocumentStore(connected=False)
        assert not docs.available
        with pytest.raises(StoreUnavailable):
            await docs.find("Teachers")


# ─────────────────────────────────────────────────────────────
# Wire messages
# ─────────────────────────────────────────────────────────────

class TestProtocol:
    def test_parse_requires_type(self):
        with pytest.raises(ValueError):
            Message.parse('{"id": "x"}')

    def test_parse_requires_object(self):
        with pytest.raises(ValueError):
            Message.parse("[1, 2]")

    def test_serialize_dates_as_text(self):
        from datetime import date
        raw = ok("r1", {"hire_date": date(2020, 1, 15)}).serialize()
        assert Message.parse(raw)["result"]["hire_date"] == "2020-01-15"

    def test_delete_without_reassign_omits_key(self):
        assert "reassign_to" not in entity_delete("teacher", 1)

    def test_delete_with_null_reassign_keeps_key(self):
        msg = entity_delete("teacher", 1, reassign_to=None)
        assert "reassign_to" in msg and msg["reassign_to"] is None


# ─────────────────────────────────────────────────────────────
# MongoDB adapter and configuration (no server needed)
# ─────────────────────────────────────────────────────────────

@pytest.mark.asyncio
class TestMongoDocumentStore:

    async def test_unavailable_before_connect(self):
        from school_bridge.store.documents import MongoDocumentStore
        store = MongoDocumentStore("mongodb://localhost:1", "school_test")
        assert not store.available
        assert await store.ping() is False
        with pytest.raises(StoreUnavailable):
            await store.find("Teachers")
        assert "disconnected" in repr(store)

    async def test_env_configuration(self, monkeypatch):
        from school_bridge.store.documents import MongoDocumentStore
        monkeypatch.setenv("SCHOOL_MONGO_URI", "mongodb://db.internal:27017")
        monkeypatch.setenv("SCHOOL_MONGO_DB", "school_prod")
        store = MongoDocumentStore()
        assert store.uri == "mongodb://db.internal:27017"
        assert store.db_name == "school_prod"


class TestSessionConfig:
    def test_sync_url_swaps_driver(self, monkeypatch):
        from school_bridge.store.session import get_sync_db_url
        monkeypatch.setenv("SCHOOL_DB_URL", "postgresql+asyncpg://u:p@h:5432/db")
        assert get_sync_db_url() == "postgresql+psycopg2://u:p@h:5432/db"
