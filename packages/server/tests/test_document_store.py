"""
Tests for the document store contract, run against the in-memory backend,
and for the selector helpers every backend shares.
"""

from __future__ import annotations

import pytest

from app.core.config import Settings
from app.core.errors import DocumentConflictError, DocumentNotFoundError
from app.db.base import FindQuery, matches_selector, next_rev, sort_docs
from app.db.couchdb import CouchDBDocumentStore
from app.db.memory import MemoryDocumentStore
from app.db.relational import RelationalDocumentStore
from app.db.store import create_document_store


@pytest.fixture
async def seeded():
    store = MemoryDocumentStore()
    for i, (status, org) in enumerate(
        [("pending", "org:1"), ("confirmed", "org:1"), ("cancelled", "org:1"), ("pending", "org:2")]
    ):
        await store.insert(
            {
                "_id": f"booking:{i}",
                "type": "booking",
                "status": status,
                "orgId": org,
                "startTime": f"2030-01-0{i + 1}T10:00:00Z",
                "meta": {"source": "web" if i % 2 else "phone"},
            }
        )
    return store


# ---------------------------------------------------------------------------
# Selector evaluation
# ---------------------------------------------------------------------------

class TestSelectors:
    DOC = {"type": "booking", "status": "pending", "capacity": 3, "meta": {"source": "web"}}

    def test_equality_and_nested_keys(self):
        assert matches_selector(self.DOC, {"type": "booking", "meta.source": "web"})
        assert not matches_selector(self.DOC, {"meta.source": "phone"})

    def test_operators(self):
        assert matches_selector(self.DOC, {"status": {"$in": ["pending", "confirmed"]}})
        assert matches_selector(self.DOC, {"status": {"$ne": "cancelled"}})
        assert matches_selector(self.DOC, {"capacity": {"$gte": 3, "$lte": 3}})
        assert not matches_selector(self.DOC, {"capacity": {"$gt": 3}})
        assert matches_selector(self.DOC, {"capacity": {"$lt": 4}})

    def test_missing_fields(self):
        assert matches_selector(self.DOC, {"deletedAt": {"$exists": False}})
        assert not matches_selector(self.DOC, {"deletedAt": {"$exists": True}})
        # A missing field is "not equal" to anything, and fails every other test.
        assert matches_selector(self.DOC, {"deletedAt": {"$ne": "x"}})
        assert not matches_selector(self.DOC, {"deletedAt": {"$gte": ""}})

    def test_unknown_operator_raises(self):
        with pytest.raises(ValueError):
            matches_selector(self.DOC, {"status": {"$regex": "p.*"}})


class TestSorting:
    def test_multi_key_sort(self):
        docs = [
            {"_id": "a", "site": "2", "start": "09:00"},
            {"_id": "b", "site": "1", "start": "10:00"},
            {"_id": "c", "site": "1", "start": "08:00"},
        ]
        ordered = sort_docs(docs, ["site", {"start": "desc"}])
        assert [d["_id"] for d in ordered] == ["b", "c", "a"]

    def test_missing_values_sort_last(self):
        docs = [{"_id": "a"}, {"_id": "b", "start": "10:00"}]
        assert [d["_id"] for d in sort_docs(docs, ["start"])] == ["b", "a"]

    def test_missing_and_null_sort_last_when_descending(self):
        docs = [
            {"_id": "a"},
            {"_id": "b", "start": "10:00"},
            {"_id": "c", "start": None},
            {"_id": "d", "start": "11:00"},
        ]
        ordered = sort_docs(docs, [{"start": "desc"}])
        assert [d["_id"] for d in ordered] == ["d", "b", "a", "c"]

    def test_mixed_types_do_not_raise(self):
        docs = [
            {"_id": "s", "v": "ten"},
            {"_id": "n", "v": 10},
            {"_id": "z", "v": None},
            {"_id": "b", "v": True},
            {"_id": "o", "v": {"k": 1}},
        ]
        assert [d["_id"] for d in sort_docs(docs, ["v"])] == ["b", "n", "s", "o", "z"]

    def test_next_rev_increments_generation(self):
        assert next_rev(None).startswith("1-")
        assert next_rev("7-abc").startswith("8-")


# ---------------------------------------------------------------------------
# Memory backend
# ---------------------------------------------------------------------------

class TestMemoryStore:
    async def test_find_with_selector(self, seeded):
        result = await seeded.find(
            FindQuery(selector={"type": "booking", "orgId": "org:1", "status": {"$ne": "cancelled"}})
        )
        assert sorted(d["_id"] for d in result.docs) == ["booking:0", "booking:1"]

    async def test_sort_skip_limit(self, seeded):
        result = await seeded.find(
            FindQuery(selector={"type": "booking"}, sort=[{"startTime": "desc"}], skip=1, limit=2)
        )
        assert [d["_id"] for d in result.docs] == ["booking:2", "booking:1"]

    async def test_insert_assigns_revisions(self):
        store = MemoryDocumentStore()
        first = await store.insert({"_id": "doc:1", "value": 1})
        assert first.ok and first.rev.startswith("1-")

        doc = await store.get("doc:1")
        doc["value"] = 2
        second = await store.insert(doc)
        assert second.rev.startswith("2-")
        assert (await store.get("doc:1"))["value"] == 2

    async def test_stale_revision_conflicts(self):
        store = MemoryDocumentStore()
        await store.insert({"_id": "doc:1", "value": 1})
        stale = await store.get("doc:1")
        fresh = await store.get("doc:1")

        fresh["value"] = 2
        await store.insert(fresh)
        stale["value"] = 3
        with pytest.raises(DocumentConflictError):
            await store.insert(stale)
        assert (await store.get("doc:1"))["value"] == 2

    async def test_revision_on_new_document_conflicts(self):
        store = MemoryDocumentStore()
        with pytest.raises(DocumentConflictError):
            await store.insert({"_id": "doc:new", "_rev": "1-abc"})

    async def test_write_without_revision_replaces(self):
        store = MemoryDocumentStore()
        await store.insert({"_id": "doc:1", "value": 1})
        await store.insert({"_id": "doc:1", "value": 5})
        assert (await store.get("doc:1"))["value"] == 5

    async def test_returned_documents_are_copies(self, seeded):
        doc = await seeded.get("booking:0")
        doc["meta"]["source"] = "changed"
        assert (await seeded.get("booking:0"))["meta"]["source"] == "phone"

    async def test_get_missing(self):
        with pytest.raises(DocumentNotFoundError):
            await MemoryDocumentStore().get("nope")

    async def test_insert_requires_id(self):
        with pytest.raises(ValueError):
            await MemoryDocumentStore().insert({"type": "x"})

    async def test_info(self, seeded):
        info = await seeded.info()
        assert info == {"db_name": "scheduleright", "doc_count": 4, "backend": "memory"}


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------

class TestCreateDocumentStore:
    def test_memory(self):
        store = create_document_store(Settings(db_provider="memory", couchdb_db_name="dev"))
        assert isinstance(store, MemoryDocumentStore)
        assert store.db_name == "dev"

    async def test_couchdb(self):
        store = create_document_store(Settings(db_provider="couchdb"))
        assert isinstance(store, CouchDBDocumentStore)
        await store.close()

    async def test_mysql(self, tmp_path):
        store = create_document_store(
            Settings(db_provider="mysql", database_url=f"sqlite+aiosqlite:///{tmp_path}/docs.db")
        )
        assert isinstance(store, RelationalDocumentStore)
        assert store.dialect == "sqlite"
        await store.close()
