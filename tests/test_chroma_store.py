"""
Tests for the ChromaDB-backed document store.
"""

import pytest
from conftest import seed

from reconciler.exceptions import CapabilityUnavailableError, NotFoundError
from reconciler.storage import ChromaDocumentStore, get_or_create_collection
from reconciler.storage.filters import DELETE_FIELD
from reconciler.storage.gc import OrphanScanner, ReconciliationEngine
from reconciler.storage.references import ReferencePath


@pytest.fixture
def chroma_store(temp_chroma_client):
    """ChromaDocumentStore over a temporary client."""
    return ChromaDocumentStore(temp_chroma_client)


class TestChromaDocumentStore:
    """Tests for ChromaDocumentStore CRUD and queries."""

    def test_put_and_get(self, chroma_store):
        """Test that documents round-trip with nested fields."""
        chroma_store.put("reservations", {"_id": "r1", "memberId": "A", "slot": {"day": 3}})

        document = chroma_store.get_by_id("reservations", "r1")

        assert document == {"_id": "r1", "memberId": "A", "slot": {"day": 3}}

    def test_get_missing_raises(self, chroma_store):
        """Test that a missing document raises NotFoundError."""
        with pytest.raises(NotFoundError):
            chroma_store.get_by_id("reservations", "nope")

    def test_query_ordered_with_cursor_and_filter(self, chroma_store):
        """Test _id ordering, the after cursor, filters and limits."""
        seed(
            chroma_store,
            "reservations",
            {"_id": "r3", "memberId": "A"},
            {"_id": "r1", "memberId": "A"},
            {"_id": "r2", "memberId": "B"},
            {"_id": "r4", "memberId": "A"},
        )

        assert [d["_id"] for d in chroma_store.query("reservations")] == ["r1", "r2", "r3", "r4"]
        assert [d["_id"] for d in chroma_store.query("reservations", after="r2")] == ["r3", "r4"]
        assert [d["_id"] for d in chroma_store.query("reservations", where={"memberId": "A"}, limit=2)] == ["r1", "r3"]
        assert chroma_store.count("reservations") == 4
        assert chroma_store.count("reservations", {"memberId": "B"}) == 1

    def test_delete_is_idempotent(self, chroma_store):
        """Test that deleting twice returns 1 then 0."""
        chroma_store.put("reservations", {"_id": "r1", "memberId": "A"})

        assert chroma_store.delete_by_id("reservations", "r1") == 1
        assert chroma_store.delete_by_id("reservations", "r1") == 0

    def test_update_merges_fields(self, chroma_store):
        """Test dotted updates and field removal."""
        chroma_store.put("members", {"_id": "A", "pveProfile": {"level": 1, "battleHistory": [1]}})

        assert chroma_store.update_by_id("members", "A", {
            "reservationBadges.adminVersion": 1,
            "pveProfile.battleHistory": DELETE_FIELD,
        }) == 1
        assert chroma_store.update_by_id("members", "missing", {"x": 1}) == 0

        document = chroma_store.get_by_id("members", "A")
        assert document["reservationBadges"] == {"adminVersion": 1}
        assert document["pveProfile"] == {"level": 1}

    def test_no_join_capability(self, chroma_store):
        """Test that joins are reported as unavailable."""
        with pytest.raises(CapabilityUnavailableError):
            chroma_store.join_on_missing("reservations", ReferencePath("memberId"), "members")

    def test_one_chroma_collection_per_collection(self, temp_chroma_client, chroma_store):
        """Test that logical collections map onto ChromaDB collections."""
        chroma_store.put("reservations", {"_id": "r1", "memberId": "A"})

        assert get_or_create_collection(temp_chroma_client, "reservations").count() == 1
        assert chroma_store.count("members") == 0


class TestEngineOnChroma:
    """Tests for reconciliation over ChromaDB."""

    def test_scenario_a_uses_full_scan(self, chroma_store):
        """Test that orphan cleanup works through the fallback strategy."""
        seed(chroma_store, "members", {"_id": "A"}, {"_id": "B"})
        seed(
            chroma_store,
            "reservations",
            {"_id": "r1", "memberId": "A"},
            {"_id": "r2", "memberId": "C"},
            {"_id": "r3", "memberId": "B"},
        )
        engine = ReconciliationEngine(chroma_store)

        preview = engine.scan_orphans("reservations", preview_only=True)
        applied = engine.scan_orphans("reservations")

        assert engine.scanner.strategy is engine.scanner.fallback
        assert preview.preview == {"reservations": 1}
        assert applied.removed == {"reservations": 1}
        assert [d["_id"] for d in chroma_store.query("reservations")] == ["r1", "r3"]


class TestChromaPaging:
    """Tests that cursor pages decode only the documents they need."""

    @pytest.fixture
    def decodes(self, chroma_store, monkeypatch):
        """Count document decodes on the store."""
        calls = []
        decode = ChromaDocumentStore._decode

        def counting(doc_id, text):
            calls.append(doc_id)
            return decode(doc_id, text)

        monkeypatch.setattr(chroma_store, "_decode", counting)
        return calls

    def test_full_scan_reads_each_document_a_bounded_number_of_times(self, chroma_store, decodes):
        seed(chroma_store, "members", *[{"_id": f"m{i:02d}"} for i in range(50)])
        seed(chroma_store, "reservations", *[
            {"_id": f"r{i:03d}", "memberId": f"m{i % 50:02d}" if i % 2 == 0 else f"gone-{i}"}
            for i in range(200)
        ])
        decodes.clear()

        scanner = OrphanScanner(chroma_store)
        found = [
            doc_id
            for page in scanner.iter_pages("reservations", (ReferencePath("memberId"),), limit=10)
            for doc_id in page.ids
        ]

        assert scanner.strategy is scanner.fallback
        assert found == [f"r{i:03d}" for i in range(1, 200, 2)]
        assert len(decodes) <= 3 * (200 + 50)

    def test_cursor_page_decodes_only_its_window(self, chroma_store, decodes):
        seed(chroma_store, "members", *[{"_id": f"m{i:02d}"} for i in range(40)])
        decodes.clear()

        page = chroma_store.query("members", after="m09", limit=5)

        assert [d["_id"] for d in page] == ["m10", "m11", "m12", "m13", "m14"]
        assert decodes == ["m10", "m11", "m12", "m13", "m14"]

    def test_cursor_count_reads_no_documents(self, chroma_store, decodes):
        seed(chroma_store, "members", *[{"_id": f"m{i:02d}"} for i in range(40)])
        decodes.clear()

        assert chroma_store.count("members", {"_id": {"$gt": "m29"}}) == 10
        assert chroma_store.count("members", {"_id": "m05"}) == 1
        assert decodes == []

    def test_index_follows_deletes_and_external_writes(self, temp_chroma_client, chroma_store):
        seed(chroma_store, "members", {"_id": "A"}, {"_id": "B"}, {"_id": "C"})
        chroma_store.delete_by_id("members", "B")
        assert [d["_id"] for d in chroma_store.query("members")] == ["A", "C"]

        ChromaDocumentStore(temp_chroma_client).put("members", {"_id": "D"})

        assert [d["_id"] for d in chroma_store.query("members")] == ["A", "C", "D"]
        assert chroma_store.count("members", {"_id": {"$gt": "A"}}) == 2
