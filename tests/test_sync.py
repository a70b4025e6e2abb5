"""
Tests for conflict resolution, reconciliation, delta sync and orchestration.
"""

from datetime import datetime, timezone

import pytest

from g2a_integration.batch import BatchResult
from g2a_integration.exceptions import G2AErrorCode, SyncConflictError, ValidationError
from g2a_integration.persistence import InMemoryResourceStore
from g2a_integration.sync import (
    ConflictResolver,
    ConflictStrategy,
    DeltaSync,
    MergePolicy,
    SyncOrchestrator,
    SyncReconciliation,
    detect_changes,
)
from g2a_integration.sync.orchestrator import PRODUCT_RESOURCE

NOW = datetime(2024, 3, 10, 12, 0, 0, tzinfo=timezone.utc)


def product(product_id="p1", **fields):
    data = {
        "id": product_id,
        "name": "Hades Steam Key GLOBAL",
        "slug": "hades-steam-key-global",
        "qty": 10,
        "price": 14.99,
        "currency": "EUR",
        "updatedAt": "2024-03-01 10:00:00",
    }
    data.update(fields)
    return data


class TestConflictResolver:
    """Deterministic resolution strategies."""

    def test_newer_source_wins(self):
        source = product(price=12.99, updatedAt="2024-03-02 10:00:00")
        destination = product()

        resolution = ConflictResolver().resolve_product(source, destination)

        assert resolution.strategy == ConflictStrategy.NEWER_WINS
        assert resolution.resolved is source
        assert resolution.changes == ["price: 14.99 -> 12.99"]

    def test_newer_destination_wins(self):
        source = product(price=12.99)
        destination = product(updatedAt="2024-03-05 10:00:00")

        resolution = ConflictResolver().resolve_product(source, destination)

        assert resolution.resolved is destination
        assert resolution.changes == []

    def test_tie_goes_to_source(self):
        source = product(price=12.99, updatedAt="2024-03-01T10:00:00.750Z")
        destination = product(updatedAt="2024-03-01 10:00:00")

        assert ConflictResolver().resolve_product(source, destination).resolved is source

    def test_missing_timestamp_is_oldest(self):
        source = product(updatedAt=None)
        destination = product(qty=1)

        assert ConflictResolver().resolve_product(source, destination).resolved is destination

    def test_source_and_destination_wins(self):
        source = product(qty=3)
        destination = product(qty=7)
        resolver = ConflictResolver()

        assert resolver.resolve_product(source, destination, "source_wins").resolved is source
        assert resolver.resolve_product(source, destination, ConflictStrategy.DESTINATION_WINS).resolved is destination

    def test_merge(self):
        source = product(
            price=9.99,
            description="Source description",
            updatedAt="2024-03-03 10:00:00",
            images=["a.jpg", "c.jpg"],
            categories=[{"id": 1, "name": "Action"}, {"id": 3, "name": "Indie"}],
        )
        destination = product(
            description="Local description",
            images=["a.jpg", "b.jpg"],
            categories=[{"id": 1, "name": "Action (local)"}],
        )

        resolution = ConflictResolver(ConflictStrategy.MERGE).resolve_product(source, destination)
        merged = resolution.resolved

        assert merged["price"] == 9.99
        assert merged["description"] == "Local description"
        assert merged["updatedAt"] == "2024-03-03 10:00:00"
        assert merged["images"] == ["a.jpg", "b.jpg", "c.jpg"]
        assert merged["categories"] == [{"id": 1, "name": "Action (local)"}, {"id": 3, "name": "Indie"}]
        assert "price: 14.99 -> 9.99" in resolution.changes
        assert destination["images"] == ["a.jpg", "b.jpg"]

    def test_merge_policy_is_configurable(self):
        policy = MergePolicy(critical_fields=("id", "description"), union_fields={})
        source = product(price=9.99, description="Source")
        destination = product(description="Local")

        merged = ConflictResolver(ConflictStrategy.MERGE, policy).resolve_product(source, destination).resolved

        assert merged["description"] == "Source"
        assert merged["price"] == 14.99

    def test_manual_raises(self):
        source = product(qty=1)
        destination = product(qty=2)

        with pytest.raises(SyncConflictError) as exc_info:
            ConflictResolver(ConflictStrategy.MANUAL).resolve_product(source, destination)

        assert exc_info.value.resource_id == "p1"
        assert exc_info.value.conflict_data == {"source": source, "destination": destination}

    def test_unknown_strategy(self):
        with pytest.raises(ValidationError) as exc_info:
            ConflictResolver().resolve_product(product(), product(), "coin_flip")

        assert exc_info.value.code == G2AErrorCode.VALIDATION_ERROR
        assert exc_info.value.field == "strategy"
        assert isinstance(exc_info.value.__cause__, ValueError)

    def test_unknown_default_strategy(self):
        with pytest.raises(ValidationError):
            ConflictResolver("coin_flip")

    def test_resolution_is_deterministic(self):
        source = product(price=1.0, images=["x"])
        destination = product(images=["y"])
        resolver = ConflictResolver(ConflictStrategy.MERGE)

        first = resolver.resolve_product(source, destination)
        second = resolver.resolve_product(source, destination)

        assert first.resolved == second.resolved
        assert first.changes == second.changes

    def test_resolve_many(self):
        pairs = [(product("p1", qty=1), product("p1")), (product("p2", qty=2), product("p2"))]

        resolutions = ConflictResolver().resolve_many(pairs, ConflictStrategy.SOURCE_WINS)

        assert [r.resolved["qty"] for r in resolutions] == [1, 2]

    def test_detect_changes(self):
        assert detect_changes(product(), product(name="Hades II", qty=0)) == [
            "name: Hades Steam Key GLOBAL -> Hades II",
            "qty: 10 -> 0",
        ]


class TestSyncReconciliation:
    """Checksums and field-level comparison."""

    def test_checksum_ignores_order(self):
        products = [product("p1"), product("p2", price=3.5), product("p3", qty=0)]

        assert SyncReconciliation.generate_checksum(products) == \
            SyncReconciliation.generate_checksum(list(reversed(products)))

    def test_checksum_tracks_checksum_fields_only(self):
        base = SyncReconciliation.generate_checksum([product()])

        assert SyncReconciliation.generate_checksum([product(price=15.0)]) != base
        assert SyncReconciliation.generate_checksum([product(description="changed")]) == base

    def test_matching_sets_are_valid(self):
        result = SyncReconciliation().verify([product("p1"), product("p2")], [product("p2"), product("p1")])

        assert result.valid
        assert result.total_records == 2
        assert result.checksum == result.destination_checksum

    def test_mismatches_are_reported(self):
        result = SyncReconciliation().verify(
            [product("p1"), product("p2")],
            [product("p1", price=9.0)],
        )

        assert not result.valid
        assert "Product count mismatch: expected 2, got 1" in result.errors
        assert "Checksum mismatch detected" in result.errors
        assert [(m.field, m.expected, m.actual) for m in result.mismatches] == [("p1.price", 14.99, 9.0)]


class StubFetcher:
    """Stands in for ``BatchProductFetcher.fetch_updated_since``."""

    def __init__(self, products=None, error=None):
        self.products = products or []
        self.error = error
        self.calls = []

    async def fetch_updated_since(self, updated_at_from, max_pages=0):
        self.calls.append((updated_at_from, max_pages))
        if self.error is not None:
            raise self.error
        return BatchResult(successes=list(self.products), total_processed=len(self.products))


class TestDeltaSync:
    """Watermark handling and new/updated classification."""

    @pytest.mark.asyncio
    async def test_default_watermark_is_a_day_back(self):
        fetcher = StubFetcher()
        result = await DeltaSync(fetcher, clock=lambda: NOW).sync()

        assert fetcher.calls == [("2024-03-09 12:00:00", 50)]
        assert result.last_sync_timestamp == "2024-03-10 12:00:00"

    @pytest.mark.asyncio
    async def test_classifies_by_creation_time(self):
        fetcher = StubFetcher([
            product("new", createdAt="2024-03-08 09:00:00"),
            product("old", createdAt="2023-01-01 00:00:00"),
            product("unknown"),
        ])

        result = await DeltaSync(fetcher, clock=lambda: NOW).sync("2024-03-05 00:00:00", max_pages=3)

        assert [p["id"] for p in result.new_products] == ["new"]
        assert [p["id"] for p in result.updated_products] == ["old", "unknown"]
        assert result.total_fetched == 3
        assert fetcher.calls == [("2024-03-05 00:00:00", 3)]

    @pytest.mark.asyncio
    async def test_iso_watermark_is_normalized(self):
        fetcher = StubFetcher()
        await DeltaSync(fetcher, clock=lambda: NOW).sync("2024-03-05T01:02:03+01:00")

        assert fetcher.calls[0][0] == "2024-03-05 00:02:03"

    @pytest.mark.asyncio
    async def test_invalid_watermark(self):
        with pytest.raises(ValidationError) as exc_info:
            await DeltaSync(StubFetcher(), clock=lambda: NOW).sync("last tuesday")

        assert exc_info.value.code == G2AErrorCode.VALIDATION_ERROR
        assert exc_info.value.field == "updated_at_from"
        assert exc_info.value.value == "last tuesday"


class TestSyncOrchestrator:
    """Catalog sync into a store plus auxiliary tasks."""

    @pytest.mark.asyncio
    async def test_catalog_is_stored_with_conflict_resolution(self):
        store = InMemoryResourceStore()
        await store.upsert(PRODUCT_RESOURCE, "p1", product("p1", name="Old name", updatedAt="2024-03-01 00:00:00"))
        fetcher = StubFetcher([
            product("p1", name="New name", updatedAt="2024-03-09 00:00:00"),
            product("p2", createdAt="2024-03-09 13:00:00"),
        ])
        orchestrator = SyncOrchestrator(DeltaSync(fetcher, clock=lambda: NOW), store=store)

        report = await orchestrator.sync()

        assert report.success
        assert report.catalog.upserted == 2
        assert report.catalog.conflicts_resolved == 1
        assert (await store.get(PRODUCT_RESOURCE, "p1"))["name"] == "New name"
        assert store.count(PRODUCT_RESOURCE) == 2

    @pytest.mark.asyncio
    async def test_unresolved_conflicts_are_reported(self):
        store = InMemoryResourceStore()
        await store.upsert(PRODUCT_RESOURCE, "p1", product("p1", qty=1))
        orchestrator = SyncOrchestrator(
            DeltaSync(StubFetcher([product("p1", qty=2)]), clock=lambda: NOW),
            conflict_resolver=ConflictResolver(ConflictStrategy.MANUAL),
            store=store,
        )

        report = await orchestrator.sync()

        assert report.catalog.conflicts_unresolved == 1
        assert report.errors == ["Product p1 conflict: Manual conflict resolution required"]
        assert (await store.get(PRODUCT_RESOURCE, "p1"))["qty"] == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("parallel", [False, True])
    async def test_task_failures_are_collected(self, parallel):
        async def categories():
            return 12

        async def genres():
            raise RuntimeError("upstream unavailable")

        orchestrator = SyncOrchestrator(
            DeltaSync(StubFetcher(), clock=lambda: NOW),
            tasks={"categories": categories, "genres": genres},
        )

        report = await orchestrator.sync(
            sync_catalog=False, task_names=["categories", "genres", "platforms"], parallel=parallel
        )

        assert report.catalog is None
        assert report.tasks["categories"].count == 12
        assert not report.success
        assert sorted(report.errors) == [
            "Genres sync failed: upstream unavailable",
            "Platforms sync failed: no task registered",
        ]

    @pytest.mark.asyncio
    async def test_catalog_failure_does_not_raise(self):
        orchestrator = SyncOrchestrator(DeltaSync(StubFetcher(error=RuntimeError("network down")), clock=lambda: NOW))

        async def platforms():
            return 4

        orchestrator.register_task("platforms", platforms)
        report = await orchestrator.sync(task_names=["platforms"])

        assert report.catalog is None
        assert report.errors == ["Catalog sync failed: network down"]
        assert report.tasks["platforms"].count == 4
