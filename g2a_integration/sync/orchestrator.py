# g2a_integration/sync/orchestrator.py
"""
Runs the catalog sync and any auxiliary sync tasks, in order or in parallel.

The orchestrator never raises: each task failure is caught, logged and
reported in ``SyncReport.errors`` with a prefix naming the task.
"""

import asyncio
import time
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional

from g2a_integration.exceptions import G2AError
from g2a_integration.persistence import ResourceStore
from g2a_integration.sync.conflict_resolver import ConflictResolver
from g2a_integration.sync.delta_sync import DeltaSync, DeltaSyncResult
from g2a_integration.utils.enhanced_logging import get_logger

PRODUCT_RESOURCE = "product"

# Auxiliary tasks return the number of records they synced
SyncTask = Callable[[], Awaitable[int]]


@dataclass
class TaskReport:
    count: int
    duration_ms: float


@dataclass
class CatalogReport:
    delta: DeltaSyncResult
    upserted: int = 0
    conflicts_resolved: int = 0
    conflicts_unresolved: int = 0


@dataclass
class SyncReport:
    catalog: Optional[CatalogReport] = None
    tasks: Dict[str, TaskReport] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    total_duration_ms: float = 0.0

    @property
    def success(self) -> bool:
        return not self.errors


class SyncOrchestrator:
    """
    ``tasks`` maps auxiliary sync names (``categories``, ``genres``,
    ``platforms``...) to coroutines supplied by the host application.
    When a ``store`` is given, every synced product is upserted, resolving
    against the stored copy with ``conflict_resolver``.
    """

    def __init__(self, delta_sync: DeltaSync, conflict_resolver: Optional[ConflictResolver] = None,
                 store: Optional[ResourceStore] = None, tasks: Optional[Dict[str, SyncTask]] = None):
        self.delta_sync = delta_sync
        self.conflict_resolver = conflict_resolver or ConflictResolver()
        self.store = store
        self.tasks = dict(tasks or {})
        self.logger = get_logger("sync.orchestrator")

    def register_task(self, name: str, task: SyncTask):
        self.tasks[name] = task

    async def sync(self, sync_catalog: bool = True, task_names: Optional[List[str]] = None,
                   parallel: bool = False, last_sync_timestamp: Optional[str] = None) -> SyncReport:
        start_time = time.perf_counter()
        task_names = list(task_names or [])
        report = SyncReport()

        self.logger.info(
            "Starting sync orchestration",
            sync_catalog=sync_catalog,
            tasks=task_names,
            parallel=parallel
        )

        steps = []
        if sync_catalog:
            steps.append(lambda: self._run_catalog(report, last_sync_timestamp))
        for name in task_names:
            steps.append(lambda name=name: self._run_task(report, name))

        if parallel:
            await asyncio.gather(*(step() for step in steps))
        else:
            for step in steps:
                await step()

        report.total_duration_ms = (time.perf_counter() - start_time) * 1000
        self.logger.info(
            "Sync orchestration completed",
            total_duration_ms=round(report.total_duration_ms, 2),
            error_count=len(report.errors)
        )
        return report

    async def _run_catalog(self, report: SyncReport, last_sync_timestamp: Optional[str]):
        try:
            delta = await self.delta_sync.sync(last_sync_timestamp)
            catalog = CatalogReport(delta=delta)
            if self.store is not None:
                await self._store_products(catalog, report)
            report.catalog = catalog
        except Exception as e:
            report.errors.append(f"Catalog sync failed: {e}")
            self.logger.error("Catalog sync failed", error=str(e), exc_info=True)

    async def _store_products(self, catalog: CatalogReport, report: SyncReport):
        for product in catalog.delta.products:
            product_id = str(product.get("id"))
            existing = await self.store.get(PRODUCT_RESOURCE, product_id)
            record = product
            if existing is not None:
                try:
                    record = self.conflict_resolver.resolve_product(product, existing).resolved
                except G2AError as e:
                    catalog.conflicts_unresolved += 1
                    report.errors.append(f"Product {product_id} conflict: {e.message}")
                    self.logger.warning("Unresolved product conflict", product_id=product_id, error=e.message)
                    continue
                catalog.conflicts_resolved += 1
            await self.store.upsert(PRODUCT_RESOURCE, product_id, record)
            catalog.upserted += 1

    async def _run_task(self, report: SyncReport, name: str):
        label = name.capitalize()
        task = self.tasks.get(name)
        if task is None:
            report.errors.append(f"{label} sync failed: no task registered")
            self.logger.error("Sync task not registered", task=name)
            return

        start_time = time.perf_counter()
        try:
            count = await task()
        except Exception as e:
            report.errors.append(f"{label} sync failed: {e}")
            self.logger.error(f"{label} sync failed", error=str(e), exc_info=True)
            return
        report.tasks[name] = TaskReport(count=count, duration_ms=(time.perf_counter() - start_time) * 1000)
