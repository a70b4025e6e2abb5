from .conflict_resolver import (
    ConflictResolver,
    ConflictResolution,
    ConflictStrategy,
    MergePolicy,
    DEFAULT_MERGE_POLICY,
    detect_changes,
)
from .reconciliation import SyncReconciliation, ReconciliationResult, FieldMismatch
from .delta_sync import DeltaSync, DeltaSyncResult
from .orchestrator import SyncOrchestrator, SyncReport, CatalogReport, TaskReport

__all__ = [
    'ConflictResolver',
    'ConflictResolution',
    'ConflictStrategy',
    'MergePolicy',
    'DEFAULT_MERGE_POLICY',
    'detect_changes',
    'SyncReconciliation',
    'ReconciliationResult',
    'FieldMismatch',
    'DeltaSync',
    'DeltaSyncResult',
    'SyncOrchestrator',
    'SyncReport',
    'CatalogReport',
    'TaskReport',
]
