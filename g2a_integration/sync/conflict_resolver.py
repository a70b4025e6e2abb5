# g2a_integration/sync/conflict_resolver.py
"""
Resolution of a partner (source) product against the local (destination) copy.

Every strategy is deterministic: the same inputs always give the same
result. ``newer_wins`` compares ``updatedAt`` at whole-second granularity,
treats a missing timestamp as the epoch, and lets the source win ties.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

from g2a_integration.exceptions import SyncConflictError, ValidationError
from g2a_integration.utils.enhanced_logging import get_logger
from g2a_integration.utils.time_utils import EPOCH, parse_g2a_timestamp

Product = Dict[str, Any]

CHANGE_DETECTION_FIELDS = (
    "name", "slug", "qty", "price", "currency", "type", "region", "platform",
    "releaseDate", "developer", "publisher", "description", "availableToBuy",
)


class ConflictStrategy(str, Enum):
    SOURCE_WINS = "source_wins"
    DESTINATION_WINS = "destination_wins"
    NEWER_WINS = "newer_wins"
    MERGE = "merge"
    MANUAL = "manual"


@dataclass(frozen=True)
class MergePolicy:
    """
    Field table for the ``merge`` strategy.

    ``critical_fields`` always take the source value when it differs.
    ``union_fields`` maps an array field to the key that identifies its
    elements (None means compare elements by equality); the destination
    list is kept and unseen source elements are appended. Every other
    field keeps the destination value, except ``timestamp_field`` which
    follows the source when the source has one.
    """
    critical_fields: Tuple[str, ...] = ("id", "name", "slug", "qty", "price", "currency")
    union_fields: Dict[str, Optional[str]] = field(default_factory=lambda: {"images": None, "categories": "id"})
    timestamp_field: str = "updatedAt"


DEFAULT_MERGE_POLICY = MergePolicy()


@dataclass
class ConflictResolution:
    resolved: Product
    strategy: ConflictStrategy
    changes: List[str] = field(default_factory=list)


def detect_changes(original: Product, updated: Product,
                   fields: Iterable[str] = CHANGE_DETECTION_FIELDS) -> List[str]:
    """Describe each field whose value differs, as ``field: old -> new``."""
    return [
        f"{name}: {original.get(name)} -> {updated.get(name)}"
        for name in fields
        if original.get(name) != updated.get(name)
    ]


def _union(existing: List[Any], incoming: List[Any], identity: Optional[str]) -> List[Any]:
    def key(item):
        if identity is not None and isinstance(item, dict):
            return ("id", item.get(identity))
        return ("value", repr(item))

    seen = {key(item) for item in existing}
    merged = list(existing)
    for item in incoming:
        item_key = key(item)
        if item_key not in seen:
            seen.add(item_key)
            merged.append(item)
    return merged


def coerce_strategy(value: Union[ConflictStrategy, str]) -> ConflictStrategy:
    try:
        return ConflictStrategy(value)
    except ValueError as e:
        raise ValidationError(f"Unknown conflict strategy: {value!r}", field="strategy", value=value) from e


class ConflictResolver:
    def __init__(self, default_strategy: Union[ConflictStrategy, str] = ConflictStrategy.NEWER_WINS,
                 merge_policy: MergePolicy = DEFAULT_MERGE_POLICY):
        self.default_strategy = coerce_strategy(default_strategy)
        self.merge_policy = merge_policy
        self.logger = get_logger("sync.conflict_resolver")

    def resolve_product(self, source: Product, destination: Product,
                        strategy: Union[ConflictStrategy, str, None] = None) -> ConflictResolution:
        """
        Raises:
            SyncConflictError: for the ``manual`` strategy, carrying both versions
            ValidationError: for an unknown strategy name
        """
        strategy = coerce_strategy(strategy) if strategy is not None else self.default_strategy
        self.logger.debug("Resolving product conflict", product_id=source.get("id"), strategy=strategy.value)

        if strategy == ConflictStrategy.SOURCE_WINS:
            return ConflictResolution(source, strategy, detect_changes(destination, source))
        if strategy == ConflictStrategy.DESTINATION_WINS:
            return ConflictResolution(destination, strategy, [])
        if strategy == ConflictStrategy.NEWER_WINS:
            return self._newer_wins(source, destination)
        if strategy == ConflictStrategy.MERGE:
            return self._merge(source, destination)

        raise SyncConflictError(
            str(source.get("id")),
            "Manual conflict resolution required",
            {"source": source, "destination": destination},
        )

    def _newer_wins(self, source: Product, destination: Product) -> ConflictResolution:
        source_updated = parse_g2a_timestamp(source.get("updatedAt")) or EPOCH
        destination_updated = parse_g2a_timestamp(destination.get("updatedAt")) or EPOCH

        if source_updated >= destination_updated:
            return ConflictResolution(source, ConflictStrategy.NEWER_WINS, detect_changes(destination, source))
        return ConflictResolution(destination, ConflictStrategy.NEWER_WINS, [])

    def _merge(self, source: Product, destination: Product) -> ConflictResolution:
        policy = self.merge_policy
        merged = copy.deepcopy(destination)
        changes = []

        for name in policy.critical_fields:
            if source.get(name) != destination.get(name):
                merged[name] = source.get(name)
                changes.append(f"{name}: {destination.get(name)} -> {source.get(name)}")

        if source.get(policy.timestamp_field):
            merged[policy.timestamp_field] = source[policy.timestamp_field]

        for name, identity in policy.union_fields.items():
            existing = destination.get(name)
            incoming = source.get(name)
            if not isinstance(existing, list) or not isinstance(incoming, list):
                continue
            combined = _union(existing, incoming, identity)
            if len(combined) != len(existing):
                merged[name] = combined
                changes.append(f"{name}: merged")

        return ConflictResolution(merged, ConflictStrategy.MERGE, changes)

    def resolve_many(self, conflicts: Iterable[Tuple[Product, Product]],
                     strategy: Union[ConflictStrategy, str, None] = None) -> List[ConflictResolution]:
        return [self.resolve_product(source, destination, strategy) for source, destination in conflicts]
