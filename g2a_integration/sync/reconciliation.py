# g2a_integration/sync/reconciliation.py
import hashlib
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List

from g2a_integration.utils.enhanced_logging import get_logger

Product = Dict[str, Any]

CHECKSUM_FIELDS = ("id", "name", "price", "qty", "updatedAt")
COMPARED_FIELDS = ("name", "price", "qty", "currency")


@dataclass
class FieldMismatch:
    field: str
    expected: Any
    actual: Any


@dataclass
class ReconciliationResult:
    valid: bool
    total_records: int
    checksum: str
    destination_checksum: str
    mismatches: List[FieldMismatch] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


class SyncReconciliation:
    """Integrity check between the partner's product set and the local one."""

    def __init__(self):
        self.logger = get_logger("sync.reconciliation")

    @staticmethod
    def generate_checksum(products: List[Product]) -> str:
        """SHA-256 over the canonical fields of each record, sorted by id."""
        digest = hashlib.sha256()
        for product in sorted(products, key=lambda p: str(p.get("id", ""))):
            canonical = {name: product.get(name) for name in CHECKSUM_FIELDS}
            digest.update(json.dumps(canonical, sort_keys=True, separators=(",", ":"), default=str).encode("utf-8"))
        return digest.hexdigest()

    @staticmethod
    def compare_products(source: Product, destination: Product) -> List[FieldMismatch]:
        product_id = source.get("id")
        return [
            FieldMismatch(f"{product_id}.{name}", source.get(name), destination.get(name))
            for name in COMPARED_FIELDS
            if source.get(name) != destination.get(name)
        ]

    def verify(self, source_products: List[Product], destination_products: List[Product]) -> ReconciliationResult:
        self.logger.info(
            "Starting sync reconciliation",
            source_count=len(source_products),
            destination_count=len(destination_products)
        )
        errors = []
        mismatches: List[FieldMismatch] = []

        if len(source_products) != len(destination_products):
            errors.append(
                f"Product count mismatch: expected {len(source_products)}, got {len(destination_products)}"
            )

        source_checksum = self.generate_checksum(source_products)
        destination_checksum = self.generate_checksum(destination_products)

        if source_checksum != destination_checksum:
            errors.append("Checksum mismatch detected")
            by_id = {product.get("id"): product for product in source_products}
            for destination in destination_products:
                source = by_id.get(destination.get("id"))
                if source is not None:
                    mismatches.extend(self.compare_products(source, destination))

        valid = not errors and not mismatches
        self.logger.info(
            "Sync reconciliation completed",
            valid=valid,
            error_count=len(errors),
            mismatch_count=len(mismatches)
        )
        return ReconciliationResult(
            valid=valid,
            total_records=len(source_products),
            checksum=source_checksum,
            destination_checksum=destination_checksum,
            mismatches=mismatches,
            errors=errors,
        )
