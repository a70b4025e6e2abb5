from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, model_validator

from g2a_integration.schemas.base import G2ABaseSchema, PageMeta


class OfferType(str, Enum):
    DROPSHIPPING = "dropshipping"
    PROMO = "promo"
    STEAMGIFT = "steamgift"
    GAME = "game"
    PREORDER = "preorder"


class OfferVisibility(str, Enum):
    RETAIL = "retail"
    BUSINESS = "business"
    BOTH = "both"


class CreateOfferRequest(G2ABaseSchema):
    offer_type: OfferType = Field(..., alias="offerType")
    product_id: str = Field(..., alias="productId")
    price: float = Field(..., gt=0)
    visibility: OfferVisibility = OfferVisibility.RETAIL
    inventory: Optional[Dict[str, Any]] = None
    variant: Optional[Dict[str, Any]] = None


class UpdateOfferRequest(G2ABaseSchema):
    price: Optional[float] = Field(None, gt=0)
    visibility: Optional[OfferVisibility] = None
    active: Optional[bool] = None
    inventory: Optional[Dict[str, Any]] = None
    variant: Optional[Dict[str, Any]] = None


class OfferFilters(G2ABaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    product_id: Optional[str] = Field(None, alias="productId")
    status: Optional[str] = None
    offer_type: Optional[OfferType] = Field(None, alias="offerType")
    active: Optional[bool] = None
    page: Optional[int] = Field(None, ge=1)
    per_page: Optional[int] = Field(None, ge=1, alias="perPage")


class CreateOfferResponse(G2ABaseSchema):
    job_id: str = Field(..., alias="jobId")


class Offer(G2ABaseSchema):
    id: str
    type: Optional[str] = None
    product_id: Optional[str] = Field(None, alias="productId")
    product_name: Optional[str] = Field(None, alias="productName")
    price: Optional[float] = None
    visibility: Optional[str] = None
    status: Optional[str] = None
    active: Optional[bool] = None
    inventory: Optional[Dict[str, Any]] = None
    created_at: Optional[str] = Field(None, alias="createdAt")
    updated_at: Optional[str] = Field(None, alias="updatedAt")


class OffersPage(G2ABaseSchema):
    data: List[Offer] = Field(default_factory=list)
    meta: Optional[PageMeta] = None


class InventoryKind(str, Enum):
    KEYS = "keys"
    FILE = "file"


class InventoryPayload(G2ABaseSchema):
    """
    Inventory upload: either a list of key strings or a single key file.

    Build one with ``from_keys`` or ``from_file``; the validator rejects
    payloads whose fields disagree with ``kind``.
    """
    kind: InventoryKind
    keys: List[str] = Field(default_factory=list)
    file_name: Optional[str] = None
    content: Optional[bytes] = None

    @model_validator(mode="after")
    def check_kind(self):
        if self.kind == InventoryKind.KEYS:
            if not self.keys:
                raise ValueError("keys inventory requires at least one key")
            if self.content is not None:
                raise ValueError("keys inventory must not carry file content")
        else:
            if not self.file_name or self.content is None:
                raise ValueError("file inventory requires file_name and content")
            if self.keys:
                raise ValueError("file inventory must not carry keys")
        return self

    @classmethod
    def from_keys(cls, keys: List[str]) -> "InventoryPayload":
        return cls(kind=InventoryKind.KEYS, keys=list(keys))

    @classmethod
    def from_file(cls, file_name: str, content: bytes) -> "InventoryPayload":
        return cls(kind=InventoryKind.FILE, file_name=file_name, content=content)

    @property
    def size(self) -> int:
        return len(self.keys) if self.kind == InventoryKind.KEYS else 1


class InventoryUploadResponse(G2ABaseSchema):
    collection_uuid: str = Field(..., alias="collectionUuid")
