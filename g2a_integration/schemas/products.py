from typing import Any, Dict, List, Optional

from pydantic import ConfigDict, Field, model_validator

from g2a_integration.schemas.base import G2ABaseSchema

G2A_TIMESTAMP_PATTERN = r"^\d{4}-\d{2}-\d{2}( \d{2}:\d{2}:\d{2})?$"
MAX_PRODUCT_PAGE = 500


class ProductFilters(G2ABaseSchema):
    """Query filters accepted by ``GET /products``."""

    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    page: Optional[int] = Field(None, ge=1, le=MAX_PRODUCT_PAGE)
    id: Optional[str] = None
    min_qty: Optional[int] = Field(None, ge=0, alias="minQty")
    min_price_from: Optional[float] = Field(None, ge=0, alias="minPriceFrom")
    min_price_to: Optional[float] = Field(None, ge=0, alias="minPriceTo")
    include_out_of_stock: Optional[bool] = Field(None, alias="includeOutOfStock")
    updated_at_from: Optional[str] = Field(None, pattern=G2A_TIMESTAMP_PATTERN, alias="updatedAtFrom")
    updated_at_to: Optional[str] = Field(None, pattern=G2A_TIMESTAMP_PATTERN, alias="updatedAtTo")

    @model_validator(mode="after")
    def check_ranges(self):
        if (self.min_price_from is not None and self.min_price_to is not None
                and self.min_price_from > self.min_price_to):
            raise ValueError("minPriceFrom must not exceed minPriceTo")
        if (self.updated_at_from and self.updated_at_to
                and self.updated_at_from > self.updated_at_to):
            raise ValueError("updatedAtFrom must not be after updatedAtTo")
        return self

    def to_params(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)

    def with_page(self, page: int) -> "ProductFilters":
        return self.model_copy(update={"page": page})


class ProductListResponse(G2ABaseSchema):
    """One page of the product catalog. Product records stay plain dicts."""
    total: int = 0
    page: int = 1
    docs: List[Dict[str, Any]] = Field(default_factory=list)
