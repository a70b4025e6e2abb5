from typing import List, Optional

from pydantic import ConfigDict, Field

from g2a_integration.schemas.base import G2ABaseSchema, PageMeta


class PriceSimulationRequest(G2ABaseSchema):
    product_id: str = Field(..., alias="productId")
    price: float = Field(..., gt=0)
    country: Optional[str] = None


class PriceSimulation(G2ABaseSchema):
    income: float
    final_price: float = Field(..., alias="finalPrice")
    business_final_price: Optional[float] = Field(None, alias="businessFinalPrice")
    business_income: Optional[float] = Field(None, alias="businessIncome")
    country: Optional[str] = None


class BestsellerFilters(G2ABaseSchema):
    model_config = ConfigDict(populate_by_name=True, extra="forbid")

    category: Optional[str] = None
    platform: Optional[str] = None
    page: Optional[int] = Field(None, ge=1)
    per_page: Optional[int] = Field(None, ge=1, alias="perPage")


class Bestseller(G2ABaseSchema):
    id: str
    name: str
    slug: Optional[str] = None
    price: Optional[float] = None
    currency: Optional[str] = None
    platform: Optional[str] = None
    category: Optional[str] = None
    cover_image: Optional[str] = Field(None, alias="coverImage")
    rank: Optional[int] = None


class BestsellersPage(G2ABaseSchema):
    data: List[Bestseller] = Field(default_factory=list)
    meta: Optional[PageMeta] = None
