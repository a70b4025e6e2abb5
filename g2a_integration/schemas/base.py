from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class G2ABaseSchema(BaseModel):
    """Base schema for partner payloads: camelCase aliases, snake_case attributes."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_payload(self) -> dict:
        """Serialize with partner field names, dropping unset optionals."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class PageMeta(G2ABaseSchema):
    current_page: int = Field(1, alias="currentPage")
    last_page: int = Field(1, alias="lastPage")
    per_page: int = Field(0, alias="perPage")
    total: int = 0
