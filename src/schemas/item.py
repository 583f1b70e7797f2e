"""Item schemas."""

from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ItemCreate(BaseModel):
    """Create a new item."""

    name: str = Field(..., max_length=500)
    quantity: float = Field(1, gt=0)
    unit: str = Field("", max_length=50)
    category: str = Field("Uncategorized", max_length=100)


class ItemUpdate(BaseModel):
    """Partial update of an item. Omitted fields are left alone."""

    name: str | None = Field(None, max_length=500)
    quantity: float | None = Field(None, gt=0)
    unit: str | None = Field(None, max_length=50)
    category: str | None = Field(None, max_length=100)
    is_bought: bool | None = None


class ItemResponse(BaseModel):
    """Item response; also the item body of realtime events."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    list_id: int
    name: str
    quantity: float
    unit: str
    category: str
    is_bought: bool
    bought_by: list[int] = Field(
        default_factory=list,
        validation_alias=AliasChoices("bought_by_ids", "bought_by"),
    )
    sort_order: int
    created_at: datetime
    updated_at: datetime
