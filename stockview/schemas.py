from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from . import utils


class Record(BaseModel):
    """
    Defines the data contract for a single inventory item (a spare part or piece of equipment).
    The store document key is the id; the document body carries the remaining fields
    under their camelCase aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(..., min_length=1)
    name: str = ""
    brand: str = ""
    count: int = Field(default=0, ge=0)
    bought_price: float = Field(default=0.0, ge=0, alias="boughtPrice")
    sold_price: float = Field(default=0.0, ge=0, alias="soldPrice")

    @field_validator("name", "brand", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        return "" if value is None else str(value)

    @field_validator("count", mode="before")
    @classmethod
    def _coerce_count(cls, value: Any) -> int:
        return utils.parse_count(value)

    @field_validator("bought_price", "sold_price", mode="before")
    @classmethod
    def _coerce_price(cls, value: Any) -> float:
        return utils.parse_price(value)

    @classmethod
    def from_document(cls, doc_id: str, data: dict[str, Any]) -> "Record":
        # The store key is authoritative, even if the body carries its own "id".
        return cls.model_validate({**data, "id": doc_id})

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude={"id"})


class _FormState(BaseModel):
    # Form widgets hand over raw text; anything else is stringified on the way in.
    model_config = ConfigDict(frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _as_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, float):
            return utils.format_number(value)
        return str(value)


class NewItemDraft(_FormState):
    """Unvalidated state of the "add item" form."""

    id: str = ""
    name: str = ""
    brand: str = ""
    count: str = ""
    bought_price: str = ""
    sold_price: str = ""


class EditDraft(_FormState):
    """Edit form for an existing record. The id is fixed when the draft is created."""

    id: str
    name: str = ""
    brand: str = ""
    count: str = ""
    bought_price: str = ""
    sold_price: str = ""

    @classmethod
    def from_record(cls, record: Record) -> "EditDraft":
        return cls(
            id=record.id,
            name=record.name,
            brand=record.brand,
            count=str(record.count),
            bought_price=record.bought_price,
            sold_price=record.sold_price,
        )


class SortMode(str, Enum):
    NONE = "none"
    SOLD_PRICE_ASC = "sold_asc"
    SOLD_PRICE_DESC = "sold_desc"
    COUNT_ASC = "count_asc"
    COUNT_DESC = "count_desc"


class ViewParameters(BaseModel):
    """Search, filter and sort settings of one view. Defaults mean "show everything"."""

    model_config = ConfigDict(frozen=True)

    search_text: str = ""
    brand_filter: Optional[str] = None
    sort_mode: SortMode = SortMode.NONE
    # None tracks the highest count currently in the mirror instead of a stored number.
    max_count: Optional[int] = Field(default=None, ge=0)

    @field_validator("brand_filter", mode="before")
    @classmethod
    def _empty_brand_means_all(cls, value: Any) -> Optional[str]:
        return value or None


class BrandGroup(BaseModel):
    model_config = ConfigDict(frozen=True)

    brand: str
    items: tuple[Record, ...]


class Projection(BaseModel):
    """The grouped, filtered and sorted result handed to the presentation layer."""

    model_config = ConfigDict(frozen=True)

    groups: tuple[BrandGroup, ...] = ()
    distinct_brands: tuple[str, ...] = ()
    observed_max_count: int = 0
    effective_max_count: int = 0

    def records(self) -> list[Record]:
        """All records in projection order, groups flattened."""
        return [item for group in self.groups for item in group.items]

    @property
    def total(self) -> int:
        return sum(len(group.items) for group in self.groups)
