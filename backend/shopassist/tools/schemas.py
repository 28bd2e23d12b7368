from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ActionParams(BaseModel):
    """
    Base for handler parameter models. Model output is lossy, so unknown keys
    are ignored rather than rejected.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    session_id: Optional[str] = Field(default=None, alias="sessionId")


def _as_list(v: Any) -> List[str]:
    if v is None:
        return []
    if isinstance(v, str):
        return [v] if v.strip() else []
    return [str(x) for x in v if x is not None and str(x).strip()]


class SearchParams(ActionParams):
    query: str = ""
    max_price: Optional[float] = Field(default=None, alias="maxPrice", ge=0)
    min_price: Optional[float] = Field(default=None, alias="minPrice", ge=0)
    limit: Optional[int] = Field(default=None, ge=1, le=50)


class RecommendParams(ActionParams):
    query: str = ""
    preferences: List[str] = Field(default_factory=list)
    limit: int = Field(default=10, ge=1, le=50)

    @field_validator("preferences", mode="before")
    @classmethod
    def normalize_preferences(cls, v):
        return _as_list(v)


class OutfitParams(ActionParams):
    occasion: str = ""
    query: str = ""
    preferences: List[str] = Field(default_factory=list)

    @field_validator("preferences", mode="before")
    @classmethod
    def normalize_preferences(cls, v):
        return _as_list(v)


class CompareParams(ActionParams):
    product_ids: List[str] = Field(default_factory=list, alias="productIds")
    product_names: List[str] = Field(default_factory=list, alias="productNames")
    query: str = ""

    @field_validator("product_ids", "product_names", mode="before")
    @classmethod
    def normalize_lists(cls, v):
        return _as_list(v)


class AddToCartParams(ActionParams):
    product_id: Optional[str] = Field(default=None, alias="productId")
    quantity: int = Field(default=1, ge=1, le=99)


class CartItemParams(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    product_id: str = Field(alias="productId")
    quantity: int = Field(default=1, ge=1, le=99)


class AddMultipleParams(ActionParams):
    items: List[CartItemParams] = Field(default_factory=list)


class AddOutfitParams(ActionParams):
    shirt_id: Optional[str] = Field(default=None, alias="shirtId")
    pant_id: Optional[str] = Field(default=None, alias="pantId")
    shoe_id: Optional[str] = Field(default=None, alias="shoeId")


class RemoveFromCartParams(ActionParams):
    product_id: str = Field(alias="productId")


class CheckoutParams(ActionParams):
    payment_method: str = Field(default="COD", alias="paymentMethod")


class OrderParams(ActionParams):
    order_id: str = Field(alias="orderId")


class CancelOrderParams(OrderParams):
    reason: str = ""
