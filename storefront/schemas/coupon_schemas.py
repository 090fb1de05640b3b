from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import Field, field_validator, model_validator

from storefront.models.coupon_models import CouponType, normalize_code
from storefront.schemas.base_schemas import CamelModel
from storefront.utils.date_utils import to_naive_utc


class CouponApplyRequest(CamelModel):
    code: str = Field(..., min_length=1, max_length=64, description="Coupon code")
    cart_total: Decimal = Field(..., ge=0, description="Cart subtotal the coupon is priced against")


class CouponApplyResponse(CamelModel):
    code: str
    type: CouponType
    value: float
    discount_amount: float


class CouponCreate(CamelModel):
    code: str = Field(..., min_length=3, max_length=64)
    type: CouponType
    value: Decimal = Field(..., ge=0)
    min_order: Optional[Decimal] = Field(None, ge=0)
    max_discount: Optional[Decimal] = Field(None, gt=0)
    usage_limit: Optional[int] = Field(None, ge=1)
    expires_at: Optional[datetime] = None

    @field_validator("code")
    @classmethod
    def normalize(cls, v: str) -> str:
        v = normalize_code(v)
        if not v:
            raise ValueError("code must not be blank")
        return v

    @field_validator("expires_at")
    @classmethod
    def normalize_expiry(cls, v: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(v)

    @model_validator(mode="after")
    def check_percentage(self):
        if self.type == CouponType.PERCENTAGE and self.value > 100:
            raise ValueError("percentage coupons cannot exceed 100")
        return self


class CouponResponse(CamelModel):
    id: str
    code: str
    type: CouponType
    value: float
    min_order: Optional[float] = None
    max_discount: Optional[float] = None
    usage_limit: Optional[int] = None
    current_usage: int
    expires_at: Optional[datetime] = None
    created_at: datetime
