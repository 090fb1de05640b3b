from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import Field

from storefront.models.return_models import DEFAULT_REFUND_METHOD, RefundReason, RefundStatus, ReturnStatus, ReturnType
from storefront.schemas.base_schemas import CamelModel


class ReturnDecision(str, Enum):
    """Statuses an operator may move a return request to"""
    APPROVED = ReturnStatus.APPROVED.value
    REJECTED = ReturnStatus.REJECTED.value


class ReturnResponse(CamelModel):
    id: str
    order_id: str
    type: ReturnType
    reason: str
    images: List[str] = Field(default_factory=list)
    status: ReturnStatus
    admin_notes: Optional[str] = None
    requested_at: datetime
    approved_at: Optional[datetime] = None
    updated_at: datetime


class ReturnStatusUpdate(CamelModel):
    status: ReturnDecision
    admin_notes: Optional[str] = Field(None, max_length=1000)


class ReturnMessageResponse(CamelModel):
    message: str
    return_request: ReturnResponse


class RefundResponse(CamelModel):
    id: str
    order_id: str
    amount: float
    method: str
    reason: RefundReason
    status: RefundStatus
    transaction_id: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime
    completed_at: Optional[datetime] = None


class RefundSummary(CamelModel):
    """Refund details returned to the customer on cancellation"""
    id: str
    amount: float
    status: RefundStatus
    estimated_days: int


class RefundProcessRequest(CamelModel):
    method: str = Field(DEFAULT_REFUND_METHOD, min_length=1, max_length=50)
    transaction_id: Optional[str] = Field(None, max_length=100)


class RefundCompleteRequest(CamelModel):
    transaction_id: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)


class RefundMessageResponse(CamelModel):
    message: str
    refund: RefundResponse
