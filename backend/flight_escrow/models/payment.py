"""
Payment hold and webhook event models.

These mirror the remote payment processor objects the lifecycle engine works
with, independent of the processor SDK's own types.
"""

from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from .enums import HoldStatus


class HoldModel(BaseModel):
    """Authorization hold on the traveler's payment method."""
    hold_id: str = Field(..., description="Processor reference, e.g. 'pi_...'")
    status: HoldStatus
    amount: Decimal = Field(..., ge=0, description="Held amount in major units")
    client_secret: Optional[str] = Field(None, description="Secret for client-side confirmation")


class GatewayResultModel(BaseModel):
    """Outcome of a capture, cancel or refund call."""
    hold_id: str
    status: HoldStatus
    noop: bool = Field(False, description="Hold was already in the target state")
    refund_id: Optional[str] = None


class PaymentEventModel(BaseModel):
    """Verified webhook event reduced to what reconciliation needs."""
    event_id: str
    event_type: str
    hold_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
