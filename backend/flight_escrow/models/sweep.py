"""
Refund sweep and webhook reconciliation result models.
"""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import RefundOutcome


class RefundResultModel(BaseModel):
    """Outcome for one booking processed by the refund sweep."""
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(..., serialization_alias="bookingId")
    flight_number: str = Field(..., serialization_alias="flightNumber")
    status: RefundOutcome
    refund_amount: Optional[float] = Field(None, serialization_alias="refundAmount")
    error: Optional[str] = None


class SweepReportModel(BaseModel):
    """Full report of a refund sweep run."""
    model_config = ConfigDict(populate_by_name=True)

    message: str = "Refund check completed"
    results: List[RefundResultModel] = Field(default_factory=list)
    flights_checked: int = Field(0, ge=0, serialization_alias="flightsChecked")

    @property
    def failed(self) -> List[RefundResultModel]:
        return [r for r in self.results if r.status == RefundOutcome.FAILED]


class ReconcileResultModel(BaseModel):
    """What the webhook reconciler did with one event."""
    event_id: str
    event_type: str
    booking_id: Optional[str] = None
    action: str = Field(..., description="Transition applied, 'noop' or 'ignored'")
