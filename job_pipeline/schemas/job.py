from datetime import date
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class _Payload(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ApprovePayload(_Payload):
    approved_flight: date = Field(..., alias="approvedFlight", description="Approved flight date")


class SchedulePayload(_Payload):
    scheduled_date: date = Field(..., alias="scheduledDate")
    scheduled_flight: date = Field(..., alias="scheduledFlight")
    persons_assigned: List[int] = Field(..., alias="personsAssigned", min_length=1,
                                        description="Assigned pilot user ids")


class LogFlightPayload(_Payload):
    flown_date: date = Field(..., alias="flownDate")
    flight_log: Dict[str, Any] = Field(default_factory=dict, alias="flightLog")


class DeliverPayload(_Payload):
    delivered_date: Optional[date] = Field(None, alias="deliveredDate", description="Defaults to today")


class BillPayload(_Payload):
    billed_date: Optional[date] = Field(None, alias="billedDate", description="Defaults to today")
    invoice_number: str = Field(..., alias="invoiceNumber", min_length=1)


class BillPaidPayload(_Payload):
    bill_paid_date: Optional[date] = Field(None, alias="billPaidDate", description="Defaults to today")
    invoice_paid: Optional[str] = Field(None, alias="invoicePaid")


class DeletePayload(_Payload):
    pass


class JobCreate(_Payload):
    name: str = Field(..., min_length=1, max_length=255)
    site_id: int = Field(..., alias="siteId", gt=0)
    client_id: int = Field(..., alias="clientId", gt=0)
    client_type: Literal["organization", "individual"] = Field("organization", alias="clientType")
    date_requested: Optional[date] = Field(None, alias="dateRequested")
    products: List[int] = Field(default_factory=list)
    notes: Optional[str] = None
    amount_payable: Optional[str] = Field(None, alias="amountPayable")
    recurring_occurrence_id: Optional[int] = Field(None, alias="recurringOccurrenceId")


class JobUpdate(_Payload):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    site_id: Optional[int] = Field(None, alias="siteId", gt=0)
    client_id: Optional[int] = Field(None, alias="clientId", gt=0)
    client_type: Optional[Literal["organization", "individual"]] = Field(None, alias="clientType")
    products: Optional[List[int]] = None
    notes: Optional[str] = None
    amount_payable: Optional[str] = Field(None, alias="amountPayable")


class JobOut(BaseModel):
    id: int
    pipeline: str
    name: Optional[str]
    createdBy: int
    siteId: int
    clientId: Optional[int]
    clientType: Optional[str]
    products: List[int]
    dates: Dict[str, str]
    recurringOccurrenceId: Optional[int] = None
    meta: Dict[str, str] = {}


class JobListResponse(BaseModel):
    jobs: List[JobOut]
    counts: Dict[str, int]
