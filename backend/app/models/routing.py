"""
Pydantic models for routing decisions.

Models:
  RoutingDecision / RoutingAction  closed enumerations returned to Fin
  ProviderContext                  sender is a known supplier
  CustomerContext                  sender is a returning customer
  InquiryContext                   new quotation inquiry
  RoutingContext                   tagged union of the three, keyed on ``kind``
  ClassifyEmailResponse            response body for classify-and-route
  RoutingLogRecord                 row inserted into routing_logs
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field


class RoutingDecision(str, Enum):
    CUSTOMER_INQUIRY = "CUSTOMER_INQUIRY"
    CUSTOMER_FOLLOWUP = "CUSTOMER_FOLLOWUP"
    PROVIDER_RESPONSE = "PROVIDER_RESPONSE"
    OUT_OF_SCOPE = "OUT_OF_SCOPE"
    UNCERTAIN = "UNCERTAIN"


class RoutingAction(str, Enum):
    CONTINUE_WITH_FIN = "CONTINUE_WITH_FIN"
    CLOSE_AND_PROCESS_EXTERNALLY = "CLOSE_AND_PROCESS_EXTERNALLY"
    ESCALATE_TO_HUMAN = "ESCALATE_TO_HUMAN"
    IGNORE = "IGNORE"


# ---------------------------------------------------------------------------
# Context payloads
# ---------------------------------------------------------------------------

class ProviderContext(BaseModel):
    """Known supplier, optionally with the open RFQ it is most likely answering."""
    model_config = {"frozen": True}

    kind: Literal["provider"] = "provider"
    provider_id: str
    provider_name: Optional[str] = None
    rfq_id: Optional[str] = None
    quotation_request_id: Optional[str] = None


class CustomerHistory(BaseModel):
    """Lightweight summary of a customer's previous quotation requests."""
    model_config = {"frozen": True}

    total_quotations: int
    last_interaction_date: Optional[datetime] = None
    successful_orders: int


class CustomerContext(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["customer"] = "customer"
    existing_customer: bool = True
    previous_quotation_id: Optional[str] = None
    customer_history: Optional[CustomerHistory] = None


class InquiryContext(BaseModel):
    model_config = {"frozen": True}

    kind: Literal["inquiry"] = "inquiry"
    existing_customer: bool = False
    detected_intent: str = "quotation_request"
    has_technical_attachments: bool = False


RoutingContext = Annotated[
    Union[ProviderContext, CustomerContext, InquiryContext],
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Response body and audit row
# ---------------------------------------------------------------------------

class ClassifyEmailResponse(BaseModel):
    """
    Response body for POST /api/fin/classify-and-route.

    The optional fields are only present for the branches that produce them;
    the router serializes with exclude_none so absent fields are omitted.
    """
    model_config = {"frozen": True}

    routing_decision: RoutingDecision
    action: RoutingAction
    confidence: float = Field(ge=0, le=1)
    reason: str
    automated_reply: Optional[str] = None
    escalation_message: Optional[str] = None
    context: Optional[RoutingContext] = None
    metadata: Optional[Dict[str, Any]] = None


class RoutingLogRecord(BaseModel):
    """Row inserted into routing_logs. Insert-only; never updated."""

    email_from: str
    email_subject: str
    thread_id: str
    routing_decision: RoutingDecision
    action: RoutingAction
    confidence: float
    reason: str
    response_time_ms: int
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: str
