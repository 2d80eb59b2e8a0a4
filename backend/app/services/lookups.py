"""
Supabase lookups used by the routing pipeline.

These run on every inbound email, so each one is a small indexed query:
  provider_contacts.email
  external_quotations.provider_email / id
  quotation_requests.conversation_thread_id / customer_email

Missing rows are not errors. A missing Supabase client is: every lookup
raises StorageUnavailableError, which the pipeline turns into an escalation.
"""

import logging
import re
from dataclasses import dataclass
from typing import Optional

from app.db import StorageUnavailableError, supabase_admin
from app.models.routing import CustomerContext, CustomerHistory, ProviderContext

logger = logging.getLogger(__name__)

_OPEN_RFQ_STATUSES = ["sent", "pending"]
_SUCCESSFUL_STATUSES = {"quoted", "completed"}

# "Re: RFQ-123" -> "123"
_RFQ_REF_RE = re.compile(r"RFQ-(\d+)", re.IGNORECASE)


@dataclass(frozen=True)
class ProviderCheck:
    is_provider: bool
    context: Optional[ProviderContext] = None


@dataclass(frozen=True)
class CustomerCheck:
    is_existing: bool
    context: Optional[CustomerContext] = None


def _require_client():
    if supabase_admin is None:
        raise StorageUnavailableError(
            "Supabase admin client not available: SUPABASE_SERVICE_KEY is not configured"
        )
    return supabase_admin


# ---------------------------------------------------------------------------
# Providers
# ---------------------------------------------------------------------------

def find_related_rfq(provider_email: str, subject: Optional[str] = None) -> Optional[dict]:
    """
    Find the RFQ a provider email is most likely answering.

    Signal 1: an explicit ``RFQ-<id>`` reference in the subject.
    Signal 2: the provider's newest RFQ still in status sent/pending.

    Returns the external_quotations row (keys: id, quotation_request_id) or
    None. Query failures are logged and treated as "no RFQ"; a failed
    subject lookup still falls through to the open-RFQ lookup.
    """
    client = _require_client()

    match = _RFQ_REF_RE.search(subject or "")
    if match:
        try:
            result = (
                client.table("external_quotations")
                .select("id, quotation_request_id")
                .eq("id", match.group(1))
                .limit(1)
                .execute()
            )
            if result.data:
                return result.data[0]
        except Exception as e:
            logger.warning(f"Failed to look up RFQ-{match.group(1)} for {provider_email!r}: {e}")

    try:
        result = (
            client.table("external_quotations")
            .select("id, quotation_request_id")
            .eq("provider_email", provider_email)
            .in_("status", _OPEN_RFQ_STATUSES)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if result.data:
            return result.data[0]
    except Exception as e:
        logger.warning(f"Failed to look up related RFQ for {provider_email!r}: {e}")

    return None


def check_if_provider(email: str, subject: Optional[str] = None) -> ProviderCheck:
    """
    Check whether ``email`` belongs to a known provider contact.

    When it does, the related open RFQ (if any) is attached to the context.

    Raises:
        StorageUnavailableError: Supabase is not configured.
    """
    client = _require_client()

    result = (
        client.table("provider_contacts")
        .select("id, company_name, email")
        .eq("email", email)
        .limit(1)
        .execute()
    )
    if not result.data:
        return ProviderCheck(is_provider=False)

    provider = result.data[0]
    rfq = find_related_rfq(email, subject) or {}

    rfq_id = rfq.get("id")
    quotation_request_id = rfq.get("quotation_request_id")
    return ProviderCheck(
        is_provider=True,
        context=ProviderContext(
            provider_id=str(provider["id"]),
            provider_name=provider.get("company_name"),
            rfq_id=str(rfq_id) if rfq_id is not None else None,
            quotation_request_id=(
                str(quotation_request_id) if quotation_request_id is not None else None
            ),
        ),
    )


# ---------------------------------------------------------------------------
# Customers
# ---------------------------------------------------------------------------

def get_customer_history(email: str, fallback_date: Optional[str] = None) -> CustomerHistory:
    """
    Summarize every quotation request filed by ``email``.

    ``fallback_date`` is used as the last interaction when the customer has
    no requests under this email (a thread match from another address).
    """
    client = _require_client()

    result = (
        client.table("quotation_requests")
        .select("id, status, created_at")
        .eq("customer_email", email)
        .order("created_at", desc=True)
        .execute()
    )
    rows = result.data or []

    successful = sum(1 for r in rows if r.get("status") in _SUCCESSFUL_STATUSES)
    last_interaction = rows[0].get("created_at") if rows else fallback_date

    return CustomerHistory(
        total_quotations=len(rows),
        last_interaction_date=last_interaction,
        successful_orders=successful,
    )


def _newest_quotation_request(column: str, value: str) -> Optional[dict]:
    result = (
        _require_client()
        .table("quotation_requests")
        .select("id, customer_email, conversation_thread_id, created_at, status")
        .eq(column, value)
        .order("created_at", desc=True)
        .limit(1)
        .execute()
    )
    if result.data:
        return result.data[0]
    return None


def check_if_existing_customer(email: str, thread_id: Optional[str] = None) -> CustomerCheck:
    """
    Check whether the sender is a returning customer.

    Signals, in order (first hit wins):
      1. a quotation request on the same conversation thread
      2. the newest quotation request filed by this email address

    Thread continuity is checked first because it identifies the same
    conversation; an email match could point at an unrelated old request.

    Raises:
        StorageUnavailableError: Supabase is not configured.
    """
    _require_client()

    previous = None
    if thread_id:
        previous = _newest_quotation_request("conversation_thread_id", thread_id)

    if previous is None:
        previous = _newest_quotation_request("customer_email", email)

    if previous is None:
        return CustomerCheck(is_existing=False)

    history = get_customer_history(email, fallback_date=previous.get("created_at"))
    return CustomerCheck(
        is_existing=True,
        context=CustomerContext(
            previous_quotation_id=str(previous["id"]),
            customer_history=history,
        ),
    )
