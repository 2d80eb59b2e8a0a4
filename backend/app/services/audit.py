"""
Routing audit log.

Every classification is persisted to the routing_logs table after the
response has been sent. Writing the log must never affect the response, so
record_routing() does not raise: it returns an AuditResult describing what
happened and reports failures to the application log.

Environment variables
---------------------
ROUTING_LATENCY_BUDGET_MS   Slow-response warning threshold (default: 1000).
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from app.db import supabase_admin
from app.models.routing import ClassifyEmailResponse, RoutingLogRecord

logger = logging.getLogger(__name__)

_DEFAULT_LATENCY_BUDGET_MS = 1000


@dataclass(frozen=True)
class AuditResult:
    """Outcome of one audit write."""
    written: bool
    skipped: bool = False
    error: Optional[str] = None


def _latency_budget_ms() -> int:
    raw = os.getenv("ROUTING_LATENCY_BUDGET_MS", "").strip()
    try:
        return int(raw) if raw else _DEFAULT_LATENCY_BUDGET_MS
    except ValueError:
        return _DEFAULT_LATENCY_BUDGET_MS


def build_log_record(
    sender: str,
    subject: str,
    thread_id: str,
    response: ClassifyEmailResponse,
    elapsed_ms: int,
) -> RoutingLogRecord:
    """
    Build the routing_logs row for a decision.

    metadata carries the decision context under "context" merged with any
    branch metadata (e.g. the matched out-of-scope category).
    """
    metadata: dict = {}
    if response.context is not None:
        metadata["context"] = response.context.model_dump(mode="json", exclude_none=True)
    if response.metadata:
        metadata.update(response.metadata)

    return RoutingLogRecord(
        email_from=sender,
        email_subject=subject,
        thread_id=thread_id,
        routing_decision=response.routing_decision,
        action=response.action,
        confidence=response.confidence,
        reason=response.reason,
        response_time_ms=elapsed_ms,
        metadata=metadata,
        created_at=datetime.now(timezone.utc).isoformat(),
    )


def record_routing(
    sender: str,
    subject: str,
    thread_id: str,
    response: ClassifyEmailResponse,
    elapsed_ms: int,
) -> AuditResult:
    """
    Persist one routing decision. Never raises.

    Warns when the classification exceeded the latency budget, whether or
    not the write itself succeeds.
    """
    budget = _latency_budget_ms()
    if elapsed_ms > budget:
        logger.warning(
            f"Slow classify-and-route response: {elapsed_ms}ms for {sender} "
            f"(budget {budget}ms)"
        )

    if supabase_admin is None:
        logger.warning("Supabase admin client not available, skipping routing log")
        return AuditResult(written=False, skipped=True)

    try:
        record = build_log_record(sender, subject, thread_id, response, elapsed_ms)
        supabase_admin.table("routing_logs").insert(record.model_dump(mode="json")).execute()
    except Exception as e:
        logger.error(f"Failed to log routing decision for {sender}: {e}")
        return AuditResult(written=False, error=str(e))

    return AuditResult(written=True)
