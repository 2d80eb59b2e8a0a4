"""
Email routing decision engine.

classify_email() runs the four independent checks concurrently (spam and
scope heuristics inline, provider and customer lookups in worker threads),
then decide() applies the fixed priority table:

  1. spam confidence > 0.7      -> OUT_OF_SCOPE      / IGNORE
  2. known provider             -> PROVIDER_RESPONSE / CLOSE_AND_PROCESS_EXTERNALLY
  3. out-of-scope category      -> OUT_OF_SCOPE      / IGNORE
  4. existing customer          -> CUSTOMER_FOLLOWUP / CONTINUE_WITH_FIN
  5. quotation intent           -> CUSTOMER_INQUIRY  / CONTINUE_WITH_FIN
  6. anything else              -> UNCERTAIN         / ESCALATE_TO_HUMAN

Any exception raised while classifying yields the classification_error
fallback instead: Fin must always receive an actionable decision.
"""

import asyncio
import logging
from typing import Optional

from app.models.inbound_email import InboundEmail
from app.models.routing import (
    ClassifyEmailResponse,
    InquiryContext,
    RoutingAction,
    RoutingDecision,
)
from app.services.heuristics import (
    ScopeCheck,
    SpamCheck,
    check_out_of_scope,
    check_quotation_intent,
    check_spam,
)
from app.services.lookups import (
    CustomerCheck,
    ProviderCheck,
    check_if_existing_customer,
    check_if_provider,
)
from app.services.routing_rules import RoutingRules, get_routing_rules

logger = logging.getLogger(__name__)

SPAM_IGNORE_THRESHOLD = 0.7

PROVIDER_AUTOMATED_REPLY = (
    "Hola, gracias por tu cotización. La estamos procesando y te contactaremos "
    "si necesitamos alguna aclaración.\n\nSaludos,\nEquipo Arkcutt"
)
UNCERTAIN_ESCALATION_MESSAGE = (
    "Gracias por contactarnos. Un miembro de nuestro equipo revisará tu mensaje "
    "y te responderá en breve."
)
FALLBACK_ESCALATION_MESSAGE = (
    "Gracias por contactarnos. Un miembro de nuestro equipo te responderá en breve."
)


def decide(
    email: InboundEmail,
    spam: SpamCheck,
    provider: ProviderCheck,
    scope: ScopeCheck,
    customer: CustomerCheck,
    rules: Optional[RoutingRules] = None,
) -> ClassifyEmailResponse:
    """
    Apply the priority table to already-computed check results.

    Pure given its inputs: the only extra work is the intent heuristic,
    which is evaluated lazily when rules 1-4 did not fire.
    """
    if spam.confidence > SPAM_IGNORE_THRESHOLD:
        return ClassifyEmailResponse(
            routing_decision=RoutingDecision.OUT_OF_SCOPE,
            action=RoutingAction.IGNORE,
            confidence=spam.confidence,
            reason="spam_detected",
        )

    if provider.is_provider:
        metadata = None
        if provider.context is not None:
            metadata = {"context": provider.context.model_dump(mode="json", exclude_none=True)}
        return ClassifyEmailResponse(
            routing_decision=RoutingDecision.PROVIDER_RESPONSE,
            action=RoutingAction.CLOSE_AND_PROCESS_EXTERNALLY,
            confidence=1.0,
            reason="email_from_known_provider",
            automated_reply=PROVIDER_AUTOMATED_REPLY,
            metadata=metadata,
        )

    if scope.is_out_of_scope:
        return ClassifyEmailResponse(
            routing_decision=RoutingDecision.OUT_OF_SCOPE,
            action=RoutingAction.IGNORE,
            confidence=1.0,
            reason=f"out_of_scope:{scope.reason}",
            metadata={"category": scope.reason},
        )

    if customer.is_existing:
        return ClassifyEmailResponse(
            routing_decision=RoutingDecision.CUSTOMER_FOLLOWUP,
            action=RoutingAction.CONTINUE_WITH_FIN,
            confidence=1.0,
            reason="existing_customer_thread",
            context=customer.context,
        )

    intent = check_quotation_intent(email.subject, email.body, email.has_attachments, rules)
    if intent.has_intent:
        return ClassifyEmailResponse(
            routing_decision=RoutingDecision.CUSTOMER_INQUIRY,
            action=RoutingAction.CONTINUE_WITH_FIN,
            confidence=intent.confidence,
            reason=(
                "technical_attachments_detected"
                if email.has_attachments
                else "quotation_keywords_detected"
            ),
            context=InquiryContext(has_technical_attachments=email.has_attachments),
        )

    return ClassifyEmailResponse(
        routing_decision=RoutingDecision.UNCERTAIN,
        action=RoutingAction.ESCALATE_TO_HUMAN,
        confidence=0.5,
        reason="no_clear_intent_detected",
        escalation_message=UNCERTAIN_ESCALATION_MESSAGE,
    )


def fallback_response() -> ClassifyEmailResponse:
    """Safe decision returned when classification itself failed."""
    return ClassifyEmailResponse(
        routing_decision=RoutingDecision.UNCERTAIN,
        action=RoutingAction.ESCALATE_TO_HUMAN,
        confidence=0.0,
        reason="classification_error",
        escalation_message=FALLBACK_ESCALATION_MESSAGE,
    )


async def _run_pure(func, *args):
    return func(*args)


async def classify_email(
    email: InboundEmail,
    rules: Optional[RoutingRules] = None,
) -> ClassifyEmailResponse:
    """
    Classify one inbound email. Never raises.

    The provider and customer lookups are blocking Supabase calls, so they
    run in worker threads; all four checks are awaited together before the
    priority table is applied.
    """
    try:
        rules = rules or get_routing_rules()

        provider, customer, spam, scope = await asyncio.gather(
            asyncio.to_thread(check_if_provider, email.sender_email, email.subject),
            asyncio.to_thread(check_if_existing_customer, email.sender_email, email.thread_id),
            _run_pure(check_spam, email.subject, email.body, email.sender_email, rules),
            _run_pure(check_out_of_scope, email.subject, email.body, rules),
        )

        return decide(email, spam, provider, scope, customer, rules)
    except Exception:
        logger.exception(f"Classification failed for {email.sender_email!r}; escalating")
        return fallback_response()
