"""
Fin routing router.

Fin calls classify-and-route for every inbound email to decide whether it
should keep the conversation, hand it to the quotation back office, ignore
it, or escalate it to a human. Target latency is under one second.

Environment variables
---------------------
FIN_API_TOKEN   Bearer token expected in the Authorization header.

Endpoints:
  POST /classify-and-route   classify one inbound email (auth: Bearer token)
  GET  /classify-and-route   endpoint descriptor (no auth)
"""

import logging
import os
import time

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError

from app.auth import verify_fin_token
from app.models.inbound_email import ClassifyEmailRequest
from app.models.routing import RoutingAction, RoutingDecision
from app.services.audit import record_routing
from app.services.routing import classify_email

logger = logging.getLogger(__name__)

router = APIRouter()


def _format_validation_errors(exc: ValidationError) -> list[dict]:
    """Flatten pydantic errors into [{field, message, type}] items."""
    details = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ())]
        details.append({
            "field": ".".join(loc) or "body",
            "message": err.get("msg", "invalid value"),
            "type": err.get("type", "value_error"),
        })
    return details


def _invalid_request(field: str, message: str, error_type: str) -> HTTPException:
    return HTTPException(
        status_code=400,
        detail={
            "error": "Invalid request",
            "details": [{"field": field, "message": message, "type": error_type}],
        },
    )


@router.get("/classify-and-route")
async def describe_classify_and_route() -> dict:
    """Describe the classify-and-route endpoint. Never exposes the token."""
    return {
        "endpoint": "classify-and-route",
        "method": "POST",
        "description": "Classifies an inbound email and tells Fin how to route it",
        "routing_decisions": [d.value for d in RoutingDecision],
        "actions": [a.value for a in RoutingAction],
        "authentication": "Bearer token required",
        "token_configured": bool(os.getenv("FIN_API_TOKEN", "").strip()),
    }


@router.post("/classify-and-route")
async def classify_and_route(
    http_request: Request,
    background_tasks: BackgroundTasks,
    _: None = Depends(verify_fin_token),
) -> dict:
    """
    Classify an inbound email and return the routing decision.

    The body is read here rather than declared as a parameter so that the
    bearer token is checked before the body is parsed. Returns 400 with
    itemized field errors when the body is not a JSON object or fails
    validation.
    Otherwise always returns 200: classification failures degrade to an
    UNCERTAIN / ESCALATE_TO_HUMAN decision. The routing_logs write runs as
    a background task after the response has been sent.
    """
    started = time.perf_counter()

    try:
        payload = await http_request.json()
    except ValueError:
        raise _invalid_request("body", "Request body must be valid JSON", "json_invalid")

    if not isinstance(payload, dict):
        raise _invalid_request("body", "Request body must be a JSON object", "dict_type")

    try:
        request = ClassifyEmailRequest.model_validate(payload)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail={"error": "Invalid request", "details": _format_validation_errors(exc)},
        )

    email = request.to_inbound_email()
    response = await classify_email(email)
    elapsed_ms = int((time.perf_counter() - started) * 1000)

    logger.info(
        f"Routed email from {email.sender_email}: {response.routing_decision.value} / "
        f"{response.action.value} ({response.reason}, {elapsed_ms}ms)"
    )

    background_tasks.add_task(
        record_routing,
        email.sender_email,
        email.subject,
        email.thread_id,
        response,
        elapsed_ms,
    )

    return response.model_dump(mode="json", exclude_none=True)
