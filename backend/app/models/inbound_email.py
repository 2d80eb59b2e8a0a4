"""
Inbound email models for the classify-and-route endpoint.

ClassifyEmailRequest is the wire format posted by Fin. It is validated
strictly and converted into an immutable InboundEmail, which is what the
heuristics and lookups work with.
"""

import re
from typing import Optional, Union

from pydantic import BaseModel, Field, StrictBool, StrictFloat, StrictInt, StrictStr, field_validator

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AttachmentMeta(BaseModel):
    """Metadata for one attachment. Fin never sends the file content."""
    model_config = {"frozen": True}

    filename: StrictStr
    content_type: StrictStr
    size: Optional[Union[StrictInt, StrictFloat]] = None


class InboundEmail(BaseModel):
    """One inbound email, immutable for the duration of a classification."""
    model_config = {"frozen": True}

    sender_email: str
    subject: str
    body: str
    thread_id: str
    has_attachments: bool
    attachments: tuple[AttachmentMeta, ...] = ()


class ClassifyEmailRequest(BaseModel):
    """
    Request body for POST /api/fin/classify-and-route.

    ``from`` is a Python keyword, so it is exposed as ``sender`` with an alias.
    Only the ``from`` key is accepted on the wire.
    Unknown fields are ignored.
    """
    model_config = {"extra": "ignore"}

    sender: StrictStr = Field(alias="from")
    subject: StrictStr
    body: StrictStr
    thread_id: StrictStr
    has_attachments: StrictBool
    attachments: Optional[list[AttachmentMeta]] = None

    @field_validator("sender")
    @classmethod
    def validate_sender(cls, v: str) -> str:
        v = v.strip()
        if not _EMAIL_RE.match(v):
            raise ValueError("must be a valid email address")
        return v

    def to_inbound_email(self) -> InboundEmail:
        return InboundEmail(
            sender_email=self.sender,
            subject=self.subject,
            body=self.body,
            thread_id=self.thread_id,
            has_attachments=self.has_attachments,
            attachments=tuple(self.attachments or ()),
        )
