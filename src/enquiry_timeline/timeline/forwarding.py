"""Forwarding resolver -- true forward when possible, composed message otherwise.

A true forward asks the mail server to forward the original message from
the mailbox it lives in, preserving its protocol-level identity. That needs
a message id (or a cross-system internet message id) plus the owning
mailbox address. Anything else (pitches, emails found without identifiers)
is forwarded by composing a new message that quotes the original.
"""

from __future__ import annotations

import html

from src.enquiry_timeline.timeline.errors import ForwardingError, UnsupportedForwardError
from src.enquiry_timeline.timeline.schemas import (
    CommunicationType,
    EmailMetadata,
    ForwardMode,
    ForwardRequest,
    TimelineItem,
)

FORWARDABLE_TYPES = frozenset({CommunicationType.EMAIL, CommunicationType.PITCH})

MISSING_IDENTIFIERS_WARNING = (
    "Original message identifiers are unavailable; the email will be sent as "
    "a new message quoting the original."
)

_DATE_FORMAT = "%d %b %Y, %H:%M"


def forward_subject(subject: str) -> str:
    if subject.lower().startswith("fwd:"):
        return subject
    return f"Fwd: {subject}"


def compose_synthetic_body(item: TimelineItem) -> str:
    """Quote the original subject, date, sender and body in a new message.

    Produces HTML when the item has a marked-up body, plain text otherwise.
    """
    sent = item.timestamp.strftime(_DATE_FORMAT)

    if item.rich_content:
        return (
            "<p><strong>---------- Forwarded message ---------</strong><br/>"
            f"<strong>From:</strong> {html.escape(item.author)}<br/>"
            f"<strong>Date:</strong> {html.escape(sent)}<br/>"
            f"<strong>Subject:</strong> {html.escape(item.subject)}</p>"
            f"<div>{item.rich_content}</div>"
        )

    return (
        "---------- Forwarded message ---------\n"
        f"From: {item.author}\n"
        f"Date: {sent}\n"
        f"Subject: {item.subject}\n\n"
        f"{item.content or ''}"
    )


def can_true_forward(item: TimelineItem) -> bool:
    meta = item.metadata
    if not isinstance(meta, EmailMetadata):
        return False
    has_identifier = bool(meta.message_id or meta.internet_message_id)
    return has_identifier and bool(meta.mailbox_owner)


def resolve_forward(
    item: TimelineItem,
    actor_address: str,
    cc: str | None = None,
) -> ForwardRequest:
    """Build the forward request for a timeline item.

    Never fails because true-forward identifiers are missing: the request
    falls back to a synthetic forward and, for emails, is flagged
    ``degraded`` with a warning for the user.

    Args:
        item: Email or pitch timeline item.
        actor_address: Address of the user doing the forwarding (recipient).
        cc: Optional CC addresses, comma separated.

    Returns:
        ForwardRequest ready for user confirmation.

    Raises:
        UnsupportedForwardError: If the item is not an email or pitch.
        ForwardingError: If no recipient address was given.
    """
    if item.type not in FORWARDABLE_TYPES:
        raise UnsupportedForwardError(item.type)
    if not actor_address or not actor_address.strip():
        raise ForwardingError("A recipient address is required to forward")

    cc = cc.strip() if cc and cc.strip() else None
    subject = forward_subject(item.subject)
    original_body = item.rich_content or item.content or ""

    meta = item.metadata
    if isinstance(meta, EmailMetadata) and can_true_forward(item):
        return ForwardRequest(
            mode=ForwardMode.TRUE_FORWARD,
            item_id=item.id,
            to=actor_address.strip(),
            cc=cc,
            subject=subject,
            body=original_body,
            original_date=item.timestamp,
            original_from=item.author,
            message_id=meta.message_id,
            internet_message_id=meta.internet_message_id,
            mailbox_address=meta.mailbox_owner,
        )

    degraded = item.type == CommunicationType.EMAIL
    return ForwardRequest(
        mode=ForwardMode.SYNTHETIC,
        item_id=item.id,
        to=actor_address.strip(),
        cc=cc,
        subject=subject,
        body=compose_synthetic_body(item),
        original_date=item.timestamp,
        original_from=item.author,
        degraded=degraded,
        warning=MISSING_IDENTIFIERS_WARNING if degraded else None,
    )
