"""Unit tests for the forwarding resolver.

Tests cover:
- true forward when message identifiers and the mailbox owner are known
- synthetic fallback for emails without identifiers (degraded, warned)
- synthetic forward for pitches (not degraded), HTML vs text bodies
- rejection of calls and blank recipients
"""

from __future__ import annotations

import pytest

from src.enquiry_timeline.timeline.errors import ForwardingError, UnsupportedForwardError
from src.enquiry_timeline.timeline.forwarding import (
    MISSING_IDENTIFIERS_WARNING,
    can_true_forward,
    compose_synthetic_body,
    forward_subject,
    resolve_forward,
)
from src.enquiry_timeline.timeline.normalizer import normalize_call, normalize_email, normalize_pitch
from src.enquiry_timeline.timeline.schemas import ForwardMode
from tests.fakes import PROSPECT_EMAIL, T1, make_call, make_email, make_pitch

MAILBOX = "jane.smith@helix-law.com"
ACTOR = "sam.jones@helix-law.com"


def _email(**overrides):
    return normalize_email(
        make_email(**overrides),
        prospect_email=PROSPECT_EMAIL,
        mailbox_owner=MAILBOX,
    )


class TestTrueForward:
    def test_message_id_and_mailbox_give_true_forward(self) -> None:
        request = resolve_forward(_email(), ACTOR)

        assert request.mode == ForwardMode.TRUE_FORWARD
        assert request.to == ACTOR
        assert request.message_id == "AAMkAGI1"
        assert request.internet_message_id == "<abc123@mail.example.com>"
        assert request.mailbox_address == MAILBOX
        assert request.original_date == T1
        assert request.degraded is False
        assert request.warning is None

    def test_internet_message_id_alone_is_enough(self) -> None:
        item = _email(id=None)
        assert can_true_forward(item)
        assert resolve_forward(item, ACTOR).mode == ForwardMode.TRUE_FORWARD

    def test_unknown_mailbox_prevents_true_forward(self) -> None:
        item = normalize_email(make_email(), prospect_email=PROSPECT_EMAIL)
        assert not can_true_forward(item)


class TestSyntheticForward:
    def test_email_without_identifiers_degrades_with_warning(self) -> None:
        item = _email(id=None, internetMessageId=None)

        request = resolve_forward(item, ACTOR)

        assert request.mode == ForwardMode.SYNTHETIC
        assert request.degraded is True
        assert request.warning == MISSING_IDENTIFIERS_WARNING
        assert request.message_id is None
        assert "Forwarded message" in request.body
        assert "Subject: Re: Your enquiry with us" in request.body

    def test_pitch_is_synthetic_but_not_degraded(self) -> None:
        request = resolve_forward(normalize_pitch(make_pitch()), ACTOR, cc=" ops@helix-law.com ")

        assert request.mode == ForwardMode.SYNTHETIC
        assert request.degraded is False
        assert request.warning is None
        assert request.cc == "ops@helix-law.com"
        assert request.subject == "Fwd: Your enquiry with us"
        assert "From: Jane Smith" in request.body
        assert request.body.endswith("Thank you for your enquiry.")

    def test_html_body_is_quoted_as_html(self) -> None:
        item = normalize_pitch(make_pitch(EmailBodyHtml="<p>Dear Alex & family</p>"))

        body = compose_synthetic_body(item)

        assert body.startswith("<p><strong>---------- Forwarded message ---------</strong>")
        assert "<div><p>Dear Alex & family</p></div>" in body


class TestRejections:
    def test_calls_cannot_be_forwarded(self) -> None:
        with pytest.raises(UnsupportedForwardError) as exc_info:
            resolve_forward(normalize_call(make_call()), ACTOR)
        assert exc_info.value.item_type.value == "call"

    def test_blank_recipient(self) -> None:
        with pytest.raises(ForwardingError):
            resolve_forward(_email(), "   ")


@pytest.mark.parametrize(
    ("subject", "expected"),
    [("Hello", "Fwd: Hello"), ("Fwd: Hello", "Fwd: Hello"), ("FWD: Hi", "FWD: Hi")],
)
def test_forward_subject(subject: str, expected: str) -> None:
    assert forward_subject(subject) == expected
