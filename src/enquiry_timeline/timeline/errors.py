"""Timeline exceptions.

Source fetch failures are not raised past the orchestrator; they are
reported on FetchResult. These exceptions cover caller mistakes.
"""

from __future__ import annotations

from src.enquiry_timeline.timeline.schemas import CommunicationType, SourceKind


class SourceBusyError(RuntimeError):
    """Raised when a source is re-triggered while its fetch is in flight."""

    def __init__(self, source: SourceKind) -> None:
        self.source = source
        super().__init__(f"A {source.value} sync is already in progress")


class ForwardingError(ValueError):
    """Raised when a forward cannot be resolved at all."""


class UnsupportedForwardError(ForwardingError):
    """Raised for timeline items that are not messages (e.g. calls)."""

    def __init__(self, item_type: CommunicationType) -> None:
        self.item_type = item_type
        super().__init__(f"Timeline items of type '{item_type.value}' cannot be forwarded")
