"""Enquiry timeline -- cross-source activity merged into one ordered list.

Provides normalization of pitch, email and call records into TimelineItem,
the merge engine, onboarding pipeline status derivation, the duration
formatter, forward resolution and TimelineOrchestrator, which runs the
independent per-source fetches.
"""
