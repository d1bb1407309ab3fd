"""
session-timeline: tolerant NDJSON session ingestion and diff reconstruction.

Streams session event logs into typed timeline events and rebuilds
before/after file contents from apply-patch envelopes and unified diffs.
"""

from __future__ import annotations

__version__ = '0.1.0'
