"""Prometheus exporter helpers."""

from __future__ import annotations

from prometheus_client import Counter, Gauge


remote_calls_total = Counter(
    "studio_remote_calls_total",
    "Image model calls by operation and outcome.",
    ["operation", "outcome"],
)

palette_extractions_total = Counter(
    "studio_palette_extractions_total",
    "Style image palette extractions by outcome.",
    ["outcome"],
)

active_sessions = Gauge(
    "studio_active_sessions",
    "Number of currently open studio sessions.",
)
