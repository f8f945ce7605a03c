"""
AI Usage Monitor: Telemetry, Aggregation and Alerting for AI Backends

Ingests per-call telemetry from the AI backends a product calls into,
computes time-windowed summaries (success rate, latency, confidence, cost),
projects free-tier quota usage, and evaluates threshold rules to raise
operational alerts.
"""

__version__ = "0.1.0"
