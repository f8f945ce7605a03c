"""
Alerts module: threshold rules, alert persistence and evaluation.

Components:
- rules: pure threshold checks over summaries and cost breakdowns
- AlertStore: alert persistence with first-write-wins acknowledgement
- AlertEngine: rule evaluation with duplicate suppression
"""

from usage_monitor.alerts.engine import AlertEngine
from usage_monitor.alerts.rules import AlertCandidate, check_rate_limits, evaluate_summary
from usage_monitor.alerts.store import AlertNotFoundError, AlertStore

__all__ = [
    "AlertEngine",
    "AlertStore",
    "AlertNotFoundError",
    "AlertCandidate",
    "evaluate_summary",
    "check_rate_limits",
]
