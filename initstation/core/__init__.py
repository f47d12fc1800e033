"""Station lock reconciliation."""

from initstation.core.reconcile import Outcome, ReconciliationEngine, StationReport, summarize

__all__ = ["Outcome", "ReconciliationEngine", "StationReport", "summarize"]
