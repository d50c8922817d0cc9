"""
Signal Relevance Package.

============================================================
PURPOSE
============================================================
Decides which macro signals corroborate a deal's structural
risk findings, links them, and escalates corroborated Low
findings to Medium.

============================================================
MODULES
============================================================
- types: signal taxonomy, deal context, link/escalation diff
- rules: type-compatibility table, context inference, relevance
- matcher: pure match() returning a MatchResult
- macro_exposure: distinct linked categories and decayed weight
- overlay: applies a MatchResult through the repositories

============================================================
"""

from .macro_exposure import EDGE_MACRO_TIMESTAMP_MISSING, MacroExposure, compute_macro_exposure
from .matcher import escalated_severity, match
from .overlay import OverlayResult, RelevanceOverlayService, finding_severity_labels, signal_from_record
from .rules import (
    RISK_SIGNAL_KEYWORDS,
    build_link_reason,
    infer_signal_context,
    is_signal_relevant,
    signal_type_matches_risk,
)
from .types import (
    DealContext,
    MacroSignal,
    MatchResult,
    SeverityEscalation,
    SignalContext,
    SignalLink,
    SignalType,
)


__all__ = [
    "SignalType",
    "MacroSignal",
    "DealContext",
    "SignalContext",
    "SignalLink",
    "SeverityEscalation",
    "MatchResult",
    "RISK_SIGNAL_KEYWORDS",
    "signal_type_matches_risk",
    "infer_signal_context",
    "is_signal_relevant",
    "build_link_reason",
    "escalated_severity",
    "match",
    "EDGE_MACRO_TIMESTAMP_MISSING",
    "MacroExposure",
    "compute_macro_exposure",
    "OverlayResult",
    "RelevanceOverlayService",
    "finding_severity_labels",
    "signal_from_record",
]
