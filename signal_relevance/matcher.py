"""
Signal Relevance - Matcher.

============================================================
PURPOSE
============================================================
Pure matching step: proposes (finding, signal) links and the
severity escalations they imply, without touching storage or
mutating findings.

============================================================
ALGORITHM
============================================================
For every (finding, signal) pair:
1. Type compatibility (rules.signal_type_matches_risk)
2. Context relevance against the deal (fail-open)
3. Deduplicate on (finding id, signal id)

Every finding with at least one link is escalated one step
from Low to Medium. Medium and High are left unchanged; nothing
is ever de-escalated.

============================================================
"""

import logging
from typing import List, Optional, Sequence, Set

from risk_index.types import RiskFinding, RiskSeverity

from .rules import (
    build_link_reason,
    infer_signal_context,
    is_signal_relevant,
    signal_type_matches_risk,
)
from .types import DealContext, MacroSignal, MatchResult, SeverityEscalation, SignalLink


logger = logging.getLogger(__name__)


def escalated_severity(current: RiskSeverity) -> RiskSeverity:
    """Corroborated Low becomes Medium; anything else is unchanged."""
    if current == RiskSeverity.LOW:
        return RiskSeverity.MEDIUM
    return current


def match(
    findings: Sequence[RiskFinding],
    candidate_signals: Sequence[MacroSignal],
    deal_context: Optional[DealContext] = None,
) -> MatchResult:
    """
    Propose links between findings and candidate signals.

    Findings without an id cannot be linked and are skipped.
    """
    if not findings or not candidate_signals:
        return MatchResult()

    deal_context = deal_context or DealContext()
    relevant: List[MacroSignal] = []
    for signal in candidate_signals:
        context = infer_signal_context(signal)
        if is_signal_relevant(context, deal_context):
            relevant.append(signal)
        else:
            logger.debug(
                f"Signal {signal.id} filtered out for deal context "
                f"{deal_context.asset_type}/{deal_context.state or deal_context.market}"
            )

    links: List[SignalLink] = []
    seen: Set[tuple] = set()
    for finding in findings:
        if finding.id is None:
            logger.debug(f"Skipping {finding.risk_type.value} finding without id")
            continue
        for signal in relevant:
            if not signal_type_matches_risk(signal, finding.risk_type):
                continue
            link = SignalLink(
                risk_finding_id=finding.id,
                signal_id=signal.id,
                link_reason=build_link_reason(signal),
            )
            if link.key in seen:
                continue
            seen.add(link.key)
            links.append(link)

    linked_ids = {link.risk_finding_id for link in links}
    escalations = []
    for finding in findings:
        if finding.id not in linked_ids:
            continue
        escalated = escalated_severity(finding.severity_current)
        if escalated != finding.severity_current:
            escalations.append(
                SeverityEscalation(
                    risk_finding_id=finding.id,
                    previous=finding.severity_current,
                    escalated=escalated,
                )
            )
            # One escalation per finding even if ids repeat
            linked_ids.discard(finding.id)

    return MatchResult(links=links, escalations=escalations)
