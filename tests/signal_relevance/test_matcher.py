"""
Tests for Signal Relevance rules and matcher.

============================================================
PURPOSE
============================================================
1. Type compatibility between risk types and signal types
2. Context filtering by asset type and state
3. Link deduplication and one-step escalation
4. Idempotence of re-matching

============================================================
"""

import uuid

from risk_index.types import RiskFinding, RiskSeverity, RiskType
from signal_relevance import (
    DealContext,
    MacroSignal,
    SignalType,
    match,
)
from signal_relevance.matcher import escalated_severity
from signal_relevance.rules import (
    build_link_reason,
    infer_signal_context,
    is_signal_relevant,
    signal_type_matches_risk,
)


# ============================================================
# HELPERS
# ============================================================

def finding(risk_type, severity=RiskSeverity.LOW):
    return RiskFinding.create(risk_type, severity, id=uuid.uuid4())


def signal(signal_type, what_changed=""):
    return MacroSignal.create(uuid.uuid4(), signal_type, what_changed)


# ============================================================
# TYPE COMPATIBILITY
# ============================================================

class TestTypeCompatibility:

    def test_signal_type_labels_parse_tolerantly(self):
        assert SignalType.from_label("credit risk") == SignalType.CREDIT_RISK
        assert SignalType.from_label("Supply Demand") == SignalType.SUPPLY_DEMAND
        assert SignalType.from_label("weather") == SignalType.UNKNOWN
        assert SignalType.from_label(None) == SignalType.UNKNOWN

    def test_credit_signal_matches_leverage_risks(self):
        credit = signal("Credit Risk", "CMBS delinquencies rising")
        assert signal_type_matches_risk(credit, RiskType.REFI_RISK)
        assert signal_type_matches_risk(credit, RiskType.DEBT_COST_RISK)
        assert signal_type_matches_risk(credit, RiskType.MARKET_LIQUIDITY_RISK)
        assert not signal_type_matches_risk(credit, RiskType.VACANCY_UNDERSTATED)

    def test_pricing_signal_matches_exit_cap(self):
        assert signal_type_matches_risk(signal("Pricing"), RiskType.EXIT_CAP_COMPRESSION)

    def test_policy_signal_matches_expense_and_regulatory(self):
        policy = signal("Policy", "Property tax reassessment")
        assert signal_type_matches_risk(policy, RiskType.EXPENSE_UNDERSTATED)
        assert signal_type_matches_risk(policy, RiskType.REGULATORY_POLICY_EXPOSURE)

    def test_unmapped_risk_types_never_match(self):
        for signal_type in ("Credit Risk", "Pricing", "Policy", "Supply-Demand", "Liquidity"):
            s = signal(signal_type, "credit supply pricing policy")
            assert not signal_type_matches_risk(s, RiskType.DATA_MISSING)
            assert not signal_type_matches_risk(s, RiskType.UNKNOWN)

    def test_declared_type_ignores_free_text(self):
        # A Pricing signal whose text mentions credit stays a Pricing signal
        s = signal("Pricing", "credit spreads widen")
        assert not signal_type_matches_risk(s, RiskType.REFI_RISK)

    def test_untyped_signal_falls_back_to_text(self):
        s = signal(None, "Regional lender pulls back on financing")
        assert s.signal_type == SignalType.UNKNOWN
        assert signal_type_matches_risk(s, RiskType.REFI_RISK)

    def test_link_reason(self):
        assert build_link_reason(signal("Credit Risk")) == "Signal: Credit Risk"
        reason = build_link_reason(signal("Liquidity", "x" * 200))
        assert reason.startswith("Signal: Liquidity — ")
        assert len(reason) == len("Signal: Liquidity — ") + 80

    def test_unknown_label_is_kept_as_category(self):
        assert signal("Tariffs").label == "Tariffs"
        assert signal("").label == "Unknown"


# ============================================================
# CONTEXT RELEVANCE
# ============================================================

class TestContextRelevance:

    def test_infers_asset_and_state(self):
        context = infer_signal_context(signal("Supply-Demand", "Multifamily supply surge in Phoenix"))
        assert context.asset_type == "multifamily"
        assert context.state == "phoenix"
        assert context.category == "Supply-Demand"

    def test_asset_type_mismatch_is_filtered(self):
        context = infer_signal_context(signal("Supply-Demand", "multifamily supply"))
        assert not is_signal_relevant(context, DealContext(asset_type="Office"))
        assert is_signal_relevant(context, DealContext(asset_type="Multifamily"))

    def test_state_mismatch_is_filtered(self):
        context = infer_signal_context(signal("Policy", "Florida insurance reform"))
        assert not is_signal_relevant(context, DealContext(state="Texas"))
        assert is_signal_relevant(context, DealContext(state="Florida"))

    def test_market_used_when_state_unset(self):
        context = infer_signal_context(signal("Supply-Demand", "Austin office vacancies"))
        assert is_signal_relevant(context, DealContext(asset_type="office", market="Austin, TX"))

    def test_no_inferable_context_is_relevant(self):
        context = infer_signal_context(signal("Credit Risk", "Banks tighten standards"))
        assert is_signal_relevant(context, DealContext(asset_type="Retail", state="Nevada"))

    def test_empty_deal_context_accepts_everything(self):
        context = infer_signal_context(signal("Supply-Demand", "industrial supply in Georgia"))
        assert is_signal_relevant(context, DealContext())


# ============================================================
# MATCHER
# ============================================================

class TestMatcher:

    def test_links_and_escalates_low_finding(self):
        refi = finding(RiskType.REFI_RISK, RiskSeverity.LOW)
        credit = signal("Credit Risk", "Regional bank stress")

        result = match([refi], [credit])

        assert len(result.links) == 1
        assert result.links[0].risk_finding_id == refi.id
        assert result.links[0].link_reason == "Signal: Credit Risk — Regional bank stress"
        assert len(result.escalations) == 1
        assert result.escalations[0].escalated == RiskSeverity.MEDIUM

    def test_medium_and_high_are_not_escalated(self):
        findings = [
            finding(RiskType.REFI_RISK, RiskSeverity.MEDIUM),
            finding(RiskType.DEBT_COST_RISK, RiskSeverity.HIGH),
        ]
        result = match(findings, [signal("Credit Availability")])

        assert len(result.links) == 2
        assert result.escalations == []

    def test_escalation_is_one_step(self):
        assert escalated_severity(RiskSeverity.LOW) == RiskSeverity.MEDIUM
        assert escalated_severity(RiskSeverity.MEDIUM) == RiskSeverity.MEDIUM
        assert escalated_severity(RiskSeverity.HIGH) == RiskSeverity.HIGH

    def test_many_signals_escalate_once(self):
        refi = finding(RiskType.REFI_RISK)
        signals = [signal("Credit Risk"), signal("Liquidity"), signal("Credit Availability")]

        result = match([refi], signals)

        assert len(result.links) == 3
        assert len(result.escalations) == 1

    def test_duplicate_candidates_are_linked_once(self):
        refi = finding(RiskType.REFI_RISK)
        credit = signal("Credit Risk")

        result = match([refi], [credit, credit])

        assert len(result.links) == 1

    def test_office_deal_excludes_multifamily_signal(self):
        vacancy = finding(RiskType.VACANCY_UNDERSTATED)
        result = match(
            [vacancy],
            [signal("Supply-Demand", "multifamily supply")],
            DealContext(asset_type="Office"),
        )
        assert result.is_empty

    def test_retail_deal_excludes_office_signal(self):
        vacancy = finding(RiskType.VACANCY_UNDERSTATED)
        result = match(
            [vacancy],
            [signal("Supply-Demand", "office sublease glut")],
            DealContext(asset_type="Retail"),
        )
        assert result.is_empty

    def test_data_missing_never_linked(self):
        missing = finding(RiskType.DATA_MISSING)
        result = match([missing], [signal("Credit Risk"), signal("Pricing"), signal("Policy")])
        assert result.is_empty

    def test_findings_without_id_are_skipped(self):
        anonymous = RiskFinding.create(RiskType.REFI_RISK, RiskSeverity.LOW)
        assert match([anonymous], [signal("Credit Risk")]).is_empty

    def test_empty_inputs(self):
        assert match([], [signal("Credit Risk")]).is_empty
        assert match([finding(RiskType.REFI_RISK)], []).is_empty

    def test_apply_returns_new_findings(self):
        refi = finding(RiskType.REFI_RISK)
        other = finding(RiskType.INSURANCE_RISK)
        result = match([refi, other], [signal("Credit Risk")])

        updated = result.apply([refi, other])

        assert updated[0].severity_current == RiskSeverity.MEDIUM
        assert updated[0].severity_original == RiskSeverity.LOW
        assert updated[1] is other
        assert refi.severity_current == RiskSeverity.LOW

    def test_rematching_escalated_findings_is_stable(self):
        refi = finding(RiskType.REFI_RISK)
        signals = [signal("Credit Risk")]

        first = match([refi], signals)
        second = match(first.apply([refi]), signals)

        assert [link.key for link in second.links] == [link.key for link in first.links]
        assert second.escalations == []
