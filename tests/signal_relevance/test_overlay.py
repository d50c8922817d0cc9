"""
Tests for the relevance overlay service against SQLite.

============================================================
PURPOSE
============================================================
1. Candidate window and limit
2. Links and escalations persisted
3. Re-running on the same scan is a no-op
4. Read failures degrade, they do not raise

============================================================
"""

from datetime import timedelta

import pytest

from core.settings import AnalyticsSettings
from risk_index.types import RiskFinding, RiskSeverity, RiskType
from signal_relevance import DealContext, RelevanceOverlayService, finding_severity_labels
from storage.repositories import (
    DealRepository,
    DealRiskRepository,
    DealScanRepository,
    MacroSignalRepository,
    QueryError,
    SignalLinkRepository,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def scan(session, now):
    deal = DealRepository(session).create("Camelback Office", asset_type="Office", state="Arizona")
    return DealScanRepository(session).create(deal.id, created_at=now - timedelta(hours=1))


@pytest.fixture
def risks(session, scan):
    return DealRiskRepository(session).create_many(scan.id, [
        {"risk_type": "RefiRisk", "severity_original": "Low", "confidence": "High"},
        {"risk_type": "VacancyUnderstated", "severity_original": "Medium", "confidence": "Medium"},
        {"risk_type": "DataMissing", "severity_original": "Low"},
    ])


@pytest.fixture
def signals(session, now):
    repo = MacroSignalRepository(session)
    return {
        "credit": repo.create("Credit Risk", "Regional banks pull back", created_at=now - timedelta(days=2)),
        "multifamily": repo.create("Supply-Demand", "multifamily supply wave", created_at=now - timedelta(days=3)),
        "office": repo.create("Supply-Demand", "office sublease space rising", created_at=now - timedelta(days=4)),
        "old": repo.create("Liquidity", "CMBS issuance stalls", created_at=now - timedelta(days=45)),
    }


def to_findings(records):
    return [
        RiskFinding.create(
            RiskType.from_label(r.risk_type),
            RiskSeverity.from_label(r.severity_current),
            id=r.id,
            scan_id=r.deal_scan_id,
        )
        for r in records
    ]


OFFICE = DealContext(asset_type="Office", state="Arizona")


# ============================================================
# TESTS
# ============================================================

class TestRelevanceOverlay:

    def test_candidates_respect_window(self, session, settings, signals, now):
        service = RelevanceOverlayService(session, settings)
        candidates = service.load_candidates(now)

        ids = [c.id for c in candidates]
        assert signals["old"].id not in ids
        assert ids == [signals["credit"].id, signals["multifamily"].id, signals["office"].id]

    def test_candidates_respect_limit(self, session, signals, now):
        service = RelevanceOverlayService(session, AnalyticsSettings(signal_candidate_limit=1))
        assert [c.id for c in service.load_candidates(now)] == [signals["credit"].id]

    def test_links_and_escalations_are_persisted(self, session, settings, scan, risks, signals, now):
        service = RelevanceOverlayService(session, settings)
        result = service.apply(scan.id, to_findings(risks), OFFICE, now=now)

        linked = {(str(link.deal_risk_id), str(link.signal_id)) for link in SignalLinkRepository(session).list_for_scan(scan.id)}
        assert linked == {
            (str(risks[0].id), str(signals["credit"].id)),
            (str(risks[1].id), str(signals["office"].id)),
        }
        assert result.links_inserted == 2
        assert result.escalated == 1
        assert result.candidate_count == 3
        assert {s.label for s in result.linked_signals} == {"Credit Risk", "Supply-Demand"}

        stored = {r.risk_type: r.severity_current for r in DealRiskRepository(session).list_for_scan(scan.id)}
        assert stored == {"RefiRisk": "Medium", "VacancyUnderstated": "Medium", "DataMissing": "Low"}
        assert finding_severity_labels(result.findings)[risks[0].id] == "Medium"

    def test_rerun_is_noop(self, session, settings, scan, risks, signals, now):
        service = RelevanceOverlayService(session, settings)
        first = service.apply(scan.id, to_findings(risks), OFFICE, now=now)

        reloaded = to_findings(DealRiskRepository(session).list_for_scan(scan.id))
        second = service.apply(scan.id, reloaded, OFFICE, now=now)

        assert first.links_inserted == 2
        assert second.links_inserted == 0
        assert second.escalated == 0
        assert len(SignalLinkRepository(session).list_for_scan(scan.id)) == 2

    def test_no_candidates_creates_nothing(self, session, settings, scan, risks, now):
        result = RelevanceOverlayService(session, settings).apply(scan.id, to_findings(risks), OFFICE, now=now)

        assert result.links == []
        assert result.linked_signals == []
        assert [f.severity_current for f in result.findings] == [
            RiskSeverity.LOW, RiskSeverity.MEDIUM, RiskSeverity.LOW,
        ]

    def test_candidate_read_failure_degrades(self, session, settings, now, monkeypatch):
        service = RelevanceOverlayService(session, settings)

        def fail(*args, **kwargs):
            raise QueryError("MacroSignalRepository", "list_recent", "connection reset", table="macro_signals")

        monkeypatch.setattr(service._signals, "list_recent", fail)
        assert service.load_candidates(now) == []

    def test_linked_read_failure_falls_back_to_match(self, session, settings, scan, risks, signals, now, monkeypatch):
        service = RelevanceOverlayService(session, settings)

        def fail(*args, **kwargs):
            raise QueryError("SignalLinkRepository", "linked_signals_for_scan", "connection reset", table="deal_signal_links")

        monkeypatch.setattr(service._links, "linked_signals_for_scan", fail)
        result = service.apply(scan.id, to_findings(risks), OFFICE, now=now)

        assert {str(s.id) for s in result.linked_signals} == {
            str(signals["credit"].id), str(signals["office"].id),
        }
