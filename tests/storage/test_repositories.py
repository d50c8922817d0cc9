"""
Tests for the storage repositories against SQLite.

============================================================
PURPOSE
============================================================
1. Insert-or-ignore idempotence (links, audit entries)
2. Previous-scan ordering and status filtering
3. Signal window queries
4. Rescan dedupe lookup
5. Storage errors name the table and row keys

============================================================
"""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from storage.models import DealSignalLink
from storage.repositories import (
    SCAN_STATUS_COMPLETED,
    ConstraintViolationError,
    DealRepository,
    DealRiskRepository,
    DealScanRepository,
    MacroSignalRepository,
    RecordNotFoundError,
    RiskAuditLogRepository,
    SignalLinkRepository,
    StorageUnavailableError,
)


# ============================================================
# FIXTURES
# ============================================================

@pytest.fixture
def deal(session):
    return DealRepository(session).create("Chandler Flex", asset_type="Industrial", market="Phoenix")


@pytest.fixture
def scans(session):
    return DealScanRepository(session)


# ============================================================
# DEALS AND SCANS
# ============================================================

class TestDealScanRepository:

    def test_get_by_id_or_raise(self, scans):
        with pytest.raises(RecordNotFoundError):
            scans.get_by_id_or_raise(uuid.uuid4())

    def test_save_score_completes_scan(self, scans, deal, now):
        scan = scans.create(deal.id, extraction={"assumptions": {"ltv": {"value": 70}}})
        scans.save_score(scan, 52, "Moderate", {"model_version": "2.0"}, "2.0", 1, completed_at=now)

        stored = scans.get_by_id(scan.id)
        assert stored.status == SCAN_STATUS_COMPLETED
        assert stored.risk_index_score == 52
        assert stored.risk_index_version == "2.0"
        assert stored.macro_linked_count == 1
        assert stored.assumptions_payload == {"ltv": {"value": 70}}

    def test_previous_completed_skips_pending_and_later(self, scans, deal, now):
        old = scans.save_score(scans.create(deal.id, created_at=now - timedelta(days=3)), 40, "Moderate", {}, "2.0")
        scans.create(deal.id, created_at=now - timedelta(days=2))
        current = scans.save_score(scans.create(deal.id, created_at=now - timedelta(days=1)), 45, "Moderate", {}, "2.0")
        scans.save_score(scans.create(deal.id, created_at=now), 50, "Moderate", {}, "2.0")

        assert scans.get_previous_completed(current).id == old.id
        assert scans.get_previous_completed(old) is None

    def test_previous_is_per_deal(self, session, scans, deal, now):
        other = DealRepository(session).create("Other")
        scans.save_score(scans.create(other.id, created_at=now - timedelta(days=5)), 90, "High", {}, "2.0")
        first = scans.save_score(scans.create(deal.id, created_at=now), 40, "Moderate", {}, "2.0")

        assert scans.get_previous_completed(first) is None

    def test_latest_completed_per_deal(self, session, scans, deal, now):
        other = DealRepository(session).create("Other")
        scans.save_score(scans.create(deal.id, created_at=now - timedelta(days=2)), 40, "Moderate", {}, "2.0")
        latest = scans.save_score(scans.create(deal.id, created_at=now), 60, "Elevated", {}, "2.0")
        other_scan = scans.save_score(scans.create(other.id, created_at=now), 20, "Low", {}, "2.0")

        ids = {s.id for s in scans.latest_completed_per_deal()}
        assert ids == {latest.id, other_scan.id}

    def test_find_recent_by_hash(self, scans, deal, now):
        recent = scans.create(deal.id, input_text_hash="abc", created_at=now - timedelta(hours=2))
        scans.save_score(recent, 40, "Moderate", {}, "2.0")
        stale = scans.create(deal.id, input_text_hash="abc", created_at=now - timedelta(hours=30))
        scans.save_score(stale, 40, "Moderate", {}, "2.0")
        current = scans.create(deal.id, input_text_hash="abc", created_at=now)

        found = scans.find_recent_by_hash(deal.id, "abc", now - timedelta(hours=24), exclude_scan_id=current.id)

        assert found.id == recent.id
        assert scans.find_recent_by_hash(deal.id, "xyz", now - timedelta(hours=24)) is None


class TestDealRiskRepository:

    def test_create_many_defaults_current_severity(self, session, scans, deal):
        scan = scans.create(deal.id)
        risks = DealRiskRepository(session).create_many(scan.id, [
            {"risk_type": "RefiRisk", "severity_original": "High"},
            {"risk_type": "InsuranceRisk", "severity": "Medium"},
        ])

        assert [r.severity_current for r in risks] == ["High", "Medium"]

    def test_update_severities_counts_changes(self, session, scans, deal):
        scan = scans.create(deal.id)
        repo = DealRiskRepository(session)
        risk = repo.create_many(scan.id, [{"risk_type": "RefiRisk", "severity_original": "Low"}])[0]

        assert repo.update_severities({risk.id: "Medium"}) == 1
        assert repo.update_severities({risk.id: "Medium"}) == 0
        assert repo.update_severities({}) == 0


# ============================================================
# SIGNALS AND LINKS
# ============================================================

class TestSignalRepositories:

    def test_list_recent_window_and_order(self, session, now):
        repo = MacroSignalRepository(session)
        older = repo.create("Pricing", created_at=now - timedelta(days=10))
        newer = repo.create("Credit Risk", created_at=now - timedelta(days=1))
        repo.create("Liquidity", created_at=now - timedelta(days=40))

        recent = repo.list_recent(now - timedelta(days=30))

        assert [s.id for s in recent] == [newer.id, older.id]

    def test_link_upsert_is_idempotent(self, session, scans, deal, now):
        scan = scans.create(deal.id)
        risk = DealRiskRepository(session).create_many(scan.id, [{"risk_type": "RefiRisk"}])[0]
        signal = MacroSignalRepository(session).create("Credit Risk", created_at=now)
        links = SignalLinkRepository(session)

        assert links.upsert(risk.id, signal.id, "Signal: Credit Risk") is True
        assert links.upsert(risk.id, signal.id, "Signal: Credit Risk") is False
        assert links.upsert_many([(risk.id, signal.id, "again")]) == 0

        stored = links.list_for_scan(scan.id)
        assert len(stored) == 1
        assert stored[0].link_reason == "Signal: Credit Risk"
        assert [s.id for s in links.linked_signals_for_scan(scan.id)] == [signal.id]


# ============================================================
# AUDIT LOG
# ============================================================

class TestRiskAuditLogRepository:

    def test_insert_if_absent(self, session, scans, deal):
        scan = scans.save_score(scans.create(deal.id), 58, "Elevated", {}, "2.0")
        repo = RiskAuditLogRepository(session)

        assert repo.insert_if_absent(deal.id, scan.id, 58, "2.0", 40, 18, "Moderate → Elevated") is True
        assert repo.insert_if_absent(deal.id, scan.id, 99, "2.0") is False

        entry = repo.get_by_scan_id(scan.id)
        assert entry.new_score == 58
        assert entry.band_change == "Moderate → Elevated"
        assert repo.existing_scan_ids() == {scan.id}


# ============================================================
# STORAGE ERRORS
# ============================================================

class TestStorageErrors:

    def test_missing_scan_names_table_and_key(self, scans):
        scan_id = uuid.uuid4()

        with pytest.raises(RecordNotFoundError) as info:
            scans.get_by_id_or_raise(scan_id)

        error = info.value
        assert error.table == "deal_scans"
        assert error.keys == {"scan_id": str(scan_id)}
        assert error.retryable is False
        assert error.to_dict()["operation"] == "get"

    def test_duplicate_link_outside_upsert_is_a_constraint_violation(self, session, scans, deal, now):
        scan = scans.create(deal.id)
        risk = DealRiskRepository(session).create_many(scan.id, [{"risk_type": "RefiRisk"}])[0]
        signal = MacroSignalRepository(session).create("Credit Risk", created_at=now)
        links = SignalLinkRepository(session)
        links.upsert(risk.id, signal.id, "Signal: Credit Risk")

        with pytest.raises(ConstraintViolationError) as info:
            links._add(DealSignalLink(deal_risk_id=risk.id, signal_id=signal.id, link_reason="again"))

        error = info.value
        assert error.is_duplicate
        assert error.table == "deal_signal_links"
        assert error.keys["deal_risk_id"] == str(risk.id)
        assert error.keys["signal_id"] == str(signal.id)
        assert error.retryable is False

    def test_locked_database_is_retryable(self, session, now, monkeypatch):
        def locked(*args, **kwargs):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(session, "execute", locked)

        with pytest.raises(StorageUnavailableError) as info:
            MacroSignalRepository(session).list_recent(now)

        error = info.value
        assert error.retryable is True
        assert error.operation == "list_recent"
        assert error.table == "macro_signals"
        assert "database is locked" in str(error)
