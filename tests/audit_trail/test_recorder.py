"""
Tests for the Audit Trail Recorder.

============================================================
PURPOSE
============================================================
1. Entry computation: previous score, delta, band change
2. Version gating of deltas
3. Insert-once per scan
4. Previous-scan ordering by (created_at, id)

============================================================
"""

import uuid
from datetime import datetime, timedelta, timezone

import pytest

from audit_trail import AuditTrailRecorder, ScanSnapshot, compute_audit_entry
from audit_trail.recorder import format_band_change, versions_comparable
from storage.repositories import DealRepository, DealScanRepository, RiskAuditLogRepository


DEAL_ID = uuid.uuid4()
T0 = datetime(2025, 1, 1, tzinfo=timezone.utc)


def snapshot(score, band, version="2.0", created_at=T0, scan_id=None):
    return ScanSnapshot(
        scan_id=scan_id or uuid.uuid4(),
        deal_id=DEAL_ID,
        score=score,
        band=band,
        model_version=version,
        created_at=created_at,
    )


# ============================================================
# PURE COMPUTATION
# ============================================================

class TestComputeAuditEntry:

    def test_first_scan_has_no_history(self):
        entry = compute_audit_entry(snapshot(48, "Moderate"), None)

        assert entry.new_score == 48
        assert entry.previous_score is None
        assert entry.delta is None
        assert entry.band_change is None
        assert entry.model_version == "2.0"

    def test_delta_and_band_change(self):
        previous = snapshot(40, "Moderate")
        entry = compute_audit_entry(snapshot(58, "Elevated", created_at=T0 + timedelta(days=1)), previous)

        assert entry.previous_score == 40
        assert entry.delta == 18
        assert entry.band_change == "Moderate → Elevated"

    def test_same_band_has_no_band_change(self):
        entry = compute_audit_entry(snapshot(50, "Moderate"), snapshot(45, "Moderate"))

        assert entry.delta == 5
        assert entry.band_change is None

    def test_version_change_withholds_delta(self):
        previous = snapshot(40, "Moderate", version="1.9")
        entry = compute_audit_entry(snapshot(58, "Elevated"), previous)

        assert entry.previous_score == 40
        assert entry.delta is None
        assert entry.band_change == "Moderate → Elevated"

    def test_missing_previous_version_is_comparable(self):
        entry = compute_audit_entry(snapshot(58, "Elevated"), snapshot(40, "Moderate", version=None))
        assert entry.delta == 18

    def test_missing_version_uses_default(self):
        entry = compute_audit_entry(snapshot(30, "Low", version="  "), None, default_version="2.0")
        assert entry.model_version == "2.0"

    def test_unscored_scan_yields_nothing(self):
        assert compute_audit_entry(snapshot(None, None), None) is None

    def test_to_dict(self):
        entry = compute_audit_entry(snapshot(58, "Elevated"), snapshot(40, "Moderate"))
        out = entry.to_dict()

        assert out["deal_id"] == str(DEAL_ID)
        assert out["delta"] == 18
        assert out["created_at"] == T0.isoformat()


class TestHelpers:

    def test_format_band_change(self):
        assert format_band_change("Low", "High") == "Low → High"
        assert format_band_change("Low", "Low") is None
        assert format_band_change(None, "Low") is None

    def test_versions_comparable(self):
        assert versions_comparable(None, "2.0")
        assert versions_comparable(" 2.0 ", "2.0")
        assert not versions_comparable("1.9", "2.0")

    def test_sort_key_mixes_naive_and_aware(self):
        naive = snapshot(1, "Low", created_at=datetime(2025, 1, 2))
        aware = snapshot(1, "Low", created_at=T0)
        assert sorted([naive, aware], key=lambda s: s.sort_key) == [aware, naive]


# ============================================================
# PERSISTENCE
# ============================================================

@pytest.fixture
def deal(session):
    return DealRepository(session).create("Mesa Industrial", asset_type="Industrial")


def scored_scan(session, deal, score, band, created_at, version="2.0"):
    scans = DealScanRepository(session)
    scan = scans.create(deal.id, created_at=created_at)
    return scans.save_score(scan, score, band, {"model_version": version}, version)


class TestAuditTrailRecorder:

    def test_records_once_per_scan(self, session, deal):
        first = scored_scan(session, deal, 40, "Moderate", T0)
        second = scored_scan(session, deal, 58, "Elevated", T0 + timedelta(days=1))
        recorder = AuditTrailRecorder(session)

        recorder.record(first)
        entry = recorder.record(second)
        recorder.record(second)

        rows = RiskAuditLogRepository(session).list_for_deal(deal.id)
        assert len(rows) == 2
        assert entry.previous_score == 40
        assert entry.delta == 18

        stored = RiskAuditLogRepository(session).get_by_scan_id(second.id)
        assert stored.delta == 18
        assert stored.band_change == "Moderate → Elevated"

    def test_previous_is_latest_completed_prior_scan(self, session, deal):
        scored_scan(session, deal, 30, "Low", T0)
        scored_scan(session, deal, 45, "Moderate", T0 + timedelta(days=2))
        pending = DealScanRepository(session).create(deal.id, created_at=T0 + timedelta(days=3))
        latest = scored_scan(session, deal, 50, "Moderate", T0 + timedelta(days=4))

        assert pending.risk_index_score is None
        entry = AuditTrailRecorder(session).record(latest)

        assert entry.previous_score == 45
        assert entry.delta == 5

    def test_same_timestamp_breaks_tie_on_id(self, session, deal):
        a = scored_scan(session, deal, 30, "Low", T0)
        b = scored_scan(session, deal, 60, "Elevated", T0)
        earlier, later = sorted([a, b], key=lambda s: str(s.id))

        entry = AuditTrailRecorder(session).record(later)

        assert entry.previous_score == earlier.risk_index_score

    def test_cross_version_previous(self, session, deal):
        scored_scan(session, deal, 40, "Moderate", T0, version="1.9")
        latest = scored_scan(session, deal, 58, "Elevated", T0 + timedelta(days=1))

        entry = AuditTrailRecorder(session).record(latest)

        assert entry.previous_score == 40
        assert entry.delta is None

    def test_unscored_scan_is_not_recorded(self, session, deal):
        pending = DealScanRepository(session).create(deal.id, created_at=T0)

        assert AuditTrailRecorder(session).record(pending) is None
        assert RiskAuditLogRepository(session).existing_scan_ids() == set()
