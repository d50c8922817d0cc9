"""
Orchestrator - Scan Scoring Pipeline.

============================================================
RESPONSIBILITY
============================================================
Runs the full write path for one scan, in strict order:

1. Load scan, deal and findings
2. Deterministic severity overrides (from assumptions)
3. Relevance matching: links + Low -> Medium escalation
4. Macro exposure of the scan's linked signals
5. Score against the previous completed scan of the deal
6. Exposure labeling against the portfolio
7. Persist score, breakdown and model version
8. Audit log entry (insert-once)

============================================================
GUARANTEES
============================================================
- One transaction per scan: all or nothing
- Re-running on the same scan creates no duplicate links or
  audit entries and reproduces the same score
- Storage errors propagate unchanged to the caller

============================================================
"""

import hashlib
import logging
import time
from contextlib import contextmanager
from datetime import datetime, timedelta, timezone
from typing import Iterator, List, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from audit_trail.recorder import AuditTrailRecorder
from core.exceptions import PipelineError
from core.settings import AnalyticsSettings, get_settings
from database.engine import transaction_scope
from risk_index.engine import RiskIndexEngine
from risk_index.exposure import label_exposure, purchase_price_percentile
from risk_index.overrides import apply_severity_overrides
from risk_index.types import (
    Assumptions,
    Confidence,
    RiskFinding,
    RiskIndexResult,
    RiskSeverity,
    RiskType,
)
from signal_relevance.macro_exposure import compute_macro_exposure
from signal_relevance.overlay import RelevanceOverlayService, finding_severity_labels
from signal_relevance.types import DealContext
from storage.models.deals import DealRisk, DealScan
from storage.repositories.deals import (
    DealRepository,
    DealRiskRepository,
    DealScanRepository,
)

from .models import ScanScoringResult, ScoringStage, StageTiming


logger = logging.getLogger(__name__)


# ============================================================
# HELPERS
# ============================================================


def finding_from_record(record: DealRisk) -> RiskFinding:
    severity = RiskSeverity.from_label(record.severity_original)
    return RiskFinding(
        risk_type=RiskType.from_label(record.risk_type),
        severity_original=severity,
        severity_current=RiskSeverity.from_label(record.severity_current, default=severity),
        confidence=Confidence.from_label(record.confidence),
        id=record.id,
        scan_id=record.deal_scan_id,
        what_changed_or_trigger=record.what_changed_or_trigger or "",
        why_it_matters=record.why_it_matters or "",
        who_this_affects=record.who_this_affects or "",
        recommended_action=record.recommended_action or "",
        evidence_snippets=tuple(record.evidence_snippets or ()),
    )


def compute_input_hash(text: str) -> str:
    """Content hash of the underwriting text, for rescan dedupe."""
    return hashlib.sha256(text.strip().encode("utf-8")).hexdigest()


def find_recent_duplicate_scan(
    session: Session,
    deal_id: UUID,
    input_text_hash: str,
    now: Optional[datetime] = None,
    window_hours: Optional[int] = None,
    exclude_scan_id: Optional[UUID] = None,
) -> Optional[DealScan]:
    """
    Completed scan of the deal with the same input hash inside the
    dedupe window, if any. Callers reuse it instead of rescoring.
    """
    now = now or datetime.now(timezone.utc)
    if window_hours is None:
        window_hours = get_settings().rescan_dedupe_hours
    since = now - timedelta(hours=window_hours)
    duplicate = DealScanRepository(session).find_recent_by_hash(
        deal_id, input_text_hash, since, exclude_scan_id=exclude_scan_id
    )
    if duplicate is not None:
        logger.info(f"Scan {duplicate.id} of deal {deal_id} has the same input within {window_hours}h")
    return duplicate


# ============================================================
# PIPELINE
# ============================================================


class ScanScoringPipeline:
    """
    Scores one scan through every stage, using the caller's session.

    The caller owns the transaction; see score_scan() for the
    self-contained variant.
    """

    def __init__(
        self,
        session: Session,
        settings: Optional[AnalyticsSettings] = None,
        engine: Optional[RiskIndexEngine] = None,
    ) -> None:
        self._session = session
        self._settings = settings or get_settings()
        self._engine = engine or RiskIndexEngine()
        self._deals = DealRepository(session)
        self._scans = DealScanRepository(session)
        self._risks = DealRiskRepository(session)
        self._overlay = RelevanceOverlayService(session, self._settings)
        self._recorder = AuditTrailRecorder(session)
        self._timings: List[StageTiming] = []

    @contextmanager
    def _stage(self, stage: ScoringStage) -> Iterator[None]:
        started = time.perf_counter()
        logger.debug(f"Stage [{stage.order:02d}] START: {stage.description}")
        yield
        duration = time.perf_counter() - started
        self._timings.append(StageTiming(stage, duration))
        logger.debug(f"Stage [{stage.order:02d}] COMPLETE: {stage.description} ({duration:.3f}s)")

    def run(self, scan_id: UUID, now: Optional[datetime] = None) -> ScanScoringResult:
        now = now or datetime.now(timezone.utc)
        self._timings = []

        with self._stage(ScoringStage.LOAD_SCAN):
            scan = self._scans.get_by_id(scan_id)
            if scan is None:
                raise PipelineError(f"Scan {scan_id} not found", scan_id=scan_id)
            deal = self._deals.get_by_id_or_raise(scan.deal_id)
            assumptions = Assumptions.from_dict(scan.assumptions_payload)
            findings = [finding_from_record(r) for r in self._risks.list_for_scan(scan.id)]
            deal_context = DealContext(asset_type=deal.asset_type, market=deal.market, state=deal.state)

        with self._stage(ScoringStage.APPLY_OVERRIDES):
            findings = apply_severity_overrides(findings, assumptions)
            self._risks.update_severities(finding_severity_labels(findings))

        with self._stage(ScoringStage.MATCH_SIGNALS):
            overlay = self._overlay.apply(scan.id, findings, deal_context, now=now)
            findings = overlay.findings

        with self._stage(ScoringStage.MACRO_EXPOSURE):
            exposure = compute_macro_exposure(
                overlay.linked_signals,
                half_life_days=self._settings.macro_half_life_days,
                now=now,
            )

        with self._stage(ScoringStage.SCORE):
            previous = self._scans.get_previous_completed(scan)
            result = self._engine.score(
                findings,
                assumptions,
                macro_linked_count=exposure.linked_category_count,
                macro_decayed_weight=exposure.decayed_weight,
                previous_score=previous.risk_index_score if previous else None,
                previous_model_version=previous.risk_index_version if previous else None,
                edge_flags=exposure.edge_flags,
            )

        with self._stage(ScoringStage.LABEL_EXPOSURE):
            result = self._label_exposure(scan, assumptions, result, now)

        with self._stage(ScoringStage.PERSIST_SCORE):
            self._scans.save_score(
                scan,
                score=result.score,
                band=result.band.value,
                breakdown=result.breakdown.to_dict(),
                model_version=self._engine.model_version,
                macro_linked_count=exposure.linked_category_count,
                completed_at=now,
            )

        with self._stage(ScoringStage.RECORD_AUDIT):
            entry = self._recorder.record(scan, previous)

        logger.info(
            f"Scored scan {scan.id} (deal {deal.id}): {result.score} {result.band.value}, "
            f"{overlay.links_inserted} new links, {exposure.linked_category_count} macro categories"
        )

        return ScanScoringResult(
            scan_id=scan.id,
            deal_id=deal.id,
            result=result,
            previous_scan_id=previous.id if previous else None,
            links_created=overlay.links_inserted,
            findings_escalated=overlay.escalated,
            macro_linked_count=exposure.linked_category_count,
            audit_entry=entry,
            stages=list(self._timings),
        )

    def _label_exposure(
        self,
        scan: DealScan,
        assumptions: Assumptions,
        result: RiskIndexResult,
        now: datetime,
    ) -> RiskIndexResult:
        purchase_price = assumptions.value("purchase_price")
        prices = [purchase_price]
        for other in self._scans.latest_completed_per_deal():
            if other.deal_id == scan.deal_id:
                continue
            prices.append(Assumptions.from_dict(other.assumptions_payload).value("purchase_price"))
        threshold = purchase_price_percentile(prices, self._settings.exposure_percentile)

        breakdown = label_exposure(
            result.breakdown,
            result.band,
            purchase_price,
            threshold,
            completed_at=now,
            stale_days=self._settings.stale_scan_days,
            now=now,
        )
        return RiskIndexResult(score=result.score, band=result.band, breakdown=breakdown)


def score_scan(
    scan_id: UUID,
    session: Optional[Session] = None,
    settings: Optional[AnalyticsSettings] = None,
    now: Optional[datetime] = None,
) -> ScanScoringResult:
    """Score one scan in its own transaction (committed on success)."""
    with transaction_scope(session) as tx:
        return ScanScoringPipeline(tx, settings=settings).run(scan_id, now=now)
