"""
Orchestrator Package.

============================================================
PURPOSE
============================================================
Wires the engines to storage: the scan scoring pipeline
(overrides -> relevance -> macro exposure -> score -> exposure
label -> persist -> audit) and the command-line interface.

============================================================
"""

from .models import ScanScoringResult, ScoringStage, StageTiming
from .pipeline import (
    ScanScoringPipeline,
    compute_input_hash,
    find_recent_duplicate_scan,
    finding_from_record,
    score_scan,
)


__all__ = [
    "ScoringStage",
    "StageTiming",
    "ScanScoringResult",
    "ScanScoringPipeline",
    "compute_input_hash",
    "find_recent_duplicate_scan",
    "finding_from_record",
    "score_scan",
]
