"""
Signal Relevance - Matching Rules.

============================================================
PURPOSE
============================================================
Deterministic rules deciding whether a macro signal bears on a
risk finding of a given deal:

1. TYPE COMPATIBILITY: each risk type accepts signals whose
   type (or, for untyped signals, text) mentions one of its
   keywords. Unmapped risk types never match.
2. CONTEXT RELEVANCE: when a signal's asset type or state can
   be inferred, it must agree with the deal's. Signals with no
   inferable context are always relevant.

============================================================
"""

import re
from typing import Dict, Optional, Tuple

from risk_index.types import RiskType

from .types import DealContext, MacroSignal, SignalContext, SignalType


# ============================================================
# TYPE COMPATIBILITY
# ============================================================


_CREDIT = ("credit", "liquidity", "lender", "financing")
_PRICING = ("cap", "spread", "pricing")
_EXPENSE = ("insurance", "expense", "policy")
_SUPPLY = ("supply", "demand", "vacancy", "rent")
_POLICY = ("policy", "regulatory")

RISK_SIGNAL_KEYWORDS: Dict[RiskType, Tuple[str, ...]] = {
    RiskType.REFI_RISK: _CREDIT,
    RiskType.DEBT_COST_RISK: _CREDIT,
    RiskType.MARKET_LIQUIDITY_RISK: _CREDIT,
    RiskType.EXIT_CAP_COMPRESSION: _PRICING,
    RiskType.EXPENSE_UNDERSTATED: _EXPENSE,
    RiskType.INSURANCE_RISK: _EXPENSE,
    RiskType.RENT_GROWTH_AGGRESSIVE: _SUPPLY,
    RiskType.VACANCY_UNDERSTATED: _SUPPLY,
    RiskType.REGULATORY_POLICY_EXPOSURE: _POLICY,
}


def _type_text(signal: MacroSignal) -> str:
    """
    Text the keyword patterns run against.

    A declared taxonomy type is matched on its label alone; an
    UNKNOWN or Deal-Specific signal falls back to its free text.
    """
    if signal.signal_type in (SignalType.UNKNOWN, SignalType.DEAL_SPECIFIC):
        return f"{signal.raw_type or ''} {signal.what_changed}".lower()
    return signal.signal_type.value.lower()


def signal_type_matches_risk(signal: MacroSignal, risk_type: RiskType) -> bool:
    keywords = RISK_SIGNAL_KEYWORDS.get(risk_type)
    if not keywords:
        return False
    text = _type_text(signal)
    return any(k in text for k in keywords)


# ============================================================
# CONTEXT RELEVANCE
# ============================================================


_STATE_PATTERN = re.compile(
    r"\b(florida|texas|phoenix|arizona|austin|california|nevada|georgia)\b"
)


def normalize_asset_type(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    t = value.strip().lower()
    if not t:
        return None
    if "multifamily" in t or "multi-family" in t or "multifam" in t:
        return "multifamily"
    for asset in ("office", "retail", "industrial"):
        if asset in t:
            return asset
    return t


def normalize_place(value: Optional[str]) -> Optional[str]:
    if not value:
        return None
    return re.sub(r"\s+", " ", value.strip().lower()) or None


def infer_signal_context(signal: MacroSignal) -> SignalContext:
    """Infer asset type and state from the signal's type label and text."""
    combined = f"{signal.raw_type or signal.signal_type.value} {signal.what_changed}".lower()

    asset_type = None
    if "multifamily" in combined or "multi-family" in combined or "multifam" in combined:
        asset_type = "multifamily"
    else:
        for asset in ("office", "retail", "industrial"):
            if asset in combined:
                asset_type = asset
                break

    match = _STATE_PATTERN.search(combined)
    state = match.group(1) if match else None
    return SignalContext(asset_type=asset_type, state=state, category=signal.label)


def _places_match(signal_place: str, deal_place: str) -> bool:
    # "phoenix, az" vs "phoenix"
    return signal_place == deal_place or signal_place in deal_place or deal_place in signal_place


def is_signal_relevant(context: SignalContext, deal: DealContext) -> bool:
    """False only when an inferred attribute contradicts the deal's."""
    signal_asset = normalize_asset_type(context.asset_type)
    deal_asset = normalize_asset_type(deal.asset_type)
    if signal_asset and deal_asset and signal_asset != deal_asset:
        return False

    signal_place = normalize_place(context.state)
    deal_place = normalize_place(deal.state or deal.market)
    if signal_place and deal_place and not _places_match(signal_place, deal_place):
        return False

    return True


def build_link_reason(signal: MacroSignal) -> str:
    reason = f"Signal: {signal.label}"
    if signal.what_changed:
        reason += f" — {signal.what_changed[:80]}"
    return reason
