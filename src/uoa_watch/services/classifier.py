from __future__ import annotations

import math
from datetime import date
from typing import Protocol

from uoa_watch.config.settings import DetectionConfig

UNKNOWN_DTE = 9999


class SignalCandidate(Protocol):
    premium: float
    volume_open_interest_ratio: float
    last: float | None
    ask: float | None
    expiration: date | None
    moneyness: str


def days_to_expiry(expiration: date | None, today: date) -> int:
    if expiration is None:
        return UNKNOWN_DTE
    return (expiration - today).days


def _finite(value: float | None) -> bool:
    return value is not None and math.isfinite(value)


def is_near_ask(candidate: SignalCandidate, config: DetectionConfig) -> bool:
    if not (_finite(candidate.last) and _finite(candidate.ask)):
        return False
    return candidate.last >= config.aggressive_last_to_ask_ratio * candidate.ask


def is_large(candidate: SignalCandidate, config: DetectionConfig) -> bool:
    return (
        candidate.premium >= config.min_premium_large
        and candidate.volume_open_interest_ratio >= config.min_vol_oi
        and is_near_ask(candidate, config)
    )


def is_golden(candidate: SignalCandidate, config: DetectionConfig, today: date) -> bool:
    return (
        candidate.premium >= config.min_premium_golden
        and candidate.volume_open_interest_ratio >= config.min_vol_oi
        and is_near_ask(candidate, config)
        and days_to_expiry(candidate.expiration, today) <= config.max_dte_golden
        and candidate.moneyness == "OTM"
    )


__all__ = ["SignalCandidate", "UNKNOWN_DTE", "days_to_expiry", "is_golden", "is_large", "is_near_ask"]
