from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BeforeValidator, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _parse_path(value: Any) -> Path:
    if isinstance(value, Path):
        return value
    return Path(str(value))


def _parse_optional_url(value: Any) -> str | None:
    if value in (None, ''):
        return None
    return str(value).strip() or None


StatePath = Annotated[Path, BeforeValidator(_parse_path)]
WebhookURL = Annotated[str | None, BeforeValidator(_parse_optional_url)]


@dataclass(frozen=True)
class DetectionConfig:
    """Thresholds shared by the classifier, aggregator, cluster detector and policy."""

    min_premium_large: float = 200_000
    min_premium_golden: float = 1_000_000
    max_dte_golden: int = 14
    min_vol_oi: float = 1.5
    aggressive_last_to_ask_ratio: float = 0.95
    cluster_min_premium: float = 3_000_000
    strike_band_pct: float = 5
    date_band_days: int = 7
    cluster_premium_jump_threshold: float = 200_000
    window_minutes: int = 10
    notify_cap_per_category: int = 15
    notify_delay_ms: int = 400
    posted_retention_hours: int = 48
    cluster_retention_days: int = 7
    market_timezone: str = "America/New_York"

    @property
    def window(self) -> timedelta:
        return timedelta(minutes=self.window_minutes)

    @property
    def posted_retention(self) -> timedelta:
        return timedelta(hours=self.posted_retention_hours)

    @property
    def cluster_retention(self) -> timedelta:
        return timedelta(days=self.cluster_retention_days)

    @property
    def notify_delay_seconds(self) -> float:
        return self.notify_delay_ms / 1000.0

    def trading_day(self, now: datetime) -> date:
        """Calendar day of ``now`` on the exchange clock; DTE counts from here."""

        return now.astimezone(ZoneInfo(self.market_timezone)).date()


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_prefix='UOA_WATCH_',
        extra='ignore',
    )

    min_premium_large: float = 200_000
    min_premium_golden: float = 1_000_000
    max_dte_golden: int = 14
    min_vol_oi: float = 1.5
    aggressive_last_to_ask_ratio: float = 0.95
    cluster_min_premium: float = 3_000_000
    strike_band_pct: float = 5
    date_band_days: int = 7
    cluster_premium_jump_threshold: float = 200_000
    window_minutes: int = 10
    notify_cap_per_category: int = 15
    notify_delay_ms: int = 400
    posted_retention_hours: int = 48
    cluster_retention_days: int = 7
    market_timezone: str = 'America/New_York'

    state_backend: Literal['json', 'duckdb'] = 'json'
    state_path: StatePath = Path('data/posted-state.json')
    snapshot_path: StatePath = Path('data/snapshot.json')
    webhook_large: WebhookURL = None
    webhook_golden: WebhookURL = None
    webhook_cluster: WebhookURL = None
    debug: bool = False
    log_level: str = 'INFO'

    @field_validator('state_backend', mode='before')
    @classmethod
    def _lower_backend(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator('market_timezone')
    @classmethod
    def _known_timezone(cls, value: str) -> str:
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f'unknown timezone: {value}') from exc
        return value

    @property
    def effective_log_level(self) -> str:
        return 'DEBUG' if self.debug else self.log_level.upper()

    @property
    def has_webhooks(self) -> bool:
        return bool(self.webhook_large or self.webhook_golden or self.webhook_cluster)

    def detection_config(self) -> DetectionConfig:
        return DetectionConfig(
            min_premium_large=self.min_premium_large,
            min_premium_golden=self.min_premium_golden,
            max_dte_golden=self.max_dte_golden,
            min_vol_oi=self.min_vol_oi,
            aggressive_last_to_ask_ratio=self.aggressive_last_to_ask_ratio,
            cluster_min_premium=self.cluster_min_premium,
            strike_band_pct=self.strike_band_pct,
            date_band_days=self.date_band_days,
            cluster_premium_jump_threshold=self.cluster_premium_jump_threshold,
            window_minutes=self.window_minutes,
            notify_cap_per_category=self.notify_cap_per_category,
            notify_delay_ms=self.notify_delay_ms,
            posted_retention_hours=self.posted_retention_hours,
            cluster_retention_days=self.cluster_retention_days,
            market_timezone=self.market_timezone,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


__all__ = ["DetectionConfig", "Settings", "get_settings"]
