"""Fraud engine configuration with sensible defaults."""

import os
from dataclasses import dataclass, field

# Used for the large-withdrawal amount whenever no threshold row is configured.
DEFAULT_LARGE_WITHDRAWAL_AMOUNT = 100_000.0
DEFAULT_DAILY_WITHDRAWAL_LIMIT = 1_000_000.0
DEFAULT_MAX_WITHDRAWALS_PER_DAY = 5
DEFAULT_REQUIRE_APPROVAL_ABOVE = 100_000.0


@dataclass
class ScoringWeights:
    """Point weights for the member risk score."""

    free_withdrawals_24h: int = 3
    frequency_window_hours: int = 24
    points_per_extra_withdrawal: int = 10
    points_per_large_withdrawal: int = 15
    no_deposit_points: int = 25
    # Recent/historical split for behavioral deviation
    recent_window_days: int = 30
    deviation_medium_pct: float = 50.0
    deviation_high_pct: float = 100.0
    deviation_medium_points: int = 10
    deviation_high_points: int = 20


@dataclass(frozen=True)
class TierBreakpoints:
    """Minimum total points for each tier. Not overridable from the environment."""

    medium: int = 20
    high: int = 40
    critical: int = 60


@dataclass
class ScreeningLimits:
    """Limits for the post-write transaction screen."""

    large_deposit_amount: float = 500_000.0
    large_loan_amount: float = 1_000_000.0
    rapid_window_minutes: int = 60
    rapid_count: int = 5
    near_total_withdrawal_ratio: float = 0.9


@dataclass
class DecisionSettings:
    alert_type: str = "RISK_ENGINE"
    recent_items: int = 10


@dataclass
class FraudEngineConfig:
    scoring: ScoringWeights = field(default_factory=ScoringWeights)
    tiers: TierBreakpoints = field(default_factory=TierBreakpoints)
    screening: ScreeningLimits = field(default_factory=ScreeningLimits)
    decisions: DecisionSettings = field(default_factory=DecisionSettings)
    default_large_withdrawal_amount: float = DEFAULT_LARGE_WITHDRAWAL_AMOUNT

    @classmethod
    def from_env(cls) -> "FraudEngineConfig":
        """Load config with env var overrides. Env vars use FRAUD_ prefix."""
        config = cls()

        # Scoring overrides
        if v := os.getenv("FRAUD_FREE_WITHDRAWALS_24H"):
            config.scoring.free_withdrawals_24h = int(v)
        if v := os.getenv("FRAUD_POINTS_PER_EXTRA_WITHDRAWAL"):
            config.scoring.points_per_extra_withdrawal = int(v)
        if v := os.getenv("FRAUD_POINTS_PER_LARGE_WITHDRAWAL"):
            config.scoring.points_per_large_withdrawal = int(v)
        if v := os.getenv("FRAUD_NO_DEPOSIT_POINTS"):
            config.scoring.no_deposit_points = int(v)
        if v := os.getenv("FRAUD_RECENT_WINDOW_DAYS"):
            config.scoring.recent_window_days = int(v)

        # Screening overrides
        if v := os.getenv("FRAUD_LARGE_DEPOSIT_AMOUNT"):
            config.screening.large_deposit_amount = float(v)
        if v := os.getenv("FRAUD_LARGE_LOAN_AMOUNT"):
            config.screening.large_loan_amount = float(v)
        if v := os.getenv("FRAUD_RAPID_COUNT"):
            config.screening.rapid_count = int(v)

        if v := os.getenv("FRAUD_DEFAULT_LARGE_WITHDRAWAL_AMOUNT"):
            config.default_large_withdrawal_amount = float(v)

        return config


# Module-level default instance
default_config = FraudEngineConfig.from_env()
