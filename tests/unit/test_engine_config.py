"""Unit tests for fraud engine configuration."""

from src.domains.fraud.config import (
    DEFAULT_LARGE_WITHDRAWAL_AMOUNT,
    FraudEngineConfig,
)


class TestFraudEngineConfig:
    def test_defaults(self):
        config = FraudEngineConfig()

        assert config.scoring.free_withdrawals_24h == 3
        assert config.scoring.points_per_extra_withdrawal == 10
        assert config.scoring.points_per_large_withdrawal == 15
        assert config.scoring.no_deposit_points == 25
        assert config.scoring.deviation_high_points == 20
        assert config.scoring.deviation_medium_points == 10
        assert config.scoring.recent_window_days == 30
        assert (config.tiers.medium, config.tiers.high, config.tiers.critical) == (20, 40, 60)
        assert config.default_large_withdrawal_amount == DEFAULT_LARGE_WITHDRAWAL_AMOUNT == 100_000

    def test_screening_defaults(self):
        limits = FraudEngineConfig().screening
        assert limits.large_deposit_amount == 500_000
        assert limits.large_loan_amount == 1_000_000
        assert limits.rapid_count == 5
        assert limits.near_total_withdrawal_ratio == 0.9

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("FRAUD_FREE_WITHDRAWALS_24H", "5")
        monkeypatch.setenv("FRAUD_NO_DEPOSIT_POINTS", "30")
        monkeypatch.setenv("FRAUD_LARGE_DEPOSIT_AMOUNT", "750000")
        monkeypatch.setenv("FRAUD_DEFAULT_LARGE_WITHDRAWAL_AMOUNT", "200000")

        config = FraudEngineConfig.from_env()

        assert config.scoring.free_withdrawals_24h == 5
        assert config.scoring.no_deposit_points == 30
        assert config.screening.large_deposit_amount == 750_000
        assert config.default_large_withdrawal_amount == 200_000

    def test_instances_do_not_share_state(self):
        a = FraudEngineConfig()
        a.scoring.no_deposit_points = 99
        assert FraudEngineConfig().scoring.no_deposit_points == 25
