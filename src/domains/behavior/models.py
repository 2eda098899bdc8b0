"""Pydantic models for member transaction behavior."""

from dataclasses import dataclass

from pydantic import BaseModel


@dataclass(frozen=True)
class AmountDeviation:
    """Recent vs historical mean transaction amount around a cutoff."""

    recent_mean: float
    historical_mean: float
    recent_count: int
    historical_count: int

    @property
    def deviation_percent(self) -> float:
        if self.historical_mean <= 0:
            return 0.0
        return (self.recent_mean - self.historical_mean) / self.historical_mean * 100


class DayActivity(BaseModel):
    day: str
    count: int


class BehaviorAnalysis(BaseModel):
    member_id: str
    member_number: str | None = None
    full_name: str | None = None
    status: str | None = None
    balance: float | None = None
    total_transactions: int = 0
    deposits: int = 0
    withdrawals: int = 0
    avg_amount: float = 0.0
    avg_deposit: float = 0.0
    avg_withdrawal: float = 0.0
    weekly_frequency: float = 0.0
    recent_avg_amount: float = 0.0
    historical_avg_amount: float = 0.0
    amount_deviation_percent: float = 0.0
    flagged_transactions: int = 0
    peak_activity_day: str = "Sun"
    activity_by_day: list[DayActivity] = []


class BehaviorSummary(BaseModel):
    total_members: int = 0
    total_transactions: int = 0
    flagged_transactions: int = 0
    recent_transactions: int = 0
    avg_transaction_amount: float = 0.0
    high_risk_members: int = 0
