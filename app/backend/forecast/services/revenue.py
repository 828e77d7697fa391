"""Client revenue figures derived from a client-mode matrix."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from decimal import ROUND_HALF_UP, Decimal
from typing import Protocol

from forecast.models.entities import (
    BreakdownEntry,
    ClientRevenue,
    GroupingMode,
    InvalidCriteriaError,
    MatrixData,
    RevenueReport,
    RevenueTotals,
)
from forecast.services.skill_normalizer import skill_key

logger = logging.getLogger(__name__)

ZERO = Decimal("0")
Q0 = Decimal("1")
Q1 = Decimal("0.1")
Q2 = Decimal("0.01")
DEFAULT_FEE_RATE = Decimal("75.00")

DEFAULT_SKILL_FEE_RATES = {
    "CPA": Decimal("250.00"),
    "Senior": Decimal("150.00"),
    "Junior": Decimal("100.00"),
}


def _safe_div(numerator: Decimal, denominator: Decimal) -> Decimal:
    if denominator == ZERO:
        return ZERO
    return numerator / denominator


def present_money(value: Decimal) -> Decimal:
    return value.quantize(Q0, rounding=ROUND_HALF_UP)


def present_hours(value: Decimal) -> Decimal:
    return value.quantize(Q1, rounding=ROUND_HALF_UP)


def present_rate(value: Decimal) -> Decimal:
    return value.quantize(Q2, rounding=ROUND_HALF_UP)


class FeeRateProvider(Protocol):
    """Hourly fee rate per skill; ``None`` when the skill is not configured."""

    def fee_rate(self, skill: str) -> Decimal | None: ...


class StaticFeeRates:
    """Fee rates from a mapping; exact skill name first, then case-insensitive."""

    def __init__(self, rates: Mapping[str, Decimal | int | str]) -> None:
        self.rates = {name: Decimal(str(value)) for name, value in rates.items()}
        self._folded: dict[str, Decimal] = {}
        for name, value in self.rates.items():
            self._folded.setdefault(skill_key(name), value)

    @classmethod
    def defaults(cls) -> StaticFeeRates:
        return cls(DEFAULT_SKILL_FEE_RATES)

    def fee_rate(self, skill: str) -> Decimal | None:
        rate = self.rates.get(skill)
        if rate is not None:
            return rate
        return self._folded.get(skill_key(skill))


class SuggestedRevenueCalculator:
    """Applies skill fee rates to breakdown hours, falling back to a default rate."""

    def __init__(self, fee_rates: FeeRateProvider, default_rate: Decimal = DEFAULT_FEE_RATE) -> None:
        self.fee_rates = fee_rates
        self.default_rate = default_rate
        self.fallback_skills: list[str] = []

    def rate_for(self, skill: str) -> Decimal:
        rate = self.fee_rates.fee_rate(skill)
        if rate is not None:
            return rate
        if skill not in self.fallback_skills:
            self.fallback_skills.append(skill)
            logger.warning("No fee rate configured for skill %r; using default rate %s.", skill, self.default_rate)
        return self.default_rate

    def suggested_revenue(self, entries: Iterable[BreakdownEntry]) -> Decimal:
        return sum((entry.monthly_hours * self.rate_for(entry.skill) for entry in entries), ZERO)


def derive_expected_revenue(expected_monthly_revenue: Decimal, month_count: int) -> Decimal:
    """Expected revenue over the window from a client's contracted monthly revenue."""

    if month_count < 0:
        raise InvalidCriteriaError("month_count must be greater or equal zero.")
    return expected_monthly_revenue * month_count


def calculate_client_revenue(
    matrix: MatrixData,
    expected_revenue: Mapping[str, Decimal],
    fee_rates: FeeRateProvider,
    default_rate: Decimal = DEFAULT_FEE_RATE,
) -> RevenueReport:
    """Per-client and grand-total revenue figures; ``expected_revenue`` is keyed by client name."""

    if matrix.grouping_mode is not GroupingMode.CLIENT:
        raise InvalidCriteriaError("Revenue figures require a client-mode matrix.")

    calculator = SuggestedRevenueCalculator(fee_rates, default_rate)
    rows: list[ClientRevenue] = []
    for client_name in matrix.rows:
        cells = matrix.row_cells(client_name)
        total_hours = sum((cell.hours for cell in cells), ZERO)
        expected = expected_revenue.get(client_name, ZERO)
        suggested = calculator.suggested_revenue(entry for cell in cells for entry in cell.task_breakdown)
        rows.append(
            ClientRevenue(
                client_name=client_name,
                total_hours=total_hours,
                expected_revenue=expected,
                hourly_rate=_safe_div(expected, total_hours),
                suggested_revenue=suggested,
                expected_less_suggested=expected - suggested,
            )
        )

    total_hours = sum((row.total_hours for row in rows), ZERO)
    total_expected = sum((row.expected_revenue for row in rows), ZERO)
    totals = RevenueTotals(
        total_hours=total_hours,
        expected_revenue=total_expected,
        hourly_rate=_safe_div(total_expected, total_hours),
        suggested_revenue=sum((row.suggested_revenue for row in rows), ZERO),
        expected_less_suggested=sum((row.expected_less_suggested for row in rows), ZERO),
    )
    return RevenueReport(rows=rows, totals=totals, fallback_skills=list(calculator.fallback_skills))
