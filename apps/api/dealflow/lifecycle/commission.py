from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import StrEnum
from typing import Any

from dealflow.core.config import get_settings
from dealflow.errors import StateError


CENT = Decimal("0.01")
DEFAULT_SALES_TAX_RATE = Decimal("0.0825")


class CommissionTier(StrEnum):
    JUNIOR = "junior"
    SENIOR = "senior"
    MANAGER = "manager"


class CommissionType(StrEnum):
    SETTER = "setter"
    CLOSER = "closer"
    SELF_GEN = "self_gen"


TIER_PERCENT: dict[CommissionTier, Decimal] = {
    CommissionTier.JUNIOR: Decimal("5"),
    CommissionTier.SENIOR: Decimal("10"),
    CommissionTier.MANAGER: Decimal("13"),
}


def tier_percent(tier: CommissionTier | str) -> Decimal:
    return TIER_PERCENT[CommissionTier(tier)]


def to_money(value: Any) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _cents(value: Decimal) -> Decimal:
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class CommissionBreakdown:
    calculated_rcv: Decimal
    sales_tax: Decimal
    base_amount: Decimal
    commission_percent: Decimal
    commission_amount: Decimal
    override_applied: bool
    first_check: Decimal
    deductible: Decimal
    second_check: Decimal

    @property
    def reconciles(self) -> bool:
        return self.first_check + self.deductible + self.second_check == self.calculated_rcv


class CommissionCalculator:
    def __init__(self, fallback_tax_rate: Decimal = DEFAULT_SALES_TAX_RATE) -> None:
        self.fallback_tax_rate = fallback_tax_rate

    def calculated_rcv(self, rcv: Any, acv: Any, depreciation: Any) -> Decimal:
        rcv_value = to_money(rcv)
        if rcv_value > 0:
            return rcv_value
        return to_money(acv) + to_money(depreciation)

    def sales_tax(self, calculated_rcv: Decimal, sales_tax: Any) -> Decimal:
        tax_value = to_money(sales_tax)
        if tax_value > 0:
            return tax_value
        # Unrounded; only the commission amount is rounded to cents.
        return calculated_rcv * self.fallback_tax_rate

    def calculate(
        self,
        *,
        rcv: Any = None,
        acv: Any = None,
        depreciation: Any = None,
        deductible: Any = None,
        sales_tax: Any = None,
        commission_percent: Any = None,
        override_amount: Any = None,
    ) -> CommissionBreakdown:
        calculated_rcv = self.calculated_rcv(rcv, acv, depreciation)
        tax = self.sales_tax(calculated_rcv, sales_tax)
        base_amount = calculated_rcv - tax
        percent = to_money(commission_percent)

        override = to_money(override_amount)
        if override > 0:
            amount = _cents(override)
        else:
            amount = _cents(base_amount * percent / Decimal("100"))

        deductible_value = to_money(deductible)
        return CommissionBreakdown(
            calculated_rcv=calculated_rcv,
            sales_tax=tax,
            base_amount=base_amount,
            commission_percent=percent,
            commission_amount=amount,
            override_applied=override > 0,
            first_check=to_money(acv) - deductible_value,
            deductible=deductible_value,
            second_check=to_money(depreciation),
        )

    def for_deal(self, snapshot: Mapping[str, Any], commission_percent: Any) -> CommissionBreakdown:
        return self.calculate(
            rcv=snapshot.get("rcv"),
            acv=snapshot.get("acv"),
            depreciation=snapshot.get("depreciation"),
            deductible=snapshot.get("deductible"),
            sales_tax=snapshot.get("sales_tax"),
            commission_percent=commission_percent,
            override_amount=snapshot.get("commission_override_amount"),
        )


def payment_request_patch(snapshot: Mapping[str, Any], now: datetime) -> dict[str, Any]:
    """Fields to set when a rep requests payment; empty once a request is already on file."""
    if not snapshot.get("depreciation_check_collected"):
        raise StateError(
            "Payment can only be requested after the depreciation check is collected",
            "depreciation_check_collected",
        )
    if snapshot.get("payment_requested"):
        return {}
    return {"payment_requested": True, "payment_request_date": now}


commission_calculator = CommissionCalculator(Decimal(get_settings().sales_tax_fallback_rate))
