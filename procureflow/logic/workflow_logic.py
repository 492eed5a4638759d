"""Pure computations shared by the workflow services."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Literal

TransferStatus = Literal["pending", "partial", "completed"]

_CENT = Decimal("0.01")


def round_money(value) -> Decimal:
    return Decimal(value or 0).quantize(_CENT, rounding=ROUND_HALF_UP)


def line_cost(quantity: int, unit_price) -> Decimal:
    return round_money(Decimal(quantity or 0) * Decimal(unit_price or 0))


def transfer_status(transferred_quantity: int, quantity: int) -> TransferStatus:
    if transferred_quantity <= 0:
        return "pending"
    if transferred_quantity >= quantity:
        return "completed"
    return "partial"


def budget_required(job_order_type: str, material_count: int) -> bool:
    if job_order_type == "material_requisition":
        return True
    return material_count > 0


def order_totals(lines: Iterable[tuple[int, Decimal]], tax) -> tuple[Decimal, Decimal]:
    subtotal = round_money(sum((line_cost(qty, price) for qty, price in lines), Decimal("0")))
    return subtotal, round_money(subtotal + round_money(tax))


@dataclass(frozen=True)
class BudgetState:
    finance_approved: bool = False
    management_approved: bool = False
    rejected: bool = False

    @property
    def cleared(self) -> bool:
        return self.finance_approved and self.management_approved and not self.rejected

    @property
    def started(self) -> bool:
        return self.finance_approved or self.management_approved or self.rejected


def budget_state(entries: Iterable[tuple[str, str]]) -> BudgetState:
    """Derive the budget sub-machine state from (role, action) log entries."""
    finance = management = rejected = False
    for role, action in entries:
        if action == "budget_rejected":
            rejected = True
        elif action == "budget_approved":
            if role == "finance":
                finance = True
            elif role == "management":
                management = True
    return BudgetState(finance_approved=finance, management_approved=management, rejected=rejected)
